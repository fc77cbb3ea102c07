"""
X4A SDK - Python client library

Wraps the REST endpoints of the proxy service (x4a.main) and of the agent
servers (x4a.agent_server), plus pass-through helpers for the Solana ledger
and Mermaid rendering.

Usage:
    async with X4AClient(server_url="http://localhost:3000") as sdk:
        print(await sdk.health())
        print(await sdk.submit_grok_query("PRICING-01", "Quote SOL/USDC", type="pricing"))

Every REST method makes exactly one request and returns the parsed JSON
body, or raises ApiError when the status is not 2xx.
"""
import logging
import math
from typing import Any, Dict, Optional

import httpx

from ..completion import CompletionClient, build_agent_messages
from ..config import AGENT_BASE_PORT, OPENAI_BASE_URL, OPENAI_MODEL, SOLANA_RPC_URL
from ..errors import ApiError
from ..payment import PAYMENT_HEADER, encode_payment_header
from ..payment.gate import X402_VERSION
from ..ports import derive_agent_port
from ..solana_client import LedgerClient
from .diagrams import MermaidRenderer

logger = logging.getLogger(__name__)


class X4AClient:
    """Client for the X4A proxy and agent servers"""

    def __init__(
        self,
        server_url: str = "http://localhost:3000",
        agent_port_base: int = AGENT_BASE_PORT,
        agent_host: str = "localhost",
        solana_rpc: str = SOLANA_RPC_URL,
        openai_api_key: Optional[str] = None,
        renderer: Optional[MermaidRenderer] = None,
        ledger: Optional[LedgerClient] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            server_url: Base URL of the proxy service.
            agent_port_base: Base port of the agent servers (must match their --base-port).
            agent_host: Host the agent servers run on.
            solana_rpc: Solana RPC URL for ledger queries.
            openai_api_key: Enables simulate_agent_query.
            renderer: Mermaid renderer (defaults to MERMAID_RENDER_URL).
            ledger: Ledger client (defaults to one on solana_rpc).
            timeout: HTTP timeout in seconds.
            transport: Optional httpx transport shared by all HTTP calls.
        """
        self.server_url = server_url.rstrip("/")
        self.agent_port_base = agent_port_base
        self.agent_host = agent_host
        self.openai_api_key = openai_api_key
        self.renderer = renderer or MermaidRenderer(transport=transport)
        self.ledger = ledger or LedgerClient(solana_rpc)
        self._transport = transport
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> "X4AClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()
        await self.ledger.disconnect()

    # --- Utility ---

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        response = await self._http.request(method, url, **kwargs)
        if not response.is_success:
            raise ApiError(response.status_code, response.text)
        return response.json()

    async def _api_request(self, method: str, endpoint: str, **kwargs) -> Any:
        return await self._request(method, f"{self.server_url}{endpoint}", **kwargs)

    def agent_url(self, agent_id: str) -> str:
        """Base URL of the agent server for `agent_id`."""
        return f"http://{self.agent_host}:{derive_agent_port(agent_id, self.agent_port_base)}"

    # --- Proxy service ---

    async def health(self) -> Dict[str, Any]:
        """GET /health -> {status, timestamp}"""
        return await self._api_request("GET", "/health")

    async def submit_grok_query(self, id: str, query: str, type: str = "general") -> Dict[str, Any]:
        """POST /api/grok -> {result}"""
        return await self._api_request(
            "POST", "/api/grok", json={"id": id, "type": type, "query": query}
        )

    # --- Agent servers ---

    async def query_agent(self, agent_id: str, query: str, payment: Optional[str] = None) -> Dict[str, Any]:
        """
        POST /query directly to an agent server -> {agentId, agentName, result}

        Args:
            agent_id: Agent id; its last four digits select the port.
            query: Query string.
            payment: X-PAYMENT header value (see build_payment_header). Without
                one the agent answers 402 and this raises ApiError.
        """
        headers = {PAYMENT_HEADER: payment} if payment else None
        return await self._request(
            "POST", f"{self.agent_url(agent_id)}/query", json={"query": query}, headers=headers
        )

    @staticmethod
    def build_payment_header(payer: str, requirements: Dict[str, Any], amount: Optional[str] = None) -> str:
        """
        Build an X-PAYMENT header paying `requirements` (an entry of a 402 body's "accepts").

        The payload format is the one the local mock facilitator verifies.
        """
        return encode_payment_header({
            "x402Version": X402_VERSION,
            "scheme": requirements.get("scheme"),
            "network": requirements.get("network"),
            "payload": {
                "payer": payer,
                "payTo": requirements.get("payTo"),
                "amount": amount or requirements.get("maxAmountRequired"),
                "asset": requirements.get("asset"),
            },
        })

    async def simulate_agent_query(self, agent_name: str, agent_description: str, query: str) -> Dict[str, Any]:
        """Answer a query locally as a named agent (requires openai_api_key)."""
        completion = CompletionClient(
            api_key=self.openai_api_key,
            base_url=OPENAI_BASE_URL,
            model=OPENAI_MODEL,
            missing_key_message="OpenAI API key not provided",
            transport=self._transport,
        )
        reply = await completion.complete(build_agent_messages(agent_name, agent_description, query))
        return {"agentName": agent_name, "result": reply.result}

    # --- Ledger ---

    async def verify_solana_tx(self, signature: str) -> Optional[Dict[str, Any]]:
        """Status of a Solana transaction (None if unknown)."""
        return await self.ledger.get_signature_status(signature)

    async def get_balance(self, address: str) -> int:
        """Balance of a Solana address in lamports."""
        return await self.ledger.get_balance(address)

    # --- Rendering ---

    async def render_animation_timeline(self, mmd_content: str) -> str:
        """Render Mermaid timeline source to SVG."""
        return await self.renderer.render(mmd_content)

    # --- Helpers ---

    @staticmethod
    def format_number(n: Any, d: int = 2) -> str:
        """Group thousands, keep at most `d` decimals; "-" for missing or non-numeric values."""
        try:
            value = float(n)
        except (TypeError, ValueError):
            return "-"
        if math.isnan(value):
            return "-"
        text = f"{value:,.{d}f}"
        if d > 0:
            text = text.rstrip("0").rstrip(".")
        return text
