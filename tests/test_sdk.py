import enum
import json
from types import SimpleNamespace

import httpx
import pytest
from solders.signature import Signature

from conftest import RecordingTransport, completion_body
from x4a.errors import ApiError, ConfigurationError
from x4a.sdk import MermaidRenderer, X4AClient
from x4a.solana_client import LedgerClient


def route(request: httpx.Request) -> httpx.Response:
    """Fake proxy, agent server and renderer keyed by host and path."""
    key = (request.url.host, request.url.port, request.url.path)
    if key == ("localhost", 3000, "/health"):
        return httpx.Response(200, json={"status": "OK", "timestamp": "2026-01-01T00:00:00.000Z"})
    if key == ("localhost", 3000, "/api/grok"):
        sent = json.loads(request.content)
        return httpx.Response(200, json={"result": f"{sent['id']} Agent: ok"})
    if key == ("localhost", 4028, "/query"):
        if "X-PAYMENT" not in request.headers:
            return httpx.Response(402, json={"x402Version": 1, "error": "X-PAYMENT header is required", "accepts": []})
        return httpx.Response(200, json={"agentId": "RL-Agent-0007", "agentName": "Hunter", "result": "done"})
    if request.url.host == "kroki.test" and request.url.path == "/mermaid/svg":
        if request.content == b"broken":
            return httpx.Response(400, text="Syntax error in graph")
        return httpx.Response(200, text="<svg>timeline</svg>")
    if request.url.host == "api.openai.com":
        return httpx.Response(200, json=completion_body("simulated"))
    return httpx.Response(404, text="not found")


@pytest.fixture
def transport():
    return RecordingTransport(route)


@pytest.fixture
async def sdk(transport):
    client = X4AClient(
        server_url="http://localhost:3000/",
        renderer=MermaidRenderer("https://kroki.test", transport=transport),
        transport=transport,
    )
    yield client
    await client.close()


@pytest.mark.asyncio
async def test_health(sdk):
    assert (await sdk.health())["status"] == "OK"


@pytest.mark.asyncio
async def test_submit_grok_query_sends_id_type_query(sdk, transport):
    result = await sdk.submit_grok_query("ARB-01", "Scan spreads", type="arbitrage")

    assert result == {"result": "ARB-01 Agent: ok"}
    request = transport.requests[-1]
    assert request.method == "POST"
    assert json.loads(request.content) == {"id": "ARB-01", "type": "arbitrage", "query": "Scan spreads"}


@pytest.mark.asyncio
async def test_query_agent_dials_derived_port_directly(sdk, transport):
    answer = await sdk.query_agent("RL-Agent-0007", "route?", payment="cGF5bWVudA==")

    assert answer["result"] == "done"
    assert len(transport.requests) == 1
    request = transport.requests[0]
    assert str(request.url) == "http://localhost:4028/query"
    assert request.headers["X-PAYMENT"] == "cGF5bWVudA=="


@pytest.mark.asyncio
async def test_query_agent_without_payment_raises_api_error(sdk):
    with pytest.raises(ApiError) as exc_info:
        await sdk.query_agent("RL-Agent-0007", "route?")
    assert exc_info.value.status == 402
    assert json.loads(exc_info.value.text)["error"] == "X-PAYMENT header is required"


@pytest.mark.asyncio
async def test_non_2xx_carries_status_and_text(transport):
    async with X4AClient(server_url="http://localhost:9999", transport=transport) as sdk:
        with pytest.raises(ApiError) as exc_info:
            await sdk.health()
    assert exc_info.value.status == 404
    assert exc_info.value.text == "not found"


@pytest.mark.asyncio
async def test_simulate_agent_query_requires_key(sdk, transport):
    with pytest.raises(ConfigurationError, match="OpenAI API key not provided"):
        await sdk.simulate_agent_query("Hunter", "Arbitrage.", "route?")
    assert transport.requests == []


@pytest.mark.asyncio
async def test_simulate_agent_query(transport):
    async with X4AClient(openai_api_key="sk-test", transport=transport) as sdk:
        result = await sdk.simulate_agent_query("Hunter", "Arbitrage.", "route?")
    assert result == {"agentName": "Hunter", "result": "simulated"}
    assert transport.requests[0].headers["Authorization"] == "Bearer sk-test"


@pytest.mark.asyncio
async def test_render_animation_timeline(sdk, transport):
    svg = await sdk.render_animation_timeline("timeline\n  title Swarm")
    assert svg == "<svg>timeline</svg>"
    assert transport.requests[0].content == b"timeline\n  title Swarm"


@pytest.mark.asyncio
async def test_render_failure_raises_api_error(sdk):
    with pytest.raises(ApiError) as exc_info:
        await sdk.render_animation_timeline("broken")
    assert exc_info.value.status == 400


@pytest.mark.parametrize(
    "value, decimals, expected",
    [
        (1234.567, 2, "1,234.57"),
        (1234.5, 2, "1,234.5"),
        (1000, 2, "1,000"),
        (0, 2, "0"),
        (3.14159, 4, "3.1416"),
        (1234567.8, 0, "1,234,568"),
        ("42.1", 2, "42.1"),
        (None, 2, "-"),
        (float("nan"), 2, "-"),
        ("abc", 2, "-"),
    ],
)
def test_format_number(value, decimals, expected):
    assert X4AClient.format_number(value, decimals) == expected


### Ledger ####################################################################


class ConfirmationStatus(enum.Enum):
    Finalized = 1


class FakeRpc:
    def __init__(self, statuses, balance=0):
        self.statuses = statuses
        self.balance = balance
        self.closed = False
        self.calls = []

    async def get_signature_statuses(self, signatures, search_transaction_history=False):
        self.calls.append(("get_signature_statuses", signatures, search_transaction_history))
        return SimpleNamespace(value=self.statuses)

    async def get_balance(self, pubkey):
        self.calls.append(("get_balance", pubkey))
        return SimpleNamespace(value=self.balance)

    async def close(self):
        self.closed = True


SIGNATURE = str(Signature.default())


@pytest.mark.asyncio
async def test_signature_status_is_serialized():
    ledger = LedgerClient("http://rpc.test")
    status = SimpleNamespace(slot=321, confirmations=None, err=None, confirmation_status=ConfirmationStatus.Finalized)
    ledger.client = FakeRpc([status])

    result = await ledger.get_signature_status(SIGNATURE)

    assert result == {
        "signature": SIGNATURE,
        "slot": 321,
        "confirmations": None,
        "err": None,
        "confirmation_status": "finalized",
    }
    _, signatures, history = ledger.client.calls[0]
    assert str(signatures[0]) == SIGNATURE
    assert history is True


@pytest.mark.asyncio
async def test_unknown_signature_is_none():
    ledger = LedgerClient("http://rpc.test")
    ledger.client = FakeRpc([None])
    assert await ledger.get_signature_status(SIGNATURE) is None


@pytest.mark.asyncio
async def test_sdk_passes_ledger_calls_through(transport):
    ledger = LedgerClient("http://rpc.test")
    rpc = FakeRpc([None], balance=1_500_000_000)
    ledger.client = rpc
    sdk = X4AClient(ledger=ledger, transport=transport)

    assert await sdk.get_balance("11111111111111111111111111111111") == 1_500_000_000
    assert await sdk.verify_solana_tx(SIGNATURE) is None

    await sdk.close()
    assert rpc.closed
    assert ledger.client is None
