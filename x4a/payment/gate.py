"""
x402 payment gate for agent servers.

A priced route is only handed to its endpoint after the facilitator
confirms the `X-PAYMENT` header of the request. Anything else (no header,
undecodable header, facilitator rejection or outage) ends the request with
HTTP 402 and the route's payment requirements.
"""
import base64
import json
import logging
from dataclasses import asdict, dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..config import X402_TIMEOUT

logger = logging.getLogger(__name__)

X402_VERSION = 1
PAYMENT_HEADER = "X-PAYMENT"
USDC_DECIMALS = 6
# USDC mint on Solana mainnet
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def price_to_atomic_units(price: str, decimals: int = USDC_DECIMALS) -> str:
    """Convert a dollar price like "$0.001" to token atomic units ("1000")."""
    try:
        amount = Decimal(price.strip().lstrip("$"))
    except InvalidOperation as e:
        raise ValueError(f"Invalid price: {price!r}") from e
    if amount < 0:
        raise ValueError(f"Invalid price: {price!r}")
    return str(int(amount * (10 ** decimals)))


@dataclass(frozen=True)
class PaymentRequirements:
    """What a client must pay to call one route (x402 "exact" scheme)."""
    pay_to: str
    max_amount_required: str
    network: str = "solana"
    scheme: str = "exact"
    resource: str = ""
    description: str = ""
    mime_type: str = "application/json"
    max_timeout_seconds: int = 60
    asset: str = USDC_MINT
    output_schema: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_price(cls, price: str, pay_to: str, **kwargs) -> "PaymentRequirements":
        return cls(pay_to=pay_to, max_amount_required=price_to_atomic_units(price), **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Wire form with x402 camelCase keys."""
        raw = asdict(self)
        return {
            "scheme": raw["scheme"],
            "network": raw["network"],
            "maxAmountRequired": raw["max_amount_required"],
            "resource": raw["resource"],
            "description": raw["description"],
            "mimeType": raw["mime_type"],
            "payTo": raw["pay_to"],
            "maxTimeoutSeconds": raw["max_timeout_seconds"],
            "asset": raw["asset"],
            "outputSchema": raw["output_schema"],
        }


@dataclass
class PaymentVerdict:
    """Outcome of a payment check."""
    is_valid: bool
    reason: Optional[str] = None
    payer: Optional[str] = None


def encode_payment_header(payload: Dict[str, Any]) -> str:
    """Encode an x402 payment payload for the X-PAYMENT header."""
    return base64.b64encode(json.dumps(payload).encode()).decode()


def decode_payment_header(header: str) -> Dict[str, Any]:
    """Decode an X-PAYMENT header. Raises ValueError if malformed."""
    decoded = json.loads(base64.b64decode(header, validate=True))
    if not isinstance(decoded, dict):
        raise ValueError("Payment payload must be a JSON object")
    return decoded


class PaymentGate:
    """Verifies X-PAYMENT headers against a remote x402 facilitator."""

    def __init__(
        self,
        facilitator_url: str,
        timeout: float = X402_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.facilitator_url = facilitator_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def verify(
        self, header: Optional[str], requirements: PaymentRequirements
    ) -> PaymentVerdict:
        """
        Check one payment header. Never raises: every failure is an invalid verdict.

        Args:
            header: Raw X-PAYMENT header value (None if absent).
            requirements: Requirements of the route being called.
        """
        if not header:
            return PaymentVerdict(False, f"{PAYMENT_HEADER} header is required")

        try:
            payload = decode_payment_header(header)
        except ValueError as e:
            logger.info(f"Rejecting malformed payment header: {e}")
            return PaymentVerdict(False, "Invalid or malformed payment header")

        body = {
            "x402Version": X402_VERSION,
            "paymentPayload": payload,
            "paymentRequirements": requirements.to_dict(),
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.facilitator_url}/verify", json=body)
        except httpx.HTTPError as e:
            logger.error(f"Facilitator unreachable at {self.facilitator_url}: {e!r}")
            return PaymentVerdict(False, "Payment facilitator unavailable")

        if not response.is_success:
            logger.warning(f"Facilitator returned {response.status_code}")
            return PaymentVerdict(False, f"Payment facilitator error ({response.status_code})")

        try:
            data = response.json()
        except ValueError:
            return PaymentVerdict(False, "Payment facilitator returned invalid JSON")

        if not isinstance(data, dict) or data.get("isValid") is not True:
            reason = data.get("invalidReason") if isinstance(data, dict) else None
            return PaymentVerdict(False, reason or "Payment verification failed")

        return PaymentVerdict(True, payer=data.get("payer"))


class PaymentMiddleware(BaseHTTPMiddleware):
    """
    Runs the payment gate before priced routes.

    Routes are keyed "METHOD /path", e.g. {"POST /query": requirements}.
    Unpriced routes pass straight through.
    """

    def __init__(self, app, gate: PaymentGate, routes: Dict[str, PaymentRequirements]):
        super().__init__(app)
        self.gate = gate
        self.routes = routes

    async def dispatch(self, request: Request, call_next):
        requirements = self.routes.get(f"{request.method} {request.url.path}")
        if requirements is None:
            return await call_next(request)

        requirements = replace(requirements, resource=str(request.url))
        verdict = await self.gate.verify(request.headers.get(PAYMENT_HEADER), requirements)
        if not verdict.is_valid:
            logger.info(f"Payment rejected for {request.method} {request.url.path}: {verdict.reason}")
            return JSONResponse(
                status_code=402,
                content={
                    "x402Version": X402_VERSION,
                    "error": verdict.reason,
                    "accepts": [requirements.to_dict()],
                },
            )

        logger.info(f"Payment accepted from {verdict.payer or 'unknown payer'}")
        return await call_next(request)
