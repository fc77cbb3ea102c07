"""
Local mock x402 facilitator.

Mounted by the proxy service under /x402 so agent servers started with the
default X402_FACILITATOR_URL can verify payments without a real network.
It checks the payment payload against the requirements; it does not look
at any ledger.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/x402", tags=["x402"])


class VerifyRequest(BaseModel):
    x402_version: int = Field(default=1, alias="x402Version")
    payment_payload: Dict[str, Any] = Field(alias="paymentPayload")
    payment_requirements: Dict[str, Any] = Field(alias="paymentRequirements")


class VerifyResponse(BaseModel):
    isValid: bool
    invalidReason: Optional[str] = None
    payer: Optional[str] = None


def check_payment(payload: Dict[str, Any], requirements: Dict[str, Any]) -> VerifyResponse:
    """Validate a mock "exact" payment payload against route requirements."""
    inner = payload.get("payload") if isinstance(payload.get("payload"), dict) else {}
    payer = inner.get("payer")
    if payer is not None and not isinstance(payer, str):
        return VerifyResponse(isValid=False, invalidReason="invalid_payer")

    if payload.get("scheme") != requirements.get("scheme"):
        return VerifyResponse(isValid=False, invalidReason="invalid_scheme", payer=payer)
    if payload.get("network") != requirements.get("network"):
        return VerifyResponse(isValid=False, invalidReason="invalid_network", payer=payer)
    if not payer:
        return VerifyResponse(isValid=False, invalidReason="missing_payer")
    if inner.get("payTo") != requirements.get("payTo"):
        return VerifyResponse(isValid=False, invalidReason="invalid_pay_to", payer=payer)

    try:
        paid = int(inner.get("amount", 0))
        required = int(requirements.get("maxAmountRequired", 0))
    except (TypeError, ValueError):
        return VerifyResponse(isValid=False, invalidReason="invalid_amount", payer=payer)
    if paid < required:
        return VerifyResponse(isValid=False, invalidReason="insufficient_funds", payer=payer)

    return VerifyResponse(isValid=True, payer=payer)


@router.post("/verify", response_model=VerifyResponse)
async def verify_payment(request: VerifyRequest) -> VerifyResponse:
    """Mock facilitator verification endpoint."""
    result = check_payment(request.payment_payload, request.payment_requirements)
    logger.info(
        f"x402 verify: payer={result.payer} valid={result.isValid}"
        + (f" reason={result.invalidReason}" if result.invalidReason else "")
    )
    return result
