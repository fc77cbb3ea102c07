"""x402 payment gating"""
from .gate import (
    PaymentGate,
    PaymentMiddleware,
    PaymentRequirements,
    PaymentVerdict,
    PAYMENT_HEADER,
    encode_payment_header,
    decode_payment_header,
    price_to_atomic_units,
)

__all__ = [
    "PaymentGate",
    "PaymentMiddleware",
    "PaymentRequirements",
    "PaymentVerdict",
    "PAYMENT_HEADER",
    "encode_payment_header",
    "decode_payment_header",
    "price_to_atomic_units",
]
