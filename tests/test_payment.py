import json

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import RecordingTransport, reply_with
from x4a.main import app
from x4a.payment import (
    PaymentGate,
    PaymentRequirements,
    decode_payment_header,
    encode_payment_header,
    price_to_atomic_units,
)
from x4a.sdk import X4AClient

WALLET = "Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS"


@pytest.fixture
def requirements():
    return PaymentRequirements.for_price("$0.001", pay_to=WALLET, resource="http://localhost:4028/query")


@pytest.mark.parametrize("price, expected", [("$0.001", "1000"), ("$1", "1000000"), ("0.25", "250000")])
def test_price_to_atomic_units(price, expected):
    assert price_to_atomic_units(price) == expected


@pytest.mark.parametrize("price", ["free", "$", "$-1"])
def test_invalid_price(price):
    with pytest.raises(ValueError):
        price_to_atomic_units(price)


def test_requirements_wire_form(requirements):
    wire = requirements.to_dict()
    assert wire["scheme"] == "exact"
    assert wire["network"] == "solana"
    assert wire["maxAmountRequired"] == "1000"
    assert wire["payTo"] == WALLET
    assert wire["resource"] == "http://localhost:4028/query"


def test_header_encoding_round_trip():
    payload = {"scheme": "exact", "payload": {"payer": "p"}}
    assert decode_payment_header(encode_payment_header(payload)) == payload


### Gate ######################################################################


@pytest.mark.asyncio
async def test_missing_header_is_rejected_without_facilitator_call(requirements):
    facilitator = RecordingTransport(reply_with(200, {"isValid": True}))
    verdict = await PaymentGate("http://f/x402", transport=facilitator).verify(None, requirements)
    assert not verdict.is_valid
    assert verdict.reason == "X-PAYMENT header is required"
    assert facilitator.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["%%%not-base64%%%", encode_payment_header(["a", "list"])])
async def test_malformed_header_is_rejected(requirements, header):
    facilitator = RecordingTransport(reply_with(200, {"isValid": True}))
    verdict = await PaymentGate("http://f/x402", transport=facilitator).verify(header, requirements)
    assert not verdict.is_valid
    assert facilitator.requests == []


@pytest.mark.asyncio
async def test_valid_payment_posts_once_to_verify(requirements):
    facilitator = RecordingTransport(reply_with(200, {"isValid": True, "payer": "payer-1"}))
    header = X4AClient.build_payment_header("payer-1", requirements.to_dict())

    verdict = await PaymentGate("http://f/x402/", transport=facilitator).verify(header, requirements)

    assert verdict.is_valid
    assert verdict.payer == "payer-1"
    assert len(facilitator.requests) == 1
    request = facilitator.requests[0]
    assert str(request.url) == "http://f/x402/verify"
    sent = json.loads(request.content)
    assert sent["x402Version"] == 1
    assert sent["paymentRequirements"]["payTo"] == WALLET
    assert sent["paymentPayload"]["payload"]["payer"] == "payer-1"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "responder, reason",
    [
        (reply_with(200, {"isValid": False, "invalidReason": "insufficient_funds"}), "insufficient_funds"),
        (reply_with(200, {"isValid": "yes"}), "Payment verification failed"),
        (reply_with(500), "Payment facilitator error (500)"),
    ],
)
async def test_facilitator_rejections(requirements, responder, reason):
    header = X4AClient.build_payment_header("payer-1", requirements.to_dict())
    verdict = await PaymentGate("http://f/x402", transport=RecordingTransport(responder)).verify(header, requirements)
    assert not verdict.is_valid
    assert verdict.reason == reason


@pytest.mark.asyncio
async def test_unreachable_facilitator_fails_closed(requirements):
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    header = X4AClient.build_payment_header("payer-1", requirements.to_dict())
    verdict = await PaymentGate("http://f/x402", transport=RecordingTransport(refuse)).verify(header, requirements)
    assert not verdict.is_valid
    assert verdict.reason == "Payment facilitator unavailable"


### Mock facilitator ##########################################################


@pytest.fixture
def proxy():
    return TestClient(app)


def _verify(proxy, payload, requirements):
    return proxy.post(
        "/x402/verify",
        json={"x402Version": 1, "paymentPayload": payload, "paymentRequirements": requirements},
    )


def test_mock_facilitator_accepts_exact_payment(proxy, requirements):
    wire = requirements.to_dict()
    payload = decode_payment_header(X4AClient.build_payment_header("payer-1", wire))
    resp = _verify(proxy, payload, wire)
    assert resp.status_code == 200
    assert resp.json() == {"isValid": True, "invalidReason": None, "payer": "payer-1"}


@pytest.mark.parametrize(
    "mutate, reason",
    [
        (lambda p: p.update(network="solana-devnet"), "invalid_network"),
        (lambda p: p.update(scheme="upto"), "invalid_scheme"),
        (lambda p: p["payload"].update(payTo="SomeoneElse"), "invalid_pay_to"),
        (lambda p: p["payload"].update(amount="999"), "insufficient_funds"),
        (lambda p: p["payload"].update(amount="lots"), "invalid_amount"),
        (lambda p: p["payload"].pop("payer"), "missing_payer"),
        (lambda p: p["payload"].update(payer=123), "invalid_payer"),
        (lambda p: p.update(scheme="upto") or p["payload"].update(payer=["x"]), "invalid_payer"),
    ],
)
def test_mock_facilitator_rejections(proxy, requirements, mutate, reason):
    wire = requirements.to_dict()
    payload = decode_payment_header(X4AClient.build_payment_header("payer-1", wire))
    mutate(payload)
    resp = _verify(proxy, payload, wire)
    assert resp.status_code == 200
    body = resp.json()
    assert body["isValid"] is False
    assert body["invalidReason"] == reason


def test_mock_facilitator_rejects_malformed_body(proxy):
    resp = proxy.post("/x402/verify", json={"paymentPayload": "nope"})
    assert resp.status_code == 400
