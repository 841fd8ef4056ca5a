from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest

from stepcoin.economy.errors import ConfigurationError, GatewayError
from stepcoin.economy.payments import gateway as gateway_module
from stepcoin.economy.payments.gateway import RazorpayGateway, parse_payment_entity


def _gateway(handler) -> RazorpayGateway:
    return RazorpayGateway(
        key_id="rzp_test_key",
        key_secret="rzp_test_secret",
        base_url="https://api.razorpay.test/v1",
        timeout_seconds=2.0,
        transport=httpx.MockTransport(handler),
    )


async def test_create_order_posts_minor_units_with_basic_auth() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["authorization"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"id": "order_123", "amount": 34900, "currency": "INR", "receipt": "sub_7_1", "status": "created"},
        )

    order = await _gateway(handler).create_order(
        amount_minor=34900,
        currency="INR",
        receipt="sub_7_1",
        notes={"plan_id": "1"},
    )

    assert order.order_id == "order_123"
    assert order.amount_minor == 34900
    assert seen["path"] == "/v1/orders"
    assert str(seen["authorization"]).startswith("Basic ")
    assert seen["body"] == {"amount": 34900, "currency": "INR", "receipt": "sub_7_1", "notes": {"plan_id": "1"}}


async def test_fetch_payment_parses_entity() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/payments/pay_9"
        return httpx.Response(
            200,
            json={"id": "pay_9", "order_id": "order_123", "amount": 34900, "currency": "INR", "status": "captured"},
        )

    payment = await _gateway(handler).fetch_payment("pay_9")

    assert payment.payment_id == "pay_9"
    assert payment.order_id == "order_123"
    assert payment.status == "captured"


async def test_gateway_http_error_maps_to_gateway_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": {"description": "boom"}})

    with pytest.raises(GatewayError):
        await _gateway(handler).create_order(amount_minor=100, currency="INR", receipt="r", notes={})


async def test_gateway_timeout_maps_to_gateway_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(GatewayError):
        await _gateway(handler).fetch_payment("pay_1")


async def test_malformed_order_payload_is_gateway_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"amount": 100})

    with pytest.raises(GatewayError):
        await _gateway(handler).create_order(amount_minor=100, currency="INR", receipt="r", notes={})


def test_parse_payment_entity_rejects_missing_amount() -> None:
    with pytest.raises(GatewayError):
        parse_payment_entity({"id": "pay_1"})


def test_get_payment_gateway_requires_credentials(monkeypatch) -> None:
    monkeypatch.setattr(
        gateway_module,
        "get_settings",
        lambda: SimpleNamespace(
            razorpay_key_id="",
            razorpay_key_secret="",
            razorpay_api_base_url="https://api.razorpay.com/v1",
            razorpay_timeout_seconds=10.0,
        ),
    )
    with pytest.raises(ConfigurationError):
        gateway_module.get_payment_gateway()
