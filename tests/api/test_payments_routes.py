from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from fastapi.testclient import TestClient

from stepcoin.api.routes import auth_helpers, payments
from stepcoin.economy.errors import ConfigurationError, SignatureError
from stepcoin.economy.payments.types import (
    GatewayOrder,
    OrderCreationResult,
    PaymentCompletionResult,
    SubscriptionActivation,
)
from stepcoin.main import app
from tests.api.fakes import FakeSessionLocal, api_settings, bearer_headers

NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def _headers(user_id: int = 17) -> dict[str, str]:
    return bearer_headers(user_id)


class _StubReconciler:
    def __init__(self, *, order: OrderCreationResult | None = None, error: Exception | None = None) -> None:
        self.calls: list[dict[str, object]] = []
        self._order = order
        self._error = error

    async def create_order(self, session, **kwargs) -> OrderCreationResult:
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        assert self._order is not None
        return self._order

    async def verify_payment(self, session, **kwargs) -> PaymentCompletionResult:
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return PaymentCompletionResult(
            payment_intent_id=kwargs["payment_intent_id"],
            status="completed",
            activation=None,
            idempotent_replay=True,
            gateway_payment_id=kwargs["gateway_payment_id"],
            amount=Decimal("349.00"),
        )


def _install(monkeypatch, reconciler: _StubReconciler, *, gateway_configured: bool = True) -> None:
    settings = api_settings()
    monkeypatch.setattr(auth_helpers, "get_settings", lambda: settings)
    monkeypatch.setattr(payments, "get_settings", lambda: settings)
    monkeypatch.setattr(payments, "SessionLocal", FakeSessionLocal())
    monkeypatch.setattr(payments, "PaymentReconciler", reconciler)

    def _gateway():
        if not gateway_configured:
            raise ConfigurationError("payment gateway credentials are not configured")
        return object()

    monkeypatch.setattr(payments, "get_payment_gateway", _gateway)


def test_create_order_returns_gateway_order(monkeypatch) -> None:
    intent_id = uuid4()
    reconciler = _StubReconciler(
        order=OrderCreationResult(
            payment_intent_id=intent_id,
            plan_id=3,
            original_price=Decimal("499.00"),
            coins_used=100,
            coin_discount=Decimal("150.00"),
            final_price=Decimal("349.00"),
            currency="INR",
            gateway_order=GatewayOrder(
                order_id="order_abc",
                amount_minor=34900,
                currency="INR",
                receipt="sub_17_1",
                status="created",
            ),
        )
    )
    _install(monkeypatch, reconciler)

    client = TestClient(app)
    response = client.post(
        "/payments/razorpay/create-order",
        json={"planId": 3, "use_coins": True, "coins_to_use": 100},
        headers=_headers(),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["activated_with_coins"] is False
    assert body["order"] == {
        "order_id": "order_abc",
        "amount": 34900,
        "currency": "INR",
        "receipt": "sub_17_1",
        "key_id": "rzp_test_key",
    }
    assert reconciler.calls[0]["user_id"] == 17
    assert reconciler.calls[0]["plan_id"] == 3


def test_create_order_without_gateway_passes_none_for_coins_only(monkeypatch) -> None:
    reconciler = _StubReconciler(
        order=OrderCreationResult(
            payment_intent_id=uuid4(),
            plan_id=3,
            original_price=Decimal("100.00"),
            coins_used=100,
            coin_discount=Decimal("100.00"),
            final_price=Decimal("0.00"),
            currency="INR",
            activation=SubscriptionActivation(
                subscription_id=9,
                plan_id=3,
                status="active",
                start_date=NOW,
                end_date=NOW,
                payment_method="coins",
                coins_used=100,
                coin_discount=Decimal("100.00"),
                final_price=Decimal("0.00"),
            ),
        )
    )
    _install(monkeypatch, reconciler, gateway_configured=False)

    client = TestClient(app)
    response = client.post(
        "/payments/razorpay/create-order",
        json={"plan_id": 3, "use_coins": True, "coins_to_use": 100},
        headers=_headers(),
    )

    assert response.status_code == 200
    assert response.json()["activated_with_coins"] is True
    assert response.json()["subscription"]["payment_method"] == "coins"
    assert reconciler.calls[0]["gateway"] is None


def test_create_order_requires_principal(monkeypatch) -> None:
    _install(monkeypatch, _StubReconciler(error=AssertionError("not reached")))

    client = TestClient(app)
    response = client.post("/payments/razorpay/create-order", json={"planId": 3})

    assert response.status_code == 401


def test_verify_maps_bad_signature_to_400(monkeypatch) -> None:
    _install(monkeypatch, _StubReconciler(error=SignatureError("payment signature mismatch")))

    client = TestClient(app)
    response = client.post(
        "/payments/razorpay/verify",
        json={
            "payment_intent_id": str(uuid4()),
            "gateway_order_id": "order_abc",
            "gateway_payment_id": "pay_abc",
            "signature": "bad",
        },
        headers=_headers(),
    )

    assert response.status_code == 400
    assert response.json() == {"detail": {"code": "E_INVALID_SIGNATURE"}}


def test_verify_returns_completion(monkeypatch) -> None:
    reconciler = _StubReconciler()
    _install(monkeypatch, reconciler)
    intent_id = uuid4()

    client = TestClient(app)
    response = client.post(
        "/payments/razorpay/verify",
        json={
            "payment_intent_id": str(intent_id),
            "gateway_order_id": "order_abc",
            "gateway_payment_id": "pay_abc",
            "signature": "sig",
        },
        headers=_headers(),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["idempotent_replay"] is True
    assert reconciler.calls[0]["key_secret"] == "rzp_test_secret"
