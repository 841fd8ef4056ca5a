from __future__ import annotations

from datetime import timedelta

from fastapi.testclient import TestClient

from stepcoin.api.routes import auth_helpers
from stepcoin.main import app
from tests.api.fakes import api_settings, bearer_headers, principal_token

REPORT_BODY = {"user_id": 7, "device": "pixel-8", "platform": "android", "steps": 1200, "source": "google_fit"}


def _auth_header(user_id: int, secret: str = "principal-secret-used-only-in-tests") -> dict[str, str]:
    return bearer_headers(user_id, secret=secret)


def test_step_report_requires_principal(monkeypatch) -> None:
    monkeypatch.setattr(auth_helpers, "get_settings", lambda: api_settings())

    client = TestClient(app)
    response = client.post("/steps/report", json=REPORT_BODY)

    assert response.status_code == 401
    assert response.json() == {"detail": {"code": "E_UNAUTHORIZED"}}


def test_step_report_rejects_token_signed_with_other_secret(monkeypatch) -> None:
    monkeypatch.setattr(auth_helpers, "get_settings", lambda: api_settings())

    client = TestClient(app)
    response = client.post("/steps/report", json=REPORT_BODY, headers=_auth_header(7, secret="forged-secret-used-only-in-tests"))

    assert response.status_code == 401


def test_step_report_for_another_user_is_forbidden(monkeypatch) -> None:
    monkeypatch.setattr(auth_helpers, "get_settings", lambda: api_settings())

    client = TestClient(app)
    response = client.post("/steps/report", json=REPORT_BODY, headers=_auth_header(8))

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_steps_history_for_another_user_is_forbidden(monkeypatch) -> None:
    monkeypatch.setattr(auth_helpers, "get_settings", lambda: api_settings())

    client = TestClient(app)
    response = client.get("/steps/history", params={"user_id": 7}, headers=_auth_header(8))

    assert response.status_code == 403


def test_user_endpoints_require_principal(monkeypatch) -> None:
    monkeypatch.setattr(auth_helpers, "get_settings", lambda: api_settings())

    client = TestClient(app)
    assert client.get("/coin-redemptions/balance").status_code == 401
    assert client.get("/subscriptions/current").status_code == 401
    assert client.post("/payments/razorpay/create-order", json={"planId": 1}).status_code == 401


def test_step_report_rejects_expired_token(monkeypatch) -> None:
    monkeypatch.setattr(auth_helpers, "get_settings", lambda: api_settings())
    expired = principal_token(7, expires_in=timedelta(minutes=-5))

    client = TestClient(app)
    response = client.post("/steps/report", json=REPORT_BODY, headers={"Authorization": f"Bearer {expired}"})

    assert response.status_code == 401
    assert response.json() == {"detail": {"code": "E_UNAUTHORIZED"}}
