from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from stepcoin.api.routes import auth_helpers
from stepcoin.main import app
from tests.api.fakes import api_settings

INTERNAL_ENDPOINTS = [
    ("GET", "/internal/steps-config"),
    ("GET", "/internal/payments/reconciliation"),
    ("GET", f"/internal/coin-redemptions/{uuid4()}/history"),
]


@pytest.mark.parametrize(("method", "path"), INTERNAL_ENDPOINTS)
def test_internal_endpoints_reject_disallowed_ip(monkeypatch, method: str, path: str) -> None:
    monkeypatch.setattr(auth_helpers, "get_settings", lambda: api_settings(internal_api_allowlist="192.168.0.0/16"))

    client = TestClient(app)
    response = client.request(
        method,
        path,
        headers={"X-Internal-Token": "internal-secret", "X-Forwarded-For": "10.0.0.25"},
    )

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


@pytest.mark.parametrize(("method", "path"), INTERNAL_ENDPOINTS)
async def test_internal_endpoints_reject_missing_token_from_allowed_ip(monkeypatch, method: str, path: str) -> None:
    monkeypatch.setattr(auth_helpers, "get_settings", lambda: api_settings())

    transport = ASGITransport(app=app, client=("127.0.0.1", 8080))
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.request(method, path)

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


async def test_internal_redemption_update_rejects_wrong_token(monkeypatch) -> None:
    monkeypatch.setattr(auth_helpers, "get_settings", lambda: api_settings())

    transport = ASGITransport(app=app, client=("127.0.0.1", 8080))
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.put(
            f"/internal/coin-redemptions/{uuid4()}",
            json={"status": "approved"},
            headers={"X-Internal-Token": "wrong"},
        )

    assert response.status_code == 403
