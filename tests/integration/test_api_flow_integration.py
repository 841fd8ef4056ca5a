from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from stepcoin.api.routes import auth_helpers
from stepcoin.main import app
from tests.api.fakes import api_settings, bearer_headers
from tests.integration.coin_fixtures import _create_user

INTERNAL_HEADERS = {"X-Internal-Token": "internal-secret", "X-Internal-Actor": "ops-lead"}


def _user_headers(user_id: int) -> dict[str, str]:
    return bearer_headers(user_id)


@pytest.mark.asyncio
async def test_steps_to_redemption_flow_over_http(monkeypatch) -> None:
    monkeypatch.setattr(auth_helpers, "get_settings", lambda: api_settings())
    user_id = await _create_user()

    transport = ASGITransport(app=app, client=("127.0.0.1", 8080))
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        config_response = await client.post(
            "/internal/steps-config",
            json={
                "threshold_steps": 1000,
                "coins_per_threshold": 2,
                "coin_value_in_rupees": "1.50",
                "coin_value_in_usd": "1.50",
                "max_coins_per_day": 6,
                "reset_policy": "daily",
            },
            headers=INTERNAL_HEADERS,
        )
        assert config_response.status_code == 201
        assert config_response.json()["created_by"] == "ops-lead"

        config_read = await client.get("/steps/config")
        assert config_read.status_code == 200
        assert config_read.json()["threshold_steps"] == 1000

        report = await client.post(
            "/steps/report",
            json={
                "user_id": user_id,
                "device": "pixel-8",
                "platform": "android",
                "steps": 3500,
                "source": "health_connect",
            },
            headers=_user_headers(user_id),
        )
        assert report.status_code == 200
        assert report.json()["new_coins_awarded"] == 6
        assert report.json()["current_steps_since_threshold"] == 500

        created = await client.post(
            "/coin-redemptions",
            json={"coins_requested": 4, "amount_requested": "6.00", "request_type": "cash"},
            headers=_user_headers(user_id),
        )
        assert created.status_code == 201
        redemption = created.json()
        assert redemption["status"] == "pending"
        assert redemption["currency"] == "USD"
        assert redemption["balance"]["available_coins"] == 2
        assert redemption["balance"]["pending_redeem"] == 4

        approved = await client.put(
            f"/internal/coin-redemptions/{redemption['id']}",
            json={"status": "approved", "coins_approved": 3, "amount_approved": "4.50"},
            headers=INTERNAL_HEADERS,
        )
        assert approved.status_code == 200
        assert approved.json()["balance"]["available_coins"] == 3
        assert approved.json()["balance"]["redeemed_coins"] == 3
        assert approved.json()["balance"]["pending_redeem"] == 0

        again = await client.put(
            f"/internal/coin-redemptions/{redemption['id']}",
            json={"status": "rejected"},
            headers=INTERNAL_HEADERS,
        )
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "E_STATE_CONFLICT"

        history = await client.get(
            f"/internal/coin-redemptions/{redemption['id']}/history",
            headers=INTERNAL_HEADERS,
        )
        assert history.status_code == 200
        actions = [item["action"] for item in history.json()["items"]]
        assert actions == ["created", "approved"]
        assert history.json()["items"][1]["performed_by"] == "admin:ops-lead"

        balance = await client.get("/coin-redemptions/balance", headers=_user_headers(user_id))
        assert balance.status_code == 200
        assert balance.json()["total_coins_earned"] == 6

        reconciliation = await client.get("/internal/payments/reconciliation", headers=INTERNAL_HEADERS)
        assert reconciliation.status_code == 200
        assert reconciliation.json()["status"] == "OK"
        assert reconciliation.json()["credited_coins_total"] == 6


@pytest.mark.asyncio
async def test_steps_report_for_another_user_is_forbidden(monkeypatch) -> None:
    monkeypatch.setattr(auth_helpers, "get_settings", lambda: api_settings())
    user_id = await _create_user("Reporter")
    other_id = await _create_user("Other")

    transport = ASGITransport(app=app, client=("127.0.0.1", 8080))
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post(
            "/steps/report",
            json={
                "user_id": other_id,
                "device": "pixel-8",
                "platform": "android",
                "steps": 1000,
                "source": "health_connect",
            },
            headers=_user_headers(user_id),
        )

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}
