from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import jwt


class FakeTransaction:
    def __init__(self, session: object) -> None:
        self._session = session

    async def __aenter__(self) -> object:
        return self._session

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class FakeSessionLocal:
    def __init__(self) -> None:
        self.session = SimpleNamespace()
        self.begin_calls = 0

    def begin(self) -> FakeTransaction:
        self.begin_calls += 1
        return FakeTransaction(self.session)


def api_settings(**overrides: object) -> SimpleNamespace:
    values: dict[str, object] = {
        "internal_api_token": "internal-secret",
        "internal_api_allowlist": "127.0.0.1/32",
        "internal_api_trusted_proxies": "",
        "principal_token_secret": "principal-secret-used-only-in-tests",
        "razorpay_key_id": "rzp_test_key",
        "razorpay_key_secret": "rzp_test_secret",
        "razorpay_webhook_secret": "hook-secret",
        "default_currency": "INR",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def principal_token(
    user_id: int,
    *,
    secret: str = "principal-secret-used-only-in-tests",
    expires_in: timedelta = timedelta(minutes=15),
) -> str:
    claims = {"sub": str(user_id), "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(claims, secret, algorithm="HS256")


def bearer_headers(user_id: int, *, secret: str = "principal-secret-used-only-in-tests") -> dict[str, str]:
    return {"Authorization": f"Bearer {principal_token(user_id, secret=secret)}"}
