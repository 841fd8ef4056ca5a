from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog

from stepcoin.core.config import get_settings
from stepcoin.economy.errors import ConfigurationError, GatewayError
from stepcoin.economy.payments.types import GatewayOrder, GatewayPayment

logger = structlog.get_logger(__name__)


class PaymentGateway(Protocol):
    async def create_order(
        self,
        *,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> GatewayOrder: ...

    async def fetch_payment(self, payment_id: str) -> GatewayPayment: ...


class RazorpayGateway:
    """Razorpay Orders/Payments API client.

    Calls carry a bounded timeout and are never retried here; a failed call
    surfaces as `GatewayError` and the caller decides whether to try again.
    """

    def __init__(
        self,
        *,
        key_id: str,
        key_secret: str,
        base_url: str,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._key_id = key_id
        self._key_secret = key_secret
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            auth=(self._key_id, self._key_secret),
            timeout=self._timeout_seconds,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, *, json: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json)
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as exc:
            logger.warning("payment_gateway_timeout", path=path, timeout_seconds=self._timeout_seconds)
            raise GatewayError("payment gateway timed out") from exc
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "payment_gateway_http_error",
                path=path,
                status_code=exc.response.status_code,
            )
            raise GatewayError(f"payment gateway returned {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("payment_gateway_request_failed", path=path, error_type=type(exc).__name__)
            raise GatewayError("payment gateway request failed") from exc

        if not isinstance(payload, dict):
            raise GatewayError("payment gateway returned a non-object payload")
        return payload

    async def create_order(
        self,
        *,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> GatewayOrder:
        payload = await self._request(
            "POST",
            "/orders",
            json={
                "amount": amount_minor,
                "currency": currency,
                "receipt": receipt,
                "notes": notes,
            },
        )
        try:
            return GatewayOrder(
                order_id=str(payload["id"]),
                amount_minor=int(payload["amount"]),
                currency=str(payload.get("currency", currency)),
                receipt=str(payload.get("receipt", receipt)),
                status=str(payload.get("status", "created")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise GatewayError("malformed order payload") from exc

    async def fetch_payment(self, payment_id: str) -> GatewayPayment:
        payload = await self._request("GET", f"/payments/{payment_id}")
        return parse_payment_entity(payload)


def parse_payment_entity(payload: dict[str, Any]) -> GatewayPayment:
    try:
        order_id = payload.get("order_id")
        return GatewayPayment(
            payment_id=str(payload["id"]),
            order_id=str(order_id) if order_id else None,
            amount_minor=int(payload["amount"]),
            currency=str(payload.get("currency", "INR")),
            status=str(payload.get("status", "")),
            method=payload.get("method"),
            raw=payload,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise GatewayError("malformed payment payload") from exc


def get_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    if not settings.razorpay_key_id or not settings.razorpay_key_secret:
        raise ConfigurationError("payment gateway credentials are not configured")
    return RazorpayGateway(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        base_url=settings.razorpay_api_base_url,
        timeout_seconds=settings.razorpay_timeout_seconds,
    )
