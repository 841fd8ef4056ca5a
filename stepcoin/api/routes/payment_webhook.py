from __future__ import annotations

import json
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from stepcoin.core.config import get_settings
from stepcoin.db.session import SessionLocal
from stepcoin.economy.errors import CoinEconomyError, ValidationError
from stepcoin.economy.payments.reconciler import PaymentReconciler
from stepcoin.economy.payments.signatures import is_valid_webhook_signature

router = APIRouter(tags=["payments"])
logger = structlog.get_logger(__name__)

SIGNATURE_HEADERS = ("X-Razorpay-Signature", "X-Signature")


def _extract_signature(request: Request) -> str | None:
    for header in SIGNATURE_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return None


@router.post("/webhooks/razorpay")
async def razorpay_webhook(request: Request) -> JSONResponse:
    settings = get_settings()
    if not settings.razorpay_webhook_secret:
        logger.error("payment_webhook_secret_not_configured")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"code": "E_NOT_CONFIGURED"},
        )

    raw_body = await request.body()
    if not is_valid_webhook_signature(
        webhook_secret=settings.razorpay_webhook_secret,
        raw_body=raw_body,
        signature=_extract_signature(request),
    ):
        logger.warning("payment_webhook_invalid_signature", body_size=len(raw_body))
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"code": "E_INVALID_SIGNATURE"},
        )

    try:
        event = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("payment_webhook_invalid_json")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"code": "E_MALFORMED_BODY"},
        )
    if not isinstance(event, dict) or not event.get("event"):
        logger.warning("payment_webhook_missing_event")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"code": "E_MALFORMED_BODY"},
        )

    event_type = str(event["event"])
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            outcome = await PaymentReconciler.handle_webhook_event(
                session,
                event=event,
                now_utc=now_utc,
            )
    except ValidationError as exc:
        logger.warning("payment_webhook_malformed_event", event_type=event_type, error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"code": "E_MALFORMED_BODY"},
        )
    except (CoinEconomyError, SQLAlchemyError):
        # The gateway retries non-2xx responses; processing failures are acknowledged once logged.
        logger.exception("payment_webhook_event_failed", event_type=event_type)
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "error_logged"},
        )

    logger.info(
        "payment_webhook_processed",
        event_type=event_type,
        result=outcome.result,
        payment_intent_id=str(outcome.payment_intent_id) if outcome.payment_intent_id else None,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"status": "ok", "result": outcome.result},
    )
