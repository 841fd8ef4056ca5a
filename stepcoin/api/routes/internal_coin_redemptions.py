from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, Request

from stepcoin.api.routes.auth_helpers import _assert_internal_access
from stepcoin.api.routes.coin_redemptions_models import (
    RedemptionAdminUpdateRequest,
    RedemptionHistoryResponse,
    RedemptionResponse,
    history_response,
    redemption_response,
)
from stepcoin.api.routes.errors import as_http_error
from stepcoin.db.session import SessionLocal
from stepcoin.economy.errors import CoinEconomyError
from stepcoin.economy.redemptions.service import RedemptionWorkflow

router = APIRouter(tags=["internal", "coin-redemptions"])
logger = structlog.get_logger(__name__)


@router.put("/internal/coin-redemptions/{redemption_id}", response_model=RedemptionResponse)
async def process_coin_redemption(
    redemption_id: UUID,
    request: Request,
    payload: RedemptionAdminUpdateRequest,
) -> RedemptionResponse:
    actor = _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)
    processed_by = f"admin:{actor}"

    try:
        async with SessionLocal.begin() as session:
            if payload.status == "approved":
                result = await RedemptionWorkflow.approve(
                    session,
                    redemption_id=redemption_id,
                    processed_by=processed_by,
                    coins_approved=payload.coins_approved,
                    amount_approved=payload.amount_approved,
                    admin_notes=payload.admin_notes,
                    now_utc=now_utc,
                )
            elif payload.status == "rejected":
                result = await RedemptionWorkflow.reject(
                    session,
                    redemption_id=redemption_id,
                    processed_by=processed_by,
                    admin_notes=payload.admin_notes,
                    now_utc=now_utc,
                )
            else:
                result = await RedemptionWorkflow.cancel(
                    session,
                    redemption_id=redemption_id,
                    performed_by=processed_by,
                    admin_notes=payload.admin_notes,
                    now_utc=now_utc,
                )
    except CoinEconomyError as exc:
        logger.info(
            "internal_coin_redemption_update_rejected",
            redemption_id=str(redemption_id),
            status=payload.status,
            error_type=type(exc).__name__,
        )
        raise as_http_error(exc) from exc

    return redemption_response(result)


@router.get(
    "/internal/coin-redemptions/{redemption_id}/history",
    response_model=RedemptionHistoryResponse,
)
async def get_internal_coin_redemption_history(
    redemption_id: UUID,
    request: Request,
) -> RedemptionHistoryResponse:
    _assert_internal_access(request)
    try:
        async with SessionLocal.begin() as session:
            entries = await RedemptionWorkflow.get_history(session, redemption_id=redemption_id)
            response = history_response(redemption_id, entries)
    except CoinEconomyError as exc:
        raise as_http_error(exc) from exc
    return response
