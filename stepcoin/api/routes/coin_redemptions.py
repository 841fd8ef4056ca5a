from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from stepcoin.api.routes.auth_helpers import require_user_id
from stepcoin.api.routes.coin_redemptions_models import (
    CoinBalanceResponse,
    RedemptionCreateRequest,
    RedemptionDetailsUpdateRequest,
    RedemptionHistoryResponse,
    RedemptionListResponse,
    RedemptionResponse,
    RedemptionStatisticsResponse,
    balance_response,
    history_response,
    redemption_item,
    redemption_response,
)
from stepcoin.api.routes.errors import as_http_error
from stepcoin.db.repo.users_repo import UsersRepo
from stepcoin.db.session import SessionLocal
from stepcoin.economy.errors import CoinEconomyError
from stepcoin.economy.ledger.service import CoinLedgerService
from stepcoin.economy.redemptions.service import RedemptionWorkflow

router = APIRouter(tags=["coin-redemptions"])


@router.get("/coin-redemptions/balance", response_model=CoinBalanceResponse)
async def get_coin_balance(user_id: int = Depends(require_user_id)) -> CoinBalanceResponse:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        if await UsersRepo.get_by_id(session, user_id) is None:
            raise HTTPException(status_code=404, detail={"code": "E_NOT_FOUND"})
        balance = await CoinLedgerService.get_balance(session, user_id=user_id, now_utc=now_utc)
    return balance_response(balance)


@router.get("/coin-redemptions", response_model=RedemptionListResponse)
async def list_coin_redemptions(
    status: Literal["pending", "approved", "rejected", "cancelled"] | None = Query(default=None),
    user_id: int = Depends(require_user_id),
) -> RedemptionListResponse:
    async with SessionLocal.begin() as session:
        redemptions, statistics = await RedemptionWorkflow.list_for_user(
            session,
            user_id=user_id,
            status=status,
        )
        items = [redemption_item(item) for item in redemptions]
    return RedemptionListResponse(
        items=items,
        statistics=RedemptionStatisticsResponse(**asdict(statistics)),
    )


@router.post("/coin-redemptions", response_model=RedemptionResponse, status_code=201)
async def create_coin_redemption(
    payload: RedemptionCreateRequest,
    user_id: int = Depends(require_user_id),
) -> RedemptionResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await RedemptionWorkflow.create(
                session,
                user_id=user_id,
                coins_requested=payload.coins_requested,
                amount_requested=payload.amount_requested,
                request_type=payload.request_type,
                currency=payload.currency.upper(),
                payment_method=payload.payment_method,
                payment_details=payload.payment_details,
                now_utc=now_utc,
            )
    except CoinEconomyError as exc:
        raise as_http_error(exc) from exc
    return redemption_response(result)


@router.put("/coin-redemptions/{redemption_id}", response_model=RedemptionResponse)
async def update_coin_redemption(
    redemption_id: UUID,
    payload: RedemptionDetailsUpdateRequest,
    user_id: int = Depends(require_user_id),
) -> RedemptionResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await RedemptionWorkflow.update_details(
                session,
                redemption_id=redemption_id,
                user_id=user_id,
                payment_method=payload.payment_method,
                payment_details=payload.payment_details,
                now_utc=now_utc,
            )
    except CoinEconomyError as exc:
        raise as_http_error(exc) from exc
    return redemption_response(result)


@router.delete("/coin-redemptions/{redemption_id}", response_model=RedemptionResponse)
async def cancel_coin_redemption(
    redemption_id: UUID,
    user_id: int = Depends(require_user_id),
) -> RedemptionResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await RedemptionWorkflow.cancel(
                session,
                redemption_id=redemption_id,
                performed_by=f"user:{user_id}",
                owner_user_id=user_id,
                now_utc=now_utc,
            )
    except CoinEconomyError as exc:
        raise as_http_error(exc) from exc
    return redemption_response(result)


@router.get("/coin-redemptions/{redemption_id}/history", response_model=RedemptionHistoryResponse)
async def get_coin_redemption_history(
    redemption_id: UUID,
    user_id: int = Depends(require_user_id),
) -> RedemptionHistoryResponse:
    try:
        async with SessionLocal.begin() as session:
            entries = await RedemptionWorkflow.get_history(
                session,
                redemption_id=redemption_id,
                owner_user_id=user_id,
            )
            response = history_response(redemption_id, entries)
    except CoinEconomyError as exc:
        raise as_http_error(exc) from exc
    return response
