from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from stepcoin.api.routes.auth_helpers import require_user_id
from stepcoin.api.routes.errors import as_http_error
from stepcoin.db.session import SessionLocal
from stepcoin.economy.errors import CoinEconomyError
from stepcoin.economy.steps.constants import HISTORY_DEFAULT_DAYS, HISTORY_MAX_DAYS
from stepcoin.economy.steps.service import StepIngestionService, StepsConfigService

router = APIRouter(tags=["steps"])


class StepReportRequest(BaseModel):
    user_id: int = Field(gt=0)
    device: str = Field(min_length=1, max_length=128)
    platform: str = Field(min_length=1, max_length=32)
    steps: int = Field(ge=0)
    source: str = Field(min_length=1, max_length=64)


class StepReportResponse(BaseModel):
    accepted_steps: int
    current_steps_since_threshold: int
    thresholds_crossed: int
    new_coins_awarded: int
    total_coins: int
    available_coins: int
    coins_earned_today: int
    total_steps_today: int
    steps_to_next_threshold: int


class StepsConfigResponse(BaseModel):
    threshold_steps: int
    coins_per_threshold: int
    coin_value_in_rupees: Decimal
    coin_value_in_usd: Decimal
    max_coins_per_day: int
    reset_policy: str


class StepsHistoryDayResponse(BaseModel):
    date: date
    steps: int
    coins_earned: int


class StepsHistoryResponse(BaseModel):
    user_id: int
    days: list[StepsHistoryDayResponse]
    total_steps: int
    total_coins_earned: int
    generated_at: datetime


def _assert_same_user(principal_user_id: int, user_id: int) -> None:
    if principal_user_id != user_id:
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})


@router.post("/steps/report", response_model=StepReportResponse)
async def report_steps(
    payload: StepReportRequest,
    principal_user_id: int = Depends(require_user_id),
) -> StepReportResponse:
    _assert_same_user(principal_user_id, payload.user_id)
    now_utc = datetime.now(timezone.utc)

    try:
        async with SessionLocal.begin() as session:
            result = await StepIngestionService.report_steps(
                session,
                user_id=payload.user_id,
                steps=payload.steps,
                device=payload.device,
                platform=payload.platform,
                source=payload.source,
                now_utc=now_utc,
            )
    except CoinEconomyError as exc:
        raise as_http_error(exc) from exc

    return StepReportResponse(
        accepted_steps=result.accepted_steps,
        current_steps_since_threshold=result.current_steps_since_threshold,
        thresholds_crossed=result.thresholds_crossed,
        new_coins_awarded=result.new_coins_awarded,
        total_coins=result.total_coins,
        available_coins=result.available_coins,
        coins_earned_today=result.coins_earned_today,
        total_steps_today=result.total_steps_today,
        steps_to_next_threshold=result.steps_to_next_threshold,
    )


@router.get("/steps/config", response_model=StepsConfigResponse)
async def get_steps_config() -> StepsConfigResponse:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        config = await StepsConfigService.get_or_create_active(session, now_utc=now_utc)

    return StepsConfigResponse(
        threshold_steps=config.threshold_steps,
        coins_per_threshold=config.coins_per_threshold,
        coin_value_in_rupees=config.coin_value_in_rupees,
        coin_value_in_usd=config.coin_value_in_usd,
        max_coins_per_day=config.max_coins_per_day,
        reset_policy=config.reset_policy,
    )


@router.get("/steps/history", response_model=StepsHistoryResponse)
async def get_steps_history(
    user_id: int = Query(gt=0),
    days: int = Query(default=HISTORY_DEFAULT_DAYS, ge=1, le=HISTORY_MAX_DAYS),
    principal_user_id: int = Depends(require_user_id),
) -> StepsHistoryResponse:
    _assert_same_user(principal_user_id, user_id)
    now_utc = datetime.now(timezone.utc)

    try:
        async with SessionLocal.begin() as session:
            history = await StepIngestionService.get_history(
                session,
                user_id=user_id,
                days=days,
                now_utc=now_utc,
            )
    except CoinEconomyError as exc:
        raise as_http_error(exc) from exc

    return StepsHistoryResponse(
        user_id=history.user_id,
        days=[
            StepsHistoryDayResponse(date=item.day, steps=item.steps, coins_earned=item.coins_earned)
            for item in history.days
        ],
        total_steps=history.total_steps,
        total_coins_earned=history.total_coins_earned,
        generated_at=history.generated_at,
    )
