from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from stepcoin.api.routes.auth_helpers import _assert_internal_access
from stepcoin.api.routes.errors import as_http_error
from stepcoin.db.models.steps_config import StepsConfig
from stepcoin.db.session import SessionLocal
from stepcoin.economy.errors import CoinEconomyError
from stepcoin.economy.steps.service import StepsConfigService
from stepcoin.economy.steps.types import StepsConfigValues

router = APIRouter(tags=["internal", "steps"])
logger = structlog.get_logger(__name__)


class StepsConfigCreateRequest(BaseModel):
    threshold_steps: int
    coins_per_threshold: int
    coin_value_in_rupees: Decimal
    coin_value_in_usd: Decimal
    max_coins_per_day: int
    reset_policy: str = Field(default="continuous")
    is_active: bool = True


class StepsConfigItem(BaseModel):
    id: int
    threshold_steps: int
    coins_per_threshold: int
    coin_value_in_rupees: Decimal
    coin_value_in_usd: Decimal
    max_coins_per_day: int
    reset_policy: str
    is_active: bool
    created_by: str | None
    created_at: datetime
    updated_at: datetime


class StepsConfigListResponse(BaseModel):
    items: list[StepsConfigItem]


def _as_item(config: StepsConfig) -> StepsConfigItem:
    return StepsConfigItem(
        id=config.id,
        threshold_steps=config.threshold_steps,
        coins_per_threshold=config.coins_per_threshold,
        coin_value_in_rupees=config.coin_value_in_rupees,
        coin_value_in_usd=config.coin_value_in_usd,
        max_coins_per_day=config.max_coins_per_day,
        reset_policy=config.reset_policy,
        is_active=config.is_active,
        created_by=config.created_by,
        created_at=config.created_at,
        updated_at=config.updated_at,
    )


@router.get("/internal/steps-config", response_model=StepsConfigListResponse)
async def list_steps_configs(request: Request) -> StepsConfigListResponse:
    _assert_internal_access(request)
    async with SessionLocal.begin() as session:
        configs = await StepsConfigService.list_all(session)
        items = [_as_item(config) for config in configs]
    return StepsConfigListResponse(items=items)


@router.post("/internal/steps-config", response_model=StepsConfigItem, status_code=201)
async def create_steps_config(
    request: Request,
    payload: StepsConfigCreateRequest,
) -> StepsConfigItem:
    actor = _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    values = StepsConfigValues(
        threshold_steps=payload.threshold_steps,
        coins_per_threshold=payload.coins_per_threshold,
        max_coins_per_day=payload.max_coins_per_day,
        reset_policy=payload.reset_policy,
        coin_value_in_rupees=payload.coin_value_in_rupees,
        coin_value_in_usd=payload.coin_value_in_usd,
    )
    try:
        async with SessionLocal.begin() as session:
            config = await StepsConfigService.create(
                session,
                values=values,
                is_active=payload.is_active,
                created_by=actor,
                now_utc=now_utc,
            )
            item = _as_item(config)
    except CoinEconomyError as exc:
        raise as_http_error(exc) from exc

    logger.info("internal_steps_config_created", config_id=item.id, actor=actor)
    return item
