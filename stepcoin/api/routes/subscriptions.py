from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from stepcoin.api.routes.auth_helpers import require_user_id
from stepcoin.api.routes.errors import as_http_error
from stepcoin.db.models.subscription_plans import SubscriptionPlan
from stepcoin.db.models.user_subscriptions import UserSubscription
from stepcoin.db.session import SessionLocal
from stepcoin.economy.errors import CoinEconomyError
from stepcoin.economy.subscriptions.service import SubscriptionService

router = APIRouter(tags=["subscriptions"])


class PlanResponse(BaseModel):
    id: int
    name: str
    description: str | None
    price: Decimal
    currency: str
    duration_days: int
    features: list[str]
    coin_value_ratio: Decimal
    max_coin_redemption_percent: Decimal
    coins_required: int


class PlansResponse(BaseModel):
    items: list[PlanResponse]


class SubscriptionResponse(BaseModel):
    id: int
    plan_id: int
    status: str
    start_date: datetime
    end_date: datetime
    payment_status: str
    payment_method: str
    auto_renew: bool
    coins_used: int
    coin_discount: Decimal
    final_price: Decimal
    cancelled_at: datetime | None


class CurrentSubscriptionResponse(BaseModel):
    subscription: SubscriptionResponse | None


class SubscriptionStatisticsResponse(BaseModel):
    total_subscriptions: int
    active_subscriptions: int
    cancelled_subscriptions: int
    total_spent: Decimal
    total_coins_used: int
    total_coin_discount: Decimal


class SubscriptionHistoryResponse(BaseModel):
    items: list[SubscriptionResponse]
    statistics: SubscriptionStatisticsResponse


class PlanCoinCalculationResponse(BaseModel):
    plan_id: int
    plan_name: str
    price: Decimal
    currency: str
    duration_days: int
    can_use_coins: bool
    max_coins_allowed: int
    max_coin_discount: Decimal
    coins_usable_now: int
    final_price_with_max_coins: Decimal
    coins_required: int
    meets_minimum_requirement: bool


class CoinCalculatorResponse(BaseModel):
    available_coins: int
    plans: list[PlanCoinCalculationResponse]


class CoinScenarioRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plan_id: int = Field(alias="planId", gt=0)
    coins_to_use: int = Field(default=0, ge=0)


class CoinScenarioResponse(BaseModel):
    plan_id: int
    plan_name: str
    original_price: Decimal
    currency: str
    requested_coins: int
    available_coins: int
    can_use_coins: bool
    coins_that_can_be_used: int
    coin_discount: Decimal
    final_price: Decimal
    payment_method: str
    meets_requirements: bool
    errors: list[str]


def _plan_response(plan: SubscriptionPlan) -> PlanResponse:
    return PlanResponse(
        id=plan.id,
        name=plan.name,
        description=plan.description,
        price=plan.price,
        currency=plan.currency,
        duration_days=plan.duration_days,
        features=list(plan.features or []),
        coin_value_ratio=plan.coin_value_ratio,
        max_coin_redemption_percent=plan.max_coin_redemption_percent,
        coins_required=plan.coins_required,
    )


def _subscription_response(subscription: UserSubscription) -> SubscriptionResponse:
    return SubscriptionResponse(
        id=subscription.id,
        plan_id=subscription.plan_id,
        status=subscription.status,
        start_date=subscription.start_date,
        end_date=subscription.end_date,
        payment_status=subscription.payment_status,
        payment_method=subscription.payment_method,
        auto_renew=subscription.auto_renew,
        coins_used=subscription.coins_used,
        coin_discount=subscription.coin_discount,
        final_price=subscription.final_price,
        cancelled_at=subscription.cancelled_at,
    )


@router.get("/subscriptions/plans", response_model=PlansResponse)
async def list_subscription_plans() -> PlansResponse:
    async with SessionLocal.begin() as session:
        plans = await SubscriptionService.list_plans(session)
        items = [_plan_response(plan) for plan in plans]
    return PlansResponse(items=items)


@router.get("/subscriptions/current", response_model=CurrentSubscriptionResponse)
async def get_current_subscription(user_id: int = Depends(require_user_id)) -> CurrentSubscriptionResponse:
    async with SessionLocal.begin() as session:
        subscription = await SubscriptionService.get_current(session, user_id=user_id)
        response = CurrentSubscriptionResponse(
            subscription=_subscription_response(subscription) if subscription is not None else None
        )
    return response


@router.get("/subscriptions/history", response_model=SubscriptionHistoryResponse)
async def get_subscription_history(user_id: int = Depends(require_user_id)) -> SubscriptionHistoryResponse:
    async with SessionLocal.begin() as session:
        subscriptions, statistics = await SubscriptionService.history(session, user_id=user_id)
        items = [_subscription_response(item) for item in subscriptions]
    return SubscriptionHistoryResponse(
        items=items,
        statistics=SubscriptionStatisticsResponse(**asdict(statistics)),
    )


@router.get("/subscriptions/calculator", response_model=CoinCalculatorResponse)
async def get_coin_calculator(
    plan_id: int | None = Query(default=None, gt=0),
    user_id: int = Depends(require_user_id),
) -> CoinCalculatorResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await SubscriptionService.calculator(
                session,
                user_id=user_id,
                plan_id=plan_id,
                now_utc=now_utc,
            )
    except CoinEconomyError as exc:
        raise as_http_error(exc) from exc

    return CoinCalculatorResponse(
        available_coins=result.available_coins,
        plans=[PlanCoinCalculationResponse(**asdict(item)) for item in result.plans],
    )


@router.post("/subscriptions/calculator", response_model=CoinScenarioResponse)
async def calculate_coin_scenario(
    payload: CoinScenarioRequest,
    user_id: int = Depends(require_user_id),
) -> CoinScenarioResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await SubscriptionService.calculate_scenario(
                session,
                user_id=user_id,
                plan_id=payload.plan_id,
                coins_to_use=payload.coins_to_use,
                now_utc=now_utc,
            )
    except CoinEconomyError as exc:
        raise as_http_error(exc) from exc

    scenario = result.scenario
    return CoinScenarioResponse(
        plan_id=result.plan_id,
        plan_name=result.plan_name,
        original_price=result.original_price,
        currency=result.currency,
        requested_coins=scenario.requested_coins,
        available_coins=scenario.available_coins,
        can_use_coins=scenario.can_use_coins,
        coins_that_can_be_used=scenario.coins_that_can_be_used,
        coin_discount=scenario.coin_discount,
        final_price=scenario.final_price,
        payment_method=scenario.payment_method,
        meets_requirements=scenario.meets_requirements,
        errors=list(scenario.errors),
    )


@router.delete("/subscriptions/{subscription_id}", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: int,
    user_id: int = Depends(require_user_id),
) -> SubscriptionResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            subscription = await SubscriptionService.cancel(
                session,
                user_id=user_id,
                subscription_id=subscription_id,
                now_utc=now_utc,
            )
            response = _subscription_response(subscription)
    except CoinEconomyError as exc:
        raise as_http_error(exc) from exc
    return response
