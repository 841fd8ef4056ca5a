from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.models.subscription_plans import SubscriptionPlan
from stepcoin.db.models.user_subscriptions import UserSubscription
from stepcoin.db.repo.coin_accounts_repo import CoinAccountsRepo
from stepcoin.db.repo.subscriptions_repo import SubscriptionPlansRepo, UserSubscriptionsRepo
from stepcoin.db.repo.users_repo import UsersRepo
from stepcoin.economy.errors import NotFoundError, StateConflictError, ValidationError
from stepcoin.economy.subscriptions.pricing import (
    PlanPricingTerms,
    coins_enabled,
    evaluate_coin_scenario,
    max_coin_discount,
    price_plan,
)
from stepcoin.economy.subscriptions.types import (
    CoinCalculatorResult,
    CoinScenarioResult,
    PlanCoinCalculation,
    SubscriptionStatistics,
)

logger = structlog.get_logger(__name__)


def terms_from_plan(plan: SubscriptionPlan) -> PlanPricingTerms:
    return PlanPricingTerms(
        price=Decimal(plan.price),
        coin_value_ratio=Decimal(plan.coin_value_ratio or 0),
        max_coin_redemption_percent=Decimal(plan.max_coin_redemption_percent or 0),
        coins_required=int(plan.coins_required or 0),
    )


class SubscriptionService:
    @staticmethod
    async def list_plans(session: AsyncSession) -> list[SubscriptionPlan]:
        return await SubscriptionPlansRepo.list_active(session)

    @staticmethod
    async def get_current(session: AsyncSession, *, user_id: int) -> UserSubscription | None:
        return await UserSubscriptionsRepo.get_active_by_user(session, user_id=user_id)

    @staticmethod
    async def cancel(
        session: AsyncSession,
        *,
        user_id: int,
        subscription_id: int,
        now_utc: datetime,
    ) -> UserSubscription:
        cancelled = await UserSubscriptionsRepo.cancel_active(
            session,
            subscription_id=subscription_id,
            user_id=user_id,
            now_utc=now_utc,
        )
        if cancelled is not None:
            logger.info("subscription_cancelled", user_id=user_id, subscription_id=subscription_id)
            return cancelled

        existing = await UserSubscriptionsRepo.get_by_id_for_user(
            session,
            subscription_id=subscription_id,
            user_id=user_id,
        )
        if existing is None:
            raise NotFoundError(f"subscription {subscription_id} not found")
        raise StateConflictError(f"subscription {subscription_id} is {existing.status}")

    @staticmethod
    async def history(
        session: AsyncSession,
        *,
        user_id: int,
    ) -> tuple[list[UserSubscription], SubscriptionStatistics]:
        subscriptions = await UserSubscriptionsRepo.list_by_user(session, user_id=user_id)
        statistics = SubscriptionStatistics(
            total_subscriptions=len(subscriptions),
            active_subscriptions=sum(1 for item in subscriptions if item.status == "active"),
            cancelled_subscriptions=sum(1 for item in subscriptions if item.status == "cancelled"),
            total_spent=sum((Decimal(item.final_price) for item in subscriptions), Decimal("0")),
            total_coins_used=sum(item.coins_used for item in subscriptions),
            total_coin_discount=sum((Decimal(item.coin_discount) for item in subscriptions), Decimal("0")),
        )
        return subscriptions, statistics

    @staticmethod
    async def calculator(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
        plan_id: int | None = None,
    ) -> CoinCalculatorResult:
        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")

        if plan_id is not None:
            plan = await SubscriptionPlansRepo.get_active_by_id(session, plan_id)
            if plan is None:
                raise NotFoundError(f"plan {plan_id} not found")
            plans = [plan]
        else:
            plans = await SubscriptionPlansRepo.list_active(session)

        await CoinAccountsRepo.ensure_exists(session, user_id=user_id, now_utc=now_utc)
        account = await CoinAccountsRepo.get_by_user_id(session, user_id)
        available = account.available_coins if account is not None else 0

        calculations: list[PlanCoinCalculation] = []
        for plan in plans:
            terms = terms_from_plan(plan)
            quote = price_plan(terms, requested_coins=available, available_coins=available)
            calculations.append(
                PlanCoinCalculation(
                    plan_id=plan.id,
                    plan_name=plan.name,
                    price=quote.original_price,
                    currency=plan.currency,
                    duration_days=plan.duration_days,
                    can_use_coins=coins_enabled(terms),
                    max_coins_allowed=quote.max_coins_allowed,
                    max_coin_discount=max_coin_discount(terms),
                    coins_usable_now=quote.coins_used,
                    final_price_with_max_coins=quote.final_price,
                    coins_required=quote.coins_required,
                    meets_minimum_requirement=quote.meets_minimum_requirement,
                )
            )
        return CoinCalculatorResult(user_id=user_id, available_coins=available, plans=calculations)

    @staticmethod
    async def calculate_scenario(
        session: AsyncSession,
        *,
        user_id: int,
        plan_id: int,
        coins_to_use: int,
        now_utc: datetime,
    ) -> CoinScenarioResult:
        if coins_to_use < 0:
            raise ValidationError("coins_to_use must be non-negative")
        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")
        plan = await SubscriptionPlansRepo.get_active_by_id(session, plan_id)
        if plan is None:
            raise NotFoundError(f"plan {plan_id} not found")

        await CoinAccountsRepo.ensure_exists(session, user_id=user_id, now_utc=now_utc)
        account = await CoinAccountsRepo.get_by_user_id(session, user_id)
        available = account.available_coins if account is not None else 0

        scenario = evaluate_coin_scenario(
            terms_from_plan(plan),
            requested_coins=coins_to_use,
            available_coins=available,
        )
        return CoinScenarioResult(
            plan_id=plan.id,
            plan_name=plan.name,
            original_price=Decimal(plan.price),
            currency=plan.currency,
            scenario=scenario,
        )
