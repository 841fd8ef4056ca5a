from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.models.subscription_plans import SubscriptionPlan
from stepcoin.db.models.user_subscriptions import UserSubscription


class SubscriptionPlansRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, plan_id: int) -> SubscriptionPlan | None:
        return await session.get(SubscriptionPlan, plan_id)

    @staticmethod
    async def get_active_by_id(session: AsyncSession, plan_id: int) -> SubscriptionPlan | None:
        stmt = select(SubscriptionPlan).where(
            SubscriptionPlan.id == plan_id,
            SubscriptionPlan.is_active.is_(True),
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_active(session: AsyncSession) -> list[SubscriptionPlan]:
        stmt = (
            select(SubscriptionPlan)
            .where(SubscriptionPlan.is_active.is_(True))
            .order_by(SubscriptionPlan.price.asc(), SubscriptionPlan.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create(session: AsyncSession, *, plan: SubscriptionPlan) -> SubscriptionPlan:
        session.add(plan)
        await session.flush()
        return plan


class UserSubscriptionsRepo:
    @staticmethod
    async def get_active_by_user(session: AsyncSession, *, user_id: int) -> UserSubscription | None:
        stmt = select(UserSubscription).where(
            UserSubscription.user_id == user_id,
            UserSubscription.status == "active",
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_payment_intent_id(
        session: AsyncSession,
        *,
        payment_intent_id: UUID,
    ) -> UserSubscription | None:
        stmt = select(UserSubscription).where(UserSubscription.payment_intent_id == payment_intent_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, subscription: UserSubscription) -> UserSubscription:
        session.add(subscription)
        await session.flush()
        return subscription

    @staticmethod
    async def cancel_active(
        session: AsyncSession,
        *,
        subscription_id: int,
        user_id: int,
        now_utc: datetime,
    ) -> UserSubscription | None:
        stmt = (
            update(UserSubscription)
            .where(
                UserSubscription.id == subscription_id,
                UserSubscription.user_id == user_id,
                UserSubscription.status == "active",
            )
            .values(status="cancelled", cancelled_at=now_utc, updated_at=now_utc)
            .returning(UserSubscription)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_id_for_user(
        session: AsyncSession,
        *,
        subscription_id: int,
        user_id: int,
    ) -> UserSubscription | None:
        stmt = select(UserSubscription).where(
            UserSubscription.id == subscription_id,
            UserSubscription.user_id == user_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_by_user(session: AsyncSession, *, user_id: int, limit: int = 50) -> list[UserSubscription]:
        stmt = (
            select(UserSubscription)
            .where(UserSubscription.user_id == user_id)
            .order_by(UserSubscription.created_at.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_linked_to_payment_intents(session: AsyncSession) -> int:
        stmt = select(func.count(UserSubscription.id)).where(UserSubscription.payment_intent_id.is_not(None))
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)
