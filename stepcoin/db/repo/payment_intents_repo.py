from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.models.payment_intents import PaymentIntent

COMPLETABLE_STATUSES = ("pending", "authorized")


class PaymentIntentsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, payment_intent_id: UUID) -> PaymentIntent | None:
        return await session.get(PaymentIntent, payment_intent_id, populate_existing=True)

    @staticmethod
    async def get_by_gateway_order_id(session: AsyncSession, gateway_order_id: str) -> PaymentIntent | None:
        stmt = select(PaymentIntent).where(PaymentIntent.gateway_order_id == gateway_order_id)
        result = await session.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_gateway_payment_id(
        session: AsyncSession,
        gateway_payment_id: str,
    ) -> PaymentIntent | None:
        stmt = select(PaymentIntent).where(PaymentIntent.gateway_payment_id == gateway_payment_id)
        result = await session.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, intent: PaymentIntent) -> PaymentIntent:
        session.add(intent)
        await session.flush()
        return intent

    @staticmethod
    async def try_complete(
        session: AsyncSession,
        *,
        payment_intent_id: UUID,
        gateway_payment_id: str | None,
        now_utc: datetime,
    ) -> PaymentIntent | None:
        values: dict[str, object] = {
            "status": "completed",
            "completed_at": now_utc,
            "updated_at": now_utc,
        }
        if gateway_payment_id is not None:
            values["gateway_payment_id"] = func.coalesce(PaymentIntent.gateway_payment_id, gateway_payment_id)

        stmt = (
            update(PaymentIntent)
            .where(
                PaymentIntent.id == payment_intent_id,
                PaymentIntent.status.in_(COMPLETABLE_STATUSES),
            )
            .values(**values)
            .returning(PaymentIntent)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def try_transition_from_pending(
        session: AsyncSession,
        *,
        payment_intent_id: UUID,
        to_status: str,
        gateway_payment_id: str | None,
        now_utc: datetime,
    ) -> PaymentIntent | None:
        values: dict[str, object] = {"status": to_status, "updated_at": now_utc}
        if gateway_payment_id is not None:
            values["gateway_payment_id"] = func.coalesce(PaymentIntent.gateway_payment_id, gateway_payment_id)

        stmt = (
            update(PaymentIntent)
            .where(
                PaymentIntent.id == payment_intent_id,
                PaymentIntent.status == "pending",
            )
            .values(**values)
            .returning(PaymentIntent)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def try_fail_attempt(
        session: AsyncSession,
        *,
        payment_intent_id: UUID,
        gateway_payment_id: str,
        now_utc: datetime,
    ) -> PaymentIntent | None:
        # Only the attempt recorded on the intent can fail it; other attempts on the order may still succeed.
        stmt = (
            update(PaymentIntent)
            .where(
                PaymentIntent.id == payment_intent_id,
                PaymentIntent.status.in_(COMPLETABLE_STATUSES),
                PaymentIntent.gateway_payment_id == gateway_payment_id,
            )
            .values(status="failed", failed_at=now_utc, updated_at=now_utc)
            .returning(PaymentIntent)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def count_by_status(session: AsyncSession) -> dict[str, int]:
        stmt = select(PaymentIntent.status, func.count(PaymentIntent.id)).group_by(PaymentIntent.status)
        result = await session.execute(stmt)
        return {status: int(count) for status, count in result.all()}

    @staticmethod
    async def count_and_sum_completed_coin_usage(session: AsyncSession) -> tuple[int, int]:
        stmt = select(
            func.count(PaymentIntent.id),
            func.coalesce(func.sum(PaymentIntent.coins_used), 0),
        ).where(
            PaymentIntent.status == "completed",
            PaymentIntent.coins_used > 0,
        )
        count, total = (await session.execute(stmt)).one()
        return int(count or 0), int(total or 0)

    @staticmethod
    async def count_stale_authorized(session: AsyncSession, *, older_than_utc: datetime) -> int:
        stmt = select(func.count(PaymentIntent.id)).where(
            PaymentIntent.status == "authorized",
            PaymentIntent.updated_at <= older_than_utc,
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)
