from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.models.coin_redemption_history import CoinRedemptionHistory
from stepcoin.db.models.coin_redemptions import CoinRedemption


class CoinRedemptionsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, redemption_id: UUID) -> CoinRedemption | None:
        return await session.get(CoinRedemption, redemption_id, populate_existing=True)

    @staticmethod
    async def create(session: AsyncSession, *, redemption: CoinRedemption) -> CoinRedemption:
        session.add(redemption)
        await session.flush()
        return redemption

    @staticmethod
    async def transition_from_pending(
        session: AsyncSession,
        *,
        redemption_id: UUID,
        to_status: str,
        now_utc: datetime,
        coins_approved: int | None = None,
        amount_approved: Decimal | None = None,
        admin_notes: str | None = None,
        processed_by: str | None = None,
    ) -> CoinRedemption | None:
        values: dict[str, object] = {
            "status": to_status,
            "processed_by": processed_by,
            "processed_at": now_utc,
            "updated_at": now_utc,
        }
        if coins_approved is not None:
            values["coins_approved"] = coins_approved
        if amount_approved is not None:
            values["amount_approved"] = amount_approved
        if admin_notes is not None:
            values["admin_notes"] = admin_notes

        stmt = (
            update(CoinRedemption)
            .where(
                CoinRedemption.id == redemption_id,
                CoinRedemption.status == "pending",
            )
            .values(**values)
            .returning(CoinRedemption)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def update_pending_details(
        session: AsyncSession,
        *,
        redemption_id: UUID,
        user_id: int,
        payment_method: str | None,
        payment_details: dict[str, object] | None,
        now_utc: datetime,
    ) -> CoinRedemption | None:
        values: dict[str, object] = {"updated_at": now_utc}
        if payment_method is not None:
            values["payment_method"] = payment_method
        if payment_details is not None:
            values["payment_details"] = payment_details

        stmt = (
            update(CoinRedemption)
            .where(
                CoinRedemption.id == redemption_id,
                CoinRedemption.user_id == user_id,
                CoinRedemption.status == "pending",
            )
            .values(**values)
            .returning(CoinRedemption)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def count_open_created_since(
        session: AsyncSession,
        *,
        user_id: int,
        since_utc: datetime,
    ) -> int:
        stmt = select(func.count(CoinRedemption.id)).where(
            CoinRedemption.user_id == user_id,
            CoinRedemption.status.in_(("pending", "approved")),
            CoinRedemption.created_at >= since_utc,
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def list_by_user(
        session: AsyncSession,
        *,
        user_id: int,
        status: str | None = None,
        limit: int = 50,
    ) -> list[CoinRedemption]:
        stmt = select(CoinRedemption).where(CoinRedemption.user_id == user_id)
        if status is not None:
            stmt = stmt.where(CoinRedemption.status == status)
        stmt = stmt.order_by(CoinRedemption.created_at.desc()).limit(limit)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def summarize_by_status(
        session: AsyncSession,
        *,
        user_id: int,
    ) -> dict[str, tuple[int, int]]:
        stmt = (
            select(
                CoinRedemption.status,
                func.count(CoinRedemption.id),
                func.coalesce(
                    func.sum(func.coalesce(CoinRedemption.coins_approved, CoinRedemption.coins_requested)),
                    0,
                ),
            )
            .where(CoinRedemption.user_id == user_id)
            .group_by(CoinRedemption.status)
        )
        result = await session.execute(stmt)
        return {status: (int(count), int(coins)) for status, count, coins in result.all()}


class CoinRedemptionHistoryRepo:
    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        entry: CoinRedemptionHistory,
    ) -> CoinRedemptionHistory:
        session.add(entry)
        await session.flush()
        return entry

    @staticmethod
    async def list_for_redemption(
        session: AsyncSession,
        *,
        redemption_id: UUID,
    ) -> list[CoinRedemptionHistory]:
        stmt = (
            select(CoinRedemptionHistory)
            .where(CoinRedemptionHistory.redemption_id == redemption_id)
            .order_by(CoinRedemptionHistory.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
