from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.models.ledger_entries import CoinLedgerEntry


class LedgerRepo:
    @staticmethod
    async def get_by_idempotency_key(
        session: AsyncSession, idempotency_key: str
    ) -> CoinLedgerEntry | None:
        stmt = select(CoinLedgerEntry).where(CoinLedgerEntry.idempotency_key == idempotency_key)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, entry: CoinLedgerEntry) -> CoinLedgerEntry:
        session.add(entry)
        await session.flush()
        return entry

    @staticmethod
    async def list_for_payment_intent(
        session: AsyncSession,
        *,
        payment_intent_id: UUID,
    ) -> list[CoinLedgerEntry]:
        stmt = (
            select(CoinLedgerEntry)
            .where(CoinLedgerEntry.payment_intent_id == payment_intent_id)
            .order_by(CoinLedgerEntry.id.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_for_user(
        session: AsyncSession,
        *,
        user_id: int,
        limit: int = 100,
    ) -> list[CoinLedgerEntry]:
        stmt = (
            select(CoinLedgerEntry)
            .where(CoinLedgerEntry.user_id == user_id)
            .order_by(CoinLedgerEntry.id.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_and_sum_by_type(session: AsyncSession, *, entry_type: str) -> tuple[int, int]:
        stmt = select(
            func.count(CoinLedgerEntry.id),
            func.coalesce(func.sum(CoinLedgerEntry.amount), 0),
        ).where(CoinLedgerEntry.entry_type == entry_type)
        count, total = (await session.execute(stmt)).one()
        return int(count or 0), int(total or 0)
