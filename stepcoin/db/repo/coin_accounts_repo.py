from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.models.coin_accounts import UserCoinAccount


class CoinAccountsRepo:
    @staticmethod
    async def get_by_user_id(session: AsyncSession, user_id: int) -> UserCoinAccount | None:
        return await session.get(UserCoinAccount, user_id, populate_existing=True)

    @staticmethod
    async def ensure_exists(session: AsyncSession, *, user_id: int, now_utc: datetime) -> None:
        stmt = (
            postgresql_insert(UserCoinAccount)
            .values(
                user_id=user_id,
                last_reset_date=now_utc.date(),
                created_at=now_utc,
                updated_at=now_utc,
            )
            .on_conflict_do_nothing(index_elements=[UserCoinAccount.user_id])
        )
        await session.execute(stmt)

    @staticmethod
    async def get_or_create_for_update(
        session: AsyncSession,
        *,
        user_id: int,
        now_utc: datetime,
    ) -> UserCoinAccount:
        await CoinAccountsRepo.ensure_exists(session, user_id=user_id, now_utc=now_utc)
        stmt = (
            select(UserCoinAccount)
            .where(UserCoinAccount.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one()

    @staticmethod
    async def _apply(session: AsyncSession, stmt) -> UserCoinAccount | None:
        result = await session.execute(
            stmt.returning(UserCoinAccount).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def credit(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        now_utc: datetime,
        daily_cap: int | None = None,
    ) -> UserCoinAccount | None:
        values: dict[str, object] = {
            "total_coins_earned": UserCoinAccount.total_coins_earned + amount,
            "available_coins": UserCoinAccount.available_coins + amount,
            "version": UserCoinAccount.version + 1,
            "updated_at": now_utc,
        }
        stmt = update(UserCoinAccount).where(UserCoinAccount.user_id == user_id)
        if daily_cap is not None:
            stmt = stmt.where(UserCoinAccount.coins_earned_today + amount <= daily_cap)
            values["coins_earned_today"] = UserCoinAccount.coins_earned_today + amount
        stmt = stmt.values(**values)
        return await CoinAccountsRepo._apply(session, stmt)

    @staticmethod
    async def debit(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        now_utc: datetime,
    ) -> UserCoinAccount | None:
        stmt = (
            update(UserCoinAccount)
            .where(
                UserCoinAccount.user_id == user_id,
                UserCoinAccount.available_coins >= amount,
            )
            .values(
                available_coins=UserCoinAccount.available_coins - amount,
                redeemed_coins=UserCoinAccount.redeemed_coins + amount,
                last_redeem_at=now_utc,
                version=UserCoinAccount.version + 1,
                updated_at=now_utc,
            )
        )
        return await CoinAccountsRepo._apply(session, stmt)

    @staticmethod
    async def reserve(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        now_utc: datetime,
    ) -> UserCoinAccount | None:
        stmt = (
            update(UserCoinAccount)
            .where(
                UserCoinAccount.user_id == user_id,
                UserCoinAccount.available_coins >= amount,
            )
            .values(
                available_coins=UserCoinAccount.available_coins - amount,
                pending_redeem=UserCoinAccount.pending_redeem + amount,
                version=UserCoinAccount.version + 1,
                updated_at=now_utc,
            )
        )
        return await CoinAccountsRepo._apply(session, stmt)

    @staticmethod
    async def release(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        now_utc: datetime,
    ) -> UserCoinAccount | None:
        stmt = (
            update(UserCoinAccount)
            .where(
                UserCoinAccount.user_id == user_id,
                UserCoinAccount.pending_redeem >= amount,
            )
            .values(
                available_coins=UserCoinAccount.available_coins + amount,
                pending_redeem=UserCoinAccount.pending_redeem - amount,
                version=UserCoinAccount.version + 1,
                updated_at=now_utc,
            )
        )
        return await CoinAccountsRepo._apply(session, stmt)

    @staticmethod
    async def settle_reserved(
        session: AsyncSession,
        *,
        user_id: int,
        reserved_amount: int,
        settled_amount: int,
        now_utc: datetime,
    ) -> UserCoinAccount | None:
        released_amount = reserved_amount - settled_amount
        stmt = (
            update(UserCoinAccount)
            .where(
                UserCoinAccount.user_id == user_id,
                UserCoinAccount.pending_redeem >= reserved_amount,
            )
            .values(
                pending_redeem=UserCoinAccount.pending_redeem - reserved_amount,
                redeemed_coins=UserCoinAccount.redeemed_coins + settled_amount,
                available_coins=UserCoinAccount.available_coins + released_amount,
                last_redeem_at=now_utc,
                version=UserCoinAccount.version + 1,
                updated_at=now_utc,
            )
        )
        return await CoinAccountsRepo._apply(session, stmt)

    @staticmethod
    async def save_step_progress(
        session: AsyncSession,
        *,
        user_id: int,
        current_steps_since_threshold: int,
        total_steps: int,
        coins_earned_today: int,
        last_threshold: int,
        last_reset_date: date,
        now_utc: datetime,
    ) -> UserCoinAccount | None:
        stmt = (
            update(UserCoinAccount)
            .where(UserCoinAccount.user_id == user_id)
            .values(
                current_steps_since_threshold=current_steps_since_threshold,
                total_steps=total_steps,
                coins_earned_today=coins_earned_today,
                last_threshold=last_threshold,
                last_reset_date=last_reset_date,
                version=UserCoinAccount.version + 1,
                updated_at=now_utc,
            )
        )
        return await CoinAccountsRepo._apply(session, stmt)

    @staticmethod
    async def sum_balances(session: AsyncSession) -> dict[str, int]:
        stmt = select(
            func.coalesce(func.sum(UserCoinAccount.total_coins_earned), 0),
            func.coalesce(func.sum(UserCoinAccount.available_coins), 0),
            func.coalesce(func.sum(UserCoinAccount.redeemed_coins), 0),
            func.coalesce(func.sum(UserCoinAccount.pending_redeem), 0),
        )
        total, available, redeemed, pending = (await session.execute(stmt)).one()
        return {
            "total_coins_earned": int(total),
            "available_coins": int(available),
            "redeemed_coins": int(redeemed),
            "pending_redeem": int(pending),
        }
