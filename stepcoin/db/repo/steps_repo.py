from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.models.steps_config import StepsConfig
from stepcoin.db.models.steps_history import StepsHistory


class StepsConfigRepo:
    @staticmethod
    async def get_active(session: AsyncSession) -> StepsConfig | None:
        stmt = select(StepsConfig).where(StepsConfig.is_active.is_(True))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_all(session: AsyncSession, *, limit: int = 100) -> list[StepsConfig]:
        stmt = select(StepsConfig).order_by(StepsConfig.created_at.desc(), StepsConfig.id.desc()).limit(limit)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def deactivate_all(session: AsyncSession, *, now_utc: datetime) -> int:
        stmt = (
            update(StepsConfig)
            .where(StepsConfig.is_active.is_(True))
            .values(is_active=False, updated_at=now_utc)
            .returning(StepsConfig.id)
        )
        result = await session.execute(stmt)
        return len(result.scalars().all())

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        threshold_steps: int,
        coins_per_threshold: int,
        coin_value_in_rupees: Decimal,
        coin_value_in_usd: Decimal,
        max_coins_per_day: int,
        reset_policy: str,
        is_active: bool,
        created_by: str | None,
        now_utc: datetime,
    ) -> StepsConfig:
        config = StepsConfig(
            threshold_steps=threshold_steps,
            coins_per_threshold=coins_per_threshold,
            coin_value_in_rupees=coin_value_in_rupees,
            coin_value_in_usd=coin_value_in_usd,
            max_coins_per_day=max_coins_per_day,
            reset_policy=reset_policy,
            is_active=is_active,
            created_by=created_by,
            created_at=now_utc,
            updated_at=now_utc,
        )
        session.add(config)
        await session.flush()
        return config

    @staticmethod
    async def create_active_if_missing(
        session: AsyncSession,
        *,
        threshold_steps: int,
        coins_per_threshold: int,
        coin_value_in_rupees: Decimal,
        coin_value_in_usd: Decimal,
        max_coins_per_day: int,
        reset_policy: str,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            postgresql_insert(StepsConfig)
            .values(
                threshold_steps=threshold_steps,
                coins_per_threshold=coins_per_threshold,
                coin_value_in_rupees=coin_value_in_rupees,
                coin_value_in_usd=coin_value_in_usd,
                max_coins_per_day=max_coins_per_day,
                reset_policy=reset_policy,
                is_active=True,
                created_by="system",
                created_at=now_utc,
                updated_at=now_utc,
            )
            .on_conflict_do_nothing(
                index_elements=[StepsConfig.is_active],
                index_where=StepsConfig.is_active.is_(True),
            )
            .returning(StepsConfig.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None


class StepsHistoryRepo:
    @staticmethod
    async def add_daily_progress(
        session: AsyncSession,
        *,
        user_id: int,
        day: date,
        steps: int,
        coins_earned: int,
        now_utc: datetime,
    ) -> StepsHistory:
        stmt = postgresql_insert(StepsHistory).values(
            user_id=user_id,
            day=day,
            steps=steps,
            coins_earned=coins_earned,
            created_at=now_utc,
            updated_at=now_utc,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_steps_history_user_day",
            set_={
                "steps": StepsHistory.steps + stmt.excluded.steps,
                "coins_earned": StepsHistory.coins_earned + stmt.excluded.coins_earned,
                "updated_at": now_utc,
            },
        ).returning(StepsHistory)
        result = await session.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one()

    @staticmethod
    async def list_between(
        session: AsyncSession,
        *,
        user_id: int,
        from_day: date,
        to_day: date,
    ) -> list[StepsHistory]:
        stmt = (
            select(StepsHistory)
            .where(
                StepsHistory.user_id == user_id,
                StepsHistory.day >= from_day,
                StepsHistory.day <= to_day,
            )
            .order_by(StepsHistory.day.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
