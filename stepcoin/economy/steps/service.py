from __future__ import annotations

from datetime import datetime, timedelta
from uuid import uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.models.coin_accounts import UserCoinAccount
from stepcoin.db.models.steps_config import StepsConfig
from stepcoin.db.repo.coin_accounts_repo import CoinAccountsRepo
from stepcoin.db.repo.steps_repo import StepsConfigRepo, StepsHistoryRepo
from stepcoin.db.repo.users_repo import UsersRepo
from stepcoin.economy.errors import ConfigurationError, NotFoundError, ValidationError
from stepcoin.economy.ledger.service import CoinLedgerService
from stepcoin.economy.steps.constants import HISTORY_MAX_DAYS
from stepcoin.economy.steps.rules import (
    apply_steps,
    reset_daily_progress,
    should_reset,
    validate_config_values,
)
from stepcoin.economy.steps.types import (
    StepProgress,
    StepReportResult,
    StepsConfigValues,
    StepsHistoryDay,
    StepsHistoryResult,
)

logger = structlog.get_logger(__name__)


class StepsConfigService:
    @staticmethod
    async def get_active(session: AsyncSession) -> StepsConfigValues:
        config = await StepsConfigRepo.get_active(session)
        if config is None:
            raise ConfigurationError("no active steps config")
        return StepsConfigValues.from_model(config)

    @staticmethod
    async def get_or_create_active(session: AsyncSession, *, now_utc: datetime) -> StepsConfigValues:
        config = await StepsConfigRepo.get_active(session)
        if config is not None:
            return StepsConfigValues.from_model(config)

        defaults = StepsConfigValues()
        created = await StepsConfigRepo.create_active_if_missing(
            session,
            threshold_steps=defaults.threshold_steps,
            coins_per_threshold=defaults.coins_per_threshold,
            coin_value_in_rupees=defaults.coin_value_in_rupees,
            coin_value_in_usd=defaults.coin_value_in_usd,
            max_coins_per_day=defaults.max_coins_per_day,
            reset_policy=defaults.reset_policy,
            now_utc=now_utc,
        )
        if created:
            logger.info("steps_config_default_created")
        return await StepsConfigService.get_active(session)

    @staticmethod
    async def list_all(session: AsyncSession) -> list[StepsConfig]:
        return await StepsConfigRepo.list_all(session)

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        values: StepsConfigValues,
        is_active: bool,
        created_by: str | None,
        now_utc: datetime,
    ) -> StepsConfig:
        validate_config_values(values)
        if is_active:
            deactivated = await StepsConfigRepo.deactivate_all(session, now_utc=now_utc)
            logger.info("steps_config_deactivated", deactivated_count=deactivated)

        config = await StepsConfigRepo.create(
            session,
            threshold_steps=values.threshold_steps,
            coins_per_threshold=values.coins_per_threshold,
            coin_value_in_rupees=values.coin_value_in_rupees,
            coin_value_in_usd=values.coin_value_in_usd,
            max_coins_per_day=values.max_coins_per_day,
            reset_policy=values.reset_policy,
            is_active=is_active,
            created_by=created_by,
            now_utc=now_utc,
        )
        logger.info("steps_config_created", config_id=config.id, is_active=is_active)
        return config


class StepIngestionService:
    @staticmethod
    def _progress_from_account(account: UserCoinAccount) -> StepProgress:
        return StepProgress(
            steps_since_threshold=account.current_steps_since_threshold,
            total_steps=account.total_steps,
            coins_earned_today=account.coins_earned_today,
            last_threshold=account.last_threshold,
            last_reset_date=account.last_reset_date,
        )

    @staticmethod
    async def report_steps(
        session: AsyncSession,
        *,
        user_id: int,
        steps: int,
        device: str,
        platform: str,
        source: str,
        now_utc: datetime,
    ) -> StepReportResult:
        if steps < 0:
            raise ValidationError("steps must be non-negative")

        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")

        config = await StepsConfigService.get_active(session)
        today = now_utc.date()

        # Row lock serializes reports for one user; balance moves still go through CAS updates.
        account = await CoinAccountsRepo.get_or_create_for_update(session, user_id=user_id, now_utc=now_utc)
        progress = StepIngestionService._progress_from_account(account)

        reset_applied = should_reset(progress, reset_policy=config.reset_policy, today=today)
        if reset_applied:
            progress = reset_daily_progress(progress, today=today)

        award = apply_steps(progress, steps=steps, config=config)
        await CoinAccountsRepo.save_step_progress(
            session,
            user_id=user_id,
            current_steps_since_threshold=award.progress.steps_since_threshold,
            total_steps=award.progress.total_steps,
            coins_earned_today=award.progress.coins_earned_today - award.awarded_coins,
            last_threshold=award.progress.last_threshold,
            last_reset_date=award.progress.last_reset_date,
            now_utc=now_utc,
        )

        if award.awarded_coins > 0:
            balance = await CoinLedgerService.credit(
                session,
                user_id=user_id,
                amount=award.awarded_coins,
                idempotency_key=f"credit:steps:{user_id}:{uuid4().hex}",
                now_utc=now_utc,
                daily_cap=config.max_coins_per_day,
                metadata={
                    "steps_config_id": config.config_id,
                    "thresholds_crossed": award.thresholds_crossed,
                    "device": device,
                    "platform": platform,
                    "source": source,
                },
            )
        else:
            balance = await CoinLedgerService.get_balance(session, user_id=user_id, now_utc=now_utc)

        history = await StepsHistoryRepo.add_daily_progress(
            session,
            user_id=user_id,
            day=today,
            steps=steps,
            coins_earned=award.awarded_coins,
            now_utc=now_utc,
        )

        if award.potential_coins > award.awarded_coins:
            logger.info(
                "steps_daily_coin_cap_applied",
                user_id=user_id,
                potential_coins=award.potential_coins,
                awarded_coins=award.awarded_coins,
                max_coins_per_day=config.max_coins_per_day,
            )
        logger.info(
            "steps_report_processed",
            user_id=user_id,
            accepted_steps=steps,
            thresholds_crossed=award.thresholds_crossed,
            new_coins_awarded=award.awarded_coins,
            daily_reset_applied=reset_applied,
            source=source,
        )

        return StepReportResult(
            user_id=user_id,
            accepted_steps=steps,
            current_steps_since_threshold=award.progress.steps_since_threshold,
            thresholds_crossed=award.thresholds_crossed,
            new_coins_awarded=award.awarded_coins,
            total_coins=balance.total_coins_earned,
            available_coins=balance.available_coins,
            coins_earned_today=award.progress.coins_earned_today,
            total_steps_today=history.steps,
            steps_to_next_threshold=award.steps_to_next_threshold,
            daily_reset_applied=reset_applied,
        )

    @staticmethod
    async def get_history(
        session: AsyncSession,
        *,
        user_id: int,
        days: int,
        now_utc: datetime,
    ) -> StepsHistoryResult:
        if not 1 <= days <= HISTORY_MAX_DAYS:
            raise ValidationError("days out of range")

        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")

        to_day = now_utc.date()
        from_day = to_day - timedelta(days=days - 1)
        rows = await StepsHistoryRepo.list_between(session, user_id=user_id, from_day=from_day, to_day=to_day)
        by_day = {row.day: row for row in rows}

        history_days: list[StepsHistoryDay] = []
        for offset in range(days):
            day = from_day + timedelta(days=offset)
            row = by_day.get(day)
            history_days.append(
                StepsHistoryDay(
                    day=day,
                    steps=int(row.steps) if row is not None else 0,
                    coins_earned=int(row.coins_earned) if row is not None else 0,
                )
            )

        return StepsHistoryResult(
            user_id=user_id,
            days=history_days,
            total_steps=sum(item.steps for item in history_days),
            total_coins_earned=sum(item.coins_earned for item in history_days),
            generated_at=now_utc,
        )
