from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.models.coin_accounts import UserCoinAccount
from stepcoin.db.models.ledger_entries import CoinLedgerEntry
from stepcoin.db.repo.coin_accounts_repo import CoinAccountsRepo
from stepcoin.db.repo.ledger_repo import LedgerRepo
from stepcoin.economy.errors import (
    InsufficientBalanceError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from stepcoin.economy.ledger.types import CoinBalance

logger = structlog.get_logger(__name__)


class CoinLedgerService:
    """Atomic balance primitives over `user_coin_accounts`.

    Every primitive is a single conditional UPDATE guarded in SQL, so concurrent
    callers for the same user never need an application-side read-modify-write.
    Each successful mutation appends one `coin_ledger_entries` row.
    """

    @staticmethod
    def _validate_amount(amount: int) -> None:
        if amount <= 0:
            raise ValidationError("amount must be positive")

    @staticmethod
    async def _raise_for_missed_guard(session: AsyncSession, *, user_id: int) -> None:
        account = await CoinAccountsRepo.get_by_user_id(session, user_id)
        if account is None:
            raise NotFoundError(f"coin account {user_id} not found")
        raise InsufficientBalanceError(f"insufficient coins for user {user_id}")

    @staticmethod
    async def _append_entry(
        session: AsyncSession,
        *,
        account: UserCoinAccount,
        entry_type: str,
        amount: int,
        idempotency_key: str,
        now_utc: datetime,
        redemption_id: UUID | None = None,
        payment_intent_id: UUID | None = None,
        metadata: dict[str, object] | None = None,
    ) -> None:
        await LedgerRepo.create(
            session,
            entry=CoinLedgerEntry(
                user_id=account.user_id,
                entry_type=entry_type,
                amount=amount,
                available_after=account.available_coins,
                pending_after=account.pending_redeem,
                redemption_id=redemption_id,
                payment_intent_id=payment_intent_id,
                idempotency_key=idempotency_key,
                metadata_=metadata or {},
                created_at=now_utc,
            ),
        )

    @staticmethod
    async def credit(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        idempotency_key: str,
        now_utc: datetime,
        daily_cap: int | None = None,
        metadata: dict[str, object] | None = None,
    ) -> CoinBalance:
        CoinLedgerService._validate_amount(amount)
        account = await CoinAccountsRepo.credit(
            session,
            user_id=user_id,
            amount=amount,
            now_utc=now_utc,
            daily_cap=daily_cap,
        )
        if account is None:
            existing = await CoinAccountsRepo.get_by_user_id(session, user_id)
            if existing is None:
                raise NotFoundError(f"coin account {user_id} not found")
            raise StateConflictError("daily coin cap reached")

        await CoinLedgerService._append_entry(
            session,
            account=account,
            entry_type="STEP_CREDIT",
            amount=amount,
            idempotency_key=idempotency_key,
            now_utc=now_utc,
            metadata=metadata,
        )
        return CoinBalance.from_account(account)

    @staticmethod
    async def debit(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        idempotency_key: str,
        now_utc: datetime,
        payment_intent_id: UUID | None = None,
    ) -> CoinBalance:
        CoinLedgerService._validate_amount(amount)
        account = await CoinAccountsRepo.debit(session, user_id=user_id, amount=amount, now_utc=now_utc)
        if account is None:
            await CoinLedgerService._raise_for_missed_guard(session, user_id=user_id)

        await CoinLedgerService._append_entry(
            session,
            account=account,
            entry_type="SUBSCRIPTION_DEBIT",
            amount=amount,
            idempotency_key=idempotency_key,
            now_utc=now_utc,
            payment_intent_id=payment_intent_id,
        )
        return CoinBalance.from_account(account)

    @staticmethod
    async def reserve(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        redemption_id: UUID,
        now_utc: datetime,
    ) -> CoinBalance:
        CoinLedgerService._validate_amount(amount)
        account = await CoinAccountsRepo.reserve(session, user_id=user_id, amount=amount, now_utc=now_utc)
        if account is None:
            await CoinLedgerService._raise_for_missed_guard(session, user_id=user_id)

        await CoinLedgerService._append_entry(
            session,
            account=account,
            entry_type="REDEMPTION_RESERVE",
            amount=amount,
            idempotency_key=f"reserve:redemption:{redemption_id}",
            now_utc=now_utc,
            redemption_id=redemption_id,
        )
        return CoinBalance.from_account(account)

    @staticmethod
    async def release(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        redemption_id: UUID,
        now_utc: datetime,
    ) -> CoinBalance:
        CoinLedgerService._validate_amount(amount)
        account = await CoinAccountsRepo.release(session, user_id=user_id, amount=amount, now_utc=now_utc)
        if account is None:
            await CoinLedgerService._raise_for_missed_guard(session, user_id=user_id)

        await CoinLedgerService._append_entry(
            session,
            account=account,
            entry_type="REDEMPTION_RELEASE",
            amount=amount,
            idempotency_key=f"release:redemption:{redemption_id}",
            now_utc=now_utc,
            redemption_id=redemption_id,
        )
        return CoinBalance.from_account(account)

    @staticmethod
    async def settle_reserved(
        session: AsyncSession,
        *,
        user_id: int,
        reserved_amount: int,
        settled_amount: int,
        redemption_id: UUID,
        now_utc: datetime,
    ) -> CoinBalance:
        CoinLedgerService._validate_amount(settled_amount)
        if settled_amount > reserved_amount:
            raise ValidationError("settled amount exceeds reserved amount")

        account = await CoinAccountsRepo.settle_reserved(
            session,
            user_id=user_id,
            reserved_amount=reserved_amount,
            settled_amount=settled_amount,
            now_utc=now_utc,
        )
        if account is None:
            await CoinLedgerService._raise_for_missed_guard(session, user_id=user_id)

        await CoinLedgerService._append_entry(
            session,
            account=account,
            entry_type="REDEMPTION_SETTLE",
            amount=settled_amount,
            idempotency_key=f"settle:redemption:{redemption_id}",
            now_utc=now_utc,
            redemption_id=redemption_id,
            metadata={"reserved_amount": reserved_amount},
        )
        if reserved_amount > settled_amount:
            logger.info(
                "coin_redemption_partial_settle",
                user_id=user_id,
                redemption_id=str(redemption_id),
                released_amount=reserved_amount - settled_amount,
            )
        return CoinBalance.from_account(account)

    @staticmethod
    async def get_balance(session: AsyncSession, *, user_id: int, now_utc: datetime) -> CoinBalance:
        await CoinAccountsRepo.ensure_exists(session, user_id=user_id, now_utc=now_utc)
        account = await CoinAccountsRepo.get_by_user_id(session, user_id)
        if account is None:
            raise NotFoundError(f"coin account {user_id} not found")
        return CoinBalance.from_account(account)
