from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.models.coin_redemption_history import CoinRedemptionHistory
from stepcoin.db.models.coin_redemptions import CoinRedemption
from stepcoin.db.repo.coin_accounts_repo import CoinAccountsRepo
from stepcoin.db.repo.coin_redemptions_repo import CoinRedemptionHistoryRepo, CoinRedemptionsRepo
from stepcoin.db.repo.users_repo import UsersRepo
from stepcoin.economy.errors import (
    DailyRedemptionLimitError,
    NotFoundError,
    RedeemBlockedError,
    StateConflictError,
)
from stepcoin.economy.ledger.service import CoinLedgerService
from stepcoin.economy.ledger.types import CoinBalance
from stepcoin.economy.redemptions.rules import (
    HISTORY_ACTION_BY_STATUS,
    ensure_transition_allowed,
    is_daily_limit_reached,
    resolve_approved_amounts,
    start_of_day_utc,
    validate_create_request,
)
from stepcoin.economy.redemptions.types import RedemptionResult, RedemptionStatistics

logger = structlog.get_logger(__name__)


class RedemptionWorkflow:
    @staticmethod
    def _as_result(redemption: CoinRedemption, balance: CoinBalance) -> RedemptionResult:
        return RedemptionResult(
            redemption_id=redemption.id,
            user_id=redemption.user_id,
            status=redemption.status,
            coins_requested=redemption.coins_requested,
            amount_requested=redemption.amount_requested,
            coins_approved=redemption.coins_approved,
            amount_approved=redemption.amount_approved,
            currency=redemption.currency,
            request_type=redemption.request_type,
            payment_method=redemption.payment_method,
            balance=balance,
            processed_at=redemption.processed_at,
        )

    @staticmethod
    async def _append_history(
        session: AsyncSession,
        *,
        redemption: CoinRedemption,
        action: str,
        previous_status: str | None,
        coins_amount: int,
        amount_value: Decimal,
        performed_by: str,
        notes: str | None,
        now_utc: datetime,
    ) -> None:
        await CoinRedemptionHistoryRepo.create(
            session,
            entry=CoinRedemptionHistory(
                redemption_id=redemption.id,
                user_id=redemption.user_id,
                action=action,
                previous_status=previous_status,
                new_status=redemption.status,
                coins_amount=coins_amount,
                amount_value=amount_value,
                currency=redemption.currency,
                notes=notes,
                performed_by=performed_by,
                created_at=now_utc,
            ),
        )

    @staticmethod
    async def _get_pending_or_raise(
        session: AsyncSession,
        *,
        redemption_id: UUID,
        to_status: str,
        owner_user_id: int | None,
    ) -> CoinRedemption:
        redemption = await CoinRedemptionsRepo.get_by_id(session, redemption_id)
        if redemption is None or (owner_user_id is not None and redemption.user_id != owner_user_id):
            raise NotFoundError(f"redemption {redemption_id} not found")
        ensure_transition_allowed(redemption.status, to_status)
        return redemption

    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        user_id: int,
        coins_requested: int,
        amount_requested: Decimal,
        request_type: str,
        now_utc: datetime,
        currency: str = "USD",
        payment_method: str | None = None,
        payment_details: dict[str, object] | None = None,
    ) -> RedemptionResult:
        validate_create_request(
            coins_requested=coins_requested,
            amount_requested=amount_requested,
            request_type=request_type,
        )
        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")

        account = await CoinAccountsRepo.get_or_create_for_update(session, user_id=user_id, now_utc=now_utc)
        if account.is_redeem_blocked:
            raise RedeemBlockedError(account.block_reason)

        if account.redeemed_limit_per_day > 0:
            open_today = await CoinRedemptionsRepo.count_open_created_since(
                session,
                user_id=user_id,
                since_utc=start_of_day_utc(now_utc),
            )
            if is_daily_limit_reached(
                limit_per_day=account.redeemed_limit_per_day,
                open_requests_today=open_today,
            ):
                raise DailyRedemptionLimitError(f"daily redemption limit reached for user {user_id}")

        redemption = await CoinRedemptionsRepo.create(
            session,
            redemption=CoinRedemption(
                id=uuid4(),
                user_id=user_id,
                coins_requested=coins_requested,
                amount_requested=amount_requested,
                currency=currency,
                status="pending",
                request_type=request_type.strip(),
                payment_method=payment_method,
                payment_details=payment_details,
                created_at=now_utc,
                updated_at=now_utc,
            ),
        )
        balance = await CoinLedgerService.reserve(
            session,
            user_id=user_id,
            amount=coins_requested,
            redemption_id=redemption.id,
            now_utc=now_utc,
        )
        await RedemptionWorkflow._append_history(
            session,
            redemption=redemption,
            action="created",
            previous_status=None,
            coins_amount=coins_requested,
            amount_value=amount_requested,
            performed_by=f"user:{user_id}",
            notes=None,
            now_utc=now_utc,
        )
        logger.info(
            "coin_redemption_created",
            user_id=user_id,
            redemption_id=str(redemption.id),
            coins_requested=coins_requested,
        )
        return RedemptionWorkflow._as_result(redemption, balance)

    @staticmethod
    async def approve(
        session: AsyncSession,
        *,
        redemption_id: UUID,
        processed_by: str,
        now_utc: datetime,
        coins_approved: int | None = None,
        amount_approved: Decimal | None = None,
        admin_notes: str | None = None,
    ) -> RedemptionResult:
        current = await RedemptionWorkflow._get_pending_or_raise(
            session,
            redemption_id=redemption_id,
            to_status="approved",
            owner_user_id=None,
        )
        resolved_coins, resolved_amount = resolve_approved_amounts(
            coins_requested=current.coins_requested,
            amount_requested=current.amount_requested,
            coins_approved=coins_approved,
            amount_approved=amount_approved,
        )
        redemption = await CoinRedemptionsRepo.transition_from_pending(
            session,
            redemption_id=redemption_id,
            to_status="approved",
            now_utc=now_utc,
            coins_approved=resolved_coins,
            amount_approved=resolved_amount,
            admin_notes=admin_notes,
            processed_by=processed_by,
        )
        if redemption is None:
            raise StateConflictError(f"redemption {redemption_id} is no longer pending")

        balance = await CoinLedgerService.settle_reserved(
            session,
            user_id=redemption.user_id,
            reserved_amount=redemption.coins_requested,
            settled_amount=resolved_coins,
            redemption_id=redemption.id,
            now_utc=now_utc,
        )
        await RedemptionWorkflow._append_history(
            session,
            redemption=redemption,
            action="approved",
            previous_status="pending",
            coins_amount=resolved_coins,
            amount_value=resolved_amount,
            performed_by=processed_by,
            notes=admin_notes,
            now_utc=now_utc,
        )
        logger.info(
            "coin_redemption_approved",
            user_id=redemption.user_id,
            redemption_id=str(redemption.id),
            coins_approved=resolved_coins,
        )
        return RedemptionWorkflow._as_result(redemption, balance)

    @staticmethod
    async def _release(
        session: AsyncSession,
        *,
        redemption_id: UUID,
        to_status: str,
        performed_by: str,
        now_utc: datetime,
        owner_user_id: int | None,
        admin_notes: str | None,
    ) -> RedemptionResult:
        await RedemptionWorkflow._get_pending_or_raise(
            session,
            redemption_id=redemption_id,
            to_status=to_status,
            owner_user_id=owner_user_id,
        )
        redemption = await CoinRedemptionsRepo.transition_from_pending(
            session,
            redemption_id=redemption_id,
            to_status=to_status,
            now_utc=now_utc,
            admin_notes=admin_notes,
            processed_by=performed_by,
        )
        if redemption is None:
            raise StateConflictError(f"redemption {redemption_id} is no longer pending")

        balance = await CoinLedgerService.release(
            session,
            user_id=redemption.user_id,
            amount=redemption.coins_requested,
            redemption_id=redemption.id,
            now_utc=now_utc,
        )
        await RedemptionWorkflow._append_history(
            session,
            redemption=redemption,
            action=HISTORY_ACTION_BY_STATUS[to_status],
            previous_status="pending",
            coins_amount=redemption.coins_requested,
            amount_value=redemption.amount_requested,
            performed_by=performed_by,
            notes=admin_notes,
            now_utc=now_utc,
        )
        logger.info(
            f"coin_redemption_{to_status}",
            user_id=redemption.user_id,
            redemption_id=str(redemption.id),
            released_coins=redemption.coins_requested,
        )
        return RedemptionWorkflow._as_result(redemption, balance)

    @staticmethod
    async def reject(
        session: AsyncSession,
        *,
        redemption_id: UUID,
        processed_by: str,
        now_utc: datetime,
        admin_notes: str | None = None,
    ) -> RedemptionResult:
        return await RedemptionWorkflow._release(
            session,
            redemption_id=redemption_id,
            to_status="rejected",
            performed_by=processed_by,
            now_utc=now_utc,
            owner_user_id=None,
            admin_notes=admin_notes,
        )

    @staticmethod
    async def cancel(
        session: AsyncSession,
        *,
        redemption_id: UUID,
        performed_by: str,
        now_utc: datetime,
        owner_user_id: int | None = None,
        admin_notes: str | None = None,
    ) -> RedemptionResult:
        return await RedemptionWorkflow._release(
            session,
            redemption_id=redemption_id,
            to_status="cancelled",
            performed_by=performed_by,
            now_utc=now_utc,
            owner_user_id=owner_user_id,
            admin_notes=admin_notes,
        )

    @staticmethod
    async def update_details(
        session: AsyncSession,
        *,
        redemption_id: UUID,
        user_id: int,
        now_utc: datetime,
        payment_method: str | None = None,
        payment_details: dict[str, object] | None = None,
    ) -> RedemptionResult:
        current = await CoinRedemptionsRepo.get_by_id(session, redemption_id)
        if current is None or current.user_id != user_id:
            raise NotFoundError(f"redemption {redemption_id} not found")
        if current.status != "pending":
            raise StateConflictError(f"redemption {redemption_id} is {current.status}")

        redemption = await CoinRedemptionsRepo.update_pending_details(
            session,
            redemption_id=redemption_id,
            user_id=user_id,
            payment_method=payment_method,
            payment_details=payment_details,
            now_utc=now_utc,
        )
        if redemption is None:
            raise StateConflictError(f"redemption {redemption_id} is no longer pending")

        await RedemptionWorkflow._append_history(
            session,
            redemption=redemption,
            action="updated",
            previous_status="pending",
            coins_amount=redemption.coins_requested,
            amount_value=redemption.amount_requested,
            performed_by=f"user:{user_id}",
            notes=None,
            now_utc=now_utc,
        )
        balance = await CoinLedgerService.get_balance(session, user_id=user_id, now_utc=now_utc)
        return RedemptionWorkflow._as_result(redemption, balance)

    @staticmethod
    async def list_for_user(
        session: AsyncSession,
        *,
        user_id: int,
        status: str | None = None,
    ) -> tuple[list[CoinRedemption], RedemptionStatistics]:
        redemptions = await CoinRedemptionsRepo.list_by_user(session, user_id=user_id, status=status)
        summary = await CoinRedemptionsRepo.summarize_by_status(session, user_id=user_id)
        statistics = RedemptionStatistics(
            total_requests=sum(count for count, _ in summary.values()),
            pending_requests=summary.get("pending", (0, 0))[0],
            approved_requests=summary.get("approved", (0, 0))[0],
            rejected_requests=summary.get("rejected", (0, 0))[0],
            cancelled_requests=summary.get("cancelled", (0, 0))[0],
            total_coins_redeemed=summary.get("approved", (0, 0))[1],
            total_coins_pending=summary.get("pending", (0, 0))[1],
        )
        return redemptions, statistics

    @staticmethod
    async def get_history(
        session: AsyncSession,
        *,
        redemption_id: UUID,
        owner_user_id: int | None = None,
    ) -> list[CoinRedemptionHistory]:
        redemption = await CoinRedemptionsRepo.get_by_id(session, redemption_id)
        if redemption is None or (owner_user_id is not None and redemption.user_id != owner_user_id):
            raise NotFoundError(f"redemption {redemption_id} not found")
        return await CoinRedemptionHistoryRepo.list_for_redemption(session, redemption_id=redemption_id)
