from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.repo.coin_accounts_repo import CoinAccountsRepo
from stepcoin.db.repo.ledger_repo import LedgerRepo
from stepcoin.db.repo.payment_intents_repo import PaymentIntentsRepo
from stepcoin.db.repo.subscriptions_repo import UserSubscriptionsRepo
from stepcoin.services.payments_reliability import (
    compute_balance_identity_gap,
    compute_reconciliation_diff,
    reconciliation_status,
)

logger = structlog.get_logger(__name__)
STALE_AUTHORIZED_AFTER = timedelta(hours=1)


@dataclass(slots=True)
class ReconciliationReport:
    generated_at: datetime
    status: str
    diff_count: int
    intents_by_status: dict[str, int]
    completed_intents: int
    activated_subscriptions: int
    coin_intents: int
    coin_debits: int
    intent_coins_total: int
    debited_coins_total: int
    stale_authorized: int
    credited_coins_total: int
    total_coins_earned: int
    balance_identity_gap: int


class PaymentsReconciliationService:
    @staticmethod
    async def build_report(session: AsyncSession, *, now_utc: datetime) -> ReconciliationReport:
        intents_by_status = await PaymentIntentsRepo.count_by_status(session)
        activated = await UserSubscriptionsRepo.count_linked_to_payment_intents(session)
        coin_intents, intent_coins_total = await PaymentIntentsRepo.count_and_sum_completed_coin_usage(session)
        coin_debits, debited_coins_total = await LedgerRepo.count_and_sum_by_type(
            session,
            entry_type="SUBSCRIPTION_DEBIT",
        )
        stale_authorized = await PaymentIntentsRepo.count_stale_authorized(
            session,
            older_than_utc=now_utc - STALE_AUTHORIZED_AFTER,
        )
        _, credited_coins_total = await LedgerRepo.count_and_sum_by_type(session, entry_type="STEP_CREDIT")
        balances = await CoinAccountsRepo.sum_balances(session)

        completed = intents_by_status.get("completed", 0)
        identity_gap = compute_balance_identity_gap(
            credited_coins_total=credited_coins_total,
            total_coins_earned=balances["total_coins_earned"],
        )
        diff_count = compute_reconciliation_diff(
            completed_intents_count=completed,
            activated_subscriptions_count=activated,
            coin_intents_count=coin_intents,
            coin_debits_count=coin_debits,
            intent_coins_total=intent_coins_total,
            debited_coins_total=debited_coins_total,
            stale_authorized_count=stale_authorized,
        ) + (1 if identity_gap else 0)
        status = reconciliation_status(diff_count)
        if status != "OK":
            logger.warning("payments_reconciliation_diff", diff_count=diff_count)

        return ReconciliationReport(
            generated_at=now_utc,
            status=status,
            diff_count=diff_count,
            intents_by_status=intents_by_status,
            completed_intents=completed,
            activated_subscriptions=activated,
            coin_intents=coin_intents,
            coin_debits=coin_debits,
            intent_coins_total=intent_coins_total,
            debited_coins_total=debited_coins_total,
            stale_authorized=stale_authorized,
            credited_coins_total=credited_coins_total,
            total_coins_earned=balances["total_coins_earned"],
            balance_identity_gap=identity_gap,
        )
