from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from stepcoin.api.routes.auth_helpers import _assert_internal_access
from stepcoin.db.session import SessionLocal
from stepcoin.economy.payments.reconciliation import PaymentsReconciliationService

router = APIRouter(tags=["internal", "payments"])


class PaymentsReconciliationResponse(BaseModel):
    generated_at: datetime
    status: str
    diff_count: int = Field(ge=0)
    intents_by_status: dict[str, int]
    completed_intents: int = Field(ge=0)
    activated_subscriptions: int = Field(ge=0)
    coin_intents: int = Field(ge=0)
    coin_debits: int = Field(ge=0)
    intent_coins_total: int = Field(ge=0)
    debited_coins_total: int = Field(ge=0)
    stale_authorized: int = Field(ge=0)
    credited_coins_total: int = Field(ge=0)
    total_coins_earned: int = Field(ge=0)
    balance_identity_gap: int


@router.get("/internal/payments/reconciliation", response_model=PaymentsReconciliationResponse)
async def get_payments_reconciliation(request: Request) -> PaymentsReconciliationResponse:
    _assert_internal_access(request)
    now_utc = datetime.now(timezone.utc)

    async with SessionLocal.begin() as session:
        report = await PaymentsReconciliationService.build_report(session, now_utc=now_utc)

    return PaymentsReconciliationResponse(
        generated_at=report.generated_at,
        status=report.status,
        diff_count=report.diff_count,
        intents_by_status=report.intents_by_status,
        completed_intents=report.completed_intents,
        activated_subscriptions=report.activated_subscriptions,
        coin_intents=report.coin_intents,
        coin_debits=report.coin_debits,
        intent_coins_total=report.intent_coins_total,
        debited_coins_total=report.debited_coins_total,
        stale_authorized=report.stale_authorized,
        credited_coins_total=report.credited_coins_total,
        total_coins_earned=report.total_coins_earned,
        balance_identity_gap=report.balance_identity_gap,
    )
