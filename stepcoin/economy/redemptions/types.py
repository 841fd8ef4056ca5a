from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from stepcoin.economy.ledger.types import CoinBalance


@dataclass(slots=True)
class RedemptionResult:
    redemption_id: UUID
    user_id: int
    status: str
    coins_requested: int
    amount_requested: Decimal
    coins_approved: int | None
    amount_approved: Decimal | None
    currency: str
    request_type: str
    payment_method: str | None
    balance: CoinBalance
    processed_at: datetime | None = None


@dataclass(slots=True)
class RedemptionStatistics:
    total_requests: int
    pending_requests: int
    approved_requests: int
    rejected_requests: int
    cancelled_requests: int
    total_coins_redeemed: int
    total_coins_pending: int
