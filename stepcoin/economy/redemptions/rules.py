from __future__ import annotations

from datetime import datetime, time, timezone
from decimal import Decimal

from stepcoin.economy.errors import StateConflictError, ValidationError

REDEMPTION_STATUSES = frozenset({"pending", "approved", "rejected", "cancelled"})
TERMINAL_STATUSES = frozenset({"approved", "rejected", "cancelled"})
ALLOWED_TRANSITIONS = {
    "pending": frozenset({"approved", "rejected", "cancelled"}),
}
HISTORY_ACTION_BY_STATUS = {
    "approved": "approved",
    "rejected": "rejected",
    "cancelled": "cancelled",
}
OPEN_STATUSES_FOR_DAILY_LIMIT = ("pending", "approved")


def is_transition_allowed(from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def ensure_transition_allowed(from_status: str, to_status: str) -> None:
    if to_status not in REDEMPTION_STATUSES:
        raise ValidationError(f"unknown redemption status {to_status!r}")
    if not is_transition_allowed(from_status, to_status):
        raise StateConflictError(f"redemption cannot move from {from_status} to {to_status}")


def validate_create_request(*, coins_requested: int, amount_requested: Decimal, request_type: str) -> None:
    if coins_requested < 1:
        raise ValidationError("coins_requested must be at least 1")
    if amount_requested < 0:
        raise ValidationError("amount_requested must be non-negative")
    if not request_type or not request_type.strip():
        raise ValidationError("request_type is required")


def resolve_approved_amounts(
    *,
    coins_requested: int,
    amount_requested: Decimal,
    coins_approved: int | None,
    amount_approved: Decimal | None,
) -> tuple[int, Decimal]:
    resolved_coins = coins_requested if coins_approved is None else coins_approved
    resolved_amount = amount_requested if amount_approved is None else amount_approved
    if not 1 <= resolved_coins <= coins_requested:
        raise ValidationError("coins_approved must be between 1 and coins_requested")
    if resolved_amount < 0:
        raise ValidationError("amount_approved must be non-negative")
    return resolved_coins, resolved_amount


def start_of_day_utc(now_utc: datetime) -> datetime:
    return datetime.combine(now_utc.date(), time.min, tzinfo=timezone.utc)


def is_daily_limit_reached(*, limit_per_day: int, open_requests_today: int) -> bool:
    if limit_per_day <= 0:
        return False
    return open_requests_today >= limit_per_day
