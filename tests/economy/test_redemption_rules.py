from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from stepcoin.economy.errors import StateConflictError, ValidationError
from stepcoin.economy.redemptions.rules import (
    ensure_transition_allowed,
    is_daily_limit_reached,
    is_transition_allowed,
    resolve_approved_amounts,
    start_of_day_utc,
    validate_create_request,
)


@pytest.mark.parametrize("to_status", ["approved", "rejected", "cancelled"])
def test_pending_can_move_to_any_terminal_status(to_status: str) -> None:
    assert is_transition_allowed("pending", to_status) is True
    ensure_transition_allowed("pending", to_status)


@pytest.mark.parametrize("from_status", ["approved", "rejected", "cancelled"])
def test_terminal_statuses_are_final(from_status: str) -> None:
    for to_status in ("pending", "approved", "rejected", "cancelled"):
        assert is_transition_allowed(from_status, to_status) is False
    with pytest.raises(StateConflictError):
        ensure_transition_allowed(from_status, "approved")


def test_unknown_target_status_is_a_validation_error() -> None:
    with pytest.raises(ValidationError):
        ensure_transition_allowed("pending", "paid")


def test_validate_create_request_rules() -> None:
    validate_create_request(coins_requested=1, amount_requested=Decimal("0"), request_type="cash")

    with pytest.raises(ValidationError):
        validate_create_request(coins_requested=0, amount_requested=Decimal("1"), request_type="cash")
    with pytest.raises(ValidationError):
        validate_create_request(coins_requested=5, amount_requested=Decimal("-1"), request_type="cash")
    with pytest.raises(ValidationError):
        validate_create_request(coins_requested=5, amount_requested=Decimal("1"), request_type="  ")


def test_resolve_approved_amounts_defaults_to_requested() -> None:
    assert resolve_approved_amounts(
        coins_requested=10,
        amount_requested=Decimal("15.00"),
        coins_approved=None,
        amount_approved=None,
    ) == (10, Decimal("15.00"))


def test_resolve_approved_amounts_allows_partial_approval() -> None:
    assert resolve_approved_amounts(
        coins_requested=10,
        amount_requested=Decimal("15.00"),
        coins_approved=4,
        amount_approved=Decimal("6.00"),
    ) == (4, Decimal("6.00"))


def test_resolve_approved_amounts_rejects_more_than_requested() -> None:
    with pytest.raises(ValidationError):
        resolve_approved_amounts(
            coins_requested=10,
            amount_requested=Decimal("15.00"),
            coins_approved=11,
            amount_approved=None,
        )


def test_daily_limit_zero_means_unlimited() -> None:
    assert is_daily_limit_reached(limit_per_day=0, open_requests_today=100) is False
    assert is_daily_limit_reached(limit_per_day=2, open_requests_today=1) is False
    assert is_daily_limit_reached(limit_per_day=2, open_requests_today=2) is True


def test_start_of_day_utc() -> None:
    now_utc = datetime(2026, 3, 10, 17, 45, tzinfo=timezone.utc)
    assert start_of_day_utc(now_utc) == datetime(2026, 3, 10, 0, 0, tzinfo=timezone.utc)
