from stepcoin.services.payments_reliability import (
    compute_balance_identity_gap,
    compute_reconciliation_diff,
    reconciliation_status,
)


def _diff(**overrides: int) -> int:
    values = {
        "completed_intents_count": 10,
        "activated_subscriptions_count": 10,
        "coin_intents_count": 4,
        "coin_debits_count": 4,
        "intent_coins_total": 400,
        "debited_coins_total": 400,
        "stale_authorized_count": 0,
    }
    values.update(overrides)
    return compute_reconciliation_diff(**values)


def test_consistent_counts_have_no_diff() -> None:
    assert _diff() == 0
    assert reconciliation_status(_diff()) == "OK"


def test_missing_subscription_and_debit_are_counted() -> None:
    assert _diff(activated_subscriptions_count=9, coin_debits_count=3, debited_coins_total=300) == 3


def test_stale_authorized_intents_are_counted_and_negative_clamped() -> None:
    assert _diff(stale_authorized_count=2) == 2
    assert _diff(stale_authorized_count=-1) == 0


def test_reconciliation_status_diff() -> None:
    assert reconciliation_status(1) == "DIFF"


def test_balance_identity_gap_is_absolute() -> None:
    assert compute_balance_identity_gap(credited_coins_total=100, total_coins_earned=100) == 0
    assert compute_balance_identity_gap(credited_coins_total=90, total_coins_earned=100) == 10
