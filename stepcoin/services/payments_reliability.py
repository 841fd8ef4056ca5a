from __future__ import annotations


def compute_reconciliation_diff(
    *,
    completed_intents_count: int,
    activated_subscriptions_count: int,
    coin_intents_count: int,
    coin_debits_count: int,
    intent_coins_total: int,
    debited_coins_total: int,
    stale_authorized_count: int,
) -> int:
    return (
        abs(completed_intents_count - activated_subscriptions_count)
        + abs(coin_intents_count - coin_debits_count)
        + (1 if intent_coins_total != debited_coins_total else 0)
        + max(0, stale_authorized_count)
    )


def compute_balance_identity_gap(
    *,
    credited_coins_total: int,
    total_coins_earned: int,
) -> int:
    return abs(credited_coins_total - total_coins_earned)


def reconciliation_status(diff_count: int) -> str:
    return "OK" if diff_count == 0 else "DIFF"
