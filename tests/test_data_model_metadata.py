from __future__ import annotations

from sqlalchemy import CheckConstraint, UniqueConstraint

import stepcoin.db.models  # noqa: F401
from stepcoin.db.models.base import Base


def _check_names(table_name: str) -> set[str]:
    table = Base.metadata.tables[table_name]
    return {constraint.name for constraint in table.constraints if isinstance(constraint, CheckConstraint)}


def _index_names(table_name: str) -> set[str]:
    return {index.name for index in Base.metadata.tables[table_name].indexes}


def test_all_coin_tables_registered() -> None:
    expected_tables = {
        "users",
        "user_coin_accounts",
        "steps_config",
        "steps_history",
        "coin_redemptions",
        "coin_redemption_history",
        "coin_ledger_entries",
        "subscription_plans",
        "user_subscriptions",
        "payment_intents",
    }
    assert expected_tables == set(Base.metadata.tables)


def test_balance_identity_and_non_negative_checks_present() -> None:
    names = _check_names("user_coin_accounts")
    assert "ck_user_coin_accounts_balance_identity" in names
    assert "ck_user_coin_accounts_available_non_negative" in names
    assert "ck_user_coin_accounts_redeemed_non_negative" in names
    assert "ck_user_coin_accounts_pending_non_negative" in names


def test_single_active_indexes_are_partial_and_unique() -> None:
    subscriptions = Base.metadata.tables["user_subscriptions"]
    active_index = next(
        index for index in subscriptions.indexes if index.name == "uq_user_subscriptions_active_per_user"
    )
    assert active_index.unique is True
    assert "status = 'active'" in str(active_index.dialect_options["postgresql"]["where"])

    config_index = next(
        index
        for index in Base.metadata.tables["steps_config"].indexes
        if index.name == "uq_steps_config_single_active"
    )
    assert config_index.unique is True


def test_steps_history_is_unique_per_user_day() -> None:
    steps_history = Base.metadata.tables["steps_history"]
    unique_names = {
        constraint.name for constraint in steps_history.constraints if isinstance(constraint, UniqueConstraint)
    }
    assert "uq_steps_history_user_day" in unique_names


def test_ledger_idempotency_key_and_subscription_intent_are_unique() -> None:
    assert Base.metadata.tables["coin_ledger_entries"].c.idempotency_key.unique is True
    assert Base.metadata.tables["user_subscriptions"].c.payment_intent_id.unique is True
    assert Base.metadata.tables["payment_intents"].c.gateway_order_id.unique is True


def test_redemption_and_intent_status_checks_present() -> None:
    assert "ck_coin_redemptions_status" in _check_names("coin_redemptions")
    assert "ck_coin_redemptions_coins_approved_range" in _check_names("coin_redemptions")
    assert "ck_payment_intents_status" in _check_names("payment_intents")
    assert "ck_coin_ledger_entries_amount_positive" in _check_names("coin_ledger_entries")
    assert "idx_coin_redemptions_user_created" in _index_names("coin_redemptions")
