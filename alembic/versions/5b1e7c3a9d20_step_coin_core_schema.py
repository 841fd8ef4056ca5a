"""step_coin_core_schema

Revision ID: 5b1e7c3a9d20
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5b1e7c3a9d20"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

APPEND_ONLY_TABLES = ("coin_ledger_entries", "coin_redemption_history")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status IN ('ACTIVE','BLOCKED','DELETED')", name="ck_users_status"),
        sa.UniqueConstraint("phone_number", name="uq_users_phone_number"),
    )
    op.create_index("idx_users_created_at", "users", ["created_at"])

    op.create_table(
        "user_coin_accounts",
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("total_coins_earned", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("available_coins", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("redeemed_coins", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("pending_redeem", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_steps_since_threshold", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_steps", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("coins_earned_today", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_threshold", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_reset_date", sa.Date(), nullable=False),
        sa.Column("is_redeem_blocked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("block_reason", sa.Text(), nullable=True),
        sa.Column("redeemed_limit_per_day", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_redeem_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("available_coins >= 0", name="ck_user_coin_accounts_available_non_negative"),
        sa.CheckConstraint("redeemed_coins >= 0", name="ck_user_coin_accounts_redeemed_non_negative"),
        sa.CheckConstraint("pending_redeem >= 0", name="ck_user_coin_accounts_pending_non_negative"),
        sa.CheckConstraint(
            "available_coins + redeemed_coins + pending_redeem = total_coins_earned",
            name="ck_user_coin_accounts_balance_identity",
        ),
        sa.CheckConstraint(
            "current_steps_since_threshold >= 0",
            name="ck_user_coin_accounts_remainder_non_negative",
        ),
        sa.CheckConstraint("coins_earned_today >= 0", name="ck_user_coin_accounts_daily_non_negative"),
        sa.CheckConstraint(
            "redeemed_limit_per_day >= 0",
            name="ck_user_coin_accounts_redeem_limit_non_negative",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "steps_config",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("threshold_steps", sa.Integer(), nullable=False),
        sa.Column("coins_per_threshold", sa.Integer(), nullable=False),
        sa.Column("coin_value_in_rupees", sa.Numeric(10, 2), nullable=False),
        sa.Column("coin_value_in_usd", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_coins_per_day", sa.Integer(), nullable=False),
        sa.Column("reset_policy", sa.String(16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("threshold_steps > 0", name="ck_steps_config_threshold_positive"),
        sa.CheckConstraint("coins_per_threshold > 0", name="ck_steps_config_coins_positive"),
        sa.CheckConstraint("max_coins_per_day > 0", name="ck_steps_config_daily_cap_positive"),
        sa.CheckConstraint("reset_policy IN ('daily','continuous')", name="ck_steps_config_reset_policy"),
    )
    op.create_index(
        "uq_steps_config_single_active",
        "steps_config",
        ["is_active"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )
    op.create_index("idx_steps_config_created", "steps_config", ["created_at"])

    op.create_table(
        "steps_history",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("steps", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("coins_earned", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("steps >= 0", name="ck_steps_history_steps_non_negative"),
        sa.CheckConstraint("coins_earned >= 0", name="ck_steps_history_coins_non_negative"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint("user_id", "day", name="uq_steps_history_user_day"),
    )

    op.create_table(
        "coin_redemptions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("coins_requested", sa.Integer(), nullable=False),
        sa.Column("amount_requested", sa.Numeric(12, 2), nullable=False),
        sa.Column("coins_approved", sa.Integer(), nullable=True),
        sa.Column("amount_approved", sa.Numeric(12, 2), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("request_type", sa.String(32), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=True),
        sa.Column("payment_details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("processed_by", sa.String(64), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("coins_requested >= 1", name="ck_coin_redemptions_coins_requested_positive"),
        sa.CheckConstraint("amount_requested >= 0", name="ck_coin_redemptions_amount_non_negative"),
        sa.CheckConstraint(
            "coins_approved IS NULL OR (coins_approved >= 1 AND coins_approved <= coins_requested)",
            name="ck_coin_redemptions_coins_approved_range",
        ),
        sa.CheckConstraint(
            "status IN ('pending','approved','rejected','cancelled')",
            name="ck_coin_redemptions_status",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )
    op.create_index("idx_coin_redemptions_user_created", "coin_redemptions", ["user_id", "created_at"])
    op.create_index("idx_coin_redemptions_status_created", "coin_redemptions", ["status", "created_at"])

    op.create_table(
        "coin_redemption_history",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("redemption_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("previous_status", sa.String(16), nullable=True),
        sa.Column("new_status", sa.String(16), nullable=False),
        sa.Column("coins_amount", sa.Integer(), nullable=False),
        sa.Column("amount_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "action IN ('created','updated','approved','rejected','cancelled')",
            name="ck_coin_redemption_history_action",
        ),
        sa.ForeignKeyConstraint(["redemption_id"], ["coin_redemptions.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )
    op.create_index(
        "idx_coin_redemption_history_redemption",
        "coin_redemption_history",
        ["redemption_id", "created_at"],
    )
    op.create_index("idx_coin_redemption_history_user", "coin_redemption_history", ["user_id", "created_at"])

    op.create_table(
        "subscription_plans",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'INR'")),
        sa.Column("duration_days", sa.Integer(), nullable=False),
        sa.Column(
            "features",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("coin_value_ratio", sa.Numeric(10, 4), nullable=False, server_default=sa.text("0")),
        sa.Column("max_coin_redemption_percent", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("coins_required", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("price >= 0", name="ck_subscription_plans_price_non_negative"),
        sa.CheckConstraint("duration_days > 0", name="ck_subscription_plans_duration_positive"),
        sa.CheckConstraint("coin_value_ratio >= 0", name="ck_subscription_plans_ratio_non_negative"),
        sa.CheckConstraint(
            "max_coin_redemption_percent >= 0 AND max_coin_redemption_percent <= 100",
            name="ck_subscription_plans_redemption_percent_range",
        ),
        sa.CheckConstraint("coins_required >= 0", name="ck_subscription_plans_coins_required_non_negative"),
    )

    op.create_table(
        "payment_intents",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("plan_id", sa.BigInteger(), nullable=False),
        sa.Column("gateway_order_id", sa.String(64), nullable=True),
        sa.Column("gateway_payment_id", sa.String(64), nullable=True),
        sa.Column("receipt", sa.String(64), nullable=False),
        sa.Column("original_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("coins_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("coin_discount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','authorized','completed','failed')",
            name="ck_payment_intents_status",
        ),
        sa.CheckConstraint("amount >= 0", name="ck_payment_intents_amount_non_negative"),
        sa.CheckConstraint("coins_used >= 0", name="ck_payment_intents_coins_used_non_negative"),
        sa.CheckConstraint("coin_discount >= 0", name="ck_payment_intents_discount_non_negative"),
        sa.CheckConstraint(
            "status <> 'completed' OR completed_at IS NOT NULL",
            name="ck_payment_intents_completed_at",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["plan_id"], ["subscription_plans.id"]),
        sa.UniqueConstraint("gateway_order_id", name="uq_payment_intents_gateway_order_id"),
        sa.UniqueConstraint("gateway_payment_id", name="uq_payment_intents_gateway_payment_id"),
    )
    op.create_index("idx_payment_intents_user_created", "payment_intents", ["user_id", "created_at"])
    op.create_index("idx_payment_intents_status", "payment_intents", ["status"])

    op.create_table(
        "user_subscriptions",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("plan_id", sa.BigInteger(), nullable=False),
        sa.Column("payment_intent_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("payment_status", sa.String(16), nullable=False),
        sa.Column("payment_method", sa.String(16), nullable=False),
        sa.Column("gateway_payment_id", sa.String(64), nullable=True),
        sa.Column("auto_renew", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("coins_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("coin_discount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("final_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('active','cancelled')", name="ck_user_subscriptions_status"),
        sa.CheckConstraint("coins_used >= 0", name="ck_user_subscriptions_coins_used_non_negative"),
        sa.CheckConstraint("final_price >= 0", name="ck_user_subscriptions_final_price_non_negative"),
        sa.CheckConstraint("end_date > start_date", name="ck_user_subscriptions_period"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["plan_id"], ["subscription_plans.id"]),
        sa.ForeignKeyConstraint(["payment_intent_id"], ["payment_intents.id"]),
        sa.UniqueConstraint("payment_intent_id", name="uq_user_subscriptions_payment_intent_id"),
    )
    op.create_index(
        "uq_user_subscriptions_active_per_user",
        "user_subscriptions",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )
    op.create_index("idx_user_subscriptions_user_created", "user_subscriptions", ["user_id", "created_at"])

    op.create_table(
        "coin_ledger_entries",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("entry_type", sa.String(32), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("available_after", sa.Integer(), nullable=False),
        sa.Column("pending_after", sa.Integer(), nullable=False),
        sa.Column("redemption_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("payment_intent_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("idempotency_key", sa.String(96), nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_coin_ledger_entries_amount_positive"),
        sa.CheckConstraint(
            "entry_type IN ('STEP_CREDIT','REDEMPTION_RESERVE','REDEMPTION_SETTLE',"
            "'REDEMPTION_RELEASE','SUBSCRIPTION_DEBIT')",
            name="ck_coin_ledger_entries_entry_type",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["redemption_id"], ["coin_redemptions.id"]),
        sa.ForeignKeyConstraint(["payment_intent_id"], ["payment_intents.id"]),
        sa.UniqueConstraint("idempotency_key", name="uq_coin_ledger_entries_idempotency_key"),
    )
    op.create_index("idx_coin_ledger_user_created", "coin_ledger_entries", ["user_id", "created_at"])
    op.create_index("idx_coin_ledger_type", "coin_ledger_entries", ["entry_type"])
    op.create_index("idx_coin_ledger_payment_intent", "coin_ledger_entries", ["payment_intent_id"])

    op.execute(
        """
        CREATE OR REPLACE FUNCTION prevent_append_only_mutation()
        RETURNS trigger
        LANGUAGE plpgsql
        AS $$
        BEGIN
            RAISE EXCEPTION '% is append-only', TG_TABLE_NAME;
        END;
        $$;
        """
    )
    for table_name in APPEND_ONLY_TABLES:
        op.execute(
            f"""
            CREATE TRIGGER trg_{table_name}_append_only
            BEFORE UPDATE OR DELETE ON {table_name}
            FOR EACH ROW
            EXECUTE FUNCTION prevent_append_only_mutation();
            """
        )


def downgrade() -> None:
    for table_name in APPEND_ONLY_TABLES:
        op.execute(f"DROP TRIGGER IF EXISTS trg_{table_name}_append_only ON {table_name};")
    op.execute("DROP FUNCTION IF EXISTS prevent_append_only_mutation();")

    op.drop_index("idx_coin_ledger_payment_intent", table_name="coin_ledger_entries")
    op.drop_index("idx_coin_ledger_type", table_name="coin_ledger_entries")
    op.drop_index("idx_coin_ledger_user_created", table_name="coin_ledger_entries")
    op.drop_table("coin_ledger_entries")

    op.drop_index("idx_user_subscriptions_user_created", table_name="user_subscriptions")
    op.drop_index("uq_user_subscriptions_active_per_user", table_name="user_subscriptions")
    op.drop_table("user_subscriptions")

    op.drop_index("idx_payment_intents_status", table_name="payment_intents")
    op.drop_index("idx_payment_intents_user_created", table_name="payment_intents")
    op.drop_table("payment_intents")

    op.drop_table("subscription_plans")

    op.drop_index("idx_coin_redemption_history_user", table_name="coin_redemption_history")
    op.drop_index("idx_coin_redemption_history_redemption", table_name="coin_redemption_history")
    op.drop_table("coin_redemption_history")

    op.drop_index("idx_coin_redemptions_status_created", table_name="coin_redemptions")
    op.drop_index("idx_coin_redemptions_user_created", table_name="coin_redemptions")
    op.drop_table("coin_redemptions")

    op.drop_table("steps_history")

    op.drop_index("idx_steps_config_created", table_name="steps_config")
    op.drop_index("uq_steps_config_single_active", table_name="steps_config")
    op.drop_table("steps_config")

    op.drop_table("user_coin_accounts")

    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_table("users")
