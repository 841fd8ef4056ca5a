from __future__ import annotations

from sqlalchemy import DDL, Table, event

from stepcoin.db.models.coin_redemption_history import CoinRedemptionHistory
from stepcoin.db.models.ledger_entries import CoinLedgerEntry

APPEND_ONLY_FUNCTION_SQL = """
CREATE OR REPLACE FUNCTION prevent_append_only_mutation() RETURNS trigger AS $$
BEGIN
    RAISE EXCEPTION '% is append-only', TG_TABLE_NAME;
END;
$$ LANGUAGE plpgsql
"""


def append_only_trigger_sql(table_name: str) -> str:
    return (
        f"CREATE TRIGGER trg_{table_name}_append_only "
        f"BEFORE UPDATE OR DELETE ON {table_name} "
        "FOR EACH ROW EXECUTE FUNCTION prevent_append_only_mutation()"
    )


def _attach(table: Table) -> None:
    event.listen(table, "after_create", DDL(APPEND_ONLY_FUNCTION_SQL).execute_if(dialect="postgresql"))
    event.listen(
        table,
        "after_create",
        DDL(append_only_trigger_sql(table.name)).execute_if(dialect="postgresql"),
    )


APPEND_ONLY_TABLES = (CoinLedgerEntry.__table__, CoinRedemptionHistory.__table__)

for _table in APPEND_ONLY_TABLES:
    _attach(_table)
