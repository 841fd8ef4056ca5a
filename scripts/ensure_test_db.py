from __future__ import annotations

import argparse
import asyncio
import re

import asyncpg
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine

import stepcoin.db.models  # noqa: F401
from stepcoin.core.config import get_settings
from stepcoin.core.integration_db_safety import assess_integration_db_safety
from stepcoin.db.models.base import Base

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


async def _ensure_database_exists(database_url: str) -> str:
    safety = assess_integration_db_safety(database_url)
    if not safety.is_safe:
        raise RuntimeError(f"Refusing to prepare '{safety.database_name}': {safety.reason}")
    if IDENTIFIER_RE.fullmatch(safety.database_name) is None:
        raise RuntimeError(f"Unsupported database name '{safety.database_name}'.")

    parsed = make_url(database_url)
    if parsed.username is None:
        raise RuntimeError("DATABASE_URL username is required.")

    conn = await asyncpg.connect(
        host=parsed.host or "localhost",
        port=int(parsed.port or 5432),
        user=parsed.username,
        password=parsed.password,
        database="postgres",
    )
    try:
        exists = await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", safety.database_name)
        if exists:
            return "exists"
        await conn.execute(f'CREATE DATABASE "{safety.database_name}"')
        return "created"
    finally:
        await conn.close()


async def _create_schema(database_url: str) -> None:
    engine = create_async_engine(database_url)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the local step-coin test database.")
    parser.add_argument("--with-schema", action="store_true", help="also create all tables")
    args = parser.parse_args()

    database_url = get_settings().database_url
    outcome = asyncio.run(_ensure_database_exists(database_url))
    print(f"ensure_test_db: {outcome} db={make_url(database_url).database}")  # noqa: T201
    if args.with_schema:
        asyncio.run(_create_schema(database_url))
        print("ensure_test_db: schema ready")  # noqa: T201
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
