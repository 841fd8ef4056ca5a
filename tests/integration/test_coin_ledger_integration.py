from __future__ import annotations

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError

from stepcoin.db.repo.coin_accounts_repo import CoinAccountsRepo
from stepcoin.db.session import SessionLocal
from stepcoin.economy.errors import InsufficientBalanceError
from stepcoin.economy.ledger.service import CoinLedgerService
from stepcoin.economy.redemptions.service import RedemptionWorkflow
from tests.integration.coin_fixtures import (
    UTC,
    _assert_identity,
    _balance,
    _count_ledger_entries,
    _create_user,
    _seed_coins,
)


@pytest.mark.asyncio
async def test_concurrent_redemptions_never_overdraw_balance() -> None:
    now_utc = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
    user_id = await _create_user()
    await _seed_coins(user_id=user_id, amount=10, now_utc=now_utc)

    barrier = asyncio.Event()

    async def _redeem() -> str:
        await barrier.wait()
        async with SessionLocal.begin() as session:
            try:
                await RedemptionWorkflow.create(
                    session,
                    user_id=user_id,
                    coins_requested=8,
                    amount_requested=Decimal("12.00"),
                    request_type="cash",
                    now_utc=now_utc,
                )
            except InsufficientBalanceError:
                return "insufficient"
        return "created"

    tasks = [asyncio.create_task(_redeem()) for _ in range(5)]
    barrier.set()
    outcomes = await asyncio.gather(*tasks)

    assert outcomes.count("created") == 1
    assert outcomes.count("insufficient") == 4

    balance = await _balance(user_id, now_utc)
    assert balance.available_coins == 2
    assert balance.pending_redeem == 8
    _assert_identity(balance)
    assert await _count_ledger_entries(user_id, "REDEMPTION_RESERVE") == 1


@pytest.mark.asyncio
async def test_concurrent_debits_respect_available_coins() -> None:
    now_utc = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
    user_id = await _create_user()
    await _seed_coins(user_id=user_id, amount=9, now_utc=now_utc)

    barrier = asyncio.Event()

    async def _debit(index: int) -> str:
        await barrier.wait()
        async with SessionLocal.begin() as session:
            try:
                await CoinLedgerService.debit(
                    session,
                    user_id=user_id,
                    amount=4,
                    idempotency_key=f"debit:test:{user_id}:{index}",
                    now_utc=now_utc,
                )
            except InsufficientBalanceError:
                return "insufficient"
        return "debited"

    tasks = [asyncio.create_task(_debit(index)) for index in range(4)]
    barrier.set()
    outcomes = await asyncio.gather(*tasks)

    assert outcomes.count("debited") == 2
    balance = await _balance(user_id, now_utc)
    assert balance.available_coins == 1
    assert balance.redeemed_coins == 8
    _assert_identity(balance)


@pytest.mark.asyncio
async def test_duplicate_idempotency_key_rolls_back_second_credit() -> None:
    now_utc = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
    user_id = await _create_user()

    async with SessionLocal.begin() as session:
        await CoinAccountsRepo.ensure_exists(session, user_id=user_id, now_utc=now_utc)
        await CoinLedgerService.credit(
            session,
            user_id=user_id,
            amount=2,
            idempotency_key="credit:fixed-key",
            now_utc=now_utc,
        )

    with pytest.raises(IntegrityError):
        async with SessionLocal.begin() as session:
            await CoinLedgerService.credit(
                session,
                user_id=user_id,
                amount=2,
                idempotency_key="credit:fixed-key",
                now_utc=now_utc,
            )

    balance = await _balance(user_id, now_utc)
    assert balance.total_coins_earned == 2
    assert balance.available_coins == 2


@pytest.mark.asyncio
async def test_ledger_entries_are_append_only() -> None:
    now_utc = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
    user_id = await _create_user()
    await _seed_coins(user_id=user_id, amount=3, now_utc=now_utc)

    with pytest.raises(DBAPIError):
        async with SessionLocal.begin() as session:
            await session.execute(
                text("UPDATE coin_ledger_entries SET amount = amount + 1 WHERE user_id = :user_id"),
                {"user_id": user_id},
            )

    with pytest.raises(DBAPIError):
        async with SessionLocal.begin() as session:
            await session.execute(
                text("DELETE FROM coin_ledger_entries WHERE user_id = :user_id"),
                {"user_id": user_id},
            )

    assert await _count_ledger_entries(user_id, "STEP_CREDIT") == 1


@pytest.mark.asyncio
async def test_redemption_history_is_append_only() -> None:
    now_utc = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
    user_id = await _create_user()
    await _seed_coins(user_id=user_id, amount=5, now_utc=now_utc)
    async with SessionLocal.begin() as session:
        await RedemptionWorkflow.create(
            session,
            user_id=user_id,
            coins_requested=5,
            amount_requested=Decimal("7.50"),
            request_type="cash",
            now_utc=now_utc,
        )

    with pytest.raises(DBAPIError):
        async with SessionLocal.begin() as session:
            await session.execute(text("UPDATE coin_redemption_history SET notes = 'edited'"))

    with pytest.raises(DBAPIError):
        async with SessionLocal.begin() as session:
            await session.execute(text("DELETE FROM coin_redemption_history"))
