from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from stepcoin.db.models.coin_redemption_history import CoinRedemptionHistory
from stepcoin.db.models.coin_redemptions import CoinRedemption
from stepcoin.economy.ledger.types import CoinBalance
from stepcoin.economy.redemptions.types import RedemptionResult


class CoinBalanceResponse(BaseModel):
    total_coins_earned: int
    available_coins: int
    redeemed_coins: int
    pending_redeem: int
    is_redeem_blocked: bool
    block_reason: str | None
    last_redeem_at: datetime | None


class RedemptionCreateRequest(BaseModel):
    coins_requested: int = Field(ge=1)
    amount_requested: Decimal = Field(ge=0)
    request_type: str = Field(min_length=1, max_length=32)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    payment_method: str | None = Field(default=None, max_length=32)
    payment_details: dict[str, Any] | None = None


class RedemptionDetailsUpdateRequest(BaseModel):
    payment_method: str | None = Field(default=None, max_length=32)
    payment_details: dict[str, Any] | None = None


class RedemptionAdminUpdateRequest(BaseModel):
    status: Literal["approved", "rejected", "cancelled"]
    coins_approved: int | None = Field(default=None, ge=1)
    amount_approved: Decimal | None = Field(default=None, ge=0)
    admin_notes: str | None = Field(default=None, max_length=1000)


class RedemptionResponse(BaseModel):
    id: UUID
    user_id: int
    status: str
    coins_requested: int
    amount_requested: Decimal
    coins_approved: int | None
    amount_approved: Decimal | None
    currency: str
    request_type: str
    payment_method: str | None
    processed_at: datetime | None
    balance: CoinBalanceResponse


class RedemptionItem(BaseModel):
    id: UUID
    status: str
    coins_requested: int
    amount_requested: Decimal
    coins_approved: int | None
    amount_approved: Decimal | None
    currency: str
    request_type: str
    payment_method: str | None
    payment_details: dict[str, Any] | None
    admin_notes: str | None
    processed_at: datetime | None
    created_at: datetime


class RedemptionStatisticsResponse(BaseModel):
    total_requests: int
    pending_requests: int
    approved_requests: int
    rejected_requests: int
    cancelled_requests: int
    total_coins_redeemed: int
    total_coins_pending: int


class RedemptionListResponse(BaseModel):
    items: list[RedemptionItem]
    statistics: RedemptionStatisticsResponse


class RedemptionHistoryItem(BaseModel):
    action: str
    previous_status: str | None
    new_status: str
    coins_amount: int
    amount_value: Decimal
    currency: str
    notes: str | None
    performed_by: str
    created_at: datetime


class RedemptionHistoryResponse(BaseModel):
    redemption_id: UUID
    items: list[RedemptionHistoryItem]


def balance_response(balance: CoinBalance) -> CoinBalanceResponse:
    return CoinBalanceResponse(
        total_coins_earned=balance.total_coins_earned,
        available_coins=balance.available_coins,
        redeemed_coins=balance.redeemed_coins,
        pending_redeem=balance.pending_redeem,
        is_redeem_blocked=balance.is_redeem_blocked,
        block_reason=balance.block_reason,
        last_redeem_at=balance.last_redeem_at,
    )


def redemption_response(result: RedemptionResult) -> RedemptionResponse:
    return RedemptionResponse(
        id=result.redemption_id,
        user_id=result.user_id,
        status=result.status,
        coins_requested=result.coins_requested,
        amount_requested=result.amount_requested,
        coins_approved=result.coins_approved,
        amount_approved=result.amount_approved,
        currency=result.currency,
        request_type=result.request_type,
        payment_method=result.payment_method,
        processed_at=result.processed_at,
        balance=balance_response(result.balance),
    )


def redemption_item(redemption: CoinRedemption) -> RedemptionItem:
    return RedemptionItem(
        id=redemption.id,
        status=redemption.status,
        coins_requested=redemption.coins_requested,
        amount_requested=redemption.amount_requested,
        coins_approved=redemption.coins_approved,
        amount_approved=redemption.amount_approved,
        currency=redemption.currency,
        request_type=redemption.request_type,
        payment_method=redemption.payment_method,
        payment_details=redemption.payment_details,
        admin_notes=redemption.admin_notes,
        processed_at=redemption.processed_at,
        created_at=redemption.created_at,
    )


def history_response(redemption_id: UUID, entries: list[CoinRedemptionHistory]) -> RedemptionHistoryResponse:
    return RedemptionHistoryResponse(
        redemption_id=redemption_id,
        items=[
            RedemptionHistoryItem(
                action=entry.action,
                previous_status=entry.previous_status,
                new_status=entry.new_status,
                coins_amount=entry.coins_amount,
                amount_value=entry.amount_value,
                currency=entry.currency,
                notes=entry.notes,
                performed_by=entry.performed_by,
                created_at=entry.created_at,
            )
            for entry in entries
        ],
    )
