from __future__ import annotations

from fastapi import HTTPException

from stepcoin.economy.errors import (
    ActiveSubscriptionExistsError,
    AmountMismatchError,
    CoinEconomyError,
    ConfigurationError,
    DailyRedemptionLimitError,
    GatewayError,
    InsufficientBalanceError,
    NotFoundError,
    PaymentNotCapturedError,
    RedeemBlockedError,
    SignatureError,
    StateConflictError,
    ValidationError,
)


def as_http_error(exc: CoinEconomyError, *, signature_status_code: int = 400) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail={"code": "E_VALIDATION", "message": str(exc)})
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail={"code": "E_NOT_FOUND"})
    if isinstance(exc, RedeemBlockedError):
        return HTTPException(
            status_code=403,
            detail={"code": "E_REDEEM_BLOCKED", "block_reason": exc.block_reason},
        )
    if isinstance(exc, DailyRedemptionLimitError):
        return HTTPException(status_code=429, detail={"code": "E_DAILY_REDEMPTION_LIMIT"})
    if isinstance(exc, InsufficientBalanceError):
        return HTTPException(status_code=409, detail={"code": "E_INSUFFICIENT_COINS"})
    if isinstance(exc, ActiveSubscriptionExistsError):
        return HTTPException(status_code=409, detail={"code": "E_ACTIVE_SUBSCRIPTION_EXISTS"})
    if isinstance(exc, PaymentNotCapturedError):
        return HTTPException(status_code=409, detail={"code": "E_PAYMENT_NOT_CAPTURED"})
    if isinstance(exc, StateConflictError):
        return HTTPException(status_code=409, detail={"code": "E_STATE_CONFLICT"})
    if isinstance(exc, SignatureError):
        return HTTPException(status_code=signature_status_code, detail={"code": "E_INVALID_SIGNATURE"})
    if isinstance(exc, AmountMismatchError):
        return HTTPException(status_code=409, detail={"code": "E_AMOUNT_MISMATCH"})
    if isinstance(exc, GatewayError):
        return HTTPException(status_code=502, detail={"code": "E_GATEWAY_UNAVAILABLE"})
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=503, detail={"code": "E_NOT_CONFIGURED"})
    return HTTPException(status_code=500, detail={"code": "E_INTERNAL"})
