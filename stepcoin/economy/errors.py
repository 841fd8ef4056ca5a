class CoinEconomyError(Exception):
    pass


class ValidationError(CoinEconomyError):
    pass


class NotFoundError(CoinEconomyError):
    pass


class InsufficientBalanceError(CoinEconomyError):
    pass


class RedeemBlockedError(InsufficientBalanceError):
    def __init__(self, block_reason: str | None = None) -> None:
        super().__init__(block_reason or "redeem blocked")
        self.block_reason = block_reason


class DailyRedemptionLimitError(InsufficientBalanceError):
    pass


class StateConflictError(CoinEconomyError):
    pass


class ActiveSubscriptionExistsError(StateConflictError):
    pass


class PaymentNotCapturedError(StateConflictError):
    pass


class SignatureError(CoinEconomyError):
    pass


class AmountMismatchError(CoinEconomyError):
    pass


class GatewayError(CoinEconomyError):
    pass


class ConfigurationError(CoinEconomyError):
    pass
