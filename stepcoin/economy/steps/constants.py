from __future__ import annotations

from decimal import Decimal

DEFAULT_THRESHOLD_STEPS = 10_000
DEFAULT_COINS_PER_THRESHOLD = 2
DEFAULT_MAX_COINS_PER_DAY = 6
DEFAULT_COIN_VALUE_IN_RUPEES = Decimal("1.50")
DEFAULT_COIN_VALUE_IN_USD = Decimal("1.50")
DEFAULT_RESET_POLICY = "continuous"

RESET_POLICIES = frozenset({"daily", "continuous"})

MIN_THRESHOLD_STEPS = 1_000
MAX_THRESHOLD_STEPS = 50_000
MIN_COINS_PER_THRESHOLD = 1
MAX_COINS_PER_THRESHOLD = 20
MIN_COIN_VALUE = Decimal("0.1")
MAX_COIN_VALUE = Decimal("100")
MIN_MAX_COINS_PER_DAY = 1
MAX_MAX_COINS_PER_DAY = 20

HISTORY_DEFAULT_DAYS = 7
HISTORY_MAX_DAYS = 365
