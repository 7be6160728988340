"""Project-wide constants for the order tracker."""

from __future__ import annotations

# Order statuses and sides as reported by the exchange
BUY_SIDE = "buy"
SELL_SIDE = "sell"
REJECTED_STATUS = "rejected"

# Assigned by the tracker itself when a missing order 404s; never sent by the exchange.
IS_CANCELLED_STATUS = "isCancelled"

# Engine behavior
DEFAULT_POLLING_INTERVAL_MS = 10_000
DEFAULT_RISE_MULTIPLIER = 1.01
DEFAULT_DROP_MULTIPLIER = 0.98
DEFAULT_MAX_INDIVIDUAL_FETCHES = 10

# Precision fallback for markets missing from the rules table
DEFAULT_PRICE_DECIMALS = 2
DEFAULT_SIZE_DECIMALS = 2

# Exchange endpoints
DEFAULT_API_URL = "https://api.exchange.coinbase.com"
DEFAULT_SANDBOX_URL = "https://api-public.sandbox.exchange.coinbase.com"
DEFAULT_TIMEOUT_SECONDS = 10.0
