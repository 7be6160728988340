"""Single-order predicates, decimal rounding and flip order validation."""

from __future__ import annotations

from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any

from order_tracker.config.constants import BUY_SIDE, IS_CANCELLED_STATUS, SELL_SIDE
from order_tracker.config.markets import bounds_for, price_decimals_for, size_decimals_for
from order_tracker.execution.order import OrderParams


def is_cancelled(order: Any) -> bool:
    return getattr(order, "status", None) == IS_CANCELLED_STATUS


def is_settled(order: Any) -> bool:
    return getattr(order, "settled", False) is True


def is_part_filled(order: Any) -> bool:
    try:
        return float(getattr(order, "filled_size", 0) or 0) > 0
    except (TypeError, ValueError):
        return False


def is_buy(order: Any) -> bool:
    return getattr(order, "side", None) == BUY_SIDE


def is_sell(order: Any) -> bool:
    return getattr(order, "side", None) == SELL_SIDE


def _round_to(value: float, decimals: int, rounding: str) -> float:
    # Going through str() keeps 97.99999999999999 from flooring to 97.99.
    try:
        quantum = Decimal(1).scaleb(-decimals)
        return float(Decimal(str(value)).quantize(quantum, rounding=rounding))
    except InvalidOperation:
        return value


def ceil_to(value: float, decimals: int) -> float:
    """Round up to a multiple of 10**-decimals."""
    return _round_to(value, decimals, ROUND_CEILING)


def floor_to(value: float, decimals: int) -> float:
    """Round down to a multiple of 10**-decimals."""
    return _round_to(value, decimals, ROUND_FLOOR)


def is_valid_order(params: OrderParams) -> bool:
    """Check size bounds and that price/size already sit on the market's precision grid."""
    market = params.product_id
    bounds = bounds_for(market)
    if params.size <= 0 or params.price <= 0:
        return False
    size_in_range = (bounds.min_size is None or params.size >= bounds.min_size) and (
        bounds.max_size is None or params.size <= bounds.max_size
    )
    size_is_valid = size_in_range and params.size == floor_to(params.size, size_decimals_for(market))
    price_is_valid = params.price == floor_to(params.price, price_decimals_for(market))
    return price_is_valid and size_is_valid
