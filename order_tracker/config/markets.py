"""Static per-market precision and size rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from order_tracker.config.constants import DEFAULT_PRICE_DECIMALS, DEFAULT_SIZE_DECIMALS


@dataclass(frozen=True)
class MarketRule:
    """Price/size precision and size bounds for one market."""

    market_id: str
    price_decimals: int
    size_decimals: int
    min_size: Optional[float] = None
    max_size: Optional[float] = None


@dataclass(frozen=True)
class MarketBounds:
    """Order size bounds; None means the bound is not enforced."""

    min_size: Optional[float]
    max_size: Optional[float]


def _rule(market_id: str, price_decimals: int, size_decimals: int, min_size: float, max_size: float) -> MarketRule:
    return MarketRule(
        market_id=market_id,
        price_decimals=price_decimals,
        size_decimals=size_decimals,
        min_size=min_size,
        max_size=max_size,
    )


MARKET_RULES: dict[str, MarketRule] = {
    rule.market_id: rule
    for rule in (
        _rule("BTC-USD", 2, 8, 0.001, 70.0),
        _rule("BTC-EUR", 2, 8, 0.001, 50.0),
        _rule("BTC-GBP", 2, 8, 0.001, 20.0),
        _rule("ETH-USD", 2, 8, 0.01, 700.0),
        _rule("ETH-EUR", 2, 8, 0.01, 500.0),
        _rule("ETH-BTC", 5, 8, 0.01, 600.0),
        _rule("LTC-USD", 2, 8, 0.1, 4000.0),
        _rule("LTC-EUR", 2, 8, 0.1, 2500.0),
        _rule("LTC-BTC", 5, 8, 0.1, 2000.0),
        _rule("BCH-USD", 2, 8, 0.01, 350.0),
        _rule("BCH-EUR", 2, 8, 0.01, 120.0),
        _rule("BCH-BTC", 5, 8, 0.01, 200.0),
    )
}


def rule_for(market: str | None) -> Optional[MarketRule]:
    """Return the rule for a market, or None when the market is unknown."""
    if not market:
        return None
    return MARKET_RULES.get(market)


def decimals_for(market: str | None, kind: str) -> int:
    """Decimal places for `kind` ("price" or "size"); unknown markets get the defaults."""
    rule = rule_for(market)
    if kind == "price":
        return rule.price_decimals if rule else DEFAULT_PRICE_DECIMALS
    if kind == "size":
        return rule.size_decimals if rule else DEFAULT_SIZE_DECIMALS
    return DEFAULT_PRICE_DECIMALS


def price_decimals_for(market: str | None) -> int:
    return decimals_for(market, "price")


def size_decimals_for(market: str | None) -> int:
    return decimals_for(market, "size")


def bounds_for(market: str | None) -> MarketBounds:
    """Size bounds for a market; both are None when the market is unknown."""
    rule = rule_for(market)
    if rule is None:
        return MarketBounds(min_size=None, max_size=None)
    return MarketBounds(min_size=rule.min_size, max_size=rule.max_size)
