"""Counter-order placement for settled orders."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from order_tracker.config.constants import DEFAULT_DROP_MULTIPLIER, DEFAULT_RISE_MULTIPLIER, REJECTED_STATUS
from order_tracker.config.markets import price_decimals_for, size_decimals_for
from order_tracker.errors import OrderRejectedError
from order_tracker.execution.classifier import ceil_to, floor_to, is_buy, is_sell, is_valid_order
from order_tracker.execution.order import Order, OrderParams
from order_tracker.logging.loggers import get_trade_logger


class OrderPlacer(Protocol):
    async def buy(self, params: OrderParams) -> Order: ...

    async def sell(self, params: OrderParams) -> Order: ...


class FlipEngine:
    """Places a post-only order on the opposite side of a settled order."""

    def __init__(
        self,
        client: OrderPlacer,
        rise_multiplier: float = DEFAULT_RISE_MULTIPLIER,
        drop_multiplier: float = DEFAULT_DROP_MULTIPLIER,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        # Stored for configuration parity; both flip directions price off drop_multiplier.
        self.rise_multiplier = rise_multiplier
        self.drop_multiplier = drop_multiplier
        self.logger = logger or get_trade_logger()

    def build_flip(self, order: Order) -> tuple[str, OrderParams] | None:
        """Return (side, params) for the counter-order, or None when no flip applies."""
        market = order.product_id
        if not order.side or not order.filled_size or not market:
            return None

        settled_price = float(order.price or 0)
        settled_size = float(order.filled_size)
        new_price = ceil_to(settled_price * self.drop_multiplier, price_decimals_for(market))

        if is_buy(order):
            return "sell", OrderParams(product_id=market, price=new_price, size=settled_size, post_only=True)

        if is_sell(order):
            if new_price <= 0:
                return None
            # Keep roughly the same notional at the new price.
            new_size = floor_to((settled_price / new_price) * settled_size, size_decimals_for(market))
            return "buy", OrderParams(product_id=market, price=new_price, size=new_size, post_only=True)

        return None

    async def flip(self, order: Order) -> Optional[Order]:
        """Submit the flip for a settled order.

        Returns the placed order, or None when the order is not flippable or the
        derived params fail market validation. Raises OrderRejectedError when the
        exchange rejects the placement.
        """
        flip = self.build_flip(order)
        if flip is None:
            self.logger.info("flip_skipped reason=guard id=%s", order.id)
            return None

        side, params = flip
        if not is_valid_order(params):
            self.logger.info(
                "flip_skipped reason=invalid id=%s side=%s price=%s size=%s",
                order.id,
                side,
                params.price,
                params.size,
            )
            return None

        placed = await (self.client.sell(params) if side == "sell" else self.client.buy(params))
        if placed.status == REJECTED_STATUS:
            reason = str(placed.raw.get("reject_reason") or "")
            self.logger.warning(
                "flip_rejected id=%s side=%s price=%s size=%s reason=%s",
                order.id,
                side,
                params.price,
                params.size,
                reason or "unknown",
            )
            raise OrderRejectedError(side, params, reason=reason)

        self.logger.info(
            "flip_placed from=%s side=%s market=%s price=%s size=%s new_id=%s",
            order.id,
            side,
            params.product_id,
            params.price,
            params.size,
            placed.id,
        )
        return placed
