"""Resolve orders that vanished from the open-order snapshot into cancelled or settled."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Optional, Protocol

from order_tracker.config.constants import DEFAULT_MAX_INDIVIDUAL_FETCHES, IS_CANCELLED_STATUS
from order_tracker.errors import OrderNotFoundError
from order_tracker.execution.classifier import is_cancelled, is_settled
from order_tracker.execution.order import Order, OrderGroups
from order_tracker.logging.loggers import get_order_logger


class OrderLookup(Protocol):
    async def get_order(self, order_id: str) -> Order: ...


class MissingOrderResolver:
    """Fetches missing orders one by one, up to a cap, to tell cancellations from fills.

    The exchange only lists open orders, so an order leaving the snapshot was
    either cancelled or settled. Cancelled orders are deleted upstream and
    answer 404, which is taken as the cancellation signal.
    """

    def __init__(
        self,
        client: OrderLookup,
        max_individual_fetches: int = DEFAULT_MAX_INDIVIDUAL_FETCHES,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.max_individual_fetches = max_individual_fetches
        self.logger = logger or get_order_logger()
        self.skipped_batches = 0

    async def fetch_order(self, order_id: str) -> Order:
        """Fetch one order; a 404 becomes a synthetic cancelled order."""
        if not order_id:
            raise ValueError("Missing id argument")
        try:
            return await self.client.get_order(order_id)
        except OrderNotFoundError:
            return Order(id=order_id, status=IS_CANCELLED_STATUS)

    async def fetch_orders(self, order_ids: list[str]) -> list[Order]:
        """Fire all lookups at once; the first failure fails the batch and cancels the rest."""
        tasks = [asyncio.ensure_future(self.fetch_order(order_id)) for order_id in order_ids]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def resolve(self, groups: OrderGroups) -> OrderGroups:
        missing_orders = groups.missing_orders
        if not missing_orders:
            return groups

        missing_ids = [order.id for order in missing_orders]
        if len(missing_orders) >= self.max_individual_fetches:
            # Already dropped from the known set, so these are never seen again.
            self.skipped_batches += 1
            self.logger.warning(
                "skip_individual_fetch count=%d cap=%d ids=%s",
                len(missing_ids),
                self.max_individual_fetches,
                ",".join(missing_ids),
            )
            return groups

        self.logger.info("fetch_individually count=%d", len(missing_ids))
        resolved = await self.fetch_orders(missing_ids)
        return replace(
            groups,
            cancelled_orders=[order for order in resolved if is_cancelled(order)],
            settled_orders=[order for order in resolved if is_settled(order) and not is_cancelled(order)],
        )
