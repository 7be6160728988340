import asyncio

import pytest

from order_tracker.errors import ExchangeError, OrderNotFoundError
from order_tracker.execution.order import Order, OrderParams


class FakeExchange:
    """In-memory exchange: scripted open-order snapshots plus per-id lookups."""

    def __init__(self, snapshots=None, orders=None, placement_status="pending", reject_reason=None):
        self.snapshots = list(snapshots or [])
        self.orders = dict(orders or {})
        self.placement_status = placement_status
        self.reject_reason = reject_reason
        self.list_calls = []
        self.get_calls = []
        self.placed = []
        self.list_delay = 0.0

    async def list_open_orders(self, market=None):
        self.list_calls.append(market)
        if self.list_delay:
            await asyncio.sleep(self.list_delay)
        if not self.snapshots:
            return []
        # The last scripted snapshot repeats forever.
        snapshot = self.snapshots.pop(0) if len(self.snapshots) > 1 else self.snapshots[0]
        if isinstance(snapshot, Exception):
            raise snapshot
        return list(snapshot)

    async def get_order(self, order_id):
        self.get_calls.append(order_id)
        result = self.orders.get(order_id)
        if result is None:
            raise OrderNotFoundError(order_id)
        if isinstance(result, Exception):
            raise result
        return result

    async def _place(self, side, params: OrderParams):
        self.placed.append((side, params))
        return Order(
            id=f"placed-{len(self.placed)}",
            product_id=params.product_id,
            side=side,
            price=params.price,
            size=params.size,
            status=self.placement_status,
            raw={"status": self.placement_status, "reject_reason": self.reject_reason},
        )

    async def buy(self, params):
        return await self._place("buy", params)

    async def sell(self, params):
        return await self._place("sell", params)


def make_order(order_id, **kwargs):
    kwargs.setdefault("product_id", "BTC-USD")
    kwargs.setdefault("side", "buy")
    kwargs.setdefault("price", 100.0)
    kwargs.setdefault("size", 1.0)
    kwargs.setdefault("status", "open")
    return Order(id=order_id, **kwargs)


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def fake_exchange_cls():
    return FakeExchange


@pytest.fixture
def transport_error():
    return ExchangeError("GET /orders failed status=502 body=bad gateway", status=502)
