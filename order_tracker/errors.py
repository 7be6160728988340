"""Exceptions raised by the exchange client and the flip engine."""

from __future__ import annotations

from typing import Optional

from order_tracker.execution.order import OrderParams


class ExchangeError(Exception):
    """Non-2xx response or transport failure talking to the exchange."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class OrderNotFoundError(ExchangeError):
    """The exchange no longer knows the order (HTTP 404)."""

    def __init__(self, order_id: str) -> None:
        super().__init__(f"order not found id={order_id}", status=404)
        self.order_id = order_id


class OrderRejectedError(ExchangeError):
    """A placement came back with status "rejected"."""

    def __init__(self, side: str, params: OrderParams, reason: str = "") -> None:
        message = f"{side.capitalize()} order rejected at price: {params.price}"
        if reason:
            message = f"{message} reason={reason}"
        super().__init__(message)
        self.side = side
        self.params = params
        self.reason = reason
