"""Snapshot diffing: previous known orders vs the latest open-order snapshot."""

from __future__ import annotations

from typing import Iterable, Mapping

from order_tracker.execution.classifier import is_part_filled
from order_tracker.execution.order import Order, OrderGroups


def group_orders(previous: Mapping[str, Order], incoming: Iterable[Order]) -> OrderGroups:
    """Split the snapshot into new/matched orders and collect previously known orders that vanished.

    Cancelled and settled groups are left empty for the resolver to fill.
    Part fills are only looked for among new orders; a known order that gets
    partially filled between polls is not reported until it disappears.
    """
    incoming = list(incoming)
    current_ids = set(previous)
    incoming_ids = {order.id for order in incoming}

    new_orders = [order for order in incoming if order.id not in current_ids]
    matched_orders = [order for order in incoming if order.id in current_ids]
    missing_orders = [order for order_id, order in previous.items() if order_id not in incoming_ids]

    return OrderGroups(
        new_orders=new_orders,
        matched_orders=matched_orders,
        missing_orders=missing_orders,
        part_filled_orders=[order for order in new_orders if is_part_filled(order)],
    )


def index_orders(orders: Iterable[Order]) -> dict[str, Order]:
    """Key a snapshot by order id; later duplicates win."""
    return {order.id: order for order in orders}
