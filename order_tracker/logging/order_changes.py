"""Console summary of one reconciliation cycle."""

from __future__ import annotations

import logging
from typing import Optional

from order_tracker.execution.order import OrderGroups
from order_tracker.logging.loggers import get_order_logger


def format_order_changes(order_groups: OrderGroups) -> list[str]:
    """Lines for each non-empty change group; matched and missing are not listed."""
    rows = (
        ("New:", order_groups.new_orders),
        ("Cancelled:", order_groups.cancelled_orders),
        ("Settled:", order_groups.settled_orders),
        ("Part Fills:", order_groups.part_filled_orders),
    )
    lines = ["Order changes:"]
    lines.extend(f"  {label:<12}{len(orders)}" for label, orders in rows if orders)
    return lines


def log_order_changes(order_groups: OrderGroups, logger: Optional[logging.Logger] = None) -> None:
    logger = logger or get_order_logger()
    for line in format_order_changes(order_groups):
        logger.info(line)
