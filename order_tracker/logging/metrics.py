"""Run statistics for the order tracker."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class TrackerStats:
    """Counters updated by the reconciliation loop."""

    cycles_started: int = 0
    cycles_completed: int = 0
    cycles_failed: int = 0
    ticks_skipped: int = 0
    resolutions_skipped: int = 0
    settlement_events: int = 0
    change_events: int = 0
    orders_settled: int = 0
    orders_cancelled: int = 0
    flips_placed: int = 0
    flips_failed: int = 0

    @property
    def failure_rate(self) -> float:
        """Failed cycles over started cycles."""
        if self.cycles_started == 0:
            return 0.0
        return self.cycles_failed / self.cycles_started


def summarize_metrics(stats: TrackerStats, known_orders: int) -> dict[str, float]:
    """Build a flat metrics snapshot for the shutdown summary."""
    base = {
        "known_orders": float(known_orders),
        "failure_rate": stats.failure_rate,
    }
    base.update({k: float(v) for k, v in asdict(stats).items()})
    return base
