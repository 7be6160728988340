"""Open-order reconciliation loop."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol

import yaml

from order_tracker.config.constants import (
    DEFAULT_API_URL,
    DEFAULT_DROP_MULTIPLIER,
    DEFAULT_MAX_INDIVIDUAL_FETCHES,
    DEFAULT_POLLING_INTERVAL_MS,
    DEFAULT_RISE_MULTIPLIER,
    DEFAULT_SANDBOX_URL,
    DEFAULT_TIMEOUT_SECONDS,
)
from order_tracker.events import ChangesEvent, EventBus, EventKey, SettlementEvent
from order_tracker.execution.flip import FlipEngine
from order_tracker.execution.order import Order, OrderGroups, OrderParams
from order_tracker.logging.loggers import get_order_logger
from order_tracker.logging.metrics import TrackerStats, summarize_metrics
from order_tracker.tracking.diff import group_orders, index_orders
from order_tracker.tracking.resolver import MissingOrderResolver


@dataclass
class EngineConfig:
    raw: dict[str, Any]

    @classmethod
    def from_yaml(cls, path: str | Path) -> "EngineConfig":
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls(raw=data or {})

    def section(self, name: str) -> dict[str, Any]:
        return self.raw.get(name) or {}

    @property
    def polling_interval_ms(self) -> int:
        return int(self.section("tracker").get("polling_interval_ms", DEFAULT_POLLING_INTERVAL_MS))

    @property
    def rise_multiplier(self) -> float:
        return float(self.section("tracker").get("rise_multiplier", DEFAULT_RISE_MULTIPLIER))

    @property
    def drop_multiplier(self) -> float:
        return float(self.section("tracker").get("drop_multiplier", DEFAULT_DROP_MULTIPLIER))

    @property
    def max_individual_fetches(self) -> int:
        return int(self.section("tracker").get("max_individual_fetches", DEFAULT_MAX_INDIVIDUAL_FETCHES))

    @property
    def market(self) -> Optional[str]:
        return self.section("tracker").get("market") or None

    @property
    def log_level(self) -> str:
        return str(self.section("tracker").get("log_level", "INFO")).upper()

    @property
    def api_url(self) -> str:
        exchange = self.section("exchange")
        if exchange.get("use_sandbox", False):
            return exchange.get("sandbox_url") or DEFAULT_SANDBOX_URL
        return exchange.get("base_url") or DEFAULT_API_URL

    @property
    def timeout_seconds(self) -> float:
        return float(self.section("exchange").get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS))

    @property
    def email_enabled(self) -> bool:
        return bool(self.section("notify").get("email_enabled", False))

    @property
    def email_to(self) -> Optional[str]:
        return self.section("notify").get("email_to") or None

    @property
    def auto_flip(self) -> bool:
        return bool(self.section("notify").get("auto_flip", False))


class Exchange(Protocol):
    async def list_open_orders(self, market: Optional[str] = None) -> list[Order]: ...

    async def get_order(self, order_id: str) -> Order: ...

    async def buy(self, params: OrderParams) -> Order: ...

    async def sell(self, params: OrderParams) -> Order: ...


class EngineStatus(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    DIFFING = "diffing"
    RESOLVING = "resolving"
    EMITTING = "emitting"


@dataclass
class EngineState:
    """Everything one tracker instance owns between cycles."""

    polling_interval_ms: int = DEFAULT_POLLING_INTERVAL_MS
    rise_multiplier: float = DEFAULT_RISE_MULTIPLIER
    drop_multiplier: float = DEFAULT_DROP_MULTIPLIER
    known_orders: dict[str, Order] = field(default_factory=dict)
    status: EngineStatus = EngineStatus.IDLE
    is_fetching: bool = False


class OrderTracker:
    """Polls open orders, diffs them against the last snapshot and raises events.

    One cycle runs at a time: a tick that fires while a cycle is still in
    flight is skipped rather than overlapping it.
    """

    def __init__(
        self,
        client: Exchange,
        polling_interval_ms: int = DEFAULT_POLLING_INTERVAL_MS,
        rise_multiplier: float = DEFAULT_RISE_MULTIPLIER,
        drop_multiplier: float = DEFAULT_DROP_MULTIPLIER,
        max_individual_fetches: int = DEFAULT_MAX_INDIVIDUAL_FETCHES,
        market: Optional[str] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self.client = client
        self.market = market
        self.state = EngineState(
            polling_interval_ms=polling_interval_ms,
            rise_multiplier=rise_multiplier,
            drop_multiplier=drop_multiplier,
        )
        self.events = events or EventBus()
        self.logger = get_order_logger()
        self.resolver = MissingOrderResolver(client, max_individual_fetches=max_individual_fetches, logger=self.logger)
        self.flipper = FlipEngine(client, rise_multiplier=rise_multiplier, drop_multiplier=drop_multiplier)
        self.stats = TrackerStats()
        self._stop_event: Optional[asyncio.Event] = None
        self._cycle_task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, client: Exchange, config: EngineConfig, events: Optional[EventBus] = None) -> "OrderTracker":
        return cls(
            client,
            polling_interval_ms=config.polling_interval_ms,
            rise_multiplier=config.rise_multiplier,
            drop_multiplier=config.drop_multiplier,
            max_individual_fetches=config.max_individual_fetches,
            market=config.market,
            events=events,
        )

    @property
    def known_orders(self) -> dict[str, Order]:
        return self.state.known_orders

    def on(self, key: EventKey, handler) -> None:
        self.events.on(key, handler)

    async def fetch_orders(self) -> list[Order]:
        return await self.client.list_open_orders(self.market)

    def group_orders(self, orders: list[Order]) -> OrderGroups:
        """Diff against the known set, then replace it with this snapshot."""
        groups = group_orders(self.state.known_orders, orders)
        self.state.known_orders = index_orders(orders)
        return groups

    def maybe_emit_settled(self, groups: OrderGroups) -> OrderGroups:
        if groups.settled_orders:
            self.stats.settlement_events += 1
            self.events.emit(EventKey.ORDERS_SETTLED, SettlementEvent(orders=list(groups.settled_orders)))
        return groups

    def maybe_emit_order_changes(self, groups: OrderGroups) -> OrderGroups:
        if groups.has_changes():
            self.stats.change_events += 1
            self.events.emit(EventKey.ORDERS_CHANGED, ChangesEvent(order_groups=groups))
        return groups

    async def check_orders(self) -> Optional[OrderGroups]:
        """Run one reconciliation cycle.

        Returns the cycle's groups, or None when the cycle was skipped or failed.
        Failures are logged and never propagate.
        """
        if self.state.is_fetching:
            self.stats.ticks_skipped += 1
            self.logger.info("skip_cycle reason=in_flight status=%s", self.state.status.value)
            return None

        self.state.is_fetching = True
        self.stats.cycles_started += 1
        try:
            self.state.status = EngineStatus.FETCHING
            orders = await self.fetch_orders()

            self.state.status = EngineStatus.DIFFING
            groups = self.group_orders(orders)

            self.state.status = EngineStatus.RESOLVING
            skipped_before = self.resolver.skipped_batches
            groups = await self.resolver.resolve(groups)
            self.stats.resolutions_skipped += self.resolver.skipped_batches - skipped_before
            self.stats.orders_settled += len(groups.settled_orders)
            self.stats.orders_cancelled += len(groups.cancelled_orders)

            self.state.status = EngineStatus.EMITTING
            self.maybe_emit_settled(groups)
            self.maybe_emit_order_changes(groups)
            self.logger.debug(
                "cycle_done open=%d new=%d matched=%d missing=%d cancelled=%d settled=%d part_filled=%d",
                len(orders),
                len(groups.new_orders),
                len(groups.matched_orders),
                len(groups.missing_orders),
                len(groups.cancelled_orders),
                len(groups.settled_orders),
                len(groups.part_filled_orders),
            )
            self.stats.cycles_completed += 1
            return groups
        except Exception:
            self.stats.cycles_failed += 1
            self.logger.exception("cycle_failed status=%s", self.state.status.value)
            return None
        finally:
            self.state.status = EngineStatus.IDLE
            self.state.is_fetching = False

    async def flip_order(self, order: Order) -> Optional[Order]:
        """Flip a settled order; OrderRejectedError reaches the caller."""
        try:
            placed = await self.flipper.flip(order)
        except Exception:
            self.stats.flips_failed += 1
            raise
        if placed is not None:
            self.stats.flips_placed += 1
        return placed

    def _tick(self) -> None:
        if self._cycle_task is not None and not self._cycle_task.done():
            self.stats.ticks_skipped += 1
            self.logger.info("skip_cycle reason=in_flight status=%s", self.state.status.value)
            return
        self._cycle_task = asyncio.create_task(self.check_orders())

    async def run(self) -> dict[str, float]:
        """Start a cycle every polling interval until stop() is called."""
        self._stop_event = asyncio.Event()
        interval = self.state.polling_interval_ms / 1000.0
        self.logger.info("tracker_started interval_ms=%d market=%s", self.state.polling_interval_ms, self.market or "all")
        try:
            while not self._stop_event.is_set():
                self._tick()
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
        finally:
            if self._cycle_task is not None:
                self._cycle_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._cycle_task
            await self.events.drain()
        self.logger.info("tracker_stopped known_orders=%d", len(self.state.known_orders))
        return summarize_metrics(self.stats, known_orders=len(self.state.known_orders))

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
