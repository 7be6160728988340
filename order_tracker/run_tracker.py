"""Entry point for running the open-order tracker."""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path

from order_tracker.emailer import send_settlement_email
from order_tracker.engine import EngineConfig, OrderTracker
from order_tracker.errors import OrderRejectedError
from order_tracker.events import ChangesEvent, EventKey, SettlementEvent
from order_tracker.execution.exchange_client import ExchangeClient
from order_tracker.logging.loggers import get_trade_logger, set_log_level
from order_tracker.logging.order_changes import log_order_changes


def wire_subscribers(tracker: OrderTracker, config: EngineConfig) -> None:
    """Attach the console summary, settlement e-mail and auto-flip consumers."""
    trade_logger = get_trade_logger()

    def on_changes(event: ChangesEvent) -> None:
        log_order_changes(event.order_groups)

    async def on_settled(event: SettlementEvent) -> None:
        if config.email_enabled:
            await asyncio.to_thread(send_settlement_email, event.orders, config.email_to)
        if config.auto_flip and event.orders:
            # Usually a single fill per batch; only the first one is flipped.
            first_order = event.orders[0]
            try:
                await tracker.flip_order(first_order)
            except OrderRejectedError as exc:
                trade_logger.warning("flip_failed id=%s error=%s", first_order.id, exc)

    tracker.on(EventKey.ORDERS_CHANGED, on_changes)
    tracker.on(EventKey.ORDERS_SETTLED, on_settled)


async def run(cfg_path: Path) -> dict[str, float]:
    config = EngineConfig.from_yaml(cfg_path)
    set_log_level(config.log_level)
    async with ExchangeClient.from_env(base_url=config.api_url, timeout_seconds=config.timeout_seconds) as client:
        tracker = OrderTracker.from_config(client, config)
        wire_subscribers(tracker, config)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, tracker.stop)

        print("Order tracker started. Press CTRL+C to stop.")
        return await tracker.run()


def main() -> None:
    cfg_path = Path(__file__).parent / "config" / "settings.yaml"
    metrics = asyncio.run(run(cfg_path))
    print("=== RUN SUMMARY ===")
    for k, v in metrics.items():
        print(f"{k}: {v:.6f}" if isinstance(v, float) else f"{k}: {v}")
    print("Order tracker stopped cleanly.")


if __name__ == "__main__":
    main()
