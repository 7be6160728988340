"""Publish/subscribe channel between the tracker and its consumers."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Union

from order_tracker.execution.order import Order, OrderGroups

logger = logging.getLogger(__name__)


class EventKey(str, Enum):
    ORDERS_SETTLED = "ORDERS_SETTLED"
    ORDERS_CHANGED = "ORDERS_CHANGED"


@dataclass(frozen=True)
class SettlementEvent:
    """Raised when at least one missing order resolved as settled."""

    orders: list[Order]


@dataclass(frozen=True)
class ChangesEvent:
    """Raised when a cycle saw anything beyond matched orders."""

    order_groups: OrderGroups


Handler = Callable[[Any], Union[None, Awaitable[None]]]


def _is_async_handler(handler: Handler) -> bool:
    """Coroutine functions and objects with an async __call__."""
    return inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(getattr(handler, "__call__", None))


class EventBus:
    """Dispatches events on the running loop so emitters never wait on subscribers.

    Coroutine handlers run as tasks and plain callables via ``call_soon``.
    A failing handler is logged and does not affect the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventKey, list[Handler]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()

    def on(self, key: EventKey, handler: Handler) -> None:
        self._handlers[key].append(handler)

    def off(self, key: EventKey, handler: Handler) -> None:
        if handler in self._handlers[key]:
            self._handlers[key].remove(handler)

    def emit(self, key: EventKey, payload: Any) -> int:
        """Schedule every handler for `key`; returns how many were scheduled."""
        handlers = list(self._handlers.get(key, ()))
        if not handlers:
            return 0
        loop = asyncio.get_running_loop()
        for handler in handlers:
            if _is_async_handler(handler):
                self._track(loop.create_task(self._run_async(key, handler, payload)))
            else:
                loop.call_soon(self._run_sync, key, handler, payload)
        return len(handlers)

    async def drain(self) -> None:
        """Let scheduled callbacks run and wait for handler tasks."""
        await asyncio.sleep(0)
        while True:
            pending = [task for task in self._pending if not task.done()]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)

    def _track(self, task: asyncio.Task) -> None:
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _run_sync(self, key: EventKey, handler: Handler, payload: Any) -> None:
        try:
            result = handler(payload)
        except Exception:
            logger.exception("event handler failed key=%s handler=%r", key.value, handler)
            return
        # Callables returning awaitables (partials of coroutines, wrapped handlers) still get run.
        if inspect.isawaitable(result):
            self._track(asyncio.ensure_future(self._await_result(key, handler, result)))

    @staticmethod
    async def _await_result(key: EventKey, handler: Handler, result: Awaitable[None]) -> None:
        try:
            await result
        except Exception:
            logger.exception("event handler failed key=%s handler=%r", key.value, handler)

    @staticmethod
    async def _run_async(key: EventKey, handler: Handler, payload: Any) -> None:
        try:
            await handler(payload)
        except Exception:
            logger.exception("event handler failed key=%s handler=%r", key.value, handler)
