import asyncio

import pytest

from conftest import FakeExchange, make_order
from order_tracker.engine import EngineConfig, EngineStatus, OrderTracker
from order_tracker.events import EventKey


def _recorder(tracker):
    seen = {EventKey.ORDERS_SETTLED: [], EventKey.ORDERS_CHANGED: []}
    tracker.on(EventKey.ORDERS_SETTLED, seen[EventKey.ORDERS_SETTLED].append)
    tracker.on(EventKey.ORDERS_CHANGED, seen[EventKey.ORDERS_CHANGED].append)
    return seen


@pytest.mark.asyncio
async def test_first_cycle_emits_changes_for_new_orders():
    exchange = FakeExchange(snapshots=[[make_order("a"), make_order("b")]])
    tracker = OrderTracker(exchange)
    seen = _recorder(tracker)

    groups = await tracker.check_orders()
    await tracker.events.drain()

    assert [o.id for o in groups.new_orders] == ["a", "b"]
    assert set(tracker.known_orders) == {"a", "b"}
    assert len(seen[EventKey.ORDERS_CHANGED]) == 1
    assert seen[EventKey.ORDERS_SETTLED] == []


@pytest.mark.asyncio
async def test_unchanged_snapshot_emits_nothing():
    snapshot = [make_order("a")]
    exchange = FakeExchange(snapshots=[snapshot, snapshot])
    tracker = OrderTracker(exchange)
    seen = _recorder(tracker)

    await tracker.check_orders()
    groups = await tracker.check_orders()
    await tracker.events.drain()

    assert [o.id for o in groups.matched_orders] == ["a"]
    assert len(seen[EventKey.ORDERS_CHANGED]) == 1
    assert seen[EventKey.ORDERS_SETTLED] == []


@pytest.mark.asyncio
async def test_settled_order_emits_both_events():
    settled = make_order("a", settled=True, status="done", filled_size=1.0)
    exchange = FakeExchange(snapshots=[[make_order("a")], []], orders={"a": settled})
    tracker = OrderTracker(exchange)
    seen = _recorder(tracker)

    await tracker.check_orders()
    groups = await tracker.check_orders()
    await tracker.events.drain()

    assert groups.settled_orders == [settled]
    assert seen[EventKey.ORDERS_SETTLED][0].orders == [settled]
    assert seen[EventKey.ORDERS_CHANGED][-1].order_groups is groups
    assert tracker.known_orders == {}


@pytest.mark.asyncio
async def test_new_part_filled_order_emits_changes_without_settlement():
    exchange = FakeExchange(snapshots=[[make_order("p", filled_size=0.4)]])
    tracker = OrderTracker(exchange)
    seen = _recorder(tracker)

    groups = await tracker.check_orders()
    await tracker.events.drain()

    assert [o.id for o in groups.part_filled_orders] == ["p"]
    assert [o.id for o in groups.new_orders] == ["p"]
    assert len(seen[EventKey.ORDERS_CHANGED]) == 1
    assert seen[EventKey.ORDERS_SETTLED] == []


@pytest.mark.asyncio
async def test_twelve_vanished_orders_are_never_resolved():
    previous = [make_order(f"o{i}") for i in range(12)]
    exchange = FakeExchange(
        snapshots=[previous, []],
        orders={o.id: make_order(o.id, settled=True) for o in previous},
    )
    tracker = OrderTracker(exchange)
    seen = _recorder(tracker)

    await tracker.check_orders()
    groups = await tracker.check_orders()
    await tracker.events.drain()

    assert exchange.get_calls == []
    assert groups.settled_orders == []
    assert groups.cancelled_orders == []
    assert seen[EventKey.ORDERS_SETTLED] == []
    assert tracker.stats.resolutions_skipped == 1
    # Dropped from the known set, so the next cycle does not see them again.
    assert tracker.known_orders == {}


@pytest.mark.asyncio
async def test_fetch_failure_aborts_cycle_and_keeps_state(transport_error):
    exchange = FakeExchange(snapshots=[[make_order("a")], transport_error, [make_order("a")]])
    tracker = OrderTracker(exchange)
    seen = _recorder(tracker)

    await tracker.check_orders()
    assert await tracker.check_orders() is None
    assert set(tracker.known_orders) == {"a"}
    assert tracker.stats.cycles_failed == 1
    assert tracker.state.status == EngineStatus.IDLE
    assert tracker.state.is_fetching is False

    groups = await tracker.check_orders()
    await tracker.events.drain()
    assert [o.id for o in groups.matched_orders] == ["a"]
    assert len(seen[EventKey.ORDERS_CHANGED]) == 1


@pytest.mark.asyncio
async def test_resolution_failure_aborts_cycle_without_events(transport_error):
    exchange = FakeExchange(snapshots=[[make_order("a")], []], orders={"a": transport_error})
    tracker = OrderTracker(exchange)
    seen = _recorder(tracker)

    await tracker.check_orders()
    await tracker.events.drain()
    assert await tracker.check_orders() is None
    await tracker.events.drain()

    assert len(seen[EventKey.ORDERS_CHANGED]) == 1
    assert tracker.known_orders == {}
    assert tracker.stats.cycles_failed == 1


@pytest.mark.asyncio
async def test_overlapping_cycle_is_skipped():
    exchange = FakeExchange(snapshots=[[make_order("a")], [make_order("b")]])
    exchange.list_delay = 0.05
    tracker = OrderTracker(exchange)

    first, second = await asyncio.gather(tracker.check_orders(), tracker.check_orders())

    assert [o.id for o in first.new_orders] == ["a"]
    assert second is None
    assert len(exchange.list_calls) == 1
    assert tracker.stats.ticks_skipped == 1


@pytest.mark.asyncio
async def test_market_filter_is_passed_to_the_exchange():
    exchange = FakeExchange(snapshots=[[]])
    tracker = OrderTracker(exchange, market="ETH-USD")
    await tracker.check_orders()
    assert exchange.list_calls == ["ETH-USD"]


@pytest.mark.asyncio
async def test_run_polls_until_stopped():
    exchange = FakeExchange(snapshots=[[make_order("a")]])
    tracker = OrderTracker(exchange, polling_interval_ms=10)

    run_task = asyncio.create_task(tracker.run())
    await asyncio.sleep(0.1)
    tracker.stop()
    metrics = await asyncio.wait_for(run_task, timeout=1.0)

    assert len(exchange.list_calls) >= 2
    assert metrics["cycles_completed"] >= 2
    assert metrics["known_orders"] == 1.0


@pytest.mark.asyncio
async def test_flip_order_counts_placements():
    exchange = FakeExchange()
    tracker = OrderTracker(exchange)
    settled = make_order("s", product_id="BTC-USD", side="buy", price=100.0, filled_size=1.0, settled=True)

    placed = await tracker.flip_order(settled)

    assert placed is not None
    assert exchange.placed[0][0] == "sell"
    assert tracker.stats.flips_placed == 1


def test_tracker_from_config(tmp_path):
    cfg_file = tmp_path / "settings.yaml"
    cfg_file.write_text(
        "tracker:\n"
        "  polling_interval_ms: 2500\n"
        "  drop_multiplier: 0.95\n"
        "  max_individual_fetches: 4\n"
        "  market: LTC-USD\n",
        encoding="utf-8",
    )
    tracker = OrderTracker.from_config(FakeExchange(), EngineConfig.from_yaml(cfg_file))
    assert tracker.state.polling_interval_ms == 2500
    assert tracker.state.drop_multiplier == 0.95
    assert tracker.state.rise_multiplier == 1.01
    assert tracker.resolver.max_individual_fetches == 4
    assert tracker.market == "LTC-USD"
