import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from conftest import wait_for
from discussion_clock.clock.engine import ResponsiveClock
from discussion_clock.shared.errors import DecodeError, UpstreamError
from discussion_clock.shared.models import CadenceMode, OrderKind


async def test_start_populates_snapshot_and_stays_at_baseline(clock, upstream):
    await clock.start()

    snapshot = clock.get_snapshot()
    assert [s.seat_number for s in snapshot.seats] == [1, 2]
    assert snapshot.last_updated is not None
    assert snapshot.is_updating is False
    assert upstream.seat_calls == 1
    assert set(upstream.order_calls) == {OrderKind.SPEAKERS, OrderKind.REQUESTS}
    assert clock.mode is CadenceMode.BASELINE
    assert clock.get_status().is_running is True


async def test_trigger_while_cycle_in_flight_does_not_start_second_fetch(clock, upstream):
    upstream.gate = asyncio.Event()
    first = asyncio.create_task(clock.trigger_immediate_refresh("first"))
    await wait_for(lambda: upstream.seat_calls == 1)
    assert clock.get_snapshot().is_updating is True

    status = await clock.trigger_immediate_refresh("second")

    assert upstream.seat_calls == 1
    assert status.mode is CadenceMode.BURST

    upstream.gate.set()
    await first
    assert upstream.seat_calls == 1
    assert clock.get_snapshot().is_updating is False
    assert len(clock.get_snapshot().seats) == 2


async def test_timer_ticks_skip_while_cycle_in_flight(clock, upstream):
    await clock.start()
    upstream.gate = asyncio.Event()
    calls_before = upstream.seat_calls

    await wait_for(lambda: upstream.seat_calls == calls_before + 1)
    # Several baseline intervals pass while the upstream is stuck
    await asyncio.sleep(0.5)
    assert upstream.seat_calls == calls_before + 1

    upstream.gate.set()
    await wait_for(lambda: upstream.seat_calls >= calls_before + 2)


async def test_detected_change_escalates_to_burst(clock, upstream):
    events = []

    async def record(event):
        events.append(event.event_type)

    clock.bus.subscribe(record)
    await clock.start()
    assert clock.interval_ms == 200

    upstream.set_seat(1, mic=True)
    await wait_for(lambda: clock.mode is CadenceMode.BURST, timeout=1.0)

    status = clock.get_status()
    assert status.interval_ms == 20
    assert status.last_change_detected is not None
    assert status.burst_remaining_ms > 0
    assert "snapshot_changed" in events
    assert "mode_changed" in events


async def test_burst_window_is_extended_by_retrigger(clock):
    await clock.trigger_immediate_refresh("first")
    assert clock.mode is CadenceMode.BURST

    await asyncio.sleep(0.15)
    await clock.trigger_immediate_refresh("second")

    # 0.35s after the first trigger, but only 0.2s after the second
    await asyncio.sleep(0.2)
    assert clock.mode is CadenceMode.BURST

    await asyncio.sleep(0.25)
    assert clock.mode is CadenceMode.BASELINE
    assert clock.get_status().burst_remaining_ms == 0


async def test_burst_expiry_returns_timer_to_baseline_cadence(clock, upstream):
    await clock.start()
    await clock.trigger_immediate_refresh("operator")
    await wait_for(lambda: clock.mode is CadenceMode.BASELINE, timeout=1.0)
    assert clock.interval_ms == 200

    calls_before = upstream.seat_calls
    await asyncio.sleep(0.5)
    # ~2 baseline ticks; burst cadence would have produced ~25
    assert upstream.seat_calls - calls_before <= 4


async def test_failed_cycle_keeps_previous_snapshot(clock, upstream):
    await clock.start()
    before = clock.get_snapshot()

    upstream.fail_with = UpstreamError("upstream down", status_code=503)
    await wait_for(lambda: clock.get_status().last_error is not None, timeout=1.0)

    after = clock.get_snapshot()
    assert after == before
    assert after.last_updated == before.last_updated
    assert clock.mode is CadenceMode.BASELINE
    assert "upstream down" in clock.get_status().last_error

    upstream.fail_with = None
    await wait_for(lambda: clock.get_status().last_error is None, timeout=1.0)
    assert clock.get_snapshot().last_updated > before.last_updated


async def test_decode_failure_is_recorded_and_published(clock, upstream):
    events = []

    async def record(event):
        events.append(event)

    clock.bus.subscribe(record)
    upstream.fail_with = DecodeError("bad payload")
    await clock.trigger_immediate_refresh("manual")

    assert clock.get_snapshot().last_updated is None
    assert clock.get_status().last_error == "bad payload"
    assert [e.payload["error"] for e in events if e.event_type == "fetch_failed"] == ["bad payload"]


async def test_unexpected_error_does_not_stop_timer(clock, upstream):
    await clock.start()
    upstream.fail_with = RuntimeError("bug in upstream adapter")
    await wait_for(lambda: clock.get_status().last_error == "bug in upstream adapter", timeout=1.0)
    assert clock.get_snapshot().is_updating is False

    upstream.fail_with = None
    await wait_for(lambda: clock.get_status().last_error is None, timeout=1.0)


async def test_update_seat_reaches_upstream_and_refreshes_in_burst(clock, upstream):
    await clock.start()

    status = await clock.update_seat(1, True, False)

    assert upstream.pushed == [(1, True, False)]
    seat_one = next(s for s in clock.get_snapshot().seats if s.seat_number == 1)
    assert seat_one.microphone_on is True
    assert clock.get_snapshot().speaker_order == (1,)
    assert status.mode is CadenceMode.BURST
    assert status.interval_ms == 20


async def test_update_seat_failure_propagates_and_leaves_store(clock, upstream):
    await clock.start()
    before = clock.get_snapshot()
    upstream.push_fail_with = UpstreamError("rejected", status_code=400)

    with pytest.raises(UpstreamError):
        await clock.update_seat(1, True, False)

    assert clock.get_snapshot() == before
    assert clock.mode is CadenceMode.BASELINE


async def test_snapshot_reads_are_idempotent_and_frozen(clock):
    await clock.start()
    first = clock.get_snapshot()
    second = clock.get_snapshot()

    assert first == second
    assert first is not second
    with pytest.raises(ValidationError):
        first.seats = ()


async def test_role_change_alone_does_not_escalate(clock, upstream):
    await clock.start()
    updated_before = clock.get_snapshot().last_updated

    upstream.set_seat(2, role="secretary")
    await wait_for(lambda: clock.get_snapshot().last_updated != updated_before, timeout=1.0)

    assert clock.get_snapshot().seats[1].role == "secretary"
    assert clock.mode is CadenceMode.BASELINE


async def test_cache_validity_follows_clock_time(upstream, fast_settings):
    now = [datetime(2026, 1, 1, tzinfo=timezone.utc)]
    engine = ResponsiveClock(upstream, fast_settings, now_fn=lambda: now[0])
    assert engine.is_cache_valid() is False

    await engine.trigger_immediate_refresh("seed")
    assert engine.is_cache_valid() is True

    now[0] += timedelta(milliseconds=149)
    assert engine.get_status().cache_valid is True
    now[0] += timedelta(milliseconds=1)
    assert engine.is_cache_valid() is False
    await engine.stop()


async def test_stop_cancels_timers(clock, upstream):
    await clock.start()
    await clock.trigger_immediate_refresh("operator")

    await clock.stop()
    calls = upstream.seat_calls
    await asyncio.sleep(0.3)

    assert upstream.seat_calls == calls
    assert clock.mode is CadenceMode.BASELINE
    assert clock.is_running is False


async def test_results_arriving_after_stop_are_discarded(clock, upstream):
    upstream.gate = asyncio.Event()
    pending = asyncio.create_task(clock.trigger_immediate_refresh("late"))
    await wait_for(lambda: upstream.seat_calls == 1)

    await clock.stop()
    upstream.gate.set()
    status = await pending

    assert clock.get_snapshot().last_updated is None
    assert clock.get_snapshot().is_updating is False
    # The trigger must not re-arm Burst on a stopped clock
    assert clock.mode is CadenceMode.BASELINE
    assert clock._burst_task is None
    assert status.burst_remaining_ms == 0


async def test_failure_arriving_after_stop_is_discarded(clock, upstream):
    events = []

    async def record(event):
        events.append(event.event_type)

    clock.bus.subscribe(record)
    upstream.gate = asyncio.Event()
    pending = asyncio.create_task(clock.trigger_immediate_refresh("late"))
    await wait_for(lambda: upstream.seat_calls == 1 and len(upstream.order_calls) == 2)

    upstream.fail_with = UpstreamError("upstream down", status_code=503)
    await clock.stop()
    upstream.gate.set()
    await pending

    assert clock.get_status().last_error is None
    assert "fetch_failed" not in events
    assert clock.get_snapshot().is_updating is False


async def test_first_failure_cancels_remaining_calls(clock, upstream):
    upstream.gate = asyncio.Event()
    upstream.order_fail_with = UpstreamError("speakers endpoint down", status_code=500)

    status = await asyncio.wait_for(clock.trigger_immediate_refresh("manual"), timeout=0.5)

    assert upstream.seats_cancelled == 1
    assert status.last_error == "speakers endpoint down"
    assert clock.get_snapshot().seats == ()
    assert clock.get_snapshot().is_updating is False
