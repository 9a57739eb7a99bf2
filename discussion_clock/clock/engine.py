"""
MODULE OVERVIEW:
The responsive clock: the adaptive polling engine between the upstream discussion API
and every consumer (facade routes, dashboards, long-poll waiters).

WHAT IS HAPPENING HERE:
The clock runs at one of two cadences. At Baseline it polls slowly. When it sees
activity (a detected change, or an explicit trigger such as a seat update) it drops into
Burst and polls fast until BURST_DURATION_MS passes without another qualifying event.

Three background primitives make that work, all plain asyncio tasks:
  1. The polling timer. Exactly one is ever live. A cadence switch cancels it and
     schedules a fresh one at the new interval.
  2. The burst-expiry timer. At most one is live. Re-arming cancels and replaces it,
     which is how a re-trigger extends the window instead of stacking timers.
  3. Fetch cycles. The timer never awaits a cycle, it spawns one. Cancelling or
     rescheduling the timer therefore never aborts a cycle halfway through.

The store's `is_updating` flag is the only guard: while a cycle is in flight every
other tick or trigger skips its fetch.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Set

from loguru import logger

from discussion_clock.clock.change_detection import is_changed
from discussion_clock.clock.store import SnapshotStore
from discussion_clock.shared.config import Settings, settings as default_settings
from discussion_clock.shared.errors import ConcurrencyBusyError, DecodeError, UpstreamError
from discussion_clock.shared.events import ClockEventBus
from discussion_clock.shared.models import (
    CadenceMode,
    ClockEvent,
    ClockStatus,
    OrderKind,
    Snapshot,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ResponsiveClock:
    def __init__(
        self,
        client,
        settings: Settings | None = None,
        bus: ClockEventBus | None = None,
        now_fn: Callable[[], datetime] = utc_now,
    ):
        self._client = client
        self.settings = settings or default_settings
        self.bus = bus or ClockEventBus()
        self._now = now_fn

        self._store = SnapshotStore()
        self._mode = CadenceMode.BASELINE
        self._running = False
        # Bumped by stop(); a cycle that started under an older generation is discarded
        self._generation = 0

        self._timer_task: asyncio.Task | None = None
        self._burst_task: asyncio.Task | None = None
        self._burst_deadline: float | None = None
        self._cycle_tasks: Set[asyncio.Task] = set()

        self._last_change_detected: datetime | None = None
        self._last_error: str | None = None

    # ==========================
    # LIFECYCLE
    # ==========================
    @property
    def mode(self) -> CadenceMode:
        return self._mode

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def interval_ms(self) -> int:
        if self._mode is CadenceMode.BURST:
            return self.settings.BURST_INTERVAL_MS
        return self.settings.BASELINE_INTERVAL_MS

    async def start(self) -> None:
        """Run one fetch cycle inline, then enter the periodic loop."""
        if self._running:
            return
        self._running = True
        logger.info(
            f"event=clock_start baseline_ms={self.settings.BASELINE_INTERVAL_MS} "
            f"burst_ms={self.settings.BURST_INTERVAL_MS} burst_window_ms={self.settings.BURST_DURATION_MS}"
        )
        await self._run_cycle()
        self._schedule_timer()

    async def stop(self) -> None:
        """
        Cancel the polling timer and any pending burst expiry.
        In-flight upstream calls are left to finish, but whatever they return is dropped.
        """
        self._running = False
        self._generation += 1
        pending = [t for t in (self._timer_task, self._burst_task) if t is not None]
        self._timer_task = None
        self._burst_task = None
        self._burst_deadline = None
        self._mode = CadenceMode.BASELINE
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info(f"event=clock_stop in_flight_cycles={len(self._cycle_tasks)}")

    # ==========================
    # SCHEDULING
    # ==========================
    def _schedule_timer(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()
        self._timer_task = asyncio.create_task(self._timer_loop(self.interval_ms / 1000.0))

    async def _timer_loop(self, interval_s: float) -> None:
        while True:
            await asyncio.sleep(interval_s)
            task = asyncio.create_task(self._background_cycle())
            self._cycle_tasks.add(task)
            task.add_done_callback(self._cycle_tasks.discard)

    async def _background_cycle(self) -> None:
        # Nothing raised by a timer-driven cycle may take the timer down with it
        try:
            await self._run_cycle()
        except Exception as e:
            self._last_error = str(e)
            logger.exception(f"event=cycle_error reason='{e}'")

    async def _enter_burst(self, reason: str) -> None:
        duration_s = self.settings.BURST_DURATION_MS / 1000.0
        self._burst_deadline = time.monotonic() + duration_s
        if self._burst_task is not None:
            self._burst_task.cancel()
        self._burst_task = asyncio.create_task(self._expire_burst(duration_s))

        if self._mode is CadenceMode.BURST:
            logger.debug(f"event=burst_extended reason={reason}")
            return

        self._mode = CadenceMode.BURST
        logger.info(f"event=mode_changed mode=burst reason={reason} interval_ms={self.interval_ms}")
        if self._running:
            self._schedule_timer()
        await self._publish("mode_changed", mode=self._mode.value, reason=reason)

    async def _expire_burst(self, duration_s: float) -> None:
        await asyncio.sleep(duration_s)
        self._burst_task = None
        self._burst_deadline = None
        self._mode = CadenceMode.BASELINE
        logger.info(f"event=mode_changed mode=baseline reason=burst_expired interval_ms={self.interval_ms}")
        if self._running:
            self._schedule_timer()
        await self._publish("mode_changed", mode=self._mode.value, reason="burst_expired")

    # ==========================
    # FETCH CYCLE
    # ==========================
    async def _fetch_all(self):
        tasks = [
            asyncio.create_task(self._client.fetch_seats()),
            asyncio.create_task(self._client.fetch_order(OrderKind.SPEAKERS)),
            asyncio.create_task(self._client.fetch_order(OrderKind.REQUESTS)),
        ]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            # First failure aborts the cycle and cancels the remaining calls
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _run_cycle(self) -> bool:
        """
        One coordinated round: three concurrent reads, change detection, store update.
        Returns True when a change was detected against an already-populated store.
        """
        try:
            self._store.begin_update()
        except ConcurrencyBusyError:
            logger.debug("event=cycle_skipped reason=cycle_in_flight")
            return False

        generation = self._generation
        try:
            try:
                seats, speaker_order, request_order = await self._fetch_all()
            finally:
                self._store.end_update()
        except (UpstreamError, DecodeError) as e:
            if generation != self._generation:
                logger.debug(f"event=cycle_discarded reason=clock_stopped error='{e}'")
                return False
            self._last_error = str(e)
            logger.warning(f"event=fetch_failed mode={self._mode.value} reason='{e}'")
            await self._publish("fetch_failed", error=str(e))
            return False

        if generation != self._generation:
            logger.debug("event=cycle_discarded reason=clock_stopped")
            return False

        candidate = Snapshot(
            seats=tuple(seats),
            speaker_order=tuple(speaker_order),
            request_order=tuple(request_order),
            last_updated=self._now(),
        )
        changed = self._store.is_populated and is_changed(self._store.snapshot, candidate)
        self._store.replace(candidate)
        self._last_error = None

        if changed:
            self._last_change_detected = candidate.last_updated
            logger.info(
                f"event=change_detected seats={len(candidate.seats)} "
                f"speakers={len(candidate.speaker_order)} requests={len(candidate.request_order)}"
            )
            await self._enter_burst("change_detected")
            await self._publish(
                "snapshot_changed",
                seats=len(candidate.seats),
                speakers=list(candidate.speaker_order),
                requests=list(candidate.request_order),
            )
        return changed

    async def _publish(self, event_type: str, **payload) -> None:
        await self.bus.publish(ClockEvent(event_type=event_type, payload=payload, generated_at=self._now()))

    # ==========================
    # COMMANDS
    # ==========================
    async def trigger_immediate_refresh(self, reason: str = "manual") -> ClockStatus:
        """
        Out-of-band refresh followed by Burst, whether or not anything changed.
        If a cycle is already in flight the fetch is skipped but Burst is still armed.
        A stop() that lands while the fetch is out leaves the clock in Baseline.
        """
        logger.info(f"event=trigger reason={reason}")
        generation = self._generation
        await self._run_cycle()
        if generation == self._generation:
            await self._enter_burst(reason)
        return self.get_status()

    async def update_seat(self, seat_number: int, microphone_on: bool, requesting_to_speak: bool) -> ClockStatus:
        # Seat existence is the caller's concern; upstream errors propagate untouched
        await self._client.push_seat_update(seat_number, microphone_on, requesting_to_speak)
        await self._publish(
            "seat_updated",
            seat_number=seat_number,
            microphone_on=microphone_on,
            requesting_to_speak=requesting_to_speak,
        )
        return await self.trigger_immediate_refresh("seat_update")

    # ==========================
    # READS
    # ==========================
    def is_cache_valid(self) -> bool:
        last_updated = self._store.snapshot.last_updated
        if last_updated is None:
            return False
        age_ms = (self._now() - last_updated).total_seconds() * 1000
        return age_ms < self.settings.CACHE_VALID_MS

    def get_snapshot(self) -> Snapshot:
        return self._store.snapshot.model_copy(update={"is_updating": self._store.is_updating})

    def get_status(self) -> ClockStatus:
        remaining_ms = 0
        if self._burst_deadline is not None:
            remaining_ms = max(0, int((self._burst_deadline - time.monotonic()) * 1000))
        return ClockStatus(
            mode=self._mode,
            interval_ms=self.interval_ms,
            last_updated=self._store.snapshot.last_updated,
            cache_valid=self.is_cache_valid(),
            last_change_detected=self._last_change_detected,
            last_error=self._last_error,
            is_running=self._running,
            burst_remaining_ms=remaining_ms,
        )
