import asyncio
import time

import pytest

from discussion_clock.clock.engine import ResponsiveClock
from discussion_clock.shared.config import Settings
from discussion_clock.shared.models import OrderKind, Seat


def make_seat(number: int, mic: bool = False, req: bool = False, role: str = "delegate") -> Seat:
    return Seat(seat_number=number, microphone_on=mic, requesting_to_speak=req, role=role)


async def wait_for(predicate, timeout: float = 1.0, step: float = 0.005) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(step)


class FakeUpstream:
    """In-memory discussion system with the same surface as DiscussionApiClient."""

    def __init__(self, seats=None, speakers=None, requests=None):
        self.seats = {s.seat_number: s for s in seats or []}
        self.speakers = list(speakers or [])
        self.requests = list(requests or [])
        self.seat_calls = 0
        self.order_calls = []
        self.pushed = []
        self.fail_with: Exception | None = None
        self.push_fail_with: Exception | None = None
        self.order_fail_with: Exception | None = None
        self.seats_cancelled = 0
        # When set (and cleared), fetch_seats blocks until the test releases it
        self.gate: asyncio.Event | None = None

    async def fetch_seats(self):
        self.seat_calls += 1
        if self.gate is not None:
            try:
                await self.gate.wait()
            except asyncio.CancelledError:
                self.seats_cancelled += 1
                raise
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.seats.values())

    async def fetch_order(self, kind: OrderKind):
        self.order_calls.append(kind)
        if self.order_fail_with is not None:
            raise self.order_fail_with
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.speakers if kind is OrderKind.SPEAKERS else self.requests)

    async def push_seat_update(self, seat_number: int, microphone_on: bool, requesting_to_speak: bool):
        if self.push_fail_with is not None:
            raise self.push_fail_with
        self.pushed.append((seat_number, microphone_on, requesting_to_speak))
        role = self.seats[seat_number].role if seat_number in self.seats else ""
        self.seats[seat_number] = make_seat(seat_number, microphone_on, requesting_to_speak, role)
        self._sync_order(self.speakers, seat_number, microphone_on)
        self._sync_order(self.requests, seat_number, requesting_to_speak and not microphone_on)

    @staticmethod
    def _sync_order(order: list, seat_number: int, active: bool) -> None:
        if active and seat_number not in order:
            order.append(seat_number)
        elif not active and seat_number in order:
            order.remove(seat_number)

    def set_seat(self, number: int, mic: bool = False, req: bool = False, role: str | None = None) -> None:
        current = self.seats.get(number)
        self.seats[number] = make_seat(number, mic, req, role if role is not None else (current.role if current else ""))
        self._sync_order(self.speakers, number, mic)
        self._sync_order(self.requests, number, req and not mic)


@pytest.fixture
def fast_settings():
    return Settings(
        _env_file=None,
        API_BASE_URL="http://upstream.test",
        API_BEARER_TOKEN="secret-token",
        BASELINE_INTERVAL_MS=200,
        BURST_INTERVAL_MS=20,
        BURST_DURATION_MS=300,
        CACHE_VALID_MS=150,
        LONG_POLL_TIMEOUT_S=2.0,
    )


@pytest.fixture
def upstream():
    return FakeUpstream(seats=[make_seat(1), make_seat(2, role="chair")])


@pytest.fixture
async def clock(upstream, fast_settings):
    engine = ResponsiveClock(upstream, fast_settings)
    yield engine
    await engine.stop()
