"""
MODULE OVERVIEW:
This module provides the in-process event bus the responsive clock announces itself on.

WHAT IS HAPPENING HERE:
The clock should not know who is listening. Long-poll requests, dashboards and tests
subscribe here; the clock publishes `snapshot_changed`, `mode_changed`, `fetch_failed`
and `seat_updated` events. One misbehaving subscriber must never stop the others from
hearing about a change, so publish isolates each callback.
"""

from typing import Callable, Awaitable, List
from loguru import logger
from .models import ClockEvent

Subscriber = Callable[[ClockEvent], Awaitable[None]]

class ClockEventBus:
    """
    A minimal pub/sub bus decoupling the clock (publisher) from its observers.
    """
    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber):
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: ClockEvent):
        # Iterate over a copy: a subscriber may unsubscribe itself while being notified
        for sub in list(self._subscribers):
            try:
                await sub(event)
            except Exception as e:
                logger.error(f"event={event.event_type} reason='subscriber failed: {e}'")
