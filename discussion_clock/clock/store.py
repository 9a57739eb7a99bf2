"""
MODULE OVERVIEW:
The Snapshot Store: the single cached view of upstream state plus its in-flight guard.

WHAT IS HAPPENING HERE:
The store holds exactly one frozen `Snapshot` and one boolean. The boolean is the only
concurrency guard the clock has: `begin_update()` refuses to open a second fetch cycle
while one is outstanding, because upstream responses are not guaranteed to land in
request order and a slow, stale answer must never overwrite a newer one.
Only the clock writes here. Everyone else reads through the clock.
"""

from discussion_clock.shared.errors import ConcurrencyBusyError
from discussion_clock.shared.models import Snapshot


class SnapshotStore:
    def __init__(self):
        self._snapshot = Snapshot()
        self._is_updating = False

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def is_updating(self) -> bool:
        return self._is_updating

    @property
    def is_populated(self) -> bool:
        return self._snapshot.last_updated is not None

    def begin_update(self) -> None:
        if self._is_updating:
            raise ConcurrencyBusyError("A fetch cycle is already in flight")
        self._is_updating = True

    def end_update(self) -> None:
        self._is_updating = False

    def replace(self, snapshot: Snapshot) -> None:
        # Wholesale replacement; the previous snapshot object is never mutated
        self._snapshot = snapshot
