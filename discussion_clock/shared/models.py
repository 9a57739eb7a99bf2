"""
MODULE OVERVIEW:
Strictly typed data structures shared by the upstream client, the responsive clock,
the HTTP facade and the console client, powered by Pydantic v2.

WHAT IS HAPPENING HERE:
Python attributes are snake_case, but every wire boundary (the upstream discussion API
and our own facade) speaks camelCase. The `CamelModel` base wires up that aliasing once
so each model only declares its fields.
Snapshots are frozen and hold tuples: a reader can never observe a half-written store.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class CadenceMode(str, Enum):
    BASELINE = "baseline"
    BURST = "burst"


class OrderKind(str, Enum):
    SPEAKERS = "speakers"
    REQUESTS = "requests"


# WHAT IS HAPPENING HERE:
# One physical microphone position. `seat_number` is the identity key; the position of a
# seat inside a list means nothing, ordering travels separately in the order lists.
class Seat(FrozenCamelModel):
    seat_number: int = Field(ge=1)
    microphone_on: bool
    requesting_to_speak: bool
    role: str = ""


class Snapshot(FrozenCamelModel):
    seats: tuple[Seat, ...] = ()
    speaker_order: tuple[int, ...] = ()
    request_order: tuple[int, ...] = ()
    last_updated: datetime | None = None
    is_updating: bool = False


class ClockStatus(CamelModel):
    mode: CadenceMode
    interval_ms: int
    last_updated: datetime | None
    cache_valid: bool
    last_change_detected: datetime | None
    last_error: str | None = None
    is_running: bool = False
    burst_remaining_ms: int = 0


class ClockEvent(CamelModel):
    event_type: Literal["snapshot_changed", "mode_changed", "fetch_failed", "seat_updated"]
    payload: dict[str, Any] = Field(default_factory=dict)
    generated_at: datetime
    source: str = "clock"


class SeatStats(CamelModel):
    total: int
    speaking: int
    requesting: int
    idle: int


# Facade request / response bodies

class SeatUpdateRequest(CamelModel):
    microphone_on: bool
    requesting_to_speak: bool


class TriggerRequest(CamelModel):
    action: str | None = None


class SeatUpdateResponse(CamelModel):
    success: bool
    clock_status: ClockStatus


class UniversalResponse(CamelModel):
    seats: list[Seat]
    speaker_order: list[int]
    request_order: list[int]
    last_updated: datetime | None
    cache_valid: bool
    clock_status: ClockStatus


class WaitResponse(UniversalResponse):
    status: Literal["changed", "timeout"]


class QueuesResponse(CamelModel):
    speaking: list[Seat]
    requesting: list[Seat]
