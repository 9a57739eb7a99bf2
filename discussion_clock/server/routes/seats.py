"""
MODULE OVERVIEW:
Seat command and derived-view routes.

WHAT IS HAPPENING HERE:
`PUT /seat/{n}` is the only write path. It forwards to the upstream API through the
clock, and the operator must know whether the physical microphone actually switched,
so an upstream failure surfaces as 502 instead of being absorbed.
The queue and stats routes are read-only views computed from the current snapshot.
"""
from fastapi import APIRouter, Depends, HTTPException, Path

from discussion_clock.clock.engine import ResponsiveClock
from discussion_clock.server.dependencies import get_clock
from discussion_clock.shared.errors import UpstreamError
from discussion_clock.shared.models import (
    QueuesResponse,
    SeatStats,
    SeatUpdateRequest,
    SeatUpdateResponse,
)
from discussion_clock.shared.seat_utils import calculate_seat_stats, requesting_queue, speaking_queue

router = APIRouter()

@router.put("/seat/{seat_number}", response_model=SeatUpdateResponse)
async def update_seat(
    body: SeatUpdateRequest,
    seat_number: int = Path(..., ge=1),
    clock: ResponsiveClock = Depends(get_clock),
):
    try:
        status = await clock.update_seat(seat_number, body.microphone_on, body.requesting_to_speak)
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return SeatUpdateResponse(success=True, clock_status=status)

@router.get("/queues", response_model=QueuesResponse)
async def queues(clock: ResponsiveClock = Depends(get_clock)):
    snapshot = clock.get_snapshot()
    return QueuesResponse(speaking=speaking_queue(snapshot), requesting=requesting_queue(snapshot))

@router.get("/stats", response_model=SeatStats)
async def stats(clock: ResponsiveClock = Depends(get_clock)):
    return calculate_seat_stats(clock.get_snapshot().seats)
