"""
MODULE OVERVIEW:
The universal read endpoint: everything a panel needs in one short poll.

WHAT IS HAPPENING HERE:
This never waits on the upstream API. It reads the clock's current snapshot and returns
immediately, plus an `X-Poll-Interval` header carrying the clock's current cadence so a
well-behaved consumer can poll at the same rhythm the clock does.
"""
from fastapi import APIRouter, Depends, Response

from discussion_clock.clock.engine import ResponsiveClock
from discussion_clock.server.dependencies import build_universal_payload, get_clock
from discussion_clock.shared.models import UniversalResponse

router = APIRouter()

@router.get("/universal", response_model=UniversalResponse)
async def universal(response: Response, clock: ResponsiveClock = Depends(get_clock)):
    response.headers["X-Poll-Interval"] = str(clock.interval_ms)
    return UniversalResponse(**build_universal_payload(clock))
