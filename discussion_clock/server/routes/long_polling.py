"""
MODULE OVERVIEW:
Long-poll variant of the universal endpoint.

WHAT IS HAPPENING HERE:
Instead of asking "anything new?" every interval, a consumer can park a request here.
We subscribe a one-shot callback on the clock's event bus that sets an `asyncio.Event`
when the clock reports `snapshot_changed`. The request resumes on that signal or on
timeout, and either way answers with the full current payload.
"""
import asyncio
from fastapi import APIRouter, Depends, Query, Request
from loguru import logger

from discussion_clock.clock.engine import ResponsiveClock
from discussion_clock.server.dependencies import build_universal_payload, get_clock
from discussion_clock.shared.models import ClockEvent, WaitResponse

router = APIRouter()

@router.get("/universal/wait", response_model=WaitResponse)
async def wait_for_change(
    request: Request,
    timeout_s: float | None = Query(None, gt=0, description="Wait duration before timing out; defaults to LONG_POLL_TIMEOUT_S"),
    clock: ResponsiveClock = Depends(get_clock),
):
    if timeout_s is None:
        timeout_s = request.app.state.settings.LONG_POLL_TIMEOUT_S
    changed = asyncio.Event()

    async def on_event(event: ClockEvent) -> None:
        if event.event_type == "snapshot_changed":
            changed.set()

    clock.bus.subscribe(on_event)
    try:
        await asyncio.wait_for(changed.wait(), timeout=timeout_s)
        status = "changed"
    except asyncio.TimeoutError:
        status = "timeout"
    finally:
        clock.bus.unsubscribe(on_event)

    logger.debug(f"protocol=long_poll event=resume status={status}")
    return WaitResponse(status=status, **build_universal_payload(clock))
