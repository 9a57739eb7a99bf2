from fastapi import APIRouter, Depends

from discussion_clock.clock.engine import ResponsiveClock
from discussion_clock.server.dependencies import get_clock
from discussion_clock.shared.models import ClockStatus, TriggerRequest

router = APIRouter()

@router.post("/trigger", response_model=ClockStatus)
async def trigger(body: TriggerRequest | None = None, clock: ResponsiveClock = Depends(get_clock)):
    """Force an immediate refresh and put the clock into Burst."""
    reason = (body.action if body else None) or "manual"
    return await clock.trigger_immediate_refresh(reason)
