"""
MODULE OVERVIEW:
Response stamping for the facade.
Where it fits: Middleware runs on *every* HTTP request, wrapping our endpoints.

WHAT IS HAPPENING HERE:
Each response carries two headers:
  - `X-Process-Time-Ms`: server-side cost, so a dashboard can tell it apart from network latency.
  - `X-Clock-Mode`: the cadence the clock was in when the response left, so any consumer
    (not only the universal endpoint) can see whether the system is in Burst.
The universal endpoints are polled many times a second during Burst, so they are stamped
but not logged.
"""

import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger

QUIET_PATHS = ("/api/universal", "/health")

class ClockHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.2f}"
        clock = getattr(request.app.state, "clock", None)
        if clock is not None:
            response.headers["X-Clock-Mode"] = clock.mode.value

        if request.url.path.startswith(QUIET_PATHS):
            return response
        logger.debug(
            f"http={request.method} path={request.url.path} status={response.status_code} "
            f"elapsed_ms={elapsed_ms:.2f}"
        )
        return response
