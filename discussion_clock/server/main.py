"""
MODULE OVERVIEW:
The FastAPI application factory for the discussion clock facade.

WHAT IS HAPPENING HERE:
We use a `lifespan` context manager. On startup it builds the upstream client and the
responsive clock (unless a prebuilt clock was handed in, as the tests do) and starts the
clock, which performs its first fetch before the server accepts traffic.
On shutdown it stops the clock and closes the upstream HTTP client it owns.
The clock is stored on `app.state`, not in a module-level global.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from discussion_clock.clock.engine import ResponsiveClock
from discussion_clock.server.middleware import ClockHeadersMiddleware
from discussion_clock.server.routes import long_polling, seats, trigger, universal
from discussion_clock.shared.config import Settings, settings as default_settings
from discussion_clock.upstream.client import DiscussionApiClient


def create_app(settings: Settings | None = None, clock: ResponsiveClock | None = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # STARTUP
        upstream = None
        active_clock = clock
        if active_clock is None:
            upstream = DiscussionApiClient(settings)
            active_clock = ResponsiveClock(upstream, settings)
        app.state.clock = active_clock

        logger.info(f"Discussion clock facade starting, upstream={settings.API_BASE_URL}")
        await active_clock.start()

        yield

        # SHUTDOWN
        logger.info("Facade shutting down. Stopping clock...")
        await active_clock.stop()
        if upstream is not None:
            await upstream.aclose()
        logger.info("Shutdown complete.")

    app = FastAPI(
        title="Discussion Clock",
        description="Adaptive polling cache in front of a discussion microphone system",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(ClockHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(universal.router, prefix="/api", tags=["Snapshot"])
    app.include_router(long_polling.router, prefix="/api", tags=["Snapshot"])
    app.include_router(trigger.router, prefix="/api", tags=["Clock"])
    app.include_router(seats.router, prefix="/api", tags=["Seats"])

    @app.get("/health", tags=["Ops"])
    async def health_check():
        return {"status": "ok"}

    return app
