"""
MODULE OVERVIEW:
The HTTP client for our own facade, used by the CLI and the live dashboard.

WHAT IS HAPPENING HERE:
We use HTTPX to short-poll `/api/universal`. The facade tells us how fast the clock is
currently ticking through the `X-Poll-Interval` header, so the dashboard speeds up while
the clock is in Burst and relaxes again at Baseline without any local timing logic.
Network errors back off exponentially with jitter; a dashboard should ride out a
restart of the facade instead of dying.
"""
import asyncio
import random
from datetime import datetime, timezone
from typing import Awaitable, Callable

import httpx
from loguru import logger
from pydantic import ValidationError

from discussion_clock.shared.models import ClockStatus, SeatUpdateResponse, UniversalResponse


def make_client_stats() -> dict:
    return {
        "payloads_received": 0,
        "errors": 0,
        "connected_at": datetime.now(timezone.utc).isoformat(),
    }


class FacadeClient:
    def __init__(self, server_base_url: str, http_client: httpx.AsyncClient | None = None):
        self.server_base_url = server_base_url.rstrip('/')
        self.client = http_client or httpx.AsyncClient(timeout=10.0)
        self.stats = make_client_stats()
        self.on_payload_callback: Callable[[UniversalResponse], Awaitable[None]] | None = None
        self.on_status_change_callback: Callable[[str], Awaitable[None]] | None = None

    def set_callbacks(self, on_payload, on_status_change):
        self.on_payload_callback = on_payload
        self.on_status_change_callback = on_status_change

    async def _emit_status(self, status: str):
        if self.on_status_change_callback:
            await self.on_status_change_callback(status)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def fetch_universal(self) -> tuple[UniversalResponse, float]:
        """Returns the payload and the interval (seconds) the facade asked us to poll at."""
        response = await self.client.get(f"{self.server_base_url}/api/universal")
        response.raise_for_status()
        try:
            payload = UniversalResponse.model_validate(response.json())
            interval_ms = int(response.headers.get("X-Poll-Interval", payload.clock_status.interval_ms))
        except (ValueError, ValidationError) as e:
            # A facade speaking another payload shape is treated like a transport failure
            raise httpx.HTTPError(f"Unreadable facade payload: {e}") from e
        return payload, max(0.05, interval_ms / 1000.0)

    async def trigger(self, action: str | None = None) -> ClockStatus:
        response = await self.client.post(f"{self.server_base_url}/api/trigger", json={"action": action})
        response.raise_for_status()
        return ClockStatus.model_validate(response.json())

    async def update_seat(self, seat_number: int, microphone_on: bool, requesting_to_speak: bool) -> SeatUpdateResponse:
        response = await self.client.put(
            f"{self.server_base_url}/api/seat/{seat_number}",
            json={"microphoneOn": microphone_on, "requestingToSpeak": requesting_to_speak},
        )
        response.raise_for_status()
        return SeatUpdateResponse.model_validate(response.json())

    async def run(self, duration_s: float = 60.0, base_delay_s: float = 0.5, max_delay_s: float = 8.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration_s
        attempt = 0
        while loop.time() < deadline:
            try:
                payload, wait_s = await self.fetch_universal()
                attempt = 0
                self.stats["payloads_received"] += 1
                await self._emit_status(f"ACTIVE ({payload.clock_status.mode.value})")
                if self.on_payload_callback:
                    await self.on_payload_callback(payload)
            except httpx.HTTPError as e:
                attempt += 1
                self.stats["errors"] += 1
                wait_s = min(base_delay_s * (2 ** attempt), max_delay_s)
                wait_s += random.uniform(0, wait_s * 0.1)
                logger.warning(f"client=facade attempt={attempt} delay={wait_s:.2f}s error='{e}'")
                await self._emit_status("RECONNECTING")
            await asyncio.sleep(min(wait_s, max(0.0, deadline - loop.time())))
        await self._emit_status("CLOSED")
