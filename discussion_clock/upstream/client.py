"""
MODULE OVERVIEW:
The HTTP client for the upstream discussion-system API.

WHAT IS HAPPENING HERE:
We use HTTPX to issue the four calls the clock needs: seat list, speaker order,
request order, and the seat update. Every request carries the bearer token from
settings. Transport and status failures become `UpstreamError`; payloads that do not
match the schema become `DecodeError`.
No retry loop lives here; the clock's next tick is the retry.
"""
from typing import List

import httpx
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from discussion_clock.shared.config import Settings, settings as default_settings
from discussion_clock.shared.errors import DecodeError, UpstreamError
from discussion_clock.shared.models import OrderKind, Seat

_SEATS = TypeAdapter(List[Seat])
_ORDER = TypeAdapter(List[int])


class DiscussionApiClient:
    def __init__(self, settings: Settings | None = None, http_client: httpx.AsyncClient | None = None):
        self.settings = settings or default_settings
        self.base_url = self.settings.API_BASE_URL.rstrip('/')
        self.client = http_client or httpx.AsyncClient(timeout=self.settings.REQUEST_TIMEOUT_S)
        self._endpoints = {
            OrderKind.SPEAKERS: self.settings.SPEAKERS_ENDPOINT,
            OrderKind.REQUESTS: self.settings.REQUESTS_ENDPOINT,
        }

    @property
    def headers(self) -> dict:
        return {
            "accept": "application/json",
            "Authorization": f"Bearer {self.settings.API_BEARER_TOKEN}",
        }

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.request(method, url, headers=self.headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(f"upstream={path} method={method} event=error status={status}")
            raise UpstreamError(f"{method} {path} failed with HTTP {status}", status_code=status) from e
        except httpx.HTTPError as e:
            logger.warning(f"upstream={path} method={method} event=error reason='{e}'")
            raise UpstreamError(f"{method} {path} failed: {e}") from e
        return response

    async def _get_json(self, path: str, adapter: TypeAdapter):
        response = await self._request("GET", path)
        try:
            return adapter.validate_python(response.json())
        except (ValueError, ValidationError) as e:
            # ValueError covers both invalid JSON and a body that is not UTF-8
            raise DecodeError(f"Malformed payload from {path}: {e}") from e

    async def fetch_seats(self) -> List[Seat]:
        seats = await self._get_json(self.settings.SEATS_ENDPOINT, _SEATS)
        numbers = [s.seat_number for s in seats]
        if len(numbers) != len(set(numbers)):
            raise DecodeError(f"Duplicate seat numbers from {self.settings.SEATS_ENDPOINT}")
        return seats

    async def fetch_order(self, kind: OrderKind) -> List[int]:
        return await self._get_json(self._endpoints[kind], _ORDER)

    async def push_seat_update(self, seat_number: int, microphone_on: bool, requesting_to_speak: bool) -> None:
        path = f"{self.settings.SEAT_UPDATE_ENDPOINT.rstrip('/')}/{seat_number}"
        await self._request(
            "PUT",
            path,
            json={"microphoneOn": microphone_on, "requestingToSpeak": requesting_to_speak},
        )
        logger.info(f"seat={seat_number} event=updated microphone_on={microphone_on} requesting={requesting_to_speak}")
