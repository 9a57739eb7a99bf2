"""
Error taxonomy shared by the upstream client, the clock and the HTTP facade.
"""


class ClockError(Exception):
    """Base class for every error raised by the discussion clock."""


class UpstreamError(ClockError):
    """The upstream API answered with a non-2xx status or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeError(ClockError):
    """The upstream payload did not match the expected schema."""


class ConcurrencyBusyError(ClockError):
    """A fetch cycle is already in flight. Internal to the clock, never surfaced."""
