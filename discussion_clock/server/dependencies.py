from fastapi import Request

from discussion_clock.clock.engine import ResponsiveClock


def get_clock(request: Request) -> ResponsiveClock:
    """The clock lives on app.state; routes never reach for a module-level instance."""
    return request.app.state.clock


def build_universal_payload(clock: ResponsiveClock) -> dict:
    snapshot = clock.get_snapshot()
    return {
        "seats": list(snapshot.seats),
        "speaker_order": list(snapshot.speaker_order),
        "request_order": list(snapshot.request_order),
        "last_updated": snapshot.last_updated,
        "cache_valid": clock.is_cache_valid(),
        "clock_status": clock.get_status(),
    }
