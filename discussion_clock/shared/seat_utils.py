from typing import Iterable, List, Sequence

from .models import Seat, SeatStats, Snapshot

SPEAKING, REQUESTING, IDLE = 3, 2, 1


def seat_priority(seat: Seat) -> int:
    if seat.microphone_on:
        return SPEAKING
    if seat.requesting_to_speak:
        return REQUESTING
    return IDLE


def _order_index(order: Sequence[int]) -> dict[int, int]:
    return {seat_number: idx for idx, seat_number in enumerate(order)}


def sort_seats_by_priority(
    seats: Iterable[Seat],
    speaker_order: Sequence[int],
    request_order: Sequence[int],
) -> List[Seat]:
    """
    Speaking seats first, then requesting, then idle.
    Within speaking and requesting the upstream order lists decide (first pressed first);
    seats missing from the relevant list, and idle seats, fall back to seat number.
    Returns a new list, the input is left untouched.
    """
    speakers = _order_index(speaker_order)
    requests = _order_index(request_order)
    missing = len(speakers) + len(requests)

    def key(seat: Seat):
        priority = seat_priority(seat)
        if priority == SPEAKING:
            position = speakers.get(seat.seat_number, missing)
        elif priority == REQUESTING:
            position = requests.get(seat.seat_number, missing)
        else:
            position = 0
        return (-priority, position, seat.seat_number)

    return sorted(seats, key=key)


def speaking_queue(snapshot: Snapshot) -> List[Seat]:
    ordered = sort_seats_by_priority(snapshot.seats, snapshot.speaker_order, snapshot.request_order)
    return [s for s in ordered if seat_priority(s) == SPEAKING]


def requesting_queue(snapshot: Snapshot) -> List[Seat]:
    ordered = sort_seats_by_priority(snapshot.seats, snapshot.speaker_order, snapshot.request_order)
    return [s for s in ordered if seat_priority(s) == REQUESTING]


def calculate_seat_stats(seats: Sequence[Seat]) -> SeatStats:
    priorities = [seat_priority(s) for s in seats]
    return SeatStats(
        total=len(seats),
        speaking=priorities.count(SPEAKING),
        requesting=priorities.count(REQUESTING),
        idle=priorities.count(IDLE),
    )
