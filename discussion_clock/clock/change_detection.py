from discussion_clock.shared.models import Snapshot


def is_changed(prior: Snapshot, candidate: Snapshot) -> bool:
    """
    Decide whether `candidate` differs meaningfully from `prior`.

    Seats are matched by seat number, never by list position. Only the microphone and
    request flags are compared per seat; a role change alone is not activity.
    """
    if len(prior.seats) != len(candidate.seats):
        return True
    if len(prior.speaker_order) != len(candidate.speaker_order):
        return True
    if len(prior.request_order) != len(candidate.request_order):
        return True

    known = {seat.seat_number: seat for seat in prior.seats}
    for seat in candidate.seats:
        previous = known.get(seat.seat_number)
        if previous is None:
            return True
        if previous.microphone_on != seat.microphone_on:
            return True
        if previous.requesting_to_speak != seat.requesting_to_speak:
            return True
    return False
