"""
Slot availability rules for the three rooms of the practice.

Only confirmed bookings are passed in here. The same function backs the
booking-page grid, the checkout validation and the webhook re-check, so the
rule set lives in exactly one place.
"""
from typing import Iterable, List, Tuple

from models.booking import ROOMS, SLOTS
from utils.errors import ValidationError

FULLDAY = "fullday"
LARGE = "large"


def _pair(booking) -> Tuple[str, str]:
    if isinstance(booking, (tuple, list)):
        return booking[0], booking[1]
    if isinstance(booking, dict):
        return booking["slot"], booking["room"]
    return booking.slot, booking.room


def validate_slot_room(slot: str, room: str) -> None:
    if slot not in SLOTS:
        raise ValidationError(f"Unknown slot '{slot}'", allowed_slots=list(SLOTS))
    if room not in ROOMS:
        raise ValidationError(f"Unknown room '{room}'", allowed_rooms=list(ROOMS))


def is_available(confirmed: Iterable, slot: str, room: str) -> bool:
    """
    Returns True when (slot, room) can still be booked on a date whose
    confirmed bookings are `confirmed`.

    `confirmed` items may be (slot, room) tuples, dicts or Booking rows.
    """
    validate_slot_room(slot, room)
    taken: List[Tuple[str, str]] = [_pair(b) for b in confirmed]

    if slot == FULLDAY:
        if room == LARGE:
            # the large room all day needs the whole floor
            return len(taken) == 0
        room_booked = any(r == room for _, r in taken)
        large_booked = any(r == LARGE for _, r in taken)
        return not room_booked and not large_booked

    if any(s == FULLDAY and r == room for s, r in taken):
        return False
    if any(s == FULLDAY and r == LARGE for s, r in taken):
        return False

    same_slot = [r for s, r in taken if s == slot]
    if room == LARGE:
        return len(same_slot) == 0
    return room not in same_slot and LARGE not in same_slot


def day_availability(confirmed: Iterable) -> dict:
    """Full {slot: {room: bool}} grid for one date."""
    taken = [_pair(b) for b in confirmed]
    return {
        slot: {room: is_available(taken, slot, room) for room in ROOMS}
        for slot in SLOTS
    }
