"""Double-booking detection between a candidate window and existing bookings."""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Iterable, List, Optional, Tuple

from salonbook.logic.errors import BookingConflict
from salonbook.logic.timeutils import at

BLOCKING_STATUSES = frozenset({"confirmed", "completed"})


@dataclass(frozen=True)
class Candidate:
    team_member_id: int
    date: date
    start: time
    end: time

    def interval(self) -> Tuple[datetime, datetime]:
        return at(self.date, self.start), at(self.date, self.end)


@dataclass(frozen=True)
class ConflictResult:
    conflict: bool
    conflicting_booking_numbers: List[str] = field(default_factory=list)


def overlaps(c_start: datetime, c_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # the start-equals-start test catches zero-width windows the interval test misses
    return (c_start < b_end and c_end > b_start) or c_start == b_start


def is_blocking(booking) -> bool:
    return booking.status in BLOCKING_STATUSES


def booking_interval(booking) -> Tuple[datetime, datetime]:
    return at(booking.booking_date, booking.start_time), at(booking.booking_date, booking.end_time)


def has_conflict(
    candidate: Candidate,
    existing_bookings: Iterable,
    exclude_booking_id: Optional[int] = None,
) -> ConflictResult:
    c_start, c_end = candidate.interval()
    numbers = []
    for b in existing_bookings:
        if exclude_booking_id is not None and b.id == exclude_booking_id:
            continue
        if b.team_member_id != candidate.team_member_id or not is_blocking(b):
            continue
        b_start, b_end = booking_interval(b)
        if overlaps(c_start, c_end, b_start, b_end):
            numbers.append(b.booking_number)
    return ConflictResult(conflict=bool(numbers), conflicting_booking_numbers=numbers)


def ensure_no_conflict(
    candidate: Candidate,
    existing_bookings: Iterable,
    exclude_booking_id: Optional[int] = None,
) -> None:
    result = has_conflict(candidate, existing_bookings, exclude_booking_id)
    if result.conflict:
        raise BookingConflict(result.conflicting_booking_numbers)
