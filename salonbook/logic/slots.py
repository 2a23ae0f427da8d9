"""Turning coarse availability windows into bookable, duration-sized slots."""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from salonbook.logic.conflicts import booking_interval, is_blocking, overlaps
from salonbook.logic.errors import InvalidRequest
from salonbook.logic.timeutils import DateLike, add_minutes, at, format_display, format_hhmm, parse_date

SLOT_INTERVAL_MINUTES = 30
MODES = ("single", "any")


@dataclass(frozen=True)
class Slot:
    time: str
    end_time: str
    team_member_id: int
    shop_id: Optional[int] = None
    slot_id: Optional[str] = None

    @property
    def display_time(self) -> str:
        return format_display(datetime.strptime(self.time, "%H:%M"))

    @property
    def display_end_time(self) -> str:
        return format_display(datetime.strptime(self.end_time, "%H:%M"))


def _busy_intervals(team_member_id, bookings: Iterable, reservations: Iterable) -> list:
    busy = [booking_interval(b) for b in bookings if b.team_member_id == team_member_id and is_blocking(b)]
    busy.extend(
        (at(r.date, r.start_time), at(r.date, r.end_time))
        for r in reservations
        if r.team_member_id == team_member_id
    )
    return busy


def window_slots(day, window, duration_minutes: int, granularity_minutes: int, busy: Sequence) -> List[Slot]:
    start = at(day, window.start_time)
    end = at(day, window.end_time)
    cursor = start
    out = []
    # a slot ending exactly at the window end still fits
    while add_minutes(cursor, duration_minutes) <= end:
        slot_end = add_minutes(cursor, duration_minutes)
        if not any(overlaps(cursor, slot_end, b_start, b_end) for b_start, b_end in busy):
            out.append(
                Slot(
                    time=format_hhmm(cursor),
                    end_time=format_hhmm(slot_end),
                    team_member_id=window.team_member_id,
                    shop_id=getattr(window, "shop_id", None),
                    slot_id=f"{getattr(window, 'id', window.team_member_id)}_{cursor:%H%M}",
                )
            )
        cursor = add_minutes(cursor, granularity_minutes)
    return out


def generate_slots(
    day: DateLike,
    duration_minutes: int,
    windows: Iterable,
    blocking_bookings: Iterable = (),
    blocking_reservations: Iterable = (),
    granularity_minutes: int = SLOT_INTERVAL_MINUTES,
    mode: str = "single",
) -> List[Slot]:
    """Offerable slots for ``day``.

    ``windows`` are availability rows already filtered to the shop, date and
    ``is_available``. ``blocking_bookings`` may contain any status; only
    confirmed/completed ones block. ``blocking_reservations`` must already be
    limited to live holds owned by other sessions.

    In ``any`` mode a single representative is kept per start time, the first
    one found in window order.
    """
    if duration_minutes <= 0:
        raise InvalidRequest("Service duration must be a positive number of minutes")
    if granularity_minutes <= 0:
        raise InvalidRequest("Slot granularity must be a positive number of minutes")
    if mode not in MODES:
        raise InvalidRequest(f"Unknown mode: {mode!r}")

    day = parse_date(day)
    bookings = list(blocking_bookings)
    reservations = list(blocking_reservations)

    busy_by_member = {}
    slots: List[Slot] = []
    for window in windows:
        member = window.team_member_id
        if member not in busy_by_member:
            busy_by_member[member] = _busy_intervals(member, bookings, reservations)
        slots.extend(window_slots(day, window, duration_minutes, granularity_minutes, busy_by_member[member]))

    if mode == "any":
        seen = set()
        unique = []
        for slot in slots:
            if slot.time not in seen:
                seen.add(slot.time)
                unique.append(slot)
        slots = unique

    # fixed-width HH:MM sorts correctly as text
    return sorted(slots, key=lambda s: s.time)
