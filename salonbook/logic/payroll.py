"""Shift hours, break accounting and pay.

Breaks are stored as a list of ``{"start", "end", "duration_minutes"}`` dicts
with ISO-8601 instants; ``end`` is ``None`` for the currently open break.
"""

from dataclasses import asdict, dataclass
from datetime import date, datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from salonbook.logic.errors import InvalidTransition
from salonbook.logic.timeutils import as_utc, minutes_between, parse_date

PAID_BREAK_MINUTES = 20


class DayType(str, Enum):
    weekday = "weekday"
    saturday = "saturday"
    sunday = "sunday"
    public_holiday = "public_holiday"


@dataclass(frozen=True)
class ShiftTotals:
    gross_hours: float
    net_hours: float
    total_break_minutes: int
    paid_break_minutes: int
    unpaid_break_minutes: int
    day_type: DayType
    hourly_rate: float
    total_pay: float

    def as_dict(self) -> dict:
        d = asdict(self)
        d["day_type"] = self.day_type.value
        return d


def resolve_day_type(day, is_public_holiday: Callable[[date], bool]) -> DayType:
    day = parse_date(day)
    # a holiday wins over the day of week
    if is_public_holiday(day):
        return DayType.public_holiday
    weekday = day.weekday()
    if weekday == 6:
        return DayType.sunday
    if weekday == 5:
        return DayType.saturday
    return DayType.weekday


def _instant(value) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return as_utc(value)


def _iso(value: datetime) -> str:
    return as_utc(value).isoformat()


def total_break_minutes(breaks: Optional[Iterable[dict]]) -> int:
    """Only closed breaks count."""
    return sum(int(b.get("duration_minutes") or 0) for b in (breaks or []) if b.get("end"))


def split_breaks(total_minutes: int, paid_allowance: int = PAID_BREAK_MINUTES) -> Tuple[int, int]:
    paid = min(total_minutes, paid_allowance)
    unpaid = max(total_minutes - paid_allowance, 0)
    return paid, unpaid


def open_break_index(breaks: List[dict]) -> Optional[int]:
    for i, b in enumerate(breaks):
        if not b.get("end"):
            return i
    return None


def start_break(breaks: Optional[List[dict]], now: datetime) -> List[dict]:
    updated = [dict(b) for b in (breaks or [])]
    if open_break_index(updated) is not None:
        raise InvalidTransition("There is already an active break")
    updated.append({"start": _iso(now), "end": None, "duration_minutes": 0})
    return updated


def _close(entry: dict, now: datetime) -> dict:
    closed = dict(entry)
    closed["end"] = _iso(now)
    closed["duration_minutes"] = minutes_between(_instant(entry["start"]), as_utc(now))
    return closed


def end_break(breaks: Optional[List[dict]], now: datetime) -> List[dict]:
    updated = [dict(b) for b in (breaks or [])]
    idx = open_break_index(updated)
    if idx is None:
        raise InvalidTransition("No active break to end")
    updated[idx] = _close(updated[idx], now)
    return updated


def close_open_break(breaks: Optional[List[dict]], now: datetime) -> List[dict]:
    """Used on clock-out: never leave a dangling open break."""
    updated = [dict(b) for b in (breaks or [])]
    idx = open_break_index(updated)
    if idx is not None:
        updated[idx] = _close(updated[idx], now)
    return updated


def calculate_shift(
    shift,
    day_type_resolver: Callable[[date], DayType],
    rate_resolver: Callable[[DayType], float],
    now: datetime,
    paid_allowance: int = PAID_BREAK_MINUTES,
) -> ShiftTotals:
    """Totals for a shift; an active shift is measured up to ``now``."""
    start = _instant(shift.shift_start)
    end = _instant(shift.shift_end) if shift.shift_end else as_utc(now)

    breaks_total = total_break_minutes(shift.breaks)
    paid, unpaid = split_breaks(breaks_total, paid_allowance)

    gross_hours = (end - start).total_seconds() / 3600
    net_hours = gross_hours - unpaid / 60

    day_type = day_type_resolver(parse_date(shift.date))
    rate = float(rate_resolver(day_type) or 0)

    return ShiftTotals(
        gross_hours=gross_hours,
        net_hours=net_hours,
        total_break_minutes=breaks_total,
        paid_break_minutes=paid,
        unpaid_break_minutes=unpaid,
        day_type=day_type,
        hourly_rate=rate,
        total_pay=net_hours * rate,
    )


def empty_summary() -> Dict[str, float]:
    return {"total_hours": 0.0, "total_pay": 0.0, "days_worked": 0, "total_breaks": 0}


def add_to_summary(summary: Dict[str, float], totals: ShiftTotals) -> None:
    summary["total_hours"] += totals.net_hours
    summary["total_pay"] += totals.total_pay
    summary["days_worked"] += 1
    summary["total_breaks"] += totals.total_break_minutes


def summarize_timesheet(entries: Iterable[Tuple[object, Optional[ShiftTotals]]]) -> Tuple[dict, Dict[object, dict]]:
    """Overall and per-member summaries of ``(team_member_id, totals)`` pairs.

    Entries without totals (shifts still in progress) are left out entirely.
    """
    overall = empty_summary()
    by_member: Dict[object, dict] = {}
    for member_id, totals in entries:
        if totals is None:
            continue
        add_to_summary(overall, totals)
        add_to_summary(by_member.setdefault(member_id, empty_summary()), totals)
    return overall, by_member
