"""Expansion of a weekly shift pattern into dated availability rows."""

from dataclasses import dataclass
from datetime import date, time, timedelta
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from salonbook.logic.errors import InvalidRequest
from salonbook.logic.timeutils import DateLike, TimeLike, parse_date, parse_time


class Weekday(str, Enum):
    monday = "monday"
    tuesday = "tuesday"
    wednesday = "wednesday"
    thursday = "thursday"
    friday = "friday"
    saturday = "saturday"
    sunday = "sunday"

    @property
    def index(self) -> int:
        """Python weekday number, Monday == 0."""
        return list(Weekday).index(self)

    @classmethod
    def of(cls, day: date) -> "Weekday":
        return list(cls)[day.weekday()]


class Cadence(str, Enum):
    every_week = "everyWeek"
    every_two_weeks = "everyTwoWeeks"
    # a "month" is 28 days, not a calendar month
    every_month = "everyMonth"


CADENCE_STEPS = {
    Cadence.every_week: timedelta(weeks=1),
    Cadence.every_two_weeks: timedelta(weeks=2),
    Cadence.every_month: timedelta(days=28),
}


@dataclass(frozen=True)
class SlotTemplate:
    start: time
    end: time

    @classmethod
    def of(cls, start: TimeLike, end: TimeLike) -> "SlotTemplate":
        template = cls(parse_time(start), parse_time(end))
        if template.end <= template.start:
            raise InvalidRequest(f"Slot end {end} must be after start {start}")
        return template


@dataclass(frozen=True)
class WindowRow:
    date: date
    start_time: time
    end_time: time


TemplateInput = Union[SlotTemplate, Tuple[TimeLike, TimeLike]]


def default_end_date(start_date: date, weeks: int = 12) -> date:
    return start_date + timedelta(weeks=weeks)


def _coerce_cadence(cadence) -> Cadence:
    try:
        return Cadence(cadence)
    except ValueError:
        raise InvalidRequest(f"Unknown schedule type: {cadence!r}")


def _coerce_weekday(weekday) -> Weekday:
    try:
        return Weekday(weekday)
    except ValueError:
        raise InvalidRequest(f"Unknown day of week: {weekday!r}")


def _coerce_templates(templates: Sequence[TemplateInput]) -> List[SlotTemplate]:
    out = []
    for t in templates:
        if isinstance(t, SlotTemplate):
            out.append(t)
        else:
            out.append(SlotTemplate.of(*t))
    return out


def first_occurrence(start_date: date, weekday: Weekday) -> date:
    return start_date + timedelta(days=(weekday.index - start_date.weekday()) % 7)


def enabled_weekdays(weekday_templates: Mapping) -> List[Weekday]:
    """A weekday is enabled iff it has at least one slot template."""
    return [_coerce_weekday(day) for day, templates in weekday_templates.items() if templates]


def expand_recurrence(
    start_date: DateLike,
    end_date: Optional[DateLike],
    cadence,
    weekday_templates: Mapping[Union[Weekday, str], Sequence[TemplateInput]],
    default_weeks: int = 12,
) -> List[WindowRow]:
    start = parse_date(start_date)
    end = parse_date(end_date) if end_date is not None else default_end_date(start, default_weeks)
    if end < start:
        raise InvalidRequest("end_date must be on or after start_date")
    step = CADENCE_STEPS[_coerce_cadence(cadence)]

    rows: List[WindowRow] = []
    for day_name, raw_templates in weekday_templates.items():
        weekday = _coerce_weekday(day_name)
        templates = _coerce_templates(raw_templates or [])
        if not templates:
            continue
        current = first_occurrence(start, weekday)
        while current <= end:
            for t in templates:
                rows.append(WindowRow(current, t.start, t.end))
            current += step
    return rows


def infer_cadence(dates: Iterable[date]) -> Cadence:
    """Guess the cadence a set of stored rows was generated with."""
    distinct = sorted(set(dates), reverse=True)
    if len(distinct) < 2:
        return Cadence.every_week
    gaps = [(distinct[i - 1] - distinct[i]).days for i in range(1, len(distinct))]
    avg_gap = sum(gaps) / len(gaps)
    if 10 < avg_gap < 17:
        return Cadence.every_two_weeks
    if avg_gap > 25:
        return Cadence.every_month
    return Cadence.every_week
