"""Wall-clock parsing and shop-local to UTC conversion."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from salonbook.logic.errors import InvalidRequest

DateLike = Union[date, str]
TimeLike = Union[time, str]


def parse_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise InvalidRequest(f"Invalid date: {value!r}, expected YYYY-MM-DD")


def parse_time(value: TimeLike) -> time:
    """Parse ``HH:mm`` or ``HH:mm:ss``."""
    if isinstance(value, time):
        return value
    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise InvalidRequest(f"Invalid time: {value!r}, expected HH:mm[:ss]")
    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    try:
        return time(hour, minute, second)
    except ValueError:
        raise InvalidRequest(f"Invalid time: {value!r}")


def at(day: DateLike, value: TimeLike) -> datetime:
    """Anchor a wall-clock time on a date (naive, shop-local)."""
    return datetime.combine(parse_date(day), parse_time(value))


def add_minutes(moment: datetime, minutes: int) -> datetime:
    return moment + timedelta(minutes=minutes)


def format_hhmm(value: Union[datetime, time]) -> str:
    return value.strftime("%H:%M")


def format_display(value: Union[datetime, time]) -> str:
    """12-hour clock, e.g. ``9:30 AM``."""
    return value.strftime("%I:%M %p").lstrip("0")


def minutes_between(start: datetime, end: datetime) -> int:
    return round((end - start).total_seconds() / 60)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidRequest(f"Unknown time zone: {name!r}")


def _utc_offset(instant: datetime, zone: ZoneInfo) -> timedelta:
    # civil parts of the instant in the zone, re-read as if they were UTC
    local = instant.astimezone(zone)
    as_if_utc = datetime(
        local.year, local.month, local.day, local.hour, local.minute, local.second, tzinfo=timezone.utc
    )
    return as_if_utc - instant


def zoned_local_to_utc(day: DateLike, value: TimeLike, tz_name: str) -> datetime:
    """Convert a shop-local wall time to an aware UTC instant.

    The wall time is first read as UTC and shifted by the zone's offset at that
    instant. If the shifted instant lands on the other side of a DST change the
    offset is re-read there and applied instead.
    """
    zone = get_zone(tz_name)
    baseline = at(day, value).replace(tzinfo=timezone.utc)

    offset = _utc_offset(baseline, zone)
    result = baseline - offset

    second_offset = _utc_offset(result, zone)
    if second_offset != offset:
        result = baseline - second_offset
    return result


def utc_to_zoned_local(instant: datetime, tz_name: str) -> datetime:
    return as_utc(instant).astimezone(get_zone(tz_name))
