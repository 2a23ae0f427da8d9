from datetime import date, datetime, time, timezone

import pytest

from salonbook.logic.errors import InvalidRequest
from salonbook.logic.timeutils import (
    at,
    format_display,
    minutes_between,
    parse_date,
    parse_time,
    utc_to_zoned_local,
    zoned_local_to_utc,
)


def utc(*parts):
    return datetime(*parts, tzinfo=timezone.utc)


def test_parse_time_accepts_minutes_and_seconds():
    assert parse_time("09:30") == time(9, 30)
    assert parse_time("09:30:15") == time(9, 30, 15)
    assert parse_time(time(7, 0)) == time(7, 0)


@pytest.mark.parametrize("raw", ["9", "25:00", "ab:cd", "09:30:00:00", ""])
def test_parse_time_rejects_garbage(raw):
    with pytest.raises(InvalidRequest):
        parse_time(raw)


def test_parse_date():
    assert parse_date("2024-01-08") == date(2024, 1, 8)
    assert parse_date(datetime(2024, 1, 8, 13, 0)) == date(2024, 1, 8)
    with pytest.raises(InvalidRequest):
        parse_date("08/01/2024")


def test_format_display_uses_twelve_hour_clock():
    assert format_display(time(9, 30)) == "9:30 AM"
    assert format_display(time(13, 0)) == "1:00 PM"
    assert format_display(time(0, 0)) == "12:00 AM"


def test_minutes_between_same_day():
    assert minutes_between(at("2024-01-08", "09:00"), at("2024-01-08", "10:45")) == 105


def test_zoned_local_to_utc_outside_dst_transition():
    # Melbourne is UTC+11 in January
    assert zoned_local_to_utc("2024-01-15", "09:00", "Australia/Melbourne") == utc(2024, 1, 14, 22, 0)
    assert zoned_local_to_utc("2024-07-15", "09:00", "Australia/Melbourne") == utc(2024, 7, 14, 23, 0)


def test_zoned_local_to_utc_in_utc_zone_is_identity():
    assert zoned_local_to_utc("2024-03-10", "12:34:56", "UTC") == utc(2024, 3, 10, 12, 34, 56)


def test_zoned_local_to_utc_spring_forward_second_pass():
    # New York jumps 02:00 -> 03:00 on 2024-03-10; 03:30 local is already EDT
    assert zoned_local_to_utc("2024-03-10", "03:30", "America/New_York") == utc(2024, 3, 10, 7, 30)
    assert zoned_local_to_utc("2024-03-10", "12:00", "America/New_York") == utc(2024, 3, 10, 16, 0)


def test_zoned_local_to_utc_first_pass_lands_across_the_change():
    # Melbourne moves to UTC+11 at 16:00 UTC on 2024-10-05; 01:30 local is still UTC+10
    assert zoned_local_to_utc("2024-10-06", "01:30", "Australia/Melbourne") == utc(2024, 10, 5, 15, 30)


def test_zoned_local_to_utc_fall_back():
    assert zoned_local_to_utc("2024-11-03", "12:00", "America/New_York") == utc(2024, 11, 3, 17, 0)
    assert zoned_local_to_utc("2024-04-07", "09:00", "Australia/Melbourne") == utc(2024, 4, 6, 23, 0)


def test_round_trip_back_to_wall_clock():
    instant = zoned_local_to_utc("2024-10-06", "10:15", "Australia/Melbourne")
    local = utc_to_zoned_local(instant, "Australia/Melbourne")
    assert (local.date(), local.time()) == (date(2024, 10, 6), time(10, 15))


def test_unknown_zone_is_a_validation_error():
    with pytest.raises(InvalidRequest):
        zoned_local_to_utc("2024-01-15", "09:00", "Mars/Olympus_Mons")
