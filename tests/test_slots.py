from datetime import date, time
from types import SimpleNamespace

import pytest

from salonbook.logic.errors import InvalidRequest
from salonbook.logic.slots import generate_slots

DAY = date(2024, 1, 8)
ALICE, BOB = 1, 2


def window(member, start, end, window_id=None, shop_id=10):
    return SimpleNamespace(
        id=window_id or member * 100,
        team_member_id=member,
        shop_id=shop_id,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
    )


def booking(member, start, end, status="confirmed", number="BK-1"):
    return SimpleNamespace(
        id=hash(number),
        booking_number=number,
        team_member_id=member,
        status=status,
        booking_date=DAY,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
    )


def hold(member, start, end):
    return SimpleNamespace(
        team_member_id=member,
        date=DAY,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
    )


def times(slots):
    return [s.time for s in slots]


def test_slot_ending_at_window_end_is_included():
    slots = generate_slots(DAY, 60, [window(ALICE, "09:00", "17:00")])
    assert times(slots)[-1] == "16:00"
    assert "16:30" not in times(slots)
    assert len(slots) == 15
    assert slots[-1].end_time == "17:00"


def test_uneven_duration_leaves_trailing_time_unused():
    slots = generate_slots(DAY, 45, [window(ALICE, "09:00", "10:30")])
    assert times(slots) == ["09:00", "09:30"]


def test_booked_time_is_excluded_per_member():
    windows = [window(ALICE, "09:00", "12:00"), window(BOB, "09:00", "12:00")]
    bookings = [booking(ALICE, "10:00", "10:30")]
    slots = generate_slots(DAY, 30, windows, blocking_bookings=bookings)

    alice = times(s for s in slots if s.team_member_id == ALICE)
    bob = times(s for s in slots if s.team_member_id == BOB)
    assert "10:00" not in alice
    assert "10:30" in alice
    assert "10:00" in bob


def test_cancelled_and_no_show_bookings_do_not_block():
    bookings = [booking(ALICE, "10:00", "10:30", status="cancelled"), booking(ALICE, "11:00", "11:30", status="no_show")]
    slots = generate_slots(DAY, 30, [window(ALICE, "10:00", "12:00")], blocking_bookings=bookings)
    assert times(slots) == ["10:00", "10:30", "11:00", "11:30"]


def test_long_service_cannot_straddle_a_booking():
    slots = generate_slots(
        DAY, 60, [window(ALICE, "09:00", "12:00")], blocking_bookings=[booking(ALICE, "10:00", "10:30")]
    )
    assert times(slots) == ["09:00", "10:30", "11:00"]


def test_reservations_block_like_bookings():
    slots = generate_slots(
        DAY, 30, [window(ALICE, "09:00", "10:30")], blocking_reservations=[hold(ALICE, "09:30", "10:00")]
    )
    assert times(slots) == ["09:00", "10:00"]


def test_any_mode_keeps_one_slot_per_time():
    windows = [window(ALICE, "10:00", "11:00"), window(BOB, "10:00", "10:30")]
    slots = generate_slots(DAY, 30, windows, mode="any")
    assert times(slots) == ["10:00", "10:30"]
    assert slots[0].team_member_id == ALICE


def test_single_mode_keeps_every_provider():
    windows = [window(ALICE, "10:00", "11:00"), window(BOB, "10:00", "10:30")]
    assert times(generate_slots(DAY, 30, windows)) == ["10:00", "10:00", "10:30"]


def test_output_is_sorted_across_windows():
    windows = [window(ALICE, "14:00", "15:00", window_id=2), window(ALICE, "09:00", "10:00", window_id=1)]
    slots = generate_slots(DAY, 30, windows)
    assert times(slots) == ["09:00", "09:30", "14:00", "14:30"]
    assert slots[0].slot_id == "1_0900"


def test_slot_display_fields():
    slot = generate_slots(DAY, 30, [window(ALICE, "13:30", "14:00")])[0]
    assert slot.display_time == "1:30 PM"
    assert slot.display_end_time == "2:00 PM"
    assert slot.shop_id == 10


def test_window_shorter_than_service_gives_nothing():
    assert generate_slots(DAY, 90, [window(ALICE, "09:00", "10:00")]) == []


@pytest.mark.parametrize("kwargs", [{"duration_minutes": 0}, {"granularity_minutes": 0}, {"mode": "every"}])
def test_invalid_parameters(kwargs):
    params = {"day": DAY, "duration_minutes": 30, "windows": [window(ALICE, "09:00", "10:00")]}
    params.update(kwargs)
    with pytest.raises(InvalidRequest):
        generate_slots(**params)
