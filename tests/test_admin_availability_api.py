from datetime import date, timedelta

from salonbook import models
from tests.conftest import make_token


def window_body(salon, member="alice", day="2024-01-08", start="09:00", end="12:00", shop=None):
    return {
        "team_member_id": salon[member].id,
        "shop_id": (shop or salon["shop"]).id,
        "date": day,
        "start_time": start,
        "end_time": end,
    }


def regular_shifts(salon, start_date="2024-01-01", end_date="2024-01-15", schedule_type="everyWeek", schedules=None):
    body = {
        "team_member_id": salon["alice"].id,
        "shop_id": salon["shop"].id,
        "schedule_type": schedule_type,
        "start_date": start_date,
        "schedules": schedules if schedules is not None else {"monday": [{"start": "09:00", "end": "17:00"}]},
    }
    if end_date:
        body["end_date"] = end_date
    return body


def stored_windows(db, salon, member="alice"):
    return (
        db.query(models.AvailabilitySlot)
        .filter_by(team_member_id=salon[member].id)
        .order_by(models.AvailabilitySlot.date, models.AvailabilitySlot.start_time)
        .all()
    )


def test_admin_routes_need_credentials(client, salon):
    assert client.get("/admin/availability").status_code == 401

    as_client = {"Authorization": f"Bearer {make_token('user_1')}"}
    assert client.get("/admin/availability", headers=as_client).status_code == 403

    as_admin = {"Authorization": f"Bearer {make_token('staff_1', role='admin')}"}
    assert client.get("/admin/availability", headers=as_admin).status_code == 200


def test_set_window_and_upsert_exact_match(client, salon, admin_headers):
    first = client.post("/admin/availability", json=window_body(salon), headers=admin_headers)
    assert first.status_code == 200, first.text
    assert first.json()["start_time"] == "09:00:00"

    body = window_body(salon)
    body["notes"] = "front chair"
    again = client.post("/admin/availability", json=body, headers=admin_headers)
    assert again.status_code == 200
    assert again.json()["id"] == first.json()["id"]
    assert again.json()["notes"] == "front chair"

    listed = client.get(
        "/admin/availability", params={"team_member_id": salon["alice"].id, "date": "2024-01-08"}, headers=admin_headers
    )
    assert len(listed.json()) == 1


def test_overlapping_window_is_rejected(client, salon, admin_headers):
    client.post("/admin/availability", json=window_body(salon), headers=admin_headers)
    resp = client.post("/admin/availability", json=window_body(salon, start="11:00", end="13:00"), headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json()["code"] == "CONFLICT"

    # touching windows are fine
    resp = client.post("/admin/availability", json=window_body(salon, start="12:00", end="13:00"), headers=admin_headers)
    assert resp.status_code == 200


def test_window_must_end_after_it_starts(client, salon, admin_headers):
    resp = client.post("/admin/availability", json=window_body(salon, start="12:00", end="09:00"), headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_TIME"


def test_regular_shifts_expand_weekly(client, db, salon, admin_headers):
    resp = client.post("/admin/availability/regular-shifts", json=regular_shifts(salon), headers=admin_headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["created_count"] == 3
    assert [w.date for w in stored_windows(db, salon)] == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]


def test_saving_the_same_pattern_twice_replaces_the_range(client, db, salon, admin_headers, add_window):
    # a stray window inside the range is replaced too
    add_window("alice", day=date(2024, 1, 3), start="13:00", end="15:00")
    client.post("/admin/availability/regular-shifts", json=regular_shifts(salon), headers=admin_headers)
    resp = client.post("/admin/availability/regular-shifts", json=regular_shifts(salon), headers=admin_headers)
    assert resp.json()["created_count"] == 3
    assert len(stored_windows(db, salon)) == 3


def test_regular_shifts_keep_windows_outside_the_range(client, db, salon, admin_headers, add_window):
    add_window("alice", day=date(2024, 2, 5))
    client.post("/admin/availability/regular-shifts", json=regular_shifts(salon), headers=admin_headers)
    assert len(stored_windows(db, salon)) == 4


def test_regular_shifts_need_a_working_day(client, salon, admin_headers):
    resp = client.post(
        "/admin/availability/regular-shifts",
        json=regular_shifts(salon, schedules={"monday": [], "tuesday": []}),
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "No working days selected, nothing to save"


def test_regular_shifts_default_to_twelve_weeks(client, db, salon, admin_headers):
    resp = client.post(
        "/admin/availability/regular-shifts", json=regular_shifts(salon, end_date=None), headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.json()["end_date"] == str(date(2024, 1, 1) + timedelta(days=84))
    # Jan 1 through Mar 25 inclusive
    assert resp.json()["created_count"] == 13


def test_monthly_cadence_steps_28_days(client, db, salon, admin_headers):
    resp = client.post(
        "/admin/availability/regular-shifts",
        json=regular_shifts(salon, end_date="2024-03-31", schedule_type="everyMonth"),
        headers=admin_headers,
    )
    assert resp.json()["created_count"] == 4
    assert [w.date for w in stored_windows(db, salon)] == [
        date(2024, 1, 1),
        date(2024, 1, 29),
        date(2024, 2, 26),
        date(2024, 3, 25),
    ]


def test_weekly_patterns_recover_a_biweekly_schedule(client, salon, admin_headers):
    client.post(
        "/admin/availability/regular-shifts",
        json=regular_shifts(
            salon,
            start_date="2024-01-08",
            end_date="2024-03-04",
            schedule_type="everyTwoWeeks",
            schedules={"monday": [{"start": "09:00", "end": "12:00"}, {"start": "13:00", "end": "17:00"}]},
        ),
        headers=admin_headers,
    )
    resp = client.get(
        "/admin/availability/weekly-patterns",
        params={"team_member_id": salon["alice"].id, "shop_id": salon["shop"].id},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["schedule_type"] == "everyTwoWeeks"
    assert body["schedules"] == {
        "monday": [{"start": "09:00:00", "end": "12:00:00"}, {"start": "13:00:00", "end": "17:00:00"}]
    }


def test_weekly_patterns_when_nothing_is_stored(client, salon, admin_headers):
    resp = client.get(
        "/admin/availability/weekly-patterns",
        params={"team_member_id": salon["alice"].id, "shop_id": salon["shop"].id},
        headers=admin_headers,
    )
    assert resp.json()["schedules"] == {}
    assert resp.json()["schedule_type"] == "everyWeek"
    assert resp.json()["message"] == "No weekly patterns found"


def test_validate_reports_unassigned_member(client, db, salon, admin_headers):
    other = models.Shop(name="Southside", booking_url="southside", timezone="UTC")
    db.add(other)
    db.commit()
    resp = client.post("/admin/availability/validate", json=window_body(salon, shop=other), headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "NOT_ASSIGNED"


def test_validate_reports_bad_times(client, salon, admin_headers):
    resp = client.post(
        "/admin/availability/validate", json=window_body(salon, start="12:00", end="12:00"), headers=admin_headers
    )
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_TIME"


def test_validate_reports_clash_at_another_shop(client, db, salon, admin_headers, add_window):
    other = models.Shop(name="Southside", booking_url="southside", timezone="UTC")
    db.add(other)
    db.commit()
    add_window("alice", start="10:00", end="14:00", shop=other)

    resp = client.post("/admin/availability/validate", json=window_body(salon), headers=admin_headers)
    assert resp.status_code == 400
    body = resp.json()
    assert body["error_code"] == "CONFLICT"
    assert body["error"] == "Conflict: Team member already scheduled at Southside"
    assert body["conflicts"] == [{"shop_name": "Southside", "time": "10:00 - 14:00"}]


def test_validate_reports_bookings_in_an_edited_window(client, salon, admin_headers, add_window, add_booking):
    window = add_window("alice", start="09:00", end="17:00")
    add_booking("alice", start="10:00", end="11:00")
    body = window_body(salon, start="12:00", end="17:00")
    body["exclude_id"] = window.id
    resp = client.post("/admin/availability/validate", json=body, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "HAS_BOOKINGS"
    assert resp.json()["bookings_count"] == 1


def test_validate_accepts_a_clean_window(client, salon, admin_headers):
    resp = client.post("/admin/availability/validate", json=window_body(salon), headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"valid": True, "message": "Availability is valid"}


def test_delete_window(client, db, salon, admin_headers, add_window):
    window = add_window("alice")
    resp = client.delete(f"/admin/availability/{window.id}", headers=admin_headers)
    assert resp.status_code == 200
    assert stored_windows(db, salon) == []
    assert client.delete(f"/admin/availability/{window.id}", headers=admin_headers).status_code == 404


def test_window_with_bookings_cannot_be_deleted(client, salon, admin_headers, add_window, add_booking):
    window = add_window("alice", start="09:00", end="17:00")
    add_booking("alice", start="10:00", end="11:00")
    resp = client.delete(f"/admin/availability/{window.id}", headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json()["code"] == "HAS_BOOKINGS"


def test_cancelled_bookings_do_not_pin_a_window(client, salon, admin_headers, add_window, add_booking):
    window = add_window("alice", start="09:00", end="17:00")
    add_booking("alice", start="10:00", end="11:00", status="cancelled")
    assert client.delete(f"/admin/availability/{window.id}", headers=admin_headers).status_code == 200


def batch_body(salon, members=("alice", "bob")):
    return {
        "shop_id": salon["shop"].id,
        "team_member_ids": [salon[m].id for m in members],
        "date_range": {"start": "2024-01-08", "end": "2024-01-14"},
        "time_slots": [{"start": "09:00", "end": "12:00"}],
        "days_of_week": ["monday", "wednesday"],
    }


def test_batch_creates_rows_and_skips_overlaps(client, db, salon, admin_headers, add_window):
    add_window("alice", day=date(2024, 1, 8), start="10:00", end="11:00")
    resp = client.post("/admin/availability/batch", json=batch_body(salon), headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["created_count"] == 3
    assert [w.date for w in stored_windows(db, salon, "bob")] == [date(2024, 1, 8), date(2024, 1, 10)]


def test_batch_rejects_unassigned_members(client, db, salon, admin_headers):
    carol = models.TeamMember(first_name="Carol", last_name="Ng", email="carol@example.com")
    db.add(carol)
    db.commit()
    body = batch_body(salon)
    body["team_member_ids"].append(carol.id)
    resp = client.post("/admin/availability/batch", json=body, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "NOT_ASSIGNED"
    assert db.query(models.AvailabilitySlot).count() == 0
