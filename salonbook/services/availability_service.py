"""Availability service - single windows, recurring shifts and batch scheduling"""

import logging
from datetime import date, time, timedelta
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from salonbook import models
from salonbook.config import settings
from salonbook.logic.errors import AvailabilityConflict, HasBookings, InvalidRequest, NotFound
from salonbook.logic.recurrence import Weekday, default_end_date, enabled_weekdays, expand_recurrence, infer_cadence
from salonbook.schemas import (
    AvailabilityCreate,
    AvailabilityValidateRequest,
    BatchAvailabilityRequest,
    RegularShiftsRequest,
)

logger = logging.getLogger(__name__)

RECENT_DATES_LIMIT = 20


def _windows_overlap(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    return a_start < b_end and b_start < a_end


class AvailabilityService:
    """Service layer for availability windows"""

    def __init__(self, db: Session):
        self.db = db

    def get_window(self, window_id: int) -> models.AvailabilitySlot:
        row = self.db.query(models.AvailabilitySlot).filter(models.AvailabilitySlot.id == window_id).first()
        if not row:
            raise NotFound("Availability slot not found")
        return row

    def is_assigned(self, team_member_id: int, shop_id: int) -> bool:
        return (
            self.db.query(models.ShopTeamMember)
            .filter(
                models.ShopTeamMember.team_member_id == team_member_id,
                models.ShopTeamMember.shop_id == shop_id,
                models.ShopTeamMember.is_active == True,  # noqa: E712
            )
            .first()
            is not None
        )

    def overlapping_windows(
        self,
        team_member_id: int,
        day: date,
        start: time,
        end: time,
        shop_id: Optional[int] = None,
        other_shops_only: bool = False,
        exclude_id: Optional[int] = None,
    ) -> List[models.AvailabilitySlot]:
        q = self.db.query(models.AvailabilitySlot).filter(
            models.AvailabilitySlot.team_member_id == team_member_id,
            models.AvailabilitySlot.date == day,
        )
        if shop_id is not None:
            if other_shops_only:
                q = q.filter(models.AvailabilitySlot.shop_id != shop_id)
            else:
                q = q.filter(models.AvailabilitySlot.shop_id == shop_id)
        if exclude_id is not None:
            q = q.filter(models.AvailabilitySlot.id != exclude_id)
        return [r for r in q.all() if _windows_overlap(r.start_time, r.end_time, start, end)]

    def bookings_inside(self, window: models.AvailabilitySlot) -> List[models.Booking]:
        """Confirmed bookings that start inside ``window``."""
        return (
            self.db.query(models.Booking)
            .filter(
                models.Booking.team_member_id == window.team_member_id,
                models.Booking.shop_id == window.shop_id,
                models.Booking.booking_date == window.date,
                models.Booking.start_time >= window.start_time,
                models.Booking.start_time < window.end_time,
                models.Booking.status == "confirmed",
            )
            .all()
        )

    # ---------------- single windows ----------------

    def set_window(self, data: AvailabilityCreate) -> models.AvailabilitySlot:
        if data.end_time <= data.start_time:
            raise InvalidRequest("start_time must be before end_time", code="INVALID_TIME")

        row = (
            self.db.query(models.AvailabilitySlot)
            .filter_by(
                team_member_id=data.team_member_id,
                shop_id=data.shop_id,
                date=data.date,
                start_time=data.start_time,
                end_time=data.end_time,
            )
            .first()
        )
        overlapping = self.overlapping_windows(
            data.team_member_id,
            data.date,
            data.start_time,
            data.end_time,
            shop_id=data.shop_id,
            exclude_id=row.id if row else None,
        )
        if overlapping:
            raise AvailabilityConflict("Availability overlaps an existing slot")

        if row:
            row.is_available = data.is_available
            row.notes = data.notes
        else:
            row = models.AvailabilitySlot(
                team_member_id=data.team_member_id,
                shop_id=data.shop_id,
                date=data.date,
                start_time=data.start_time,
                end_time=data.end_time,
                is_available=data.is_available,
                notes=data.notes,
                created_by="admin",
            )
            self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def list_windows(
        self,
        team_member_id: Optional[int] = None,
        shop_id: Optional[int] = None,
        day: Optional[date] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[models.AvailabilitySlot]:
        q = self.db.query(models.AvailabilitySlot)
        if team_member_id is not None:
            q = q.filter(models.AvailabilitySlot.team_member_id == team_member_id)
        if shop_id is not None:
            q = q.filter(models.AvailabilitySlot.shop_id == shop_id)
        if day is not None:
            q = q.filter(models.AvailabilitySlot.date == day)
        if start_date is not None:
            q = q.filter(models.AvailabilitySlot.date >= start_date)
        if end_date is not None:
            q = q.filter(models.AvailabilitySlot.date <= end_date)
        return q.order_by(models.AvailabilitySlot.date, models.AvailabilitySlot.start_time).all()

    def delete_window(self, window_id: int) -> None:
        row = self.get_window(window_id)
        bookings = self.bookings_inside(row)
        if bookings:
            raise HasBookings(f"Cannot delete: {len(bookings)} booking(s) exist in this time slot")
        self.db.delete(row)
        self.db.commit()
        logger.info(f"Deleted availability slot {window_id}")

    def validate(self, data: AvailabilityValidateRequest) -> dict:
        """Pre-flight checks for an availability edit. Returns a verdict instead of raising."""
        if not self.is_assigned(data.team_member_id, data.shop_id):
            return {
                "valid": False,
                "error": "Team member is not assigned to this shop",
                "error_code": "NOT_ASSIGNED",
            }
        if data.start_time >= data.end_time:
            return {"valid": False, "error": "End time must be after start time", "error_code": "INVALID_TIME"}

        clashes = self.overlapping_windows(
            data.team_member_id,
            data.date,
            data.start_time,
            data.end_time,
            shop_id=data.shop_id,
            other_shops_only=True,
            exclude_id=data.exclude_id,
        )
        if clashes:
            shops = {
                s.id: s.name
                for s in self.db.query(models.Shop).filter(models.Shop.id.in_(sorted({c.shop_id for c in clashes}))).all()
            }
            first = shops.get(clashes[0].shop_id, "another shop")
            return {
                "valid": False,
                "error": f"Conflict: Team member already scheduled at {first}",
                "error_code": "CONFLICT",
                "conflicts": [
                    {
                        "shop_name": shops.get(c.shop_id),
                        "time": f"{c.start_time:%H:%M} - {c.end_time:%H:%M}",
                    }
                    for c in clashes
                ],
            }

        if data.exclude_id is not None:
            existing = self.db.query(models.AvailabilitySlot).filter(models.AvailabilitySlot.id == data.exclude_id).first()
            if existing:
                bookings = self.bookings_inside(existing)
                if bookings:
                    return {
                        "valid": False,
                        "error": f"Cannot modify: {len(bookings)} booking(s) exist in this time slot",
                        "error_code": "HAS_BOOKINGS",
                        "bookings_count": len(bookings),
                    }
        return {"valid": True, "message": "Availability is valid"}

    # ---------------- bulk ----------------

    def batch_create(self, data: BatchAvailabilityRequest) -> dict:
        if data.date_range.end < data.date_range.start:
            raise InvalidRequest("date_range.end must be on or after date_range.start")
        assigned = {
            row[0]
            for row in self.db.query(models.ShopTeamMember.team_member_id)
            .filter(
                models.ShopTeamMember.shop_id == data.shop_id,
                models.ShopTeamMember.team_member_id.in_(data.team_member_ids),
                models.ShopTeamMember.is_active == True,  # noqa: E712
            )
            .all()
        }
        unassigned = [m for m in data.team_member_ids if m not in assigned]
        if unassigned:
            raise InvalidRequest(
                f"Some team members are not assigned to this shop: {unassigned}", code="NOT_ASSIGNED"
            )

        weekdays = {d.index for d in data.days_of_week}
        to_create = []
        day = data.date_range.start
        while day <= data.date_range.end:
            if day.weekday() in weekdays:
                for member_id in data.team_member_ids:
                    for slot in data.time_slots:
                        # any overlap, at this shop or another one, skips the row
                        if self.overlapping_windows(member_id, day, slot.start, slot.end):
                            continue
                        to_create.append(
                            models.AvailabilitySlot(
                                team_member_id=member_id,
                                shop_id=data.shop_id,
                                date=day,
                                start_time=slot.start,
                                end_time=slot.end,
                                is_available=True,
                                created_by="admin",
                            )
                        )
            day += timedelta(days=1)

        if not to_create:
            return {"message": "No slots created - all would conflict", "created_count": 0}

        self.db.add_all(to_create)
        self.db.commit()
        logger.info(f"Batch created {len(to_create)} availability slot(s) at shop {data.shop_id}")
        return {
            "message": f"Successfully created {len(to_create)} availability slots",
            "created_count": len(to_create),
            "team_members_count": len(data.team_member_ids),
            "date_range": {"start": data.date_range.start, "end": data.date_range.end},
        }

    def save_regular_shifts(self, data: RegularShiftsRequest) -> dict:
        """Replace every window in the range with the expanded weekly pattern."""
        if not enabled_weekdays(data.schedules):
            raise InvalidRequest("No working days selected, nothing to save")

        end_date = data.end_date or default_end_date(data.start_date, settings.recurrence_default_weeks)
        templates = {day: [(t.start, t.end) for t in slots] for day, slots in data.schedules.items()}
        rows = expand_recurrence(data.start_date, end_date, data.schedule_type, templates)

        deleted = (
            self.db.query(models.AvailabilitySlot)
            .filter(
                models.AvailabilitySlot.team_member_id == data.team_member_id,
                models.AvailabilitySlot.shop_id == data.shop_id,
                models.AvailabilitySlot.date >= data.start_date,
                models.AvailabilitySlot.date <= end_date,
            )
            .delete(synchronize_session=False)
        )
        self.db.add_all(
            [
                models.AvailabilitySlot(
                    team_member_id=data.team_member_id,
                    shop_id=data.shop_id,
                    date=r.date,
                    start_time=r.start_time,
                    end_time=r.end_time,
                    is_available=True,
                    created_by="admin",
                )
                for r in rows
            ]
        )
        self.db.commit()
        logger.info(
            f"Regular shifts for member {data.team_member_id} at shop {data.shop_id}: "
            f"replaced {deleted} row(s) with {len(rows)} ({data.start_date} to {end_date})"
        )
        return {
            "success": True,
            "created_count": len(rows),
            "start_date": data.start_date,
            "end_date": end_date,
            "message": f"Created {len(rows)} availability slots",
        }

    def weekly_patterns(self, team_member_id: int, shop_id: int) -> dict:
        """Rebuild the weekday templates and cadence from the most recent stored rows."""
        recent_dates = [
            row[0]
            for row in self.db.query(models.AvailabilitySlot.date)
            .filter(
                models.AvailabilitySlot.team_member_id == team_member_id,
                models.AvailabilitySlot.shop_id == shop_id,
            )
            .distinct()
            .order_by(models.AvailabilitySlot.date.desc())
            .limit(RECENT_DATES_LIMIT)
            .all()
        ]
        schedules: Dict[Weekday, List[dict]] = {}
        if recent_dates:
            rows = (
                self.db.query(models.AvailabilitySlot)
                .filter(
                    models.AvailabilitySlot.team_member_id == team_member_id,
                    models.AvailabilitySlot.shop_id == shop_id,
                    models.AvailabilitySlot.date.in_(recent_dates),
                )
                .all()
            )
            seen: Dict[Weekday, Set[Tuple[time, time]]] = {}
            for r in rows:
                seen.setdefault(Weekday.of(r.date), set()).add((r.start_time, r.end_time))
            for weekday in Weekday:
                if weekday in seen:
                    schedules[weekday] = [{"start": s, "end": e} for s, e in sorted(seen[weekday])]

        return {
            "team_member_id": team_member_id,
            "shop_id": shop_id,
            "schedule_type": infer_cadence(recent_dates),
            "schedules": schedules,
            "message": "Weekly patterns found" if schedules else "No weekly patterns found",
        }
