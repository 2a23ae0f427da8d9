"""Payroll service - clock in/out, breaks, pay rates and timesheets"""

import logging
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from salonbook import models
from salonbook.config import settings
from salonbook.logic import payroll
from salonbook.logic.errors import InvalidRequest, InvalidTransition, NotFound
from salonbook.logic.payroll import DayType, ShiftTotals
from salonbook.logic.timeutils import as_utc, utc_to_zoned_local
from salonbook.schemas import (
    BreakAction,
    ClockInRequest,
    HourlyRatesUpdateRequest,
    PublicHolidayCreate,
    ShiftStatus,
    ShiftUpdateRequest,
)

logger = logging.getLogger(__name__)


class PayrollService:
    """Service layer for shift records and pay calculation"""

    def __init__(self, db: Session, now: datetime):
        self.db = db
        self.now = now
        self._holidays: Dict[date, bool] = {}
        self._rates: Optional[Dict[str, float]] = None

    # ---------------- resolvers ----------------

    def is_public_holiday(self, day: date) -> bool:
        if day not in self._holidays:
            self._holidays[day] = (
                self.db.query(models.PublicHoliday.id)
                .filter(
                    models.PublicHoliday.date == day,
                    models.PublicHoliday.is_active == True,  # noqa: E712
                )
                .first()
                is not None
            )
        return self._holidays[day]

    def day_type(self, day: date) -> DayType:
        return payroll.resolve_day_type(day, self.is_public_holiday)

    def rate_for(self, day_type: DayType) -> float:
        if self._rates is None:
            rows = self.db.query(models.HourlyRate).filter(models.HourlyRate.is_active == True).all()  # noqa: E712
            self._rates = {r.day_type: float(r.rate) for r in rows}
        # an unconfigured day type pays nothing
        return self._rates.get(day_type.value, 0.0)

    def totals(self, shift: models.ShiftRecord) -> ShiftTotals:
        return payroll.calculate_shift(
            shift,
            self.day_type,
            self.rate_for,
            self.now,
            paid_allowance=settings.paid_break_minutes,
        )

    def shift_view(self, shift: models.ShiftRecord, totals: Optional[ShiftTotals] = None) -> dict:
        totals = totals or self.totals(shift)
        out = {
            "id": shift.id,
            "team_member_id": shift.team_member_id,
            "team_member_name": shift.team_member.full_name if shift.team_member else None,
            "date": shift.date,
            "shift_start": as_utc(shift.shift_start),
            "shift_end": as_utc(shift.shift_end) if shift.shift_end else None,
            "breaks": list(shift.breaks or []),
            "status": shift.status,
            "notes": shift.notes,
        }
        out.update(totals.as_dict())
        return out

    # ---------------- shifts ----------------

    def get_shift(self, shift_id: int) -> models.ShiftRecord:
        shift = self.db.query(models.ShiftRecord).filter(models.ShiftRecord.id == shift_id).first()
        if not shift:
            raise NotFound("Shift not found")
        return shift

    def list_shifts(
        self,
        status: Optional[ShiftStatus] = None,
        day: Optional[date] = None,
        team_member_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[models.ShiftRecord]:
        q = self.db.query(models.ShiftRecord)
        if status is not None:
            q = q.filter(models.ShiftRecord.status == status.value)
        if day is not None:
            q = q.filter(models.ShiftRecord.date == day)
        if team_member_id is not None:
            q = q.filter(models.ShiftRecord.team_member_id == team_member_id)
        if start_date is not None:
            q = q.filter(models.ShiftRecord.date >= start_date)
        if end_date is not None:
            q = q.filter(models.ShiftRecord.date <= end_date)
        return q.order_by(models.ShiftRecord.date.desc(), models.ShiftRecord.id.desc()).all()

    def clock_in(self, data: ClockInRequest) -> models.ShiftRecord:
        member = self.db.query(models.TeamMember).filter(models.TeamMember.id == data.team_member_id).first()
        if not member:
            raise NotFound("Team member not found")

        active = (
            self.db.query(models.ShiftRecord)
            .filter(
                models.ShiftRecord.team_member_id == data.team_member_id,
                models.ShiftRecord.status == ShiftStatus.active.value,
            )
            .first()
        )
        if active:
            raise InvalidTransition("Team member already has an active shift")

        start = as_utc(data.shift_start) if data.shift_start else as_utc(self.now)
        shift = models.ShiftRecord(
            team_member_id=data.team_member_id,
            date=data.date or utc_to_zoned_local(start, settings.default_timezone).date(),
            shift_start=start,
            breaks=[],
            total_break_minutes=0,
            status=ShiftStatus.active.value,
        )
        self.db.add(shift)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise InvalidTransition("Team member already has an active shift")
        self.db.refresh(shift)
        logger.info(f"Member {data.team_member_id} clocked in at {start.isoformat()} (shift {shift.id})")
        return shift

    def clock_out(self, shift_id: int) -> models.ShiftRecord:
        shift = self.get_shift(shift_id)
        if shift.status != ShiftStatus.active.value:
            raise InvalidTransition("Shift is not active")

        breaks = payroll.close_open_break(shift.breaks, self.now)
        shift.breaks = breaks
        shift.total_break_minutes = payroll.total_break_minutes(breaks)
        shift.shift_end = as_utc(self.now)
        shift.status = ShiftStatus.completed.value
        self.db.commit()
        self.db.refresh(shift)
        logger.info(
            f"Member {shift.team_member_id} clocked out of shift {shift.id} "
            f"({shift.total_break_minutes} break minute(s))"
        )
        return shift

    def update_shift(self, shift_id: int, data: ShiftUpdateRequest) -> models.ShiftRecord:
        shift = self.get_shift(shift_id)
        if shift.status == ShiftStatus.paid.value:
            raise InvalidTransition("Paid shifts cannot be edited")
        if data.shift_end is not None and shift.status == ShiftStatus.active.value:
            raise InvalidTransition("Use clock_out to end an active shift")

        start = as_utc(data.shift_start) if data.shift_start is not None else as_utc(shift.shift_start)
        end = as_utc(data.shift_end) if data.shift_end is not None else shift.shift_end
        if end is not None and as_utc(end) <= start:
            raise InvalidRequest("shift_end must be after shift_start")

        shift.shift_start = start
        if end is not None:
            shift.shift_end = as_utc(end)
        if data.date is not None:
            shift.date = data.date
        if data.notes is not None:
            shift.notes = data.notes
        self.db.commit()
        self.db.refresh(shift)
        return shift

    def delete_shift(self, shift_id: int) -> None:
        shift = self.get_shift(shift_id)
        self.db.delete(shift)
        self.db.commit()
        logger.info(f"Deleted shift {shift_id}")

    def record_break(self, shift_id: int, action: BreakAction) -> models.ShiftRecord:
        shift = self.get_shift(shift_id)
        if shift.status != ShiftStatus.active.value:
            raise InvalidTransition("Breaks can only be recorded on an active shift")

        if action == BreakAction.start:
            shift.breaks = payroll.start_break(shift.breaks, self.now)
        else:
            shift.breaks = payroll.end_break(shift.breaks, self.now)
            shift.total_break_minutes = payroll.total_break_minutes(shift.breaks)
        self.db.commit()
        self.db.refresh(shift)
        return shift

    def mark_paid(self, shift_ids: List[int]) -> dict:
        if not shift_ids:
            raise InvalidRequest("shift_ids must be a non-empty list")
        requested = sorted(set(shift_ids))
        eligible = [
            row[0]
            for row in self.db.query(models.ShiftRecord.id)
            .filter(
                models.ShiftRecord.id.in_(requested),
                models.ShiftRecord.status == ShiftStatus.completed.value,
            )
            .all()
        ]
        if eligible:
            (
                self.db.query(models.ShiftRecord)
                .filter(models.ShiftRecord.id.in_(eligible))
                .update({models.ShiftRecord.status: ShiftStatus.paid.value}, synchronize_session=False)
            )
            self.db.commit()
        skipped = len(requested) - len(eligible)
        logger.info(f"Marked {len(eligible)} shift(s) as paid, skipped {skipped}")
        return {
            "updated_count": len(eligible),
            "skipped_count": skipped,
            "shift_ids": sorted(eligible),
            "message": f"Marked {len(eligible)} shift(s) as paid",
        }

    def timesheet(self, start_date: date, end_date: date, team_member_id: Optional[int] = None) -> dict:
        if end_date < start_date:
            raise InvalidRequest("end_date must be on or after start_date")
        q = self.db.query(models.ShiftRecord).filter(
            models.ShiftRecord.date >= start_date,
            models.ShiftRecord.date <= end_date,
            models.ShiftRecord.status != ShiftStatus.active.value,
            models.ShiftRecord.shift_end.isnot(None),
        )
        if team_member_id is not None:
            q = q.filter(models.ShiftRecord.team_member_id == team_member_id)
        shifts = q.order_by(models.ShiftRecord.date, models.ShiftRecord.id).all()

        computed = [(s, self.totals(s)) for s in shifts]
        overall, by_member = payroll.summarize_timesheet((s.team_member_id, t) for s, t in computed)
        period = {"start_date": start_date, "end_date": end_date}

        if team_member_id is not None:
            return {
                "shifts": [self.shift_view(s, t) for s, t in computed],
                "summary": overall,
                "period": period,
            }

        groups: Dict[int, dict] = {}
        for s, t in computed:
            group = groups.setdefault(
                s.team_member_id,
                {
                    "team_member_id": s.team_member_id,
                    "team_member_name": s.team_member.full_name if s.team_member else None,
                    "shifts": [],
                    "summary": by_member[s.team_member_id],
                },
            )
            group["shifts"].append(self.shift_view(s, t))
        return {"data": list(groups.values()), "overall_summary": overall, "period": period}

    # ---------------- rates and holidays ----------------

    def list_rates(self) -> List[models.HourlyRate]:
        order = [d.value for d in DayType]
        rows = self.db.query(models.HourlyRate).all()
        return sorted(rows, key=lambda r: order.index(r.day_type))

    def update_rates(self, data: HourlyRatesUpdateRequest) -> List[models.HourlyRate]:
        for item in data.rates:
            row = self.db.query(models.HourlyRate).filter(models.HourlyRate.day_type == item.day_type.value).first()
            if row is None:
                row = models.HourlyRate(day_type=item.day_type.value)
                self.db.add(row)
            row.rate = item.rate
            row.is_active = True
        self.db.commit()
        self._rates = None
        logger.info(f"Updated {len(data.rates)} hourly rate(s)")
        return self.list_rates()

    def list_holidays(self, year: Optional[int] = None) -> List[models.PublicHoliday]:
        q = self.db.query(models.PublicHoliday).filter(models.PublicHoliday.is_active == True)  # noqa: E712
        if year is not None:
            q = q.filter(models.PublicHoliday.date >= date(year, 1, 1), models.PublicHoliday.date <= date(year, 12, 31))
        return q.order_by(models.PublicHoliday.date).all()

    def add_holiday(self, data: PublicHolidayCreate) -> models.PublicHoliday:
        holiday = models.PublicHoliday(name=data.name, date=data.date, description=data.description, is_active=True)
        self.db.add(holiday)
        self.db.commit()
        self.db.refresh(holiday)
        self._holidays.pop(data.date, None)
        return holiday

    def remove_holiday(self, holiday_id: int) -> None:
        holiday = self.db.query(models.PublicHoliday).filter(models.PublicHoliday.id == holiday_id).first()
        if not holiday:
            raise NotFound("Public holiday not found")
        holiday.is_active = False
        self.db.commit()
        self._holidays.pop(holiday.date, None)
