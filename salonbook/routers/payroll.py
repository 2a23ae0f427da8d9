from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from salonbook import schemas
from salonbook.deps import get_db, get_now, require_admin
from salonbook.services.payroll_service import PayrollService

router = APIRouter(prefix="/admin", tags=["payroll"], dependencies=[Depends(require_admin)])


def get_payroll_service(db: Session = Depends(get_db), now: datetime = Depends(get_now)) -> PayrollService:
    return PayrollService(db, now)


# ---------------- SHIFTS ----------------

@router.get("/team/shifts")
def list_shifts(
    status: Optional[schemas.ShiftStatus] = Query(None),
    day: Optional[date] = Query(None, alias="date"),
    team_member_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    service: PayrollService = Depends(get_payroll_service),
):
    shifts = service.list_shifts(status, day, team_member_id, start_date, end_date)
    return {"data": [schemas.ShiftOut(**service.shift_view(s)) for s in shifts]}


@router.post("/team/shifts", response_model=schemas.ShiftOut, status_code=201)
def clock_in(payload: schemas.ClockInRequest, service: PayrollService = Depends(get_payroll_service)):
    return service.shift_view(service.clock_in(payload))


@router.post("/team/shifts/mark-paid", response_model=schemas.MarkPaidResponse)
def mark_paid(payload: schemas.MarkPaidRequest, service: PayrollService = Depends(get_payroll_service)):
    return service.mark_paid(payload.shift_ids)


@router.get("/team/shifts/{shift_id}", response_model=schemas.ShiftOut)
def get_shift(shift_id: int, service: PayrollService = Depends(get_payroll_service)):
    return service.shift_view(service.get_shift(shift_id))


@router.put("/team/shifts/{shift_id}", response_model=schemas.ShiftOut)
def update_shift(
    shift_id: int,
    payload: schemas.ShiftUpdateRequest,
    service: PayrollService = Depends(get_payroll_service),
):
    if payload.action == schemas.ShiftAction.clock_out:
        shift = service.clock_out(shift_id)
    else:
        shift = service.update_shift(shift_id, payload)
    return service.shift_view(shift)


@router.delete("/team/shifts/{shift_id}")
def delete_shift(shift_id: int, service: PayrollService = Depends(get_payroll_service)):
    service.delete_shift(shift_id)
    return {"ok": True}


@router.post("/team/shifts/{shift_id}/break", response_model=schemas.ShiftOut)
def record_break(
    shift_id: int,
    payload: schemas.BreakRequest,
    service: PayrollService = Depends(get_payroll_service),
):
    return service.shift_view(service.record_break(shift_id, payload.action))


@router.get("/team/timesheet", response_model=schemas.TimesheetResponse, response_model_exclude_unset=True)
def timesheet(
    start_date: date = Query(...),
    end_date: date = Query(...),
    team_member_id: Optional[int] = Query(None),
    service: PayrollService = Depends(get_payroll_service),
):
    return service.timesheet(start_date, end_date, team_member_id)


# ---------------- RATES & HOLIDAYS ----------------

@router.get("/hourly-rates", response_model=List[schemas.HourlyRateOut])
def list_hourly_rates(service: PayrollService = Depends(get_payroll_service)):
    return service.list_rates()


@router.put("/hourly-rates", response_model=List[schemas.HourlyRateOut])
def update_hourly_rates(
    payload: schemas.HourlyRatesUpdateRequest,
    service: PayrollService = Depends(get_payroll_service),
):
    return service.update_rates(payload)


@router.get("/public-holidays", response_model=List[schemas.PublicHolidayOut])
def list_public_holidays(
    year: Optional[int] = Query(None),
    service: PayrollService = Depends(get_payroll_service),
):
    return service.list_holidays(year)


@router.post("/public-holidays", response_model=schemas.PublicHolidayOut, status_code=201)
def create_public_holiday(
    payload: schemas.PublicHolidayCreate,
    service: PayrollService = Depends(get_payroll_service),
):
    return service.add_holiday(payload)


@router.delete("/public-holidays/{holiday_id}")
def delete_public_holiday(holiday_id: int, service: PayrollService = Depends(get_payroll_service)):
    service.remove_holiday(holiday_id)
    return {"ok": True}
