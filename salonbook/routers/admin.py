
from datetime import date, datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from salonbook import schemas
from salonbook.deps import get_db, get_now, require_admin
from salonbook.services.availability_service import AvailabilityService
from salonbook.services.booking_service import BookingService, booking_view

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
	return AvailabilityService(db)


def get_booking_service(db: Session = Depends(get_db), now: datetime = Depends(get_now)) -> BookingService:
	return BookingService(db, now)


# ---------------- AVAILABILITY ----------------

@router.post("/availability", response_model=schemas.AvailabilityOut)
def set_availability(
	payload: schemas.AvailabilityCreate,
	service: AvailabilityService = Depends(get_availability_service),
):
	return service.set_window(payload)


@router.get("/availability", response_model=List[schemas.AvailabilityOut])
def list_availability(
	team_member_id: Optional[int] = Query(None),
	shop_id: Optional[int] = Query(None),
	day: Optional[date] = Query(None, alias="date"),
	start_date: Optional[date] = Query(None),
	end_date: Optional[date] = Query(None),
	service: AvailabilityService = Depends(get_availability_service),
):
	return service.list_windows(team_member_id, shop_id, day, start_date, end_date)


@router.delete("/availability/{window_id}")
def delete_availability(window_id: int, service: AvailabilityService = Depends(get_availability_service)):
	service.delete_window(window_id)
	return {"ok": True}


@router.post("/availability/validate")
def validate_availability(
	payload: schemas.AvailabilityValidateRequest,
	service: AvailabilityService = Depends(get_availability_service),
):
	verdict = service.validate(payload)
	if not verdict["valid"]:
		return JSONResponse(status_code=400, content=verdict)
	return verdict


@router.post("/availability/batch")
def batch_availability(
	payload: schemas.BatchAvailabilityRequest,
	service: AvailabilityService = Depends(get_availability_service),
):
	return service.batch_create(payload)


@router.post("/availability/regular-shifts", response_model=schemas.RegularShiftsResponse)
def save_regular_shifts(
	payload: schemas.RegularShiftsRequest,
	service: AvailabilityService = Depends(get_availability_service),
):
	return service.save_regular_shifts(payload)


@router.get("/availability/weekly-patterns", response_model=schemas.WeeklyPatternsResponse)
def weekly_patterns(
	team_member_id: int = Query(...),
	shop_id: int = Query(...),
	service: AvailabilityService = Depends(get_availability_service),
):
	return service.weekly_patterns(team_member_id, shop_id)


# ---------------- CALENDAR ----------------

@router.get("/calendar", response_model=schemas.BookingListResponse)
def list_calendar(
	shop_id: Optional[int] = Query(None),
	start_date: Optional[date] = Query(None),
	end_date: Optional[date] = Query(None),
	status: Optional[schemas.BookingStatus] = Query(None),
	team_member_ids: Optional[List[int]] = Query(None),
	service: BookingService = Depends(get_booking_service),
):
	rows = service.list_bookings(shop_id, start_date, end_date, status, team_member_ids)
	return {"data": [booking_view(b) for b in rows], "count": len(rows)}


@router.get("/calendar/{booking_id}", response_model=schemas.BookingOut)
def get_calendar_booking(booking_id: int, service: BookingService = Depends(get_booking_service)):
	return booking_view(service.get_booking(booking_id))


@router.patch("/calendar/{booking_id}", response_model=schemas.BookingOut)
def reschedule_booking(
	booking_id: int,
	payload: schemas.RescheduleRequest,
	service: BookingService = Depends(get_booking_service),
):
	return booking_view(service.reschedule(booking_id, payload))


@router.put("/calendar/{booking_id}/status", response_model=schemas.BookingOut)
def update_booking_status(
	booking_id: int,
	payload: schemas.BookingStatusUpdate,
	service: BookingService = Depends(get_booking_service),
):
	return booking_view(service.update_status(booking_id, payload.status, payload.reason))


@router.delete("/calendar/{booking_id}", response_model=schemas.BookingOut)
def cancel_booking(booking_id: int, service: BookingService = Depends(get_booking_service)):
	return booking_view(service.cancel(booking_id))
