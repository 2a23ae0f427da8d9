from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import text
from sqlalchemy.orm import Session

from salonbook import models, schemas
from salonbook.config import settings
from salonbook.deps import CurrentUser, get_current_user, get_db, get_now
from salonbook.logic.timeutils import as_utc
from salonbook.services.booking_service import ANY_MEMBER, BookingService, booking_view

router = APIRouter()


def get_booking_service(db: Session = Depends(get_db), now: datetime = Depends(get_now)) -> BookingService:
    return BookingService(db, now)


@router.get("/health")
def health(db: Session = Depends(get_db)):
    # db ping
    db_ok = True
    try:
        db.execute(text("SELECT 1"))
    except Exception:
        db_ok = False

    counts = {}
    if db_ok:
        counts = {
            "shops": db.query(models.Shop).count(),
            "team_members": db.query(models.TeamMember).count(),
            "bookings": db.query(models.Booking).count(),
        }

    return {
        "ok": bool(db_ok),
        "db_ok": db_ok,
        "counts": counts,
    }


@router.get("/public/booking/availability", response_model=schemas.AvailabilityResponse)
def get_availability(
    day: date = Query(..., alias="date"),
    service_id: int = Query(...),
    team_member_id: str = Query(ANY_MEMBER),
    shop_id: Optional[int] = Query(None),
    session_id: Optional[str] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    if team_member_id != ANY_MEMBER and not team_member_id.isdigit():
        raise HTTPException(status_code=400, detail="team_member_id must be an id or 'any'")
    return service.available_slots(
        day,
        service_id,
        team_member_id if team_member_id == ANY_MEMBER else int(team_member_id),
        shop_id=shop_id,
        session_id=session_id,
    )


@router.post("/public/booking/reserve", response_model=schemas.ReserveResponse)
def reserve_slot(
    payload: schemas.ReserveRequest,
    user: CurrentUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    reservation = service.reserve(
        payload.team_member_id,
        payload.shop_id,
        payload.service_id,
        payload.date,
        payload.start_time,
        payload.duration,
        payload.session_id,
    )
    return {
        "reservation_id": reservation.id,
        "expires_at": as_utc(reservation.expires_at),
        "message": f"Time slot reserved for {settings.reservation_hold_minutes} minutes",
    }


@router.delete("/public/booking/reserve")
def release_slot(
    session_id: str = Query(..., min_length=1),
    service: BookingService = Depends(get_booking_service),
):
    service.release(session_id)
    return {"message": "Reservation released successfully"}


@router.post("/public/booking/create", response_model=schemas.BookingOut, status_code=201)
def create_booking(
    payload: schemas.BookingCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    client = service.get_client(payload.client_id)
    if not user.is_admin and client.user_id is not None and client.user_id != user.user_id:
        raise HTTPException(status_code=403, detail="Cannot book on behalf of another client")
    booking = service.create_booking(payload)
    return booking_view(booking)
