"""Booking service - availability reads, holds, checkout and the admin calendar"""

import logging
import secrets
from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from salonbook import models
from salonbook.config import settings
from salonbook.logic import reservations
from salonbook.logic.conflicts import BLOCKING_STATUSES, Candidate, ensure_no_conflict
from salonbook.logic.errors import InvalidRequest, InvalidTransition, NotFound, SlotUnavailable
from salonbook.logic.slots import generate_slots
from salonbook.logic.timeutils import add_minutes, as_utc, at, format_hhmm, minutes_between, zoned_local_to_utc
from salonbook.schemas import BookingCreateRequest, BookingStatus, RescheduleRequest

logger = logging.getLogger(__name__)

ANY_MEMBER = "any"

_ALLOWED = {
    BookingStatus.confirmed: {BookingStatus.completed, BookingStatus.cancelled, BookingStatus.no_show},
    BookingStatus.completed: set(),
    BookingStatus.no_show: set(),
    BookingStatus.cancelled: set(),
}


def new_booking_number(day: date) -> str:
    return f"BK-{day:%Y%m%d}-{secrets.token_hex(3).upper()}"


def _utc_or_none(value: Optional[datetime]) -> Optional[datetime]:
    return as_utc(value) if value is not None else None


def booking_view(b: models.Booking) -> dict:
    """The one read shape for a booking, with client/member/shop/service fields joined in."""
    client = b.client
    member = b.team_member
    shop = b.shop
    service = b.service
    return {
        "id": b.id,
        "booking_number": b.booking_number,
        "client_id": b.client_id,
        "team_member_id": b.team_member_id,
        "shop_id": b.shop_id,
        "service_id": b.service_id,
        "variant_id": b.variant_id,
        "starts_at": as_utc(b.starts_at),
        "ends_at": as_utc(b.ends_at),
        "booking_date": b.booking_date,
        "start_time": b.start_time,
        "end_time": b.end_time,
        "duration": b.duration,
        "price": float(b.price or 0),
        "status": b.status,
        "booking_note": b.booking_note,
        "cancelled_at": _utc_or_none(b.cancelled_at),
        "cancelled_reason": b.cancelled_reason,
        "completed_at": _utc_or_none(b.completed_at),
        "no_show_at": _utc_or_none(b.no_show_at),
        "client_first_name": client.first_name if client else None,
        "client_last_name": client.last_name if client else None,
        "client_email": client.email if client else None,
        "client_phone": client.phone if client else None,
        "team_member_first_name": member.first_name if member else None,
        "team_member_last_name": member.last_name if member else None,
        "team_member_photo": member.photo if member else None,
        "shop_name": shop.name if shop else None,
        "shop_timezone": shop.timezone if shop else None,
        "service_name": service.name if service else None,
    }


class BookingService:
    """Service layer for the public booking flow and the admin calendar"""

    def __init__(self, db: Session, now: datetime):
        self.db = db
        self.now = now

    # ---------------- lookups ----------------

    def _get(self, model, obj_id: int, label: str):
        obj = self.db.query(model).filter(model.id == obj_id).first()
        if not obj:
            raise NotFound(f"{label} not found")
        return obj

    def get_booking(self, booking_id: int) -> models.Booking:
        return self._get(models.Booking, booking_id, "Booking")

    def get_client(self, client_id: int) -> models.Client:
        return self._get(models.Client, client_id, "Client")

    def _member_service(self, team_member_id: int, service_id: int) -> Optional[models.TeamMemberService]:
        return (
            self.db.query(models.TeamMemberService)
            .filter(
                models.TeamMemberService.team_member_id == team_member_id,
                models.TeamMemberService.service_id == service_id,
            )
            .first()
        )

    def resolve_duration(self, service: models.Service, team_member_id: Optional[int] = None) -> int:
        if team_member_id is not None:
            link = self._member_service(team_member_id, service.id)
            if link and link.duration:
                return link.duration
        return service.base_duration or settings.default_service_duration

    def resolve_price(self, service: models.Service, team_member_id: int) -> Decimal:
        link = self._member_service(team_member_id, service.id)
        if link and link.price is not None:
            return link.price
        return service.base_price or Decimal("0")

    def providers_for(self, service_id: int, shop_id: Optional[int] = None) -> List[int]:
        q = (
            self.db.query(models.TeamMemberService.team_member_id)
            .join(models.TeamMember, models.TeamMember.id == models.TeamMemberService.team_member_id)
            .filter(
                models.TeamMemberService.service_id == service_id,
                models.TeamMemberService.is_available == True,  # noqa: E712
                models.TeamMember.is_active == True,  # noqa: E712
            )
        )
        if shop_id is not None:
            q = q.join(
                models.ShopTeamMember,
                models.ShopTeamMember.team_member_id == models.TeamMemberService.team_member_id,
            ).filter(
                models.ShopTeamMember.shop_id == shop_id,
                models.ShopTeamMember.is_active == True,  # noqa: E712
            )
        return [row[0] for row in q.order_by(models.TeamMemberService.team_member_id).all()]

    def _windows(self, member_ids: List[int], day: date, shop_id: Optional[int]) -> list:
        q = self.db.query(models.AvailabilitySlot).filter(
            models.AvailabilitySlot.team_member_id.in_(member_ids),
            models.AvailabilitySlot.date == day,
            models.AvailabilitySlot.is_available == True,  # noqa: E712
        )
        if shop_id is not None:
            q = q.filter(models.AvailabilitySlot.shop_id == shop_id)
        return q.order_by(models.AvailabilitySlot.start_time, models.AvailabilitySlot.team_member_id).all()

    def _bookings_on(self, member_ids: List[int], day: date) -> list:
        return (
            self.db.query(models.Booking)
            .filter(
                models.Booking.team_member_id.in_(member_ids),
                models.Booking.booking_date == day,
                models.Booking.status.in_(sorted(BLOCKING_STATUSES)),
            )
            .all()
        )

    # ---------------- public availability ----------------

    def available_slots(
        self,
        day: date,
        service_id: int,
        team_member_id: Union[int, str],
        shop_id: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> dict:
        reservations.purge_expired(self.db, self.now)
        self.db.commit()

        service = self._get(models.Service, service_id, "Service")
        if team_member_id == ANY_MEMBER:
            member_ids = self.providers_for(service_id, shop_id)
            duration = self.resolve_duration(service)
            mode = "any"
        else:
            member_ids = [int(team_member_id)]
            duration = self.resolve_duration(service, member_ids[0])
            mode = "single"

        response = {
            "date": day,
            "service_duration": duration,
            "available_slots": [],
            "total_slots": 0,
            "team_member_id": str(team_member_id),
            "service_id": service_id,
            "message": None,
        }
        if not member_ids:
            response["message"] = "No team members offer this service"
            return response

        windows = self._windows(member_ids, day, shop_id)
        if not windows:
            response["message"] = "No availability for this date"
            return response

        slots = generate_slots(
            day,
            duration,
            windows,
            blocking_bookings=self._bookings_on(member_ids, day),
            blocking_reservations=reservations.blocking_reservations(
                self.db, member_ids, day, session_id, self.now
            ),
            granularity_minutes=settings.slot_interval_minutes,
            mode=mode,
        )
        response["available_slots"] = [
            {
                "time": s.time,
                "display_time": s.display_time,
                "end_time": s.end_time,
                "display_end_time": s.display_end_time,
                "team_member_id": s.team_member_id,
                "shop_id": s.shop_id,
                "slot_id": s.slot_id,
            }
            for s in slots
        ]
        response["total_slots"] = len(slots)
        if not slots:
            response["message"] = "No available slots for this date"
        return response

    # ---------------- temporary reservations ----------------

    def reserve(self, team_member_id: int, shop_id: int, service_id: int, day: date, start: time,
                duration: int, session_id: str) -> models.BookingReservation:
        self._get(models.TeamMember, team_member_id, "Team member")
        self._get(models.Shop, shop_id, "Shop")
        self._get(models.Service, service_id, "Service")
        reservation = reservations.reserve_slot(
            self.db,
            session_id=session_id,
            team_member_id=team_member_id,
            shop_id=shop_id,
            service_id=service_id,
            day=day,
            start=start,
            duration_minutes=duration,
            now=self.now,
            hold_minutes=settings.reservation_hold_minutes,
        )
        self.db.commit()
        self.db.refresh(reservation)
        return reservation

    def release(self, session_id: str) -> int:
        if not session_id:
            raise InvalidRequest("Session ID required")
        deleted = reservations.release_reservation(self.db, session_id)
        self.db.commit()
        return deleted

    # ---------------- checkout ----------------

    def _lock_member(self, team_member_id: int) -> models.TeamMember:
        # serializes concurrent checkouts for one member where the backend supports row locks
        member = (
            self.db.query(models.TeamMember)
            .filter(models.TeamMember.id == team_member_id)
            .with_for_update()
            .first()
        )
        if not member:
            raise NotFound("Team member not found")
        return member

    def _ensure_offerable(self, team_member_id: int, shop_id: int, day: date, start: time,
                          duration: int, session_id: Optional[str]) -> None:
        windows = self._windows([team_member_id], day, shop_id)
        slots = generate_slots(
            day,
            duration,
            windows,
            blocking_bookings=self._bookings_on([team_member_id], day),
            blocking_reservations=reservations.blocking_reservations(
                self.db, [team_member_id], day, session_id, self.now
            ),
            granularity_minutes=settings.slot_interval_minutes,
        )
        wanted = format_hhmm(start)
        if not any(s.time == wanted for s in slots):
            logger.warning(f"Rejected booking for member {team_member_id} on {day} at {wanted}: not offerable")
            raise SlotUnavailable()

    def _by_idempotency_key(self, key: Optional[str]) -> Optional[models.Booking]:
        if not key:
            return None
        return self.db.query(models.Booking).filter(models.Booking.idempotency_key == key).first()

    def create_booking(self, payload: BookingCreateRequest) -> models.Booking:
        if payload.idempotency_key:
            existing = self._by_idempotency_key(payload.idempotency_key)
            if existing:
                logger.info(f"Replayed booking {existing.booking_number} for idempotency key {payload.idempotency_key}")
                return existing

        self.get_client(payload.client_id)
        shop = self._get(models.Shop, payload.shop_id, "Shop")
        service = self._get(models.Service, payload.service_id, "Service")
        self._lock_member(payload.team_member_id)

        day = payload.booking_date
        start = payload.start_time
        duration = payload.duration or self.resolve_duration(service, payload.team_member_id)
        end_dt = add_minutes(at(day, start), duration)
        if end_dt.date() != day:
            raise InvalidRequest("A booking must end on the same day it starts")
        end = end_dt.time()

        ensure_no_conflict(
            Candidate(payload.team_member_id, day, start, end),
            self._bookings_on([payload.team_member_id], day),
        )
        self._ensure_offerable(payload.team_member_id, shop.id, day, start, duration, payload.session_id)

        tz = shop.timezone or settings.default_timezone
        price = payload.price if payload.price is not None else self.resolve_price(service, payload.team_member_id)
        booking = models.Booking(
            booking_number=new_booking_number(day),
            client_id=payload.client_id,
            team_member_id=payload.team_member_id,
            shop_id=shop.id,
            service_id=service.id,
            variant_id=payload.variant_id,
            booking_date=day,
            start_time=start,
            end_time=end,
            starts_at=zoned_local_to_utc(day, start, tz),
            ends_at=zoned_local_to_utc(day, end, tz),
            duration=duration,
            price=price,
            status=BookingStatus.confirmed.value,
            booking_note=payload.client_note,
            idempotency_key=payload.idempotency_key,
        )
        self.db.add(booking)
        try:
            self.db.flush()
            if payload.session_id:
                reservations.release_reservation(self.db, payload.session_id)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            # a concurrent retry with the same key may have won the race
            existing = self._by_idempotency_key(payload.idempotency_key)
            if existing:
                logger.info(f"Replayed booking {existing.booking_number} for idempotency key {payload.idempotency_key}")
                return existing
            logger.warning(f"Booking insert for member {payload.team_member_id} on {day} {start} hit a constraint: {e.orig}")
            raise SlotUnavailable()
        self.db.refresh(booking)
        logger.info(f"Created booking {booking.booking_number} for member {booking.team_member_id} on {day} {start:%H:%M}")
        return booking

    # ---------------- admin calendar ----------------

    def list_bookings(
        self,
        shop_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[BookingStatus] = None,
        team_member_ids: Optional[List[int]] = None,
    ) -> List[models.Booking]:
        q = self.db.query(models.Booking)
        if shop_id is not None:
            q = q.filter(models.Booking.shop_id == shop_id)
        if start_date is not None:
            q = q.filter(models.Booking.booking_date >= start_date)
        if end_date is not None:
            q = q.filter(models.Booking.booking_date <= end_date)
        if status is not None:
            q = q.filter(models.Booking.status == status.value)
        if team_member_ids:
            q = q.filter(models.Booking.team_member_id.in_(team_member_ids))
        return q.order_by(models.Booking.booking_date, models.Booking.start_time).all()

    def reschedule(self, booking_id: int, payload: RescheduleRequest) -> models.Booking:
        booking = self.get_booking(booking_id)
        if booking.status not in BLOCKING_STATUSES:
            raise InvalidTransition(f"Cannot reschedule a {booking.status} booking")
        shop = self._get(models.Shop, booking.shop_id, "Shop")
        tz = shop.timezone or settings.default_timezone

        member_id = payload.team_member_id or booking.team_member_id
        self._lock_member(member_id)
        ensure_no_conflict(
            Candidate(member_id, payload.date, payload.start_time, payload.end_time),
            self._bookings_on([member_id], payload.date),
            exclude_booking_id=booking.id,
        )

        if member_id != booking.team_member_id:
            link = self._member_service(member_id, booking.service_id)
            if link and link.price is not None:
                booking.price = link.price
            booking.team_member_id = member_id

        booking.booking_date = payload.date
        booking.start_time = payload.start_time
        booking.end_time = payload.end_time
        booking.starts_at = zoned_local_to_utc(payload.date, payload.start_time, tz)
        booking.ends_at = zoned_local_to_utc(payload.date, payload.end_time, tz)
        booking.duration = payload.duration or minutes_between(
            at(payload.date, payload.start_time), at(payload.date, payload.end_time)
        )
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Reschedule of booking {booking_id} hit a constraint: {e.orig}")
            raise SlotUnavailable()
        self.db.refresh(booking)
        logger.info(
            f"Rescheduled booking {booking.booking_number} to member {member_id} "
            f"on {payload.date} {payload.start_time:%H:%M}-{payload.end_time:%H:%M}"
        )
        return booking

    def update_status(self, booking_id: int, target: BookingStatus, reason: Optional[str] = None) -> models.Booking:
        booking = self.get_booking(booking_id)
        current = BookingStatus(booking.status)
        if target not in _ALLOWED[current]:
            raise InvalidTransition(f"Invalid transition: {current.value} -> {target.value}")

        booking.status = target.value
        if target == BookingStatus.cancelled:
            booking.cancelled_at = booking.cancelled_at or self.now
            booking.cancelled_reason = reason
        elif target == BookingStatus.completed:
            booking.completed_at = booking.completed_at or self.now
        elif target == BookingStatus.no_show:
            booking.no_show_at = booking.no_show_at or self.now
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"Booking {booking.booking_number}: {current.value} -> {target.value}")
        return booking

    def cancel(self, booking_id: int, reason: str = "Cancelled by admin") -> models.Booking:
        return self.update_status(booking_id, BookingStatus.cancelled, reason)
