"""Short-lived soft holds on a slot while a shopper is checking out.

One hold per session. Expired holds are purged lazily before availability
reads and are never treated as blocking.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from salonbook.logic.errors import InvalidRequest
from salonbook.logic.timeutils import add_minutes, as_utc, at, parse_date, parse_time
from salonbook.models import BookingReservation

logger = logging.getLogger(__name__)

HOLD_MINUTES = 10


def reservation_end(day: date, start: time, duration_minutes: int) -> time:
    if duration_minutes <= 0:
        raise InvalidRequest("duration must be a positive number of minutes")
    end = add_minutes(at(day, start), duration_minutes)
    if end.date() != day:
        raise InvalidRequest("A reserved slot must end on the same day")
    return end.time()


def is_live(reservation, now: datetime) -> bool:
    return as_utc(reservation.expires_at) > as_utc(now)


def is_blocking(reservation, session_id: Optional[str], now: datetime) -> bool:
    """A hold blocks everyone except its own session, until it expires."""
    return is_live(reservation, now) and reservation.session_id != session_id


def filter_blocking(reservations: Iterable, session_id: Optional[str], now: datetime) -> list:
    return [r for r in reservations if is_blocking(r, session_id, now)]


def purge_expired(db: Session, now: datetime) -> int:
    deleted = (
        db.query(BookingReservation)
        .filter(BookingReservation.expires_at <= as_utc(now))
        .delete(synchronize_session=False)
    )
    if deleted:
        logger.info(f"Purged {deleted} expired reservation(s)")
    return deleted


def release_reservation(db: Session, session_id: str) -> int:
    deleted = (
        db.query(BookingReservation)
        .filter(BookingReservation.session_id == session_id)
        .delete(synchronize_session=False)
    )
    logger.info(f"Released {deleted} reservation(s) for session {session_id}")
    return deleted


def reserve_slot(
    db: Session,
    session_id: str,
    team_member_id: int,
    shop_id: int,
    service_id: int,
    day,
    start,
    duration_minutes: int,
    now: datetime,
    hold_minutes: int = HOLD_MINUTES,
) -> BookingReservation:
    """Replace the session's hold with a new one. The caller commits."""
    if not session_id:
        raise InvalidRequest("session_id is required")
    day = parse_date(day)
    start = parse_time(start)
    end = reservation_end(day, start, duration_minutes)

    release_reservation(db, session_id)
    reservation = BookingReservation(
        team_member_id=team_member_id,
        shop_id=shop_id,
        service_id=service_id,
        date=day,
        start_time=start,
        end_time=end,
        session_id=session_id,
        expires_at=as_utc(now) + timedelta(minutes=hold_minutes),
    )
    db.add(reservation)
    db.flush()
    logger.info(
        f"Reserved {day} {start:%H:%M}-{end:%H:%M} for member {team_member_id} "
        f"(session {session_id}) until {reservation.expires_at}"
    )
    return reservation


def blocking_reservations(
    db: Session,
    team_member_ids: List[int],
    day: date,
    session_id: Optional[str],
    now: datetime,
) -> list:
    if not team_member_ids:
        return []
    q = db.query(BookingReservation).filter(
        BookingReservation.team_member_id.in_(team_member_ids),
        BookingReservation.date == day,
        BookingReservation.expires_at > as_utc(now),
    )
    return filter_blocking(q.all(), session_id, now)
