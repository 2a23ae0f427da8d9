
from sqlalchemy import (
	Column, Integer, String, Text, ForeignKey, DateTime, Date, Time, Numeric,
	CheckConstraint, Index, DDL, event, text
)
from sqlalchemy.dialects.postgresql import ExcludeConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func


from salonbook.db import Base

ACTIVE_BOOKING_CLAUSE = "status IN ('confirmed','completed')"


class Booking(Base):
	__tablename__ = "bookings"
	id = Column(Integer, primary_key=True)
	booking_number = Column(String, nullable=False, unique=True)
	client_id = Column(Integer, ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False)
	team_member_id = Column(Integer, ForeignKey("team_members.id", ondelete="RESTRICT"), nullable=False)
	shop_id = Column(Integer, ForeignKey("shops.id", ondelete="RESTRICT"), nullable=False)
	service_id = Column(Integer, ForeignKey("services.id", ondelete="RESTRICT"), nullable=False)
	variant_id = Column(Integer, nullable=True)
	# shop-local wall clock
	booking_date = Column(Date, nullable=False)
	start_time = Column(Time, nullable=False)
	end_time = Column(Time, nullable=False)
	# the same window as UTC instants
	starts_at = Column(DateTime(timezone=True), nullable=False)
	ends_at = Column(DateTime(timezone=True), nullable=False)
	duration = Column(Integer, nullable=False)
	price = Column(Numeric(10, 2), nullable=False, default=0)
	status = Column(Text, nullable=False, default="confirmed")
	booking_note = Column(Text)
	idempotency_key = Column(String, nullable=True, unique=True)
	cancelled_at = Column(DateTime(timezone=True))
	cancelled_reason = Column(Text)
	completed_at = Column(DateTime(timezone=True))
	no_show_at = Column(DateTime(timezone=True))
	created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
	updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

	client = relationship("Client")
	team_member = relationship("TeamMember")
	shop = relationship("Shop")
	service = relationship("Service")

	__table_args__ = (
		CheckConstraint("status IN ('confirmed','completed','cancelled','no_show')", name="bookings_status_check"),
		CheckConstraint("duration > 0", name="bookings_duration_check"),
		CheckConstraint("ends_at > starts_at", name="bookings_time_check"),
		# storage backstop against double booking under concurrent checkouts
		Index(
			"bookings_member_start_active_uq",
			"team_member_id",
			"starts_at",
			unique=True,
			sqlite_where=text(ACTIVE_BOOKING_CLAUSE),
			postgresql_where=text(ACTIVE_BOOKING_CLAUSE),
		),
		# no two active bookings of one member may overlap (SQLite uses the triggers below)
		ExcludeConstraint(
			("team_member_id", "="),
			(func.tstzrange(starts_at, ends_at), "&&"),
			name="bookings_member_no_overlap",
			using="gist",
			where=text(ACTIVE_BOOKING_CLAUSE),
		).ddl_if(dialect="postgresql"),
		Index("bookings_member_date_idx", "team_member_id", "booking_date"),
		Index("bookings_shop_date_idx", "shop_id", "booking_date"),
	)


# "=" on an integer inside a gist exclusion needs btree_gist
event.listen(
	Booking.__table__,
	"before_create",
	DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)

_OVERLAPPING_ACTIVE = f"""
	SELECT RAISE(ABORT, 'bookings_member_no_overlap')
	WHERE EXISTS (
		SELECT 1 FROM bookings
		WHERE team_member_id = NEW.team_member_id
		AND id IS NOT NEW.id
		AND {ACTIVE_BOOKING_CLAUSE}
		AND starts_at < NEW.ends_at
		AND ends_at > NEW.starts_at
	);
"""

event.listen(
	Booking.__table__,
	"after_create",
	DDL(
		"CREATE TRIGGER bookings_no_overlap_insert BEFORE INSERT ON bookings "
		"WHEN NEW.status IN ('confirmed','completed') "
		f"BEGIN {_OVERLAPPING_ACTIVE} END"
	).execute_if(dialect="sqlite"),
)
event.listen(
	Booking.__table__,
	"after_create",
	DDL(
		"CREATE TRIGGER bookings_no_overlap_update "
		"BEFORE UPDATE OF team_member_id, starts_at, ends_at, status ON bookings "
		"WHEN NEW.status IN ('confirmed','completed') "
		f"BEGIN {_OVERLAPPING_ACTIVE} END"
	).execute_if(dialect="sqlite"),
)


class BookingReservation(Base):
	__tablename__ = "booking_reservations"
	id = Column(Integer, primary_key=True)
	team_member_id = Column(Integer, ForeignKey("team_members.id", ondelete="CASCADE"), nullable=False)
	shop_id = Column(Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
	service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
	date = Column(Date, nullable=False)
	start_time = Column(Time, nullable=False)
	end_time = Column(Time, nullable=False)
	session_id = Column(String, nullable=False, unique=True)
	expires_at = Column(DateTime(timezone=True), nullable=False)
	created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
	__table_args__ = (
		CheckConstraint("end_time > start_time", name="booking_reservations_time_check"),
		Index("br_member_date_idx", "team_member_id", "date"),
		Index("br_expires_at_idx", "expires_at"),
	)
