from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from salonbook.db import Base

ACTIVE_SHIFT_CLAUSE = "status = 'active'"


class ShiftRecord(Base):
    __tablename__ = "shift_records"

    id = Column(Integer, primary_key=True)
    team_member_id = Column(Integer, ForeignKey("team_members.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    shift_start = Column(DateTime(timezone=True), nullable=False)
    shift_end = Column(DateTime(timezone=True), nullable=True)
    # [{"start": iso, "end": iso | None, "duration_minutes": int}]
    breaks = Column(JSON, nullable=False, default=list)
    total_break_minutes = Column(Integer, nullable=False, default=0)
    status = Column(Text, nullable=False, default="active")
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    team_member = relationship("TeamMember")

    __table_args__ = (
        CheckConstraint("status IN ('active','completed','paid')", name="shift_records_status_check"),
        Index(
            "shift_records_one_active_uq",
            "team_member_id",
            unique=True,
            sqlite_where=text(ACTIVE_SHIFT_CLAUSE),
            postgresql_where=text(ACTIVE_SHIFT_CLAUSE),
        ),
        Index("shift_records_date_idx", "date"),
    )


class HourlyRate(Base):
    __tablename__ = "hourly_rates"

    id = Column(Integer, primary_key=True)
    day_type = Column(String, nullable=False, unique=True)
    rate = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("day_type IN ('weekday','saturday','sunday','public_holiday')", name="hourly_rates_day_type_check"),
        CheckConstraint("rate >= 0", name="hourly_rates_rate_check"),
    )


class PublicHoliday(Base):
    __tablename__ = "public_holidays"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("public_holidays_date_idx", "date"),
    )
