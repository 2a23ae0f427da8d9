from sqlalchemy import Column, Integer, Date, Time, Text, Boolean, ForeignKey, DateTime, CheckConstraint, Index
from sqlalchemy.sql import func
from salonbook.db import Base


class AvailabilitySlot(Base):
    __tablename__ = "availability_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_member_id = Column(Integer, ForeignKey("team_members.id", ondelete="CASCADE"), nullable=False)
    shop_id = Column(Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)

    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    is_available = Column(Boolean, nullable=False, default=True)
    created_by = Column(Text, nullable=False, default="admin")
    notes = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="availability_time_check"),
        Index("as_member_shop_date_idx", "team_member_id", "shop_id", "date"),
    )
