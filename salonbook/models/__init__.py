from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from salonbook.db import Base


# ---------------- CATALOG ----------------

class Shop(Base):
    __tablename__ = "shops"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    booking_url = Column(String, nullable=False, unique=True)
    timezone = Column(String, nullable=False, default="UTC")
    address = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=True)
    email = Column(String, nullable=True, unique=True)
    photo = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class ShopTeamMember(Base):
    __tablename__ = "shop_team_members"

    id = Column(Integer, primary_key=True)
    shop_id = Column(Integer, ForeignKey("shops.id", ondelete="CASCADE"), nullable=False)
    team_member_id = Column(Integer, ForeignKey("team_members.id", ondelete="CASCADE"), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("shop_id", "team_member_id", name="uq_shop_team_member"),
    )


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    base_duration = Column(Integer, nullable=True)
    base_price = Column(Numeric(10, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class TeamMemberService(Base):
    __tablename__ = "team_member_services"

    id = Column(Integer, primary_key=True)
    team_member_id = Column(Integer, ForeignKey("team_members.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    # per-member overrides of the service defaults
    duration = Column(Integer, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("team_member_id", "service_id", name="uq_team_member_service"),
    )


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True)
    # identity-provider subject, when the client has an account
    user_id = Column(String, nullable=True, unique=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


from salonbook.models.availability import AvailabilitySlot  # noqa: E402
from salonbook.models.bookings import Booking, BookingReservation  # noqa: E402
from salonbook.models.shifts import HourlyRate, PublicHoliday, ShiftRecord  # noqa: E402
