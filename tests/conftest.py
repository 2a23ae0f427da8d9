import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from dataclasses import dataclass  # noqa: E402
from datetime import date, datetime, time, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from salonbook import models  # noqa: E402
from salonbook.config import ADMIN_API_KEY, JWT_ALG, JWT_SECRET  # noqa: E402
from salonbook.db import Base, SessionLocal, engine  # noqa: E402
from salonbook.deps import get_now  # noqa: E402
from salonbook.main import app  # noqa: E402


@dataclass
class Clock:
    now: datetime

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock():
    # Monday 2024-01-08, 08:00 UTC
    return Clock(datetime(2024, 1, 8, 8, 0, tzinfo=timezone.utc))


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db, clock):
    app.dependency_overrides[get_now] = lambda: clock.now
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_token(sub: str, role: str = "client") -> str:
    return jwt.encode({"sub": sub, "role": role}, JWT_SECRET, algorithm=JWT_ALG)


@pytest.fixture()
def admin_headers():
    return {"x-admin-key": ADMIN_API_KEY}


@pytest.fixture()
def client_headers():
    return {"Authorization": f"Bearer {make_token('user_1')}"}


@pytest.fixture()
def salon(db):
    """One shop, two stylists who both do a 60 minute cut, and a client."""
    shop = models.Shop(name="Northside", booking_url="northside", timezone="UTC")
    alice = models.TeamMember(first_name="Alice", last_name="Hart", email="alice@example.com")
    bob = models.TeamMember(first_name="Bob", last_name="Reed", email="bob@example.com")
    cut = models.Service(name="Cut", base_duration=60, base_price=Decimal("50.00"))
    customer = models.Client(user_id="user_1", first_name="Casey", last_name="Lee", email="casey@example.com")
    db.add_all([shop, alice, bob, cut, customer])
    db.flush()
    db.add_all(
        [
            models.ShopTeamMember(shop_id=shop.id, team_member_id=alice.id),
            models.ShopTeamMember(shop_id=shop.id, team_member_id=bob.id),
            models.TeamMemberService(team_member_id=alice.id, service_id=cut.id),
            models.TeamMemberService(team_member_id=bob.id, service_id=cut.id, price=Decimal("65.00")),
        ]
    )
    db.commit()
    return {"shop": shop, "alice": alice, "bob": bob, "cut": cut, "client": customer}


@pytest.fixture()
def add_window(db, salon):
    def _add(member="alice", day=date(2024, 1, 8), start="09:00", end="17:00", shop=None):
        row = models.AvailabilitySlot(
            team_member_id=salon[member].id,
            shop_id=(shop or salon["shop"]).id,
            date=day,
            start_time=time.fromisoformat(start),
            end_time=time.fromisoformat(end),
            is_available=True,
        )
        db.add(row)
        db.commit()
        return row

    return _add


@pytest.fixture()
def add_booking(db, salon):
    counter = iter(range(1, 1000))

    def _add(member="alice", day=date(2024, 1, 8), start="10:00", end="11:00", status="confirmed"):
        n = next(counter)
        begin = datetime.combine(day, time.fromisoformat(start), tzinfo=timezone.utc)
        finish = datetime.combine(day, time.fromisoformat(end), tzinfo=timezone.utc)
        row = models.Booking(
            booking_number=f"BK-{day:%Y%m%d}-T{n:05d}",
            client_id=salon["client"].id,
            team_member_id=salon[member].id,
            shop_id=salon["shop"].id,
            service_id=salon["cut"].id,
            booking_date=day,
            start_time=begin.time(),
            end_time=finish.time(),
            starts_at=begin,
            ends_at=finish,
            duration=int((finish - begin).total_seconds() // 60),
            price=Decimal("50.00"),
            status=status,
        )
        db.add(row)
        db.commit()
        return row

    return _add
