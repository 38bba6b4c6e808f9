import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PRICING_TIMEZONE"] = "UTC"
os.environ["PROMO_CODES"] = "WELCOME10=10"
os.environ["HOLIDAYS"] = ""
os.environ["NOTIFY_WEBHOOK_URL"] = ""
os.environ["PAYSTACK_SANDBOX"] = "false"

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from busline.core.security import create_access_token
from busline.db.session import Base, engine, SessionLocal, get_db
from busline.domain.enums import BusStatus, HiringStatus, Role
from busline.models.user import User
from busline.models.bus import Bus
from busline.models.route import Route
from busline.models.booking import Booking, BookingPassenger, BookingSeat  # noqa: F401
from busline.models.hiring import Hiring, HiringCharge  # noqa: F401
from busline.models.payment import Payment  # noqa: F401
from busline.models.refund import Refund  # noqa: F401
from busline.models.status_history import StatusHistory  # noqa: F401
from busline.models.verification import TicketVerification  # noqa: F401
from busline.models.notification_event import NotificationEvent  # noqa: F401
from busline.models.audit_log import AuditLog  # noqa: F401
from busline.models.setting import Setting  # noqa: F401
from busline.api.deps import get_payment_gateway
from busline.main import app
from busline.services import booking_service


def future_weekday(days_ahead: int = 10, hour: int = 11) -> datetime:
    """A Monday-Friday departure at ``hour`` UTC, outside peak hours by default."""
    day = datetime.now(timezone.utc) + timedelta(days=days_ahead)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day.replace(hour=hour, minute=0, second=0, microsecond=0)


def future_weekend(days_ahead: int = 10, hour: int = 11) -> datetime:
    day = datetime.now(timezone.utc) + timedelta(days=days_ahead)
    while day.weekday() != 5:
        day += timedelta(days=1)
    return day.replace(hour=hour, minute=0, second=0, microsecond=0)


class FakeGateway:
    """Stands in for PaystackClient; amounts are in the minor unit."""

    def __init__(self):
        self.initialized: dict[str, int] = {}
        self.metadata: dict[str, dict] = {}
        self.declined: set[str] = set()
        self.verify_calls = 0

    def initialize(self, email, amount, metadata=None, reference=None):
        self.initialized[reference] = int(amount)
        self.metadata[reference] = dict(metadata or {})
        return {"authorizationUrl": f"https://checkout.test/{reference}", "reference": reference}

    def verify(self, reference, expected_amount=None):
        self.verify_calls += 1
        if reference in self.declined:
            return {"success": False, "amount": 0, "paidAt": None, "raw": {"status": "failed"}}
        amount = self.initialized.get(reference, expected_amount or 0)
        return {"success": True, "amount": amount, "paidAt": "2026-01-05T10:00:00Z",
                "raw": {"status": True, "data": {"status": "success", "metadata": self.metadata.get(reference, {})}}}


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
def gateway():
    return FakeGateway()


@pytest.fixture()
def client(db, gateway):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db):
    def _make(role: Role = Role.CUSTOMER, email: str | None = None) -> User:
        u = User(
            id=str(uuid.uuid4()),
            email=email or f"{role.value}-{uuid.uuid4().hex[:6]}@example.com",
            full_name=role.value.title(),
            phone="+2348000000000",
            role=role.value,
            is_active=True,
        )
        db.add(u)
        db.commit()
        return u
    return _make


@pytest.fixture()
def customer(make_user):
    return make_user(Role.CUSTOMER)


@pytest.fixture()
def admin(make_user):
    return make_user(Role.ADMIN)


@pytest.fixture()
def ops(make_user):
    return make_user(Role.OPS)


@pytest.fixture()
def conductor(make_user):
    return make_user(Role.CONDUCTOR)


def auth(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture()
def make_bus(db):
    def _make(capacity: int = 40, status: BusStatus = BusStatus.ACTIVE, number: str | None = None) -> Bus:
        bus = Bus(
            id=str(uuid.uuid4()),
            bus_number=number or f"BL-{uuid.uuid4().hex[:5].upper()}",
            capacity=capacity,
            bus_type="Standard",
            status=status,
        )
        db.add(bus)
        db.commit()
        return bus
    return _make


@pytest.fixture()
def bus(make_bus):
    return make_bus()


@pytest.fixture()
def make_route(db):
    def _make(bus: Bus, base_fare="1000.00", departure_time="11:00", arrival_time="15:00",
              operating_days="0,1,2,3,4,5,6") -> Route:
        route = Route(
            id=str(uuid.uuid4()),
            source="Lagos",
            destination="Ibadan",
            base_fare=Decimal(base_fare),
            operating_days=operating_days,
            departure_time=departure_time,
            arrival_time=arrival_time,
            distance_km=128,
            bus_id=bus.id,
            active=True,
        )
        db.add(route)
        db.commit()
        return route
    return _make


@pytest.fixture()
def route(make_route, bus):
    return make_route(bus)


@pytest.fixture()
def make_booking(db, route, customer):
    def _make(seats=("1",), departure_at=None, user=None, **kwargs) -> Booking:
        passengers = [{"name": f"Passenger {s}", "age": 30, "seatNumber": s} for s in seats]
        return booking_service.create_booking(
            db, user or customer, route.id, departure_at or future_weekday(), passengers, **kwargs
        )
    return _make


@pytest.fixture()
def make_hiring(db, customer):
    def _make(bus: Bus, start_at: datetime, end_at: datetime, status: HiringStatus = HiringStatus.PENDING,
              total_cost="50000.00", deposit="0") -> Hiring:
        hiring = Hiring(
            id=str(uuid.uuid4()),
            hiring_ref=f"HIR-{uuid.uuid4().hex[:8].upper()}",
            status=status,
            user_id=customer.id,
            bus_id=bus.id,
            purpose="Church retreat",
            passenger_count=20,
            start_at=start_at,
            end_at=end_at,
            estimated_distance=Decimal("200"),
            base_rate=Decimal("50000"),
            total_cost=Decimal(total_cost),
            deposit=Decimal(deposit),
            total_paid=Decimal("0"),
            total_refunded=Decimal("0"),
        )
        db.add(hiring)
        db.commit()
        return hiring
    return _make
