import logging
import uuid
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from busline.core.config import settings
from busline.db.session import SessionLocal
from busline.domain.enums import BusStatus, Role
from busline.models.user import User
from busline.models.bus import Bus
from busline.models.route import Route
from busline.models.setting import Setting
from busline.services.settings_service import PERCENT_KEYS

logger = logging.getLogger(__name__)


def ensure_user(db: Session, email: str, role: Role, name: str) -> User:
    u = db.query(User).filter(User.email == email).first()
    if u:
        return u
    u = User(id=str(uuid.uuid4()), email=email, full_name=name, role=role.value, is_active=True)
    db.add(u)
    db.commit()
    return u


def ensure_bus(db: Session, bus_number: str, capacity: int, bus_type: str) -> Bus:
    bus = db.query(Bus).filter(Bus.bus_number == bus_number).first()
    if bus:
        return bus
    bus = Bus(id=str(uuid.uuid4()), bus_number=bus_number, capacity=capacity, bus_type=bus_type,
              status=BusStatus.ACTIVE)
    db.add(bus)
    db.commit()
    return bus


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # Seeding must not crash the API when migrations have not run yet.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            logger.warning("users table not found yet; skipping seed (run alembic upgrade head)")
            return

        ensure_user(db, "admin@busline.ng", Role.ADMIN, "Admin")
        ensure_user(db, "ops@busline.ng", Role.OPS, "Operations")
        ensure_user(db, "conductor@busline.ng", Role.CONDUCTOR, "Conductor")
        ensure_user(db, "customer@busline.ng", Role.CUSTOMER, "Demo Customer")

        # Runtime fare modifiers start from the configured defaults
        for key in PERCENT_KEYS:
            if not db.get(Setting, key):
                db.add(Setting(key=key, int_value=getattr(settings, key), str_value=None))
        db.commit()

        coach = ensure_bus(db, "BL-001", 48, "Luxury")
        mini = ensure_bus(db, "BL-002", 18, "Mini")

        ROUTES = [
            ("Lagos", "Ibadan", Decimal("7500.00"), "06:30", "09:00", 128, coach),
            ("Ibadan", "Lagos", Decimal("7500.00"), "15:00", "17:30", 128, coach),
            ("Lagos", "Abeokuta", Decimal("4500.00"), "08:00", "09:45", 78, mini),
        ]
        for source, destination, fare, dep, arr, km, bus in ROUTES:
            exists = db.query(Route).filter(Route.source == source, Route.destination == destination).first()
            if exists:
                continue
            db.add(Route(
                id=str(uuid.uuid4()),
                source=source,
                destination=destination,
                base_fare=fare,
                operating_days="0,1,2,3,4,5,6",
                departure_time=dep,
                arrival_time=arr,
                distance_km=km,
                bus_id=bus.id,
                active=True,
            ))
        db.commit()
        logger.info("seed complete")
    finally:
        db.close()


if __name__ == "__main__":
    from busline.core.log import configure_logging
    configure_logging()
    run()
