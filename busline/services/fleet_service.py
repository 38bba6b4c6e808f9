import re
import uuid
from decimal import Decimal
from sqlalchemy.orm import Session

from busline.core.errors import BusNotActive, BusNotFound, RouteNotFound, ValidationFailed
from busline.domain.enums import BusStatus
from busline.domain.money import round_money, to_decimal
from busline.models.bus import Bus
from busline.models.route import Route
from busline.models.user import User
from busline.services.audit_service import log_audit

HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def create_bus(db: Session, actor: User, bus_number: str, capacity: int, bus_type: str = "Standard",
               status: BusStatus | str = BusStatus.ACTIVE) -> Bus:
    errors = []
    if not (bus_number or "").strip():
        errors.append({"field": "busNumber", "message": "Bus number is required"})
    if not isinstance(capacity, int) or capacity < 1:
        errors.append({"field": "capacity", "message": "Capacity must be a positive integer"})
    if bus_number and db.query(Bus).filter(Bus.bus_number == bus_number.strip()).first():
        errors.append({"field": "busNumber", "message": "Bus number already exists"})
    if errors:
        raise ValidationFailed(errors)
    bus = Bus(
        id=str(uuid.uuid4()),
        bus_number=bus_number.strip(),
        capacity=capacity,
        bus_type=bus_type or "Standard",
        status=BusStatus(status),
    )
    db.add(bus)
    log_audit(db, actor.id, "bus.create", "bus", bus.id, {"busNumber": bus.bus_number, "capacity": capacity})
    db.commit()
    db.refresh(bus)
    return bus


def set_bus_status(db: Session, actor: User, bus_id: str, status: BusStatus | str) -> Bus:
    bus = db.get(Bus, bus_id)
    if not bus:
        raise BusNotFound("Bus not found", busId=bus_id)
    old = bus.status
    bus.status = BusStatus(status)
    log_audit(db, actor.id, "bus.status", "bus", bus.id, {"from": old.value, "to": bus.status.value})
    db.commit()
    db.refresh(bus)
    return bus


def _parse_days(days) -> str:
    values = sorted({int(d) for d in days})
    if not values or any(d < 0 or d > 6 for d in values):
        raise ValidationFailed.single("operatingDays", "Operating days must be weekday numbers 0 (Mon) to 6 (Sun)")
    return ",".join(str(d) for d in values)


def create_route(db: Session, actor: User, source: str, destination: str, base_fare, bus_id: str,
                 departure_time: str, arrival_time: str, operating_days=range(7), distance_km: int | None = None) -> Route:
    errors = []
    fare = to_decimal(base_fare)
    if not (source or "").strip():
        errors.append({"field": "source", "message": "Source is required"})
    if not (destination or "").strip():
        errors.append({"field": "destination", "message": "Destination is required"})
    if source and destination and source.strip().lower() == destination.strip().lower():
        errors.append({"field": "destination", "message": "Destination must differ from source"})
    if fare < 0:
        errors.append({"field": "baseFare", "message": "Base fare cannot be negative"})
    for name, value in (("departureTime", departure_time), ("arrivalTime", arrival_time)):
        if not HHMM.match(value or ""):
            errors.append({"field": name, "message": "Use HH:MM"})
    if errors:
        raise ValidationFailed(errors)

    bus = db.get(Bus, bus_id)
    if not bus:
        raise BusNotFound("Bus not found", busId=bus_id)
    if not bus.is_active:
        raise BusNotActive(f"Bus {bus.bus_number} is {bus.status.value}", busId=bus.id, status=bus.status.value)

    route = Route(
        id=str(uuid.uuid4()),
        source=source.strip(),
        destination=destination.strip(),
        base_fare=round_money(fare),
        operating_days=_parse_days(operating_days),
        departure_time=departure_time,
        arrival_time=arrival_time,
        distance_km=distance_km,
        bus_id=bus.id,
        active=True,
    )
    db.add(route)
    log_audit(db, actor.id, "route.create", "route", route.id, {
        "source": route.source, "destination": route.destination, "baseFare": str(route.base_fare),
    })
    db.commit()
    db.refresh(route)
    return route


def update_route_fare(db: Session, actor: User, route_id: str, base_fare) -> Route:
    route = db.get(Route, route_id)
    if not route:
        raise RouteNotFound("Route not found", routeId=route_id)
    fare = to_decimal(base_fare)
    if fare < Decimal("0"):
        raise ValidationFailed.single("baseFare", "Base fare cannot be negative")
    old = route.base_fare
    route.base_fare = round_money(fare)
    log_audit(db, actor.id, "route.fare", "route", route.id, {"from": str(old), "to": str(route.base_fare)})
    db.commit()
    db.refresh(route)
    return route


def deactivate_route(db: Session, actor: User, route_id: str) -> Route:
    route = db.get(Route, route_id)
    if not route:
        raise RouteNotFound("Route not found", routeId=route_id)
    route.active = False
    log_audit(db, actor.id, "route.deactivate", "route", route.id)
    db.commit()
    db.refresh(route)
    return route
