from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from datetime import datetime

from busline.db.session import get_db
from busline.core.config import settings
from busline.api.deps import require_roles
from busline.core.errors import BusNotFound, RouteNotFound
from busline.domain.enums import Role
from busline.domain.money import TimeWindow
from busline.models.bus import Bus
from busline.models.route import Route
from busline.models.user import User
from busline.schemas.fleet import BusIn, BusOut, BusStatusIn, FareQuoteIn, RouteFareIn, RouteIn, RouteOut, SettingIn
from busline.services import fleet_service, settings_service
from busline.services.audit_service import log_audit
from busline.services.availability_service import check_availability
from busline.services.fare_service import quote_booking_fare

router = APIRouter(tags=["fleet"])
staff = require_roles(Role.ADMIN, Role.OPS)
admin_only = require_roles(Role.ADMIN)


def _bus_out(b: Bus) -> BusOut:
    return BusOut(id=b.id, busNumber=b.bus_number, capacity=b.capacity, busType=b.bus_type, status=b.status.value)


def _route_out(r: Route) -> RouteOut:
    return RouteOut(
        id=r.id, source=r.source, destination=r.destination, baseFare=str(r.base_fare), busId=r.bus_id,
        departureTime=r.departure_time, arrivalTime=r.arrival_time, operatingDays=sorted(r.weekdays),
        distanceKm=r.distance_km, active=r.active,
    )


@router.get("/buses", response_model=list[BusOut])
def list_buses(db: Session = Depends(get_db), user: User = Depends(staff)):
    return [_bus_out(b) for b in db.query(Bus).order_by(Bus.bus_number.asc()).all()]


@router.post("/buses", response_model=BusOut)
def create_bus(body: BusIn, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    return _bus_out(fleet_service.create_bus(db, user, body.busNumber, body.capacity, body.busType, body.status))


@router.patch("/buses/{bus_id}/status", response_model=BusOut)
def set_bus_status(bus_id: str, body: BusStatusIn, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    return _bus_out(fleet_service.set_bus_status(db, user, bus_id, body.status))


@router.get("/buses/{bus_id}/availability")
def bus_availability(bus_id: str, start: datetime, end: datetime, db: Session = Depends(get_db)):
    bus = db.get(Bus, bus_id)
    if not bus:
        raise BusNotFound("Bus not found", busId=bus_id)
    return check_availability(db, bus, TimeWindow(start, end)).to_dict()


@router.get("/routes", response_model=list[RouteOut])
def list_routes(source: str | None = None, destination: str | None = None, db: Session = Depends(get_db)):
    q = db.query(Route).filter(Route.active == True)
    if source:
        q = q.filter(Route.source.ilike(source))
    if destination:
        q = q.filter(Route.destination.ilike(destination))
    return [_route_out(r) for r in q.order_by(Route.source.asc(), Route.departure_time.asc()).all()]


@router.post("/routes", response_model=RouteOut)
def create_route(body: RouteIn, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    route = fleet_service.create_route(
        db, user, body.source, body.destination, body.baseFare, body.busId,
        body.departureTime, body.arrivalTime, body.operatingDays, body.distanceKm,
    )
    return _route_out(route)


@router.patch("/routes/{route_id}/fare", response_model=RouteOut)
def update_route_fare(route_id: str, body: RouteFareIn, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    return _route_out(fleet_service.update_route_fare(db, user, route_id, body.baseFare))


@router.delete("/routes/{route_id}", response_model=RouteOut)
def deactivate_route(route_id: str, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    return _route_out(fleet_service.deactivate_route(db, user, route_id))


@router.post("/fares/quote")
def fare_quote(body: FareQuoteIn, db: Session = Depends(get_db)):
    route = db.get(Route, body.routeId)
    if not route:
        raise RouteNotFound("Route not found", routeId=body.routeId)
    quote = quote_booking_fare(
        route, body.departureDate, body.passengerTypes, body.bookingType, body.promoCode,
        settings_service.get_pricing_modifiers(db),
    )
    return {"routeId": route.id, "currency": settings.CURRENCY, **quote.to_dict()}


@router.get("/admin/settings")
def get_settings(db: Session = Depends(get_db), user: User = Depends(staff)):
    return settings_service.list_values(db)


@router.put("/admin/settings")
def put_setting(body: SettingIn, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    out = settings_service.set_value(db, body.key, body.value)
    log_audit(db, user.id, "setting.update", "setting", out["key"], out)
    db.commit()
    return out
