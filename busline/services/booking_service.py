import logging
import secrets
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from busline.core.config import settings
from busline.core.errors import InvalidStateTransition, RouteNotFound, SeatConflict, StateError, ValidationFailed
from busline.domain.enums import (
    BookingStatus, NotificationType, PassengerType, PaymentStatus, Role, SeatLeg, TripType,
)
from busline.domain.money import TimeWindow, as_utc, round_money, utcnow
from busline.models.booking import Booking, BookingPassenger, BookingSeat
from busline.models.refund import Refund
from busline.models.route import Route
from busline.models.user import User
from busline.services import ledger_service, lifecycle
from busline.services.audit_service import log_audit
from busline.services.availability_service import check_availability, lock_bus
from busline.services.fare_service import local_time, quote_booking_fare
from busline.services.notification_service import emit_event
from busline.services.refund_policy_service import booking_cancellation_fraction, compute_refund
from busline.services.settings_service import get_pricing_modifiers

logger = logging.getLogger(__name__)

MAX_AGE = 120


def make_booking_ref() -> str:
    return "BKG-" + secrets.token_hex(4).upper()


def _allocate_ref(db: Session) -> str:
    # booking_ref must be unique
    for _ in range(10):
        ref = make_booking_ref()
        exists = db.query(Booking).filter(Booking.booking_ref == ref).first()
        if not exists:
            return ref
    raise RuntimeError("could not allocate booking reference")


def _validate_passengers(passengers: list[dict], errors: list[dict]) -> None:
    if not passengers:
        errors.append({"field": "passengers", "message": "At least one passenger is required"})
        return
    for i, p in enumerate(passengers):
        if not (p.get("name") or "").strip():
            errors.append({"field": f"passengers[{i}].name", "message": "Name is required"})
        age = p.get("age")
        if not isinstance(age, int) or age < 0 or age > MAX_AGE:
            errors.append({"field": f"passengers[{i}].age", "message": "Age must be between 0 and 120"})
        if not (p.get("seatNumber") or "").strip():
            errors.append({"field": f"passengers[{i}].seatNumber", "message": "Seat number is required"})
        ptype = p.get("passengerType") or PassengerType.ADULT.value
        if ptype not in {t.value for t in PassengerType}:
            errors.append({"field": f"passengers[{i}].passengerType", "message": f"Unknown passenger type {ptype}"})


def _leg_seats(booking: Booking, leg: SeatLeg, departure_at: datetime, seats: list[str]) -> list[BookingSeat]:
    return [
        BookingSeat(
            id=str(uuid.uuid4()),
            booking_id=booking.id,
            bus_id=booking.bus_id,
            leg=leg,
            departure_at=departure_at,
            seat_number=seat,
            active=True,
        )
        for seat in seats
    ]


def _check_legs(db: Session, bus, legs: list[tuple[TimeWindow, list[str], list[str] | None]], exclude_id: str | None = None) -> None:
    for window, seats, passenger_seats in legs:
        check_availability(
            db, bus, window,
            exclude_reservation_id=exclude_id,
            requested_seats=seats,
            passenger_seats=passenger_seats,
        ).raise_for_conflict()


def create_booking(
    db: Session,
    booker: User,
    route_id: str,
    departure_at: datetime,
    passengers: list[dict],
    booking_type: TripType | str = TripType.ONE_WAY,
    return_at: datetime | None = None,
    selected_seats: dict | None = None,
    bus_id: str | None = None,
    promo_code: str | None = None,
    contact_email: str = "",
    contact_phone: str = "",
    booking_source: str = "Website",
) -> Booking:
    booking_type = TripType(booking_type)
    departure_at = as_utc(departure_at)
    return_at = as_utc(return_at)

    errors: list[dict] = []
    _validate_passengers(passengers, errors)
    if departure_at <= utcnow():
        errors.append({"field": "departureDate", "message": "Departure must be in the future"})
    if booking_type == TripType.ROUND_TRIP:
        if return_at is None:
            errors.append({"field": "returnDate", "message": "Return date is required for round trips"})
        elif return_at <= departure_at:
            errors.append({"field": "returnDate", "message": "Return date must be after departure"})
    elif return_at is not None:
        errors.append({"field": "returnDate", "message": "Return date is only allowed for round trips"})
    if errors:
        raise ValidationFailed(errors)

    route = db.get(Route, route_id)
    if not route or not route.active:
        raise RouteNotFound("Route not found", routeId=route_id)

    modifiers = get_pricing_modifiers(db)
    if local_time(departure_at, modifiers.timezone).weekday() not in route.weekdays:
        raise ValidationFailed.single("departureDate", "Route does not operate on that day")

    passenger_seats = [p["seatNumber"].strip() for p in passengers]
    selected_seats = selected_seats or {}
    outbound_seats = [s.strip() for s in (selected_seats.get("outbound") or passenger_seats)]
    return_seats = [s.strip() for s in (selected_seats.get("return") or passenger_seats)]
    if booking_type == TripType.ROUND_TRIP and len(return_seats) != len(passengers):
        raise ValidationFailed.single("selectedSeats.return", "One return seat is required per passenger")

    # Locks the bus row until commit
    bus = lock_bus(db, bus_id or route.bus_id)

    duration = route.trip_duration
    legs = [(TimeWindow(departure_at, departure_at + duration), outbound_seats, passenger_seats)]
    if booking_type == TripType.ROUND_TRIP:
        legs.append((TimeWindow(return_at, return_at + duration), return_seats, None))
    _check_legs(db, bus, legs)

    passenger_types = [p.get("passengerType") or PassengerType.ADULT.value for p in passengers]
    quote = quote_booking_fare(route, departure_at, passenger_types, booking_type, promo_code, modifiers)

    booking = Booking(
        id=str(uuid.uuid4()),
        booking_ref=_allocate_ref(db),
        user_id=booker.id,
        route_id=route.id,
        bus_id=bus.id,
        booking_type=booking_type,
        status=BookingStatus.PENDING,
        departure_at=departure_at,
        arrival_at=departure_at + duration,
        return_at=return_at,
        return_arrival_at=return_at + duration if return_at else None,
        currency=settings.CURRENCY,
        total_fare=quote.total,
        promo_code=quote.promo_code,
        discount_pct=round_money(quote.promo_pct),
        contact_email=contact_email or booker.email,
        contact_phone=contact_phone or booker.phone,
        booking_source=booking_source or "Website",
        payment_status=PaymentStatus.PENDING,
        total_paid=Decimal("0"),
        total_refunded=Decimal("0"),
    )
    db.add(booking)

    for i, p in enumerate(passengers):
        db.add(BookingPassenger(
            id=str(uuid.uuid4()),
            booking_id=booking.id,
            position=i,
            name=p["name"].strip(),
            age=p["age"],
            gender=p.get("gender", "") or "",
            seat_number=p["seatNumber"].strip(),
            passenger_type=passenger_types[i],
            document_type=p.get("documentType", "") or "None",
            document_number=p.get("documentNumber", "") or "",
            fare=quote.passenger_fares[i],
        ))
    db.add_all(_leg_seats(booking, SeatLeg.OUTBOUND, departure_at, outbound_seats))
    if booking_type == TripType.ROUND_TRIP:
        db.add_all(_leg_seats(booking, SeatLeg.RETURN, return_at, return_seats))

    lifecycle.record_initial_status(db, booking, booker.id, "Booking created")
    log_audit(db, booker.id, "booking.create", "booking", booking.id, {
        "bookingRef": booking.booking_ref, "totalFare": str(booking.total_fare), "seats": outbound_seats,
    })

    try:
        db.commit()
    except IntegrityError:
        # Another booking took one of the seats between our check and commit
        db.rollback()
        bus = lock_bus(db, bus.id)
        for window, seats, _ in legs:
            result = check_availability(db, bus, window, requested_seats=seats)
            if not result.available:
                result.raise_for_conflict()
        raise SeatConflict("The selected seats are not available", seats=outbound_seats)

    db.refresh(booking)
    logger.info("booking %s created: %d pax, %s %s", booking.booking_ref, len(passengers), booking.total_fare, booking.currency)
    return booking


def _release_seats(booking: Booking) -> None:
    for seat in booking.seats:
        seat.active = False


def is_admin(user: User) -> bool:
    return user.role == Role.ADMIN.value


def cancel_booking(db: Session, booking_id: str, actor: User, reason: str = "") -> tuple[Booking, Refund | None]:
    booking = ledger_service.get_reservation(db, Booking.kind, booking_id, for_update=True)
    if not lifecycle.can_transition(booking, BookingStatus.CANCELLED):
        raise InvalidStateTransition(booking.status.value, BookingStatus.CANCELLED.value)

    fraction = booking_cancellation_fraction(booking.departure_at, is_admin(actor))
    amount = compute_refund(booking.total_paid, fraction, booking.total_refunded)
    refund = None
    if amount > 0:
        refund = ledger_service.add_refund(
            db, booking, amount,
            reason=reason or "Booking cancelled",
            processed_by=actor.id,
        )

    booking.cancellation_reason = reason or ""
    booking.cancelled_at = utcnow()
    booking.cancelled_by = actor.id
    _release_seats(booking)
    final = BookingStatus.REFUNDED if booking.payment_status == PaymentStatus.REFUNDED else BookingStatus.CANCELLED
    lifecycle.transition(db, booking, final, actor.id, reason)

    emit_event(db, booking.user_id, NotificationType.BOOKING_CANCELLED, booking, {
        "refundAmount": str(amount), "refundPercentage": str(fraction * 100),
    })
    log_audit(db, actor.id, "booking.cancel", "booking", booking.id, {
        "reason": reason, "refundAmount": str(amount), "fraction": str(fraction),
    })
    db.commit()
    db.refresh(booking)
    return booking, refund


def _close_booking(db: Session, booking_id: str, actor: User, status: BookingStatus, action: str) -> Booking:
    booking = ledger_service.get_reservation(db, Booking.kind, booking_id, for_update=True)
    lifecycle.transition(db, booking, status, actor.id)
    _release_seats(booking)
    log_audit(db, actor.id, action, "booking", booking.id, {"status": status.value})
    db.commit()
    db.refresh(booking)
    return booking


def mark_booking_completed(db: Session, booking_id: str, actor: User) -> Booking:
    return _close_booking(db, booking_id, actor, BookingStatus.COMPLETED, "booking.complete")


def mark_booking_no_show(db: Session, booking_id: str, actor: User) -> Booking:
    return _close_booking(db, booking_id, actor, BookingStatus.NO_SHOW, "booking.no_show")


def recalculate_booking_fare(db: Session, booking_id: str, actor: User) -> Booking:
    """Re-price with the current modifiers. The only way total_fare changes after creation."""
    booking = ledger_service.get_reservation(db, Booking.kind, booking_id, for_update=True)
    if lifecycle.is_terminal(booking):
        raise StateError(f"{booking.booking_ref} is {booking.status.value}", status=booking.status.value)
    route = db.get(Route, booking.route_id)
    if not route:
        raise RouteNotFound("Route not found", routeId=booking.route_id)

    old_total = booking.total_fare
    quote = quote_booking_fare(
        route,
        booking.departure_at,
        [p.passenger_type for p in booking.passengers],
        booking.booking_type,
        booking.promo_code or None,
        get_pricing_modifiers(db),
    )
    booking.total_fare = quote.total
    for p, fare in zip(booking.passengers, quote.passenger_fares):
        p.fare = fare
    ledger_service.recompute(db, booking)
    ledger_service.auto_advance(db, booking, actor.id)
    log_audit(db, actor.id, "booking.recalculate", "booking", booking.id, {
        "oldTotal": str(old_total), "newTotal": str(quote.total),
    })
    db.commit()
    db.refresh(booking)
    return booking


def list_bookings(db: Session, user: User | None = None, status: str | None = None, limit: int = 100) -> list[Booking]:
    q = select(Booking).order_by(Booking.created_at.desc()).limit(limit)
    if user is not None:
        q = q.where(Booking.user_id == user.id)
    if status:
        q = q.where(Booking.status == BookingStatus(status))
    return db.execute(q).scalars().all()
