import logging
import secrets
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.orm import Session

from busline.core.config import settings
from busline.core.errors import BusNotFound, RouteNotFound, ValidationFailed, InvalidStateTransition
from busline.domain.enums import (
    CancellationPolicy, HiringStatus, NotificationType, PaymentStatus, RateType, TripType,
)
from busline.domain.money import as_utc, round_money, to_decimal, utcnow
from busline.models.bus import Bus
from busline.models.hiring import Hiring, HiringCharge
from busline.models.refund import Refund
from busline.models.route import Route
from busline.models.user import User
from busline.services import ledger_service, lifecycle
from busline.services.audit_service import log_audit
from busline.services.availability_service import check_availability, lock_bus
from busline.services.hiring_cost_service import CostBreakdown, cost_breakdown
from busline.services.notification_service import emit_event
from busline.services.refund_policy_service import compute_refund, hiring_cancellation_fraction

logger = logging.getLogger(__name__)


def make_hiring_ref() -> str:
    return "HIR-" + secrets.token_hex(4).upper()


def _allocate_ref(db: Session) -> str:
    for _ in range(10):
        ref = make_hiring_ref()
        if not db.query(Hiring).filter(Hiring.hiring_ref == ref).first():
            return ref
    raise RuntimeError("could not allocate hiring reference")


def build_hiring(data: dict) -> Hiring:
    """Unsaved Hiring from request fields, validated. Used for quotes and creation."""
    errors: list[dict] = []
    start_at = as_utc(data.get("startDate"))
    end_at = as_utc(data.get("endDate"))
    return_at = as_utc(data.get("returnDate"))

    try:
        trip_type = TripType(data.get("tripType") or TripType.ONE_WAY.value)
    except ValueError:
        trip_type = TripType.ONE_WAY
        errors.append({"field": "tripType", "message": "Trip type must be either One-Way or Round-Trip"})
    try:
        rate_type = RateType(data.get("rateType") or RateType.PER_DAY.value)
    except ValueError:
        rate_type = RateType.PER_DAY
        errors.append({"field": "rateType", "message": "Invalid rate type"})
    try:
        policy = CancellationPolicy(data.get("cancellationPolicy") or CancellationPolicy.STANDARD.value)
    except ValueError:
        policy = CancellationPolicy.STANDARD
        errors.append({"field": "cancellationPolicy", "message": "Invalid cancellation policy"})

    if start_at is None:
        errors.append({"field": "startDate", "message": "Start date is required"})
    if end_at is None:
        errors.append({"field": "endDate", "message": "End date is required"})
    if start_at and end_at and end_at <= start_at:
        errors.append({"field": "endDate", "message": "End date must be after start date"})
    if trip_type == TripType.ROUND_TRIP:
        if return_at is None:
            errors.append({"field": "returnDate", "message": "Return date is required for round trips"})
        elif start_at and return_at <= start_at:
            errors.append({"field": "returnDate", "message": "Return date must be after start date"})
    elif return_at is not None:
        errors.append({"field": "returnDate", "message": "Return date is only allowed for round trips"})

    if not (data.get("purpose") or "").strip():
        errors.append({"field": "purpose", "message": "Purpose is required"})
    passenger_count = data.get("passengerCount")
    if not isinstance(passenger_count, int) or passenger_count < 1:
        errors.append({"field": "passengerCount", "message": "Passenger count must be at least 1"})
    distance = to_decimal(data.get("estimatedDistance"))
    if distance <= 0:
        errors.append({"field": "estimatedDistance", "message": "Estimated distance must be greater than zero"})

    base_rate = data.get("baseRate")
    if base_rate is None and rate_type != RateType.ROUTE_BASED:
        errors.append({"field": "baseRate", "message": "Base rate is required"})
    elif base_rate is not None and to_decimal(base_rate) < 0:
        errors.append({"field": "baseRate", "message": "Base rate cannot be negative"})
    multiplier = to_decimal(data.get("routePriceMultiplier") or 1)
    if multiplier < 1:
        errors.append({"field": "routePriceMultiplier", "message": "Multiplier must be at least 1"})
    for name in ("driverAllowance", "overtimeRate", "deposit"):
        if to_decimal(data.get(name)) < 0:
            errors.append({"field": name, "message": f"{name} cannot be negative"})
    charges = data.get("additionalCharges") or []
    for i, c in enumerate(charges):
        if to_decimal(c.get("amount")) < 0:
            errors.append({"field": f"additionalCharges[{i}].amount", "message": "Charge cannot be negative"})
    if errors:
        raise ValidationFailed(errors)

    hiring = Hiring(
        id=str(uuid.uuid4()),
        status=HiringStatus.PENDING,
        bus_id=data.get("busId"),
        route_id=data.get("routeId") or None,
        purpose=data["purpose"].strip(),
        passenger_count=passenger_count,
        special_requirements=data.get("specialRequirements") or "",
        start_location=data.get("startLocation") or "",
        end_location=data.get("endLocation") or "",
        return_location=data.get("returnLocation") or "",
        start_at=start_at,
        end_at=end_at,
        trip_type=trip_type,
        return_at=return_at,
        estimated_distance=distance,
        rate_type=rate_type,
        base_rate=to_decimal(base_rate) if base_rate is not None else None,
        route_price_multiplier=multiplier,
        driver_allowance=to_decimal(data.get("driverAllowance")),
        overtime_rate=to_decimal(data.get("overtimeRate")),
        fuel_included=bool(data.get("fuelIncluded", True)),
        deposit=round_money(to_decimal(data.get("deposit"))),
        currency=settings.CURRENCY,
        cancellation_policy=policy,
        terms_accepted=bool(data.get("termsAccepted", False)),
        notes=data.get("notes") or "",
        payment_status=PaymentStatus.PENDING,
        total_paid=Decimal("0"),
        total_refunded=Decimal("0"),
    )
    hiring.additional_charges = [
        HiringCharge(
            id=str(uuid.uuid4()),
            position=i,
            description=c.get("description") or "",
            amount=round_money(to_decimal(c.get("amount"))),
        )
        for i, c in enumerate(charges)
    ]
    return hiring


def _collaborators(db: Session, hiring: Hiring) -> tuple[Route | None, Bus | None]:
    route = db.get(Route, hiring.route_id) if hiring.route_id else None
    bus = db.get(Bus, hiring.bus_id) if hiring.bus_id else None
    return route, bus


def quote_hiring(db: Session, data: dict) -> CostBreakdown:
    hiring = build_hiring(data)
    route, bus = _collaborators(db, hiring)
    return cost_breakdown(hiring, route, bus)


def create_hiring(db: Session, user: User, data: dict) -> Hiring:
    hiring = build_hiring(data)
    if hiring.start_at <= utcnow():
        raise ValidationFailed.single("startDate", "Start date must be in the future")
    if hiring.route_id and not db.get(Route, hiring.route_id):
        raise RouteNotFound("Route not found", routeId=hiring.route_id)
    if not hiring.bus_id:
        raise BusNotFound("Bus not found")

    # Locks the bus row until commit
    bus = lock_bus(db, hiring.bus_id)
    if hiring.passenger_count > bus.capacity:
        raise ValidationFailed.single("passengerCount", f"Bus {bus.bus_number} seats {bus.capacity}")
    check_availability(db, bus, hiring.window).raise_for_conflict()

    route = db.get(Route, hiring.route_id) if hiring.route_id else None
    hiring.total_cost = cost_breakdown(hiring, route, bus).total
    if hiring.deposit > hiring.total_cost:
        raise ValidationFailed.single("deposit", "Deposit cannot exceed the total cost")

    hiring.hiring_ref = _allocate_ref(db)
    hiring.user_id = user.id
    db.add(hiring)
    lifecycle.record_initial_status(db, hiring, user.id, "Hiring requested")
    log_audit(db, user.id, "hiring.create", "hiring", hiring.id, {
        "hiringRef": hiring.hiring_ref, "totalCost": str(hiring.total_cost), "busId": bus.id,
    })
    db.commit()
    db.refresh(hiring)
    logger.info("hiring %s created: bus=%s %s..%s total=%s", hiring.hiring_ref, bus.bus_number,
                hiring.start_at, hiring.end_at, hiring.total_cost)
    return hiring


def _load(db: Session, hiring_id: str) -> Hiring:
    return ledger_service.get_reservation(db, Hiring.kind, hiring_id, for_update=True)


def approve_hiring(db: Session, hiring_id: str, actor: User, notes: str = "") -> Hiring:
    hiring = _load(db, hiring_id)
    lifecycle.transition(db, hiring, HiringStatus.APPROVED, actor.id, notes)
    # payments taken while Pending may already cover the deposit
    ledger_service.auto_advance(db, hiring, actor.id)
    log_audit(db, actor.id, "hiring.approve", "hiring", hiring.id, {"notes": notes})
    db.commit()
    db.refresh(hiring)
    return hiring


def reject_hiring(db: Session, hiring_id: str, actor: User, reason: str = "") -> Hiring:
    hiring = _load(db, hiring_id)
    lifecycle.transition(db, hiring, HiringStatus.REJECTED, actor.id, reason)
    held = to_decimal(hiring.total_paid) - to_decimal(hiring.total_refunded)
    if held > 0:
        ledger_service.add_refund(db, hiring, held, reason=reason or "Hiring rejected", processed_by=actor.id)
    emit_event(db, hiring.user_id, NotificationType.HIRING_CANCELLED, hiring, {"reason": reason, "rejected": True})
    log_audit(db, actor.id, "hiring.reject", "hiring", hiring.id, {"reason": reason})
    db.commit()
    db.refresh(hiring)
    return hiring


def start_hiring(db: Session, hiring_id: str, actor: User) -> Hiring:
    hiring = _load(db, hiring_id)
    lifecycle.transition(db, hiring, HiringStatus.IN_PROGRESS, actor.id)
    log_audit(db, actor.id, "hiring.start", "hiring", hiring.id)
    db.commit()
    db.refresh(hiring)
    return hiring


def complete_hiring(db: Session, hiring_id: str, actor: User) -> Hiring:
    hiring = _load(db, hiring_id)
    lifecycle.transition(db, hiring, HiringStatus.COMPLETED, actor.id)
    log_audit(db, actor.id, "hiring.complete", "hiring", hiring.id)
    db.commit()
    db.refresh(hiring)
    return hiring


def cancel_hiring(db: Session, hiring_id: str, actor: User, reason: str = "",
                  now: datetime | None = None) -> tuple[Hiring, Refund | None]:
    hiring = _load(db, hiring_id)
    if not lifecycle.can_transition(hiring, HiringStatus.CANCELLED):
        raise InvalidStateTransition(hiring.status.value, HiringStatus.CANCELLED.value)

    fraction = hiring_cancellation_fraction(hiring.start_at, hiring.cancellation_policy, now)
    amount = compute_refund(hiring.total_paid, fraction, hiring.total_refunded)
    refund = None
    if amount > 0:
        refund = ledger_service.add_refund(db, hiring, amount, reason=reason or "Hiring cancelled",
                                           processed_by=actor.id)

    final = HiringStatus.REFUNDED if hiring.payment_status == PaymentStatus.REFUNDED else HiringStatus.CANCELLED
    lifecycle.transition(db, hiring, final, actor.id, reason)
    emit_event(db, hiring.user_id, NotificationType.HIRING_CANCELLED, hiring, {
        "refundAmount": str(amount), "refundPercentage": str(fraction * 100),
    })
    log_audit(db, actor.id, "hiring.cancel", "hiring", hiring.id, {
        "reason": reason, "refundAmount": str(amount), "policy": hiring.cancellation_policy.value,
    })
    db.commit()
    db.refresh(hiring)
    return hiring, refund


def assign_driver(db: Session, hiring_id: str, actor: User, name: str, contact_number: str = "",
                  license_number: str = "") -> Hiring:
    hiring = _load(db, hiring_id)
    if lifecycle.is_terminal(hiring):
        raise InvalidStateTransition(hiring.status.value, "Driver Assigned")
    if not (name or "").strip():
        raise ValidationFailed.single("name", "Driver name is required")
    hiring.driver_name = name.strip()
    hiring.driver_contact = contact_number or ""
    hiring.driver_license = license_number or ""
    hiring.driver_assigned_at = utcnow()
    log_audit(db, actor.id, "hiring.assign_driver", "hiring", hiring.id, {"name": hiring.driver_name})
    db.commit()
    db.refresh(hiring)
    return hiring


def list_hirings(db: Session, user: User | None = None, status: str | None = None, limit: int = 100) -> list[Hiring]:
    q = select(Hiring).order_by(Hiring.created_at.desc()).limit(limit)
    if user is not None:
        q = q.where(Hiring.user_id == user.id)
    if status:
        q = q.where(Hiring.status == HiringStatus(status))
    return db.execute(q).scalars().all()
