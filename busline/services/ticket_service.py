"""Ticket payloads and boarding verification.

A ticket is the reservation's fields plus an HMAC-SHA256 signature over
the identifying part. Rendering (PDF, QR) happens outside this service.
"""
import hashlib
import hmac
import json
import logging
import uuid
from sqlalchemy import select
from sqlalchemy.orm import Session

from busline.core.config import settings
from busline.core.errors import ReservationNotFound, StateError
from busline.domain.enums import (
    BookingStatus, HiringStatus, PaymentStatus, ReservationKind, SeatLeg, VerificationResult,
)
from busline.domain.money import as_utc, utcnow
from busline.models.bus import Bus
from busline.models.route import Route
from busline.models.user import User
from busline.models.verification import TicketVerification
from busline.services import ledger_service
from busline.services.audit_service import log_audit

logger = logging.getLogger(__name__)

BOARDABLE = {
    ReservationKind.BOOKING: frozenset({BookingStatus.CONFIRMED}),
    ReservationKind.HIRING: frozenset({HiringStatus.CONFIRMED, HiringStatus.IN_PROGRESS}),
}
SIGNED_FIELDS = ("ticketId", "kind", "reservationId", "reference", "busId", "validFrom", "validUntil")


def _signing_key() -> bytes:
    return (settings.TICKET_SIGNING_KEY or settings.SECRET_KEY).encode("utf-8")


def sign(fields: dict) -> str:
    canonical = json.dumps({k: fields.get(k) for k in SIGNED_FIELDS}, sort_keys=True, separators=(",", ":"))
    return hmac.new(_signing_key(), canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def _validity(reservation) -> tuple:
    if reservation.kind == ReservationKind.BOOKING:
        end = reservation.return_arrival_at or reservation.arrival_at
        return as_utc(reservation.departure_at), as_utc(end)
    window = reservation.window
    return window.start, window.end


def build_ticket_payload(db: Session, reservation) -> dict:
    if reservation.payment_status != PaymentStatus.PAID:
        raise StateError("Ticket is only available after payment", paymentStatus=reservation.payment_status.value)

    valid_from, valid_until = _validity(reservation)
    bus = db.get(Bus, reservation.bus_id)
    ticket = {
        "ticketId": f"TKT-{reservation.reference}",
        "kind": reservation.kind.value,
        "reservationId": reservation.id,
        "reference": reservation.reference,
        "busId": reservation.bus_id,
        "validFrom": valid_from.isoformat(),
        "validUntil": valid_until.isoformat(),
    }
    details: dict = {
        "status": reservation.status.value,
        "paymentStatus": reservation.payment_status.value,
        "busNumber": bus.bus_number if bus else None,
        "amountPaid": str(reservation.total_paid),
        "currency": reservation.currency,
        "issuedAt": utcnow().isoformat(),
    }
    if reservation.kind == ReservationKind.BOOKING:
        route = db.get(Route, reservation.route_id)
        details.update({
            "from": route.source if route else None,
            "to": route.destination if route else None,
            "bookingType": reservation.booking_type.value,
            "departureAt": as_utc(reservation.departure_at).isoformat(),
            "returnAt": as_utc(reservation.return_at).isoformat() if reservation.return_at else None,
            "passengers": [
                {"name": p.name, "seatNumber": p.seat_number, "passengerType": p.passenger_type}
                for p in reservation.passengers
            ],
            "returnSeats": sorted(s.seat_number for s in reservation.seats if s.leg == SeatLeg.RETURN),
        })
    else:
        details.update({
            "purpose": reservation.purpose,
            "passengerCount": reservation.passenger_count,
            "startLocation": reservation.start_location,
            "endLocation": reservation.end_location,
            "tripType": reservation.trip_type.value,
            "driverName": reservation.driver_name or None,
        })
    return {**ticket, **details, "signature": sign(ticket)}


def _evaluate(db: Session, payload: dict):
    """(result, reservation or None, reason)."""
    signature = payload.get("signature") or ""
    if not hmac.compare_digest(sign(payload), signature):
        return VerificationResult.INVALID, None, "bad signature"
    try:
        kind = ReservationKind(payload.get("kind"))
        reservation = ledger_service.get_reservation(db, kind, payload.get("reservationId") or "")
    except (ValueError, ReservationNotFound):
        return VerificationResult.INVALID, None, "unknown reservation"
    if reservation.payment_status != PaymentStatus.PAID or reservation.status not in BOARDABLE[kind]:
        return VerificationResult.INVALID, reservation, f"{reservation.status.value}/{reservation.payment_status.value}"
    _, valid_until = _validity(reservation)
    if utcnow() > valid_until:
        return VerificationResult.EXPIRED, reservation, "trip has ended"
    return VerificationResult.VALID, reservation, ""


def record_verification(db: Session, payload: dict, conductor: User, location: str = "", bus_used: str = "",
                        notes: str = "", is_manual: bool = False) -> dict:
    result, reservation, reason = _evaluate(db, payload)
    kind = reservation.kind if reservation is not None else ReservationKind.BOOKING
    if reservation is None:
        try:
            kind = ReservationKind(payload.get("kind"))
        except ValueError:
            pass
    row = TicketVerification(
        id=str(uuid.uuid4()),
        reservation_kind=kind,
        reservation_id=reservation.id if reservation is not None else str(payload.get("reservationId") or "")[:36],
        ticket_id=str(payload.get("ticketId") or "")[:40],
        verified_by=conductor.id,
        result=result,
        location=location or "",
        bus_used=bus_used or "",
        notes=(notes or reason)[:500],
        is_manual=bool(is_manual),
    )
    db.add(row)
    log_audit(db, conductor.id, "ticket.verify", kind.value, row.reservation_id, {
        "result": result.value, "reason": reason, "manual": is_manual,
    })
    db.commit()
    logger.info("ticket %s verified by %s: %s %s", row.ticket_id, conductor.id, result.value, reason)
    return {
        "result": result.value,
        "reason": reason or None,
        "reference": reservation.reference if reservation is not None else None,
        "verifiedAt": as_utc(row.verified_at).isoformat(),
    }


def verification_history(db: Session, reservation) -> list[dict]:
    rows = db.execute(
        select(TicketVerification)
        .where(TicketVerification.reservation_kind == reservation.kind,
               TicketVerification.reservation_id == reservation.id)
        .order_by(TicketVerification.verified_at.asc())
    ).scalars().all()
    return [
        {
            "result": r.result.value,
            "verifiedBy": r.verified_by,
            "verifiedAt": as_utc(r.verified_at).isoformat(),
            "location": r.location,
            "busUsed": r.bus_used,
            "notes": r.notes,
            "manual": r.is_manual,
        }
        for r in rows
    ]
