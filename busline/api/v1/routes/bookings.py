from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from busline.db.session import get_db
from busline.api.deps import ensure_owner_or_staff, get_current_user, is_staff, require_roles
from busline.domain.enums import BookingStatus, ReservationKind, Role, SeatLeg
from busline.domain.money import as_utc, round_money
from busline.models.booking import Booking
from busline.models.user import User
from busline.schemas.booking import BookingCreate, BookingOut, BookingStatusIn, CancelIn, PassengerOut
from busline.services import booking_service, ledger_service, lifecycle

router = APIRouter(tags=["bookings"])
admin_only = require_roles(Role.ADMIN)


def _iso(dt):
    return as_utc(dt).isoformat() if dt else None


def booking_out(b: Booking, refund_amount=None) -> BookingOut:
    return BookingOut(
        id=b.id,
        bookingRef=b.booking_ref,
        status=b.status.value,
        bookingType=b.booking_type.value,
        routeId=b.route_id,
        busId=b.bus_id,
        departureDate=_iso(b.departure_at),
        arrivalDate=_iso(b.arrival_at),
        returnDate=_iso(b.return_at),
        outboundSeats=sorted(s.seat_number for s in b.seats if s.leg == SeatLeg.OUTBOUND),
        returnSeats=sorted(s.seat_number for s in b.seats if s.leg == SeatLeg.RETURN),
        passengers=[
            PassengerOut(name=p.name, age=p.age, gender=p.gender or "", seatNumber=p.seat_number,
                         passengerType=p.passenger_type, fare=str(p.fare))
            for p in b.passengers
        ],
        totalFare=str(b.total_fare),
        currency=b.currency,
        promoCode=b.promo_code or "",
        discountPct=str(round_money(b.discount_pct or 0)),
        paymentStatus=b.payment_status.value,
        totalPaid=str(b.total_paid),
        totalRefunded=str(b.total_refunded),
        cancellationReason=b.cancellation_reason or "",
        cancelledAt=_iso(b.cancelled_at),
        createdAt=_iso(b.created_at),
        refundAmount=str(refund_amount) if refund_amount is not None else None,
    )


@router.post("/bookings", response_model=BookingOut)
def create_booking(body: BookingCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    seats = None
    if body.selectedSeats:
        seats = {"outbound": body.selectedSeats.outbound, "return": body.selectedSeats.return_}
    booking = booking_service.create_booking(
        db, user,
        route_id=body.routeId,
        departure_at=body.departureDate,
        passengers=[p.model_dump(mode="json") for p in body.passengers],
        booking_type=body.bookingType,
        return_at=body.returnDate,
        selected_seats=seats,
        bus_id=body.busId,
        promo_code=body.promoCode,
        contact_email=body.contactEmail or "",
        contact_phone=body.contactPhone or "",
        booking_source=body.bookingSource,
    )
    return booking_out(booking)


@router.get("/bookings", response_model=list[BookingOut])
def list_bookings(status: str | None = None, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    owner = None if is_staff(user) else user
    return [booking_out(b) for b in booking_service.list_bookings(db, owner, status)]


@router.get("/bookings/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    b = ledger_service.get_reservation(db, ReservationKind.BOOKING, booking_id)
    ensure_owner_or_staff(user, b)
    return booking_out(b)


@router.get("/bookings/{booking_id}/history")
def booking_history(booking_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    b = ledger_service.get_reservation(db, ReservationKind.BOOKING, booking_id)
    ensure_owner_or_staff(user, b)
    return [
        {"status": h.status, "changedAt": _iso(h.changed_at), "actor": h.actor, "notes": h.notes}
        for h in lifecycle.status_history(db, b)
    ]


@router.post("/bookings/{booking_id}/cancel", response_model=BookingOut)
def cancel_booking(booking_id: str, body: CancelIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    b = ledger_service.get_reservation(db, ReservationKind.BOOKING, booking_id)
    ensure_owner_or_staff(user, b)
    booking, refund = booking_service.cancel_booking(db, b.id, user, body.reason)
    return booking_out(booking, refund.amount if refund else 0)


@router.patch("/bookings/{booking_id}/status", response_model=BookingOut)
def set_booking_status(booking_id: str, body: BookingStatusIn, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    if body.status == BookingStatus.COMPLETED.value:
        return booking_out(booking_service.mark_booking_completed(db, booking_id, user))
    if body.status == BookingStatus.NO_SHOW.value:
        return booking_out(booking_service.mark_booking_no_show(db, booking_id, user))
    raise HTTPException(status_code=400, detail="Use /cancel to cancel; only Completed or No-Show can be set here")


@router.post("/bookings/{booking_id}/recalculate", response_model=BookingOut)
def recalculate_booking(booking_id: str, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    return booking_out(booking_service.recalculate_booking_fare(db, booking_id, user))
