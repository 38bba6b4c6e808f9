from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from busline.db.session import get_db
from busline.api.deps import ensure_owner_or_staff, get_current_user, is_staff, require_roles
from busline.domain.enums import ReservationKind, Role
from busline.domain.money import as_utc
from busline.models.hiring import Hiring
from busline.models.user import User
from busline.schemas.booking import CancelIn
from busline.schemas.hiring import DecisionIn, DriverIn, HiringIn, HiringOut
from busline.services import hiring_service, ledger_service, lifecycle

router = APIRouter(prefix="/hirings", tags=["hirings"])
admin_only = require_roles(Role.ADMIN)
staff = require_roles(Role.ADMIN, Role.OPS)


def _iso(dt):
    return as_utc(dt).isoformat() if dt else None


def hiring_out(h: Hiring, refund_amount=None) -> HiringOut:
    driver = None
    if h.driver_name:
        driver = {
            "name": h.driver_name,
            "contactNumber": h.driver_contact,
            "licenseNumber": h.driver_license,
            "assignedAt": _iso(h.driver_assigned_at),
        }
    return HiringOut(
        id=h.id,
        hiringRef=h.hiring_ref,
        status=h.status.value,
        busId=h.bus_id,
        routeId=h.route_id,
        purpose=h.purpose,
        passengerCount=h.passenger_count,
        startDate=_iso(h.start_at),
        endDate=_iso(h.end_at),
        returnDate=_iso(h.return_at),
        tripType=h.trip_type.value,
        rateType=h.rate_type.value,
        totalCost=str(h.total_cost),
        deposit=str(h.deposit),
        currency=h.currency,
        cancellationPolicy=h.cancellation_policy.value,
        paymentStatus=h.payment_status.value,
        totalPaid=str(h.total_paid),
        totalRefunded=str(h.total_refunded),
        additionalCharges=[{"description": c.description, "amount": str(c.amount)} for c in h.additional_charges],
        driver=driver,
        refundAmount=str(refund_amount) if refund_amount is not None else None,
    )


@router.post("/quote")
def quote_hiring(body: HiringIn, db: Session = Depends(get_db)):
    return hiring_service.quote_hiring(db, body.model_dump()).to_dict()


@router.post("", response_model=HiringOut)
def create_hiring(body: HiringIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return hiring_out(hiring_service.create_hiring(db, user, body.model_dump()))


@router.get("", response_model=list[HiringOut])
def list_hirings(status: str | None = None, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    owner = None if is_staff(user) else user
    return [hiring_out(h) for h in hiring_service.list_hirings(db, owner, status)]


@router.get("/{hiring_id}", response_model=HiringOut)
def get_hiring(hiring_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    h = ledger_service.get_reservation(db, ReservationKind.HIRING, hiring_id)
    ensure_owner_or_staff(user, h)
    return hiring_out(h)


@router.get("/{hiring_id}/history")
def hiring_history(hiring_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    h = ledger_service.get_reservation(db, ReservationKind.HIRING, hiring_id)
    ensure_owner_or_staff(user, h)
    return [
        {"status": e.status, "changedAt": _iso(e.changed_at), "actor": e.actor, "notes": e.notes}
        for e in lifecycle.status_history(db, h)
    ]


@router.post("/{hiring_id}/approve", response_model=HiringOut)
def approve_hiring(hiring_id: str, body: DecisionIn, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    return hiring_out(hiring_service.approve_hiring(db, hiring_id, user, body.notes))


@router.post("/{hiring_id}/reject", response_model=HiringOut)
def reject_hiring(hiring_id: str, body: DecisionIn, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    return hiring_out(hiring_service.reject_hiring(db, hiring_id, user, body.notes))


@router.post("/{hiring_id}/start", response_model=HiringOut)
def start_hiring(hiring_id: str, db: Session = Depends(get_db), user: User = Depends(staff)):
    return hiring_out(hiring_service.start_hiring(db, hiring_id, user))


@router.post("/{hiring_id}/complete", response_model=HiringOut)
def complete_hiring(hiring_id: str, db: Session = Depends(get_db), user: User = Depends(staff)):
    return hiring_out(hiring_service.complete_hiring(db, hiring_id, user))


@router.put("/{hiring_id}/driver", response_model=HiringOut)
def assign_driver(hiring_id: str, body: DriverIn, db: Session = Depends(get_db), user: User = Depends(staff)):
    return hiring_out(hiring_service.assign_driver(db, hiring_id, user, body.name, body.contactNumber, body.licenseNumber))


@router.post("/{hiring_id}/cancel", response_model=HiringOut)
def cancel_hiring(hiring_id: str, body: CancelIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    h = ledger_service.get_reservation(db, ReservationKind.HIRING, hiring_id)
    ensure_owner_or_staff(user, h)
    hiring, refund = hiring_service.cancel_hiring(db, h.id, user, body.reason)
    return hiring_out(hiring, refund.amount if refund else 0)
