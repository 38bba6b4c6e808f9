from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from busline.db.session import get_db
from busline.api.deps import ensure_owner_or_staff, get_current_user, get_payment_gateway, require_roles
from busline.domain.enums import ReservationKind, Role
from busline.models.user import User
from busline.schemas.payments import ManualPaymentIn, PaymentInitIn, PaymentVerifyIn, RefundIn
from busline.services import ledger_service, payment_service

router = APIRouter(prefix="/payments", tags=["payments"])
staff = require_roles(Role.ADMIN, Role.OPS)
admin_only = require_roles(Role.ADMIN)


@router.post("/initialize")
def initialize_payment(body: PaymentInitIn, db: Session = Depends(get_db), user: User = Depends(get_current_user),
                       gateway=Depends(get_payment_gateway)):
    reservation = ledger_service.get_reservation(db, body.kind, body.reservationId)
    ensure_owner_or_staff(user, reservation)
    return payment_service.initialize_payment(db, gateway, body.kind, reservation.id, user, body.amount)


@router.post("/verify")
def verify_payment(body: PaymentVerifyIn, db: Session = Depends(get_db), user: User = Depends(get_current_user),
                   gateway=Depends(get_payment_gateway)):
    reservation = ledger_service.get_reservation(db, body.kind, body.reservationId)
    ensure_owner_or_staff(user, reservation)
    return payment_service.verify_and_record(db, gateway, body.kind, reservation.id, body.reference, user)


@router.post("/manual")
def record_manual_payment(body: ManualPaymentIn, db: Session = Depends(get_db), user: User = Depends(staff)):
    return payment_service.record_manual_payment(
        db, body.kind, body.reservationId, body.amount, body.method, body.transactionId, user,
    )


@router.post("/refunds")
def record_refund(body: RefundIn, db: Session = Depends(get_db), user: User = Depends(admin_only)):
    return payment_service.record_refund(db, body.kind, body.reservationId, body.amount, body.reason, user)


@router.get("/{kind}/{reservation_id}")
def ledger(kind: ReservationKind, reservation_id: str, db: Session = Depends(get_db),
           user: User = Depends(get_current_user)):
    reservation = ledger_service.get_reservation(db, kind, reservation_id)
    ensure_owner_or_staff(user, reservation)
    return ledger_service.ledger_view(db, reservation)
