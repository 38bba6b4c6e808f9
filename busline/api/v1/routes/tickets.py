from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from busline.db.session import get_db
from busline.api.deps import ensure_owner_or_staff, get_current_user, require_roles
from busline.domain.enums import ReservationKind, Role
from busline.models.user import User
from busline.schemas.tickets import VerifyTicketIn, VerifyTicketOut
from busline.services import ledger_service, ticket_service

router = APIRouter(prefix="/tickets", tags=["tickets"])
checkers = require_roles(Role.CONDUCTOR, Role.OPS, Role.ADMIN)


@router.get("/{kind}/{reservation_id}")
def get_ticket(kind: ReservationKind, reservation_id: str, db: Session = Depends(get_db),
               user: User = Depends(get_current_user)):
    reservation = ledger_service.get_reservation(db, kind, reservation_id)
    ensure_owner_or_staff(user, reservation)
    return ticket_service.build_ticket_payload(db, reservation)


@router.post("/verify", response_model=VerifyTicketOut)
def verify_ticket(body: VerifyTicketIn, db: Session = Depends(get_db), user: User = Depends(checkers)):
    return ticket_service.record_verification(
        db, body.ticket, user, location=body.location, bus_used=body.busUsed, notes=body.notes, is_manual=body.manual,
    )


@router.get("/{kind}/{reservation_id}/verifications")
def verification_history(kind: ReservationKind, reservation_id: str, db: Session = Depends(get_db),
                         user: User = Depends(checkers)):
    reservation = ledger_service.get_reservation(db, kind, reservation_id)
    return ticket_service.verification_history(db, reservation)
