import json
import logging
import secrets
from datetime import datetime
from sqlalchemy.orm import Session

from busline.core.config import settings
from busline.core.errors import DuplicateTransaction, PaymentDeclined, ValidationFailed
from busline.domain.enums import NotificationType, PaymentMethod, ReservationKind
from busline.domain.money import as_utc, major_to_minor, minor_to_major, to_decimal
from busline.models.user import User
from busline.services import ledger_service
from busline.services.audit_service import log_audit
from busline.services.notification_service import emit_event
from busline.services.paystack_client import PaystackClient, PaystackConfig

logger = logging.getLogger(__name__)


def get_gateway() -> PaystackClient:
    return PaystackClient(PaystackConfig(
        base_url=settings.PAYSTACK_BASE_URL,
        secret_key=settings.PAYSTACK_SECRET_KEY,
        timeout=settings.PAYSTACK_TIMEOUT,
        sandbox=settings.PAYSTACK_SANDBOX,
    ))


def _parse_paid_at(value) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


def initialize_payment(db: Session, gateway, kind: ReservationKind | str, reservation_id: str, user: User,
                       amount=None) -> dict:
    reservation = ledger_service.get_reservation(db, kind, reservation_id)
    ledger_service.ensure_payable(reservation)
    amount = ledger_service.balance_due(reservation) if amount is None else to_decimal(amount)
    amount = ledger_service.validate_payment_amount(reservation, amount)

    reference = f"{reservation.reference}-{secrets.token_hex(3).upper()}"
    result = gateway.initialize(
        reservation.contact_email if reservation.kind == ReservationKind.BOOKING and reservation.contact_email else user.email,
        major_to_minor(amount),
        {
            "reservationKind": reservation.kind.value,
            "reservationId": reservation.id,
            "reservationRef": reservation.reference,
        },
        reference=reference,
    )
    log_audit(db, user.id, "payment.initialize", reservation.kind.value, reservation.id, {
        "amount": str(amount), "reference": result["reference"],
    })
    db.commit()
    return {
        "authorizationUrl": result["authorizationUrl"],
        "reference": result["reference"],
        "amount": str(amount),
        "currency": reservation.currency,
    }


def _transaction_metadata(raw) -> dict:
    """Metadata sent at initialize, as echoed back by the verify response."""
    if not isinstance(raw, dict):
        return {}
    data = raw.get("data") if isinstance(raw.get("data"), dict) else raw
    metadata = data.get("metadata")
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except ValueError:
            return {}
    return metadata if isinstance(metadata, dict) else {}


def belongs_to(reservation, gateway_reference: str, result: dict) -> bool:
    metadata = _transaction_metadata(result.get("raw"))
    if metadata.get("reservationId"):
        return metadata["reservationId"] == reservation.id
    # sandbox and older transactions carry no metadata
    return gateway_reference.startswith(f"{reservation.reference}-")


def _reject_foreign_reference(db: Session, reservation, gateway_reference: str, actor: User):
    log_audit(db, actor.id, "payment.reference_mismatch", reservation.kind.value, reservation.id, {
        "reference": gateway_reference,
    })
    db.commit()
    logger.warning("payment %s does not belong to %s", gateway_reference, reservation.reference)
    raise ValidationFailed.single("reference", "Payment reference does not belong to this reservation")


def verify_and_record(db: Session, gateway, kind: ReservationKind | str, reservation_id: str, gateway_reference: str,
                      actor: User) -> dict:
    """Verify a gateway transaction and append it to the ledger exactly once."""
    gateway_reference = (gateway_reference or "").strip()
    if not gateway_reference:
        raise ValidationFailed.single("reference", "Payment reference is required")
    reservation = ledger_service.get_reservation(db, kind, reservation_id)
    if ledger_service.find_payment(db, reservation, gateway_reference):
        return {"alreadyRecorded": True, **ledger_service.ledger_view(db, reservation)}
    if ledger_service.find_gateway_payment(db, "paystack", gateway_reference):
        _reject_foreign_reference(db, reservation, gateway_reference, actor)
    ledger_service.ensure_payable(reservation)

    # No row lock held across the network call
    result = gateway.verify(gateway_reference, expected_amount=major_to_minor(ledger_service.balance_due(reservation)))
    if not result.get("success"):
        emit_event(db, reservation.user_id, NotificationType.PAYMENT_FAILED, reservation, {"reference": gateway_reference})
        log_audit(db, actor.id, "payment.declined", reservation.kind.value, reservation.id, {"reference": gateway_reference})
        db.commit()
        logger.warning("payment %s for %s declined", gateway_reference, reservation.reference)
        raise PaymentDeclined("Payment was not successful", reference=gateway_reference)
    if not belongs_to(reservation, gateway_reference, result):
        _reject_foreign_reference(db, reservation, gateway_reference, actor)

    reservation = ledger_service.get_reservation(db, kind, reservation.id, for_update=True)
    try:
        ledger_service.add_payment(
            db, reservation,
            minor_to_major(result["amount"]),
            PaymentMethod.PAYSTACK,
            gateway_reference,
            processed_by=actor.id,
            gateway="paystack",
            reference=gateway_reference,
            gateway_response=result.get("raw"),
            paid_at=_parse_paid_at(result.get("paidAt")),
        )
    except DuplicateTransaction:
        # recorded by a concurrent verify for the same reference
        db.rollback()
        reservation = ledger_service.get_reservation(db, kind, reservation.id)
        if not ledger_service.find_payment(db, reservation, gateway_reference):
            _reject_foreign_reference(db, reservation, gateway_reference, actor)
        return {"alreadyRecorded": True, **ledger_service.ledger_view(db, reservation)}
    db.commit()
    db.refresh(reservation)
    return {"alreadyRecorded": False, **ledger_service.ledger_view(db, reservation)}


def record_manual_payment(db: Session, kind: ReservationKind | str, reservation_id: str, amount,
                          method: PaymentMethod | str, transaction_id: str, actor: User) -> dict:
    reservation = ledger_service.get_reservation(db, kind, reservation_id, for_update=True)
    ledger_service.add_payment(db, reservation, amount, method, transaction_id, processed_by=actor.id)
    db.commit()
    db.refresh(reservation)
    return ledger_service.ledger_view(db, reservation)


def record_refund(db: Session, kind: ReservationKind | str, reservation_id: str, amount, reason: str,
                  actor: User) -> dict:
    reservation = ledger_service.get_reservation(db, kind, reservation_id, for_update=True)
    ledger_service.add_refund(db, reservation, amount, reason=reason, processed_by=actor.id)
    db.commit()
    db.refresh(reservation)
    return ledger_service.ledger_view(db, reservation)
