"""Append-only payment ledger shared by bookings and hirings.

Payment and refund rows are never updated or deleted. ``total_paid``,
``total_refunded`` and ``payment_status`` on the reservation are recomputed
from the rows after every append. Functions here stage changes on the
session; the calling service commits.
"""
import json
import logging
import secrets
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from busline.core.errors import (
    AmountExceedsBalance, DuplicateTransaction, InvalidAmount, ReservationNotFound, ReservationNotPayable,
    ValidationFailed,
)
from busline.domain.enums import (
    BookingStatus, HiringStatus, NotificationType, PaymentMethod, PaymentStatus, ReservationKind,
)
from busline.domain.money import ZERO, as_utc, round_money, to_decimal, utcnow
from busline.models.booking import Booking
from busline.models.hiring import Hiring
from busline.models.payment import Payment
from busline.models.refund import Refund
from busline.services import lifecycle
from busline.services.audit_service import log_audit
from busline.services.notification_service import emit_event

logger = logging.getLogger(__name__)

MODELS = {ReservationKind.BOOKING: Booking, ReservationKind.HIRING: Hiring}


def get_reservation(db: Session, kind: ReservationKind | str, reservation_id: str, for_update: bool = False):
    """Load by id or by reference (BKG-/HIR-)."""
    model = MODELS[ReservationKind(kind)]
    ref_col = model.booking_ref if model is Booking else model.hiring_ref
    q = select(model).where((model.id == reservation_id) | (ref_col == reservation_id))
    if for_update:
        q = q.with_for_update()
    reservation = db.execute(q).scalar_one_or_none()
    if not reservation:
        raise ReservationNotFound(f"{ReservationKind(kind).value.title()} not found", id=reservation_id)
    return reservation


def _rows(db: Session, model, reservation):
    return db.execute(
        select(model).where(model.reservation_kind == reservation.kind, model.reservation_id == reservation.id)
    ).scalars().all()


def payments_for(db: Session, reservation) -> list[Payment]:
    return sorted(_rows(db, Payment, reservation), key=lambda p: as_utc(p.paid_at))


def refunds_for(db: Session, reservation) -> list[Refund]:
    return sorted(_rows(db, Refund, reservation), key=lambda r: as_utc(r.refunded_at))


def derive_payment_status(total_paid, total_refunded, amount_due) -> PaymentStatus:
    paid, refunded, due = to_decimal(total_paid), to_decimal(total_refunded), to_decimal(amount_due)
    if paid >= due and refunded == 0:
        return PaymentStatus.PAID
    if 0 < paid < due:
        return PaymentStatus.PARTIALLY_PAID
    if 0 < refunded < paid:
        return PaymentStatus.PARTIALLY_REFUNDED
    if refunded >= paid and paid > 0:
        return PaymentStatus.REFUNDED
    return PaymentStatus.PENDING


def recompute(db: Session, reservation) -> PaymentStatus:
    db.flush()
    paid = db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0))
        .where(Payment.reservation_kind == reservation.kind, Payment.reservation_id == reservation.id)
    ).scalar_one()
    refunded = db.execute(
        select(func.coalesce(func.sum(Refund.amount), 0))
        .where(Refund.reservation_kind == reservation.kind, Refund.reservation_id == reservation.id)
    ).scalar_one()
    reservation.total_paid = round_money(paid)
    reservation.total_refunded = round_money(refunded)
    status = derive_payment_status(reservation.total_paid, reservation.total_refunded, reservation.amount_due)
    if status == PaymentStatus.PAID and reservation.payment_completed_at is None:
        reservation.payment_completed_at = utcnow()
    reservation.payment_status = status
    return status


def balance_due(reservation) -> Decimal:
    return round_money(to_decimal(reservation.amount_due) - to_decimal(reservation.total_paid))


def validate_payment_amount(reservation, amount) -> Decimal:
    amount = to_decimal(amount)
    if amount <= 0:
        raise InvalidAmount("Payment amount must be greater than zero", amount=str(amount))
    balance = balance_due(reservation)
    if amount > balance:
        raise AmountExceedsBalance(
            "Payment amount exceeds the remaining balance",
            amount=str(amount), balance=str(balance),
        )
    return amount


def ensure_payable(reservation) -> None:
    if lifecycle.is_terminal(reservation):
        raise ReservationNotPayable(
            f"{reservation.reference} is {reservation.status.value} and cannot take payments",
            status=reservation.status.value,
        )


def find_payment(db: Session, reservation, transaction_id: str) -> Payment | None:
    return db.execute(
        select(Payment).where(
            Payment.reservation_kind == reservation.kind,
            Payment.reservation_id == reservation.id,
            Payment.transaction_id == transaction_id,
        )
    ).scalar_one_or_none()


def find_gateway_payment(db: Session, gateway: str, reference: str) -> Payment | None:
    return db.execute(
        select(Payment).where(Payment.gateway == gateway, Payment.reference == reference)
    ).scalar_one_or_none()


def auto_advance(db: Session, reservation, actor: str = "") -> None:
    """Booking Pending -> Confirmed once Paid; hiring Approved -> Confirmed once the deposit is covered."""
    if reservation.kind == ReservationKind.BOOKING:
        if reservation.status == BookingStatus.PENDING and reservation.payment_status == PaymentStatus.PAID:
            lifecycle.transition(db, reservation, BookingStatus.CONFIRMED, actor, "Payment completed")
            emit_event(db, reservation.user_id, NotificationType.BOOKING_CONFIRMED, reservation)
        return
    paid = to_decimal(reservation.total_paid)
    if reservation.status == HiringStatus.APPROVED and paid > 0 and paid >= to_decimal(reservation.deposit):
        lifecycle.transition(db, reservation, HiringStatus.CONFIRMED, actor, "Deposit received")
        emit_event(db, reservation.user_id, NotificationType.HIRING_CONFIRMED, reservation)


def add_payment(
    db: Session,
    reservation,
    amount,
    method: PaymentMethod | str,
    transaction_id: str,
    processed_by: str = "",
    gateway: str = "",
    reference: str = "",
    gateway_response: dict | None = None,
    paid_at: datetime | None = None,
) -> Payment:
    ensure_payable(reservation)
    amount = to_decimal(amount)
    if amount <= 0:
        raise InvalidAmount("Payment amount must be greater than zero", amount=str(amount))
    transaction_id = (transaction_id or "").strip()
    if not transaction_id:
        raise ValidationFailed.single("transactionId", "A transaction id is required")
    if find_payment(db, reservation, transaction_id):
        raise DuplicateTransaction(transaction_id)
    amount = validate_payment_amount(reservation, amount)

    payment = Payment(
        id=str(uuid.uuid4()),
        reservation_kind=reservation.kind,
        reservation_id=reservation.id,
        amount=round_money(amount),
        currency=reservation.currency,
        method=PaymentMethod(method).value,
        transaction_id=transaction_id,
        reference=reference or "",
        gateway=gateway or "",
        gateway_response_json=json.dumps(gateway_response or {}, ensure_ascii=False, default=str),
        status="Completed",
        processed_by=processed_by or "",
        paid_at=as_utc(paid_at) or utcnow(),
    )
    db.add(payment)
    try:
        db.flush()
    except IntegrityError:
        # a concurrent request recorded the same transaction id or gateway reference first
        db.rollback()
        raise DuplicateTransaction(transaction_id)

    reservation.last_payment_at = payment.paid_at
    reservation.last_payment_method = payment.method
    status = recompute(db, reservation)
    auto_advance(db, reservation, processed_by)

    emit_event(db, reservation.user_id, NotificationType.PAYMENT_SUCCESSFUL, reservation, {
        "amount": str(payment.amount),
        "currency": payment.currency,
        "transactionId": transaction_id,
        "paymentStatus": status.value,
    })
    log_audit(db, processed_by, "payment.add", reservation.kind.value, reservation.id, {
        "amount": str(payment.amount), "method": payment.method, "transactionId": transaction_id,
    })
    logger.info("payment %s on %s: %s %s -> %s", transaction_id, reservation.reference,
                payment.amount, payment.currency, status.value)
    return payment


def make_refund_transaction_id() -> str:
    return "REF-" + secrets.token_hex(4).upper()


def add_refund(
    db: Session,
    reservation,
    amount,
    reason: str = "",
    refund_transaction_id: str | None = None,
    processed_by: str = "",
) -> Refund:
    amount = to_decimal(amount)
    if amount <= 0:
        raise InvalidAmount("Refund amount must be greater than zero", amount=str(amount))
    held = to_decimal(reservation.total_paid) - to_decimal(reservation.total_refunded)
    if amount > held:
        raise AmountExceedsBalance("Refund exceeds the amount held", amount=str(amount), held=str(round_money(held)))

    refund = Refund(
        id=str(uuid.uuid4()),
        reservation_kind=reservation.kind,
        reservation_id=reservation.id,
        amount=round_money(amount),
        reason=reason or "",
        refund_transaction_id=refund_transaction_id or make_refund_transaction_id(),
        status="Completed",
        processed_by=processed_by or "",
    )
    db.add(refund)
    status = recompute(db, reservation)

    emit_event(db, reservation.user_id, NotificationType.REFUND_PROCESSED, reservation, {
        "amount": str(refund.amount),
        "refundTransactionId": refund.refund_transaction_id,
        "paymentStatus": status.value,
    })
    log_audit(db, processed_by, "refund.add", reservation.kind.value, reservation.id, {
        "amount": str(refund.amount), "refundTransactionId": refund.refund_transaction_id, "reason": reason,
    })
    logger.info("refund %s on %s: %s -> %s", refund.refund_transaction_id, reservation.reference,
                refund.amount, status.value)
    return refund


def ledger_view(db: Session, reservation) -> dict:
    return {
        "reference": reservation.reference,
        "amountDue": str(round_money(reservation.amount_due)),
        "currency": reservation.currency,
        "totalPaid": str(round_money(reservation.total_paid or ZERO)),
        "totalRefunded": str(round_money(reservation.total_refunded or ZERO)),
        "balance": str(balance_due(reservation)),
        "paymentStatus": reservation.payment_status.value,
        "lastPaymentAt": reservation.last_payment_at.isoformat() if reservation.last_payment_at else None,
        "lastPaymentMethod": reservation.last_payment_method or None,
        "paymentCompletedAt": reservation.payment_completed_at.isoformat() if reservation.payment_completed_at else None,
        "payments": [
            {
                "amount": str(p.amount),
                "currency": p.currency,
                "method": p.method,
                "transactionId": p.transaction_id,
                "reference": p.reference,
                "status": p.status,
                "paidAt": p.paid_at.isoformat() if p.paid_at else None,
                "processedBy": p.processed_by,
            }
            for p in payments_for(db, reservation)
        ],
        "refunds": [
            {
                "amount": str(r.amount),
                "reason": r.reason,
                "refundTransactionId": r.refund_transaction_id,
                "status": r.status,
                "refundedAt": r.refunded_at.isoformat() if r.refunded_at else None,
            }
            for r in refunds_for(db, reservation)
        ],
    }
