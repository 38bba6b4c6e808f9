from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import future_weekday
from busline.core.errors import (
    AmountExceedsBalance, DuplicateTransaction, InvalidAmount, ReservationNotPayable, ValidationFailed,
)
from busline.domain.enums import BookingStatus, HiringStatus, PaymentMethod, PaymentStatus
from busline.models.notification_event import NotificationEvent
from busline.models.payment import Payment
from busline.services import booking_service, hiring_service, ledger_service
from busline.services.ledger_service import derive_payment_status


@pytest.mark.parametrize("paid,refunded,due,expected", [
    ("0", "0", "100", PaymentStatus.PENDING),
    ("40", "0", "100", PaymentStatus.PARTIALLY_PAID),
    ("100", "0", "100", PaymentStatus.PAID),
    ("150", "0", "100", PaymentStatus.PAID),
    ("100", "40", "100", PaymentStatus.PARTIALLY_REFUNDED),
    ("100", "100", "100", PaymentStatus.REFUNDED),
    ("40", "40", "100", PaymentStatus.PARTIALLY_PAID),
    ("0", "0", "0", PaymentStatus.PAID),
])
def test_payment_status_precedence(paid, refunded, due, expected):
    assert derive_payment_status(Decimal(paid), Decimal(refunded), Decimal(due)) == expected


def test_partial_then_full_payment_confirms_booking(db, make_booking, customer):
    booking = make_booking()
    assert booking.total_fare == Decimal("1000.00")

    ledger_service.add_payment(db, booking, "400", PaymentMethod.CASH, "TXN-1", processed_by=customer.id)
    db.commit()
    assert booking.payment_status == PaymentStatus.PARTIALLY_PAID
    assert booking.status == BookingStatus.PENDING
    assert ledger_service.balance_due(booking) == Decimal("600.00")

    ledger_service.add_payment(db, booking, "600", PaymentMethod.BANK_TRANSFER, "TXN-2", processed_by=customer.id)
    db.commit()
    assert booking.total_paid == Decimal("1000.00")
    assert booking.payment_status == PaymentStatus.PAID
    assert booking.payment_completed_at is not None
    assert booking.last_payment_method == "Bank Transfer"
    assert booking.status == BookingStatus.CONFIRMED

    types = {e.type for e in db.query(NotificationEvent).filter(NotificationEvent.reservation_id == booking.id)}
    assert {"payment_successful", "booking_confirmed"} <= types


def test_duplicate_transaction_is_rejected_without_side_effects(db, make_booking):
    booking = make_booking()
    ledger_service.add_payment(db, booking, "300", PaymentMethod.CASH, "TXN-DUP")
    db.commit()

    with pytest.raises(DuplicateTransaction):
        ledger_service.add_payment(db, booking, "300", PaymentMethod.CASH, "TXN-DUP")
    db.rollback()

    assert db.query(Payment).filter(Payment.reservation_id == booking.id).count() == 1
    db.refresh(booking)
    assert booking.total_paid == Decimal("300.00")


@pytest.mark.parametrize("amount,error", [
    ("0", InvalidAmount),
    ("-5", InvalidAmount),
    ("1000.01", AmountExceedsBalance),
])
def test_payment_amount_guards(db, make_booking, amount, error):
    booking = make_booking()
    with pytest.raises(error):
        ledger_service.add_payment(db, booking, amount, PaymentMethod.CASH, "TXN-X")


def test_transaction_id_required(db, make_booking):
    booking = make_booking()
    with pytest.raises(ValidationFailed):
        ledger_service.add_payment(db, booking, "10", PaymentMethod.CASH, "  ")


def test_refund_cannot_exceed_held_amount(db, make_booking):
    booking = make_booking()
    ledger_service.add_payment(db, booking, "1000", PaymentMethod.CASH, "TXN-1")
    ledger_service.add_refund(db, booking, "600", reason="goodwill")
    db.commit()
    assert booking.payment_status == PaymentStatus.PARTIALLY_REFUNDED

    with pytest.raises(AmountExceedsBalance):
        ledger_service.add_refund(db, booking, "400.01")
    ledger_service.add_refund(db, booking, "400")
    db.commit()
    assert booking.total_refunded == Decimal("1000.00")
    assert booking.payment_status == PaymentStatus.REFUNDED
    assert len(ledger_service.refunds_for(db, booking)) == 2


def test_terminal_reservation_is_not_payable(db, make_booking, customer):
    booking = make_booking()
    booking_service.cancel_booking(db, booking.id, customer, "plans changed")
    with pytest.raises(ReservationNotPayable):
        ledger_service.add_payment(db, booking, "10", PaymentMethod.CASH, "TXN-LATE")


def test_ledger_view(db, make_booking):
    booking = make_booking()
    ledger_service.add_payment(db, booking, "250", PaymentMethod.CASH, "TXN-1")
    db.commit()
    view = ledger_service.ledger_view(db, booking)
    assert view["reference"] == booking.booking_ref
    assert view["amountDue"] == "1000.00"
    assert view["balance"] == "750.00"
    assert view["paymentStatus"] == "Partially Paid"
    assert [p["transactionId"] for p in view["payments"]] == ["TXN-1"]


def _future_hiring(db, customer, bus, deposit="20000"):
    start = future_weekday(days_ahead=20, hour=8)
    return hiring_service.create_hiring(db, customer, {
        "busId": bus.id,
        "purpose": "Wedding guests",
        "passengerCount": 30,
        "startDate": start,
        "endDate": start + timedelta(hours=8),
        "estimatedDistance": 120,
        "rateType": "Per Day",
        "baseRate": 80000,
        "deposit": deposit,
    })


def test_hiring_confirms_once_deposit_is_paid(db, customer, admin, bus):
    hiring = _future_hiring(db, customer, bus)
    hiring_service.approve_hiring(db, hiring.id, admin)

    ledger_service.add_payment(db, hiring, "10000", PaymentMethod.BANK_TRANSFER, "H-1")
    db.commit()
    assert hiring.status == HiringStatus.APPROVED
    assert hiring.payment_status == PaymentStatus.PARTIALLY_PAID

    ledger_service.add_payment(db, hiring, "10000", PaymentMethod.BANK_TRANSFER, "H-2")
    db.commit()
    assert hiring.status == HiringStatus.CONFIRMED


def test_payment_before_approval_confirms_on_approval(db, customer, admin, bus):
    hiring = _future_hiring(db, customer, bus)
    ledger_service.add_payment(db, hiring, "20000", PaymentMethod.CASH, "H-EARLY")
    db.commit()
    assert hiring.status == HiringStatus.PENDING

    hiring = hiring_service.approve_hiring(db, hiring.id, admin)
    assert hiring.status == HiringStatus.CONFIRMED


def test_zero_deposit_needs_some_payment(db, customer, admin, bus):
    hiring = _future_hiring(db, customer, bus, deposit="0")
    hiring = hiring_service.approve_hiring(db, hiring.id, admin)
    assert hiring.status == HiringStatus.APPROVED
