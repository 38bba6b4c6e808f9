import pytest

from conftest import auth, future_weekday
from busline.core.errors import DuplicateTransaction
from busline.domain.enums import BookingStatus, PaymentMethod, PaymentStatus
from busline.models.audit_log import AuditLog
from busline.models.notification_event import NotificationEvent
from busline.models.payment import Payment
from busline.services import ledger_service, payment_service


def _init(client, user, booking, **extra):
    r = client.post("/api/v1/payments/initialize", headers=auth(user), json={
        "kind": "booking", "reservationId": booking.booking_ref, **extra,
    })
    assert r.status_code == 200, r.text
    return r.json()


def test_initialize_charges_outstanding_balance(client, gateway, make_booking, customer):
    booking = make_booking()
    body = _init(client, customer, booking)
    assert body["amount"] == "1000.00"
    assert body["currency"] == "NGN"
    assert body["reference"].startswith(booking.booking_ref + "-")
    assert body["authorizationUrl"] == f"https://checkout.test/{body['reference']}"
    # gateway sees kobo
    assert gateway.initialized[body["reference"]] == 100000


def test_initialize_rejects_overpayment(client, make_booking, customer):
    booking = make_booking()
    r = client.post("/api/v1/payments/initialize", headers=auth(customer), json={
        "kind": "booking", "reservationId": booking.id, "amount": "1500",
    })
    assert r.status_code == 409
    assert r.json()["code"] == "amount_exceeds_balance"


def test_verify_records_payment_once(client, gateway, make_booking, customer):
    booking = make_booking()
    reference = _init(client, customer, booking)["reference"]

    r = client.post("/api/v1/payments/verify", headers=auth(customer), json={
        "kind": "booking", "reservationId": booking.booking_ref, "reference": reference,
    })
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["alreadyRecorded"] is False
    assert body["paymentStatus"] == "Paid"
    assert body["payments"][0]["method"] == "Paystack"
    assert body["payments"][0]["reference"] == reference

    r = client.get(f"/api/v1/bookings/{booking.booking_ref}", headers=auth(customer))
    assert r.json()["status"] == "Confirmed"

    r = client.post("/api/v1/payments/verify", headers=auth(customer), json={
        "kind": "booking", "reservationId": booking.booking_ref, "reference": reference,
    })
    assert r.status_code == 200
    assert r.json()["alreadyRecorded"] is True
    assert len(r.json()["payments"]) == 1
    assert gateway.verify_calls == 1


def test_declined_payment(client, db, gateway, make_booking, customer):
    booking = make_booking()
    reference = _init(client, customer, booking)["reference"]
    gateway.declined.add(reference)

    r = client.post("/api/v1/payments/verify", headers=auth(customer), json={
        "kind": "booking", "reservationId": booking.id, "reference": reference,
    })
    assert r.status_code == 402
    assert r.json()["code"] == "payment_declined"

    failed = db.query(NotificationEvent).filter(
        NotificationEvent.reservation_id == booking.id, NotificationEvent.type == "payment_failed",
    ).count()
    assert failed == 1
    assert db.query(AuditLog).filter(AuditLog.action == "payment.declined").count() == 1
    db.refresh(booking)
    assert booking.payment_status.value == "Pending"


def test_verify_requires_reference(client, make_booking, customer):
    booking = make_booking()
    r = client.post("/api/v1/payments/verify", headers=auth(customer), json={
        "kind": "booking", "reservationId": booking.id, "reference": " ",
    })
    assert r.status_code == 422
    assert r.json()["code"] == "validation_failed"


def test_payment_for_someone_elses_booking(client, make_booking, make_user):
    booking = make_booking()
    r = client.post("/api/v1/payments/initialize", headers=auth(make_user()), json={
        "kind": "booking", "reservationId": booking.id,
    })
    assert r.status_code == 403


def test_manual_payment_is_staff_only(client, make_booking, customer, ops):
    booking = make_booking()
    payload = {
        "kind": "booking", "reservationId": booking.booking_ref,
        "amount": "400", "method": "Cash", "transactionId": "COUNTER-001",
    }
    assert client.post("/api/v1/payments/manual", headers=auth(customer), json=payload).status_code == 403

    r = client.post("/api/v1/payments/manual", headers=auth(ops), json=payload)
    assert r.status_code == 200, r.text
    assert r.json()["paymentStatus"] == "Partially Paid"
    assert r.json()["balance"] == "600.00"
    assert r.json()["payments"][0]["processedBy"] == ops.id

    r = client.post("/api/v1/payments/manual", headers=auth(ops), json=payload)
    assert r.status_code == 409
    assert r.json()["code"] == "duplicate_transaction"


def test_refunds_are_admin_only(client, make_booking, admin, ops, customer):
    booking = make_booking()
    client.post("/api/v1/payments/manual", headers=auth(ops), json={
        "kind": "booking", "reservationId": booking.id, "amount": "1000", "transactionId": "COUNTER-002",
    })
    payload = {"kind": "booking", "reservationId": booking.id, "amount": "400", "reason": "late departure"}
    assert client.post("/api/v1/payments/refunds", headers=auth(ops), json=payload).status_code == 403

    r = client.post("/api/v1/payments/refunds", headers=auth(admin), json=payload)
    assert r.status_code == 200, r.text
    assert r.json()["totalRefunded"] == "400.00"
    assert r.json()["paymentStatus"] == "Partially Refunded"
    assert r.json()["refunds"][0]["reason"] == "late departure"

    r = client.get(f"/api/v1/payments/booking/{booking.booking_ref}", headers=auth(customer))
    assert r.status_code == 200
    assert r.json()["totalPaid"] == "1000.00"


def test_hiring_can_be_paid_before_approval(client, gateway, make_hiring, bus, customer):
    start = future_weekday(days_ahead=30, hour=8)
    hiring = make_hiring(bus, start, start.replace(hour=18), deposit="10000")

    r = client.post("/api/v1/payments/initialize", headers=auth(customer), json={
        "kind": "hiring", "reservationId": hiring.hiring_ref, "amount": "10000",
    })
    assert r.status_code == 200, r.text
    reference = r.json()["reference"]
    assert gateway.initialized[reference] == 1000000

    r = client.post("/api/v1/payments/verify", headers=auth(customer), json={
        "kind": "hiring", "reservationId": hiring.id, "reference": reference,
    })
    assert r.status_code == 200, r.text
    assert r.json()["paymentStatus"] == "Partially Paid"
    assert r.json()["balance"] == "40000.00"


def _verify(client, user, booking, reference):
    return client.post("/api/v1/payments/verify", headers=auth(user), json={
        "kind": "booking", "reservationId": booking.id, "reference": reference,
    })


def test_reference_cannot_pay_a_second_booking(client, db, gateway, make_booking, customer):
    first = make_booking(seats=("1",))
    second = make_booking(seats=("2",))
    reference = _init(client, customer, first)["reference"]
    assert _verify(client, customer, first, reference).status_code == 200

    r = _verify(client, customer, second, reference)
    assert r.status_code == 422
    assert r.json()["details"]["errors"][0]["field"] == "reference"
    assert gateway.verify_calls == 1

    db.refresh(second)
    assert second.payment_status == PaymentStatus.PENDING
    assert second.status == BookingStatus.PENDING
    assert db.query(Payment).filter(Payment.reference == reference).count() == 1


def test_reference_started_for_another_booking(client, db, make_booking, customer):
    first = make_booking(seats=("1",))
    second = make_booking(seats=("2",))
    reference = _init(client, customer, first)["reference"]

    r = _verify(client, customer, second, reference)
    assert r.status_code == 422
    assert db.query(AuditLog).filter(AuditLog.action == "payment.reference_mismatch").count() == 1
    db.refresh(second)
    assert second.payment_status == PaymentStatus.PENDING

    # still good for the booking it was started for
    r = _verify(client, customer, first, reference)
    assert r.status_code == 200
    assert r.json()["paymentStatus"] == "Paid"


def test_reference_without_metadata_falls_back_to_prefix(make_booking):
    booking = make_booking()
    sandbox = {"success": True, "amount": 100000, "raw": {"sandbox": True}}
    assert payment_service.belongs_to(booking, f"{booking.booking_ref}-A1B2C3", sandbox)
    assert not payment_service.belongs_to(booking, "BKG-OTHER-A1B2C3", sandbox)

    tagged = {"raw": {"data": {"metadata": '{"reservationId": "%s"}' % booking.id}}}
    assert payment_service.belongs_to(booking, "anything", tagged)


def test_gateway_reference_is_unique_across_reservations(db, make_booking):
    first = make_booking(seats=("1",))
    second = make_booking(seats=("2",))
    ledger_service.add_payment(db, first, "500", PaymentMethod.PAYSTACK, "TXN-1", gateway="paystack", reference="PSK-1")
    db.commit()

    with pytest.raises(DuplicateTransaction):
        ledger_service.add_payment(db, second, "500", PaymentMethod.PAYSTACK, "TXN-2", gateway="paystack", reference="PSK-1")

    # manual entries carry no gateway reference
    ledger_service.add_payment(db, second, "100", PaymentMethod.CASH, "COUNTER-1")
    ledger_service.add_payment(db, second, "100", PaymentMethod.CASH, "COUNTER-2")
    db.commit()
    assert db.query(Payment).filter(Payment.gateway == "").count() == 2
