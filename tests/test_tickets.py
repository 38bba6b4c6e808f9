from datetime import timedelta

from conftest import auth, future_weekday
from busline.domain.enums import HiringStatus, PaymentMethod
from busline.domain.money import utcnow
from busline.services import booking_service, ledger_service, ticket_service


def _paid_booking(db, make_booking):
    booking = make_booking(seats=("7",))
    ledger_service.add_payment(db, booking, booking.total_fare, PaymentMethod.CASH, f"PAY-{booking.booking_ref}")
    db.commit()
    return booking


def _ticket(client, user, booking):
    r = client.get(f"/api/v1/tickets/booking/{booking.booking_ref}", headers=auth(user))
    assert r.status_code == 200, r.text
    return r.json()


def test_unpaid_booking_has_no_ticket(client, make_booking, customer):
    booking = make_booking()
    r = client.get(f"/api/v1/tickets/booking/{booking.id}", headers=auth(customer))
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_state"


def test_ticket_payload(client, db, make_booking, customer):
    booking = _paid_booking(db, make_booking)
    ticket = _ticket(client, customer, booking)
    assert ticket["ticketId"] == f"TKT-{booking.booking_ref}"
    assert ticket["status"] == "Confirmed"
    assert ticket["from"] == "Lagos"
    assert ticket["to"] == "Ibadan"
    assert ticket["passengers"][0]["seatNumber"] == "7"
    assert ticket["signature"] == ticket_service.sign(ticket)


def test_conductor_verifies_ticket(client, db, make_booking, customer, conductor):
    booking = _paid_booking(db, make_booking)
    ticket = _ticket(client, customer, booking)

    r = client.post("/api/v1/tickets/verify", headers=auth(conductor), json={
        "ticket": ticket, "location": "Ojota Park", "busUsed": "BL-001",
    })
    assert r.status_code == 200, r.text
    assert r.json()["result"] == "valid"
    assert r.json()["reference"] == booking.booking_ref

    r = client.get(f"/api/v1/tickets/booking/{booking.id}/verifications", headers=auth(conductor))
    history = r.json()
    assert len(history) == 1
    assert history[0]["location"] == "Ojota Park"
    assert history[0]["verifiedBy"] == conductor.id


def test_customers_cannot_verify(client, db, make_booking, customer):
    ticket = _ticket(client, customer, _paid_booking(db, make_booking))
    r = client.post("/api/v1/tickets/verify", headers=auth(customer), json={"ticket": ticket})
    assert r.status_code == 403


def test_tampered_ticket_is_invalid(client, db, make_booking, make_bus, customer, conductor):
    ticket = _ticket(client, customer, _paid_booking(db, make_booking))
    ticket["busId"] = make_bus().id
    r = client.post("/api/v1/tickets/verify", headers=auth(conductor), json={"ticket": ticket})
    assert r.json()["result"] == "invalid"
    assert r.json()["reason"] == "bad signature"


def test_ticket_expires_after_arrival(client, db, make_booking, customer, conductor):
    booking = _paid_booking(db, make_booking)
    ticket = _ticket(client, customer, booking)

    booking.arrival_at = utcnow() - timedelta(hours=1)
    db.commit()

    r = client.post("/api/v1/tickets/verify", headers=auth(conductor), json={"ticket": ticket})
    assert r.json()["result"] == "expired"


def test_cancelled_booking_ticket_is_invalid(client, db, make_booking, customer, conductor):
    booking = _paid_booking(db, make_booking)
    ticket = _ticket(client, customer, booking)
    booking_service.cancel_booking(db, booking.id, customer)

    r = client.post("/api/v1/tickets/verify", headers=auth(conductor), json={"ticket": ticket})
    assert r.json()["result"] == "invalid"
    assert r.json()["reference"] == booking.booking_ref


def test_unknown_reservation(db, conductor):
    fields = {
        "ticketId": "TKT-BKG-DEADBEEF", "kind": "booking", "reservationId": "nope", "reference": "BKG-DEADBEEF",
        "busId": "x", "validFrom": "2026-01-01T00:00:00+00:00", "validUntil": "2026-01-01T04:00:00+00:00",
    }
    payload = {**fields, "signature": ticket_service.sign(fields)}
    out = ticket_service.record_verification(db, payload, conductor)
    assert out["result"] == "invalid"
    assert out["reason"] == "unknown reservation"
    assert out["reference"] is None


def test_hiring_ticket(db, make_hiring, bus, conductor):
    start = future_weekday(days_ahead=5, hour=8)
    hiring = make_hiring(bus, start, start + timedelta(hours=10), status=HiringStatus.CONFIRMED)
    ledger_service.add_payment(db, hiring, hiring.total_cost, PaymentMethod.BANK_TRANSFER, "HIRE-PAID")
    db.commit()

    ticket = ticket_service.build_ticket_payload(db, hiring)
    assert ticket["kind"] == "hiring"
    assert ticket["purpose"] == "Church retreat"
    assert ticket_service.record_verification(db, ticket, conductor)["result"] == "valid"
