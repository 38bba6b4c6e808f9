import json

import pytest
import requests
from sqlalchemy.dialects import postgresql

from busline.core.config import settings
from busline.domain.enums import NotificationType
from busline.models.notification_event import NotificationEvent
from busline.services import notification_service
from busline.tasks import worker_jobs


class _Resp:
    def __init__(self, status_code=200, text="ok"):
        self.status_code = status_code
        self.text = text


@pytest.fixture()
def queued(db, make_booking, customer):
    booking = make_booking()
    notification_service.emit_event(db, customer.id, NotificationType.BOOKING_CONFIRMED, booking, {"seats": ["1"]})
    db.commit()
    return booking


def _events(db, booking):
    return db.query(NotificationEvent).filter(NotificationEvent.reservation_id == booking.id).all()


def test_emit_event_stages_outbox_row(db, queued):
    event = _events(db, queued)[0]
    assert event.status == "queued"
    assert event.type == "booking_confirmed"
    assert event.reservation_kind == "booking"
    assert json.loads(event.payload_json) == {"seats": ["1"], "reference": queued.booking_ref}


def test_dispatch_without_webhook_skips(db, queued):
    out = notification_service.dispatch_pending(db)
    assert out == {"processed": 1, "sent": 0, "failed": 0, "skipped": 1}
    assert _events(db, queued)[0].status == "skipped"


def test_dispatch_posts_to_webhook(db, queued, monkeypatch):
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json))
        return _Resp()

    monkeypatch.setattr(settings, "NOTIFY_WEBHOOK_URL", "https://hooks.test/busline")
    monkeypatch.setattr(notification_service.requests, "post", fake_post)

    out = notification_service.dispatch_pending(db)
    assert out["sent"] == 1
    url, body = calls[0]
    assert url == "https://hooks.test/busline"
    assert body["type"] == "booking_confirmed"
    assert body["relatedReservationId"] == queued.id
    assert body["payload"]["reference"] == queued.booking_ref

    event = _events(db, queued)[0]
    assert event.status == "sent"
    assert event.attempts == 1
    assert event.dispatched_at is not None


def test_failed_delivery_is_retried(db, queued, monkeypatch):
    def broken(url, json=None, timeout=None):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(settings, "NOTIFY_WEBHOOK_URL", "https://hooks.test/busline")
    monkeypatch.setattr(notification_service.requests, "post", broken)
    assert notification_service.dispatch_pending(db)["failed"] == 1
    event = _events(db, queued)[0]
    assert (event.status, event.attempts) == ("failed", 1)

    monkeypatch.setattr(notification_service.requests, "post", lambda url, json=None, timeout=None: _Resp(500, "boom"))
    assert notification_service.dispatch_pending(db)["failed"] == 1
    assert _events(db, queued)[0].attempts == 2


def test_gives_up_after_max_attempts(db, queued, monkeypatch):
    event = _events(db, queued)[0]
    event.status = "failed"
    event.attempts = notification_service.MAX_ATTEMPTS
    db.commit()
    monkeypatch.setattr(settings, "NOTIFY_WEBHOOK_URL", "https://hooks.test/busline")
    assert notification_service.dispatch_pending(db)["processed"] == 0


def test_worker_job_uses_its_own_session(db, queued):
    out = worker_jobs.dispatch_notifications(limit=10)
    assert out["skipped"] == 1
    db.expire_all()
    assert _events(db, queued)[0].status == "skipped"


def test_pending_rows_are_claimed_with_skip_locked(db, queued):
    sql = str(notification_service.pending_events(db).statement.compile(dialect=postgresql.dialect()))
    assert "FOR UPDATE SKIP LOCKED" in sql
    # sqlite has no row locks and ignores the clause
    assert [e.reservation_id for e in notification_service.pending_events(db).all()] == [queued.id]


def test_sent_events_are_not_posted_again(db, queued, monkeypatch):
    calls = []
    monkeypatch.setattr(settings, "NOTIFY_WEBHOOK_URL", "https://hooks.test/busline")
    monkeypatch.setattr(notification_service.requests, "post", lambda url, json=None, timeout=None: calls.append(url) or _Resp())

    assert notification_service.dispatch_pending(db)["sent"] == 1
    assert notification_service.dispatch_pending(db)["processed"] == 0
    assert len(calls) == 1
