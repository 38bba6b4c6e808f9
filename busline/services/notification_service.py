from datetime import datetime, timezone
import json
import logging
import uuid

import requests
from sqlalchemy.orm import Session

from busline.core.config import settings
from busline.domain.enums import NotificationType
from busline.models.notification_event import NotificationEvent

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5


def emit_event(db: Session, recipient_id: str, type: NotificationType, reservation=None, payload: dict | None = None) -> str:
    """Stage an outbox row in the caller's transaction. Delivery happens in the worker."""
    eid = str(uuid.uuid4())
    body = dict(payload or {})
    if reservation is not None:
        body.setdefault("reference", reservation.reference)
    db.add(
        NotificationEvent(
            id=eid,
            recipient_id=recipient_id or "",
            type=NotificationType(type).value,
            reservation_kind=reservation.kind.value if reservation is not None else "",
            reservation_id=reservation.id if reservation is not None else "",
            payload_json=json.dumps(body, ensure_ascii=False, default=str),
            status="queued",
        )
    )
    return eid


def deliver(event: NotificationEvent) -> None:
    r = requests.post(
        settings.NOTIFY_WEBHOOK_URL,
        json={
            "id": event.id,
            "recipientId": event.recipient_id,
            "type": event.type,
            "relatedReservationId": event.reservation_id,
            "reservationKind": event.reservation_kind,
            "payload": json.loads(event.payload_json or "{}"),
            "createdAt": event.created_at.isoformat() if event.created_at else None,
        },
        timeout=20,
    )
    if r.status_code >= 400:
        raise RuntimeError(f"Notification webhook error {r.status_code}: {r.text}")


def pending_events(db: Session, limit: int = 50):
    # rows claimed by another worker are skipped until its commit
    return (
        db.query(NotificationEvent)
        .filter(NotificationEvent.status.in_(["queued", "failed"]), NotificationEvent.attempts < MAX_ATTEMPTS)
        .order_by(NotificationEvent.created_at.asc())
        .limit(limit)
        .with_for_update(skip_locked=True)
    )


def dispatch_pending(db: Session, limit: int = 50) -> dict:
    """Deliver up to `limit` queued or failed events. Returns counts."""
    pending = pending_events(db, limit).all()
    sent, failed, skipped = 0, 0, 0
    for event in pending:
        if not settings.NOTIFY_WEBHOOK_URL:
            event.status = "skipped"
            skipped += 1
            continue
        event.attempts = (event.attempts or 0) + 1
        try:
            deliver(event)
            event.status = "sent"
            event.dispatched_at = datetime.now(timezone.utc)
            sent += 1
        except (requests.RequestException, RuntimeError) as exc:
            logger.warning("notification %s (%s) failed: %s", event.id, event.type, exc)
            event.status = "failed"
            failed += 1
    if pending:
        db.commit()
    return {"processed": len(pending), "sent": sent, "failed": failed, "skipped": skipped}
