from sqlalchemy.orm import Session
from sqlalchemy.exc import ProgrammingError
from busline.db.session import SessionLocal
from busline.services.notification_service import dispatch_pending


def dispatch_notifications(limit: int = 50) -> dict:
    """Post queued/failed outbox events to the webhook. Run periodically via Celery beat."""
    db: Session = SessionLocal()
    try:
        try:
            return dispatch_pending(db, limit=limit)
        except ProgrammingError:
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
    finally:
        db.close()
