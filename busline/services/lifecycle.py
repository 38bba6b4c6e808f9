"""Guarded status transitions for bookings and hirings."""
import logging
import uuid
from sqlalchemy import select
from sqlalchemy.orm import Session

from busline.core.errors import InvalidStateTransition
from busline.domain.enums import BookingStatus, HiringStatus, ReservationKind
from busline.models.status_history import StatusHistory

logger = logging.getLogger(__name__)

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.REFUNDED,
        BookingStatus.NO_SHOW,
        BookingStatus.COMPLETED,
    }),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.CANCELLED,
        BookingStatus.REFUNDED,
        BookingStatus.COMPLETED,
        BookingStatus.NO_SHOW,
    }),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
    BookingStatus.REFUNDED: frozenset(),
}

HIRING_TRANSITIONS: dict[HiringStatus, frozenset[HiringStatus]] = {
    HiringStatus.PENDING: frozenset({
        HiringStatus.APPROVED,
        HiringStatus.REJECTED,
        HiringStatus.CANCELLED,
        HiringStatus.REFUNDED,
    }),
    HiringStatus.APPROVED: frozenset({HiringStatus.CONFIRMED, HiringStatus.CANCELLED, HiringStatus.REFUNDED}),
    HiringStatus.CONFIRMED: frozenset({HiringStatus.IN_PROGRESS, HiringStatus.CANCELLED, HiringStatus.REFUNDED}),
    HiringStatus.IN_PROGRESS: frozenset({HiringStatus.COMPLETED}),
    HiringStatus.CANCELLED: frozenset(),
    HiringStatus.REJECTED: frozenset(),
    HiringStatus.COMPLETED: frozenset(),
    HiringStatus.REFUNDED: frozenset(),
}

TRANSITIONS = {
    ReservationKind.BOOKING: BOOKING_TRANSITIONS,
    ReservationKind.HIRING: HIRING_TRANSITIONS,
}


def allowed_transitions(reservation) -> frozenset:
    return TRANSITIONS[reservation.kind][reservation.status]


def is_terminal(reservation) -> bool:
    return not allowed_transitions(reservation)


def can_transition(reservation, new_status) -> bool:
    status_cls = type(reservation.status)
    return status_cls(new_status) in allowed_transitions(reservation)


def transition(db: Session, reservation, new_status, actor: str = "", notes: str = "") -> None:
    """Move ``reservation`` to ``new_status`` and stage a history row. The caller commits."""
    status_cls = type(reservation.status)
    target = status_cls(new_status)
    current = reservation.status
    if target not in allowed_transitions(reservation):
        raise InvalidStateTransition(current.value, target.value)
    reservation.status = target
    db.add(StatusHistory(
        id=str(uuid.uuid4()),
        reservation_kind=reservation.kind,
        reservation_id=reservation.id,
        status=target.value,
        actor=actor or "",
        notes=notes or "",
    ))
    logger.info("%s %s: %s -> %s", reservation.kind.value, reservation.reference, current.value, target.value)


def record_initial_status(db: Session, reservation, actor: str = "", notes: str = "") -> None:
    db.add(StatusHistory(
        id=str(uuid.uuid4()),
        reservation_kind=reservation.kind,
        reservation_id=reservation.id,
        status=reservation.status.value,
        actor=actor or "",
        notes=notes or "",
    ))


def status_history(db: Session, reservation) -> list[StatusHistory]:
    return db.execute(
        select(StatusHistory)
        .where(StatusHistory.reservation_kind == reservation.kind, StatusHistory.reservation_id == reservation.id)
        .order_by(StatusHistory.changed_at.asc())
    ).scalars().all()
