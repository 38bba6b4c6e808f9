"""Seat-level and whole-bus conflict detection.

Only active reservations count: Pending/Confirmed bookings and
Pending/Approved/Confirmed/In Progress hirings. Windows are half-open, so a
reservation ending at 10:00 does not clash with one starting at 10:00.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from sqlalchemy import select
from sqlalchemy.orm import Session

from busline.core.errors import BusNotActive, BusNotFound, BusUnavailable, SeatConflict, ValidationFailed
from busline.domain.enums import ACTIVE_BOOKING_STATUSES, ACTIVE_HIRING_STATUSES
from busline.domain.money import TimeWindow, as_utc
from busline.models.booking import Booking, BookingSeat
from busline.models.bus import Bus
from busline.models.hiring import Hiring

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityResult:
    available: bool = True
    conflicting_seats: list[str] = field(default_factory=list)
    duplicate_seats: list[str] = field(default_factory=list)
    capacity_exceeded: bool = False
    conflicting_bookings: list[str] = field(default_factory=list)
    conflicting_hirings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "available": self.available,
            "conflictingSeats": self.conflicting_seats,
            "duplicateSeats": self.duplicate_seats,
            "capacityExceeded": self.capacity_exceeded,
            "conflictingBookings": self.conflicting_bookings,
            "conflictingHirings": self.conflicting_hirings,
        }

    def raise_for_conflict(self) -> None:
        if self.available:
            return
        if self.conflicting_hirings or (self.conflicting_bookings and not self.conflicting_seats
                                        and not self.duplicate_seats and not self.capacity_exceeded):
            raise BusUnavailable(
                "Bus is not available for the requested period",
                conflictingBookings=self.conflicting_bookings,
                conflictingHirings=self.conflicting_hirings,
            )
        raise SeatConflict(
            "The selected seats are not available",
            seats=self.conflicting_seats,
            duplicateSeats=self.duplicate_seats,
            capacityExceeded=self.capacity_exceeded,
            conflictingBookings=self.conflicting_bookings,
        )


def lock_bus(db: Session, bus_id: str) -> Bus:
    """Serialize check-then-write on one bus for the rest of the transaction."""
    bus = db.execute(select(Bus).where(Bus.id == bus_id).with_for_update()).scalar_one_or_none()
    if not bus:
        raise BusNotFound("Bus not found", busId=bus_id)
    return bus


def booking_leg_windows(booking: Booking) -> list[TimeWindow]:
    windows = [TimeWindow(as_utc(booking.departure_at), as_utc(booking.arrival_at))]
    if booking.return_at is not None and booking.return_arrival_at is not None:
        windows.append(TimeWindow(as_utc(booking.return_at), as_utc(booking.return_arrival_at)))
    return windows


def _overlapping_hirings(db: Session, bus_id: str, window: TimeWindow, exclude_id: str | None) -> list[Hiring]:
    q = select(Hiring).where(
        Hiring.bus_id == bus_id,
        Hiring.status.in_(ACTIVE_HIRING_STATUSES),
        Hiring.start_at < window.end,
    )
    if exclude_id:
        q = q.where(Hiring.id != exclude_id)
    return [h for h in db.execute(q).scalars().all() if h.window.overlaps(window)]


def _overlapping_bookings(db: Session, bus_id: str, window: TimeWindow, exclude_id: str | None) -> list[Booking]:
    q = select(Booking).where(
        Booking.bus_id == bus_id,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        Booking.departure_at < window.end,
    )
    if exclude_id:
        q = q.where(Booking.id != exclude_id)
    return [
        b for b in db.execute(q).scalars().all()
        if any(w.overlaps(window) for w in booking_leg_windows(b))
    ]


def occupied_seats(db: Session, bus_id: str, departure_at, exclude_id: str | None = None) -> dict[str, str]:
    """seat number -> booking ref, for active bookings departing at exactly ``departure_at``."""
    q = (
        select(BookingSeat.seat_number, Booking.booking_ref)
        .join(Booking, Booking.id == BookingSeat.booking_id)
        .where(
            BookingSeat.bus_id == bus_id,
            BookingSeat.departure_at == as_utc(departure_at),
            BookingSeat.active.is_(True),
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
    )
    if exclude_id:
        q = q.where(BookingSeat.booking_id != exclude_id)
    return {seat: ref for seat, ref in db.execute(q).all()}


def check_availability(
    db: Session,
    bus: Bus | None,
    window: TimeWindow,
    exclude_reservation_id: str | None = None,
    requested_seats: list[str] | None = None,
    passenger_seats: list[str] | None = None,
) -> AvailabilityResult:
    """Check one window on one bus.

    Without ``requested_seats`` this is a whole-bus check (a hiring): any
    overlapping active booking or hiring conflicts. With seats it is one
    booking leg starting at ``window.start``: overlapping hirings still
    conflict, other bookings only through the seats they hold on the same
    departure.
    """
    if bus is None:
        raise BusNotFound("Bus not found")
    if not bus.is_active:
        raise BusNotActive(f"Bus {bus.bus_number} is {bus.status.value}", busId=bus.id, status=bus.status.value)

    window = TimeWindow(as_utc(window.start), as_utc(window.end))
    result = AvailabilityResult()
    result.conflicting_hirings = [h.hiring_ref for h in _overlapping_hirings(db, bus.id, window, exclude_reservation_id)]

    if requested_seats is None:
        result.conflicting_bookings = [
            b.booking_ref for b in _overlapping_bookings(db, bus.id, window, exclude_reservation_id)
        ]
    else:
        if passenger_seats is not None and set(passenger_seats) != set(requested_seats):
            raise ValidationFailed.single("selectedSeats", "Selected seats must match the passengers' seat numbers")
        counts = Counter(requested_seats)
        result.duplicate_seats = sorted(s for s, n in counts.items() if n > 1)
        if passenger_seats is not None:
            pcounts = Counter(passenger_seats)
            result.duplicate_seats = sorted(set(result.duplicate_seats) | {s for s, n in pcounts.items() if n > 1})

        occupied = occupied_seats(db, bus.id, window.start, exclude_reservation_id)
        taken = [s for s in counts if s in occupied]
        result.conflicting_seats = sorted(taken)
        result.conflicting_bookings = sorted({occupied[s] for s in taken})
        result.capacity_exceeded = len(occupied) + len(counts) > bus.capacity

    result.available = not (
        result.conflicting_hirings
        or result.conflicting_bookings
        or result.conflicting_seats
        or result.duplicate_seats
        or result.capacity_exceeded
    )
    if not result.available:
        logger.info(
            "availability conflict bus=%s window=%s..%s seats=%s bookings=%s hirings=%s",
            bus.bus_number, window.start.isoformat(), window.end.isoformat(),
            result.conflicting_seats, result.conflicting_bookings, result.conflicting_hirings,
        )
    return result
