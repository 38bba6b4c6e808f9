from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Numeric, ForeignKey, Boolean, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from busline.db.session import Base
from busline.db.types import enum_column
from busline.domain.enums import BookingStatus, PaymentStatus, ReservationKind, SeatLeg, TripType

class Booking(Base):
    __tablename__ = "bookings"

    kind = ReservationKind.BOOKING

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_ref: Mapped[str] = mapped_column(String(20), unique=True, index=True)

    user_id: Mapped[str] = mapped_column(String(36), index=True)  # booker
    route_id: Mapped[str] = mapped_column(String(36), index=True)
    bus_id: Mapped[str] = mapped_column(String(36), index=True)

    booking_type: Mapped[TripType] = mapped_column(enum_column(TripType), default=TripType.ONE_WAY)
    status: Mapped[BookingStatus] = mapped_column(enum_column(BookingStatus), default=BookingStatus.PENDING, index=True)

    # Trip legs, always UTC. arrival_* = departure + route trip duration.
    departure_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    arrival_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    return_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    return_arrival_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), default="NGN")
    total_fare: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    promo_code: Mapped[str] = mapped_column(String(40), default="")
    discount_pct: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0)

    contact_email: Mapped[str] = mapped_column(String(320), default="")
    contact_phone: Mapped[str] = mapped_column(String(40), default="")
    booking_source: Mapped[str] = mapped_column(String(30), default="Website")

    # Derived from the ledger; recomputed on every payment/refund append.
    payment_status: Mapped[PaymentStatus] = mapped_column(enum_column(PaymentStatus), default=PaymentStatus.PENDING)
    total_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_refunded: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    last_payment_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    last_payment_method: Mapped[str] = mapped_column(String(30), default="")
    payment_completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    cancellation_reason: Mapped[str] = mapped_column(String(500), default="")
    cancelled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[str] = mapped_column(String(36), default="")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    passengers: Mapped[list["BookingPassenger"]] = relationship(
        back_populates="booking", order_by="BookingPassenger.position", cascade="all, delete-orphan"
    )
    seats: Mapped[list["BookingSeat"]] = relationship(back_populates="booking", cascade="all, delete-orphan")

    @property
    def reference(self) -> str:
        return self.booking_ref

    @property
    def amount_due(self) -> Decimal:
        return self.total_fare

    @property
    def starts_at(self) -> datetime:
        return self.departure_at


class BookingPassenger(Base):
    __tablename__ = "booking_passengers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_id: Mapped[str] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

    name: Mapped[str] = mapped_column(String(200))
    age: Mapped[int] = mapped_column(Integer)
    gender: Mapped[str] = mapped_column(String(20), default="")
    seat_number: Mapped[str] = mapped_column(String(10))
    passenger_type: Mapped[str] = mapped_column(String(10), default="Adult")  # Adult, Child, Senior
    document_type: Mapped[str] = mapped_column(String(30), default="None")
    document_number: Mapped[str] = mapped_column(String(80), default="")
    fare: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)  # one-way, before promo

    booking: Mapped[Booking] = relationship(back_populates="passengers")


class BookingSeat(Base):
    """One seat held by a booking on one leg.

    The partial unique index is what makes two concurrent bookings for the same
    seat fail at commit time instead of double-booking it.
    """
    __tablename__ = "booking_seats"
    __table_args__ = (
        Index(
            "uq_booking_seats_active",
            "bus_id", "departure_at", "seat_number",
            unique=True,
            sqlite_where=text("active"),
            postgresql_where=text("active"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    booking_id: Mapped[str] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), index=True)
    bus_id: Mapped[str] = mapped_column(String(36), index=True)
    leg: Mapped[SeatLeg] = mapped_column(enum_column(SeatLeg, length=10))
    departure_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    seat_number: Mapped[str] = mapped_column(String(10))
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    booking: Mapped[Booking] = relationship(back_populates="seats")
