from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, Numeric, ForeignKey, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from busline.db.session import Base
from busline.db.types import enum_column
from busline.domain.enums import (
    CancellationPolicy, HiringStatus, PaymentStatus, RateType, ReservationKind, TripType,
)
from busline.domain.money import TimeWindow, as_utc

class Hiring(Base):
    __tablename__ = "hirings"

    kind = ReservationKind.HIRING

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    hiring_ref: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    status: Mapped[HiringStatus] = mapped_column(enum_column(HiringStatus), default=HiringStatus.PENDING, index=True)

    user_id: Mapped[str] = mapped_column(String(36), index=True)
    bus_id: Mapped[str] = mapped_column(String(36), index=True)
    route_id: Mapped[str] = mapped_column(String(36), nullable=True, index=True)  # pricing reference only

    purpose: Mapped[str] = mapped_column(String(500))
    passenger_count: Mapped[int] = mapped_column(Integer)
    special_requirements: Mapped[str] = mapped_column(String(1000), default="")
    start_location: Mapped[str] = mapped_column(String(200), default="")
    end_location: Mapped[str] = mapped_column(String(200), default="")
    return_location: Mapped[str] = mapped_column(String(200), default="")

    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    trip_type: Mapped[TripType] = mapped_column(enum_column(TripType), default=TripType.ONE_WAY)
    return_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    estimated_distance: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    rate_type: Mapped[RateType] = mapped_column(enum_column(RateType), default=RateType.PER_DAY)
    base_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=True)  # Route-Based falls back to route.base_fare
    route_price_multiplier: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=1)
    driver_allowance: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    overtime_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    fuel_included: Mapped[bool] = mapped_column(Boolean, default=True)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    deposit: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    currency: Mapped[str] = mapped_column(String(3), default="NGN")

    # Derived from the ledger
    payment_status: Mapped[PaymentStatus] = mapped_column(enum_column(PaymentStatus), default=PaymentStatus.PENDING)
    total_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_refunded: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    last_payment_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    last_payment_method: Mapped[str] = mapped_column(String(30), default="")
    payment_completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    cancellation_policy: Mapped[CancellationPolicy] = mapped_column(
        enum_column(CancellationPolicy, length=20), default=CancellationPolicy.STANDARD
    )
    terms_accepted: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str] = mapped_column(Text, default="")

    driver_name: Mapped[str] = mapped_column(String(200), default="")
    driver_contact: Mapped[str] = mapped_column(String(40), default="")
    driver_license: Mapped[str] = mapped_column(String(60), default="")
    driver_assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    additional_charges: Mapped[list["HiringCharge"]] = relationship(
        back_populates="hiring", order_by="HiringCharge.position", cascade="all, delete-orphan"
    )

    @property
    def reference(self) -> str:
        return self.hiring_ref

    @property
    def amount_due(self) -> Decimal:
        return self.total_cost

    @property
    def starts_at(self) -> datetime:
        return self.start_at

    @property
    def window(self) -> TimeWindow:
        """The span the bus is held for: start until the later of end and return."""
        end = as_utc(self.end_at)
        if self.return_at is not None and as_utc(self.return_at) > end:
            end = as_utc(self.return_at)
        return TimeWindow(as_utc(self.start_at), end)


class HiringCharge(Base):
    __tablename__ = "hiring_charges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    hiring_id: Mapped[str] = mapped_column(ForeignKey("hirings.id", ondelete="CASCADE"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    description: Mapped[str] = mapped_column(String(200))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))

    hiring: Mapped[Hiring] = relationship(back_populates="additional_charges")
