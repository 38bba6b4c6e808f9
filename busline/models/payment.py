from decimal import Decimal
from sqlalchemy import String, DateTime, Numeric, Text, UniqueConstraint, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from busline.db.session import Base
from busline.db.types import enum_column
from busline.domain.enums import ReservationKind

class Payment(Base):
    """Ledger payment entry. Only completed payments are ever written."""
    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("reservation_kind", "reservation_id", "transaction_id", name="uq_payments_reservation_txn"),
        # one gateway transaction credits one reservation
        Index(
            "uq_payments_gateway_reference",
            "gateway",
            "reference",
            unique=True,
            sqlite_where=text("gateway <> ''"),
            postgresql_where=text("gateway <> ''"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    reservation_kind: Mapped[ReservationKind] = mapped_column(enum_column(ReservationKind, length=10), index=True)
    reservation_id: Mapped[str] = mapped_column(String(36), index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3), default="NGN")
    method: Mapped[str] = mapped_column(String(30), default="Paystack")  # Paystack, Cash, Bank Transfer, ...
    transaction_id: Mapped[str] = mapped_column(String(120))
    reference: Mapped[str] = mapped_column(String(120), default="")  # gateway reference
    gateway: Mapped[str] = mapped_column(String(40), default="")
    gateway_response_json: Mapped[str] = mapped_column(Text, default="{}")
    status: Mapped[str] = mapped_column(String(20), default="Completed")
    processed_by: Mapped[str] = mapped_column(String(36), default="")
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
