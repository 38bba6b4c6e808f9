from decimal import Decimal
from sqlalchemy import String, DateTime, Numeric
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from busline.db.session import Base
from busline.db.types import enum_column
from busline.domain.enums import ReservationKind

class Refund(Base):
    __tablename__ = "refunds"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    reservation_kind: Mapped[ReservationKind] = mapped_column(enum_column(ReservationKind, length=10), index=True)
    reservation_id: Mapped[str] = mapped_column(String(36), index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    reason: Mapped[str] = mapped_column(String(500), default="")
    refund_transaction_id: Mapped[str] = mapped_column(String(40), unique=True, index=True)
    status: Mapped[str] = mapped_column(String(20), default="Completed")
    processed_by: Mapped[str] = mapped_column(String(36), default="")
    refunded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
