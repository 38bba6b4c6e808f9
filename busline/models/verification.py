from sqlalchemy import String, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from busline.db.session import Base
from busline.db.types import enum_column
from busline.domain.enums import ReservationKind, VerificationResult

class TicketVerification(Base):
    __tablename__ = "ticket_verifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    reservation_kind: Mapped[ReservationKind] = mapped_column(enum_column(ReservationKind, length=10), index=True)
    reservation_id: Mapped[str] = mapped_column(String(36), index=True)
    ticket_id: Mapped[str] = mapped_column(String(40), default="")
    verified_by: Mapped[str] = mapped_column(String(36))  # conductor id
    result: Mapped[VerificationResult] = mapped_column(enum_column(VerificationResult, length=10))
    location: Mapped[str] = mapped_column(String(200), default="")
    bus_used: Mapped[str] = mapped_column(String(36), default="")
    notes: Mapped[str] = mapped_column(String(500), default="")
    is_manual: Mapped[bool] = mapped_column(Boolean, default=False)
    verified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
