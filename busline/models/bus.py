from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from busline.db.session import Base
from busline.db.types import enum_column
from busline.domain.enums import BusStatus

class Bus(Base):
    __tablename__ = "buses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    bus_number: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    bus_type: Mapped[str] = mapped_column(String(40), default="Standard")  # Standard, Luxury, Mini
    capacity: Mapped[int] = mapped_column(Integer)
    status: Mapped[BusStatus] = mapped_column(enum_column(BusStatus), default=BusStatus.ACTIVE, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def is_active(self) -> bool:
        return self.status == BusStatus.ACTIVE
