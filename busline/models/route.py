from datetime import datetime, timezone, timedelta
from decimal import Decimal
from sqlalchemy import String, DateTime, Boolean, Numeric, Integer
from sqlalchemy.orm import Mapped, mapped_column
from busline.db.session import Base

class Route(Base):
    __tablename__ = "routes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    source: Mapped[str] = mapped_column(String(120), index=True)
    destination: Mapped[str] = mapped_column(String(120), index=True)
    base_fare: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    # comma-separated days: 0=Mon..6=Sun
    operating_days: Mapped[str] = mapped_column(String(30), default="0,1,2,3,4,5,6")
    departure_time: Mapped[str] = mapped_column(String(5))  # HH:MM
    arrival_time: Mapped[str] = mapped_column(String(5))    # HH:MM, earlier than departure = next day
    distance_km: Mapped[int] = mapped_column(Integer, nullable=True)
    bus_id: Mapped[str] = mapped_column(String(36), index=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def weekdays(self) -> set[int]:
        return {int(x) for x in (self.operating_days or "").split(",") if x.strip().isdigit()}

    @property
    def trip_duration(self) -> timedelta:
        dh, dm = map(int, self.departure_time.split(":"))
        ah, am = map(int, self.arrival_time.split(":"))
        minutes = (ah * 60 + am) - (dh * 60 + dm)
        if minutes <= 0:
            minutes += 1440
        return timedelta(minutes=minutes)
