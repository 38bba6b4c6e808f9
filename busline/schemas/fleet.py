from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional, List

from busline.domain.enums import BusStatus, PassengerType, TripType

class BusIn(BaseModel):
    busNumber: str
    capacity: int = Field(gt=0)
    busType: str = "Standard"
    status: BusStatus = BusStatus.ACTIVE

class BusStatusIn(BaseModel):
    status: BusStatus

class BusOut(BaseModel):
    id: str
    busNumber: str
    capacity: int
    busType: str
    status: str

class RouteIn(BaseModel):
    source: str
    destination: str
    baseFare: Decimal
    busId: str
    departureTime: str  # HH:MM
    arrivalTime: str    # HH:MM; earlier than departure = next day
    operatingDays: List[int] = Field(default_factory=lambda: list(range(7)))  # 0=Mon..6=Sun
    distanceKm: Optional[int] = None

class RouteFareIn(BaseModel):
    baseFare: Decimal

class RouteOut(BaseModel):
    id: str
    source: str
    destination: str
    baseFare: str
    busId: str
    departureTime: str
    arrivalTime: str
    operatingDays: List[int]
    distanceKm: Optional[int] = None
    active: bool

class FareQuoteIn(BaseModel):
    routeId: str
    departureDate: datetime
    passengerTypes: List[PassengerType] = Field(default_factory=lambda: [PassengerType.ADULT])
    bookingType: TripType = TripType.ONE_WAY
    promoCode: Optional[str] = None

class SettingIn(BaseModel):
    key: str
    value: str | int
