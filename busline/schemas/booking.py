from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional

from busline.domain.enums import PassengerType, TripType

class PassengerIn(BaseModel):
    name: str
    age: int
    seatNumber: str
    gender: Optional[str] = ""
    passengerType: PassengerType = PassengerType.ADULT
    documentType: Optional[str] = "None"
    documentNumber: Optional[str] = ""

class SelectedSeats(BaseModel):
    outbound: List[str] = Field(default_factory=list)
    # Defaults to the passengers' seat numbers when omitted on a round trip
    return_: List[str] = Field(default_factory=list, alias="return")

class BookingCreate(BaseModel):
    routeId: str
    busId: Optional[str] = None
    departureDate: datetime
    returnDate: Optional[datetime] = None
    bookingType: TripType = TripType.ONE_WAY
    passengers: List[PassengerIn]
    selectedSeats: Optional[SelectedSeats] = None
    promoCode: Optional[str] = None
    contactEmail: Optional[str] = ""
    contactPhone: Optional[str] = ""
    bookingSource: str = "Website"

class CancelIn(BaseModel):
    reason: str = ""

class BookingStatusIn(BaseModel):
    status: str  # Completed | No-Show

class PassengerOut(BaseModel):
    name: str
    age: int
    gender: str = ""
    seatNumber: str
    passengerType: str
    fare: str

class BookingOut(BaseModel):
    id: str
    bookingRef: str
    status: str
    bookingType: str
    routeId: str
    busId: str
    departureDate: str
    arrivalDate: str
    returnDate: Optional[str] = None
    outboundSeats: List[str]
    returnSeats: List[str]
    passengers: List[PassengerOut]
    totalFare: str
    currency: str
    promoCode: str = ""
    discountPct: str = "0.00"
    paymentStatus: str
    totalPaid: str
    totalRefunded: str
    cancellationReason: str = ""
    cancelledAt: Optional[str] = None
    createdAt: Optional[str] = None
    refundAmount: Optional[str] = None
