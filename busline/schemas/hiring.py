from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional

class ChargeIn(BaseModel):
    description: str
    amount: Decimal

class HiringIn(BaseModel):
    busId: str
    routeId: Optional[str] = None
    purpose: str
    passengerCount: int
    specialRequirements: Optional[str] = ""
    startLocation: Optional[str] = ""
    endLocation: Optional[str] = ""
    returnLocation: Optional[str] = ""
    startDate: datetime
    endDate: datetime
    tripType: str = "One-Way"
    returnDate: Optional[datetime] = None
    estimatedDistance: Decimal
    rateType: str = "Per Day"
    baseRate: Optional[Decimal] = None
    routePriceMultiplier: Decimal = Decimal("1")
    driverAllowance: Decimal = Decimal("0")
    overtimeRate: Decimal = Decimal("0")
    additionalCharges: List[ChargeIn] = Field(default_factory=list)
    fuelIncluded: bool = True
    deposit: Decimal = Decimal("0")
    cancellationPolicy: str = "Standard"
    termsAccepted: bool = False
    notes: Optional[str] = ""

class DecisionIn(BaseModel):
    notes: str = ""

class DriverIn(BaseModel):
    name: str
    contactNumber: str = ""
    licenseNumber: str = ""

class HiringOut(BaseModel):
    id: str
    hiringRef: str
    status: str
    busId: str
    routeId: Optional[str] = None
    purpose: str
    passengerCount: int
    startDate: str
    endDate: str
    returnDate: Optional[str] = None
    tripType: str
    rateType: str
    totalCost: str
    deposit: str
    currency: str
    cancellationPolicy: str
    paymentStatus: str
    totalPaid: str
    totalRefunded: str
    additionalCharges: List[dict] = Field(default_factory=list)
    driver: Optional[dict] = None
    refundAmount: Optional[str] = None
