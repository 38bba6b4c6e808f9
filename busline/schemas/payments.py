from decimal import Decimal
from pydantic import BaseModel
from typing import Optional

from busline.domain.enums import PaymentMethod, ReservationKind

class PaymentInitIn(BaseModel):
    kind: ReservationKind
    reservationId: str  # id or BKG-/HIR- reference
    amount: Optional[Decimal] = None  # defaults to the outstanding balance

class PaymentVerifyIn(BaseModel):
    kind: ReservationKind
    reservationId: str
    reference: str

class ManualPaymentIn(BaseModel):
    kind: ReservationKind
    reservationId: str
    amount: Decimal
    method: PaymentMethod = PaymentMethod.CASH
    transactionId: str

class RefundIn(BaseModel):
    kind: ReservationKind
    reservationId: str
    amount: Decimal
    reason: str = ""
