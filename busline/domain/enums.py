import enum


class BusStatus(str, enum.Enum):
    ACTIVE = "Active"
    MAINTENANCE = "Maintenance"
    REPAIR = "Repair"
    RETIRED = "Retired"


class TripType(str, enum.Enum):
    ONE_WAY = "One-Way"
    ROUND_TRIP = "Round-Trip"


class PassengerType(str, enum.Enum):
    ADULT = "Adult"
    CHILD = "Child"
    SENIOR = "Senior"


class BookingStatus(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"
    NO_SHOW = "No-Show"
    REFUNDED = "Refunded"


class HiringStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    REFUNDED = "Refunded"


class RateType(str, enum.Enum):
    PER_DAY = "Per Day"
    PER_HOUR = "Per Hour"
    PER_KILOMETER = "Per Kilometer"
    FIXED = "Fixed"
    ROUTE_BASED = "Route-Based"


class CancellationPolicy(str, enum.Enum):
    STANDARD = "Standard"
    FLEXIBLE = "Flexible"
    STRICT = "Strict"


class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"
    PARTIALLY_REFUNDED = "Partially Refunded"
    REFUNDED = "Refunded"


class PaymentMethod(str, enum.Enum):
    PAYSTACK = "Paystack"
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"
    BANK_TRANSFER = "Bank Transfer"
    CASH = "Cash"
    MOBILE_MONEY = "Mobile Money"
    OTHER = "Other"


class ReservationKind(str, enum.Enum):
    BOOKING = "booking"
    HIRING = "hiring"


class SeatLeg(str, enum.Enum):
    OUTBOUND = "outbound"
    RETURN = "return"


class VerificationResult(str, enum.Enum):
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


class NotificationType(str, enum.Enum):
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    HIRING_CONFIRMED = "hiring_confirmed"
    HIRING_CANCELLED = "hiring_cancelled"
    PAYMENT_SUCCESSFUL = "payment_successful"
    PAYMENT_FAILED = "payment_failed"
    REFUND_PROCESSED = "refund_processed"


class Role(str, enum.Enum):
    CUSTOMER = "customer"
    CONDUCTOR = "conductor"
    OPS = "ops"
    ADMIN = "admin"


# Reservations in these states hold their seats / bus window.
ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
ACTIVE_HIRING_STATUSES = frozenset({
    HiringStatus.PENDING,
    HiringStatus.APPROVED,
    HiringStatus.CONFIRMED,
    HiringStatus.IN_PROGRESS,
})
