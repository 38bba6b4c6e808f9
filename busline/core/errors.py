"""Typed errors raised by the booking/hiring core.

Every error carries a stable ``code``, a human message and a ``details`` dict
with whatever the caller needs to resolve the problem without another round
trip (conflicting seats, references, balances). HTTP mapping lives in
``busline.main``.
"""
from typing import Any


class BuslineError(Exception):
    code = "error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


# Validation

class ValidationFailed(BuslineError):
    code = "validation_failed"

    def __init__(self, errors: list[dict]):
        super().__init__("Validation failed", errors=errors)
        self.errors = errors

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationFailed":
        return cls([{"field": field, "message": message}])


# Conflicts

class ConflictError(BuslineError):
    code = "conflict"


class SeatConflict(ConflictError):
    code = "seat_conflict"


class BusUnavailable(ConflictError):
    code = "bus_unavailable"


class DuplicateTransaction(ConflictError):
    code = "duplicate_transaction"

    def __init__(self, transaction_id: str):
        super().__init__(f"Payment with transaction id {transaction_id} already exists", transactionId=transaction_id)
        self.transaction_id = transaction_id


# State

class StateError(BuslineError):
    code = "invalid_state"


class InvalidStateTransition(StateError):
    code = "invalid_state_transition"

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move from {current} to {requested}", current=current, requested=requested)


class TooLateToCancel(StateError):
    code = "too_late_to_cancel"


class InvalidAmount(StateError):
    code = "invalid_amount"


class AmountExceedsBalance(StateError):
    code = "amount_exceeds_balance"


class ReservationNotPayable(StateError):
    code = "reservation_not_payable"


class BusNotActive(StateError):
    code = "bus_not_active"


class MissingRouteError(StateError):
    code = "missing_route"


# Not found

class NotFound(BuslineError):
    code = "not_found"


class RouteNotFound(NotFound):
    code = "route_not_found"


class BusNotFound(NotFound):
    code = "bus_not_found"


class ReservationNotFound(NotFound):
    code = "reservation_not_found"


class RouteOrBusNotFound(NotFound):
    code = "route_or_bus_not_found"


# External dependencies

class ExternalDependencyError(BuslineError):
    code = "external_dependency"


class GatewayUnavailable(ExternalDependencyError):
    code = "gateway_unavailable"


class PaymentDeclined(ExternalDependencyError):
    code = "payment_declined"
