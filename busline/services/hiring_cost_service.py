"""Whole-bus hiring cost.

The calculator takes Route and Bus as parameters and never touches the
database, so quotes and stored totals go through the same code.
"""
from dataclasses import dataclass
from decimal import Decimal

from busline.core.errors import MissingRouteError, RouteOrBusNotFound, ValidationFailed
from busline.domain.enums import RateType, TripType
from busline.domain.money import ZERO, TimeWindow, as_utc, ceil_int, round_money, to_decimal
from busline.models.bus import Bus
from busline.models.route import Route

STANDARD_HOURS_PER_DAY = 8
HOURS_PER_DAY = Decimal("24")


@dataclass
class CostBreakdown:
    base: Decimal
    driver_allowance: Decimal
    overtime_hours: Decimal
    overtime: Decimal
    additional_charges: Decimal
    round_trip: bool
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "base": str(round_money(self.base)),
            "driverAllowance": str(round_money(self.driver_allowance)),
            "overtimeHours": str(self.overtime_hours.normalize()),
            "overtime": str(round_money(self.overtime)),
            "additionalCharges": str(round_money(self.additional_charges)),
            "roundTrip": self.round_trip,
            "total": str(self.total),
        }


def _base_cost(hiring, hours: Decimal, days: Decimal, route: Route | None, bus: Bus | None) -> Decimal:
    rate_type = RateType(hiring.rate_type)
    base_rate = to_decimal(hiring.base_rate)
    if rate_type == RateType.PER_DAY:
        return base_rate * ceil_int(days)
    if rate_type == RateType.PER_HOUR:
        return base_rate * ceil_int(hours)
    if rate_type == RateType.PER_KILOMETER:
        return base_rate * to_decimal(hiring.estimated_distance)
    if rate_type == RateType.FIXED:
        return base_rate
    # Route-Based: a full bus at the route's seat price, never scaled by duration
    if not hiring.route_id:
        raise MissingRouteError("Route is required for route-based pricing")
    if route is None or bus is None:
        raise RouteOrBusNotFound("Route or bus not found for route-based pricing",
                                 routeId=hiring.route_id, busId=hiring.bus_id)
    seat_price = base_rate if hiring.base_rate else to_decimal(route.base_fare)
    multiplier = to_decimal(hiring.route_price_multiplier or 1)
    return seat_price * bus.capacity * multiplier


def cost_breakdown(hiring, route: Route | None = None, bus: Bus | None = None) -> CostBreakdown:
    start, end = as_utc(hiring.start_at), as_utc(hiring.end_at)
    if end <= start:
        raise ValidationFailed.single("endDate", "End date must be after start date")
    hours = TimeWindow(start, end).hours
    days = hours / HOURS_PER_DAY

    base = _base_cost(hiring, hours, days, route, bus)
    allowance = to_decimal(hiring.driver_allowance)

    standard_hours = ceil_int(days) * STANDARD_HOURS_PER_DAY
    overtime_rate = to_decimal(hiring.overtime_rate)
    overtime_hours = ZERO
    if hours > standard_hours and overtime_rate > 0:
        overtime_hours = hours - standard_hours
    overtime = overtime_hours * overtime_rate

    charges = sum((to_decimal(c.amount) for c in (hiring.additional_charges or [])), ZERO)

    total = base + allowance + overtime + charges
    round_trip = TripType(hiring.trip_type) == TripType.ROUND_TRIP
    if round_trip:
        total *= 2
    return CostBreakdown(
        base=base,
        driver_allowance=allowance,
        overtime_hours=overtime_hours,
        overtime=overtime,
        additional_charges=charges,
        round_trip=round_trip,
        total=round_money(total),
    )


def calculate_total_cost(hiring, route: Route | None = None, bus: Bus | None = None) -> Decimal:
    return cost_breakdown(hiring, route, bus).total
