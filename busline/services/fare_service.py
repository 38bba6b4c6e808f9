"""Seat fares.

All arithmetic runs on unrounded Decimals; the total is rounded half-up to
two places once, after round-trip doubling and the promo discount.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from busline.core.errors import RouteNotFound, ValidationFailed
from busline.domain.enums import PassengerType, TripType
from busline.domain.money import ZERO, as_utc, pct, round_money, to_decimal
from busline.models.route import Route

logger = logging.getLogger(__name__)

PEAK_HOURS = frozenset({7, 8, 9, 16, 17, 18, 19})


@dataclass(frozen=True)
class PricingModifiers:
    child_discount_pct: Decimal = Decimal("50")
    senior_discount_pct: Decimal = Decimal("30")
    peak_surcharge_pct: Decimal = Decimal("20")
    weekend_surcharge_pct: Decimal = Decimal("10")
    holiday_surcharge_pct: Decimal = Decimal("25")
    promo_codes: dict[str, Decimal] = field(default_factory=dict)
    holidays: frozenset[date] = frozenset()
    timezone: str = "UTC"


@dataclass
class FareOptions:
    is_child: bool = False
    is_senior: bool = False
    is_peak_time: bool = False
    is_weekend: bool = False
    is_holiday: bool = False
    passenger_type: PassengerType | None = None


@dataclass
class FareQuote:
    passenger_fares: list[Decimal]
    one_way_subtotal: Decimal
    subtotal: Decimal
    promo_code: str
    promo_pct: Decimal
    promo_discount: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "passengerFares": [str(f) for f in self.passenger_fares],
            "oneWaySubtotal": str(self.one_way_subtotal),
            "subtotal": str(self.subtotal),
            "promoCode": self.promo_code,
            "promoPct": str(self.promo_pct),
            "promoDiscount": str(self.promo_discount),
            "total": str(self.total),
        }


def local_time(dt: datetime, tz: str) -> datetime:
    return as_utc(dt).astimezone(ZoneInfo(tz))


def is_peak_time(dt: datetime, tz: str = "UTC") -> bool:
    return local_time(dt, tz).hour in PEAK_HOURS


def is_weekend(dt: datetime, tz: str = "UTC") -> bool:
    return local_time(dt, tz).weekday() >= 5


def is_holiday(dt: datetime, holidays, tz: str = "UTC") -> bool:
    return local_time(dt, tz).date() in holidays


def fare_options_for(passenger_type: PassengerType | str, departure_at: datetime, modifiers: PricingModifiers) -> FareOptions:
    ptype = PassengerType(passenger_type)
    tz = modifiers.timezone
    return FareOptions(
        is_child=ptype == PassengerType.CHILD,
        is_senior=ptype == PassengerType.SENIOR,
        is_peak_time=is_peak_time(departure_at, tz),
        is_weekend=is_weekend(departure_at, tz),
        is_holiday=is_holiday(departure_at, modifiers.holidays, tz),
        passenger_type=ptype,
    )


def _unrounded_fare(base_fare, options: FareOptions, modifiers: PricingModifiers) -> Decimal:
    fare = to_decimal(base_fare)
    is_child = options.is_child or options.passenger_type == PassengerType.CHILD
    is_senior = options.is_senior or options.passenger_type == PassengerType.SENIOR
    # discount, peak, weekend, holiday; all multiplicative
    if is_child:
        fare *= 1 - pct(modifiers.child_discount_pct)
    elif is_senior:
        fare *= 1 - pct(modifiers.senior_discount_pct)
    if options.is_peak_time:
        fare *= 1 + pct(modifiers.peak_surcharge_pct)
    if options.is_weekend:
        fare *= 1 + pct(modifiers.weekend_surcharge_pct)
    if options.is_holiday:
        fare *= 1 + pct(modifiers.holiday_surcharge_pct)
    return fare


def calculate_fare(route: Route | None, options: FareOptions, modifiers: PricingModifiers | None = None) -> Decimal:
    """One passenger, one leg."""
    if route is None:
        raise RouteNotFound("Route not found")
    return round_money(_unrounded_fare(route.base_fare, options, modifiers or PricingModifiers()))


def resolve_promo(promo_code: str | None, modifiers: PricingModifiers) -> tuple[str, Decimal]:
    code = (promo_code or "").strip().upper()
    if not code:
        return "", ZERO
    if code not in modifiers.promo_codes:
        raise ValidationFailed.single("promoCode", f"Unknown promo code {code}")
    return code, to_decimal(modifiers.promo_codes[code])


def quote_booking_fare(
    route: Route | None,
    departure_at: datetime,
    passenger_types: list,
    trip_type: TripType = TripType.ONE_WAY,
    promo_code: str | None = None,
    modifiers: PricingModifiers | None = None,
) -> FareQuote:
    if route is None:
        raise RouteNotFound("Route not found")
    modifiers = modifiers or PricingModifiers()
    code, promo_pct = resolve_promo(promo_code, modifiers)

    unrounded = [
        _unrounded_fare(route.base_fare, fare_options_for(t, departure_at, modifiers), modifiers)
        for t in passenger_types
    ]
    one_way = sum(unrounded, ZERO)
    subtotal = one_way * 2 if TripType(trip_type) == TripType.ROUND_TRIP else one_way
    discounted = subtotal * (1 - pct(promo_pct))
    total = round_money(discounted)

    quote = FareQuote(
        passenger_fares=[round_money(f) for f in unrounded],
        one_way_subtotal=round_money(one_way),
        subtotal=round_money(subtotal),
        promo_code=code,
        promo_pct=promo_pct,
        promo_discount=round_money(subtotal) - total,
        total=total,
    )
    logger.debug("fare quote route=%s pax=%d trip=%s total=%s", route.id, len(unrounded), trip_type, total)
    return quote
