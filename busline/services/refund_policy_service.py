"""Time-based cancellation refunds.

Tier boundaries are strict: exactly 72h before departure falls in the 75%
tier, exactly 7 days before a Standard hiring in the 50% tier.
"""
from datetime import datetime
from decimal import Decimal

from busline.core.errors import TooLateToCancel
from busline.domain.enums import CancellationPolicy
from busline.domain.money import ZERO, as_utc, round_money, to_decimal, utcnow

SECONDS_PER_HOUR = Decimal("3600")
SECONDS_PER_DAY = Decimal("86400")

# (exclusive lower bound, fraction), checked top-down
BOOKING_TIERS_HOURS = (
    (Decimal("72"), Decimal("1.00")),
    (Decimal("48"), Decimal("0.75")),
    (Decimal("24"), Decimal("0.50")),
    (Decimal("12"), Decimal("0.25")),
)

HIRING_TIERS_DAYS = {
    CancellationPolicy.STANDARD: (
        (Decimal("14"), Decimal("0.90")),
        (Decimal("7"), Decimal("0.75")),
        (Decimal("3"), Decimal("0.50")),
        (Decimal("1"), Decimal("0.25")),
    ),
    CancellationPolicy.FLEXIBLE: (
        (Decimal("7"), Decimal("1.00")),
        (Decimal("3"), Decimal("0.80")),
        (Decimal("1"), Decimal("0.50")),
    ),
    CancellationPolicy.STRICT: (
        (Decimal("30"), Decimal("0.75")),
        (Decimal("14"), Decimal("0.50")),
        (Decimal("7"), Decimal("0.25")),
    ),
}

# Cancelling a booking inside this many hours needs an admin.
USER_CANCEL_CUTOFF_HOURS = Decimal("24")
ADMIN_LATE_CANCEL_FRACTION = Decimal("0.50")


def _tier(value: Decimal, tiers) -> Decimal:
    for bound, fraction in tiers:
        if value > bound:
            return fraction
    return ZERO


def _seconds_until(start: datetime, now: datetime | None) -> Decimal:
    now = as_utc(now) if now is not None else utcnow()
    return Decimal(str((as_utc(start) - now).total_seconds()))


def hours_until(start: datetime, now: datetime | None = None) -> Decimal:
    return _seconds_until(start, now) / SECONDS_PER_HOUR


def booking_refund_percentage(hours_to_departure) -> Decimal:
    return _tier(to_decimal(hours_to_departure), BOOKING_TIERS_HOURS)


def hiring_refund_percentage(days_to_start, policy: CancellationPolicy | str = CancellationPolicy.STANDARD) -> Decimal:
    return _tier(to_decimal(days_to_start), HIRING_TIERS_DAYS[CancellationPolicy(policy)])


def booking_cancellation_fraction(departure_at: datetime, is_admin: bool, now: datetime | None = None) -> Decimal:
    """Fraction of the paid amount returned when a booking is cancelled now."""
    hours = hours_until(departure_at, now)
    if hours < USER_CANCEL_CUTOFF_HOURS:
        if not is_admin:
            raise TooLateToCancel(
                "Bookings cannot be cancelled less than 24 hours before departure",
                hoursToDeparture=str(round_money(hours)),
            )
        return ADMIN_LATE_CANCEL_FRACTION
    return booking_refund_percentage(hours)


def hiring_cancellation_fraction(start_at: datetime, policy, now: datetime | None = None) -> Decimal:
    days = _seconds_until(start_at, now) / SECONDS_PER_DAY
    return hiring_refund_percentage(days, policy)


def compute_refund(total_paid, fraction, already_refunded=ZERO) -> Decimal:
    """round(paid x fraction), never more than what is still held."""
    amount = round_money(to_decimal(total_paid) * to_decimal(fraction))
    held = to_decimal(total_paid) - to_decimal(already_refunded)
    if amount > held:
        amount = round_money(held)
    return max(amount, ZERO)
