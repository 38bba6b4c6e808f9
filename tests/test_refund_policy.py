from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from busline.core.errors import TooLateToCancel
from busline.domain.enums import CancellationPolicy
from busline.services.refund_policy_service import (
    booking_cancellation_fraction, booking_refund_percentage, compute_refund, hiring_cancellation_fraction,
    hiring_refund_percentage,
)

DEPARTURE = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("hours,expected", [
    ("72.01", "1.00"),
    ("72", "0.75"),
    ("48.5", "0.75"),
    ("48", "0.50"),
    ("24", "0.25"),
    ("12.5", "0.25"),
    ("12", "0"),
    ("0", "0"),
])
def test_booking_tiers_are_strict(hours, expected):
    assert booking_refund_percentage(Decimal(hours)) == Decimal(expected)


def test_exactly_72_hours_before_departure():
    now = datetime(2025, 1, 7, 12, 0, tzinfo=timezone.utc)
    assert booking_cancellation_fraction(DEPARTURE, is_admin=False, now=now) == Decimal("0.75")


def test_one_second_more_gets_full_refund():
    now = DEPARTURE - timedelta(hours=72, seconds=1)
    assert booking_cancellation_fraction(DEPARTURE, is_admin=False, now=now) == Decimal("1.00")


def test_customer_cannot_cancel_inside_24_hours():
    now = DEPARTURE - timedelta(hours=23)
    with pytest.raises(TooLateToCancel):
        booking_cancellation_fraction(DEPARTURE, is_admin=False, now=now)


def test_admin_late_cancellation_refunds_half():
    now = DEPARTURE - timedelta(hours=2)
    assert booking_cancellation_fraction(DEPARTURE, is_admin=True, now=now) == Decimal("0.50")


def test_exactly_24_hours_is_still_allowed():
    now = DEPARTURE - timedelta(hours=24)
    assert booking_cancellation_fraction(DEPARTURE, is_admin=False, now=now) == Decimal("0.25")


@pytest.mark.parametrize("policy,days,expected", [
    (CancellationPolicy.STANDARD, "15", "0.90"),
    (CancellationPolicy.STANDARD, "14", "0.75"),
    (CancellationPolicy.STANDARD, "7", "0.50"),
    (CancellationPolicy.STANDARD, "3", "0.25"),
    (CancellationPolicy.STANDARD, "1", "0"),
    (CancellationPolicy.FLEXIBLE, "8", "1.00"),
    (CancellationPolicy.FLEXIBLE, "7", "0.80"),
    (CancellationPolicy.FLEXIBLE, "2", "0.50"),
    (CancellationPolicy.FLEXIBLE, "1", "0"),
    (CancellationPolicy.STRICT, "31", "0.75"),
    (CancellationPolicy.STRICT, "30", "0.50"),
    (CancellationPolicy.STRICT, "14", "0.25"),
    (CancellationPolicy.STRICT, "7", "0"),
])
def test_hiring_policy_tiers(policy, days, expected):
    assert hiring_refund_percentage(Decimal(days), policy) == Decimal(expected)


def test_hiring_fraction_from_timestamps():
    start = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)
    now = start - timedelta(days=14)
    assert hiring_cancellation_fraction(start, "Standard", now) == Decimal("0.75")
    assert hiring_cancellation_fraction(start, "Standard", now - timedelta(minutes=1)) == Decimal("0.90")


def test_compute_refund():
    assert compute_refund(Decimal("1000"), Decimal("0.75")) == Decimal("750.00")
    assert compute_refund(Decimal("33.33"), Decimal("0.75")) == Decimal("25.00")
    # never more than what is still held
    assert compute_refund(Decimal("1000"), Decimal("1.00"), Decimal("400")) == Decimal("600.00")
    assert compute_refund(Decimal("0"), Decimal("1.00")) == Decimal("0.00")
