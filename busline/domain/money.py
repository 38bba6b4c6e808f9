from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, ROUND_CEILING

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 instead of its binary expansion
    return Decimal(str(value))


def round_money(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def ceil_int(value: Decimal) -> int:
    return int(to_decimal(value).to_integral_value(rounding=ROUND_CEILING))


def pct(value) -> Decimal:
    """Percent (e.g. 20) to a fraction (0.20)."""
    return to_decimal(value) / HUNDRED


def minor_to_major(amount_minor) -> Decimal:
    return round_money(to_decimal(amount_minor) / HUNDRED)


def major_to_minor(amount) -> int:
    return int((round_money(amount) * HUNDRED).to_integral_value(rounding=ROUND_HALF_UP))


def as_utc(dt: datetime | None) -> datetime | None:
    """Normalise to aware UTC. Naive values (e.g. read back from SQLite) are taken as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval [start, end)."""
    start: datetime
    end: datetime

    def overlaps(self, other: "TimeWindow") -> bool:
        return as_utc(self.start) < as_utc(other.end) and as_utc(other.start) < as_utc(self.end)

    @property
    def hours(self) -> Decimal:
        seconds = (as_utc(self.end) - as_utc(self.start)).total_seconds()
        return Decimal(str(seconds)) / Decimal("3600")
