from datetime import date
from decimal import Decimal
from sqlalchemy.orm import Session
from busline.core.config import settings
from busline.core.errors import ValidationFailed
from busline.models.setting import Setting
from busline.services.fare_service import PricingModifiers

# Percent knobs stored as int_value; defaults come from Settings.
PERCENT_KEYS = (
    "CHILD_DISCOUNT_PCT",
    "SENIOR_DISCOUNT_PCT",
    "PEAK_SURCHARGE_PCT",
    "WEEKEND_SURCHARGE_PCT",
    "HOLIDAY_SURCHARGE_PCT",
)
DISCOUNT_KEYS = ("CHILD_DISCOUNT_PCT", "SENIOR_DISCOUNT_PCT")
TEXT_KEYS = ("PROMO_CODES", "HOLIDAYS")


def parse_promo_codes(raw: str) -> dict[str, Decimal]:
    """"WELCOME10=10,SUMMER=15" -> {"WELCOME10": Decimal(10), ...}"""
    codes: dict[str, Decimal] = {}
    for part in (raw or "").split(","):
        if "=" not in part:
            continue
        code, value = part.split("=", 1)
        code = code.strip().upper()
        try:
            percent = Decimal(value.strip())
        except ArithmeticError:
            raise ValidationFailed.single("PROMO_CODES", f"Invalid percentage for {code}")
        if not code or percent < 0 or percent > 100:
            raise ValidationFailed.single("PROMO_CODES", f"Invalid promo entry {part.strip()}")
        codes[code] = percent
    return codes


def parse_holidays(raw: str) -> frozenset[date]:
    days = set()
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            days.add(date.fromisoformat(part))
        except ValueError:
            raise ValidationFailed.single("HOLIDAYS", f"Invalid date {part}")
    return frozenset(days)


def get_int(db: Session, key: str) -> int:
    s = db.get(Setting, key)
    if s and s.int_value is not None:
        return int(s.int_value)
    return int(getattr(settings, key))


def get_str(db: Session, key: str) -> str:
    s = db.get(Setting, key)
    if s and s.str_value is not None:
        return s.str_value
    return str(getattr(settings, key))


def set_value(db: Session, key: str, value) -> dict:
    """Validate and stage an override. The caller commits."""
    key = key.upper()
    if key in PERCENT_KEYS:
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationFailed.single(key, "must be an integer")
        if number < 0 or (key in DISCOUNT_KEYS and number > 100):
            raise ValidationFailed.single(key, "out of range")
        s = db.get(Setting, key)
        if not s:
            db.add(Setting(key=key, int_value=number, str_value=None))
        else:
            s.int_value = number
        return {"key": key, "value": number}
    if key in TEXT_KEYS:
        text = str(value or "")
        # parse to validate before storing
        if key == "PROMO_CODES":
            parse_promo_codes(text)
        else:
            parse_holidays(text)
        s = db.get(Setting, key)
        if not s:
            db.add(Setting(key=key, int_value=None, str_value=text))
        else:
            s.str_value = text
        return {"key": key, "value": text}
    raise ValidationFailed.single("key", f"Unknown setting {key}")


def list_values(db: Session) -> dict:
    out: dict = {k: get_int(db, k) for k in PERCENT_KEYS}
    out.update({k: get_str(db, k) for k in TEXT_KEYS})
    out["PRICING_TIMEZONE"] = settings.PRICING_TIMEZONE
    return out


def get_pricing_modifiers(db: Session) -> PricingModifiers:
    return PricingModifiers(
        child_discount_pct=Decimal(get_int(db, "CHILD_DISCOUNT_PCT")),
        senior_discount_pct=Decimal(get_int(db, "SENIOR_DISCOUNT_PCT")),
        peak_surcharge_pct=Decimal(get_int(db, "PEAK_SURCHARGE_PCT")),
        weekend_surcharge_pct=Decimal(get_int(db, "WEEKEND_SURCHARGE_PCT")),
        holiday_surcharge_pct=Decimal(get_int(db, "HOLIDAY_SURCHARGE_PCT")),
        promo_codes=parse_promo_codes(get_str(db, "PROMO_CODES")),
        holidays=parse_holidays(get_str(db, "HOLIDAYS")),
        timezone=settings.PRICING_TIMEZONE,
    )
