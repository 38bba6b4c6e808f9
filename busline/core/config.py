from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Busline API"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    CURRENCY: str = "NGN"
    # Peak/weekend/holiday checks run in this zone; stored timestamps are always UTC.
    PRICING_TIMEZONE: str = "UTC"

    # Fare modifiers in percent. Runtime overrides live in the settings table.
    CHILD_DISCOUNT_PCT: int = 50
    SENIOR_DISCOUNT_PCT: int = 30
    PEAK_SURCHARGE_PCT: int = 20
    WEEKEND_SURCHARGE_PCT: int = 10
    HOLIDAY_SURCHARGE_PCT: int = 25
    PROMO_CODES: str = "WELCOME10=10"  # CODE=percent, comma-separated
    HOLIDAYS: str = ""  # YYYY-MM-DD, comma-separated

    # Paystack
    PAYSTACK_SECRET_KEY: str = ""
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"
    PAYSTACK_TIMEOUT: int = 25
    PAYSTACK_SANDBOX: bool = False  # If True, skip the real gateway and return canned success (dev only)

    # Outbox delivery target for notification events (email/SMS/push fan-out lives behind it)
    NOTIFY_WEBHOOK_URL: str = ""
    NOTIFY_DISPATCH_INTERVAL_SECONDS: float = 60.0
    NOTIFY_DISPATCH_BATCH: int = 50

    # Signs ticket verification payloads; falls back to SECRET_KEY
    TICKET_SIGNING_KEY: str = ""


settings = Settings()
