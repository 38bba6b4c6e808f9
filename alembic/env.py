import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool, text, create_engine

from busline.core.config import settings
from busline.db.session import Base

# Import all models so Alembic sees them in metadata
from busline.models.user import User  # noqa: F401
from busline.models.bus import Bus  # noqa: F401
from busline.models.route import Route  # noqa: F401
from busline.models.booking import Booking, BookingPassenger, BookingSeat  # noqa: F401
from busline.models.hiring import Hiring, HiringCharge  # noqa: F401
from busline.models.payment import Payment  # noqa: F401
from busline.models.refund import Refund  # noqa: F401
from busline.models.status_history import StatusHistory  # noqa: F401
from busline.models.verification import TicketVerification  # noqa: F401
from busline.models.notification_event import NotificationEvent  # noqa: F401
from busline.models.audit_log import AuditLog  # noqa: F401
from busline.models.setting import Setting  # noqa: F401


def ensure_alembic_version_table(connection) -> None:
    # alembic_version.version_num defaults to VARCHAR(32); revision ids here can be longer.
    if connection.dialect.name != "postgresql":
        return
    connection.execute(
        text("CREATE TABLE IF NOT EXISTS alembic_version (version_num VARCHAR(64) NOT NULL);")
    )
    connection.execute(text("ALTER TABLE alembic_version ALTER COLUMN version_num TYPE VARCHAR(64);"))


config = context.config

db_url = getattr(settings, "DATABASE_URL", None) or os.getenv("DATABASE_URL")
if not db_url:
    raise RuntimeError("DATABASE_URL is not set (check .env / busline.core.config.settings)")

config.set_main_option("sqlalchemy.url", db_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    url = config.get_main_option("sqlalchemy.url")

    # alembic.ini carries no URL; always build the engine from DATABASE_URL.
    connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        # configure() must run before any DDL so begin_transaction() owns the commit.
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            ensure_alembic_version_table(connection)
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
