import logging

from busline.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once for the API process and the Celery worker."""
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level or settings.LOG_LEVEL)
        return
    logging.basicConfig(level=level or settings.LOG_LEVEL, format=LOG_FORMAT)
    # SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
