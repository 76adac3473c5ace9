# huddle/core/logging.py
import logging

from huddle.core.config import get_settings


def setup_logging() -> None:
    """Configure root logging from LOG_LEVEL / LOG_FORMAT settings."""
    settings = get_settings()
    log_level = (settings.LOG_LEVEL or "INFO").upper()

    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(
        level=numeric_level,
        format=settings.LOG_FORMAT,
        force=True,
    )
    if numeric_level != getattr(logging, log_level, None):
        logging.getLogger(__name__).warning(
            "Invalid log level %r, defaulting to INFO", settings.LOG_LEVEL
        )
