"""
Logging configuration.

All service loggers live under the ``ordering`` namespace so one stdout
handler on that logger covers the whole package.
"""
import logging
import sys
from ordering.config import get_settings

settings = get_settings()

ROOT_LOGGER_NAME = "ordering"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging() -> logging.Logger:
    """Attach the stdout handler to the package logger (idempotent)."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    return root


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package namespace"""
    configure_logging()
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
