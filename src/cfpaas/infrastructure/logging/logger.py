import logging
import os
from typing import Optional

import structlog

from cfpaas.config.settings import get_settings

PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
    structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "logger", "event"]),
]


def configure_structlog():
    """Route structlog through stdlib logging; the host keeps control of handlers and levels."""
    if structlog.is_configured():
        return
    structlog.configure(
        processors=PROCESSORS,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def setup_logging(
    log_dir: Optional[str] = None,
    log_filename: Optional[str] = None,
    log_level: Optional[str] = None,
    log_destination: Optional[str] = None,
):
    """
    Set up structured logging for the command line tool using structlog.

    :param log_dir: Directory where the log file will be stored.
    :param log_filename: Name of the log file.
    :param log_level: Logging level (e.g., DEBUG, INFO, WARNING, ERROR, CRITICAL).
    :param log_destination: Where to send logs ("file", "stdout", or "both").
    :return: Configured structlog logger instance.
    """
    # Use configuration values, with fallbacks to environment variables and defaults
    settings = get_settings()
    log_dir = log_dir or settings.get("LOG_DIR", os.environ.get("CFPAAS_LOGDIR", "./logs"))
    log_filename = log_filename or settings.get("LOG_FILENAME", "cfpaas.log")
    log_level = log_level or settings.get("LOG_LEVEL", "INFO")
    log_destination = log_destination or settings.get("LOG_DESTINATION", "stdout")

    handlers: list[logging.Handler] = []
    if log_destination in ("file", "both"):
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(log_dir, log_filename)))

    if log_destination in ("stdout", "both"):
        handlers.append(logging.StreamHandler())

    configure_structlog()
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, str(log_level).upper(), logging.INFO),
        handlers=handlers,
    )

    return structlog.get_logger("cfpaas")


def get_logger(name: str):
    """Return a structlog logger bound to the stdlib logger ``name``."""
    configure_structlog()
    return structlog.get_logger(name)
