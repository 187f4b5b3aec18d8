"""
Logging configuration for the rainfall statistics service.

Modules obtain their logger with `logging.getLogger(__name__)`; this module
only wires the root logger once at application startup.
"""

import logging
import sys

from rainstats.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | None = None) -> None:
    """
    Configure the root logger.

    Installs a single stdout handler (replacing any previous one, so calling
    this twice does not duplicate lines) and lowers the level of chatty
    third-party loggers.

    Args:
        level: Log level name. Defaults to `settings.log_level`.
    """
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)

    # Reduce noise from some verbose libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
