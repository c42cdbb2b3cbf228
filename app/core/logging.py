"""
Logging setup for the Employee Attendance Service.

All modules obtain their logger through ``get_logger(__name__)`` so that the
handler and format are configured exactly once.
"""

import logging
import sys
from typing import Optional

from app.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root application logger.

    Args:
        level: Log level name. Defaults to ``settings.LOG_LEVEL``.
    """
    global _configured

    root = logging.getLogger("app")
    root.setLevel((level or settings.LOG_LEVEL).upper())

    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.propagate = False
        _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name, configuring logging on first use."""
    if not _configured:
        setup_logging()
    return logging.getLogger(name)
