"""
Logging configuration for the SKD tryout backend.

Every module logs through ``logging.getLogger(__name__)``; this module only
configures the root handler once at application start.
"""

import logging
import sys
from typing import Optional

from .config import settings


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "passlib": logging.ERROR,
    "sqlalchemy.engine": logging.WARNING,
}


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name, defaults to ``settings.LOG_LEVEL``
    """
    log_level = (level or settings.LOG_LEVEL).upper()

    root = logging.getLogger()
    root.setLevel(log_level)

    if not any(getattr(h, "_skd_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._skd_handler = True
        root.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        if settings.DEBUG and name == "sqlalchemy.engine":
            continue
        logging.getLogger(name).setLevel(quiet_level)

    logging.getLogger(__name__).debug(f"Logging configured at level {log_level}")
