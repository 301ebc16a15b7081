"""Process-wide logging setup."""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stream handler on the root logger.

    Safe to call more than once; only the level is updated on later calls.
    """
    global _configured

    from config import settings

    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())

    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    # SQL echo stays off unless explicitly raised
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
