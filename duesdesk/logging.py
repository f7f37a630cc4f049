"""Process-wide logging setup."""

import logging
import sys

from duesdesk.config import settings

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def configure_logging(level: str | None = None) -> None:
    global _configured
    if _configured:
        return
    resolved = (level or settings.log_level or "INFO").upper()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, resolved, logging.INFO))
    # Quiet the per-statement SQL echo even when LOG_LEVEL=DEBUG.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
