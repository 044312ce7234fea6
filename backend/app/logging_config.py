"""Logging for the Bidyard backend.

Route modules get their logger with ``get_logger("bidyard.<area>")``. The
``bidyard`` hierarchy is shared with the marketplace library, so one call to
``configure_logging`` at startup covers both.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Attach a stdout handler to the ``bidyard`` logger once."""
    global _configured
    root = logging.getLogger("bidyard")
    numeric = getattr(logging, str(level).upper(), None)
    root.setLevel(numeric if isinstance(numeric, int) else logging.INFO)
    if _configured:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
