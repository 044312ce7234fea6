"""
Logging setup for bidyard.

Two outputs:
- ``local-{date}.log``: the ``bidyard`` logger hierarchy, via setup_bidyard_logging()
- ``bid-events-{date}.log``: one line per marketplace event (submission,
  award, rollback), via log_bid_event() and its wrappers

Both live under ``$BIDYARD_DATA_DIR/logs`` (default ``~/.bidyard/logs``).
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

logger = logging.getLogger(__name__)


def get_data_dir() -> Path:
    """Base directory for bidyard local data."""
    env = os.environ.get("BIDYARD_DATA_DIR")
    return Path(env) if env else Path.home() / ".bidyard"


def get_log_dir() -> Path:
    return get_data_dir() / "logs"


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def setup_bidyard_logging(level: str = "INFO", log_dir: Optional[Path] = None) -> logging.Logger:
    """Configure the ``bidyard`` logger with a dated file handler.

    DEBUG additionally logs to the console. Calling this again does not add
    duplicate handlers. Unknown level names fall back to INFO.
    """
    log_dir = Path(log_dir) if log_dir else get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger("bidyard")
    numeric = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    root.setLevel(numeric)

    formatter = logging.Formatter(LOG_FORMAT)
    log_file = log_dir / f"local-{_today()}.log"

    has_file = any(
        isinstance(h, logging.FileHandler) and Path(h.baseFilename) == log_file.resolve()
        for h in root.handlers
    )
    if not has_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if numeric <= logging.DEBUG:
        has_console = any(
            isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
            for h in root.handlers
        )
        if not has_console:
            console = logging.StreamHandler()
            console.setFormatter(formatter)
            root.addHandler(console)

    return root


def log_bid_event(event_type: str, details: str, actor_id: str = "default") -> None:
    """Append one event line to the dated bid events log.

    Line format: ``{timestamp} | {event_type} | actor={actor_id} | {details}``
    """
    log_dir = get_log_dir()
    line = f"{datetime.now(timezone.utc).isoformat()} | {event_type} | actor={actor_id} | {details}\n"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        with open(log_dir / f"bid-events-{_today()}.log", "a", encoding="utf-8") as f:
            f.write(line)
    except OSError as e:
        logger.debug(f"Could not write bid event log: {e}")


def log_submission(actor_id: str, job_id: str, bid_id: str, amount) -> None:
    log_bid_event("submit", f"job={job_id[:8]}... | bid={bid_id[:8]}... | amount={amount}", actor_id)


def log_award(
    actor_id: str,
    job_id: str,
    bid_id: str,
    provider_id: str,
    conversation_id: str,
    writes: int = 0,
) -> None:
    log_bid_event(
        "award",
        f"job={job_id[:8]}... | bid={bid_id[:8]}... | provider={provider_id} | "
        f"conversation={conversation_id[:8]}... | writes={writes}",
        actor_id,
    )


def log_rollback(actor_id: str, label: str, job_id: str, reason: str) -> None:
    log_bid_event("rollback", f"op={label} | job={job_id[:8]}... | reason={reason}", actor_id)
