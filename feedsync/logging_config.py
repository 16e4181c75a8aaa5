"""Logging configuration shared by the sync CLI and the web app.

Console output plus a daily JSONL file per package. Structured events
carry an ``event_type`` and their data as top-level JSON fields.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

__all__ = [
    "setup_logging",
    "get_logger",
    "log_sync_event",
    "LOG_DIR",
]

LOG_DIR = Path(__file__).parent.parent / "logs"

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JSONLFileHandler(logging.Handler):
    """Append records to ``{prefix}_YYYYMMDD.jsonl`` in ``log_dir``."""

    def __init__(self, log_dir: Path, prefix: str):
        super().__init__()
        self.log_dir = log_dir
        self.prefix = prefix

    def emit(self, record: logging.LogRecord) -> None:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        event_type = getattr(record, "event_type", None)
        if event_type:
            entry["event_type"] = event_type
            entry.update(getattr(record, "event_data", {}))

        path = self.log_dir / f"{self.prefix}_{datetime.now():%Y%m%d}.jsonl"
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        except OSError:
            self.handleError(record)


def setup_logging(
    package: str = "feedsync",
    level: int = logging.INFO,
    log_to_file: bool = True,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """Configure the ``package`` logger hierarchy.

    Replaces any handlers installed by an earlier call, so it is safe to
    call once per process entry point (CLI run, app factory).

    Args:
        package: Top-level logger name ("feedsync" or "shopassist")
        level: Console and logger level
        log_to_file: Also write ``logs/{package}_YYYYMMDD.jsonl``
        log_dir: Custom log directory (default: project logs/)
    """
    logger = logging.getLogger(package)
    logger.setLevel(level)
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(console)

    if log_to_file:
        logger.addHandler(JSONLFileHandler(log_dir or LOG_DIR, prefix=package))
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a ``feedsync`` submodule, e.g. ``get_logger("sync")``."""
    return logging.getLogger(f"feedsync.{name}")


def log_sync_event(event_type: str, data: Dict[str, Any], level: int = logging.INFO) -> None:
    """Log a structured sync event on the ``feedsync.events`` logger.

    Event types: sync_start, feed_fetched, feed_parsed, transform_warning,
    products_saved, index_saved, sync_complete, sync_failed.
    """
    get_logger("events").log(
        level,
        event_type,
        extra={"event_type": event_type, "event_data": data},
    )
