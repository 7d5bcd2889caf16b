"""
Logging setup for a scan.

Every record goes to two places:

* the scan log file, one JSON object per line, truncated when the scan starts
* the console through rich's RichHandler

Contextual fields are passed with ``extra=`` (``event_id``, ``action``,
``token``, ...) and end up as top-level keys of the JSON line.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler

from trailprobe.config import StartupError

ROOT_LOGGER = "trailprobe"

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class JsonLinesFormatter(logging.Formatter):
    """Format a record as a single-line JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    log_path: Path,
    level: int = logging.DEBUG,
    console: Optional[Console] = None,
) -> Tuple[logging.Handler, ...]:
    """
    Attach the JSON file handler and the rich console handler.

    Raises
    ------
    StartupError
        If the log file cannot be opened
    """
    logger = logging.getLogger(ROOT_LOGGER)
    teardown_logging()

    try:
        file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    except OSError as e:
        raise StartupError(f"Couldn't open log file {log_path}: {e}") from e
    file_handler.setFormatter(JsonLinesFormatter())
    file_handler.setLevel(level)

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    console_handler.setLevel(logging.INFO)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    logger.setLevel(level)
    logger.propagate = False

    return file_handler, console_handler


def teardown_logging() -> None:
    """Flush and detach every handler installed by setup_logging."""
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
