"""Write discovered identifiers to the CSV summary."""

import csv
import logging
from pathlib import Path
from typing import Iterable

from trailprobe.discovery.cache import DiscoveryRecord

logger = logging.getLogger(__name__)

HEADER = ["key", "value", "eventAction", "eventExampleId"]


def write_summary(records: Iterable[DiscoveryRecord], path: Path) -> bool:
    """
    Overwrite ``path`` with one CSV row per record, in the given order.

    Failures are logged and swallowed: the scan result is still usable
    from the log file.

    Returns
    -------
    bool
        True if the summary was written completely
    """
    path = Path(path)
    count = 0

    try:
        with open(path, "w", newline="", encoding="utf-8", errors="backslashreplace") as f:
            writer = csv.writer(f)
            writer.writerow(HEADER)
            for record in records:
                writer.writerow(record.as_row())
                count += 1
    except (OSError, ValueError) as e:
        logger.error("Couldn't write summary file", extra={"error": str(e), "path": str(path)})
        return False

    logger.info("Summary written", extra={"path": str(path), "rows": count})
    return True
