"""
Scan configuration.

Region priority:
  1. CLI flag --region
  2. trailprobe profile stored region
  3. fallback: eu-west-1
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_REGION = "eu-west-1"
DEFAULT_LOG_PATH = "logs.ndjson"
DEFAULT_SUMMARY_PATH = "summary.csv"
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE = 0.1
DEFAULT_QUEUE_SIZE = 1000
DEFAULT_PAGE_SIZE = 50


class StartupError(Exception):
    """The scan cannot start (no credentials, log file unavailable, ...)."""


@dataclass
class ScanSettings:
    region: str = DEFAULT_REGION
    profile: Optional[str] = None
    hours: Optional[int] = None
    log_path: Path = Path(DEFAULT_LOG_PATH)
    summary_path: Path = Path(DEFAULT_SUMMARY_PATH)
    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_base: float = DEFAULT_BACKOFF_BASE
    queue_size: int = DEFAULT_QUEUE_SIZE
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self):
        self.log_path = Path(self.log_path)
        self.summary_path = Path(self.summary_path)
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")
        if self.hours is not None and self.hours < 1:
            raise ValueError("hours must be >= 1")

    @classmethod
    def from_args(cls, args) -> "ScanSettings":
        """Build settings from parsed CLI arguments."""
        return cls(
            region=resolve_region(args),
            profile=getattr(args, "profile", None),
            hours=getattr(args, "hours", None),
            log_path=getattr(args, "log_file", None) or DEFAULT_LOG_PATH,
            summary_path=getattr(args, "summary_file", None) or DEFAULT_SUMMARY_PATH,
            max_retries=_or_default(getattr(args, "max_retries", None), DEFAULT_MAX_RETRIES),
            page_size=_or_default(getattr(args, "page_size", None), DEFAULT_PAGE_SIZE),
        )


def _or_default(value, default):
    return default if value is None else value


def resolve_region(args) -> str:
    if getattr(args, "region", None):
        return args.region

    from trailprobe.auth.store import load_trailprobe_creds

    try:
        creds = load_trailprobe_creds(getattr(args, "profile", None))
    except (RuntimeError, OSError, ValueError):
        return DEFAULT_REGION
    return creds.get("region") or DEFAULT_REGION
