"""
Discovery package.

Flattening, path normalization, identifier classification and the
first-write-wins cache, plus the worker that ties them together.
"""

from .cache import DiscoveryCache, DiscoveryRecord
from .classify import classify, classify_kind
from .events import RawEvent
from .flatten import FlattenError, flatten
from .paths import normalize
from .worker import EventWorker, handle_event

__all__ = [
    "DiscoveryCache",
    "DiscoveryRecord",
    "classify",
    "classify_kind",
    "RawEvent",
    "FlattenError",
    "flatten",
    "normalize",
    "EventWorker",
    "handle_event",
]
