"""
Event worker: the single consumer of the collector's event queue.

For every event the payload is flattened, each string leaf's path is
normalized, and values that classify as identifiers are recorded in the
DiscoveryCache the first time their path is seen.
"""

import logging
import queue
import threading
from typing import Optional

from .cache import DiscoveryCache
from .classify import KIND_ARN, classify_kind
from .events import RawEvent
from .flatten import FlattenError, flatten
from .paths import normalize

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000

# Wake-up interval for blocking queue operations so cancel() is observed.
_POLL_SECONDS = 0.1

_END_OF_STREAM = object()


def handle_event(event: RawEvent, cache: DiscoveryCache) -> int:
    """
    Classify every string field of one event into ``cache``.

    Returns
    -------
    int
        Number of new records inserted

    Raises
    ------
    FlattenError
        If the event payload is not valid JSON
    """
    fields = flatten(event.payload)
    inserted = 0

    for key, value in fields.items():
        if not isinstance(value, str):
            continue

        path = normalize(key)
        if path in cache:
            continue

        kind = classify_kind(value)
        if kind is None:
            continue

        if cache.try_insert(path, value, event.event_name, event.event_id):
            inserted += 1
            logger.info(
                "Has arn" if kind == KIND_ARN else "Has resource Id",
                extra={
                    "key": path,
                    "value": value,
                    "kind": kind,
                    "action": event.event_name,
                    "event_id": event.event_id,
                },
            )

    return inserted


class EventWorker(threading.Thread):
    """
    Consumes RawEvents from a bounded queue until closed or cancelled.

    ``close()`` drains: every event submitted before it is processed.
    ``cancel()`` stops after the event in flight and discards the rest.
    """

    def __init__(self, cache: DiscoveryCache, queue_size: int = DEFAULT_QUEUE_SIZE):
        super().__init__(name="trailprobe-worker", daemon=True)
        self.cache = cache
        self.events: "queue.Queue" = queue.Queue(maxsize=queue_size)
        self.processed = 0
        self.dropped = 0
        self._cancelled = threading.Event()
        self._closed = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _accepting(self) -> bool:
        return not self._cancelled.is_set() and not self._closed.is_set() and self.is_alive()

    def submit(self, event: RawEvent) -> bool:
        """
        Queue an event, blocking while the queue is full.

        Returns False instead of blocking forever once the worker has been
        cancelled, closed, or has exited.
        """
        while self._accepting():
            try:
                self.events.put(event, timeout=_POLL_SECONDS)
                return True
            except queue.Full:
                continue

        logger.warning("Worker not accepting events", extra={"event_id": event.event_id})
        return False

    def close(self, timeout: Optional[float] = None) -> None:
        """Signal end of stream and wait for queued events to be processed."""
        if self._closed.is_set():
            self.join(timeout)
            return
        self._closed.set()

        while self.is_alive() and not self._cancelled.is_set():
            try:
                self.events.put(_END_OF_STREAM, timeout=_POLL_SECONDS)
                break
            except queue.Full:
                continue

        self.join(timeout)

    def cancel(self, timeout: Optional[float] = None) -> None:
        """Stop after the current event; queued events are discarded."""
        self._cancelled.set()
        if self.is_alive() and threading.current_thread() is not self:
            self.join(timeout)

    def run(self) -> None:
        logger.debug("Starting worker")

        while not self._cancelled.is_set():
            try:
                event = self.events.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                continue

            if event is _END_OF_STREAM:
                break

            self._process(event)

        self.dropped += self.events.qsize()
        logger.debug(
            "Stopping worker",
            extra={"processed": self.processed, "dropped": self.dropped},
        )

    def _process(self, event: RawEvent) -> None:
        try:
            handle_event(event, self.cache)
        except FlattenError as e:
            logger.error(
                "Failed to flatten json",
                extra={"error": str(e), "event_id": event.event_id, "action": event.event_name},
            )
        except Exception as e:
            logger.error(
                "Failed to process event",
                extra={"error": str(e), "event_id": event.event_id, "action": event.event_name},
            )
        finally:
            self.processed += 1
