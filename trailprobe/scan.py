"""
Scan lifecycle.

Wires the pagination driver, the event worker and the summary writer, and
guarantees the summary is written exactly once whichever way the scan ends:

* normal end (pagination DONE or ABORTED): the worker drains its queue,
  is joined, then the cache is snapshotted and written
* SIGINT: the handler stops pagination and unwinds it; once the stack (and
  every lock held on it) is released the worker is cancelled and joined,
  the cache is snapshotted and written, then the process exits with 130

Both paths go through ``ScanCoordinator.finish()``, which runs once.
"""

import logging
import signal
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from botocore.exceptions import BotoCoreError

from trailprobe.collector.cloudtrail import (
    CloudTrailEventSource,
    DriverState,
    TERMINAL_STATES,
    PaginationDriver,
    get_cloudtrail_client,
)
from trailprobe.config import ScanSettings, StartupError
from trailprobe.discovery.cache import DiscoveryCache, DiscoveryRecord
from trailprobe.discovery.worker import EventWorker
from trailprobe.logs import setup_logging, teardown_logging
from trailprobe.summary import write_summary

logger = logging.getLogger(__name__)

INTERRUPT_EXIT_CODE = 130


class ScanInterrupted(KeyboardInterrupt):
    """Raised by the SIGINT handler to unwind the pagination loop."""


@dataclass
class ScanResult:
    state: DriverState
    fetches: int
    events: int
    processed: int
    dropped: int
    summary_path: Path
    summary_written: bool
    interrupted: bool = False
    records: List[DiscoveryRecord] = field(default_factory=list)

    def __repr__(self):
        return (
            f"ScanResult(state={self.state.value!r}, fetches={self.fetches}, "
            f"records={len(self.records)}, interrupted={self.interrupted})"
        )


class ScanCoordinator:
    """
    Runs one scan over ``source``.

    Parameters
    ----------
    source : callable
        ``source(token) -> (events, next_token)``, see CloudTrailEventSource
    settings : ScanSettings
        Retry budget, queue size and summary path
    sleep : callable
        Used for retry backoff
    """

    def __init__(self, source, settings: Optional[ScanSettings] = None, sleep=time.sleep):
        self.settings = settings or ScanSettings()
        self.cache = DiscoveryCache()
        self.worker = EventWorker(self.cache, queue_size=self.settings.queue_size)
        self.driver = PaginationDriver(
            source,
            self.worker.submit,
            max_retries=self.settings.max_retries,
            backoff_base=self.settings.backoff_base,
            sleep=sleep,
        )
        self.result: Optional[ScanResult] = None
        self._gate = threading.RLock()
        self._finished = False
        self._interrupt_requested = False
        self._pipeline_running = False
        self._previous_handler = None
        self._handler_installed = False

    @property
    def finished(self) -> bool:
        return self._finished

    def run(self) -> ScanResult:
        self.worker.start()
        failure = None

        try:
            self.install_interrupt_handler()
            self._pipeline_running = True
            self.driver.run()
            self._pipeline_running = False
        except KeyboardInterrupt:
            # ScanInterrupted from handle_interrupt, or a plain KeyboardInterrupt
            # when the handler could not be installed (not the main thread)
            self._pipeline_running = False
            self._interrupt_requested = True
        except Exception as e:
            self._pipeline_running = False
            logger.exception("Scan failed, writing partial summary")
            failure = e

        try:
            if self._interrupt_requested:
                logger.warning("Interrupt received, writing summary")
            result = self.finish(interrupted=self._interrupt_requested or failure is not None)
        finally:
            self.restore_interrupt_handler()

        if failure is not None:
            raise failure
        if self._interrupt_requested:
            raise SystemExit(INTERRUPT_EXIT_CODE)
        return result

    def finish(self, interrupted: bool = False) -> ScanResult:
        """Stop the pipeline, snapshot the cache and write the summary, once."""
        with self._gate:
            if self._finished:
                return self.result
            self._finished = True

            self.driver.stop()
            if interrupted:
                self.worker.cancel()
            else:
                self.worker.close()

            # The worker has been joined; the cache no longer changes.
            records = self.cache.snapshot()
            state = self.driver.state if self.driver.state in TERMINAL_STATES else DriverState.ABORTED
            written = write_summary(records, self.settings.summary_path)

            self.result = ScanResult(
                state=state,
                fetches=self.driver.fetches,
                events=self.driver.events,
                processed=self.worker.processed,
                dropped=self.worker.dropped,
                summary_path=self.settings.summary_path,
                summary_written=written,
                interrupted=interrupted,
                records=records,
            )
            logger.info(
                "Scan finished",
                extra={
                    "state": state.value,
                    "records": len(records),
                    "interrupted": interrupted,
                },
            )
            return self.result

    def handle_interrupt(self, signum=None, frame=None):
        """
        SIGINT handler.

        Runs on the main thread at an arbitrary point, possibly while it
        holds the queue or a logging handler lock, so it only records the
        request and unwinds the pipeline. ``run()`` does the shutdown.
        """
        if self._finished:
            return
        self._interrupt_requested = True
        self.driver.stop()
        if self._pipeline_running:
            raise ScanInterrupted()

    def install_interrupt_handler(self):
        if self._handler_installed:
            return
        try:
            self._previous_handler = signal.signal(signal.SIGINT, self.handle_interrupt)
            self._handler_installed = True
        except (OSError, ValueError):
            # Not the main thread; KeyboardInterrupt is handled in run()
            logger.debug("Couldn't install SIGINT handler")

    def restore_interrupt_handler(self):
        if not self._handler_installed:
            return
        previous = self._previous_handler
        if previous is None:
            previous = signal.default_int_handler
        try:
            signal.signal(signal.SIGINT, previous)
        except (OSError, ValueError):
            pass
        self._handler_installed = False


def run_scan(settings: ScanSettings, console=None) -> ScanResult:
    """
    Full scan against the CloudTrail event history.

    Raises
    ------
    StartupError
        If the log file cannot be opened or no AWS credentials are available
    """
    setup_logging(settings.log_path, console=console)

    try:
        logger.info(
            "Starting scan",
            extra={"region": settings.region, "profile": settings.profile or "", "hours": settings.hours},
        )
        try:
            client = get_cloudtrail_client(settings.region, settings.profile)
        except StartupError as e:
            logger.error("Couldn't create CloudTrail client", extra={"error": str(e)})
            raise
        except BotoCoreError as e:
            logger.error("Couldn't create CloudTrail client", extra={"error": str(e)})
            raise StartupError(f"Couldn't create CloudTrail client: {e}") from e

        source = CloudTrailEventSource(client, hours=settings.hours, page_size=settings.page_size)
        return ScanCoordinator(source, settings).run()
    finally:
        teardown_logging()
