import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from enum import Enum

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from trailprobe.auth.store import get_active_profile_or_none
from trailprobe.config import StartupError
from trailprobe.discovery.events import RawEvent

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50


class TransientFetchError(Exception):
    """A LookupEvents call failed; the same page may be requested again."""

    def __init__(self, message, token=None):
        super().__init__(message)
        self.token = token


#### Gets events from the CloudTrail event history (LookupEvents)
def get_cloudtrail_client(region, profile=None):
    """
    CloudTrail client for the scan.

    Uses the stored trailprobe profile when one is active (or named),
    otherwise the boto3 default credential chain. botocore's own retries
    are disabled so the pagination driver owns the retry budget.
    """
    try:
        stored = get_active_profile_or_none(profile)
    except RuntimeError as e:
        raise StartupError(str(e)) from e

    if stored:
        _, creds = stored
        session = boto3.Session(
            aws_access_key_id=creds["access_key"],
            aws_secret_access_key=creds["secret_key"],
            region_name=region,
        )
    else:
        session = boto3.Session(region_name=region)

    if session.get_credentials() is None:
        raise StartupError(
            "Couldn't load AWS credentials. Run 'trailprobe auth' or configure the AWS CLI."
        )

    config = Config(region_name=region, retries={"max_attempts": 1, "mode": "standard"})
    return session.client("cloudtrail", config=config)


class CloudTrailEventSource:
    """
    Callable returning one LookupEvents page: ``(events, next_token)``.

    Any botocore failure is raised as TransientFetchError.
    """

    def __init__(self, client, hours=None, end_time=None, page_size=MAX_PAGE_SIZE):
        self.client = client
        self.page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        self.end_time = end_time
        self.start_time = None
        if hours is not None:
            if hours < 1:
                raise ValueError("hours must be >= 1")
            self.end_time = end_time or datetime.now(timezone.utc)
            self.start_time = self.end_time - timedelta(hours=hours)

    def _request(self, token):
        params = {"MaxResults": self.page_size}
        if self.start_time is not None:
            params["StartTime"] = self.start_time
        if self.end_time is not None:
            params["EndTime"] = self.end_time
        if token:
            params["NextToken"] = token
        return params

    def __call__(self, token=None):
        try:
            response = self.client.lookup_events(**self._request(token))
        except (ClientError, BotoCoreError) as e:
            raise TransientFetchError(str(e), token) from e

        events = [RawEvent.from_lookup(item) for item in response.get("Events", [])]
        return events, response.get("NextToken") or None


class DriverState(Enum):
    FETCHING = "fetching"
    RETRYING = "retrying"
    DRAINING_PAGE = "draining_page"
    DONE = "done"
    ABORTED = "aborted"


TERMINAL_STATES = (DriverState.DONE, DriverState.ABORTED)


class PaginationDriver:
    """
    Follows LookupEvents continuation tokens and feeds every event to ``sink``.

    Parameters
    ----------
    source : callable
        ``source(token) -> (events, next_token)``; raises TransientFetchError
    sink : callable
        ``sink(event) -> bool``; False means the consumer is gone
    max_retries : int
        Retries per page after the first attempt (3 -> 4 attempts total)
    backoff_base : float
        Delay in seconds before the first retry, doubled for each further one
    """

    def __init__(self, source, sink, max_retries=3, backoff_base=0.1, sleep=time.sleep):
        self.source = source
        self.sink = sink
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.sleep = sleep
        self.state = DriverState.FETCHING
        self.fetches = 0
        self.pages = 0
        self.events = 0
        self._stop = threading.Event()

    def stop(self):
        """Stop issuing fetches; the loop ends as ABORTED."""
        self._stop.set()

    @property
    def stopped(self):
        return self._stop.is_set()

    def backoff(self, attempt):
        return self.backoff_base * (2 ** (attempt - 1))

    def run(self):
        token = None
        retry = 0
        self.state = DriverState.FETCHING

        while self.state not in TERMINAL_STATES:
            if self._stop.is_set():
                logger.warning("Pagination stopped", extra={"token": token or ""})
                self.state = DriverState.ABORTED
                break

            logger.info("Looking up events", extra={"token": token or ""})
            self.fetches += 1

            try:
                events, next_token = self.source(token)
            except TransientFetchError as e:
                logger.error(
                    "Couldn't lookup cloudtrail events",
                    extra={"error": str(e), "token": token or ""},
                )
                if retry >= self.max_retries:
                    logger.error(
                        "Retry budget exhausted, aborting scan",
                        extra={"token": token or "", "attempts": retry + 1},
                    )
                    self.state = DriverState.ABORTED
                    break

                retry += 1
                self.state = DriverState.RETRYING
                delay = self.backoff(retry)
                logger.warning(
                    "Retrying request",
                    extra={"token": token or "", "retry": retry, "delay": delay},
                )
                self.sleep(delay)
                self.state = DriverState.FETCHING
                continue

            retry = 0
            self.pages += 1
            self.state = DriverState.DRAINING_PAGE

            for event in events:
                if self._stop.is_set() or not self.sink(event):
                    logger.warning(
                        "Event consumer stopped mid-page",
                        extra={"token": token or "", "event_id": event.event_id},
                    )
                    self.state = DriverState.ABORTED
                    break
                self.events += 1

            if self.state is DriverState.ABORTED:
                break

            if not next_token:
                self.state = DriverState.DONE
                break

            token = next_token
            self.state = DriverState.FETCHING

        logger.info(
            "Pagination finished",
            extra={
                "state": self.state.value,
                "fetches": self.fetches,
                "pages": self.pages,
                "events": self.events,
            },
        )
        return self.state
