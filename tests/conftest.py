"""Shared fixtures for trailprobe tests."""

import json

import pytest

from trailprobe.collector.cloudtrail import TransientFetchError
from trailprobe.config import ScanSettings
from trailprobe.discovery.events import RawEvent


def make_event(payload, event_id="evt-1", event_name="RunInstances"):
    """RawEvent from a dict payload (serialized) or a raw string payload."""
    if not isinstance(payload, str):
        payload = json.dumps(payload)
    return RawEvent(event_id=event_id, event_name=event_name, payload=payload)


class FakeSource:
    """
    Scripted LookupEvents source.

    ``script`` is a list of pages ``(events, next_token)`` or exceptions;
    each call consumes one entry and records the token it was called with.
    """

    def __init__(self, script):
        self.script = list(script)
        self.tokens = []

    @property
    def calls(self):
        return len(self.tokens)

    def __call__(self, token=None):
        self.tokens.append(token)
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


class AlwaysFailingSource:
    def __init__(self):
        self.calls = 0

    def __call__(self, token=None):
        self.calls += 1
        raise TransientFetchError("ThrottlingException: Rate exceeded", token)


@pytest.fixture
def settings(tmp_path):
    return ScanSettings(
        summary_path=tmp_path / "summary.csv",
        log_path=tmp_path / "logs.ndjson",
        backoff_base=0,
        queue_size=4,
    )


@pytest.fixture
def credential_store(tmp_path, monkeypatch):
    """Point the credential store at a temporary directory."""
    from trailprobe.auth import store

    store_dir = tmp_path / ".trailprobe"
    monkeypatch.setattr(store, "TRAILPROBE_DIR", str(store_dir))
    monkeypatch.setattr(store, "TRAILPROBE_CRED_PATH", str(store_dir / "credentials.json"))
    return store


@pytest.fixture
def ec2_event():
    return make_event(
        {
            "eventVersion": "1.08",
            "eventName": "RunInstances",
            "userIdentity": {"arn": "arn:aws:iam::123456789012:user/alice", "type": "IAMUser"},
            "responseElements": {
                "instancesSet": {
                    "items": [
                        {"instanceId": "i-0123456789abcdef0", "imageId": "ami-0abc1234"},
                        {"instanceId": "i-0fedcba9876543210", "imageId": "ami-0def5678"},
                    ]
                },
                "requesterId": "940372691376",
                "reservationId": "r-0a1b2c3d4e5f6a7b8",
            },
            "readOnly": False,
            "sourceIPAddress": "203.0.113.12",
        },
        event_id="evt-ec2",
        event_name="RunInstances",
    )
