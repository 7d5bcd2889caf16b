"""Tests for the event worker."""

import logging

import pytest

from conftest import make_event
from trailprobe.discovery.cache import DiscoveryCache
from trailprobe.discovery.flatten import FlattenError
from trailprobe.discovery.worker import EventWorker, handle_event


class TestHandleEvent:
    def test_records_identifier_fields(self, ec2_event):
        cache = DiscoveryCache()
        inserted = handle_event(ec2_event, cache)

        assert inserted == 4
        assert cache.get("userIdentity.arn").value == "arn:aws:iam::123456789012:user/alice"
        assert cache.get("responseElements.reservationId").value == "r-0a1b2c3d4e5f6a7b8"

    def test_array_elements_merge_and_keep_first(self, ec2_event):
        cache = DiscoveryCache()
        handle_event(ec2_event, cache)

        record = cache.get("responseElements.instancesSet.items.[].instanceId")
        assert record.value == "i-0123456789abcdef0"
        assert record.action == "RunInstances"
        assert record.event_id == "evt-ec2"
        assert cache.get("responseElements.instancesSet.items.[].imageId").value == "ami-0abc1234"

    def test_later_event_does_not_overwrite(self):
        cache = DiscoveryCache()
        handle_event(make_event({"role": "arn:first"}, "evt-1", "CreateRole"), cache)
        inserted = handle_event(make_event({"role": "arn:second"}, "evt-2", "DeleteRole"), cache)

        assert inserted == 0
        assert cache.get("role").event_id == "evt-1"

    def test_non_string_values_are_ignored(self):
        cache = DiscoveryCache()
        handle_event(make_event({"n": 12345678, "b": True, "z": None, "s": "plain"}), cache)
        assert len(cache) == 0

    def test_malformed_payload_raises(self):
        with pytest.raises(FlattenError):
            handle_event(make_event("{oops"), DiscoveryCache())

    def test_logs_observation(self, caplog):
        caplog.set_level(logging.INFO, logger="trailprobe")
        handle_event(make_event({"group": "sg-0a1b2c3d"}, "evt-9", "AuthorizeSecurityGroupIngress"), DiscoveryCache())

        records = [r for r in caplog.records if r.getMessage() == "Has resource Id"]
        assert len(records) == 1
        assert records[0].key == "group"
        assert records[0].value == "sg-0a1b2c3d"
        assert records[0].action == "AuthorizeSecurityGroupIngress"
        assert records[0].event_id == "evt-9"


class TestEventWorker:
    def test_close_drains_every_queued_event(self):
        cache = DiscoveryCache()
        worker = EventWorker(cache, queue_size=2)
        worker.start()

        for i in range(10):
            assert worker.submit(make_event({f"field{i}": "arn:aws:x"}, f"evt-{i}"))
        worker.close(timeout=5)

        assert not worker.is_alive()
        assert worker.processed == 10
        assert len(cache) == 10

    def test_malformed_event_does_not_stop_processing(self, caplog):
        cache = DiscoveryCache()
        worker = EventWorker(cache)
        worker.start()

        worker.submit(make_event({"a": "arn:aws:a"}, "evt-1"))
        worker.submit(make_event("{not json", "evt-bad"))
        worker.submit(make_event({"b": "sg-0a1b2c3d"}, "evt-3"))
        worker.close(timeout=5)

        assert worker.processed == 3
        assert [r.path for r in cache.snapshot()] == ["a", "b"]
        failures = [r for r in caplog.records if r.getMessage() == "Failed to flatten json"]
        assert failures and failures[0].event_id == "evt-bad"

    def test_submit_refused_after_cancel(self):
        worker = EventWorker(DiscoveryCache())
        worker.start()
        worker.cancel(timeout=5)

        assert not worker.is_alive()
        assert worker.submit(make_event({"a": "arn:x"})) is False

    def test_submit_refused_when_not_started(self):
        worker = EventWorker(DiscoveryCache())
        assert worker.submit(make_event({"a": "arn:x"})) is False

    def test_close_twice_is_harmless(self):
        worker = EventWorker(DiscoveryCache())
        worker.start()
        worker.close(timeout=5)
        worker.close(timeout=5)
        assert not worker.is_alive()


def test_arn_observation_message(caplog):
    caplog.set_level(logging.INFO, logger="trailprobe")
    handle_event(make_event({"role": "arn:aws:iam::1:role/x"}, "evt-2", "AssumeRole"), DiscoveryCache())
    assert [r.getMessage() for r in caplog.records if r.name.startswith("trailprobe")] == ["Has arn"]
