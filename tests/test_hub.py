"""Tests for the subscription hub."""

import threading
import time

import pytest

from log_monitor.classifier import classify
from log_monitor.hub import FILE_ADDED, NEW_LOG_ENTRY, SubscriptionHub


def _snapshot(count):
    return {"files": [], "entries": [], "requested": count}


@pytest.fixture
def hub():
    return SubscriptionHub(_snapshot, snapshot_size=50, queue_size=4, publish_timeout=0.01)


class TestSubscribe:
    def test_returns_snapshot_and_subscription(self, hub):
        snapshot, sub = hub.subscribe()
        assert snapshot["requested"] == 50
        assert hub.subscriber_count == 1
        assert not sub.closed

    def test_subscribers_get_distinct_ids(self, hub):
        _, a = hub.subscribe()
        _, b = hub.subscribe()
        assert a.id != b.id

    def test_registered_before_snapshot(self):
        seen = {}

        def provider(count):
            seen["count"] = hub.subscriber_count
            return {}

        hub = SubscriptionHub(provider)
        hub.subscribe()
        assert seen["count"] == 1


class TestPublish:
    def test_delivers_to_subscriber(self, hub):
        _, sub = hub.subscribe()
        entry = classify("ERROR boom", "a.log")
        assert hub.publish(entry) == 1
        assert sub.get(timeout=0.1) == (NEW_LOG_ENTRY, entry.to_dict())

    def test_delivers_to_every_subscriber(self, hub):
        subs = [hub.subscribe()[1] for _ in range(3)]
        hub.publish(classify("hello", "a.log"))
        for sub in subs:
            event, payload = sub.get(timeout=0.1)
            assert event == NEW_LOG_ENTRY
            assert payload["content"] == "hello"

    def test_fifo_per_subscriber(self, hub):
        _, sub = hub.subscribe()
        for i in range(3):
            hub.publish(classify(f"line {i}", "a.log"))
        contents = [sub.get(timeout=0.1)[1]["content"] for _ in range(3)]
        assert contents == ["line 0", "line 1", "line 2"]

    def test_publish_without_subscribers(self, hub):
        assert hub.publish(classify("nobody listening", "a.log")) == 0

    def test_broadcast_file_event(self, hub):
        _, sub = hub.subscribe()
        hub.broadcast(FILE_ADDED, {"filename": "a.log", "path": "/logs/a.log"})
        assert sub.get(timeout=0.1) == (FILE_ADDED, {"filename": "a.log", "path": "/logs/a.log"})


class TestUnsubscribe:
    def test_no_delivery_after_unsubscribe(self, hub):
        _, sub = hub.subscribe()
        hub.unsubscribe(sub)
        assert hub.publish(classify("late", "a.log")) == 0
        assert sub.get(timeout=0.05) is None
        assert hub.subscriber_count == 0

    def test_unsubscribe_is_idempotent(self, hub):
        _, sub = hub.subscribe()
        hub.unsubscribe(sub)
        hub.unsubscribe(sub)
        assert sub.closed

    def test_unsubscribe_wakes_blocked_reader(self, hub):
        _, sub = hub.subscribe()
        result = {}

        def reader():
            result["message"] = sub.get(timeout=5)

        t = threading.Thread(target=reader)
        t.start()
        time.sleep(0.05)
        hub.unsubscribe(sub)
        t.join(timeout=1)
        assert not t.is_alive()
        assert result["message"] is None

    def test_events_iterator_ends_on_close(self, hub):
        _, sub = hub.subscribe()
        hub.publish(classify("one", "a.log"))
        hub.unsubscribe(sub)
        messages = [m for m in sub.events(timeout=0.05) if m is not None]
        assert [m[1]["content"] for m in messages] == ["one"]


class TestSlowSubscriber:
    def test_full_queue_drops_subscriber(self, hub):
        _, slow = hub.subscribe()
        _, fast = hub.subscribe()
        for i in range(4):
            hub.publish(classify(f"line {i}", "a.log"))
            fast.get(timeout=0.1)

        started = time.monotonic()
        delivered = hub.publish(classify("overflow", "a.log"))
        elapsed = time.monotonic() - started

        assert delivered == 1
        assert slow.dropped
        assert slow.closed
        assert hub.subscriber_count == 1
        assert elapsed < 1.0
        assert fast.get(timeout=0.1)[1]["content"] == "overflow"

    def test_dropped_subscriber_can_drain_buffered_messages(self, hub):
        _, slow = hub.subscribe()
        for i in range(5):
            hub.publish(classify(f"line {i}", "a.log"))
        assert slow.dropped
        messages = [m for m in slow.events(timeout=0.05) if m is not None]
        assert [m[1]["content"] for m in messages] == [f"line {i}" for i in range(4)]


class TestCloseAll:
    def test_close_all_releases_everyone(self, hub):
        subs = [hub.subscribe()[1] for _ in range(3)]
        hub.close_all()
        assert hub.subscriber_count == 0
        assert all(s.closed for s in subs)
