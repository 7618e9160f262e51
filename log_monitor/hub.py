"""Subscription hub — fans out new entries and file events to live viewers."""

import itertools
import logging
import queue
import threading
from typing import Any, Callable, Iterator

from log_monitor.models import LogEntry

logger = logging.getLogger(__name__)

NEW_LOG_ENTRY = "newLogEntry"
FILE_ADDED = "fileAdded"
FILE_REMOVED = "fileRemoved"

_CLOSED = object()


class Subscription:
    """One subscriber's bounded feed of ``(event, payload)`` messages."""

    def __init__(self, sub_id: int, maxsize: int):
        self.id = sub_id
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()
        self.dropped = False

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def deliver(self, message: tuple[str, Any], timeout: float) -> bool:
        """Queue a message, waiting at most ``timeout``. False if the feed is full."""
        if self.closed:
            return True
        try:
            self._queue.put(message, timeout=timeout)
        except queue.Full:
            return False
        return True

    def get(self, timeout: float | None = None) -> tuple[str, Any] | None:
        """Next message, or None on timeout or once closed."""
        if self.closed and self._queue.empty():
            return None
        try:
            message = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if message is _CLOSED:
            return None
        return message

    def events(self, timeout: float = 1.0) -> Iterator[tuple[str, Any] | None]:
        """Yield messages until closed; yields None on each idle timeout."""
        while True:
            message = self.get(timeout=timeout)
            if message is None and self.closed:
                return
            yield message

    def close(self) -> None:
        if self.closed:
            return
        self._closed.set()
        # Wake a reader blocked in get(); if the queue is full it is not blocked.
        try:
            self._queue.put_nowait(_CLOSED)
        except queue.Full:
            pass


class SubscriptionHub:
    """Registry of live subscribers with per-subscriber bounded queues.

    ``publish`` never blocks for longer than ``publish_timeout`` per
    subscriber: a subscriber whose queue stays full is dropped instead of
    applying backpressure to ingestion.
    """

    def __init__(
        self,
        snapshot_provider: Callable[[int], dict],
        snapshot_size: int = 50,
        queue_size: int = 256,
        publish_timeout: float = 0.05,
    ):
        self._snapshot_provider = snapshot_provider
        self._snapshot_size = snapshot_size
        self._queue_size = queue_size
        self._publish_timeout = publish_timeout
        self._subscribers: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> tuple[dict, Subscription]:
        """Register a subscriber and return (snapshot, subscription).

        Registration happens before the snapshot is taken, so an entry
        ingested in between may show up in both, but never in neither.
        """
        with self._lock:
            sub = Subscription(next(self._ids), self._queue_size)
            self._subscribers[sub.id] = sub
            count = len(self._subscribers)
        logger.info("Subscriber %d connected. Total subscribers: %d", sub.id, count)
        return self._snapshot_provider(self._snapshot_size), sub

    def unsubscribe(self, sub: Subscription) -> None:
        """Deregister and close a subscription. Safe to call more than once."""
        with self._lock:
            removed = self._subscribers.pop(sub.id, None)
            count = len(self._subscribers)
        sub.close()
        if removed is not None:
            logger.info("Subscriber %d disconnected. Total subscribers: %d", sub.id, count)

    def publish(self, entry: LogEntry) -> int:
        return self.broadcast(NEW_LOG_ENTRY, entry.to_dict())

    def broadcast(self, event: str, payload: Any) -> int:
        """Deliver to every subscriber. Returns how many received it."""
        with self._lock:
            subscribers = list(self._subscribers.values())

        delivered = 0
        for sub in subscribers:
            if sub.deliver((event, payload), self._publish_timeout):
                delivered += 1
            else:
                logger.warning("Subscriber %d is not keeping up, dropping it", sub.id)
                sub.dropped = True
                self.unsubscribe(sub)
        return delivered

    def close_all(self) -> None:
        with self._lock:
            subscribers = list(self._subscribers.values())
            self._subscribers.clear()
        for sub in subscribers:
            sub.close()
