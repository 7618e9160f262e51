"""Thread-safe bounded entry store, newest entry first."""

import collections
import itertools
import threading
from typing import Callable

from log_monitor.models import LogEntry


class EntryStore:
    """In-memory window over the most recent entries, backed by a capped deque.

    Entries are pushed onto the left end, so index 0 is always the newest.
    Once ``max_entries`` is reached the deque drops the oldest entry off the
    right end in the same O(1) operation, so readers never observe the store
    above capacity.
    """

    def __init__(self, max_entries: int = 1000):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._entries: collections.deque[LogEntry] = collections.deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self._total_appended = 0

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen

    @property
    def total_appended(self) -> int:
        """Number of entries ever appended, including evicted ones."""
        return self._total_appended

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.appendleft(entry)
            self._total_appended += 1

    def page(self, offset: int = 0, limit: int = 50) -> list[LogEntry]:
        """Return up to ``limit`` entries starting at ``offset``; clamps, never raises."""
        offset = max(0, int(offset))
        limit = max(0, int(limit))
        with self._lock:
            if offset >= len(self._entries) or limit == 0:
                return []
            return list(itertools.islice(self._entries, offset, offset + limit))

    def recent(self, count: int = 50) -> list[LogEntry]:
        return self.page(0, count)

    def snapshot(self) -> list[LogEntry]:
        with self._lock:
            return list(self._entries)

    def filter(self, predicate: Callable[[LogEntry], bool]) -> list[LogEntry]:
        """Entries matching ``predicate``, in store order.

        The predicate runs against a snapshot, outside the lock.
        """
        return [entry for entry in self.snapshot() if predicate(entry)]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._total_appended = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
