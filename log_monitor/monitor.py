"""LogMonitor — owns the store, hub and watcher and runs the ingest path."""

import logging
import os
import threading
import time

from log_monitor.classifier import classify
from log_monitor.config import Config
from log_monitor.hub import FILE_ADDED, FILE_REMOVED, SubscriptionHub
from log_monitor.models import LogEntry, WatchedFile
from log_monitor.query import QueryEngine
from log_monitor.stats import compute_stats
from log_monitor.store import EntryStore
from log_monitor.watcher import DirectoryWatcher

logger = logging.getLogger(__name__)


class LogMonitor:
    """Single context object created at process start and torn down on shutdown.

    Data flow: watcher → tailer → ``ingest_line`` → classify → store → hub.
    """

    def __init__(self, config: Config):
        self.config = config
        self.store = EntryStore(max_entries=config.max_entries)
        self.query_engine = QueryEngine(self.store, max_page_size=config.max_page_size)
        self.hub = SubscriptionHub(
            self.snapshot,
            snapshot_size=config.snapshot_size,
            queue_size=config.subscriber_queue_size,
            publish_timeout=config.publish_timeout,
        )
        self.watcher = DirectoryWatcher(
            config.log_dir,
            self.ingest_line,
            file_pattern=config.file_pattern,
            poll_interval=config.poll_interval,
            watch_mode=config.watch_mode,
            on_file_added=self._file_added,
            on_file_removed=self._file_removed,
            on_tail_error=self._tail_error,
        )
        self._ingest_lock = threading.Lock()
        self._started_at = time.monotonic()
        self._running = False

    @property
    def uptime(self) -> float:
        return time.monotonic() - self._started_at

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        logger.info("Starting log monitor on %s (pattern=%s)", self.watcher.log_dir, self.config.file_pattern)
        self._started_at = time.monotonic()
        self.watcher.start()
        self._running = True

    def stop(self) -> None:
        """Stop all tailers and the observer, then release every subscriber."""
        logger.info("Shutting down log monitor...")
        self._running = False
        self.watcher.stop()
        self.hub.close_all()
        logger.info("Log monitor stopped.")

    def ingest_line(self, line: str, path: str) -> LogEntry:
        """Classify one raw line, store it, then publish it.

        Append and publish happen under one lock so every subscriber sees
        entries in store order, and a pushed entry is always queryable.
        """
        filename = os.path.basename(path)
        entry = classify(line, filename)
        with self._ingest_lock:
            self.store.append(entry)
            self.hub.publish(entry)
        if logger.isEnabledFor(logging.DEBUG):
            preview = entry.content[:100] + ("..." if len(entry.content) > 100 else "")
            logger.debug("[%s] New log entry: %s", filename, preview)
        return entry

    def files(self) -> list[WatchedFile]:
        return self.watcher.files()

    def stats(self) -> dict:
        return compute_stats(self.store.snapshot(), self.files(), self.hub.subscriber_count)

    def snapshot(self, count: int) -> dict:
        """Initial data for a new subscriber: files, recent entries, summary."""
        files = self.files()
        return {
            "files": [f.to_dict() for f in files],
            "entries": [e.to_dict() for e in self.store.recent(count)],
            "stats": {
                "totalFiles": len(files),
                "totalEntries": len(self.store),
                "connectedClients": self.hub.subscriber_count,
            },
        }

    def _file_added(self, watched: WatchedFile) -> None:
        self.hub.broadcast(
            FILE_ADDED, {"filename": watched.name, "path": watched.path, "isActive": watched.is_active}
        )

    def _file_removed(self, watched: WatchedFile) -> None:
        self.hub.broadcast(FILE_REMOVED, {"filename": watched.name})

    def _tail_error(self, path: str, error: Exception) -> None:
        logger.error("Error tailing file %s: %s", path, error)
