"""Directory watcher — discovers log files and drives one FileTailer per file."""

import dataclasses
import fnmatch
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Callable

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from log_monitor.models import WatchedFile
from log_monitor.tailer import FileTailer, TailState

logger = logging.getLogger(__name__)


def create_observer(mode: str, poll_interval: float = 0.5):
    """Return an unstarted watchdog observer for ``native`` or ``polling`` mode."""
    if mode == "native":
        return Observer()
    if mode == "polling":
        return PollingObserver(timeout=poll_interval)
    raise ValueError(f"Unknown observer mode: {mode!r}")


class DirectoryWatcher(FileSystemEventHandler):
    """Watches one directory (non-recursive) for files matching ``file_pattern``.

    The pattern is a glob and may contain strftime codes, e.g.
    ``app-%Y%m%d.log``, expanded against today's date on every match.

    ``watch_mode`` selects the observer backend: ``native`` (inotify and
    friends), ``polling`` (periodic stat, for network mounts), or ``auto``,
    which tries native first and falls back to polling if it cannot start.
    """

    def __init__(
        self,
        log_dir: str,
        on_line: Callable[[str, str], None],
        file_pattern: str = "*.log",
        poll_interval: float = 0.5,
        watch_mode: str = "auto",
        on_file_added: Callable[[WatchedFile], None] | None = None,
        on_file_removed: Callable[[WatchedFile], None] | None = None,
        on_tail_error: Callable[[str, Exception], None] | None = None,
    ):
        super().__init__()
        self._log_dir = os.path.abspath(log_dir)
        self._on_line = on_line
        self._file_pattern = file_pattern
        self._poll_interval = poll_interval
        self._watch_mode = watch_mode
        self._on_file_added = on_file_added
        self._on_file_removed = on_file_removed
        self._on_tail_error = on_tail_error

        self._files: dict[str, WatchedFile] = {}
        self._tailers: dict[str, FileTailer] = {}
        self._lock = threading.RLock()
        self._observer = None
        self._watch = None
        self._dir_watched = False

    @property
    def log_dir(self) -> str:
        return self._log_dir

    @property
    def observer_kind(self) -> str | None:
        """``native`` or ``polling`` once started, else None."""
        if self._observer is None:
            return None
        return "polling" if isinstance(self._observer, PollingObserver) else "native"

    @property
    def watching(self) -> str | None:
        """Directory currently scheduled on the observer."""
        return self._watch.path if self._watch is not None else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Scan existing files, then start the observer."""
        self.initial_scan()
        self._start_observer()

    def stop(self) -> None:
        """Stop the observer and every tailer."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            self._watch = None
        with self._lock:
            tailers = list(self._tailers.values())
            self._tailers.clear()
        for tailer in tailers:
            tailer.stop()

    def initial_scan(self, notify: bool = False) -> int:
        """Register and start tailing every matching file already present."""
        if not os.path.isdir(self._log_dir):
            logger.warning("Log directory %s does not exist yet, waiting for it", self._log_dir)
            return 0
        logger.info("Scanning log directory: %s", self._log_dir)
        found = 0
        for name in sorted(os.listdir(self._log_dir)):
            path = os.path.join(self._log_dir, name)
            if os.path.isfile(path) and self.matches(path):
                if self.add_file(path, notify=notify):
                    found += 1
        logger.info("Found %d log files", found)
        return found

    def _start_observer(self):
        modes = ["native", "polling"] if self._watch_mode == "auto" else [self._watch_mode]
        last_error = None
        for mode in modes:
            observer = create_observer(mode, self._poll_interval)
            try:
                self._schedule(observer)
                self._observer = observer
                observer.start()
            except OSError as e:
                self._observer = None
                logger.warning("Could not start %s observer: %s", mode, e)
                last_error = e
                continue
            logger.info("Watching %s with %s observer", self._watch_target(), mode)
            return observer
        raise last_error

    def _watch_target(self) -> str:
        """The log dir, or its nearest existing ancestor while it does not exist yet."""
        target = self._log_dir
        while not os.path.isdir(target):
            parent = os.path.dirname(target)
            if parent == target:
                break
            target = parent
        return target

    def _schedule(self, observer) -> None:
        target = self._watch_target()
        self._watch = observer.schedule(self, target, recursive=False)
        self._dir_watched = target == self._log_dir

    # ------------------------------------------------------------------
    # File registry
    # ------------------------------------------------------------------

    def matches(self, path: str) -> bool:
        if os.path.dirname(os.path.abspath(path)) != self._log_dir:
            return False
        pattern = datetime.now().strftime(self._file_pattern)
        return fnmatch.fnmatch(os.path.basename(path), pattern)

    def files(self) -> list[WatchedFile]:
        with self._lock:
            return [dataclasses.replace(f) for f in self._files.values()]

    def tailer_for(self, path: str) -> FileTailer | None:
        with self._lock:
            return self._tailers.get(os.path.abspath(path))

    def add_file(self, path: str, notify: bool = True, spawn_thread: bool = True) -> bool:
        """Register a file and start tailing it. Returns False if it vanished."""
        path = os.path.abspath(path)
        watched = self._stat(path)
        if watched is None:
            return False

        with self._lock:
            is_new = path not in self._files
            self._files[path] = watched
            tailer = self._tailers.get(path)
            if tailer is None or tailer.state is TailState.STOPPED:
                tailer = FileTailer(path, self._on_line, self._handle_tail_error, self._poll_interval)
                self._tailers[path] = tailer
                tailer.start(spawn_thread=spawn_thread)

        if is_new:
            logger.info("Log file added: %s", watched.name)
            if notify and self._on_file_added:
                self._on_file_added(dataclasses.replace(watched))
        return True

    def remove_file(self, path: str) -> bool:
        path = os.path.abspath(path)
        with self._lock:
            tailer = self._tailers.pop(path, None)
            watched = self._files.pop(path, None)
        if tailer:
            tailer.stop()
        if watched is None:
            return False

        logger.info("Log file removed: %s", watched.name)
        watched.is_active = False
        if self._on_file_removed:
            self._on_file_removed(watched)
        return True

    def refresh_file(self, path: str) -> None:
        """Update size/mtime on write; restart a tailer that had halted."""
        path = os.path.abspath(path)
        with self._lock:
            known = path in self._files
            tailer = self._tailers.get(path)
        if not known or tailer is None or tailer.state is TailState.STOPPED:
            self.add_file(path)
            return

        watched = self._stat(path)
        if watched is None:
            return
        with self._lock:
            if path in self._files:
                self._files[path] = watched

    @staticmethod
    def _stat(path: str) -> WatchedFile | None:
        try:
            st = os.stat(path)
        except OSError as e:
            logger.warning("Cannot stat %s: %s", path, e)
            return None
        return WatchedFile(
            name=os.path.basename(path),
            path=path,
            size=st.st_size,
            last_modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    def _handle_tail_error(self, path: str, error: Exception) -> None:
        with self._lock:
            watched = self._files.get(path)
            if watched is not None:
                watched.is_active = False
        if self._on_tail_error:
            self._on_tail_error(path, error)

    # ------------------------------------------------------------------
    # watchdog callbacks
    # ------------------------------------------------------------------

    def dispatch(self, event):
        # Runs on the observer thread; one bad event must not kill it.
        try:
            super().dispatch(event)
        except Exception:
            logger.exception("Error handling %s for %s", event.event_type, event.src_path)

    def on_created(self, event):
        if event.is_directory:
            if self._on_watch_path(event.src_path):
                self._reschedule()
            return
        if self.matches(event.src_path):
            self.add_file(event.src_path)

    def on_deleted(self, event):
        if event.is_directory:
            if self._on_watch_path(event.src_path):
                logger.warning("Log directory %s was removed, waiting for it", self._log_dir)
                for path in [f.path for f in self.files()]:
                    self.remove_file(path)
                self._reschedule(force=True)
            return
        if self._tracks(event.src_path):
            self.remove_file(event.src_path)

    def on_moved(self, event):
        if event.is_directory:
            if self._on_watch_path(event.dest_path):
                self._reschedule()
            return
        if self._tracks(event.src_path):
            self.remove_file(event.src_path)
        if self.matches(event.dest_path):
            self.add_file(event.dest_path)

    def on_modified(self, event):
        if not event.is_directory and self._tracks(event.src_path):
            self.refresh_file(event.src_path)

    def _tracks(self, path: str) -> bool:
        """Known files stay tracked after a dated pattern rolls over."""
        with self._lock:
            if os.path.abspath(path) in self._files:
                return True
        return self.matches(path)

    def _on_watch_path(self, path: str) -> bool:
        """True for the log dir itself or any of its ancestors."""
        path = os.path.abspath(path)
        return path == self._log_dir or self._log_dir.startswith(path.rstrip(os.sep) + os.sep)

    def _reschedule(self, force: bool = False) -> None:
        """Move the watch to the nearest existing directory on the way to the log dir."""
        if self._observer is None:
            return
        target = self._watch_target()
        if not force and self._watch is not None and self._watch.path == target:
            return
        if self._watch is not None:
            self._observer.unschedule(self._watch)
            self._watch = None
        self._schedule(self._observer)
        logger.info("Watching %s", target)
        if self._dir_watched:
            logger.info("Log directory %s appeared", self._log_dir)
            self.initial_scan(notify=True)
