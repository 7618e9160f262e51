"""Per-file tailer: follows appended bytes and emits complete lines."""

import enum
import logging
import os
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class TailState(enum.Enum):
    IDLE = "idle"
    TAILING = "tailing"
    STOPPED = "stopped"


class FileTailer:
    """Follows one file from its end and calls ``on_line`` for each new line.

    Handles:
    - Partial trailing lines (buffered until the terminator arrives)
    - Truncation / rotation (file shrinks → reopen and restart from offset 0)
    - Read failures (reported through ``on_error``, then the tailer stops)

    A rotation that races with a write inside one poll interval can emit some
    lines twice. That is accepted: the shrink check only sees sizes, not
    content.
    """

    def __init__(
        self,
        path: str,
        on_line: Callable[[str, str], None],
        on_error: Callable[[str, Exception], None] | None = None,
        poll_interval: float = 0.5,
    ):
        self._path = path
        self._on_line = on_line
        self._on_error = on_error
        self._poll_interval = poll_interval

        self._state = TailState.IDLE
        self._file = None
        self._offset = 0
        self._partial = b""
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def state(self) -> TailState:
        return self._state

    @property
    def offset(self) -> int:
        return self._offset

    def start(self, spawn_thread: bool = True) -> None:
        """Open the file at EOF and begin tailing. No-op unless idle."""
        with self._lock:
            if self._state is not TailState.IDLE:
                return
            try:
                self._open(seek_end=True)
            except OSError as e:
                self._halt()
                error = e
            else:
                self._state = TailState.TAILING
                error = None

        if error is not None:
            self._report(error)
            return

        logger.info("Started tailing: %s (offset=%d)", self._path, self._offset)
        if spawn_thread:
            self._thread = threading.Thread(
                target=self._run, name=f"tail:{os.path.basename(self._path)}", daemon=True,
            )
            self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop tailing and release the handle. Idempotent."""
        with self._lock:
            if self._state is TailState.STOPPED:
                return
            self._state = TailState.STOPPED
            self._stop_event.set()
            self._close()

        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        logger.info("Stopped tailing: %s", self._path)

    def poll_once(self) -> int:
        """Read any newly appended bytes and emit complete lines. Returns lines emitted."""
        with self._lock:
            if self._state is not TailState.TAILING:
                return 0
            try:
                lines = self._read_new_lines()
                error = None
            except OSError as e:
                self._halt()
                lines, error = [], e

        if error is not None:
            self._report(error)
            return 0

        # Callbacks run outside the lock so stop() is never blocked by a slow consumer.
        for line in lines:
            self._on_line(line, self._path)
        return len(lines)

    def _run(self) -> None:
        while not self._stop_event.wait(self._poll_interval):
            try:
                self.poll_once()
            except Exception:
                logger.exception("Unexpected error while tailing %s", self._path)
            if self._state is not TailState.TAILING:
                break

    def _open(self, seek_end: bool) -> None:
        self._close()
        self._file = open(self._path, "rb")
        if seek_end:
            self._file.seek(0, os.SEEK_END)
        self._offset = self._file.tell()
        self._partial = b""

    def _close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def _read_new_lines(self) -> list[str]:
        """Must be called with self._lock held."""
        size = os.stat(self._path).st_size
        if size < self._offset:
            logger.info("File truncation detected for %s (size=%d < offset=%d)", self._path, size, self._offset)
            self._open(seek_end=False)
        if size == self._offset:
            return []

        self._file.seek(self._offset)
        data = self._file.read()
        self._offset = self._file.tell()
        if not data:
            return []

        data = self._partial + data
        chunks = data.split(b"\n")
        # Last chunk is empty when data ends with a terminator, otherwise a partial line.
        self._partial = chunks.pop()
        return [chunk.decode("utf-8", errors="replace") for chunk in chunks]

    def _halt(self) -> None:
        """Must be called with self._lock held."""
        self._state = TailState.STOPPED
        self._stop_event.set()
        self._close()

    def _report(self, error: Exception) -> None:
        logger.warning("Tailing halted for %s: %s", self._path, error)
        if self._on_error:
            self._on_error(self._path, error)
