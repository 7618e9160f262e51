"""Line classifier — turns a raw tailed line into a LogEntry with a severity.

Severity is a case-insensitive substring match, checked in priority order:
  1. "error" / "err"     → error
  2. "warn" / "warning"  → warning
  3. "info"              → info
  4. "debug"             → debug
  5. anything else       → info
"""

import time
import uuid
from datetime import datetime, timezone

from log_monitor.models import LogEntry, Severity

_SEVERITY_RULES = (
    (("error", "err"), Severity.ERROR),
    (("warn", "warning"), Severity.WARNING),
    (("info",), Severity.INFO),
    (("debug",), Severity.DEBUG),
)


def detect_severity(line: str) -> Severity:
    """Return the first severity whose keyword appears in the line."""
    lowered = line.strip().lower()
    for keywords, severity in _SEVERITY_RULES:
        if any(k in lowered for k in keywords):
            return severity
    return Severity.INFO


def _new_entry_id() -> str:
    """Hex capture time in nanoseconds plus a random suffix, sortable by time."""
    return f"{time.time_ns():x}-{uuid.uuid4().hex[:8]}"


def classify(raw_line: str, filename: str) -> LogEntry:
    """Build a LogEntry from one raw line. Never fails, even on empty input."""
    return LogEntry(
        id=_new_entry_id(),
        timestamp=datetime.now(timezone.utc),
        filename=filename,
        content=raw_line.strip(),
        severity=detect_severity(raw_line),
        byte_size=len(raw_line.encode("utf-8", errors="replace")),
    )
