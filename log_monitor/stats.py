"""Statistics — per-file and per-severity counts over the buffered entries."""

from collections import Counter
from typing import Iterable

from log_monitor.models import LogEntry, Severity, WatchedFile


def compute_stats(entries: Iterable[LogEntry], files: Iterable[WatchedFile], connected_clients: int = 0) -> dict:
    """Aggregate entry counts by file and severity.

    Every watched file and every severity appears in the result, with zero
    counts where nothing has been buffered yet.
    """
    file_counter = Counter()
    level_counter = Counter()
    total = 0

    for entry in entries:
        total += 1
        file_counter[entry.filename] += 1
        level_counter[entry.severity] += 1

    files = list(files)
    return {
        "totalFiles": len(files),
        "totalEntries": total,
        "connectedClients": connected_clients,
        "fileStats": {
            f.name: {
                "entries": file_counter[f.name],
                "size": f.size,
                "lastModified": f.last_modified.isoformat(),
            }
            for f in files
        },
        "levelStats": {severity.value: level_counter[severity] for severity in Severity},
    }
