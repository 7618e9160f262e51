"""Filtered, paginated reads over the entry store."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Mapping

from log_monitor.models import LogEntry, Severity
from log_monitor.store import EntryStore


@dataclass(frozen=True)
class LogFilters:
    filename: str | None = None
    search: str | None = None
    since: datetime | None = None
    level: Severity | None = None

    def to_dict(self) -> dict:
        return {
            "level": self.level.value if self.level else None,
            "filename": self.filename,
            "search": self.search,
            "since": self.since.isoformat() if self.since else None,
        }


@dataclass
class QueryResult:
    entries: list[LogEntry] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 50

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def filter_by_filename(entry: LogEntry, filename: str) -> bool:
    return entry.filename == filename


def filter_by_search(entry: LogEntry, keyword: str) -> bool:
    """True if keyword appears in the content (case-insensitive)."""
    return keyword.lower() in entry.content.lower()


def filter_by_since(entry: LogEntry, since: datetime) -> bool:
    """True if the entry was captured strictly after ``since``."""
    return entry.timestamp > since


def filter_by_level(entry: LogEntry, level: Severity) -> bool:
    return entry.severity is level


def build_filter_chain(filters: LogFilters) -> Callable[[LogEntry], bool]:
    """AND together every filter that is set. No filters → match everything."""
    predicates = []

    if filters.filename:
        predicates.append(lambda e, f=filters.filename: filter_by_filename(e, f))
    if filters.search:
        predicates.append(lambda e, k=filters.search: filter_by_search(e, k))
    if filters.since:
        since = _as_utc(filters.since)
        predicates.append(lambda e, s=since: filter_by_since(e, s))
    if filters.level:
        predicates.append(lambda e, l=filters.level: filter_by_level(e, l))

    if not predicates:
        return lambda entry: True

    def combined(entry: LogEntry) -> bool:
        return all(p(entry) for p in predicates)

    return combined


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_since(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; a trailing ``Z`` is accepted."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(text))
    except ValueError:
        raise ValueError(f"Invalid 'since' timestamp: {value!r}") from None


def parse_filters(args: Mapping[str, str]) -> LogFilters:
    """Build LogFilters from request query args; blank values mean no constraint."""
    level = args.get("level") or None
    if level is not None:
        try:
            level = Severity(level.lower())
        except ValueError:
            raise ValueError(f"Invalid 'level': {args.get('level')!r}") from None

    since = args.get("since") or None
    return LogFilters(
        filename=args.get("filename") or None,
        search=args.get("search") or None,
        since=parse_since(since) if since else None,
        level=level,
    )


class QueryEngine:
    """Read-only view over an EntryStore."""

    def __init__(self, store: EntryStore, max_page_size: int = 1000):
        self._store = store
        self._max_page_size = max_page_size

    def query(self, filters: LogFilters | None = None, page: int = 1, limit: int = 50) -> QueryResult:
        """Filter, then slice the 1-indexed ``page`` of ``limit`` entries."""
        page = max(1, int(page))
        limit = min(max(1, int(limit)), self._max_page_size)

        matched = self._store.filter(build_filter_chain(filters or LogFilters()))
        start = (page - 1) * limit
        return QueryResult(
            entries=matched[start:start + limit],
            total=len(matched),
            page=page,
            limit=limit,
        )
