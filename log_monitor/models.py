"""Log entry and watched file records shared across the monitor."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    DEBUG = "debug"


@dataclass(frozen=True)
class LogEntry:
    id: str
    timestamp: datetime  # capture time, UTC
    filename: str        # basename of the source file
    content: str         # stripped line text
    severity: Severity = Severity.INFO
    byte_size: int = 0   # UTF-8 length of the raw line

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "filename": self.filename,
            "content": self.content,
            "level": self.severity.value,
            "size": self.byte_size,
        }


@dataclass
class WatchedFile:
    name: str
    path: str
    size: int
    last_modified: datetime
    is_active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "size": self.size,
            "modified": self.last_modified.isoformat(),
            "isActive": self.is_active,
        }
