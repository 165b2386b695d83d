"""Audit log of process lifecycle events.

Every fork, wait, exit, and error the engine handles is written here as
a structured entry.  The log is the engine's only output channel for
problems: a failed operation never raises to the caller, it appends an
``error`` or ``warning`` entry instead, and the viewer shows the log.

- **LogType** — the four entry categories shown by viewers.
- **LogEntry** — a single immutable record.
- **AuditLog** — an append-only list with filtering and clearing.

Design choices:
    - **StrEnum for types** so entries serialise to JSON as plain text.
    - **Frozen dataclass for entries** — once written, a record never
      changes.
    - **Injected id and clock sources** — the engine owns its id
      generator, so the log borrows it rather than counting globally.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from itertools import count
from typing import Any


class LogType(StrEnum):
    """Category of a log entry."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

    @property
    def severity(self) -> int:
        """Return a rank for minimum-severity filtering.

        ``success`` ranks with ``info``: both describe normal progress.
        """
        return _SEVERITY[self]


_SEVERITY: dict[LogType, int] = {
    LogType.INFO: 0,
    LogType.SUCCESS: 0,
    LogType.WARNING: 1,
    LogType.ERROR: 2,
}


@dataclass(frozen=True)
class LogEntry:
    """A single structured audit record.

    Attributes:
        id: Unique id within the session (``log-<n>``).
        timestamp: Wall-clock seconds when the entry was written.
        type: The entry category.
        message: Human-readable description of the event.
        pid: The process the event concerns, if any.

    """

    id: str
    timestamp: float
    type: LogType
    message: str
    pid: int | None = None

    def __str__(self) -> str:
        """Format as ``[TYPE] message (pid N)``."""
        suffix = f" (pid {self.pid})" if self.pid is not None else ""
        return f"[{self.type.name}] {self.message}{suffix}"

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly mapping of this entry."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": str(self.type),
            "message": self.message,
            "pid": self.pid,
        }


def _default_ids() -> Callable[[], str]:
    counter = count(start=1)
    return lambda: f"log-{next(counter)}"


class AuditLog:
    """Append-only buffer of ``LogEntry`` records."""

    def __init__(
        self,
        *,
        next_id: Callable[[], str] | None = None,
        timestamp: Callable[[], float] = time.time,
    ) -> None:
        """Create an empty log.

        Args:
            next_id: Source of entry ids.  Defaults to a private counter.
            timestamp: Source of entry timestamps.

        """
        self._next_id = next_id if next_id is not None else _default_ids()
        self._timestamp = timestamp
        self._entries: list[LogEntry] = []

    @property
    def entries(self) -> list[LogEntry]:
        """Return all entries in the order they were written."""
        return list(self._entries)

    def __len__(self) -> int:
        """Return the number of entries."""
        return len(self._entries)

    def append(self, type_: LogType, message: str, *, pid: int | None = None) -> LogEntry:
        """Write a new entry and return it.

        Args:
            type_: Category of the event.
            message: Human-readable description.
            pid: The process the event concerns.

        """
        entry = LogEntry(
            id=self._next_id(),
            timestamp=self._timestamp(),
            type=type_,
            message=message,
            pid=pid,
        )
        self._entries.append(entry)
        return entry

    def info(self, message: str, *, pid: int | None = None) -> LogEntry:
        """Write an ``info`` entry."""
        return self.append(LogType.INFO, message, pid=pid)

    def success(self, message: str, *, pid: int | None = None) -> LogEntry:
        """Write a ``success`` entry."""
        return self.append(LogType.SUCCESS, message, pid=pid)

    def warning(self, message: str, *, pid: int | None = None) -> LogEntry:
        """Write a ``warning`` entry."""
        return self.append(LogType.WARNING, message, pid=pid)

    def error(self, message: str, *, pid: int | None = None) -> LogEntry:
        """Write an ``error`` entry."""
        return self.append(LogType.ERROR, message, pid=pid)

    def filter(
        self,
        *,
        type_: LogType | None = None,
        min_type: LogType | None = None,
        pid: int | None = None,
    ) -> list[LogEntry]:
        """Return entries matching every given criterion.

        Args:
            type_: If set, only entries of exactly this category.
            min_type: If set, only entries at or above this severity.
            pid: If set, only entries about this process.

        """
        result = self._entries
        if type_ is not None:
            result = [e for e in result if e.type is type_]
        if min_type is not None:
            result = [e for e in result if e.type.severity >= min_type.severity]
        if pid is not None:
            result = [e for e in result if e.pid == pid]
        return result if result is not self._entries else list(result)

    def tail(self, n: int) -> list[LogEntry]:
        """Return the last *n* entries."""
        if n <= 0:
            return []
        return self._entries[-n:]

    def clear(self) -> None:
        """Remove all entries."""
        self._entries.clear()
