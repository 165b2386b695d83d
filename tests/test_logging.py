"""Tests for the audit log.

Every lifecycle operation writes a structured entry.  The log is
append-only and can be filtered by type, minimum severity, and pid.
"""

import pytest

from py_fork.ids import IdGenerator
from py_fork.logging import AuditLog, LogEntry, LogType

PID = 1001
OTHER_PID = 1002
FIXED_TIME = 123.5


def _log() -> AuditLog:
    """Create a log with a fixed clock."""
    return AuditLog(timestamp=lambda: FIXED_TIME)


class TestLogType:
    """Verify entry categories."""

    def test_values_are_text(self) -> None:
        """Types serialise as lowercase strings."""
        assert [str(t) for t in LogType] == ["info", "success", "warning", "error"]

    def test_success_ranks_with_info(self) -> None:
        """Success is normal progress, not a problem."""
        assert LogType.SUCCESS.severity == LogType.INFO.severity
        assert LogType.INFO.severity < LogType.WARNING.severity < LogType.ERROR.severity


class TestLogEntry:
    """Verify a single record."""

    def test_entry_is_frozen(self) -> None:
        """Records cannot be edited after writing."""
        entry = LogEntry(id="log-1", timestamp=0.0, type=LogType.INFO, message="hi")
        with pytest.raises(AttributeError):
            entry.message = "changed"  # type: ignore[misc]

    def test_str_with_pid(self) -> None:
        """The display form names the type and pid."""
        entry = LogEntry(id="log-1", timestamp=0.0, type=LogType.ERROR, message="boom", pid=PID)
        assert str(entry) == f"[ERROR] boom (pid {PID})"

    def test_str_without_pid(self) -> None:
        """No pid suffix when the entry is not about a process."""
        entry = LogEntry(id="log-1", timestamp=0.0, type=LogType.INFO, message="hello")
        assert str(entry) == "[INFO] hello"

    def test_to_dict(self) -> None:
        """Entries serialise to plain JSON types."""
        entry = LogEntry(id="log-7", timestamp=1.0, type=LogType.WARNING, message="m", pid=PID)
        assert entry.to_dict() == {
            "id": "log-7",
            "timestamp": 1.0,
            "type": "warning",
            "message": "m",
            "pid": PID,
        }


class TestAuditLog:
    """Verify appending and filtering."""

    def test_append_assigns_ids_and_time(self) -> None:
        """Ids count up; timestamps come from the injected clock."""
        log = _log()
        first = log.info("one")
        second = log.success("two")
        assert (first.id, second.id) == ("log-1", "log-2")
        assert first.timestamp == FIXED_TIME
        assert len(log) == 2

    def test_ids_can_come_from_generator(self) -> None:
        """The engine shares its id generator with the log."""
        ids = IdGenerator()
        log = AuditLog(next_id=ids.next_log_id)
        log.info("one")
        assert ids.next_log_id() == "log-2"

    def test_entries_returns_copy(self) -> None:
        """The log is append-only from the outside."""
        log = _log()
        log.info("one")
        log.entries.clear()
        assert len(log) == 1

    def test_filter_by_exact_type(self) -> None:
        """Only entries of one category."""
        log = _log()
        log.info("a")
        log.warning("b")
        log.error("c")
        assert [e.message for e in log.filter(type_=LogType.WARNING)] == ["b"]

    def test_filter_by_minimum_severity(self) -> None:
        """Warnings and above."""
        log = _log()
        log.success("a")
        log.warning("b")
        log.error("c")
        assert [e.message for e in log.filter(min_type=LogType.WARNING)] == ["b", "c"]

    def test_filter_by_pid(self) -> None:
        """Only entries about one process."""
        log = _log()
        log.info("a", pid=PID)
        log.info("b", pid=OTHER_PID)
        assert [e.message for e in log.filter(pid=PID)] == ["a"]

    def test_filter_without_criteria_returns_copy(self) -> None:
        """An unfiltered result can be mutated safely."""
        log = _log()
        log.info("a")
        log.filter().clear()
        assert len(log) == 1

    def test_tail(self) -> None:
        """The newest n entries, oldest first."""
        log = _log()
        for message in ("a", "b", "c"):
            log.info(message)
        assert [e.message for e in log.tail(2)] == ["b", "c"]
        assert log.tail(0) == []

    def test_clear(self) -> None:
        """Clearing empties the log."""
        log = _log()
        log.info("a")
        log.clear()
        assert len(log) == 0
