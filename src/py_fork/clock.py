"""Logical clock and execution history.

The simulation has no real time.  A ``LogicalClock`` is an integer that
moves forward only when a driver says so: one auto-scheduler tick, or
one explicit ``tick()`` from a viewer.  Nothing inside the engine ever
advances it on its own.

``ExecutionHistory`` records what each process was doing between ticks
as a list of intervals.  An interval opens when something starts (a
process is created, or resumes) and closes when the process calls
``wait`` or ``exit``.  A Gantt-style viewer reads these intervals; the
engine itself never consults them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from py_fork.process.node import ProcessState


class LogicalClock:
    """An externally driven tick counter."""

    def __init__(self) -> None:
        """Create a clock at time 0."""
        self._time = 0

    @property
    def time(self) -> int:
        """Return the current logical time."""
        return self._time

    def tick(self) -> int:
        """Advance by one and return the new time."""
        self._time += 1
        return self._time

    def reset(self) -> None:
        """Return the clock to time 0."""
        self._time = 0


class ExecutionAction(StrEnum):
    """What a process did at the start (or end) of an interval."""

    FORK = "fork"
    WAIT = "wait"
    EXIT = "exit"
    RESUME = "resume"
    CREATED = "created"


# Actions that close a process's open interval rather than opening one.
_CLOSING_ACTIONS = frozenset({ExecutionAction.WAIT, ExecutionAction.EXIT})


@dataclass
class ExecutionEvent:
    """One interval in a process's execution history.

    Attributes:
        id: ``<pid>-<action>-<start_time>``.
        pid: The process.
        action: What opened the interval.
        start_time: Logical time the interval opened.
        end_time: Logical time it closed, or None while open.
        state: State during (or at the close of) the interval.
        parent_pid: The parent at the time, where relevant.

    """

    id: str
    pid: int
    action: ExecutionAction
    start_time: int
    state: ProcessState
    end_time: int | None = None
    parent_pid: int | None = None

    @property
    def is_open(self) -> bool:
        """Return True if the interval has not been closed yet."""
        return self.end_time is None

    def covers(self, time: int, *, now: int) -> bool:
        """Return True if *time* falls inside this interval.

        Open intervals extend up to *now*.
        """
        end = self.end_time if self.end_time is not None else now
        return self.start_time <= time <= end

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly mapping of this event."""
        return {
            "id": self.id,
            "pid": self.pid,
            "action": str(self.action),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "state": str(self.state),
            "parent_pid": self.parent_pid,
        }


class ExecutionHistory:
    """Append-only list of execution intervals, grouped by pid on demand."""

    def __init__(self) -> None:
        """Create an empty history."""
        self._events: list[ExecutionEvent] = []

    @property
    def events(self) -> list[ExecutionEvent]:
        """Return every interval in recording order."""
        return list(self._events)

    def __len__(self) -> int:
        """Return the number of intervals."""
        return len(self._events)

    def record(
        self,
        pid: int,
        action: ExecutionAction,
        state: ProcessState,
        *,
        time: int,
        parent_pid: int | None = None,
    ) -> ExecutionEvent:
        """Record that *pid* performed *action* at *time*.

        A ``wait`` or ``exit`` closes the process's open interval when
        there is one; with nothing open it is recorded as a zero-length
        interval.  Anything else starts a new open interval.

        Returns:
            The interval that was closed or added.

        """
        closing = action in _CLOSING_ACTIONS
        if closing:
            current = self._open_for(pid)
            if current is not None:
                current.end_time = time
                current.state = state
                return current
        event = ExecutionEvent(
            id=f"{pid}-{action}-{time}",
            pid=pid,
            action=action,
            start_time=time,
            state=state,
            end_time=time if closing else None,
            parent_pid=parent_pid,
        )
        self._events.append(event)
        return event

    def _open_for(self, pid: int) -> ExecutionEvent | None:
        return next((e for e in self._events if e.pid == pid and e.is_open), None)

    def for_pid(self, pid: int) -> list[ExecutionEvent]:
        """Return the intervals of one process."""
        return [e for e in self._events if e.pid == pid]

    def by_pid(self) -> dict[int, list[ExecutionEvent]]:
        """Return intervals grouped by pid, in first-seen order."""
        grouped: dict[int, list[ExecutionEvent]] = {}
        for event in self._events:
            grouped.setdefault(event.pid, []).append(event)
        return grouped

    def open_events(self) -> list[ExecutionEvent]:
        """Return the intervals that have not closed yet."""
        return [e for e in self._events if e.is_open]

    def state_at(self, pid: int, time: int, *, now: int) -> ProcessState | None:
        """Return the recorded state of *pid* at *time*, or None.

        When intervals overlap, the latest-recorded one wins.
        """
        state: ProcessState | None = None
        for event in self.for_pid(pid):
            if event.covers(time, now=now):
                state = event.state
        return state

    def clear(self) -> None:
        """Remove every interval."""
        self._events.clear()
