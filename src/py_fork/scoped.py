"""Scoped execution — replay one ancestor path, one process per step.

Selecting a process and pressing "run until here" shows that a child
only runs after every one of its ancestors has.  The controller takes
the chain of pids from the top of the tree down to the selected
process, freezes it, and then hands out one process per ``step()``.

The path is computed once, at ``start()``.  If the tree changes while a
replay is in progress the path is not recomputed, so a later step may
return a process that has since exited.  Callers who need a fresh path
start again.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from py_fork.process.node import ProcessNode
    from py_fork.process.tree import ProcessTree


class ExecutionMode(StrEnum):
    """Whether execution is bounded by a selected process."""

    FULL = "full"
    UNTIL_SELECTED = "until_selected"


class ScopedExecution:
    """A restartable cursor over a frozen root-to-target path."""

    def __init__(self, tree: ProcessTree) -> None:
        """Create an idle controller reading from *tree*."""
        self._tree = tree
        self._path: list[int] = []
        self._cursor = 0
        self._executed: list[int] = []
        self._current_pid: int | None = None
        self._boundary_pid: int | None = None
        self._logical_time = 0
        self._complete = False

    @property
    def path(self) -> list[int]:
        """Return the frozen execution path (root first)."""
        return list(self._path)

    @property
    def cursor(self) -> int:
        """Return the index of the next process to execute."""
        return self._cursor

    @property
    def executed(self) -> list[int]:
        """Return executed pids in execution order."""
        return list(self._executed)

    @property
    def current_pid(self) -> int | None:
        """Return the pid executed by the most recent step."""
        return self._current_pid

    @property
    def boundary_pid(self) -> int | None:
        """Return the selected target pid, or None when idle."""
        return self._boundary_pid

    @property
    def logical_time(self) -> int:
        """Return the number of steps taken since the last start."""
        return self._logical_time

    @property
    def complete(self) -> bool:
        """Return True once the target has executed."""
        return self._complete

    @property
    def active(self) -> bool:
        """Return True while a replay is started and not yet complete."""
        return self._boundary_pid is not None and not self._complete

    @property
    def mode(self) -> ExecutionMode:
        """Return UNTIL_SELECTED while a target is set, else FULL."""
        if self._boundary_pid is None:
            return ExecutionMode.FULL
        return ExecutionMode.UNTIL_SELECTED

    def start(self, target_pid: int) -> list[int]:
        """Freeze the path to *target_pid* and rewind the cursor.

        Returns:
            The frozen path, or ``[]`` if the pid is unknown (in which
            case the controller stays idle).

        """
        path = self._tree.ancestor_chain(target_pid)
        self.reset()
        if not path:
            return []
        self._path = path
        self._boundary_pid = target_pid
        return list(path)

    def step(self) -> ProcessNode | None:
        """Execute the next process on the path.

        Returns:
            The process now executing, or None if the replay is idle,
            already complete, or the process no longer exists.

        """
        if not self.active or self._cursor >= len(self._path):
            return None
        pid = self._path[self._cursor]
        self._cursor += 1
        self._current_pid = pid
        self._executed.append(pid)
        self._logical_time += 1
        if self._cursor == len(self._path):
            self._complete = True
        return self._tree.find(pid)

    def contains(self, pid: int) -> bool:
        """Return True if *pid* lies on the frozen path."""
        return pid in self._path

    def reset(self) -> None:
        """Clear the path, cursor, executed set, boundary, and time."""
        self._path = []
        self._cursor = 0
        self._executed = []
        self._current_pid = None
        self._boundary_pid = None
        self._logical_time = 0
        self._complete = False
