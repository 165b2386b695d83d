"""Process node — one entry in the simulated process tree.

A node records its pid, its parent's pid, its lifecycle state, and its
children in fork order.  State changes go through the transition
methods below, each of which checks the source state before moving, so
a terminated process can never be revived by accident.

State machine::

                 wait (active child)         exit (parent waiting / init)
    RUNNING ───────────────────────▶ WAITING          │
      │   ▲                             │            ▼
      │   └──── last child exits ───────┘       TERMINATED
      │                                              ▲
      ├── exit (parent running) ──▶ ZOMBIE ── reap ──┘
      │
      └── parent exits ──▶ ORPHAN  (re-parented to init, still runs)

ORPHAN behaves like RUNNING for fork, wait, and exit.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from py_fork.errors import InvalidStateTransition

INIT_PID = 1


class ProcessState(StrEnum):
    """Lifecycle states of a simulated process.

    - RUNNING: alive and schedulable.
    - WAITING: blocked in wait() until an active child exits.
    - ZOMBIE: exited, but the parent has not collected the status yet.
    - ORPHAN: alive, but its parent exited; adopted by init.
    - TERMINATED: exited and collected.  Nothing more can happen.
    """

    RUNNING = "running"
    WAITING = "waiting"
    ZOMBIE = "zombie"
    ORPHAN = "orphan"
    TERMINATED = "terminated"

    @property
    def is_active(self) -> bool:
        """Return True if a process in this state may fork, wait, or exit."""
        match self:
            case ProcessState.RUNNING | ProcessState.ORPHAN:
                return True
            case ProcessState.WAITING | ProcessState.ZOMBIE | ProcessState.TERMINATED:
                return False

    @property
    def is_terminal(self) -> bool:
        """Return True if the process has exited (zombie or terminated)."""
        match self:
            case ProcessState.ZOMBIE | ProcessState.TERMINATED:
                return True
            case ProcessState.RUNNING | ProcessState.WAITING | ProcessState.ORPHAN:
                return False


class ProcessNode:
    """A simulated process in the tree.

    Nodes are created by the tree store and mutated in place by the
    engine.  They are never deleted during a session; exited processes
    stay visible as zombies or terminated nodes until the tree is reset.
    """

    def __init__(
        self,
        *,
        pid: int,
        ppid: int,
        depth: int,
        fork_level: int = 0,
        created_at: float = 0.0,
        state: ProcessState = ProcessState.RUNNING,
    ) -> None:
        """Create a node.

        Args:
            pid: Unique process id.
            ppid: Pid of the structural parent (1 means init).
            depth: Distance from the simulation root.
            fork_level: Which fork-all call created this process.
            created_at: Creation timestamp, for display only.
            state: Initial state (RUNNING for every real process).

        """
        self._pid = pid
        self._ppid = ppid
        self._depth = depth
        self._fork_level = fork_level
        self._created_at = created_at
        self._state = state
        self._adopted = False
        self._children: list[ProcessNode] = []

    @property
    def id(self) -> str:
        """Return the opaque handle used by viewers (``process-<pid>``)."""
        return f"process-{self._pid}"

    @property
    def pid(self) -> int:
        """Return the process id."""
        return self._pid

    @property
    def ppid(self) -> int:
        """Return the parent's process id."""
        return self._ppid

    @property
    def state(self) -> ProcessState:
        """Return the current lifecycle state."""
        return self._state

    @property
    def depth(self) -> int:
        """Return the distance from the simulation root (root = 0)."""
        return self._depth

    @property
    def fork_level(self) -> int:
        """Return the fork-all round that created this process."""
        return self._fork_level

    @property
    def created_at(self) -> float:
        """Return the creation timestamp."""
        return self._created_at

    @property
    def adopted(self) -> bool:
        """Return True if init adopted this process after its parent exited."""
        return self._adopted

    @property
    def children(self) -> list[ProcessNode]:
        """Return the children in fork order."""
        return list(self._children)

    @property
    def is_init(self) -> bool:
        """Return True for the init sentinel."""
        return self._pid == INIT_PID

    def active_children(self) -> list[ProcessNode]:
        """Return children that are still running or orphaned."""
        return [c for c in self._children if c.state.is_active]

    def has_active_children(self) -> bool:
        """Return True if any child is still running or orphaned."""
        return any(c.state.is_active for c in self._children)

    def first_zombie_child(self) -> ProcessNode | None:
        """Return the earliest-forked zombie child, or None."""
        return next((c for c in self._children if c.state is ProcessState.ZOMBIE), None)

    # -- Structural updates (used by the tree store) ---------------------------

    def add_child(self, child: ProcessNode) -> None:
        """Append *child* to this node's children."""
        self._children.append(child)

    def remove_child(self, child: ProcessNode) -> None:
        """Detach *child* from this node's children."""
        self._children.remove(child)

    def set_depth(self, depth: int) -> None:
        """Move the node to a new depth (after adoption)."""
        self._depth = depth

    # -- State transitions -----------------------------------------------------

    def _require_active(self, action: str) -> None:
        if not self._state.is_active:
            msg = f"Cannot {action}: process {self._pid} is {self._state}"
            raise InvalidStateTransition(msg, pid=self._pid)

    def block(self) -> None:
        """Transition RUNNING/ORPHAN → WAITING (blocked in wait)."""
        self._require_active("wait")
        self._state = ProcessState.WAITING

    def unblock(self) -> None:
        """Transition WAITING → RUNNING (or ORPHAN if adopted)."""
        if self._state is not ProcessState.WAITING:
            msg = f"Cannot resume: process {self._pid} is {self._state}, expected waiting"
            raise InvalidStateTransition(msg, pid=self._pid)
        self._state = ProcessState.ORPHAN if self._adopted else ProcessState.RUNNING

    def exit_as(self, outcome: ProcessState) -> None:
        """Transition RUNNING/ORPHAN → ZOMBIE or TERMINATED.

        Args:
            outcome: Either ZOMBIE or TERMINATED.

        Raises:
            InvalidStateTransition: If the process is not active or the
                outcome is not an exit state.

        """
        self._require_active("exit")
        match outcome:
            case ProcessState.ZOMBIE | ProcessState.TERMINATED:
                self._state = outcome
            case ProcessState.RUNNING | ProcessState.WAITING | ProcessState.ORPHAN:
                msg = f"Cannot exit process {self._pid} into state {outcome}"
                raise InvalidStateTransition(msg, pid=self._pid)

    def reap(self) -> None:
        """Transition ZOMBIE → TERMINATED (status collected by the parent)."""
        if self._state is not ProcessState.ZOMBIE:
            msg = f"Cannot reap: process {self._pid} is {self._state}, expected zombie"
            raise InvalidStateTransition(msg, pid=self._pid)
        self._state = ProcessState.TERMINATED

    def orphan(self) -> None:
        """Transition RUNNING/ORPHAN → ORPHAN and re-parent to init."""
        self._require_active("orphan")
        self._state = ProcessState.ORPHAN
        self._ppid = INIT_PID
        self._adopted = True

    def to_dict(self, *, recursive: bool = True) -> dict[str, Any]:
        """Return a JSON-friendly mapping of this node.

        Args:
            recursive: Include the full subtree under ``children``.
                Otherwise ``children`` lists child pids only.

        """
        children: list[Any] = (
            [c.to_dict() for c in self._children]
            if recursive
            else [c.pid for c in self._children]
        )
        return {
            "id": self.id,
            "pid": self._pid,
            "ppid": self._ppid,
            "state": str(self._state),
            "depth": self._depth,
            "fork_level": self._fork_level,
            "created_at": self._created_at,
            "children": children,
        }

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        return f"ProcessNode(pid={self._pid}, ppid={self._ppid}, state={self._state})"
