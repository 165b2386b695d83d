"""The lifecycle engine — fork, wait, and exit on a simulated process tree.

The engine owns one session: the tree store, the id generator, the
audit log, the logical clock, the execution history, and the scoped
execution controller.  Viewers call its operations and read its state;
they never reach into the tree directly.

Transition rules:

``fork(pid)``
    A running (or orphaned) process gets one new RUNNING child.

``fork_all()``
    Every RUNNING process forks exactly once.  The set of forking
    processes is snapshotted *before* any child is created, so children
    born in this round do not fork again until the next round.  After
    ``k`` rounds from a single root the tree holds ``2**k`` processes.

``wait(pid)``
    1. A zombie child exists → reap the first one; the caller keeps
       running.
    2. An active child exists → the caller becomes WAITING.
    3. Neither → ECHILD warning, nothing changes.

``exit(pid)``
    The exiting process becomes TERMINATED if its parent is init or is
    waiting, ZOMBIE if its parent is alive and not waiting, and
    TERMINATED if it has no parent left.  Its active children are
    adopted by init as ORPHANs.  A waiting parent with no active
    children left resumes RUNNING.

Errors never escape: a failed operation writes an ``error`` (or, for
ECHILD, ``warning``) entry to the audit log, remembers the exception in
``last_error``, and returns ``None``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, NamedTuple

from py_fork.clock import ExecutionAction, ExecutionEvent, ExecutionHistory, LogicalClock
from py_fork.errors import InvalidStateTransition, LifecycleError, NoChildrenToWait, NotFound
from py_fork.events import EventBus, EventKind, LifecycleEvent
from py_fork.ids import DEFAULT_FIRST_PID, IdGenerator
from py_fork.logging import AuditLog, LogType
from py_fork.process.node import INIT_PID, ProcessNode, ProcessState
from py_fork.process.tree import ProcessTree
from py_fork.scoped import ScopedExecution

logger = logging.getLogger(__name__)


class _Snapshot(NamedTuple):
    """A process captured at the start of a fork-all round."""

    pid: int
    depth: int


class LifecycleEngine:
    """One simulation session of the UNIX process lifecycle."""

    def __init__(
        self,
        *,
        first_pid: int = DEFAULT_FIRST_PID,
        ids: IdGenerator | None = None,
        timestamp: Callable[[], float] = time.time,
        event_bus: EventBus | None = None,
    ) -> None:
        """Create an engine with no tree.

        Args:
            first_pid: First user pid (ignored when *ids* is given).
            ids: Identifier generator to use instead of a private one.
            timestamp: Source of creation and log timestamps.
            event_bus: Bus for lifecycle notifications.

        """
        self._ids = ids if ids is not None else IdGenerator(first_pid=first_pid)
        self._timestamp = timestamp
        self._tree = ProcessTree()
        self._log = AuditLog(next_id=self._ids.next_log_id, timestamp=timestamp)
        self._clock = LogicalClock()
        self._history = ExecutionHistory()
        self._events = event_bus if event_bus is not None else EventBus()
        self._scoped = ScopedExecution(self._tree)
        self._fork_count = 0
        self._last_error: LifecycleError | None = None

    # -- Read access -----------------------------------------------------------

    @property
    def tree(self) -> ProcessTree:
        """Return the tree store (read it, do not mutate it)."""
        return self._tree

    @property
    def root(self) -> ProcessNode | None:
        """Return the simulation root, or None before ``create_root``."""
        return self._tree.root

    @property
    def init(self) -> ProcessNode | None:
        """Return the init sentinel, or None before ``create_root``."""
        return self._tree.init

    @property
    def log(self) -> AuditLog:
        """Return the audit log."""
        return self._log

    @property
    def history(self) -> ExecutionHistory:
        """Return the execution history."""
        return self._history

    @property
    def clock(self) -> LogicalClock:
        """Return the logical clock."""
        return self._clock

    @property
    def events(self) -> EventBus:
        """Return the lifecycle notification bus."""
        return self._events

    @property
    def scoped(self) -> ScopedExecution:
        """Return the scoped execution controller (read-only use)."""
        return self._scoped

    @property
    def fork_count(self) -> int:
        """Return how many fork-all rounds have run since the root was created."""
        return self._fork_count

    @property
    def expected_process_count(self) -> int:
        """Return ``2 ** fork_count``, the size of an undisturbed fork-all tree."""
        return 2**self._fork_count

    @property
    def last_error(self) -> LifecycleError | None:
        """Return the error from the most recent operation, if it failed."""
        return self._last_error

    def find_by_pid(self, pid: int) -> ProcessNode | None:
        """Return the process with *pid*, or None."""
        return self._tree.find(pid)

    def all_nodes(self) -> list[ProcessNode]:
        """Return every simulated process in pre-order."""
        return self._tree.all_nodes()

    def all_running(self) -> list[ProcessNode]:
        """Return every schedulable (running or orphan) process in pre-order."""
        return self._tree.all_running()

    def ancestor_chain(self, pid: int) -> list[int]:
        """Return the pids from the top of the tree down to *pid*."""
        return self._tree.ancestor_chain(pid)

    # -- Lifecycle -------------------------------------------------------------

    def create_root(self) -> ProcessNode:
        """Start a fresh session with init and one root process.

        Any previous tree, log, history, and scoped replay is discarded
        and the id generator is re-seeded.
        """
        self._clear_session()
        root = self._tree.create_root(pid=self._ids.next_pid(), created_at=self._timestamp())
        self._log.info("Init process (PID 1) exists", pid=INIT_PID)
        self._log.info("Root process created", pid=root.pid)
        self._history.record(
            root.pid,
            ExecutionAction.CREATED,
            root.state,
            time=self._clock.time,
            parent_pid=INIT_PID,
        )
        self._publish(EventKind.PROCESS_CREATED, root.pid, parent_pid=INIT_PID)
        logger.debug("Created root process %d", root.pid)
        return root

    def reset(self) -> None:
        """Discard the whole session and re-seed the id generator."""
        self._clear_session()
        logger.debug("Engine reset")

    def _clear_session(self) -> None:
        self._tree.clear()
        self._ids.reset()
        self._log.clear()
        self._history.clear()
        self._clock.reset()
        self._scoped.reset()
        self._fork_count = 0
        self._last_error = None

    def fork_one(self, pid: int) -> ProcessNode | None:
        """Fork a single process.

        With no tree yet, this creates the root instead.

        Returns:
            The new child (or the new root), or None on failure.

        """
        self._last_error = None
        if self._tree.root is None:
            return self.create_root()
        try:
            parent = self._require_user_process(pid, "fork")
            child = self._spawn(parent, fork_level=self._fork_count)
        except LifecycleError as e:
            self._fail(e)
            return None
        self._log.success(
            f"fork() called by PID {pid} → Child PID {child.pid} created", pid=child.pid
        )
        return child

    def fork_all(self) -> list[ProcessNode]:
        """Fork every RUNNING process exactly once.

        With no tree yet, this creates the root and returns it alone.

        Returns:
            The processes created by this call, in snapshot order.

        """
        self._last_error = None
        if self._tree.root is None:
            return [self.create_root()]

        snapshot = [
            _Snapshot(pid=n.pid, depth=n.depth)
            for n in self._tree.all_nodes()
            if n.state is ProcessState.RUNNING
        ]
        if not snapshot:
            self._log.warning("fork() skipped: no running processes")
            return []

        self._fork_count += 1
        created: list[ProcessNode] = []
        for entry in snapshot:
            parent = self._tree.require(entry.pid)
            child = self._spawn(parent, fork_level=self._fork_count)
            logger.debug(
                "fork #%d: %d (depth %d) → %d",
                self._fork_count,
                entry.pid,
                entry.depth,
                child.pid,
            )
            created.append(child)

        total = len(self._tree.all_running())
        self._log.success(
            f"fork() #{self._fork_count}: {len(snapshot)} processes each created 1 child "
            f"→ new PIDs {', '.join(str(c.pid) for c in created)}"
        )
        self._log.info(
            f"Total running: {total} (2^{self._fork_count} = {self.expected_process_count})"
        )
        return created

    def _spawn(self, parent: ProcessNode, *, fork_level: int) -> ProcessNode:
        child = self._tree.attach(
            parent,
            pid=self._ids.next_pid(),
            fork_level=fork_level,
            created_at=self._timestamp(),
        )
        self._history.record(
            child.pid,
            ExecutionAction.CREATED,
            child.state,
            time=self._clock.time,
            parent_pid=parent.pid,
        )
        self._publish(EventKind.PROCESS_CREATED, child.pid, parent_pid=parent.pid)
        return child

    def wait(self, pid: int) -> ProcessNode | None:
        """Call wait() from process *pid*.

        Returns:
            The reaped zombie child, or the caller itself if it is now
            blocked.  None on failure, including ECHILD.

        """
        self._last_error = None
        try:
            parent = self._require_user_process(pid, "wait")
            zombie = parent.first_zombie_child()
            if zombie is not None:
                zombie.reap()
                self._log.success(
                    f"wait() by PID {pid} → Reaped zombie PID {zombie.pid}", pid=zombie.pid
                )
                self._publish(EventKind.PROCESS_REAPED, zombie.pid, parent_pid=pid)
                logger.debug("Process %d reaped zombie %d", pid, zombie.pid)
                return zombie
            if parent.has_active_children():
                parent.block()
                self._log.info(f"wait() called by PID {pid} → Waiting for children", pid=pid)
                self._publish(EventKind.PARENT_WAITING, pid, parent_pid=parent.ppid)
                logger.debug("Process %d is waiting", pid)
                return parent
            msg = f"wait() by PID {pid} → No children to wait for (ECHILD)"
            raise NoChildrenToWait(msg, pid=pid)
        except LifecycleError as e:
            self._fail(e)
            return None

    def exit(self, pid: int) -> ProcessNode | None:
        """Call exit() from process *pid*.

        Returns:
            The exited process, or None on failure.

        """
        self._last_error = None
        try:
            node = self._require_user_process(pid, "exit")
        except LifecycleError as e:
            self._fail(e)
            return None

        parent = self._tree.parent_of(node)
        parent_waiting = parent is not None and parent.state is ProcessState.WAITING
        outcome, reason = self._exit_outcome(node, parent)

        orphans = node.active_children()
        node.exit_as(outcome)

        if orphans:
            self._log.warning(
                f"Parent PID {pid} exiting → {len(orphans)} children become ORPHAN", pid=pid
            )
        for child in orphans:
            self._tree.adopt(child)
            self._log.info(f"PID {child.pid} adopted by init (PID 1)", pid=child.pid)
            self._publish(EventKind.ORPHAN_ADOPTED, child.pid, parent_pid=INIT_PID)

        self._publish(EventKind.PROCESS_EXIT, pid, parent_pid=node.ppid)
        if outcome is ProcessState.ZOMBIE:
            self._log.warning(f"exit() called by PID {pid} → Became ZOMBIE ({reason})", pid=pid)
            self._publish(EventKind.ZOMBIE_CREATED, pid, parent_pid=node.ppid)
        else:
            self._log.success(f"exit() called by PID {pid} → Terminated ({reason})", pid=pid)
            if parent_waiting:
                self._publish(EventKind.PROCESS_REAPED, pid, parent_pid=node.ppid)
        logger.debug("Process %d exited as %s (%s)", pid, outcome, reason)

        if parent is not None and parent_waiting and not parent.has_active_children():
            parent.unblock()
            self._log.info(
                f"PID {parent.pid} resumed: no children left to wait for", pid=parent.pid
            )
            self._history.record(
                parent.pid,
                ExecutionAction.RESUME,
                parent.state,
                time=self._clock.time,
                parent_pid=parent.ppid,
            )
        return node

    @staticmethod
    def _exit_outcome(node: ProcessNode, parent: ProcessNode | None) -> tuple[ProcessState, str]:
        """Decide between ZOMBIE and TERMINATED for an exiting process."""
        if node.ppid == INIT_PID:
            return ProcessState.TERMINATED, "reaped by init"
        if parent is None:
            return ProcessState.TERMINATED, "no parent"
        match parent.state:
            case ProcessState.WAITING:
                return ProcessState.TERMINATED, f"collected by waiting parent PID {parent.pid}"
            case ProcessState.RUNNING | ProcessState.ORPHAN:
                return ProcessState.ZOMBIE, "parent not waiting"
            case ProcessState.ZOMBIE | ProcessState.TERMINATED:
                return ProcessState.TERMINATED, "parent already exited"

    def _require_user_process(self, pid: int, action: str) -> ProcessNode:
        """Return an active, non-init process or raise."""
        if pid == INIT_PID and pid in self._tree:
            msg = f"Cannot {action}: init (PID 1) is not part of the simulation"
            raise InvalidStateTransition(msg, pid=pid)
        node = self._tree.require(pid)
        if not node.state.is_active:
            msg = f"Cannot {action} from {node.state} process {pid}"
            raise InvalidStateTransition(msg, pid=pid)
        return node

    # -- Scoped execution ------------------------------------------------------

    def start_scoped_execution(self, target_pid: int) -> list[int]:
        """Freeze the path from the top of the tree to *target_pid*.

        Returns:
            The frozen path, or ``[]`` if the pid is unknown.

        """
        self._last_error = None
        path = self._scoped.start(target_pid)
        if not path:
            self._fail(NotFound(f"Process {target_pid} not found", pid=target_pid))
            return []
        chain = " → ".join(str(p) for p in path)
        self._log.info(f"Scoped execution to PID {target_pid}: {chain}", pid=target_pid)
        return path

    def execute_next_scoped_step(self) -> ProcessNode | None:
        """Execute the next process on the frozen path.

        Returns:
            The executing process, or None when idle or complete.

        """
        node = self._scoped.step()
        if node is None:
            return None
        step = self._scoped.logical_time
        total = len(self._scoped.path)
        self._log.info(f"PID {node.pid} executing (step {step}/{total})", pid=node.pid)
        self._publish(EventKind.CPU_SCHEDULED, node.pid, parent_pid=node.ppid, at=step)
        if self._scoped.complete:
            self._log.success(f"Execution reached target PID {node.pid}", pid=node.pid)
        return node

    def reset_scoped_execution(self) -> None:
        """Abandon any scoped replay."""
        self._scoped.reset()

    def is_in_execution_path(self, pid: int) -> bool:
        """Return True if *pid* lies on the current scoped path."""
        return self._scoped.contains(pid)

    # -- Clock and history -----------------------------------------------------

    def tick(self) -> int:
        """Advance the logical clock by one and return the new time."""
        return self._clock.tick()

    def record_execution(
        self,
        pid: int,
        action: ExecutionAction,
        state: ProcessState,
        *,
        parent_pid: int | None = None,
    ) -> ExecutionEvent:
        """Record an execution interval at the current logical time."""
        return self._history.record(
            pid, action, state, time=self._clock.time, parent_pid=parent_pid
        )

    # -- Helpers ---------------------------------------------------------------

    def _fail(self, error: LifecycleError) -> None:
        """Record a recovered error in the audit log."""
        self._last_error = error
        kind = LogType.WARNING if isinstance(error, NoChildrenToWait) else LogType.ERROR
        self._log.append(kind, str(error), pid=error.pid)
        logger.debug("Recovered %s: %s", type(error).__name__, error)

    def _publish(
        self,
        kind: EventKind,
        pid: int,
        *,
        parent_pid: int | None = None,
        at: int | None = None,
    ) -> None:
        time_ = self._clock.time if at is None else at
        self._events.publish(LifecycleEvent(kind=kind, pid=pid, parent_pid=parent_pid, time=time_))

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly snapshot of the session."""
        init = self._tree.init
        return {
            "tree": init.to_dict() if init is not None else None,
            "root_pid": self._tree.root.pid if self._tree.root is not None else None,
            "process_count": self._tree.size,
            "running_count": len(self._tree.all_running()),
            "fork_count": self._fork_count,
            "expected_process_count": self.expected_process_count,
            "time": self._clock.time,
        }
