"""Tests for exit() — zombies and orphans.

What happens to an exiting process depends on its parent:

- Parent is init, or is blocked in ``wait()`` → TERMINATED at once.
- Parent is alive but not waiting → ZOMBIE until the parent waits.

What happens to the exiting process's own children: each one that is
still alive becomes an **orphan**, adopted by init (pid 1).  Orphans
keep running and may fork, wait, and exit like anyone else.
"""

from py_fork.engine import LifecycleEngine
from py_fork.errors import InvalidStateTransition
from py_fork.events import EventKind, LifecycleEvent
from py_fork.logging import LogType
from py_fork.process.node import INIT_PID, ProcessState

ROOT_PID = 1001
CHILD_PID = 1002
SIBLING_PID = 1003
GRANDCHILD_PID = 1004


def _parent_and_child() -> LifecycleEngine:
    """Create root 1001 with running child 1002."""
    engine = LifecycleEngine()
    engine.create_root()
    engine.fork_one(ROOT_PID)
    return engine


def _state(engine: LifecycleEngine, pid: int) -> ProcessState:
    """Return the state of *pid*."""
    node = engine.find_by_pid(pid)
    assert node is not None
    return node.state


class TestExitOutcome:
    """Verify ZOMBIE versus TERMINATED."""

    def test_child_of_running_parent_becomes_zombie(self) -> None:
        """The parent has not asked for the status yet."""
        engine = _parent_and_child()
        node = engine.exit(CHILD_PID)
        assert node is not None
        assert node.state is ProcessState.ZOMBIE

    def test_zombie_creation_is_a_warning(self) -> None:
        """Zombies are flagged in the audit log."""
        engine = _parent_and_child()
        engine.exit(CHILD_PID)
        last = engine.log.entries[-1]
        assert last.type is LogType.WARNING
        assert "ZOMBIE" in last.message

    def test_child_of_init_terminates(self) -> None:
        """Init reaps its children immediately."""
        engine = _parent_and_child()
        node = engine.exit(ROOT_PID)
        assert node is not None
        assert node.state is ProcessState.TERMINATED
        assert "reaped by init" in engine.log.entries[-1].message

    def test_child_of_waiting_parent_terminates(self) -> None:
        """A waiting parent collects the status at once."""
        engine = _parent_and_child()
        engine.wait(ROOT_PID)
        engine.exit(CHILD_PID)
        assert _state(engine, CHILD_PID) is ProcessState.TERMINATED

    def test_child_of_orphan_becomes_zombie(self) -> None:
        """An orphan parent that is not waiting leaves a zombie."""
        engine = _parent_and_child()
        engine.fork_one(CHILD_PID)
        engine.exit(ROOT_PID)
        engine.exit(SIBLING_PID)
        assert _state(engine, SIBLING_PID) is ProcessState.ZOMBIE

    def test_exit_twice_fails(self) -> None:
        """An exited process cannot exit again."""
        engine = _parent_and_child()
        engine.exit(CHILD_PID)
        assert engine.exit(CHILD_PID) is None
        assert isinstance(engine.last_error, InvalidStateTransition)
        assert _state(engine, CHILD_PID) is ProcessState.ZOMBIE

    def test_init_cannot_exit(self) -> None:
        """Init is permanent."""
        engine = _parent_and_child()
        assert engine.exit(INIT_PID) is None
        assert isinstance(engine.last_error, InvalidStateTransition)


class TestOrphans:
    """Verify adoption by init."""

    def test_scenario_d(self) -> None:
        """The root exits; its running child is adopted by init."""
        engine = _parent_and_child()
        engine.exit(ROOT_PID)
        assert _state(engine, ROOT_PID) is ProcessState.TERMINATED
        child = engine.find_by_pid(CHILD_PID)
        assert child is not None
        assert child.state is ProcessState.ORPHAN
        assert child.ppid == INIT_PID
        assert engine.init is not None
        assert child in engine.init.children

    def test_orphan_subtree_is_redepthed(self) -> None:
        """The orphan moves to depth 0, its children to depth 1."""
        engine = _parent_and_child()
        engine.fork_one(CHILD_PID)
        engine.exit(ROOT_PID)
        assert engine.ancestor_chain(SIBLING_PID) == [CHILD_PID, SIBLING_PID]
        grandchild = engine.find_by_pid(SIBLING_PID)
        assert grandchild is not None
        assert grandchild.depth == 1

    def test_only_active_children_are_orphaned(self) -> None:
        """Zombie children stay with the exiting parent."""
        engine = _parent_and_child()
        engine.fork_one(ROOT_PID)
        engine.exit(CHILD_PID)
        engine.exit(ROOT_PID)
        assert _state(engine, CHILD_PID) is ProcessState.ZOMBIE
        zombie = engine.find_by_pid(CHILD_PID)
        assert zombie is not None
        assert zombie.ppid == ROOT_PID
        assert _state(engine, SIBLING_PID) is ProcessState.ORPHAN

    def test_orphaning_is_logged(self) -> None:
        """A warning for the parent, an info line per adopted child."""
        engine = _parent_and_child()
        engine.exit(ROOT_PID)
        types = [(e.type, e.pid) for e in engine.log.entries[-3:]]
        assert types == [
            (LogType.WARNING, ROOT_PID),
            (LogType.INFO, CHILD_PID),
            (LogType.SUCCESS, ROOT_PID),
        ]

    def test_orphan_exit_terminates(self) -> None:
        """Init reaps orphans as soon as they exit."""
        engine = _parent_and_child()
        engine.exit(ROOT_PID)
        engine.exit(CHILD_PID)
        assert _state(engine, CHILD_PID) is ProcessState.TERMINATED

    def test_orphan_waits_and_resumes_as_orphan(self) -> None:
        """An orphan that waits returns to ORPHAN, not RUNNING."""
        engine = _parent_and_child()
        engine.fork_one(CHILD_PID)
        engine.exit(ROOT_PID)
        engine.wait(CHILD_PID)
        assert _state(engine, CHILD_PID) is ProcessState.WAITING
        engine.exit(SIBLING_PID)
        assert _state(engine, CHILD_PID) is ProcessState.ORPHAN

    def test_exit_of_waiting_process_is_rejected(self) -> None:
        """A blocked process must resume before exiting."""
        engine = _parent_and_child()
        engine.wait(ROOT_PID)
        assert engine.exit(ROOT_PID) is None
        assert _state(engine, ROOT_PID) is ProcessState.WAITING
        assert _state(engine, CHILD_PID) is ProcessState.RUNNING


class TestExitEvents:
    """Verify the notifications published by exit()."""

    def test_zombie_events(self) -> None:
        """Exit then zombie, both naming the parent."""
        engine = _parent_and_child()
        seen: list[LifecycleEvent] = []
        engine.events.subscribe(seen.append)
        engine.exit(CHILD_PID)
        assert [(e.kind, e.pid, e.parent_pid) for e in seen] == [
            (EventKind.PROCESS_EXIT, CHILD_PID, ROOT_PID),
            (EventKind.ZOMBIE_CREATED, CHILD_PID, ROOT_PID),
        ]

    def test_orphan_events(self) -> None:
        """Adoption is announced before the parent's exit."""
        engine = _parent_and_child()
        seen: list[LifecycleEvent] = []
        engine.events.subscribe(seen.append)
        engine.exit(ROOT_PID)
        assert [e.kind for e in seen] == [EventKind.ORPHAN_ADOPTED, EventKind.PROCESS_EXIT]
        assert seen[0].parent_pid == INIT_PID

    def test_grandchild_of_exited_parent(self) -> None:
        """A grandchild whose parent is adopted keeps its own parent."""
        engine = _parent_and_child()
        engine.fork_one(ROOT_PID)
        engine.fork_one(CHILD_PID)
        engine.exit(ROOT_PID)
        grandchild = engine.find_by_pid(GRANDCHILD_PID)
        assert grandchild is not None
        assert grandchild.ppid == CHILD_PID
        assert grandchild.state is ProcessState.RUNNING
