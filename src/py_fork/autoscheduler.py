"""Auto-scheduler — drives a process tree to completion, one action per tick.

Left alone, a forked tree just sits there.  The auto-scheduler plays
every process forward in an order that respects UNIX semantics: a
parent calls ``wait()`` before its children finish, and children exit
from the bottom of the tree upward, so every parent is unblocked only
after its whole subtree is done.

The scheduler delegates the *choice* of action to a pluggable
``SchedulingPolicy`` and handles the mechanics (clock, engine call,
history) itself.  ``BottomUpPolicy`` is the one policy that ships:

1. **Parents wait first.**  The deepest RUNNING process that still has
   an active child calls ``wait``.
2. **Leaves exit.**  Otherwise the deepest active process with no
   active children calls ``exit``.
3. **Stop.**  Otherwise nothing is left to do.

Ties on depth go to the process that comes first in pre-order, so a
run is fully deterministic.

Design: Strategy pattern
    ``AutoScheduler`` is the *context*; the policy is the *strategy*.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from py_fork.clock import ExecutionAction
from py_fork.process.node import ProcessState

if TYPE_CHECKING:
    from py_fork.engine import LifecycleEngine
    from py_fork.process.node import ProcessNode
    from py_fork.process.tree import ProcessTree

logger = logging.getLogger(__name__)

DEFAULT_MAX_TICKS = 10_000
DEFAULT_TICK_INTERVAL_MS = 1000


class ActionKind(StrEnum):
    """What the scheduler asks a process to do."""

    WAIT = "wait"
    EXIT = "exit"


@dataclass(frozen=True)
class ScheduledAction:
    """A policy's decision for one tick."""

    kind: ActionKind
    pid: int


@dataclass(frozen=True)
class TickResult:
    """What one tick did.

    Attributes:
        time: Logical time of the tick.
        action: The action performed.
        pid: The process that performed it.
        state: That process's state afterwards.
        reaped_pid: The zombie collected, when a wait reaped one.

    """

    time: int
    action: ActionKind
    pid: int
    state: ProcessState
    reaped_pid: int | None = None

    def __str__(self) -> str:
        """Format as ``t=3 wait 1001 → waiting``."""
        reaped = f" (reaped {self.reaped_pid})" if self.reaped_pid is not None else ""
        return f"t={self.time} {self.action} {self.pid} → {self.state}{reaped}"


class SchedulingPolicy(Protocol):
    """Interface every auto-scheduling policy must satisfy."""

    def select(self, tree: ProcessTree) -> ScheduledAction | None:
        """Return the next action, or None when nothing is eligible."""
        ...  # pragma: no cover


def _deepest(nodes: list[ProcessNode]) -> ProcessNode:
    # max() keeps the first of equal keys, i.e. the earliest in pre-order.
    return max(nodes, key=lambda n: n.depth)


class BottomUpPolicy:
    """Deepest waiting-parent first, then deepest active leaf."""

    def waiting_candidates(self, tree: ProcessTree) -> list[ProcessNode]:
        """Return RUNNING processes that still have an active child."""
        return [
            n
            for n in tree.all_nodes()
            if n.state is ProcessState.RUNNING and n.has_active_children()
        ]

    def exit_candidates(self, tree: ProcessTree) -> list[ProcessNode]:
        """Return active processes with no active children."""
        return [n for n in tree.all_nodes() if n.state.is_active and not n.has_active_children()]

    def select(self, tree: ProcessTree) -> ScheduledAction | None:
        """Pick a ``wait`` for the deepest parent, else an ``exit`` for the deepest leaf."""
        parents = self.waiting_candidates(tree)
        if parents:
            return ScheduledAction(kind=ActionKind.WAIT, pid=_deepest(parents).pid)
        leaves = self.exit_candidates(tree)
        if leaves:
            return ScheduledAction(kind=ActionKind.EXIT, pid=_deepest(leaves).pid)
        return None


class AutoScheduler:
    """Apply one policy-chosen action per tick until nothing is left."""

    def __init__(
        self,
        engine: LifecycleEngine,
        *,
        policy: SchedulingPolicy | None = None,
        max_ticks: int = DEFAULT_MAX_TICKS,
    ) -> None:
        """Create a scheduler for *engine*.

        Args:
            engine: The session to drive.
            policy: Action-selection strategy (default: bottom-up).
            max_ticks: Upper bound on ticks for a single ``run()``.

        """
        self._engine = engine
        self._policy: SchedulingPolicy = policy if policy is not None else BottomUpPolicy()
        self._max_ticks = max_ticks
        self._halted = False

    @property
    def policy(self) -> SchedulingPolicy:
        """Return the active policy."""
        return self._policy

    @property
    def halted(self) -> bool:
        """Return True once a tick found nothing to do."""
        return self._halted

    def tick(self) -> TickResult | None:
        """Perform exactly one action.

        Returns:
            What happened, or None if the scheduler has halted.

        """
        if self._engine.root is None:
            self._halted = True
            return None
        choice = self._policy.select(self._engine.tree)
        if choice is None:
            if not self._halted:
                self._engine.log.info("Auto-run complete: no process can act")
            self._halted = True
            return None

        self._halted = False
        now = self._engine.tick()
        reaped_pid: int | None = None
        match choice.kind:
            case ActionKind.WAIT:
                result = self._engine.wait(choice.pid)
                node = self._engine.find_by_pid(choice.pid)
                assert node is not None  # noqa: S101
                if result is not None and result.pid != choice.pid:
                    reaped_pid = result.pid
                    self._engine.record_execution(
                        result.pid, ExecutionAction.EXIT, result.state, parent_pid=choice.pid
                    )
                else:
                    self._engine.record_execution(choice.pid, ExecutionAction.WAIT, node.state)
            case ActionKind.EXIT:
                self._engine.exit(choice.pid)
                node = self._engine.find_by_pid(choice.pid)
                assert node is not None  # noqa: S101
                self._engine.record_execution(choice.pid, ExecutionAction.EXIT, node.state)

        logger.debug("tick %d: %s %d → %s", now, choice.kind, choice.pid, node.state)
        return TickResult(
            time=now,
            action=choice.kind,
            pid=choice.pid,
            state=node.state,
            reaped_pid=reaped_pid,
        )

    def run(self, max_ticks: int | None = None) -> list[TickResult]:
        """Tick until the scheduler halts or the tick limit is reached.

        Returns:
            Every tick result, in order.

        """
        limit = self._max_ticks if max_ticks is None else max_ticks
        results: list[TickResult] = []
        while len(results) < limit:
            result = self.tick()
            if result is None:
                break
            results.append(result)
        return results

    def reset(self) -> None:
        """Clear the halted flag so a fresh tree can be driven."""
        self._halted = False
