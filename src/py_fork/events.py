"""Semantic lifecycle notifications for narration and telemetry.

The engine announces what just happened (a process was created, a
parent started waiting, a zombie appeared, ...) to any subscriber.  The
channel is one-way: subscribers observe, they never feed anything back,
and nothing they do can change the outcome of the operation that
published the event.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeAlias

logger = logging.getLogger(__name__)


class EventKind(StrEnum):
    """Kinds of notable moments in a process's life."""

    PROCESS_CREATED = "process_created"
    CPU_SCHEDULED = "cpu_scheduled"
    PARENT_WAITING = "parent_waiting"
    PROCESS_EXIT = "process_exit"
    ZOMBIE_CREATED = "zombie_created"
    PROCESS_REAPED = "process_reaped"
    ORPHAN_ADOPTED = "orphan_adopted"


@dataclass(frozen=True)
class LifecycleEvent:
    """A notification published after an engine operation.

    Attributes:
        kind: What happened.
        pid: The process it happened to.
        parent_pid: The related parent, where one matters.
        time: The engine's logical time when it happened.

    """

    kind: EventKind
    pid: int
    parent_pid: int | None = None
    time: int = 0


Subscriber: TypeAlias = Callable[[LifecycleEvent], None]


class EventBus:
    """Fan-out of lifecycle events to subscribers, in subscription order."""

    def __init__(self) -> None:
        """Create a bus with no subscribers."""
        self._subscribers: list[Subscriber] = []
        self._published = 0

    @property
    def published(self) -> int:
        """Return how many events have been published."""
        return self._published

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback* and return a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, event: LifecycleEvent) -> None:
        """Deliver *event* to every subscriber.

        A failing subscriber is logged and skipped; the remaining
        subscribers still receive the event.
        """
        self._published += 1
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber failed on %s for pid %d", event.kind, event.pid)
