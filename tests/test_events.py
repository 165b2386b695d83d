"""Tests for lifecycle notifications.

Subscribers observe what the engine did.  They cannot change the
outcome: a subscriber that raises is logged and skipped, and the
operation that published the event still succeeds.
"""

import logging

import pytest

from py_fork.engine import LifecycleEngine
from py_fork.events import EventBus, EventKind, LifecycleEvent
from py_fork.process.node import INIT_PID, ProcessState

ROOT_PID = 1001
CHILD_PID = 1002


def _event(kind: EventKind = EventKind.PROCESS_CREATED) -> LifecycleEvent:
    """Create an event for testing."""
    return LifecycleEvent(kind=kind, pid=ROOT_PID, parent_pid=INIT_PID)


class TestEventBus:
    """Verify subscribe, publish, and unsubscribe."""

    def test_subscribers_called_in_order(self) -> None:
        """Every subscriber sees the event, first subscribed first."""
        bus = EventBus()
        calls: list[str] = []
        bus.subscribe(lambda _e: calls.append("a"))
        bus.subscribe(lambda _e: calls.append("b"))
        bus.publish(_event())
        assert calls == ["a", "b"]
        assert bus.published == 1

    def test_unsubscribe(self) -> None:
        """An unsubscribed callback is no longer called."""
        bus = EventBus()
        seen: list[LifecycleEvent] = []
        unsubscribe = bus.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        bus.publish(_event())
        assert seen == []

    def test_failing_subscriber_is_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        """A raising subscriber does not stop the others."""
        bus = EventBus()
        seen: list[LifecycleEvent] = []

        def _broken(_event: LifecycleEvent) -> None:
            msg = "subscriber bug"
            raise RuntimeError(msg)

        bus.subscribe(_broken)
        bus.subscribe(seen.append)
        with caplog.at_level(logging.ERROR, logger="py_fork.events"):
            bus.publish(_event())
        assert len(seen) == 1
        assert "Subscriber failed" in caplog.text

    def test_event_is_frozen(self) -> None:
        """Events are read-only records."""
        event = _event()
        with pytest.raises(AttributeError):
            event.pid = CHILD_PID  # type: ignore[misc]


class TestEngineEvents:
    """Verify the engine publishes on its bus."""

    def test_create_root_publishes_created(self) -> None:
        """The root's creation names init as parent."""
        bus = EventBus()
        seen: list[LifecycleEvent] = []
        bus.subscribe(seen.append)
        LifecycleEngine(event_bus=bus).create_root()
        assert seen == [LifecycleEvent(EventKind.PROCESS_CREATED, ROOT_PID, INIT_PID, 0)]

    def test_failing_subscriber_cannot_break_fork(self) -> None:
        """The fork still happens when a subscriber raises."""
        engine = LifecycleEngine()
        engine.create_root()

        def _broken(_event: LifecycleEvent) -> None:
            msg = "subscriber bug"
            raise RuntimeError(msg)

        engine.events.subscribe(_broken)
        child = engine.fork_one(ROOT_PID)
        assert child is not None
        assert child.state is ProcessState.RUNNING
        assert engine.last_error is None

    def test_event_time_follows_clock(self) -> None:
        """Events carry the engine's logical time."""
        engine = LifecycleEngine()
        engine.create_root()
        seen: list[LifecycleEvent] = []
        engine.events.subscribe(seen.append)
        engine.tick()
        engine.fork_one(ROOT_PID)
        assert seen[0].time == 1
