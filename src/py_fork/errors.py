"""Errors raised inside the lifecycle engine.

The transition methods on a process node and the tree store raise
these exceptions when an operation is not allowed.  The engine catches
them at its public boundary, records them in the audit log, and
returns ``None`` to the caller, the same way a kernel turns internal
failures into an error code instead of crashing user space.

Hierarchy::

    LifecycleError
    ├── NotFound                 — referenced pid does not exist
    ├── InvalidStateTransition   — operation forbidden in current state
    ├── NoChildrenToWait         — wait() with nothing to wait for (ECHILD)
    └── ProgramError             — a fork program could not be loaded
"""


class LifecycleError(Exception):
    """Base class for every recoverable simulation error.

    Attributes:
        pid: The process the failed operation referred to, if any.

    """

    def __init__(self, message: str, *, pid: int | None = None) -> None:
        """Create an error with a message and an optional pid."""
        super().__init__(message)
        self.pid = pid


class NotFound(LifecycleError):  # noqa: N818
    """Raise when a pid does not name any process in the tree."""


class InvalidStateTransition(LifecycleError):  # noqa: N818
    """Raise when a process is asked to do something its state forbids."""


class NoChildrenToWait(LifecycleError):  # noqa: N818
    """Raise when wait() is called by a process with no children (ECHILD)."""


class ProgramError(LifecycleError):
    """Raise when a fork program has no executable statements."""
