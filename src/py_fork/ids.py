"""Identifier generator for process ids and log ids.

Every simulation session owns its own generator, so two engines never
share a pid sequence and tests never leak counters into each other.
Pids start at a fixed constant (1001 by default) to leave room below
for the init process (pid 1), matching how a real system hands out
user pids well above the handful of boot-time processes.
"""

from itertools import count

DEFAULT_FIRST_PID = 1001


class IdGenerator:
    """Issue monotonically increasing pids and log ids."""

    def __init__(self, *, first_pid: int = DEFAULT_FIRST_PID) -> None:
        """Create a generator whose first pid is *first_pid*.

        Args:
            first_pid: The pid handed out by the first ``next_pid()``.

        """
        self._first_pid = first_pid
        self._pids = count(start=first_pid)
        self._log_ids = count(start=1)

    @property
    def first_pid(self) -> int:
        """Return the pid the sequence starts at."""
        return self._first_pid

    def next_pid(self) -> int:
        """Return the next unused pid."""
        return next(self._pids)

    def next_log_id(self) -> str:
        """Return the next log id (``log-1``, ``log-2``, ...)."""
        return f"log-{next(self._log_ids)}"

    def reset(self) -> None:
        """Re-seed both counters to their starting values."""
        self._pids = count(start=self._first_pid)
        self._log_ids = count(start=1)
