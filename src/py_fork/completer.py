"""Context-aware tab completer for the py-fork shell.

Candidates depend on where the cursor is: the first word completes to
a command name, ``traverse`` completes to an order, and the lifecycle
commands complete to pids taken from the live tree.

``completions(text, line)`` is pure and takes the whole line, so tests
call it directly.  ``complete(text, state)`` adapts it to readline.
"""

from __future__ import annotations

import readline
from typing import TYPE_CHECKING

from py_fork.traversal import TraversalOrder

if TYPE_CHECKING:
    from py_fork.shell import Shell

# Commands whose single argument is a pid.
_PID_COMMANDS: frozenset[str] = frozenset(["fork", "wait", "exit", "path", "scope"])

# Commands whose pid argument must name an active process.
_ACTIVE_PID_COMMANDS: frozenset[str] = frozenset(["fork", "wait", "exit"])

# Commands that take a fixed set of keywords.
_KEYWORDS: dict[str, list[str]] = {
    "traverse": [str(order) for order in TraversalOrder],
}


class Completer:
    """Context-aware tab completer for the py-fork shell."""

    def __init__(self, shell: Shell) -> None:
        """Create a completer attached to a shell instance.

        Args:
            shell: The shell whose commands and engine are used to
                   generate completion candidates.

        """
        self._shell = shell

    def complete(self, text: str, state: int) -> str | None:
        """Return the *state*-th candidate for *text* (readline callback).

        Args:
            text: The partial word being completed.
            state: Index into the candidate list (0, 1, 2, …).

        Returns:
            The candidate at *state*, or ``None`` when exhausted.

        """
        line = readline.get_line_buffer()
        candidates = self.completions(text, line)
        if state < len(candidates):
            return candidates[state]
        return None

    def completions(self, text: str, line: str) -> list[str]:
        """Return completion candidates based on context.

        Args:
            text: The partial word under the cursor.
            line: The full input line so far.

        Returns:
            Sorted list of matching candidates.

        """
        words = line.lstrip().split()

        # No words yet, or still typing the first word → command completion
        if not words or (len(words) == 1 and not line.endswith(" ")):
            return [cmd for cmd in self._shell.command_names if cmd.startswith(text)]

        cmd = words[0]
        if cmd in _KEYWORDS:
            return sorted(k for k in _KEYWORDS[cmd] if k.startswith(text))
        if cmd in _PID_COMMANDS:
            return self._complete_pids(text, active_only=cmd in _ACTIVE_PID_COMMANDS)
        return []

    def _complete_pids(self, text: str, *, active_only: bool) -> list[str]:
        """Complete pids of live processes."""
        engine = self._shell.engine
        nodes = engine.all_running() if active_only else engine.all_nodes()
        return sorted(str(n.pid) for n in nodes if str(n.pid).startswith(text))
