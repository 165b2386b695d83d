"""Tests for the tab-completion engine.

The Completer class provides context-aware completion for the py-fork
shell.  Its logic is pure (no I/O) — it analyses the input line and
returns candidate strings, making it fully testable without readline.
"""

from unittest.mock import patch

from py_fork.completer import Completer
from py_fork.shell import Shell

ROOT_PID = 1001
CHILD_PID = 1002


def _forked_shell() -> Shell:
    """Create a shell with root 1001 and child 1002."""
    shell = Shell()
    shell.execute("create")
    shell.execute("forkall")
    return shell


class TestCommandCompletion:
    """Verify completion of command names (first word on the line)."""

    def test_empty_line_returns_all_commands(self) -> None:
        """Pressing Tab on a blank line should list every command."""
        shell = Shell()
        assert set(Completer(shell).completions("", "")) == set(shell.command_names)

    def test_partial_match(self) -> None:
        """A prefix returns only matching commands."""
        candidates = Completer(Shell()).completions("fo", "fo")
        assert candidates == ["fork", "forkall"]

    def test_no_match(self) -> None:
        """An unknown prefix completes to nothing."""
        assert Completer(Shell()).completions("zz", "zz") == []


class TestArgumentCompletion:
    """Verify completion of pids and keywords."""

    def test_pid_completion(self) -> None:
        """Live pids complete after fork."""
        completer = Completer(_forked_shell())
        assert completer.completions("", "fork ") == [str(ROOT_PID), str(CHILD_PID)]

    def test_pid_prefix(self) -> None:
        """A partial pid narrows the list."""
        completer = Completer(_forked_shell())
        assert completer.completions("1002", "wait 1002") == [str(CHILD_PID)]

    def test_active_only_for_lifecycle_commands(self) -> None:
        """Exited processes are not offered to exit, but are offered to path."""
        shell = _forked_shell()
        shell.execute(f"exit {CHILD_PID}")
        completer = Completer(shell)
        assert completer.completions("", "exit ") == [str(ROOT_PID)]
        assert completer.completions("", "path ") == [str(ROOT_PID), str(CHILD_PID)]

    def test_traverse_keywords(self) -> None:
        """traverse completes the three orders."""
        completer = Completer(Shell())
        assert completer.completions("p", "traverse p") == ["postorder", "preorder"]

    def test_commands_without_arguments(self) -> None:
        """Nothing to complete after ps."""
        assert Completer(_forked_shell()).completions("", "ps ") == []


class TestReadlineCallback:
    """Verify the readline-facing complete() method."""

    def test_complete_walks_candidates(self) -> None:
        """State indexes the candidate list until exhausted."""
        completer = Completer(Shell())
        with patch("py_fork.completer.readline.get_line_buffer", return_value="fo"):
            assert completer.complete("fo", 0) == "fork"
            assert completer.complete("fo", 1) == "forkall"
            assert completer.complete("fo", 2) is None
