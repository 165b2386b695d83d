"""Fork program simulator — step through a small C program on the engine.

Learners usually meet ``fork()`` as a few lines of C::

    int main() {
        fork();
        fork();
        wait(NULL);     // parent
        exit(0);        // child
    }

This module reads such a program line by line, keeps the statements
that matter to the process tree, and replays them on a
``LifecycleEngine``:

- ``fork()`` — every running process forks (``fork_all``), so ``n``
  forks yield ``2**n`` processes.
- ``wait(...)`` / ``waitpid(...)`` — the first process (in fork order)
  that has a child to collect calls ``wait``.
- ``exit(...)`` — the deepest active leaf exits; with a ``// parent``
  hint the root exits instead, orphaning its children.
- ``sleep``, ``printf``, ``main()`` — noted in the log, no state change.

It is a teaching aid, not a C interpreter: there is no control flow,
and ``if (pid == 0)`` branches are expressed with ``// child`` and
``// parent`` comments on the statement line.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from py_fork.autoscheduler import BottomUpPolicy
from py_fork.errors import ProgramError

if TYPE_CHECKING:
    from py_fork.engine import LifecycleEngine
    from py_fork.process.node import ProcessNode

_EXIT_CALL = re.compile(r"\bexit\s*\(")
_COMMENT_PREFIXES = ("//", "/*", "*")


class StatementKind(StrEnum):
    """Statements the simulator understands."""

    START = "start"
    FORK = "fork"
    WAIT = "wait"
    EXIT = "exit"
    SLEEP = "sleep"
    PRINT = "print"


class Target(StrEnum):
    """Which process a statement is meant for."""

    PARENT = "parent"
    CHILD = "child"
    ANY = "any"


@dataclass(frozen=True)
class Statement:
    """One executable line of a fork program.

    Attributes:
        kind: What the line does.
        target: Which process it applies to (from a comment hint).
        line_number: 1-based source line.
        code: The stripped source text.
        explanation: What the line means for the process tree.

    """

    kind: StatementKind
    target: Target
    line_number: int
    code: str
    explanation: str

    def __str__(self) -> str:
        """Format as ``  3: fork();``."""
        return f"{self.line_number:>3}: {self.code}"


def _target_hint(line: str) -> Target:
    lower = line.lower().replace(" ", "")
    if "//child" in lower:
        return Target.CHILD
    if "//parent" in lower:
        return Target.PARENT
    return Target.ANY


def _classify(code: str, fork_calls: int) -> tuple[StatementKind, str] | None:
    """Return the kind and explanation for a source line, or None."""
    if "fork()" in code:
        before, after = 2 ** (fork_calls - 1), 2**fork_calls
        return (
            StatementKind.FORK,
            f"fork() #{fork_calls}: each of the {before} running processes creates one "
            f"child → {after} processes. Returns 0 to the child, the child's PID to the parent.",
        )
    if "wait(" in code or "waitpid(" in code:
        return (
            StatementKind.WAIT,
            "wait() blocks until a child exits, or reaps a zombie child immediately.",
        )
    if _EXIT_CALL.search(code):
        return (
            StatementKind.EXIT,
            "exit() ends the process: a zombie if the parent is not waiting, "
            "and any running children become orphans adopted by init.",
        )
    if "sleep(" in code:
        return StatementKind.SLEEP, "sleep() pauses the process; it stays alive."
    if "printf" in code or "print(" in code:
        return (
            StatementKind.PRINT,
            "Every process that reaches this line prints; the order is up to the scheduler.",
        )
    if "main(" in code:
        return StatementKind.START, "The program starts as a single process."
    return None


def parse_program(source: str) -> list[Statement]:
    """Extract the executable statements of *source*, in line order."""
    statements: list[Statement] = []
    fork_calls = 0
    for line_number, line in enumerate(source.splitlines(), start=1):
        code = line.strip()
        if not code or code.startswith(_COMMENT_PREFIXES):
            continue
        if "fork()" in code:
            fork_calls += 1
        classified = _classify(code, fork_calls)
        if classified is None:
            continue
        kind, explanation = classified
        statements.append(
            Statement(
                kind=kind,
                target=_target_hint(line),
                line_number=line_number,
                code=code,
                explanation=explanation,
            )
        )
    return statements


class ProgramRunner:
    """Replay a parsed fork program on an engine, one statement per step."""

    def __init__(self, engine: LifecycleEngine) -> None:
        """Create a runner with no program loaded."""
        self._engine = engine
        self._policy = BottomUpPolicy()
        self._statements: list[Statement] = []
        self._index = 0
        self._error: ProgramError | None = None

    @property
    def statements(self) -> list[Statement]:
        """Return the loaded statements."""
        return list(self._statements)

    @property
    def index(self) -> int:
        """Return the index of the next statement to run."""
        return self._index

    @property
    def current(self) -> Statement | None:
        """Return the statement executed most recently, if any."""
        if self._index == 0 or not self._statements:
            return None
        return self._statements[self._index - 1]

    @property
    def complete(self) -> bool:
        """Return True once every statement has run."""
        return bool(self._statements) and self._index >= len(self._statements)

    @property
    def error(self) -> ProgramError | None:
        """Return the load error, if the last ``load`` failed."""
        return self._error

    def load(self, source: str) -> list[Statement]:
        """Parse *source*, reset the engine, and create the root process.

        Returns:
            The parsed statements, or ``[]`` if nothing was executable.

        """
        self._statements = []
        self._index = 0
        self._error = None
        statements = parse_program(source)
        if not statements:
            self._error = ProgramError(
                "No executable statements found. Use fork(), wait(), or exit()."
            )
            self._engine.log.error(str(self._error))
            return []
        root = self._engine.create_root()
        self._engine.log.info(f"Program started with PID {root.pid}", pid=root.pid)
        self._statements = statements
        return list(statements)

    def step(self) -> Statement | None:
        """Execute the next statement and return it, or None when done."""
        if self._index >= len(self._statements):
            return None
        statement = self._statements[self._index]
        self._index += 1
        match statement.kind:
            case StatementKind.FORK:
                self._engine.fork_all()
            case StatementKind.WAIT:
                self._wait()
            case StatementKind.EXIT:
                self._exit(statement.target)
            case StatementKind.START | StatementKind.SLEEP | StatementKind.PRINT:
                self._engine.log.info(f"line {statement.line_number}: {statement.code}")
        return statement

    def run(self) -> list[Statement]:
        """Execute every remaining statement."""
        executed: list[Statement] = []
        while (statement := self.step()) is not None:
            executed.append(statement)
        return executed

    def _wait(self) -> None:
        caller = next(
            (
                n
                for n in self._engine.all_nodes()
                if n.state.is_active
                and (n.first_zombie_child() is not None or n.has_active_children())
            ),
            None,
        )
        if caller is None:
            self._engine.log.warning("wait(): no process has a child to wait for")
            return
        self._engine.wait(caller.pid)

    def _exit(self, target: Target) -> None:
        root = self._engine.root
        if target is Target.PARENT and root is not None and root.state.is_active:
            self._engine.exit(root.pid)
            return
        leaf = self._deepest_leaf()
        if leaf is None:
            self._engine.log.warning("exit(): no running process left to exit")
            return
        self._engine.exit(leaf.pid)

    def _deepest_leaf(self) -> ProcessNode | None:
        leaves = self._policy.exit_candidates(self._engine.tree)
        if not leaves:
            return None
        return max(leaves, key=lambda n: n.depth)
