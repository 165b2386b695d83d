"""The shell — command interpreter for the process-tree simulator.

The shell reads a command string, splits it into a command name and
arguments, dispatches to a handler, and returns a string result.  It is
the text front-end shared by the REPL and the web API: every handler
only calls engine operations and reads engine state.

Design choices:
    - **Returns strings, not prints.**  The shell is fully testable and
      the caller decides how to display output.
    - **Command dispatch via a dict.**  Adding a command means writing
      one method and adding one dict entry.
    - **Failures come from the audit log.**  Engine operations return
      None on failure; the shell reports ``engine.last_error``.
"""

from collections.abc import Callable
from pathlib import Path
from typing import TypeAlias

from py_fork.autoscheduler import AutoScheduler
from py_fork.engine import LifecycleEngine
from py_fork.process.node import INIT_PID, ProcessNode
from py_fork.program import ProgramRunner
from py_fork.traversal import TraversalOrder, traverse

# Type alias for a command handler: takes a list of args, returns output.
_Handler: TypeAlias = Callable[[list[str]], str]

_DEFAULT_LOG_LINES = 10


class Shell:
    """Command interpreter bound to one lifecycle engine."""

    EXIT_SENTINEL = "__EXIT__"

    def __init__(self, *, engine: LifecycleEngine | None = None) -> None:
        """Create a shell.

        Args:
            engine: The session to drive.  A fresh engine is created
                when omitted.

        """
        self._engine = engine if engine is not None else LifecycleEngine()
        self._scheduler = AutoScheduler(self._engine)
        self._program = ProgramRunner(self._engine)

        # Command name -> handler method.
        self._commands: dict[str, _Handler] = {
            "help": self._cmd_help,
            "create": self._cmd_create,
            "fork": self._cmd_fork,
            "forkall": self._cmd_forkall,
            "wait": self._cmd_wait,
            "exit": self._cmd_exit,
            "quit": self._cmd_quit,
            "reset": self._cmd_reset,
            "ps": self._cmd_ps,
            "pstree": self._cmd_pstree,
            "log": self._cmd_log,
            "path": self._cmd_path,
            "scope": self._cmd_scope,
            "step": self._cmd_step,
            "tick": self._cmd_tick,
            "autorun": self._cmd_autorun,
            "history": self._cmd_history,
            "traverse": self._cmd_traverse,
            "program": self._cmd_program,
            "pstep": self._cmd_pstep,
            "run": self._cmd_run,
            "status": self._cmd_status,
        }

    @property
    def engine(self) -> LifecycleEngine:
        """Return the engine this shell drives."""
        return self._engine

    @property
    def scheduler(self) -> AutoScheduler:
        """Return the auto-scheduler bound to the engine."""
        return self._scheduler

    @property
    def command_names(self) -> list[str]:
        """Return the names of all available commands, sorted."""
        return sorted(self._commands)

    def execute(self, command: str) -> str:
        """Parse and execute a command string.

        Args:
            command: Raw input such as ``"fork 1001"``.

        Returns:
            The command's output, ``""`` for blank input, or
            ``EXIT_SENTINEL`` when the user asked to quit.

        """
        parts = command.split()
        if not parts:
            return ""
        name, args = parts[0].lower(), parts[1:]
        handler = self._commands.get(name)
        if handler is None:
            return f"Unknown command: {name}"
        return handler(args)

    # -- Helpers ---------------------------------------------------------------

    def _error(self) -> str:
        error = self._engine.last_error
        return f"Error: {error}" if error is not None else "Error: operation failed"

    @staticmethod
    def _parse_pid(args: list[str], usage: str) -> int | str:
        """Return the pid in ``args[0]`` or an error string."""
        if not args:
            return usage
        try:
            return int(args[0])
        except ValueError:
            return f"Error: invalid PID '{args[0]}'"

    @staticmethod
    def _describe(node: ProcessNode) -> str:
        return f"PID {node.pid} (ppid {node.ppid}) is {node.state}"

    # -- Lifecycle commands ----------------------------------------------------

    def _cmd_help(self, _args: list[str]) -> str:
        """List available commands."""
        return "Available commands: " + ", ".join(self.command_names)

    def _cmd_create(self, _args: list[str]) -> str:
        """Start a new session with a single root process."""
        root = self._engine.create_root()
        self._scheduler.reset()
        return f"Created root process PID {root.pid} (parent: init PID {INIT_PID})"

    def _cmd_fork(self, args: list[str]) -> str:
        """Fork one process."""
        pid = self._parse_pid(args, "Usage: fork <pid>")
        if isinstance(pid, str):
            return pid
        had_root = self._engine.root is not None
        child = self._engine.fork_one(pid)
        if child is None:
            return self._error()
        if not had_root:
            return f"No tree yet: created root process PID {child.pid}"
        return f"Forked PID {pid} → child PID {child.pid}"

    def _cmd_forkall(self, _args: list[str]) -> str:
        """Fork every running process once."""
        had_root = self._engine.root is not None
        created = self._engine.fork_all()
        if not had_root:
            return f"No tree yet: created root process PID {created[0].pid}"
        if not created:
            return "No running processes to fork."
        rounds = self._engine.fork_count
        total = len(self._engine.all_running())
        pids = ", ".join(str(c.pid) for c in created)
        return (
            f"fork() #{rounds}: {len(created)} new processes ({pids})\n"
            f"Running: {total} (expected 2^{rounds} = {self._engine.expected_process_count})"
        )

    def _cmd_wait(self, args: list[str]) -> str:
        """Call wait() from a process."""
        pid = self._parse_pid(args, "Usage: wait <pid>")
        if isinstance(pid, str):
            return pid
        result = self._engine.wait(pid)
        if result is None:
            return self._error()
        if result.pid == pid:
            return f"PID {pid} is waiting for its children"
        return f"PID {pid} reaped zombie PID {result.pid}"

    def _cmd_exit(self, args: list[str]) -> str:
        """Exit a process, or leave the shell when no pid is given."""
        if not args:
            return self.EXIT_SENTINEL
        pid = self._parse_pid(args, "Usage: exit [pid]")
        if isinstance(pid, str):
            return pid
        node = self._engine.exit(pid)
        if node is None:
            return self._error()
        return self._describe(node)

    def _cmd_quit(self, _args: list[str]) -> str:
        """Leave the shell."""
        return self.EXIT_SENTINEL

    def _cmd_reset(self, _args: list[str]) -> str:
        """Discard the whole session."""
        self._engine.reset()
        self._scheduler.reset()
        return "Session reset."

    # -- Inspection commands ---------------------------------------------------

    def _cmd_ps(self, _args: list[str]) -> str:
        """List every process."""
        nodes = self._engine.all_nodes()
        if not nodes:
            return "No processes."
        lines = [f"{'PID':<6} {'PPID':<6} {'STATE':<11} {'DEPTH':<6} LEVEL"]
        lines.extend(
            f"{n.pid:<6} {n.ppid:<6} {n.state!s:<11} {n.depth:<6} {n.fork_level}" for n in nodes
        )
        return "\n".join(lines)

    def _cmd_pstree(self, _args: list[str]) -> str:
        """Show the process tree under init."""
        init = self._engine.init
        if init is None:
            return "No processes."
        lines = [f"init (pid {init.pid})"]

        def _walk(node: ProcessNode, prefix: str, *, is_last: bool) -> None:
            connector = "└── " if is_last else "├── "
            lines.append(f"{prefix}{connector}{node.pid} [{node.state}]")
            kids = node.children
            extension = "    " if is_last else "│   "
            for i, child in enumerate(kids):
                _walk(child, prefix + extension, is_last=i == len(kids) - 1)

        top = init.children
        for i, node in enumerate(top):
            _walk(node, "", is_last=i == len(top) - 1)
        return "\n".join(lines)

    def _cmd_log(self, args: list[str]) -> str:
        """Show the most recent audit log entries."""
        count = _DEFAULT_LOG_LINES
        if args:
            try:
                count = int(args[0])
            except ValueError:
                return f"Error: invalid count '{args[0]}'"
        entries = self._engine.log.tail(count)
        if not entries:
            return "Log is empty."
        return "\n".join(str(e) for e in entries)

    def _cmd_status(self, _args: list[str]) -> str:
        """Summarise the session."""
        if self._engine.root is None:
            return "No tree. Use 'create' or 'forkall' to start."
        nodes = self._engine.all_nodes()
        counts: dict[str, int] = {}
        for node in nodes:
            counts[str(node.state)] = counts.get(str(node.state), 0) + 1
        by_state = ", ".join(f"{state}={n}" for state, n in sorted(counts.items()))
        return (
            f"Processes: {len(nodes)} ({by_state})\n"
            f"Fork rounds: {self._engine.fork_count} "
            f"(expected {self._engine.expected_process_count})\n"
            f"Logical time: {self._engine.clock.time}"
        )

    def _cmd_traverse(self, args: list[str]) -> str:
        """Print the root subtree in pre-, post-, or level-order."""
        if not args:
            return "Usage: traverse <preorder|postorder|levelorder>"
        try:
            order = TraversalOrder(args[0].lower())
        except ValueError:
            return f"Error: unknown order '{args[0]}'"
        nodes = traverse(self._engine.root, order)
        if not nodes:
            return "No processes."
        return f"{order}: " + " → ".join(str(n.pid) for n in nodes)

    # -- Scoped execution ------------------------------------------------------

    def _cmd_path(self, args: list[str]) -> str:
        """Show the ancestor chain of a process."""
        pid = self._parse_pid(args, "Usage: path <pid>")
        if isinstance(pid, str):
            return pid
        chain = self._engine.ancestor_chain(pid)
        if not chain:
            return f"Error: Process {pid} not found"
        return " → ".join(str(p) for p in chain)

    def _cmd_scope(self, args: list[str]) -> str:
        """Start a scoped replay up to a process."""
        pid = self._parse_pid(args, "Usage: scope <pid>")
        if isinstance(pid, str):
            return pid
        path = self._engine.start_scoped_execution(pid)
        if not path:
            return self._error()
        return f"Execution path to PID {pid}: " + " → ".join(str(p) for p in path)

    def _cmd_step(self, _args: list[str]) -> str:
        """Execute the next process on the scoped path."""
        scoped = self._engine.scoped
        node = self._engine.execute_next_scoped_step()
        if node is None:
            if scoped.complete:
                return f"Execution already reached PID {scoped.boundary_pid}."
            return "No scoped execution. Use 'scope <pid>' first."
        line = f"Step {scoped.logical_time}/{len(scoped.path)}: PID {node.pid} executing"
        if scoped.complete:
            line += f"\nReached target PID {scoped.boundary_pid}."
        return line

    # -- Auto-scheduler --------------------------------------------------------

    def _cmd_tick(self, _args: list[str]) -> str:
        """Run one auto-scheduler tick."""
        result = self._scheduler.tick()
        if result is None:
            return "Nothing left to schedule."
        return str(result)

    def _cmd_autorun(self, args: list[str]) -> str:
        """Tick until nothing is left (or a tick limit is reached)."""
        limit: int | None = None
        if args:
            try:
                limit = int(args[0])
            except ValueError:
                return f"Error: invalid tick limit '{args[0]}'"
        results = self._scheduler.run(limit)
        if not results:
            return "Nothing left to schedule."
        lines = [str(r) for r in results]
        if self._scheduler.halted:
            lines.append("Auto-run complete.")
        else:
            lines.append(f"Stopped after {len(results)} ticks.")
        return "\n".join(lines)

    def _cmd_history(self, _args: list[str]) -> str:
        """Show execution intervals grouped by process."""
        grouped = self._engine.history.by_pid()
        if not grouped:
            return "No execution history."
        lines: list[str] = []
        for pid in sorted(grouped):
            spans = []
            for event in grouped[pid]:
                end = event.end_time if event.end_time is not None else "…"
                spans.append(f"{event.action}[{event.start_time}-{end}] {event.state}")
            lines.append(f"PID {pid}: " + ", ".join(spans))
        return "\n".join(lines)

    # -- Fork programs ---------------------------------------------------------

    def _cmd_program(self, args: list[str]) -> str:
        """Load a C-like fork program from a file."""
        if not args:
            return "Usage: program <file>"
        try:
            source = Path(args[0]).read_text(encoding="utf-8")
        except OSError as e:
            return f"Error: cannot read {args[0]}: {e.strerror}"
        return self.load_program(source)

    def load_program(self, source: str) -> str:
        """Load program text directly (used by ``program`` and the web API)."""
        statements = self._program.load(source)
        self._scheduler.reset()
        if not statements:
            return f"Error: {self._program.error}"
        lines = [f"Loaded {len(statements)} statements:"]
        lines.extend(f"  {s}" for s in statements)
        return "\n".join(lines)

    def _cmd_pstep(self, _args: list[str]) -> str:
        """Execute the next program statement."""
        statement = self._program.step()
        if statement is None:
            return "Program complete." if self._program.complete else "No program loaded."
        return f"{statement}\n  {statement.explanation}"

    def _cmd_run(self, _args: list[str]) -> str:
        """Execute every remaining program statement."""
        executed = self._program.run()
        if not executed:
            return "Program complete." if self._program.complete else "No program loaded."
        lines = [str(s) for s in executed]
        lines.append(f"Program complete: {len(self._engine.all_nodes())} processes.")
        return "\n".join(lines)
