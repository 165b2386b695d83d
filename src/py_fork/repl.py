"""Interactive REPL (Read-Eval-Print Loop) for the process-tree simulator.

The REPL is the terminal interface.  It creates an engine and a shell
and enters the classic loop:

    1. **Read** — display a prompt and read user input.
    2. **Eval** — pass the command to ``shell.execute()``.
    3. **Print** — display the result.
    4. **Loop** — repeat until the shell returns the exit sentinel.

The shell is fully testable (returns strings, no I/O); the REPL is the
thin I/O wrapper around it.  ``play`` is handled here rather than in
the shell because it paces auto-scheduler ticks in real time, printing
each one as it happens.

Set ``PY_FORK_DEBUG=1`` to see the engine's debug log on stderr.
"""

import logging
import os
import readline
import time
from collections.abc import Callable

from py_fork.autoscheduler import DEFAULT_TICK_INTERVAL_MS
from py_fork.completer import Completer
from py_fork.engine import LifecycleEngine
from py_fork.shell import Shell

_BANNER_WIDTH = 38
_MS_PER_SECOND = 1000


def format_banner() -> str:
    """Return the start-up banner."""
    border = "=" * _BANNER_WIDTH
    return (
        f"\n  {border}\n            py-fork v0.1.0\n"
        f"    fork, wait, exit, zombies, orphans\n  {border}\n\n"
        "Type 'forkall' to start, 'help' for commands, 'exit' to quit.\n"
    )


def build_prompt(engine: LifecycleEngine) -> str:
    """Build the prompt, showing how many processes are alive.

    Returns:
        ``py-fork $ `` before a tree exists, else ``py-fork [3/4] $ ``
        (running / total).

    """
    if engine.root is None:
        return "py-fork $ "
    running = len(engine.all_running())
    total = len(engine.all_nodes())
    return f"py-fork [{running}/{total}] $ "


def play(
    shell: Shell,
    *,
    interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
    sleep: Callable[[float], None] = time.sleep,
    out: Callable[[str], None] = print,
) -> int:
    """Tick the auto-scheduler until it halts, pausing between ticks.

    Args:
        shell: The shell whose scheduler to drive.
        interval_ms: Pause between ticks.
        sleep: Sleep function (injected for tests).
        out: Output function (injected for tests).

    Returns:
        The number of ticks performed.

    """
    ticks = 0
    while (result := shell.scheduler.tick()) is not None:
        out(str(result))
        ticks += 1
        sleep(interval_ms / _MS_PER_SECOND)
    out("Auto-run complete." if ticks else "Nothing left to schedule.")
    return ticks


def _parse_interval(command: str) -> int | None:
    """Return the interval for a ``play [ms]`` command, or None if not one."""
    parts = command.split()
    if not parts or parts[0] != "play":
        return None
    if len(parts) > 1 and parts[1].isdigit():
        return int(parts[1])
    return DEFAULT_TICK_INTERVAL_MS


def run() -> None:
    """Run the interactive REPL.

    This is the ``py-fork`` console entry point.  It handles:
    - Engine and shell creation.
    - The read-eval-print loop (plus the real-time ``play`` command).
    - Graceful handling of Ctrl+C and Ctrl+D.
    """
    if os.environ.get("PY_FORK_DEBUG"):
        logging.basicConfig(level=logging.DEBUG)

    engine = LifecycleEngine()
    shell = Shell(engine=engine)

    # Wire up tab completion via readline.
    completer = Completer(shell)
    readline.set_completer(completer.complete)
    readline.set_completer_delims(" \t")
    readline.parse_and_bind("tab: complete")

    print(format_banner())  # noqa: T201

    try:
        while True:
            try:
                command = input(build_prompt(engine))
            except EOFError:
                # Ctrl+D
                print()  # noqa: T201
                break

            interval = _parse_interval(command)
            if interval is not None:
                play(shell, interval_ms=interval, sleep=time.sleep, out=print)
                continue

            result = shell.execute(command)
            if result == Shell.EXIT_SENTINEL:
                break
            if result:
                print(result)  # noqa: T201

    except KeyboardInterrupt:
        # Ctrl+C
        print("\nInterrupted.")  # noqa: T201

    finally:
        print("Simulation ended.")  # noqa: T201
