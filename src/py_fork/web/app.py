"""Flask application factory for the py-fork web API.

The ``create_app`` function creates an engine and a shell and returns a
Flask app with these endpoints:

- ``GET /`` — a summary of the session (counts, fork rounds, time).
- ``POST /api/execute`` — execute a shell command and return JSON.
- ``POST /api/program`` — load fork-program source text.
- ``GET /api/tree`` — the whole tree, rooted at init, as nested JSON.
- ``GET /api/log`` — audit log entries, optionally filtered.
- ``GET /api/history`` — execution intervals for a Gantt-style chart.
- ``POST /api/tick`` — run one auto-scheduler tick.

Set ``PY_FORK_PORT`` to change the port ``main`` listens on.
"""

from __future__ import annotations

import os

from flask import Flask, Response, jsonify, request

from py_fork.engine import LifecycleEngine
from py_fork.logging import LogType
from py_fork.shell import Shell

_HTTP_BAD_REQUEST = 400
_DEFAULT_PORT = 8080


def create_app(engine: LifecycleEngine | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        engine: The session to serve.  A fresh engine is created when
            omitted.

    Returns:
        A configured Flask application ready to serve.

    """
    engine = engine if engine is not None else LifecycleEngine()
    shell = Shell(engine=engine)

    app = Flask(__name__)

    @app.route("/")
    def index() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return a summary of the session."""
        return jsonify(engine.to_dict() | {"commands": shell.command_names})

    @app.route("/api/execute", methods=["POST"])
    def execute() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Execute a shell command and return JSON output.

        Expects JSON body: ``{"command": "..."}``

        Returns:
            JSON with ``output`` and ``error`` fields.

        """
        data = request.get_json(silent=True)
        if data is None or "command" not in data:
            return jsonify({"error": "Missing 'command' field"}), _HTTP_BAD_REQUEST

        command: str = data["command"]
        result = shell.execute(command)
        if result == Shell.EXIT_SENTINEL:
            # Nothing to leave over HTTP; the session stays up.
            return jsonify({"output": "", "error": None})
        error = result.removeprefix("Error: ") if result.startswith("Error: ") else None
        return jsonify({"output": result, "error": error})

    @app.route("/api/program", methods=["POST"])
    def program() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Load a fork program from the JSON body ``{"source": "..."}``."""
        data = request.get_json(silent=True)
        if data is None or "source" not in data:
            return jsonify({"error": "Missing 'source' field"}), _HTTP_BAD_REQUEST
        return jsonify({"output": shell.load_program(data["source"])})

    @app.route("/api/tree")
    def tree() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the tree rooted at init, or null before a session starts."""
        return jsonify(engine.to_dict())

    @app.route("/api/log")
    def log() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Return audit log entries.

        Query parameters:
            type: Minimum severity (``info``, ``warning``, ``error``).
            pid: Only entries about this process.

        """
        min_type: LogType | None = None
        pid: int | None = None
        raw_type = request.args.get("type")
        raw_pid = request.args.get("pid")
        try:
            if raw_type is not None:
                min_type = LogType(raw_type)
            if raw_pid is not None:
                pid = int(raw_pid)
        except ValueError as e:
            return jsonify({"error": str(e)}), _HTTP_BAD_REQUEST
        entries = engine.log.filter(min_type=min_type, pid=pid)
        return jsonify([e.to_dict() for e in entries])

    @app.route("/api/history")
    def history() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return execution intervals and the current logical time."""
        return jsonify(
            {
                "time": engine.clock.time,
                "events": [e.to_dict() for e in engine.history.events],
            }
        )

    @app.route("/api/tick", methods=["POST"])
    def tick() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Run one auto-scheduler tick."""
        result = shell.scheduler.tick()
        return jsonify(
            {
                "output": str(result) if result is not None else "Nothing left to schedule.",
                "halted": shell.scheduler.halted,
                "time": engine.clock.time,
            }
        )

    return app


def main() -> None:
    """Run the web API development server.

    This is the ``py-fork-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=int(os.environ.get("PY_FORK_PORT", _DEFAULT_PORT)))
