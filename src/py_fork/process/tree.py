"""Process tree store — the authoritative set of simulated processes.

The store is an arena: a dict from pid to node, plus each node's own
ordered list of children.  Lookup and update are O(1); only whole-tree
queries walk the structure.

Shape of a tree::

    init (pid 1, permanent)
    ├── root (pid 1001, depth 0)
    │   ├── 1002
    │   └── 1003
    └── 1004   ← adopted orphan, moved under init when its parent exited

Init is not part of the simulation: it never appears in ``all_nodes()``
and is never the start of an ancestor chain.  Adopted orphans become
additional top-level subtrees (depth 0) after the root.
"""

from __future__ import annotations

from py_fork.errors import NotFound
from py_fork.process.node import INIT_PID, ProcessNode, ProcessState


class ProcessTree:
    """In-memory arena of process nodes keyed by pid."""

    def __init__(self) -> None:
        """Create an empty store (no init, no root)."""
        self._nodes: dict[int, ProcessNode] = {}
        self._init: ProcessNode | None = None
        self._root: ProcessNode | None = None

    @property
    def init(self) -> ProcessNode | None:
        """Return the init sentinel, or None before a root exists."""
        return self._init

    @property
    def root(self) -> ProcessNode | None:
        """Return the simulation root, or None before ``create_root``."""
        return self._root

    @property
    def size(self) -> int:
        """Return the number of simulated processes (init excluded)."""
        return len(self._nodes) - (1 if self._init is not None else 0)

    def __contains__(self, pid: object) -> bool:
        """Return True if *pid* names a node (init included)."""
        return pid in self._nodes

    # -- Mutations -------------------------------------------------------------

    def create_root(self, *, pid: int, created_at: float = 0.0) -> ProcessNode:
        """Replace any existing tree with init plus a fresh root.

        Args:
            pid: Pid for the root process.
            created_at: Creation timestamp for both nodes.

        Returns:
            The new root process.

        """
        self.clear()
        init = ProcessNode(pid=INIT_PID, ppid=0, depth=-1, created_at=created_at)
        root = ProcessNode(pid=pid, ppid=INIT_PID, depth=0, created_at=created_at)
        init.add_child(root)
        self._nodes[INIT_PID] = init
        self._nodes[pid] = root
        self._init = init
        self._root = root
        return root

    def clear(self) -> None:
        """Discard every node, init included."""
        self._nodes.clear()
        self._init = None
        self._root = None

    def attach(
        self,
        parent: ProcessNode,
        *,
        pid: int,
        fork_level: int = 0,
        created_at: float = 0.0,
    ) -> ProcessNode:
        """Create a RUNNING child of *parent* and add it to the arena.

        Raises:
            ValueError: If *pid* is already in use.

        """
        if pid in self._nodes:
            msg = f"PID {pid} is already in use"
            raise ValueError(msg)
        child = ProcessNode(
            pid=pid,
            ppid=parent.pid,
            depth=parent.depth + 1,
            fork_level=fork_level,
            created_at=created_at,
        )
        parent.add_child(child)
        self._nodes[pid] = child
        return child

    def adopt(self, child: ProcessNode) -> None:
        """Re-parent an active *child* to init as an orphan.

        The child leaves its old parent's children list, joins init's,
        and its whole subtree is re-depthed so the child sits at depth 0.
        """
        assert self._init is not None  # noqa: S101
        old_parent = self._nodes.get(child.ppid)
        if old_parent is not None:
            old_parent.remove_child(child)
        child.orphan()
        self._init.add_child(child)
        self._shift_depths(child, depth=0)

    def _shift_depths(self, top: ProcessNode, *, depth: int) -> None:
        stack = [(top, depth)]
        while stack:
            node, d = stack.pop()
            node.set_depth(d)
            stack.extend((c, d + 1) for c in node.children)

    # -- Queries ---------------------------------------------------------------

    def find(self, pid: int) -> ProcessNode | None:
        """Return the node with *pid*, or None."""
        return self._nodes.get(pid)

    def require(self, pid: int) -> ProcessNode:
        """Return the node with *pid*.

        Raises:
            NotFound: If no such process exists.

        """
        node = self._nodes.get(pid)
        if node is None:
            msg = f"Process {pid} not found"
            raise NotFound(msg, pid=pid)
        return node

    def parent_of(self, node: ProcessNode) -> ProcessNode | None:
        """Return the node's current parent (init for orphans), or None."""
        return self._nodes.get(node.ppid)

    def all_nodes(self) -> list[ProcessNode]:
        """Return every simulated process in pre-order.

        The root subtree comes first, then each adopted orphan's subtree
        in adoption order.
        """
        if self._init is None:
            return []
        result: list[ProcessNode] = []
        stack = list(reversed(self._init.children))
        while stack:
            node = stack.pop()
            result.append(node)
            stack.extend(reversed(node.children))
        return result

    def all_running(self) -> list[ProcessNode]:
        """Return schedulable processes (running and orphan) in pre-order."""
        return [n for n in self.all_nodes() if n.state.is_active]

    def with_state(self, state: ProcessState) -> list[ProcessNode]:
        """Return processes in exactly *state*, in pre-order."""
        return [n for n in self.all_nodes() if n.state is state]

    def ancestor_chain(self, pid: int) -> list[int]:
        """Return pids from the top of *pid*'s subtree down to *pid*.

        For processes under the root the chain starts at the root.  For
        processes under an adopted orphan it starts at that orphan, since
        init is not part of the simulation.  Returns ``[]`` for an
        unknown pid or for init itself.
        """
        node = self._nodes.get(pid)
        if node is None or node.is_init:
            return []
        chain: list[int] = []
        seen: set[int] = set()
        while node is not None and not node.is_init and node.pid not in seen:
            seen.add(node.pid)
            chain.append(node.pid)
            node = self._nodes.get(node.ppid)
        chain.reverse()
        return chain

    def level_counts(self) -> dict[int, int]:
        """Return the number of processes at each depth."""
        counts: dict[int, int] = {}
        for node in self.all_nodes():
            counts[node.depth] = counts.get(node.depth, 0) + 1
        return counts
