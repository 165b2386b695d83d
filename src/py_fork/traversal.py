"""Tree traversals over the process tree.

The process tree is an ordinary n-ary tree, so the classic traversals
apply directly:

- **Pre-order** — a node before its children.  This is fork order: a
  parent always exists before anything it creates.
- **Post-order** — children before their parent.  This is exit order
  under proper ``wait()``: a parent finishes only after its subtree.
- **Level-order** — breadth first, one depth at a time.  With fork-all,
  each level is one fork round.

The functions are stateless and iterative.  ``TraversalCursor`` adds a
step-through player on top for viewers that animate a traversal.
"""

from __future__ import annotations

from collections import deque
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from py_fork.process.node import ProcessNode


class TraversalOrder(StrEnum):
    """The three traversal orders."""

    PREORDER = "preorder"
    POSTORDER = "postorder"
    LEVELORDER = "levelorder"


def preorder(root: ProcessNode | None) -> list[ProcessNode]:
    """Return nodes with each parent before its children."""
    if root is None:
        return []
    result: list[ProcessNode] = []
    stack = [root]
    while stack:
        node = stack.pop()
        result.append(node)
        stack.extend(reversed(node.children))
    return result


def postorder(root: ProcessNode | None) -> list[ProcessNode]:
    """Return nodes with all children before their parent."""
    if root is None:
        return []
    result: list[ProcessNode] = []
    stack: list[tuple[ProcessNode, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if expanded:
            result.append(node)
            continue
        stack.append((node, True))
        stack.extend((child, False) for child in reversed(node.children))
    return result


def level_order(root: ProcessNode | None) -> list[ProcessNode]:
    """Return nodes breadth first, left to right within each level."""
    if root is None:
        return []
    result: list[ProcessNode] = []
    queue = deque([root])
    while queue:
        node = queue.popleft()
        result.append(node)
        queue.extend(node.children)
    return result


def traverse(root: ProcessNode | None, order: TraversalOrder) -> list[ProcessNode]:
    """Return the nodes of *root* in the given *order*."""
    match order:
        case TraversalOrder.PREORDER:
            return preorder(root)
        case TraversalOrder.POSTORDER:
            return postorder(root)
        case TraversalOrder.LEVELORDER:
            return level_order(root)


class TraversalCursor:
    """Step forwards and backwards through a precomputed traversal.

    The cursor starts *before* the first node (position -1) and is
    clamped to ``[-1, len(path) - 1]``.
    """

    def __init__(self) -> None:
        """Create an empty cursor."""
        self._path: list[ProcessNode] = []
        self._position = -1
        self._order: TraversalOrder | None = None

    @property
    def path(self) -> list[ProcessNode]:
        """Return the full traversal."""
        return list(self._path)

    @property
    def order(self) -> TraversalOrder | None:
        """Return the order of the current traversal, if started."""
        return self._order

    @property
    def position(self) -> int:
        """Return the index of the current node (-1 before the first)."""
        return self._position

    @property
    def current(self) -> ProcessNode | None:
        """Return the node at the cursor, or None."""
        if 0 <= self._position < len(self._path):
            return self._path[self._position]
        return None

    @property
    def visited(self) -> list[ProcessNode]:
        """Return the nodes up to and including the cursor."""
        return self._path[: self._position + 1]

    @property
    def finished(self) -> bool:
        """Return True when the cursor is on the last node."""
        return bool(self._path) and self._position == len(self._path) - 1

    def start(self, root: ProcessNode | None, order: TraversalOrder) -> list[ProcessNode]:
        """Compute a traversal of *root* and rewind to before its first node."""
        self._path = traverse(root, order)
        self._order = order
        self._position = -1
        return list(self._path)

    def next(self) -> ProcessNode | None:
        """Advance one node and return it (stays on the last node)."""
        self._position = min(self._position + 1, len(self._path) - 1)
        return self.current

    def prev(self) -> ProcessNode | None:
        """Step back one node and return it (None before the first)."""
        self._position = max(self._position - 1, -1)
        return self.current

    def reset(self) -> None:
        """Forget the traversal."""
        self._path = []
        self._order = None
        self._position = -1
