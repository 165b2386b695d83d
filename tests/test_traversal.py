"""Tests for tree traversals and the step-through cursor.

After two fork-all rounds the tree is::

    1001
    ├── 1002
    │   └── 1004
    └── 1003

Pre-order is fork order, post-order is proper exit order, and
level-order lists one fork round per level.
"""

import pytest

from py_fork.engine import LifecycleEngine
from py_fork.process.node import ProcessNode
from py_fork.traversal import (
    TraversalCursor,
    TraversalOrder,
    level_order,
    postorder,
    preorder,
    traverse,
)

PREORDER = [1001, 1002, 1004, 1003]
POSTORDER = [1004, 1002, 1003, 1001]
LEVELORDER = [1001, 1002, 1003, 1004]


def _root() -> ProcessNode:
    """Return the root of a two-round fork-all tree."""
    engine = LifecycleEngine()
    engine.create_root()
    engine.fork_all()
    engine.fork_all()
    assert engine.root is not None
    return engine.root


def _pids(nodes: list[ProcessNode]) -> list[int]:
    """Return the pids of *nodes*."""
    return [n.pid for n in nodes]


class TestTraversals:
    """Verify the three orders."""

    def test_preorder(self) -> None:
        """Parents before children."""
        assert _pids(preorder(_root())) == PREORDER

    def test_postorder(self) -> None:
        """Children before parents."""
        assert _pids(postorder(_root())) == POSTORDER

    def test_level_order(self) -> None:
        """One depth at a time."""
        assert _pids(level_order(_root())) == LEVELORDER

    @pytest.mark.parametrize(
        ("order", "expected"),
        [
            (TraversalOrder.PREORDER, PREORDER),
            (TraversalOrder.POSTORDER, POSTORDER),
            (TraversalOrder.LEVELORDER, LEVELORDER),
        ],
    )
    def test_traverse_dispatch(self, order: TraversalOrder, expected: list[int]) -> None:
        """traverse() picks the matching function."""
        assert _pids(traverse(_root(), order)) == expected

    def test_empty_tree(self) -> None:
        """No root, no nodes."""
        assert traverse(None, TraversalOrder.PREORDER) == []


class TestTraversalCursor:
    """Verify stepping through a traversal."""

    def test_starts_before_first_node(self) -> None:
        """Nothing is current until next() is called."""
        cursor = TraversalCursor()
        cursor.start(_root(), TraversalOrder.LEVELORDER)
        assert cursor.position == -1
        assert cursor.current is None
        assert cursor.visited == []
        assert cursor.order is TraversalOrder.LEVELORDER

    def test_next_walks_and_clamps(self) -> None:
        """next() stops on the last node."""
        cursor = TraversalCursor()
        cursor.start(_root(), TraversalOrder.PREORDER)
        seen = [cursor.next() for _ in PREORDER]
        assert _pids([n for n in seen if n is not None]) == PREORDER
        assert cursor.finished
        last = cursor.next()
        assert last is not None
        assert last.pid == PREORDER[-1]

    def test_prev_clamps_before_first(self) -> None:
        """prev() goes back to the start and no further."""
        cursor = TraversalCursor()
        cursor.start(_root(), TraversalOrder.PREORDER)
        cursor.next()
        cursor.next()
        previous = cursor.prev()
        assert previous is not None
        assert previous.pid == PREORDER[0]
        assert cursor.prev() is None
        assert cursor.prev() is None
        assert cursor.position == -1

    def test_visited_grows_with_cursor(self) -> None:
        """Visited is every node up to the cursor."""
        cursor = TraversalCursor()
        cursor.start(_root(), TraversalOrder.POSTORDER)
        cursor.next()
        cursor.next()
        assert _pids(cursor.visited) == POSTORDER[:2]

    def test_reset(self) -> None:
        """Reset forgets the traversal."""
        cursor = TraversalCursor()
        cursor.start(_root(), TraversalOrder.PREORDER)
        cursor.next()
        cursor.reset()
        assert cursor.path == []
        assert cursor.order is None
        assert not cursor.finished
