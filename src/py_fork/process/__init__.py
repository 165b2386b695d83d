"""Process subsystem — nodes, states, and the tree store.

Re-exports public symbols so callers can write::

    from py_fork.process import ProcessNode, ProcessState, ProcessTree
"""

from py_fork.process.node import INIT_PID, ProcessNode, ProcessState
from py_fork.process.tree import ProcessTree

__all__ = [
    "INIT_PID",
    "ProcessNode",
    "ProcessState",
    "ProcessTree",
]
