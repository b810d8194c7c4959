"""Exception hierarchy for graph construction and execution.

Every failure surfaced by the executor is a SynapticError subclass:
- GraphError: invalid graph structure or unknown runtime target
- GraphRecursionError: step limit exceeded
- NodeError: a node's process() raised
- CheckpointerError: persistence or state (de)serialization failed
- GraphInterrupt: an interrupt_before / interrupt_after set matched
- GraphCancelled: the invocation observed its cancel event
"""

from __future__ import annotations

from typing import Any
from typing import Optional


class SynapticError(Exception):
    """Base class for all executor errors."""


class GraphError(SynapticError, ValueError):
    """Graph validation failed, or a runtime target does not exist."""


class GraphRecursionError(GraphError):
    """Raised when an invocation runs more steps than its recursion limit."""

    def __init__(self, limit: int):
        super().__init__(
            f"Recursion limit of {limit} steps reached without hitting END. "
            "Increase RunConfig.recursion_limit or check the graph for an "
            "unbounded loop."
        )
        self.limit = limit


class NodeError(SynapticError):
    """A node failed while processing state.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, node: str, message: str):
        super().__init__(f"Node '{node}' failed: {message}")
        self.node = node


class CheckpointerError(SynapticError):
    """The checkpointer failed to persist or load a checkpoint."""


class GraphInterrupt(SynapticError):
    """Execution halted at an interrupt point.

    Not a failure: the caller may inspect state with ``get_state`` and
    resume by invoking the graph again on the same thread.

    Attributes:
        mode: "before" or "after"
        node: Node at which the interrupt fired
        state: Accumulated state at the interrupt point
        checkpoint_id: Checkpoint recorded for the interrupt, if any
    """

    def __init__(
        self,
        mode: str,
        node: str,
        state: Any = None,
        checkpoint_id: Optional[str] = None,
    ):
        super().__init__(f"Interrupted {mode} node '{node}'")
        self.mode = mode
        self.node = node
        self.state = state
        self.checkpoint_id = checkpoint_id


class GraphCancelled(SynapticError):
    """The invocation was cancelled between steps.

    ``state`` reflects only steps whose checkpoints were persisted.
    """

    def __init__(self, node: Optional[str], state: Any = None):
        where = f"before node '{node}'" if node else "at start"
        super().__init__(f"Graph execution cancelled {where}")
        self.node = node
        self.state = state
