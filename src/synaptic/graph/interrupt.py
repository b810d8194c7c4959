"""Human-in-the-loop interrupt modes for graph execution."""

from __future__ import annotations

from enum import Enum


class InterruptMode(str, Enum):
    """When to interrupt execution for human-in-the-loop.

    Interrupts halt graph execution at specific nodes to enable human review,
    approval, or state edits before continuing. With a checkpointer attached
    the run resumes by invoking the graph again on the same thread.

    Example:
        ```python
        from synaptic.graph import InterruptMode, StateGraph

        builder = StateGraph(MyState)
        ...
        builder.add_interrupt("critical_node", InterruptMode.AFTER)
        ```
    """

    BEFORE = "before"  # Interrupt before node execution
    AFTER = "after"  # Interrupt after node execution
    BOTH = "both"  # Interrupt both before and after node execution
