"""Fixed and conditional edges for graph routing."""

from __future__ import annotations

from typing import Any
from typing import Callable
from typing import Dict
from typing import Optional

# Sentinel constants for graph boundaries
START = "__start__"
END = "__end__"

Router = Callable[[Any], str]


class Edge:
    """Fixed directed edge from ``source`` to ``target``.

    Example:
        ```python
        edge = Edge("analyze", "process")
        edge = Edge("process", END)
        ```
    """

    def __init__(self, source: str, target: str):
        self.source = source
        self.target = target

    def __repr__(self) -> str:
        return f"Edge({self.source!r} -> {self.target!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Edge):
            return NotImplemented
        return (self.source, self.target) == (other.source, other.target)

    def __hash__(self) -> int:
        return hash((self.source, self.target))


class ConditionalEdge:
    """Conditional edge that routes based on state.

    The router is a pure function of the accumulated state returning the next
    node's name (or END). ``path_map`` lists the labels the router may return
    and the node each label stands for; it only feeds introspection and
    rendering, routing always uses the router's return value directly.

    Example:
        ```python
        edge = ConditionalEdge(
            "agent",
            lambda state: "tools" if state.last_message().tool_calls else END,
            path_map={"tools": "tools", END: END},
        )
        ```
    """

    def __init__(
        self,
        source: str,
        router: Router,
        path_map: Optional[Dict[str, str]] = None,
    ):
        """Initialize conditional edge.

        Args:
            source: Name of the source node
            router: Function mapping the current state to the next node name
            path_map: Optional label -> node name mapping for introspection
        """
        self.source = source
        self.router = router
        self.path_map = dict(path_map) if path_map is not None else None

    def route(self, state: Any) -> str:
        """Evaluate the router against ``state``.

        Args:
            state: Accumulated state after the source node's delta was merged

        Returns:
            Name of the next node (or END)
        """
        return self.router(state)

    def __repr__(self) -> str:
        return f"ConditionalEdge({self.source!r}, path_map={self.path_map!r})"
