"""Fluent builder that validates a graph description and compiles it."""

from __future__ import annotations

import logging
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Union

from ..checkpoints.base_checkpointer import BaseCheckpointer
from ..errors import GraphError
from .compiled_graph import CompiledGraph
from .graph_edge import END
from .graph_edge import START
from .graph_edge import ConditionalEdge
from .graph_edge import Edge
from .graph_edge import Router
from .graph_node import FunctionNode
from .graph_node import Node
from .interrupt import InterruptMode
from .node_cache import CachePolicy
from .run_config import RunConfig

logger = logging.getLogger("synaptic_graph." + __name__)

_RESERVED_NAMES = (START, END)


class StateGraph:
    """Builder for a directed graph of nodes over a mergeable state.

    Methods return ``self`` so calls can be chained. Structural problems that
    involve more than one call (dangling edges, ambiguous routing, a missing
    entry point) are reported by ``compile()``.

    Example:
        ```python
        graph = (
            StateGraph(CounterState)
            .add_node("a", increment)
            .add_node("b", increment)
            .set_entry_point("a")
            .add_edge("a", "b")
            .add_edge("b", END)
            .compile(checkpointer=MemorySaver())
        )
        ```
    """

    def __init__(self, state_schema: Optional[Any] = None):
        """Initialize the builder.

        Args:
            state_schema: Type of the state. Used to (de)serialize checkpoints;
                when omitted it is inferred from the first state the compiled
                graph sees.
        """
        self.state_schema = state_schema
        self.nodes: Dict[str, Node] = {}
        self.edges: List[Edge] = []
        self.conditional_edges: List[ConditionalEdge] = []
        self.entry_point: Optional[str] = None
        self.interrupt_before_nodes: List[str] = []
        self.interrupt_after_nodes: List[str] = []
        self.cache_policies: Dict[str, CachePolicy] = {}

    @staticmethod
    def _check_name(name: Any) -> None:
        if not isinstance(name, str) or not name:
            raise GraphError(f"Node name must be a non-empty string, got {name!r}")
        if name in _RESERVED_NAMES:
            raise GraphError(f"Node name '{name}' is reserved")

    def add_node(
        self,
        name: Union[str, Callable[..., Any]],
        node: Optional[Union[Node, Callable[..., Any]]] = None,
        *,
        cache_policy: Optional[CachePolicy] = None,
    ) -> StateGraph:
        """Register a node; a later node with the same name replaces it.

        Args:
            name: Node name, or a function whose ``__name__`` becomes the name
            node: A Node, or a sync/async callable wrapped in FunctionNode
            cache_policy: Reuse the node's output for identical input states
        """
        if node is None and callable(name):
            node = name
            name = getattr(node, "__name__", "")
        self._check_name(name)
        if node is None:
            raise GraphError(f"No node given for '{name}'")
        if not isinstance(node, Node):
            node = FunctionNode(node, name=name)
        if name in self.nodes:
            logger.debug(f"Replacing node {name}")
        self.nodes[name] = node
        if cache_policy is not None:
            self.cache_policies[name] = cache_policy
        else:
            self.cache_policies.pop(name, None)
        return self

    def add_edge(self, source: str, target: str) -> StateGraph:
        """Add a fixed edge. ``add_edge(START, name)`` sets the entry point."""
        if source == START:
            return self.set_entry_point(target)
        self.edges.append(Edge(source, target))
        return self

    def add_conditional_edges(
        self,
        source: str,
        router: Router,
        path_map: Optional[Union[Dict[str, str], Iterable[str]]] = None,
    ) -> StateGraph:
        """Route from ``source`` with ``router(state) -> next node name``.

        With ``source=START`` the router picks the first node of every fresh
        run from the initial state, and an entry point becomes optional.

        Args:
            source: Node the edge leaves from
            router: Function of the merged state returning a node name or END
            path_map: Labels the router may return mapped to node names, or a
                list of node names. Only used for validation and rendering.
        """
        if not callable(router):
            raise GraphError(f"Router for node '{source}' must be callable")
        if path_map is not None and not isinstance(path_map, dict):
            path_map = {target: target for target in path_map}
        self.conditional_edges.append(ConditionalEdge(source, router, path_map))
        return self

    def set_entry_point(self, name: str) -> StateGraph:
        self.entry_point = name
        return self

    def interrupt_before(self, names: Union[str, Iterable[str]]) -> StateGraph:
        """Halt before running any of ``names``."""
        if isinstance(names, str):
            names = [names]
        for name in names:
            if name not in self.interrupt_before_nodes:
                self.interrupt_before_nodes.append(name)
        return self

    def interrupt_after(self, names: Union[str, Iterable[str]]) -> StateGraph:
        """Halt after any of ``names`` completes and is checkpointed."""
        if isinstance(names, str):
            names = [names]
        for name in names:
            if name not in self.interrupt_after_nodes:
                self.interrupt_after_nodes.append(name)
        return self

    def add_interrupt(
        self, name: str, mode: InterruptMode = InterruptMode.BEFORE
    ) -> StateGraph:
        """Configure an interrupt on one node.

        Args:
            name: Node to interrupt at
            mode: BEFORE, AFTER or BOTH
        """
        mode = InterruptMode(mode)
        if mode in (InterruptMode.BEFORE, InterruptMode.BOTH):
            self.interrupt_before(name)
        if mode in (InterruptMode.AFTER, InterruptMode.BOTH):
            self.interrupt_after(name)
        return self

    def _validate(self) -> None:
        routes_from_start = any(ce.source == START for ce in self.conditional_edges)
        if self.entry_point is None and not routes_from_start:
            raise GraphError("Entry point not set. Call set_entry_point() first.")
        if self.entry_point is not None and self.entry_point not in self.nodes:
            raise GraphError(f"Entry point '{self.entry_point}' not found in graph")

        for edge in self.edges:
            if edge.source == END:
                raise GraphError(
                    f"Edge {edge.source} -> {edge.target}: END has no outgoing edges"
                )
            if edge.source not in self.nodes:
                raise GraphError(
                    f"Edge {edge.source} -> {edge.target}: "
                    f"source node '{edge.source}' not found"
                )
            if edge.target != END and edge.target not in self.nodes:
                raise GraphError(
                    f"Edge {edge.source} -> {edge.target}: "
                    f"target node '{edge.target}' not found"
                )

        for conditional in self.conditional_edges:
            if conditional.source != START and conditional.source not in self.nodes:
                raise GraphError(
                    f"Conditional edge source node '{conditional.source}' not found"
                )
            for label, target in (conditional.path_map or {}).items():
                if target != END and target not in self.nodes:
                    raise GraphError(
                        f"Conditional edge from '{conditional.source}': path_map "
                        f"entry '{label}' targets node '{target}' which was not found"
                    )

        outgoing: Dict[str, str] = {}
        for edge in self.edges:
            if edge.source in outgoing:
                raise GraphError(
                    f"Node '{edge.source}' has more than one fixed edge "
                    f"({outgoing[edge.source]}, {edge.target})"
                )
            outgoing[edge.source] = edge.target
        routed = set()
        for conditional in self.conditional_edges:
            if conditional.source in outgoing:
                raise GraphError(
                    f"Node '{conditional.source}' has both a fixed and a "
                    "conditional edge"
                )
            if conditional.source in routed:
                raise GraphError(
                    f"Node '{conditional.source}' has more than one conditional edge"
                )
            routed.add(conditional.source)

        for kind, names in (
            ("interrupt_before", self.interrupt_before_nodes),
            ("interrupt_after", self.interrupt_after_nodes),
        ):
            for name in names:
                if name not in self.nodes:
                    raise GraphError(f"{kind} node '{name}' not found in graph")

    def compile(
        self,
        checkpointer: Optional[BaseCheckpointer] = None,
        config: Optional[RunConfig] = None,
    ) -> CompiledGraph:
        """Validate the description and build an executable graph.

        Args:
            checkpointer: Optional persistence for resume and state history
            config: Default RunConfig for invocations that pass none

        Raises:
            GraphError: Naming the offending node or edge
        """
        self._validate()
        logger.debug(
            f"Compiled graph with {len(self.nodes)} node(s), entry {self.entry_point}"
        )
        return CompiledGraph(
            nodes=self.nodes,
            edges={edge.source: edge.target for edge in self.edges},
            conditional_edges={ce.source: ce for ce in self.conditional_edges},
            entry_point=self.entry_point,
            interrupt_before=frozenset(self.interrupt_before_nodes),
            interrupt_after=frozenset(self.interrupt_after_nodes),
            checkpointer=checkpointer,
            state_schema=self.state_schema,
            config=config,
            cache_policies=dict(self.cache_policies),
        )
