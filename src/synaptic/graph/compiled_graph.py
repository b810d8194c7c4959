"""Executable, immutable graph produced by StateGraph.compile()."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any
from typing import AsyncIterator
from typing import Dict
from typing import FrozenSet
from typing import List
from typing import Mapping
from typing import Optional
from typing import Sequence
from typing import Tuple
from typing import Union

from pydantic import TypeAdapter

from ..checkpoints.base_checkpointer import BaseCheckpointer
from ..checkpoints.models import Checkpoint
from ..checkpoints.models import CheckpointConfig
from ..errors import CheckpointerError
from ..errors import GraphError
from ..errors import SynapticError
from . import visualization
from .graph_edge import ConditionalEdge
from .graph_events import GraphEvent
from .graph_events import GraphStreamMode
from .graph_executor import INTERRUPTED_BEFORE
from .graph_executor import GraphExecutor
from .graph_node import Node
from .node_cache import CachePolicy
from .node_cache import NodeCache
from .run_config import RunConfig

logger = logging.getLogger("synaptic_graph." + __name__)


class CompiledGraph:
    """A validated graph ready to run.

    Topology is frozen at compile time, so one instance can serve any number
    of concurrent invocations. Each invocation owns its own accumulator;
    invocations sharing a thread_id should be serialized by the caller.

    Example:
        ```python
        graph = builder.compile(checkpointer=MemorySaver())
        config = CheckpointConfig(thread_id="t1")

        final = await graph.invoke(MyState(), config)

        async for event in graph.stream(MyState(), GraphStreamMode.UPDATES, config):
            print(event.node, event.update)
        ```
    """

    def __init__(
        self,
        nodes: Dict[str, Node],
        edges: Dict[str, str],
        conditional_edges: Dict[str, ConditionalEdge],
        entry_point: Optional[str],
        interrupt_before: FrozenSet[str] = frozenset(),
        interrupt_after: FrozenSet[str] = frozenset(),
        checkpointer: Optional[BaseCheckpointer] = None,
        state_schema: Optional[Any] = None,
        config: Optional[RunConfig] = None,
        cache_policies: Optional[Dict[str, CachePolicy]] = None,
    ):
        self._nodes = MappingProxyType(dict(nodes))
        self._edges = MappingProxyType(dict(edges))
        self._conditional_edges = MappingProxyType(dict(conditional_edges))
        self._entry_point = entry_point
        self._interrupt_before = frozenset(interrupt_before)
        self._interrupt_after = frozenset(interrupt_after)
        self._checkpointer = checkpointer
        self._state_schema = state_schema
        self._state_adapter: Optional[TypeAdapter] = None
        self._cache_policies = MappingProxyType(dict(cache_policies or {}))
        self._node_cache = NodeCache(self._cache_policies)
        self.config = config or RunConfig()

    # ========================================================================
    # Introspection
    # ========================================================================

    @property
    def nodes(self) -> Mapping[str, Node]:
        return self._nodes

    @property
    def edges(self) -> Mapping[str, str]:
        """Fixed edges as source -> target."""
        return self._edges

    @property
    def conditional_edges(self) -> Mapping[str, ConditionalEdge]:
        return self._conditional_edges

    @property
    def entry_point(self) -> Optional[str]:
        """Fixed first node; None when a START router picks it."""
        return self._entry_point

    @property
    def interrupt_before_nodes(self) -> FrozenSet[str]:
        return self._interrupt_before

    @property
    def interrupt_after_nodes(self) -> FrozenSet[str]:
        return self._interrupt_after

    @property
    def checkpointer(self) -> Optional[BaseCheckpointer]:
        return self._checkpointer

    @property
    def state_schema(self) -> Optional[Any]:
        return self._state_schema

    @property
    def cache_policies(self) -> Mapping[str, CachePolicy]:
        return self._cache_policies

    @property
    def node_cache(self) -> NodeCache:
        """Cached node outputs, shared by every invocation of this graph."""
        return self._node_cache

    def clear_cache(self, node_name: Optional[str] = None) -> None:
        self._node_cache.clear(node_name)

    def has_node(self, name: str) -> bool:
        return name in self._nodes

    def get_node(self, name: str) -> Optional[Node]:
        return self._nodes.get(name)

    def with_checkpointer(self, checkpointer: BaseCheckpointer) -> CompiledGraph:
        """Return a graph with the same topology using ``checkpointer``.

        The state type inferred so far carries over; cached node outputs
        do not.
        """
        graph = CompiledGraph(
            nodes=dict(self._nodes),
            edges=dict(self._edges),
            conditional_edges=dict(self._conditional_edges),
            entry_point=self._entry_point,
            interrupt_before=self._interrupt_before,
            interrupt_after=self._interrupt_after,
            checkpointer=checkpointer,
            state_schema=self._state_schema,
            config=self.config,
            cache_policies=dict(self._cache_policies),
        )
        graph._state_adapter = self._state_adapter
        return graph

    def get_graph(self) -> Dict[str, Any]:
        """Alias of export_graph_structure()."""
        return self.export_graph_structure()

    def export_graph_structure(self) -> Dict[str, Any]:
        return visualization.export_graph_structure(self)

    def draw_mermaid(self) -> str:
        return visualization.draw_mermaid(self)

    def draw_ascii(self) -> str:
        return visualization.draw_ascii(self)

    def draw_dot(self) -> str:
        return visualization.draw_dot(self)

    def __str__(self) -> str:
        return self.draw_ascii()

    # ========================================================================
    # State serialization
    # ========================================================================

    def _adapter(self, sample: Any = None) -> TypeAdapter:
        if self._state_adapter is None:
            schema = self._state_schema
            if schema is None and sample is not None:
                schema = type(sample)
            if schema is None:
                raise GraphError(
                    "Cannot restore state without a state schema; "
                    "pass it to StateGraph(state_schema)"
                )
            try:
                self._state_adapter = TypeAdapter(schema)
            except Exception as e:
                raise CheckpointerError(
                    f"State type {schema!r} is not serializable: {e}"
                ) from e
        return self._state_adapter

    def serialize_state(self, state: Any) -> Any:
        """Convert ``state`` into a JSON-compatible value."""
        adapter = self._adapter(state)
        try:
            return adapter.dump_python(state, mode="json")
        except Exception as e:
            raise CheckpointerError(
                f"Failed to serialize state of type {type(state).__name__}: {e}"
            ) from e

    def deserialize_state(self, data: Any, sample: Any = None) -> Any:
        """Rebuild a state from the value produced by ``serialize_state``."""
        adapter = self._adapter(sample)
        try:
            return adapter.validate_python(data)
        except Exception as e:
            raise CheckpointerError(f"Failed to deserialize checkpointed state: {e}") from e

    # ========================================================================
    # Execution
    # ========================================================================

    def stream(
        self,
        initial_state: Any,
        mode: Union[GraphStreamMode, str] = GraphStreamMode.VALUES,
        config: Optional[CheckpointConfig] = None,
        *,
        run_config: Optional[RunConfig] = None,
    ) -> AsyncIterator[GraphEvent]:
        """Run the graph, yielding one GraphEvent per completed step.

        The iterator is lazy: no node runs until it is first awaited, and
        closing it stops the run before the next step. Interrupts and
        failures are raised from the iterator; an interrupt-after is raised
        once that step's event has been yielded.

        Args:
            initial_state: State for a fresh run (ignored when resuming)
            mode: VALUES or UPDATES
            config: Thread to checkpoint to and resume from
            run_config: Per-call limits (defaults to the compile-time config)
        """
        executor = GraphExecutor(self, run_config or self.config)
        return executor.run(initial_state, config, (GraphStreamMode(mode),))

    def stream_modes(
        self,
        initial_state: Any,
        modes: Sequence[Union[GraphStreamMode, str]],
        config: Optional[CheckpointConfig] = None,
        *,
        run_config: Optional[RunConfig] = None,
    ) -> AsyncIterator[GraphEvent]:
        """Run the graph once, yielding one event per requested mode per step.

        Events of a step share its step number, checkpoint_id and timestamp,
        come in the order the modes were given, and carry their ``mode``.
        Repeated modes are streamed once.

        Raises:
            GraphError: No mode was requested
        """
        resolved: List[GraphStreamMode] = []
        for mode in modes:
            mode = GraphStreamMode(mode)
            if mode not in resolved:
                resolved.append(mode)
        if not resolved:
            raise GraphError("stream_modes() needs at least one stream mode")
        executor = GraphExecutor(self, run_config or self.config)
        return executor.run(initial_state, config, tuple(resolved))

    async def invoke(
        self,
        initial_state: Any,
        config: Optional[CheckpointConfig] = None,
        *,
        run_config: Optional[RunConfig] = None,
    ) -> Any:
        """Run the graph to END and return the final state.

        With a checkpointer and a config, a thread that already has
        checkpoints resumes from the latest (or the named) one; a finished
        thread returns its stored state without running any node.

        Raises:
            GraphInterrupt: An interrupt_before / interrupt_after node was hit
            GraphError: Invalid runtime target or recursion limit exceeded
            NodeError: A node raised
            CheckpointerError: Persistence failed
            GraphCancelled: run_config.cancel_event was set
        """
        executor = GraphExecutor(self, run_config or self.config)
        async for _ in executor.run(initial_state, config):
            pass
        return executor.state

    # ========================================================================
    # Checkpointed state access
    # ========================================================================

    def _require_checkpointer(self) -> BaseCheckpointer:
        if self._checkpointer is None:
            raise GraphError("no checkpointer configured")
        return self._checkpointer

    async def get_state(self, config: CheckpointConfig) -> Optional[Any]:
        """Return the state at the latest (or named) checkpoint of a thread."""
        checkpointer = self._require_checkpointer()
        checkpoint = await checkpointer.get(config)
        if checkpoint is None:
            return None
        return self.deserialize_state(checkpoint.state)

    async def get_state_history(
        self, config: CheckpointConfig
    ) -> List[Tuple[Any, Optional[str]]]:
        """Return ``(state, next_node)`` for every checkpoint, oldest first."""
        checkpointer = self._require_checkpointer()
        checkpoints = await checkpointer.list(config)
        return [
            (self.deserialize_state(checkpoint.state), checkpoint.next_node)
            for checkpoint in checkpoints
        ]

    async def update_state(
        self,
        config: CheckpointConfig,
        update: Any,
        as_node: Optional[str] = None,
    ) -> CheckpointConfig:
        """Merge ``update`` into a thread's latest state as a new checkpoint.

        Typically used while a run is interrupted to edit state before
        resuming it. The new checkpoint keeps the base checkpoint's
        ``next_node``, unless ``as_node`` is given: then the update is
        treated as if that node had produced it and the next node is routed
        from there.

        Args:
            config: Thread (and optional base checkpoint) to update
            update: Delta merged into the stored state
            as_node: Optional node the update is attributed to

        Returns:
            Config addressing the new checkpoint

        Raises:
            GraphError: No checkpointer, no checkpoint, unknown as_node, no
                known state type, or an update the state cannot merge
        """
        checkpointer = self._require_checkpointer()
        base = await checkpointer.get(config)
        if base is None:
            raise GraphError(f"No checkpoint found for thread '{config.thread_id}'")

        state = self.deserialize_state(base.state)
        try:
            state.merge(update)
        except SynapticError:
            raise
        except Exception as e:
            raise GraphError(
                f"Cannot apply update to thread '{config.thread_id}': {e}"
            ) from e

        metadata: Dict[str, Any] = {"source": "update_state"}
        if "step" in base.metadata:
            metadata["step"] = base.metadata["step"]

        if as_node is not None:
            if not self.has_node(as_node):
                raise GraphError(f"Node '{as_node}' not found in graph")
            next_node = GraphExecutor(self).next_node(as_node, state)
            metadata["node"] = as_node
        else:
            next_node = base.next_node
            if base.metadata.get(INTERRUPTED_BEFORE) == next_node:
                metadata[INTERRUPTED_BEFORE] = next_node

        checkpoint = Checkpoint(
            state=self.serialize_state(state),
            next_node=next_node,
            parent_id=base.id,
            metadata=metadata,
        )
        thread = CheckpointConfig(thread_id=config.thread_id)
        await checkpointer.put(thread, checkpoint)
        logger.info(
            f"State of thread {config.thread_id} updated in checkpoint {checkpoint.id}"
        )
        return CheckpointConfig(thread_id=config.thread_id, checkpoint_id=checkpoint.id)
