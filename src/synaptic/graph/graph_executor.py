"""Step loop shared by CompiledGraph.invoke() and CompiledGraph.stream()."""

from __future__ import annotations

import copy
import logging
import time
from datetime import datetime
from datetime import timezone
from typing import TYPE_CHECKING
from typing import Any
from typing import AsyncIterator
from typing import Dict
from typing import Optional
from typing import Sequence

from ..checkpoints.models import Checkpoint
from ..checkpoints.models import CheckpointConfig
from ..errors import GraphCancelled
from ..errors import GraphError
from ..errors import GraphInterrupt
from ..errors import GraphRecursionError
from ..errors import NodeError
from ..errors import SynapticError
from ..telemetry.graph_tracing import GRAPH_NODE
from ..telemetry.graph_tracing import GRAPH_STEP
from ..telemetry.graph_tracing import GRAPH_THREAD_ID
from ..telemetry.graph_tracing import record_node_metrics
from ..telemetry.graph_tracing import trace_graph_interrupt
from ..telemetry.graph_tracing import trace_graph_resume
from ..telemetry.graph_tracing import tracer
from .graph_edge import END
from .graph_edge import START
from .graph_events import GraphEvent
from .graph_events import GraphStreamMode
from .graph_node import Node
from .graph_node import NodeOutput
from .node_cache import state_key
from .run_config import RunConfig

if TYPE_CHECKING:
    from .compiled_graph import CompiledGraph

logger = logging.getLogger("synaptic_graph." + __name__)

# Metadata key marking a checkpoint that halted before the named node.
# A run resuming from such a checkpoint passes that interrupt once.
INTERRUPTED_BEFORE = "interrupted_before"


class GraphExecutor:
    """Runs one invocation of a compiled graph.

    Each completed step merges the node's delta, selects the next node,
    records a checkpoint (when a checkpointer and a thread are configured)
    and yields a GraphEvent. Interrupts, cancellation and failures are raised
    from the iterator.
    """

    def __init__(self, graph: CompiledGraph, run_config: Optional[RunConfig] = None):
        self.graph = graph
        self.run_config = run_config or RunConfig()
        self.state: Any = None

    async def run(
        self,
        initial_state: Any,
        config: Optional[CheckpointConfig] = None,
        modes: Sequence[GraphStreamMode] = (GraphStreamMode.VALUES,),
    ) -> AsyncIterator[GraphEvent]:
        graph = self.graph
        checkpointer = graph.checkpointer if config is not None else None
        thread_id = config.thread_id if config is not None else None

        state = copy.deepcopy(initial_state)
        current = graph.entry_point
        parent_id: Optional[str] = None
        pass_interrupt_at: Optional[str] = None
        checkpoint = None

        if checkpointer is not None:
            checkpoint = await checkpointer.get(config)
            if checkpoint is not None:
                state = graph.deserialize_state(checkpoint.state, initial_state)
                current = checkpoint.next_node or END
                parent_id = checkpoint.id
                pass_interrupt_at = checkpoint.metadata.get(INTERRUPTED_BEFORE)
                trace_graph_resume(thread_id, checkpoint.id, current)
                logger.info(
                    f"Resuming thread {thread_id} at {current} "
                    f"from checkpoint {checkpoint.id}"
                )

        if checkpoint is None and START in graph.conditional_edges:
            current = self.next_node(START, state)
            if current != END and not graph.has_node(current):
                raise GraphError(f"Node '{START}' routed to unknown node '{current}'")
            logger.debug(f"Start router selected {current}")

        self.state = state

        step = 0
        while True:
            if current == END:
                logger.info(f"Graph run finished after {step} step(s)")
                return

            if self.run_config.cancelled:
                logger.info(f"Graph run cancelled before node {current}")
                raise GraphCancelled(current, copy.deepcopy(state))

            if step >= self.run_config.recursion_limit:
                raise GraphRecursionError(self.run_config.recursion_limit)

            if current in graph.interrupt_before_nodes and current != pass_interrupt_at:
                checkpoint_id = None
                if checkpointer is not None:
                    checkpoint = Checkpoint(
                        state=graph.serialize_state(state),
                        next_node=current,
                        parent_id=parent_id,
                        metadata={
                            "node": current,
                            "source": "interrupt_before",
                            "step": step,
                            INTERRUPTED_BEFORE: current,
                        },
                    )
                    await checkpointer.put(config, checkpoint)
                    checkpoint_id = checkpoint.id
                trace_graph_interrupt("before", current, thread_id, checkpoint_id)
                raise GraphInterrupt(
                    "before", current, copy.deepcopy(state), checkpoint_id
                )
            pass_interrupt_at = None

            node = graph.get_node(current)
            if node is None:
                raise GraphError(f"Node '{current}' not found in graph")

            step += 1
            output = await self._run_node(
                current, node, copy.deepcopy(state), step, thread_id
            )

            if output.update is not None:
                state.merge(output.update)

            next_node = self.next_node(current, state, output.goto)
            logger.debug(f"Step {step}: {current} -> {next_node}")

            checkpoint_id = None
            if checkpointer is not None:
                checkpoint = Checkpoint(
                    state=graph.serialize_state(state),
                    next_node=next_node,
                    parent_id=parent_id,
                    metadata={"node": current, "source": "loop", "step": step},
                )
                await checkpointer.put(config, checkpoint)
                checkpoint_id = parent_id = checkpoint.id

            timestamp = datetime.now(timezone.utc).isoformat()
            for mode in modes:
                yield GraphEvent(
                    mode=mode,
                    node=current,
                    step=step,
                    state=copy.deepcopy(state),
                    update=(
                        copy.deepcopy(output.update)
                        if mode == GraphStreamMode.UPDATES
                        else None
                    ),
                    next_node=next_node,
                    checkpoint_id=checkpoint_id,
                    timestamp=timestamp,
                    metadata={"thread_id": thread_id} if thread_id else {},
                )

            if current in graph.interrupt_after_nodes:
                trace_graph_interrupt("after", current, thread_id, checkpoint_id)
                raise GraphInterrupt(
                    "after", current, copy.deepcopy(state), checkpoint_id
                )

            if next_node != END and not graph.has_node(next_node):
                raise GraphError(
                    f"Node '{current}' routed to unknown node '{next_node}'"
                )
            current = next_node

    def next_node(self, node_name: str, state: Any, goto: Optional[str] = None) -> str:
        """Select the node that follows ``node_name``.

        An explicit goto wins, then the fixed edge, then the conditional
        router evaluated on ``state``. A node without outgoing edges ends
        the run.
        """
        if goto is not None:
            return goto

        target = self.graph.edges.get(node_name)
        if target is not None:
            return target

        conditional = self.graph.conditional_edges.get(node_name)
        if conditional is None:
            return END

        try:
            target = conditional.route(state)
        except SynapticError:
            raise
        except Exception as e:
            raise GraphError(f"Router for node '{node_name}' failed: {e}") from e
        if not isinstance(target, str):
            raise GraphError(
                f"Router for node '{node_name}' returned {target!r}, expected a node name"
            )
        return target

    async def _run_node(
        self,
        name: str,
        node: Node,
        snapshot: Any,
        step: int,
        thread_id: Optional[str],
    ) -> NodeOutput:
        attributes: Dict[str, Any] = {GRAPH_NODE: name, GRAPH_STEP: step}
        if thread_id:
            attributes[GRAPH_THREAD_ID] = thread_id

        cache = self.graph.node_cache
        key = None
        if cache.is_cached(name):
            key = state_key(self.graph.serialize_state(snapshot))
            cached = cache.get(name, key)
            if cached is not None:
                record_node_metrics(name, 0.0, "cached")
                return cached

        start_time = time.time()
        with tracer.start_as_current_span(f"graph.node {name}", attributes=attributes):
            try:
                output = await node.process(snapshot)
            except SynapticError:
                record_node_metrics(name, (time.time() - start_time) * 1000, "error")
                raise
            except Exception as e:
                record_node_metrics(name, (time.time() - start_time) * 1000, "error")
                raise NodeError(name, str(e) or type(e).__name__) from e
            record_node_metrics(name, (time.time() - start_time) * 1000, "success")

        if not isinstance(output, NodeOutput):
            raise NodeError(
                name, f"process() returned {type(output).__name__}, expected NodeOutput"
            )
        if key is not None:
            cache.put(name, key, output)
        return output
