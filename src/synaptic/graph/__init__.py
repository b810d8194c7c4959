"""Graph-based workflow execution.

This module contains the components for building and running graphs:
- StateGraph: Builder that validates and compiles a graph
- CompiledGraph: Executable graph (invoke, stream, state history)
- State / GraphState / MessageState: Mergeable state containers
- StateReducer / CustomReducer: Per-field merge strategies
- Node / FunctionNode / NodeOutput: Units of work and their results
- Edge / ConditionalEdge: Fixed and routed transitions
- InterruptMode: Human-in-the-loop interrupt modes
- GraphEvent / GraphEventType / GraphStreamMode: Streamed step events
- RunConfig: Per-invocation limits and cancellation
- CachePolicy: Per-node output caching with a TTL
"""

from .compiled_graph import CompiledGraph
from .graph_edge import END
from .graph_edge import START
from .graph_edge import ConditionalEdge
from .graph_edge import Edge
from .graph_events import GraphEvent
from .graph_events import GraphEventType
from .graph_events import GraphStreamMode
from .graph_node import FunctionNode
from .graph_node import Node
from .graph_node import NodeOutput
from .graph_state import CustomReducer
from .graph_state import GraphState
from .graph_state import Message
from .graph_state import MessageState
from .graph_state import State
from .graph_state import StateReducer
from .interrupt import InterruptMode
from .node_cache import CachePolicy
from .run_config import RunConfig
from .state_graph import StateGraph

__all__ = [
    "START",
    "END",
    "StateGraph",
    "CompiledGraph",
    "State",
    "GraphState",
    "MessageState",
    "Message",
    "StateReducer",
    "CustomReducer",
    "Node",
    "FunctionNode",
    "NodeOutput",
    "Edge",
    "ConditionalEdge",
    "InterruptMode",
    "GraphEvent",
    "GraphEventType",
    "GraphStreamMode",
    "RunConfig",
    "CachePolicy",
]
