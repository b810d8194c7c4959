"""Typed event streams for graph execution."""

from enum import Enum
from typing import Any
from typing import Dict
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class GraphEventType(str, Enum):
    """Types of graph execution events."""

    NODE_END = "node_end"  # Node step completed and checkpointed


class GraphStreamMode(str, Enum):
    """Stream modes for graph execution.

    - VALUES: Each event carries the full state after the step
    - UPDATES: Each event also carries the delta the node returned

    Several modes can be streamed from one run with
    CompiledGraph.stream_modes(); each step then yields one event per mode.
    """

    VALUES = "values"
    UPDATES = "updates"


class GraphEvent(BaseModel):  # type: ignore[misc]
    """One completed step of a streamed graph run.

    Example:
        ```python
        async for event in graph.stream(state, GraphStreamMode.UPDATES, config):
            print(event.node, event.update)
        ```
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    event_type: GraphEventType = GraphEventType.NODE_END
    mode: GraphStreamMode = Field(
        default=GraphStreamMode.VALUES,
        description="Stream mode that produced the event",
    )
    node: str = Field(description="Node that just completed")
    step: int = Field(description="1-based step number within this invocation")

    state: Any = Field(description="Snapshot of the accumulated state after merge")
    update: Any = Field(
        default=None,
        description="Delta returned by the node (UPDATES mode only)",
    )

    next_node: Optional[str] = Field(
        default=None, description="Node selected to run next (END when finished)"
    )
    checkpoint_id: Optional[str] = None
    timestamp: str = Field(description="ISO timestamp of event")

    metadata: Dict[str, Any] = Field(default_factory=dict)
