"""Validation pipeline with retries and a human approval step.

Demonstrates conditional routing, loops bounded by state, checkpointing
and resuming after an interrupt:
- validate parses the raw input; on failure it retries up to 3 times
- after max retries the run routes to the error handler
- valid data pauses before "process" until a reviewer approves it
"""

import asyncio
import json
from typing import Annotated
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from pydantic import Field

from synaptic import GraphInterrupt
from synaptic.checkpoints import CheckpointConfig
from synaptic.checkpoints import MemorySaver
from synaptic.graph import END
from synaptic.graph import GraphState
from synaptic.graph import GraphStreamMode
from synaptic.graph import StateGraph
from synaptic.graph import StateReducer

MAX_RETRIES = 3


class PipelineState(GraphState):
    raw: str = ""
    parsed: Optional[Dict[str, Any]] = None
    attempts: Annotated[int, StateReducer.SUM] = 0
    log: Annotated[List[str], StateReducer.APPEND] = Field(default_factory=list)
    approved: bool = False


def validate(state: PipelineState) -> PipelineState:
    try:
        parsed = json.loads(state.raw)
    except json.JSONDecodeError as e:
        return PipelineState(attempts=1, log=[f"invalid: {e.msg}"])
    return PipelineState(attempts=1, parsed=parsed, log=["valid"])


def route_validation(state: PipelineState) -> str:
    if state.parsed is not None:
        return "process"
    if state.attempts < MAX_RETRIES:
        return "validate"
    return "error"


async def process(state: PipelineState) -> PipelineState:
    summary = ", ".join(f"{k}={v}" for k, v in sorted(state.parsed.items()))
    if not state.approved:
        return PipelineState(log=["skipped: not approved"])
    return PipelineState(log=[f"processed {summary}"])


def error(state: PipelineState) -> PipelineState:
    return PipelineState(log=[f"gave up after {state.attempts} attempts"])


graph = (
    StateGraph(PipelineState)
    .add_node("validate", validate)
    .add_node("process", process)
    .add_node("error", error)
    .set_entry_point("validate")
    .add_conditional_edges(
        "validate",
        route_validation,
        {"process": "process", "validate": "validate", "error": "error"},
    )
    .add_edge("process", END)
    .add_edge("error", END)
    .interrupt_before(["process"])
    .compile(checkpointer=MemorySaver())
)


async def main():
    print(graph.draw_mermaid())

    print("\n=== Valid input (needs approval) ===")
    config = CheckpointConfig(thread_id="valid")
    try:
        await graph.invoke(PipelineState(raw='{"name": "John", "age": 30}'), config)
    except GraphInterrupt as interrupt:
        print(f"paused {interrupt.mode} {interrupt.node}: {interrupt.state.parsed}")

    await graph.update_state(config, PipelineState(approved=True))
    async for event in graph.stream(
        PipelineState(), GraphStreamMode.UPDATES, config
    ):
        print(f"{event.node}: {event.update.log}")

    print("\n=== Invalid input ===")
    result = await graph.invoke(
        PipelineState(raw='{"name": "Invalid data'),
        CheckpointConfig(thread_id="invalid"),
    )
    for line in result.log:
        print(line)


if __name__ == "__main__":
    asyncio.run(main())
