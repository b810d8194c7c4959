"""OpenTelemetry instrumentation for graph execution and checkpointing.

This module provides tracing, logging, and metrics for node steps,
checkpoint persistence, interrupts and resumes, following OpenTelemetry
semantic conventions. Without an OpenTelemetry SDK configured every call is
a cheap no-op.
"""

from __future__ import annotations

import logging
from typing import Optional

from opentelemetry import metrics
from opentelemetry import trace
from opentelemetry.semconv.schemas import Schemas

from .. import version

# OpenTelemetry tracer for graph and checkpoint operations
tracer = trace.get_tracer(
    instrumenting_module_name="synaptic.graph",
    instrumenting_library_version=version.__version__,
    schema_url=Schemas.V1_36_0.value,
)

# Python logger for standard logging
logger = logging.getLogger("synaptic_graph." + __name__)

# OpenTelemetry meter for metrics
meter = metrics.get_meter(
    name="synaptic.graph",
    version=version.__version__,
    schema_url=Schemas.V1_36_0.value,
)

# Metrics
checkpoint_counter = meter.create_counter(
    name="checkpoint.operations",
    description="Number of checkpoint operations",
    unit="1",
)

checkpoint_latency = meter.create_histogram(
    name="checkpoint.latency",
    description="Checkpoint operation latency",
    unit="ms",
)

node_counter = meter.create_counter(
    name="graph.node.executions",
    description="Number of node executions",
    unit="1",
)

node_latency = meter.create_histogram(
    name="graph.node.latency",
    description="Node execution latency",
    unit="ms",
)

interrupt_counter = meter.create_counter(
    name="graph.interrupts",
    description="Number of interrupts raised by graph execution",
    unit="1",
)

# Semantic Conventions - Checkpoint Attributes
CHECKPOINT_OPERATION = "checkpoint.operation"
CHECKPOINT_ID = "checkpoint.id"
CHECKPOINT_THREAD_ID = "checkpoint.thread_id"
CHECKPOINT_NEXT_NODE = "checkpoint.next_node"
CHECKPOINT_NODE = "checkpoint.node"
CHECKPOINT_COUNT = "checkpoint.count"

# Semantic Conventions - Graph Attributes
GRAPH_NODE = "graph.node"
GRAPH_STEP = "graph.step"
GRAPH_THREAD_ID = "graph.thread_id"

# Semantic Conventions - Interrupt Attributes
INTERRUPT_MODE = "interrupt.mode"
INTERRUPT_NODE = "interrupt.node"

# Semantic Conventions - Resume Attributes
RESUME_CHECKPOINT_ID = "resume.checkpoint_id"
RESUME_NEXT_NODE = "resume.next_node"


def trace_checkpoint_put(
    checkpoint_id: str,
    thread_id: str,
    next_node: Optional[str] = None,
    node: Optional[str] = None,
):
    """Trace checkpoint write operation.

    Args:
        checkpoint_id: Checkpoint identifier
        thread_id: Thread the checkpoint belongs to
        next_node: Node recorded to run next
        node: Node whose completion produced the checkpoint
    """
    span = trace.get_current_span()

    span.set_attribute(CHECKPOINT_OPERATION, "put")
    span.set_attribute(CHECKPOINT_ID, checkpoint_id)
    span.set_attribute(CHECKPOINT_THREAD_ID, thread_id)
    if next_node:
        span.set_attribute(CHECKPOINT_NEXT_NODE, next_node)
    if node:
        span.set_attribute(CHECKPOINT_NODE, node)

    logger.debug(
        "Checkpoint created",
        extra={
            "checkpoint_id": checkpoint_id,
            "thread_id": thread_id,
            "next_node": next_node,
            "node": node,
        },
    )


def trace_checkpoint_get(
    thread_id: str,
    checkpoint_id: Optional[str],
    found: bool,
):
    """Trace checkpoint lookup operation.

    Args:
        thread_id: Thread being queried
        checkpoint_id: Requested checkpoint, None for latest
        found: Whether a checkpoint was returned
    """
    span = trace.get_current_span()

    span.set_attribute(CHECKPOINT_OPERATION, "get")
    span.set_attribute(CHECKPOINT_THREAD_ID, thread_id)
    if checkpoint_id:
        span.set_attribute(CHECKPOINT_ID, checkpoint_id)
    span.set_attribute("checkpoint.found", found)


def trace_checkpoint_list(
    thread_id: str,
    checkpoint_count: int,
):
    """Trace checkpoint list operation.

    Args:
        thread_id: Thread being queried
        checkpoint_count: Number of checkpoints found
    """
    span = trace.get_current_span()

    span.set_attribute(CHECKPOINT_OPERATION, "list")
    span.set_attribute(CHECKPOINT_THREAD_ID, thread_id)
    span.set_attribute(CHECKPOINT_COUNT, checkpoint_count)

    logger.debug(
        "Checkpoints listed",
        extra={
            "thread_id": thread_id,
            "checkpoint_count": checkpoint_count,
        },
    )


def trace_checkpoint_delete(
    thread_id: str,
    checkpoint_count: int,
):
    """Trace thread deletion operation.

    Args:
        thread_id: Thread being deleted
        checkpoint_count: Number of checkpoints removed
    """
    span = trace.get_current_span()

    span.set_attribute(CHECKPOINT_OPERATION, "delete")
    span.set_attribute(CHECKPOINT_THREAD_ID, thread_id)
    span.set_attribute(CHECKPOINT_COUNT, checkpoint_count)

    logger.info(
        "Checkpoint thread deleted",
        extra={
            "thread_id": thread_id,
            "checkpoint_count": checkpoint_count,
        },
    )


def trace_graph_resume(
    thread_id: str,
    checkpoint_id: str,
    next_node: Optional[str],
):
    """Trace a run resuming from a checkpoint.

    Args:
        thread_id: Thread being resumed
        checkpoint_id: Checkpoint resumed from
        next_node: Node the run starts at
    """
    span = trace.get_current_span()

    span.set_attribute(GRAPH_THREAD_ID, thread_id)
    span.set_attribute(RESUME_CHECKPOINT_ID, checkpoint_id)
    if next_node:
        span.set_attribute(RESUME_NEXT_NODE, next_node)

    logger.info(
        "Graph resumed",
        extra={
            "thread_id": thread_id,
            "checkpoint_id": checkpoint_id,
            "next_node": next_node,
        },
    )


def trace_graph_interrupt(
    mode: str,
    node: str,
    thread_id: Optional[str] = None,
    checkpoint_id: Optional[str] = None,
):
    """Trace an interrupt_before / interrupt_after halt.

    Args:
        mode: "before" or "after"
        node: Node at which execution halted
        thread_id: Thread of the run, if checkpointing
        checkpoint_id: Checkpoint recorded for the interrupt, if any
    """
    span = trace.get_current_span()

    span.set_attribute(INTERRUPT_MODE, mode)
    span.set_attribute(INTERRUPT_NODE, node)
    if thread_id:
        span.set_attribute(GRAPH_THREAD_ID, thread_id)
    if checkpoint_id:
        span.set_attribute(CHECKPOINT_ID, checkpoint_id)

    interrupt_counter.add(1, attributes={"mode": mode, "node": node})

    logger.info(
        "Graph interrupted",
        extra={
            "interrupt_mode": mode,
            "node": node,
            "thread_id": thread_id,
            "checkpoint_id": checkpoint_id,
        },
    )


def record_checkpoint_metrics(
    operation: str,
    duration_ms: float,
    status: str = "success",
):
    """Record checkpoint operation metrics.

    Args:
        operation: Operation type (put, get, list, delete)
        duration_ms: Operation duration in milliseconds
        status: Operation status (success, error)
    """
    checkpoint_counter.add(
        1,
        attributes={
            "operation": operation,
            "status": status,
        },
    )

    checkpoint_latency.record(
        duration_ms,
        attributes={
            "operation": operation,
        },
    )


def record_node_metrics(
    node: str,
    duration_ms: float,
    status: str = "success",
):
    """Record node execution metrics.

    Args:
        node: Node name
        duration_ms: Execution duration in milliseconds
        status: Execution status (success, error)
    """
    node_counter.add(
        1,
        attributes={
            "node": node,
            "status": status,
        },
    )

    node_latency.record(
        duration_ms,
        attributes={
            "node": node,
        },
    )
