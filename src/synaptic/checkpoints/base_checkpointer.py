"""Checkpointer contract shared by every persistence backend."""

import json
import time
from abc import ABC
from abc import abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator
from typing import List
from typing import Optional

from ..errors import CheckpointerError
from ..telemetry.graph_tracing import record_checkpoint_metrics
from ..telemetry.graph_tracing import trace_checkpoint_delete
from ..telemetry.graph_tracing import trace_checkpoint_get
from ..telemetry.graph_tracing import trace_checkpoint_list
from ..telemetry.graph_tracing import trace_checkpoint_put
from ..telemetry.graph_tracing import tracer
from .models import Checkpoint
from .models import CheckpointConfig


@dataclass
class CheckpointerConfig:
    """Configuration for checkpointer resource limits.

    Attributes:
        max_checkpoints_per_thread: Maximum number of checkpoints kept per
            thread; the oldest are evicted first. Default: 0 (unlimited).
        max_state_size_bytes: Maximum size of a serialized state.
            Default: 10MB. Prevents memory exhaustion from very large states.
    """

    max_checkpoints_per_thread: int = 0
    max_state_size_bytes: int = 10 * 1024 * 1024  # 10MB

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_checkpoints_per_thread < 0:
            raise ValueError("max_checkpoints_per_thread must be >= 0")
        if self.max_state_size_bytes < 0:
            raise ValueError("max_state_size_bytes must be >= 0")


class BaseCheckpointer(ABC):
    """Persists checkpoints keyed by ``(thread_id, checkpoint_id)``.

    Backends implement ``_put``, ``_get``, ``_list`` and ``_delete_thread``.
    The public methods add tracing, metrics, the state size guard and error
    normalization: any backend failure surfaces as CheckpointerError.

    Contract:
    - put is idempotent on (thread_id, checkpoint.id); a duplicate overwrites
      the stored record in place, keeping its position in the thread.
    - get returns the named checkpoint, or the latest one by insertion order.
    - list returns a thread's checkpoints oldest first.
    - writes are serialized per thread.
    """

    def __init__(self, config: Optional[CheckpointerConfig] = None) -> None:
        """Initialize checkpointer.

        Args:
            config: Optional configuration for resource limits. If None, uses defaults.
        """
        self.config = config or CheckpointerConfig()

    @asynccontextmanager
    async def _traced(
        self, operation: str, thread_id: str, checkpoint_id: Optional[str] = None
    ) -> AsyncIterator[None]:
        """Internal helper for tracing checkpoint operations with metrics."""
        start_time = time.time()
        attributes = {
            "checkpoint.operation": operation,
            "checkpoint.thread_id": thread_id,
        }
        if checkpoint_id:
            attributes["checkpoint.id"] = checkpoint_id
        with tracer.start_as_current_span(
            f"checkpoint.{operation}", attributes=attributes
        ):
            try:
                yield
                duration_ms = (time.time() - start_time) * 1000
                record_checkpoint_metrics(operation, duration_ms, "success")
            except CheckpointerError:
                duration_ms = (time.time() - start_time) * 1000
                record_checkpoint_metrics(operation, duration_ms, "error")
                raise
            except Exception as e:
                duration_ms = (time.time() - start_time) * 1000
                record_checkpoint_metrics(operation, duration_ms, "error")
                raise CheckpointerError(
                    f"Checkpointer {operation} failed for thread '{thread_id}': {e}"
                ) from e

    async def put(self, config: CheckpointConfig, checkpoint: Checkpoint) -> None:
        """Store ``checkpoint`` under ``config.thread_id``.

        Args:
            config: Thread to write to (its checkpoint_id is ignored)
            checkpoint: Record to store

        Raises:
            CheckpointerError: If the state is too large or the backend fails
        """
        async with self._traced("put", config.thread_id, checkpoint.id):
            if self.config.max_state_size_bytes > 0:
                state_size = len(json.dumps(checkpoint.state).encode("utf-8"))
                if state_size > self.config.max_state_size_bytes:
                    raise CheckpointerError(
                        f"State size {state_size} bytes exceeds limit "
                        f"({self.config.max_state_size_bytes} bytes) for "
                        f"checkpoint '{checkpoint.id}' in thread '{config.thread_id}'."
                    )

            await self._put(config, checkpoint)

            trace_checkpoint_put(
                checkpoint_id=checkpoint.id,
                thread_id=config.thread_id,
                next_node=checkpoint.next_node,
                node=checkpoint.metadata.get("node"),
            )

    async def get(self, config: CheckpointConfig) -> Optional[Checkpoint]:
        """Retrieve the named checkpoint, or the thread's latest.

        Args:
            config: Thread and optional checkpoint_id

        Returns:
            Checkpoint if one exists, None otherwise
        """
        async with self._traced("get", config.thread_id, config.checkpoint_id):
            checkpoint = await self._get(config)
            trace_checkpoint_get(
                thread_id=config.thread_id,
                checkpoint_id=config.checkpoint_id,
                found=checkpoint is not None,
            )
            return checkpoint

    async def list(self, config: CheckpointConfig) -> List[Checkpoint]:
        """List all checkpoints of a thread, oldest first.

        Args:
            config: Thread to list

        Returns:
            Checkpoints in insertion order (empty if the thread is unknown)
        """
        async with self._traced("list", config.thread_id):
            checkpoints = await self._list(config)
            trace_checkpoint_list(
                thread_id=config.thread_id,
                checkpoint_count=len(checkpoints),
            )
            return checkpoints

    async def delete_thread(self, config: CheckpointConfig) -> int:
        """Delete every checkpoint of a thread.

        Args:
            config: Thread to delete

        Returns:
            Number of checkpoints removed
        """
        async with self._traced("delete", config.thread_id):
            removed = await self._delete_thread(config)
            trace_checkpoint_delete(
                thread_id=config.thread_id,
                checkpoint_count=removed,
            )
            return removed

    @abstractmethod
    async def _put(self, config: CheckpointConfig, checkpoint: Checkpoint) -> None:
        """Backend write, including retention of max_checkpoints_per_thread."""

    @abstractmethod
    async def _get(self, config: CheckpointConfig) -> Optional[Checkpoint]:
        """Backend lookup by checkpoint_id or latest."""

    @abstractmethod
    async def _list(self, config: CheckpointConfig) -> List[Checkpoint]:
        """Backend listing in insertion order."""

    @abstractmethod
    async def _delete_thread(self, config: CheckpointConfig) -> int:
        """Backend thread deletion."""
