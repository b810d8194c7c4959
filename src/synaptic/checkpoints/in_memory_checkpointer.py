"""In-memory checkpointer for development and testing."""

import asyncio
import logging
from typing import Dict
from typing import List
from typing import Optional

from .base_checkpointer import BaseCheckpointer
from .base_checkpointer import CheckpointerConfig
from .models import Checkpoint
from .models import CheckpointConfig

logger = logging.getLogger("synaptic_graph." + __name__)


class InMemoryCheckpointer(BaseCheckpointer):
    """Keeps checkpoints in a process-local dict of thread -> ordered records.

    Writers take a per-thread asyncio.Lock. Records are copied on the way in
    and out so callers never share mutable state with the store.

    Example:
        ```python
        checkpointer = InMemoryCheckpointer()
        graph = builder.compile(checkpointer=checkpointer)

        config = CheckpointConfig(thread_id="thread-1")
        await graph.invoke(MyState(), config)
        history = await checkpointer.list(config)
        ```
    """

    def __init__(self, config: Optional[CheckpointerConfig] = None) -> None:
        super().__init__(config)
        self._store: Dict[str, List[Checkpoint]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, thread_id: str) -> asyncio.Lock:
        lock = self._locks.get(thread_id)
        if lock is None:
            lock = self._locks[thread_id] = asyncio.Lock()
        return lock

    async def _put(self, config: CheckpointConfig, checkpoint: Checkpoint) -> None:
        record = checkpoint.model_copy(deep=True)
        async with self._lock_for(config.thread_id):
            records = self._store.setdefault(config.thread_id, [])
            for index, existing in enumerate(records):
                if existing.id == record.id:
                    records[index] = record
                    return
            records.append(record)

            limit = self.config.max_checkpoints_per_thread
            if limit > 0 and len(records) > limit:
                evicted = len(records) - limit
                del records[:evicted]
                logger.warning(
                    f"Evicted {evicted} checkpoint(s) from thread "
                    f"{config.thread_id} (max_checkpoints_per_thread={limit})"
                )

    async def _get(self, config: CheckpointConfig) -> Optional[Checkpoint]:
        records = self._store.get(config.thread_id)
        if not records:
            return None
        if config.checkpoint_id is None:
            return records[-1].model_copy(deep=True)
        for record in records:
            if record.id == config.checkpoint_id:
                return record.model_copy(deep=True)
        return None

    async def _list(self, config: CheckpointConfig) -> List[Checkpoint]:
        records = self._store.get(config.thread_id, [])
        return [record.model_copy(deep=True) for record in records]

    async def _delete_thread(self, config: CheckpointConfig) -> int:
        # The lock stays registered; writers may already be waiting on it.
        async with self._lock_for(config.thread_id):
            records = self._store.pop(config.thread_id, [])
        return len(records)


# Name used by LangGraph-style code
MemorySaver = InMemoryCheckpointer
