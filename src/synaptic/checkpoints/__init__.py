"""Checkpoint persistence for graph execution.

This module provides the checkpointer contract and its implementations:
- BaseCheckpointer: put/get/list contract over (thread_id, checkpoint_id)
- InMemoryCheckpointer (MemorySaver): process-local reference implementation
- DatabaseCheckpointer: durable SQLAlchemy-backed implementation
"""

from .base_checkpointer import BaseCheckpointer
from .base_checkpointer import CheckpointerConfig
from .database_checkpointer import DatabaseCheckpointer
from .in_memory_checkpointer import InMemoryCheckpointer
from .in_memory_checkpointer import MemorySaver
from .models import Checkpoint
from .models import CheckpointConfig
from .models import new_checkpoint_id

__all__ = [
    "BaseCheckpointer",
    "CheckpointerConfig",
    "InMemoryCheckpointer",
    "MemorySaver",
    "DatabaseCheckpointer",
    "Checkpoint",
    "CheckpointConfig",
    "new_checkpoint_id",
]
