"""Data models for graph checkpoints."""

import itertools
import time
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Optional

from pydantic import BaseModel
from pydantic import Field

_id_counter = itertools.count()


def new_checkpoint_id() -> str:
    """Generate a checkpoint ID that sorts after every ID issued before it.

    IDs are ``<epoch millis>-<process counter>``, both zero padded, so they
    are monotonic within a process and unique within a thread.
    """
    millis = int(time.time() * 1000)
    return f"{millis:013d}-{next(_id_counter):010d}"


class CheckpointConfig(BaseModel):  # type: ignore[misc]
    """Identifies a checkpoint thread and, optionally, one checkpoint in it.

    Without ``checkpoint_id`` the latest checkpoint of the thread is used.
    """

    thread_id: str = Field(description="Thread grouping one logical graph run")

    checkpoint_id: Optional[str] = Field(
        default=None,
        description="Exact checkpoint to address; None means the latest",
    )


class Checkpoint(BaseModel):  # type: ignore[misc]
    """A persisted, resumable position in a graph run.

    Serialized records have the fields ``id``, ``state``, ``next_node``,
    ``parent_id``, ``metadata`` and ``created_at``.
    """

    id: str = Field(
        default_factory=new_checkpoint_id,
        description="Unique identifier, monotonic within a thread",
    )

    state: Any = Field(
        default=None,
        description="JSON-compatible rendering of the accumulated state",
    )

    next_node: Optional[str] = Field(
        default=None,
        description="Node that runs next on resume (END when finished)",
    )

    parent_id: Optional[str] = Field(
        default=None,
        description="Checkpoint this one descends from",
    )

    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form details, e.g. which node just completed",
    )

    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="ISO 8601 timestamp when checkpoint was created",
    )

    def to_json(self) -> str:
        """Render the record as a self-describing JSON document."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "Checkpoint":
        """Parse a record produced by ``to_json``."""
        return cls.model_validate_json(data)
