"""Per-invocation execution settings."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

DEFAULT_RECURSION_LIMIT = 100


@dataclass
class RunConfig:
    """Settings for a single invoke() / stream() call.

    Attributes:
        recursion_limit: Maximum number of node steps executed by one call
            before GraphRecursionError is raised. Default: 100.
        cancel_event: Optional event checked between steps; once set the run
            stops with GraphCancelled.
    """

    recursion_limit: int = DEFAULT_RECURSION_LIMIT
    cancel_event: Optional[asyncio.Event] = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.recursion_limit < 1:
            raise ValueError("recursion_limit must be >= 1")

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()
