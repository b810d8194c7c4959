"""Per-node result caching keyed by the node's input state.

A node registered with a CachePolicy reuses its previous NodeOutput when it
is handed an input state whose serialized form is identical, for as long as
the entry is younger than the policy's ttl.

Example:
    ```python
    graph = (
        StateGraph(SearchState)
        .add_node("search", search, cache_policy=CachePolicy(ttl=300))
        ...
    )
    ```
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any
from typing import Callable
from typing import Dict
from typing import Mapping
from typing import Optional

from cachetools import TTLCache

from .graph_node import NodeOutput

logger = logging.getLogger("synaptic_graph." + __name__)


@dataclass
class CachePolicy:
    """Caching rules for one node.

    Attributes:
        ttl: Seconds a cached output stays valid
        max_entries: Distinct input states remembered for the node
    """

    ttl: float
    max_entries: int = 128

    def __post_init__(self):
        if self.ttl <= 0:
            raise ValueError("ttl must be positive")
        if self.max_entries < 1:
            raise ValueError("max_entries must be at least 1")


def state_key(serialized_state: Any) -> str:
    """SHA-256 of the canonical JSON form of a serialized state."""
    canonical = json.dumps(serialized_state, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class NodeCache:
    """Holds one TTLCache per cached node.

    Outputs are copied on the way in and out, so merging a cached delta
    never aliases the stored one.
    """

    def __init__(
        self,
        policies: Mapping[str, CachePolicy],
        timer: Optional[Callable[[], float]] = None,
    ):
        timer = timer or time.monotonic
        self._caches: Dict[str, TTLCache] = {
            name: TTLCache(maxsize=policy.max_entries, ttl=policy.ttl, timer=timer)
            for name, policy in policies.items()
        }

    def is_cached(self, node_name: str) -> bool:
        return node_name in self._caches

    def get(self, node_name: str, key: str) -> Optional[NodeOutput]:
        cache = self._caches.get(node_name)
        if cache is None:
            return None
        output = cache.get(key)
        if output is None:
            return None
        logger.debug(f"Cache hit for node {node_name}")
        return copy.deepcopy(output)

    def put(self, node_name: str, key: str, output: NodeOutput) -> None:
        cache = self._caches.get(node_name)
        if cache is not None:
            cache[key] = copy.deepcopy(output)

    def clear(self, node_name: Optional[str] = None) -> None:
        """Drop cached outputs of one node, or of every node."""
        if node_name is not None:
            cache = self._caches.get(node_name)
            if cache is not None:
                cache.clear()
            return
        for cache in self._caches.values():
            cache.clear()

    def size(self, node_name: str) -> int:
        cache = self._caches.get(node_name)
        if cache is None:
            return 0
        cache.expire()
        return len(cache)
