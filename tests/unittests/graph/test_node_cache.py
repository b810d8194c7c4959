"""Tests for per-node output caching."""

from typing import Annotated
from typing import List
from unittest.mock import patch

import pytest
from pydantic import Field

from synaptic.checkpoints import CheckpointConfig
from synaptic.checkpoints import InMemoryCheckpointer
from synaptic.graph import END
from synaptic.graph import CachePolicy
from synaptic.graph import GraphState
from synaptic.graph import NodeOutput
from synaptic.graph import StateGraph
from synaptic.graph import StateReducer
from synaptic.graph.node_cache import NodeCache
from synaptic.graph.node_cache import state_key


class SearchState(GraphState):
    query: str = ""
    results: Annotated[List[str], StateReducer.APPEND] = Field(default_factory=list)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def counting_search():
    calls = []

    async def search(state: SearchState) -> SearchState:
        calls.append(state.query)
        return SearchState(results=[f"hit:{state.query}"])

    return search, calls


def search_graph(search, ttl=60.0, **compile_kwargs):
    return (
        StateGraph(SearchState)
        .add_node("search", search, cache_policy=CachePolicy(ttl=ttl))
        .set_entry_point("search")
        .add_edge("search", END)
        .compile(**compile_kwargs)
    )


# ============================================================================
# Test: CachePolicy and NodeCache
# ============================================================================


class TestNodeCache:
    """Test the cache container on its own."""

    def test_policy_validation(self):
        with pytest.raises(ValueError):
            CachePolicy(ttl=0)
        with pytest.raises(ValueError):
            CachePolicy(ttl=1, max_entries=0)

    def test_state_key_is_canonical(self):
        """Test key order does not change the key."""
        assert state_key({"a": 1, "b": [1, 2]}) == state_key({"b": [1, 2], "a": 1})
        assert state_key({"a": 1}) != state_key({"a": 2})

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = NodeCache({"search": CachePolicy(ttl=10)}, timer=clock)
        cache.put("search", "k", NodeOutput(update="v"))

        clock.now = 9.0
        assert cache.get("search", "k") == NodeOutput(update="v")

        clock.now = 10.5
        assert cache.get("search", "k") is None
        assert cache.size("search") == 0

    def test_outputs_are_copied(self):
        """Test mutating a returned output leaves the cached one intact."""
        cache = NodeCache({"search": CachePolicy(ttl=10)})
        cache.put("search", "k", NodeOutput(update=["x"]))

        cache.get("search", "k").update.append("y")

        assert cache.get("search", "k").update == ["x"]

    def test_max_entries_bounds_each_node(self):
        cache = NodeCache({"search": CachePolicy(ttl=10, max_entries=2)})
        for key in ("k1", "k2", "k3"):
            cache.put("search", key, NodeOutput())

        assert cache.size("search") == 2

    def test_uncached_nodes_ignored(self):
        cache = NodeCache({})
        cache.put("other", "k", NodeOutput())

        assert not cache.is_cached("other")
        assert cache.get("other", "k") is None

    def test_clear(self):
        cache = NodeCache(
            {"search": CachePolicy(ttl=10), "rank": CachePolicy(ttl=10)}
        )
        cache.put("search", "k", NodeOutput())
        cache.put("rank", "k", NodeOutput())

        cache.clear("search")
        assert cache.size("search") == 0
        assert cache.size("rank") == 1

        cache.clear()
        assert cache.size("rank") == 0


# ============================================================================
# Test: Cached Nodes in a Graph
# ============================================================================


class TestCachedExecution:
    """Test graphs reusing cached node outputs."""

    @pytest.mark.asyncio
    async def test_same_input_reuses_output(self):
        search, calls = counting_search()
        graph = search_graph(search)

        first = await graph.invoke(SearchState(query="python"))
        second = await graph.invoke(SearchState(query="python"))

        assert calls == ["python"]
        assert first.results == second.results == ["hit:python"]

    @pytest.mark.asyncio
    async def test_different_input_runs_node(self):
        search, calls = counting_search()
        graph = search_graph(search)

        await graph.invoke(SearchState(query="python"))
        await graph.invoke(SearchState(query="rust"))

        assert calls == ["python", "rust"]

    @pytest.mark.asyncio
    async def test_expired_entry_runs_node_again(self):
        search, calls = counting_search()
        clock = FakeClock()
        with patch("synaptic.graph.node_cache.time.monotonic", clock):
            graph = search_graph(search, ttl=30)

        await graph.invoke(SearchState(query="python"))
        clock.now = 31.0
        await graph.invoke(SearchState(query="python"))

        assert calls == ["python", "python"]

    @pytest.mark.asyncio
    async def test_clear_cache(self):
        search, calls = counting_search()
        graph = search_graph(search)

        await graph.invoke(SearchState(query="python"))
        graph.clear_cache("search")
        await graph.invoke(SearchState(query="python"))

        assert calls == ["python", "python"]

    @pytest.mark.asyncio
    async def test_uncached_node_always_runs(self):
        calls = []

        def rank(state):
            calls.append("rank")

        graph = (
            StateGraph(SearchState)
            .add_node("rank", rank)
            .set_entry_point("rank")
            .compile()
        )

        await graph.invoke(SearchState())
        await graph.invoke(SearchState())

        assert calls == ["rank", "rank"]
        assert not graph.node_cache.is_cached("rank")

    @pytest.mark.asyncio
    async def test_cache_hit_still_checkpoints(self):
        """Test a cached step is merged and checkpointed like a run step."""
        search, calls = counting_search()
        checkpointer = InMemoryCheckpointer()
        graph = search_graph(search, checkpointer=checkpointer)

        await graph.invoke(SearchState(query="q"), CheckpointConfig(thread_id="one"))
        result = await graph.invoke(
            SearchState(query="q"), CheckpointConfig(thread_id="two")
        )

        assert calls == ["q"]
        assert result.results == ["hit:q"]
        stored = await checkpointer.get(CheckpointConfig(thread_id="two"))
        assert stored.state["results"] == ["hit:q"]
        assert stored.metadata["node"] == "search"

    @pytest.mark.asyncio
    async def test_cache_hit_recorded_in_metrics(self):
        search, _ = counting_search()
        graph = search_graph(search)
        await graph.invoke(SearchState(query="q"))

        with patch("synaptic.graph.graph_executor.record_node_metrics") as record:
            await graph.invoke(SearchState(query="q"))

        record.assert_called_once_with("search", 0.0, "cached")
