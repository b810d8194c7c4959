"""Tests for DatabaseCheckpointer on SQLite (aiosqlite)."""

from typing import Annotated
from typing import List

import pytest
from pydantic import Field

from synaptic import GraphInterrupt
from synaptic.checkpoints import Checkpoint
from synaptic.checkpoints import CheckpointConfig
from synaptic.checkpoints import CheckpointerConfig
from synaptic.checkpoints import DatabaseCheckpointer
from synaptic.graph import END
from synaptic.graph import GraphState
from synaptic.graph import StateGraph
from synaptic.graph import StateReducer


class CounterState(GraphState):
    counter: Annotated[int, StateReducer.SUM] = 0
    visited: Annotated[List[str], StateReducer.APPEND] = Field(default_factory=list)


def increment(name: str):
    async def step(state: CounterState) -> CounterState:
        return CounterState(counter=1, visited=[name])

    return step


def build_graph(checkpointer, interrupt_before=()):
    return (
        StateGraph(CounterState)
        .add_node("a", increment("a"))
        .add_node("b", increment("b"))
        .add_node("c", increment("c"))
        .set_entry_point("a")
        .add_edge("a", "b")
        .add_edge("b", "c")
        .add_edge("c", END)
        .interrupt_before(list(interrupt_before))
        .compile(checkpointer=checkpointer)
    )


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'checkpoints.db'}"


@pytest.fixture
async def checkpointer(db_url):
    """Create an initialized SQLite-backed checkpointer."""
    saver = DatabaseCheckpointer(db_url)
    await saver.initialize()
    yield saver
    await saver.close()


@pytest.fixture
def thread():
    return CheckpointConfig(thread_id="thread-1")


def make_checkpoint(step: int, **kwargs) -> Checkpoint:
    return Checkpoint(
        state={"counter": step},
        next_node=f"node{step + 1}",
        metadata={"node": f"node{step}", "step": step},
        **kwargs,
    )


# ============================================================================
# Test: Checkpointer Contract
# ============================================================================


class TestDatabaseCheckpointer:
    """Test put/get/list/delete against SQLite."""

    @pytest.mark.asyncio
    async def test_put_and_get(self, checkpointer, thread):
        """Test records round-trip through the database."""
        checkpoint = make_checkpoint(1, parent_id="root")

        await checkpointer.put(thread, checkpoint)
        loaded = await checkpointer.get(thread)

        assert loaded.model_dump() == checkpoint.model_dump()

    @pytest.mark.asyncio
    async def test_get_latest_and_by_id(self, checkpointer, thread):
        """Test latest resolution and lookup by ID."""
        checkpoints = [make_checkpoint(i) for i in range(3)]
        for checkpoint in checkpoints:
            await checkpointer.put(thread, checkpoint)

        latest = await checkpointer.get(thread)
        first = await checkpointer.get(
            CheckpointConfig(thread_id=thread.thread_id, checkpoint_id=checkpoints[0].id)
        )

        assert latest.id == checkpoints[2].id
        assert first.id == checkpoints[0].id

    @pytest.mark.asyncio
    async def test_get_missing(self, checkpointer, thread):
        assert await checkpointer.get(thread) is None
        missing = CheckpointConfig(thread_id=thread.thread_id, checkpoint_id="nope")
        assert await checkpointer.get(missing) is None

    @pytest.mark.asyncio
    async def test_list_in_insertion_order(self, checkpointer, thread):
        """Test list follows insertion order."""
        checkpoints = [make_checkpoint(i) for i in range(4)]
        for checkpoint in checkpoints:
            await checkpointer.put(thread, checkpoint)

        listed = await checkpointer.list(thread)

        assert [c.id for c in listed] == [c.id for c in checkpoints]
        assert [c.state for c in listed] == [c.state for c in checkpoints]

    @pytest.mark.asyncio
    async def test_duplicate_put_overwrites_in_place(self, checkpointer, thread):
        """Test re-putting an ID keeps its position and replaces its data."""
        first = make_checkpoint(1)
        second = make_checkpoint(2)
        await checkpointer.put(thread, first)
        await checkpointer.put(thread, second)

        await checkpointer.put(thread, first.model_copy(update={"next_node": "x"}))

        listed = await checkpointer.list(thread)
        assert [c.id for c in listed] == [first.id, second.id]
        assert listed[0].next_node == "x"
        assert (await checkpointer.get(thread)).id == second.id

    @pytest.mark.asyncio
    async def test_threads_are_isolated(self, checkpointer):
        await checkpointer.put(CheckpointConfig(thread_id="one"), make_checkpoint(1))

        assert await checkpointer.list(CheckpointConfig(thread_id="two")) == []

    @pytest.mark.asyncio
    async def test_delete_thread(self, checkpointer, thread):
        for i in range(3):
            await checkpointer.put(thread, make_checkpoint(i))
        await checkpointer.put(CheckpointConfig(thread_id="other"), make_checkpoint(9))

        removed = await checkpointer.delete_thread(thread)

        assert removed == 3
        assert await checkpointer.list(thread) == []
        assert len(await checkpointer.list(CheckpointConfig(thread_id="other"))) == 1

    @pytest.mark.asyncio
    async def test_retention(self, db_url, thread):
        """Test max_checkpoints_per_thread evicts the oldest rows."""
        async with DatabaseCheckpointer(
            db_url, CheckpointerConfig(max_checkpoints_per_thread=2)
        ) as saver:
            checkpoints = [make_checkpoint(i) for i in range(5)]
            for checkpoint in checkpoints:
                await saver.put(thread, checkpoint)

            listed = await saver.list(thread)

        assert [c.id for c in listed] == [c.id for c in checkpoints[3:]]

    @pytest.mark.asyncio
    async def test_lazy_initialization(self, db_url, thread):
        """Test the table is created on first use."""
        saver = DatabaseCheckpointer(db_url)
        try:
            await saver.put(thread, make_checkpoint(1))
            assert len(await saver.list(thread)) == 1
        finally:
            await saver.close()


# ============================================================================
# Test: Graph Integration
# ============================================================================


class TestDurableExecution:
    """Test graphs checkpointing to the database."""

    @pytest.mark.asyncio
    async def test_checkpoint_list_ordering(self, checkpointer, thread):
        """Test a three-node run records b, c, END in order."""
        graph = build_graph(checkpointer)

        result = await graph.invoke(CounterState(), thread)

        assert result.visited == ["a", "b", "c"]
        listed = await checkpointer.list(thread)
        assert [c.next_node for c in listed] == ["b", "c", END]

    @pytest.mark.asyncio
    async def test_resume_with_new_checkpointer_instance(self, db_url, thread):
        """Test an interrupted run resumes from a fresh connection."""
        async with DatabaseCheckpointer(db_url) as first:
            graph = build_graph(first, interrupt_before=["c"])
            with pytest.raises(GraphInterrupt) as exc_info:
                await graph.invoke(CounterState(), thread)
            assert exc_info.value.node == "c"

        async with DatabaseCheckpointer(db_url) as second:
            graph = build_graph(second, interrupt_before=["c"])
            assert (await graph.get_state(thread)).counter == 2

            events = [event async for event in graph.stream(CounterState(), config=thread)]

            assert [event.node for event in events] == ["c"]
            final = await graph.get_state(thread)
            assert final.counter == 3
            assert final.visited == ["a", "b", "c"]
