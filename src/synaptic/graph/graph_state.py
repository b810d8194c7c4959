"""Graph state contract, reducers and the built-in state types."""

from __future__ import annotations

import functools
from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Annotated
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Literal
from typing import Mapping
from typing import Optional
from typing import Union

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class State(ABC):
    """Contract for values the executor can accumulate.

    The executor never inspects a state beyond calling ``merge``, deep-copying
    it for node snapshots and (when checkpointing) serializing it.
    """

    @abstractmethod
    def merge(self, other: Any) -> None:
        """Fold ``other`` (a node's delta) into ``self`` (the accumulator)."""


class StateReducer(str, Enum):
    """State reduction strategies for merging node outputs.

    Defines how a field of a node's delta is merged into the accumulator:
    - OVERWRITE: Replace existing value with new value
    - APPEND: Append new value(s) to list (creates list if needed)
    - SUM: Sum numeric values
    - UNION: Add new items not already present
    - CUSTOM: Use custom reducer function (see CustomReducer)
    """

    OVERWRITE = "overwrite"
    APPEND = "append"
    SUM = "sum"
    UNION = "union"
    CUSTOM = "custom"


@dataclass(frozen=True)
class CustomReducer:
    """Field reducer backed by a function ``fn(current, update) -> merged``.

    Example:
        ```python
        class Notes(GraphState):
            text: Annotated[str, CustomReducer(lambda a, b: f"{a} | {b}")] = ""
        ```
    """

    fn: Callable[[Any, Any], Any]
    kind: StateReducer = StateReducer.CUSTOM


def apply_reducer(reducer: Any, current: Any, update: Any) -> Any:
    """Combine ``current`` and ``update`` according to ``reducer``."""
    if isinstance(reducer, CustomReducer):
        return reducer.fn(current, update)

    if reducer == StateReducer.APPEND:
        items = list(current) if current is not None else []
        if isinstance(update, (list, tuple)):
            items.extend(update)
        else:
            items.append(update)
        return items

    if reducer == StateReducer.SUM:
        if current is None:
            return update
        return current + update

    if reducer == StateReducer.UNION:
        if current is None:
            return update
        if isinstance(current, (set, frozenset)):
            return current | set(update)
        merged = list(current)
        for item in update:
            if item not in merged:
                merged.append(item)
        return merged

    return update


@functools.lru_cache(maxsize=None)
def _field_reducers(model_cls: type) -> Dict[str, Any]:
    reducers: Dict[str, Any] = {}
    for name, info in model_cls.model_fields.items():
        reducer: Any = StateReducer.OVERWRITE
        for meta in info.metadata:
            if isinstance(meta, (StateReducer, CustomReducer)):
                reducer = meta
        reducers[name] = reducer
    return reducers


class GraphState(BaseModel, State):  # type: ignore[misc]
    """Typed state container whose fields declare their own reducers.

    Reducers are attached with ``typing.Annotated``; unannotated fields are
    overwritten. Only fields explicitly set on a delta are merged, so
    ``MyState()`` is an empty delta whose merge is a no-op.

    Example:
        ```python
        class CounterState(GraphState):
            counter: Annotated[int, StateReducer.SUM] = 0
            visited: Annotated[List[str], StateReducer.APPEND] = []
            status: str = "pending"

        acc = CounterState()
        acc.merge(CounterState(counter=1, visited=["a"]))
        # acc.counter == 1, acc.visited == ["a"], acc.status == "pending"
        ```
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def merge(self, other: Union[GraphState, Mapping[str, Any]]) -> None:
        """Apply each field reducer to the fields present on ``other``.

        ``other`` may also be a plain mapping of field name to value.
        """
        reducers = _field_reducers(type(self))
        if isinstance(other, Mapping):
            updates = dict(other)
            unknown = set(updates) - set(reducers)
            if unknown:
                raise ValueError(
                    f"Unknown field(s) for {type(self).__name__}: {sorted(unknown)}"
                )
        else:
            updates = {
                name: getattr(other, name)
                for name in other.model_fields_set
                if name in reducers
            }

        for name, value in updates.items():
            merged = apply_reducer(reducers[name], getattr(self, name), value)
            setattr(self, name, merged)


class Message(BaseModel):  # type: ignore[misc]
    """A single chat message carried through agent workflows."""

    role: Literal["system", "human", "ai", "tool"]
    content: str = ""
    name: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool_calls: List[Dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role="system", content=content)

    @classmethod
    def human(cls, content: str) -> Message:
        return cls(role="human", content=content)

    @classmethod
    def ai(
        cls, content: str, tool_calls: Optional[List[Dict[str, Any]]] = None
    ) -> Message:
        return cls(role="ai", content=content, tool_calls=tool_calls or [])

    @classmethod
    def tool(cls, content: str, tool_call_id: str) -> Message:
        return cls(role="tool", content=content, tool_call_id=tool_call_id)


class MessageState(GraphState):
    """Built-in state holding an ordered list of messages.

    Merging appends the delta's messages to the accumulator.
    """

    messages: Annotated[List[Message], StateReducer.APPEND] = Field(
        default_factory=list, description="Conversation so far, oldest first"
    )

    def last_message(self) -> Optional[Message]:
        return self.messages[-1] if self.messages else None
