"""Node contract and the function-node wrapper."""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any
from typing import Callable
from typing import Generic
from typing import Optional
from typing import TypeVar

S = TypeVar("S")


@dataclass
class NodeOutput(Generic[S]):
    """Result of a node step.

    Attributes:
        update: Delta to merge into the accumulator. None means the node
            produced no delta and merge is skipped.
        goto: Optional override for the next node, bypassing edge routing.
    """

    update: Optional[S] = None
    goto: Optional[str] = None

    @classmethod
    def state(cls, update: S) -> NodeOutput[S]:
        """Plain update; routing follows the graph's edges."""
        return cls(update=update)

    @classmethod
    def goto_node(cls, update: Optional[S], target: str) -> NodeOutput[S]:
        """Update plus an explicit next node (may be END)."""
        return cls(update=update, goto=target)


class Node(ABC, Generic[S]):
    """An asynchronous unit of work in the graph.

    ``process`` receives a private deep copy of the accumulator, so mutating
    it in place is safe: nothing reaches the accumulator until the returned
    delta is merged.
    """

    @abstractmethod
    async def process(self, state: S) -> NodeOutput[S]:
        """Run the node and return its delta (optionally with a goto)."""


class FunctionNode(Node[S]):
    """A node that wraps a plain function (sync or async).

    The function receives the state snapshot and may return:
    - a NodeOutput (used as is)
    - a state value (treated as an update)
    - None (no delta)

    Example:
        ```python
        async def greet(state: MessageState) -> MessageState:
            return MessageState(messages=[Message.ai("hello")])

        graph.add_node("greet", FunctionNode(greet))
        ```
    """

    def __init__(self, function: Callable[..., Any], name: Optional[str] = None):
        """Initialize function node.

        Args:
            function: Callable taking the state snapshot
            name: Optional display name (defaults to the function's name)
        """
        if not callable(function):
            raise TypeError(f"FunctionNode requires a callable, got {type(function)!r}")
        self.function = function
        self.name = name or getattr(function, "__name__", type(function).__name__)

    async def process(self, state: S) -> NodeOutput[S]:
        if asyncio.iscoroutinefunction(self.function):
            result = await self.function(state)
        else:
            result = self.function(state)
            if inspect.isawaitable(result):
                result = await result

        if isinstance(result, NodeOutput):
            return result
        return NodeOutput(update=result)

    def __repr__(self) -> str:
        return f"FunctionNode({self.name!r})"
