"""Synaptic: stateful graph execution with checkpointing and interrupts."""

from . import version
from .errors import CheckpointerError
from .errors import GraphCancelled
from .errors import GraphError
from .errors import GraphInterrupt
from .errors import GraphRecursionError
from .errors import NodeError
from .errors import SynapticError

__version__ = version.__version__

__all__ = [
    "SynapticError",
    "GraphError",
    "GraphRecursionError",
    "NodeError",
    "CheckpointerError",
    "GraphInterrupt",
    "GraphCancelled",
]
