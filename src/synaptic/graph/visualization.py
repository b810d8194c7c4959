"""Text renderings of a compiled graph's topology.

All renderers sort nodes and edges so the output is deterministic for a
given graph:
- draw_mermaid: Mermaid flowchart ("graph TD")
- draw_ascii: plain-text summary, also used by str(graph)
- draw_dot: Graphviz DOT
- export_graph_structure: D3-compatible JSON dict
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any
from typing import Dict
from typing import List
from typing import Tuple

from .graph_edge import END
from .graph_edge import START
from .graph_node import FunctionNode

if TYPE_CHECKING:
    from .compiled_graph import CompiledGraph


def _fixed_edges(graph: CompiledGraph) -> List[Tuple[str, str]]:
    return sorted(graph.edges.items())


def draw_mermaid(graph: CompiledGraph) -> str:
    """Render the graph as a Mermaid flowchart.

    Fixed edges are solid arrows; conditional edges are dotted arrows
    labelled with their path_map keys. A conditional edge without a
    path_map is emitted as a Mermaid comment.
    """
    lines = ["graph TD"]

    lines.append(f'    {START}(["{START}"])')
    for name in sorted(graph.nodes):
        lines.append(f'    {name}["{name}"]')
    lines.append(f'    {END}(["{END}"])')

    if graph.entry_point is not None:
        lines.append(f"    {START} --> {graph.entry_point}")
    for source, target in _fixed_edges(graph):
        lines.append(f"    {source} --> {target}")

    for source in sorted(graph.conditional_edges):
        path_map = graph.conditional_edges[source].path_map
        if path_map is None:
            lines.append(f"    %% {source} has conditional edge (path_map not provided)")
            continue
        for label, target in sorted(path_map.items()):
            lines.append(f"    {source} -.-> |{label}| {target}")

    return "\n".join(lines)


def draw_ascii(graph: CompiledGraph) -> str:
    """Render a compact plain-text summary of nodes and edges."""
    lines = ["Graph:"]
    lines.append(f"  Nodes: {', '.join(sorted(graph.nodes))}")
    entry = graph.entry_point if graph.entry_point is not None else "(router)"
    lines.append(f"  Entry: {START} -> {entry}")
    lines.append("  Edges:")

    for source, target in _fixed_edges(graph):
        lines.append(f"    {source} -> {target}")

    for source in sorted(graph.conditional_edges):
        path_map = graph.conditional_edges[source].path_map
        if path_map is None:
            lines.append(f"    {source} -> ???  [conditional]")
        else:
            targets = sorted(set(path_map.values()))
            lines.append(f"    {source} -> {' | '.join(targets)}  [conditional]")

    return "\n".join(lines)


def draw_dot(graph: CompiledGraph) -> str:
    """Render the graph in Graphviz DOT format.

    Pipe the result to ``dot -Tpng`` to produce an image.
    """
    lines = ["digraph G {", "    rankdir=TD;"]

    lines.append(f'    "{START}" [shape=oval];')
    for name in sorted(graph.nodes):
        lines.append(f'    "{name}" [shape=box];')
    lines.append(f'    "{END}" [shape=oval];')

    if graph.entry_point is not None:
        lines.append(f'    "{START}" -> "{graph.entry_point}" [style=solid];')
    for source, target in _fixed_edges(graph):
        lines.append(f'    "{source}" -> "{target}" [style=solid];')

    for source in sorted(graph.conditional_edges):
        path_map = graph.conditional_edges[source].path_map
        if path_map is None:
            continue
        for label, target in sorted(path_map.items()):
            lines.append(
                f'    "{source}" -> "{target}" [style=dashed, label="{label}"];'
            )

    lines.append("}")
    return "\n".join(lines)


def export_graph_structure(graph: CompiledGraph) -> Dict[str, Any]:
    """Export graph structure in D3-compatible JSON format.

    Returns:
        Dictionary with structure:
        {
            "nodes": [{"id": "a", "type": "function", "name": "a"}, ...],
            "links": [{"source": "a", "target": "b", "conditional": False}, ...],
            "metadata": {"entry_point": "a", "interrupt_before": [...], ...},
            "directed": True
        }

    Conditional edges contribute one link per path_map target; without a
    path_map they cannot be enumerated and only appear in metadata.
    """
    nodes = [
        {"id": START, "type": "sentinel", "name": START},
    ]
    for name, node in graph.nodes.items():
        nodes.append(
            {
                "id": name,
                "type": "function" if isinstance(node, FunctionNode) else "node",
                "name": getattr(node, "name", name),
            }
        )
    nodes.append({"id": END, "type": "sentinel", "name": END})

    links = []
    if graph.entry_point is not None:
        links.append(
            {"source": START, "target": graph.entry_point, "conditional": False}
        )
    for source, target in graph.edges.items():
        links.append({"source": source, "target": target, "conditional": False})
    for source, edge in graph.conditional_edges.items():
        for label, target in (edge.path_map or {}).items():
            links.append(
                {"source": source, "target": target, "conditional": True, "label": label}
            )

    metadata = {
        "entry_point": graph.entry_point,
        "conditional_sources": sorted(graph.conditional_edges),
        "interrupt_before": sorted(graph.interrupt_before_nodes),
        "interrupt_after": sorted(graph.interrupt_after_nodes),
        "checkpointing": graph.checkpointer is not None,
    }

    return {"nodes": nodes, "links": links, "metadata": metadata, "directed": True}
