"""Mermaid flowchart exporter."""

from __future__ import annotations

import networkx as nx

from flowcore.exporter.base import WorkflowExporter


class MermaidExporter(WorkflowExporter):
    """Exports a top-down Mermaid flowchart.

    Guarded transitions are drawn as dotted arrows.
    """

    def __init__(self, direction: str = "TD") -> None:
        self.direction = direction

    def export(self, graph: nx.DiGraph) -> str:
        lines = [f"graph {self.direction}"]
        seen: set[str] = set()
        for source, target, data in graph.edges(data=True):
            arrow = "-.->" if data.get("conditional") else "-->"
            connection = f"{source} {arrow} {target}"
            if connection not in seen:
                seen.add(connection)
                lines.append(f"    {connection}")
        return "\n".join(lines) + "\n"
