"""Plain-text tree exporter for terminals."""

from __future__ import annotations

import networkx as nx

from flowcore.exporter.base import WorkflowExporter

HEADER = "Workflow Structure:\n" + "=" * 50 + "\n\n"


class ConsoleExporter(WorkflowExporter):
    """Renders the graph as an indented tree from its start node.

    Nodes unreachable from the start are listed afterwards as orphans.
    """

    def export(self, graph: nx.DiGraph) -> str:
        start = graph.graph.get("start")
        if start is None or start not in graph:
            return HEADER + "No start node found in workflow.\n"

        end = set(graph.graph.get("end", []))
        visited: set[str] = set()
        lines: list[str] = []
        self._render(graph, start, 0, visited, end, lines)

        for name in graph.nodes:
            if name not in visited and graph.in_degree(name) == 0:
                lines.append("-" * 30)
                lines.append("Orphaned:")
                self._render(graph, name, 0, visited, end, lines)

        return HEADER + "\n".join(lines) + "\n"

    def _render(
        self,
        graph: nx.DiGraph,
        name: str,
        depth: int,
        visited: set[str],
        end: set[str],
        lines: list[str],
    ) -> None:
        indent = "  " * depth
        if name in visited:
            lines.append(f"{indent}{name} (cycle)")
            return
        visited.add(name)

        marker = "[event]" if graph.nodes[name].get("kind") == "event" else "[node]"
        suffix = " (end)" if name in end else ""
        lines.append(f"{indent}{marker} {name}{suffix}")

        successors = list(graph.successors(name))
        if not successors and marker == "[node]" and name not in end:
            lines.append(f"{indent}  (unknown output)")
        for successor in successors:
            guard = " [if]" if graph.edges[name, successor].get("conditional") else ""
            if guard:
                lines.append(f"{indent}  {guard.strip()}")
            self._render(graph, successor, depth + 1, visited, end, lines)
