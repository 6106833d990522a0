"""Explicit edge topology between keyed nodes."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

import networkx as nx
import structlog

from flowcore.exceptions import NoViableEdgeError, WorkflowValidationError
from flowcore.workflow.state import WorkflowState

logger = structlog.get_logger()


@dataclass(frozen=True)
class Edge:
    """Directed transition between two node keys.

    An edge without a condition is always eligible.
    """

    source: str
    target: str
    condition: Callable[[WorkflowState], bool] | None = None

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None

    def should_execute(self, state: WorkflowState) -> bool:
        if self.condition is None:
            return True
        return bool(self.condition(state))


class EdgeTopology:
    """Validated set of edges over a fixed collection of node keys."""

    def __init__(
        self,
        node_keys: Iterable[str],
        edges: Iterable[Edge],
        start: str | None = None,
        end: Iterable[str] = (),
    ) -> None:
        """Validate edges and resolve the start node.

        Raises:
            WorkflowValidationError: If an edge or the start/end declaration
                names an unknown node, or the start node is ambiguous
        """
        self._keys = list(node_keys)
        self._edges = list(edges)
        self._outgoing: dict[str, list[Edge]] = {key: [] for key in self._keys}
        self._graph: nx.DiGraph = nx.DiGraph()
        self._graph.add_nodes_from(self._keys)

        for edge in self._edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in self._outgoing:
                    raise WorkflowValidationError(
                        f"Edge {edge.source} -> {edge.target} references "
                        f"unknown node {endpoint}"
                    )
            self._outgoing[edge.source].append(edge)
            self._graph.add_edge(edge.source, edge.target)

        self.end_keys = frozenset(end)
        for key in self.end_keys:
            if key not in self._outgoing:
                raise WorkflowValidationError(f"End node {key} is not registered")

        self.start_key = self._resolve_start(start)

    def _resolve_start(self, start: str | None) -> str:
        if start is not None:
            if start not in self._outgoing:
                raise WorkflowValidationError(f"Start node {start} is not registered")
            return start

        entries = [key for key, degree in self._graph.in_degree() if degree == 0]
        if not entries:
            raise WorkflowValidationError(
                "No node found that accepts StartEvent: every node has an "
                "incoming edge, set the start node explicitly"
            )
        if len(entries) > 1:
            raise WorkflowValidationError(
                "Multiple nodes found that accept StartEvent - only one start "
                f"node is allowed (candidates: {', '.join(entries)})"
            )
        return entries[0]

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges)

    @property
    def graph(self) -> nx.DiGraph:
        return self._graph

    def is_end(self, key: str) -> bool:
        return key in self.end_keys

    def next_key(self, key: str, state: WorkflowState) -> str:
        """Select the target of the first eligible outgoing edge.

        Raises:
            NoViableEdgeError: If no outgoing edge is eligible
        """
        for edge in self._outgoing.get(key, []):
            if edge.should_execute(state):
                logger.debug("workflow_edge_selected", source=key, target=edge.target)
                return edge.target
        raise NoViableEdgeError(key)
