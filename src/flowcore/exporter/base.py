"""Exporter interface for workflow graphs."""

from __future__ import annotations

from abc import ABC, abstractmethod

import networkx as nx


class WorkflowExporter(ABC):
    """Renders a workflow structure graph as text."""

    @abstractmethod
    def export(self, graph: nx.DiGraph) -> str:
        """Render ``graph``, as built by ``flowcore.workflow.graph``."""
