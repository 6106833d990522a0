"""Text exporters for workflow structure graphs."""

from flowcore.exporter.base import WorkflowExporter
from flowcore.exporter.console import ConsoleExporter
from flowcore.exporter.mermaid import MermaidExporter

__all__ = ["ConsoleExporter", "MermaidExporter", "WorkflowExporter"]
