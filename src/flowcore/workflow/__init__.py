"""Event-driven workflow engine."""

from __future__ import annotations

from flowcore.workflow.edges import Edge, EdgeTopology
from flowcore.workflow.events import Event, StartEvent, StopEvent
from flowcore.workflow.middleware import (
    MiddlewareDecision,
    MiddlewarePipeline,
    WorkflowMiddleware,
)
from flowcore.workflow.models import WorkflowStatus
from flowcore.workflow.node import FunctionNode, Node, NodeContext, interrupt, interrupt_if, node
from flowcore.workflow.router import EventRouter
from flowcore.workflow.state import WorkflowState
from flowcore.workflow.workflow import Workflow

__all__ = [
    "Edge",
    "EdgeTopology",
    "Event",
    "EventRouter",
    "FunctionNode",
    "MiddlewareDecision",
    "MiddlewarePipeline",
    "Node",
    "NodeContext",
    "StartEvent",
    "StopEvent",
    "Workflow",
    "WorkflowMiddleware",
    "WorkflowState",
    "WorkflowStatus",
    "interrupt",
    "interrupt_if",
    "node",
]
