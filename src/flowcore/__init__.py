"""flowcore: event-driven workflow engine with human-in-the-loop interrupts."""

from __future__ import annotations

from flowcore.workflow import (
    Edge,
    Event,
    FunctionNode,
    MiddlewareDecision,
    Node,
    StartEvent,
    StopEvent,
    Workflow,
    WorkflowMiddleware,
    WorkflowState,
    WorkflowStatus,
    interrupt,
    interrupt_if,
    node,
)
from flowcore.config import WorkflowSettings, get_settings
from flowcore.exceptions import (
    NoViableEdgeError,
    PersistenceError,
    RoutingError,
    SkipRemainingMiddleware,
    SnapshotNotFoundError,
    WorkflowError,
    WorkflowInterrupt,
    WorkflowValidationError,
)
from flowcore.executor import WorkflowExecutor, WorkflowHandle
from flowcore.interrupt import Action, ActionDecision, ApprovalRequest, InterruptRequest

__version__ = "0.1.0"

__all__ = [
    "Action",
    "ActionDecision",
    "ApprovalRequest",
    "Edge",
    "Event",
    "FunctionNode",
    "InterruptRequest",
    "MiddlewareDecision",
    "Node",
    "NoViableEdgeError",
    "PersistenceError",
    "RoutingError",
    "SkipRemainingMiddleware",
    "SnapshotNotFoundError",
    "StartEvent",
    "StopEvent",
    "Workflow",
    "WorkflowError",
    "WorkflowExecutor",
    "WorkflowHandle",
    "WorkflowInterrupt",
    "WorkflowMiddleware",
    "WorkflowSettings",
    "WorkflowState",
    "WorkflowStatus",
    "WorkflowValidationError",
    "get_settings",
    "interrupt",
    "interrupt_if",
    "node",
]
