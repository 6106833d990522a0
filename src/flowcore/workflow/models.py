"""Run status and tagged step outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from flowcore.exceptions import WorkflowInterrupt
from flowcore.workflow.events import Event, StopEvent
from flowcore.workflow.state import WorkflowState


class WorkflowStatus(str, Enum):
    """Lifecycle status of a workflow run."""

    PENDING = "pending"
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Progress:
    """Intermediate item yielded by a streaming node."""

    node_key: str
    item: Any


@dataclass(frozen=True)
class Continue:
    """A node produced ``event`` and the run goes on."""

    node_key: str
    event: Event


@dataclass(frozen=True)
class Suspend:
    """A node asked for external input."""

    interrupt: WorkflowInterrupt


@dataclass(frozen=True)
class Complete:
    """The run reached a Stop event or an end node."""

    state: WorkflowState
    stop_event: StopEvent | Event


StepOutcome = Continue | Suspend | Complete
