"""Exception hierarchy for flowcore.

Errors derive from ``WorkflowError``. Control signals used to suspend a run
or to short-circuit middleware are plain ``Exception`` subclasses so that a
broad ``except WorkflowError`` in user code never swallows them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from flowcore.interrupt.snapshot import InterruptSnapshot
    from flowcore.workflow.events import Event
    from flowcore.workflow.state import WorkflowState


class WorkflowError(Exception):
    """Base exception for workflow errors."""


class WorkflowValidationError(WorkflowError):
    """Raised when a workflow definition is invalid at build time."""


class RoutingError(WorkflowError):
    """Raised when a produced event cannot be dispatched to any node."""

    def __init__(self, event_type: type, message: str | None = None) -> None:
        self.event_type = event_type
        super().__init__(
            message or f"No node found that handles event {event_type.__name__}"
        )


class NoViableEdgeError(WorkflowError):
    """Raised when no outgoing edge of a node is eligible."""

    def __init__(self, node_key: str) -> None:
        self.node_key = node_key
        super().__init__(f"No valid edge found from node {node_key}")


class PersistenceError(WorkflowError):
    """Base exception for snapshot persistence errors."""


class SnapshotNotFoundError(PersistenceError):
    """Raised when no snapshot is stored for a run id."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"No saved interrupt found for workflow run {run_id}")


class SerializationError(WorkflowError):
    """Raised when a value cannot be converted to snapshot data."""


class SkipRemainingMiddleware(Exception):
    """Raised from a middleware ``before`` hook to skip the remaining ones."""

    def __init__(self, message: str = "Skipping remaining middleware") -> None:
        super().__init__(message)


class NodeSuspended(Exception):
    """Internal signal raised by ``Node.interrupt``.

    The orchestrator turns it into a persisted snapshot and a
    ``WorkflowInterrupt`` for the caller.
    """

    def __init__(self, payload: Any, message: str) -> None:
        self.payload = payload
        self.message = message
        super().__init__(message)


class WorkflowInterrupt(Exception):
    """Signal surfaced to the caller when a run suspends for external input."""

    def __init__(
        self,
        message: str,
        payload: Any,
        node_key: str,
        event: Event,
        state: WorkflowState,
        run_id: str,
        checkpoints: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.payload = payload
        self.node_key = node_key
        self.event = event
        self.state = state
        self.run_id = run_id
        self.checkpoints = dict(checkpoints or {})

    def to_snapshot(self) -> InterruptSnapshot:
        from flowcore.interrupt.snapshot import InterruptSnapshot

        return InterruptSnapshot.capture(self)

    @classmethod
    def from_snapshot(cls, snapshot: InterruptSnapshot) -> WorkflowInterrupt:
        return snapshot.restore()

    def to_dict(self) -> dict[str, Any]:
        """Serialize the interrupt to plain JSON-compatible data."""
        return self.to_snapshot().model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowInterrupt:
        """Rebuild an interrupt from ``to_dict`` output."""
        from flowcore.interrupt.snapshot import InterruptSnapshot

        return InterruptSnapshot.model_validate(data).restore()
