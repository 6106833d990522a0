"""Persisted representation of a suspended workflow run."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from flowcore.exceptions import SerializationError, WorkflowInterrupt
from flowcore.serialization import (
    dump_value,
    import_qualified,
    load_value,
    qualified_name,
)
from flowcore.workflow.events import Event
from flowcore.workflow.state import WorkflowState


class InterruptSnapshot(BaseModel):
    """Everything needed to resume a suspended run, as plain data."""

    run_id: str = Field(description="Workflow run identifier")
    node_key: str = Field(description="Key of the node that suspended")
    message: str = Field(default="", description="Human-readable interrupt reason")
    payload: Any = Field(default=None, description="Serialized interrupt payload")
    event: dict[str, Any] = Field(description="Serialized input event of the node")
    state: dict[str, Any] = Field(default_factory=dict)
    state_class: str = Field(default=qualified_name(WorkflowState))
    checkpoints: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def capture(cls, interrupt: WorkflowInterrupt) -> InterruptSnapshot:
        """Serialize an interrupt signal.

        Raises:
            SerializationError: If the event, state or payload holds values
                that cannot be converted to plain data
        """
        return cls(
            run_id=interrupt.run_id,
            node_key=interrupt.node_key,
            message=interrupt.message,
            payload=dump_value(interrupt.payload),
            event=dump_value(interrupt.event),
            state=interrupt.state.to_dict(),
            state_class=qualified_name(type(interrupt.state)),
            checkpoints=dump_value(interrupt.checkpoints),
        )

    def restore_event(self) -> Event:
        event = load_value(self.event)
        if not isinstance(event, Event):
            raise SerializationError(
                f"Snapshot for run {self.run_id} does not hold an event"
            )
        return event

    def restore_state(self) -> WorkflowState:
        state_class = import_qualified(self.state_class)
        if not (isinstance(state_class, type) and issubclass(state_class, WorkflowState)):
            raise SerializationError(
                f"{self.state_class} is not a WorkflowState subclass"
            )
        return state_class.from_dict(self.state)

    def restore(self) -> WorkflowInterrupt:
        return WorkflowInterrupt(
            message=self.message,
            payload=load_value(self.payload),
            node_key=self.node_key,
            event=self.restore_event(),
            state=self.restore_state(),
            run_id=self.run_id,
            checkpoints=load_value(self.checkpoints),
        )
