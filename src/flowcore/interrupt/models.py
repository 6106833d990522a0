"""Approval request models passed as interrupt payloads."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ActionDecision(str, Enum):
    """Decision recorded for an action awaiting approval."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EDIT = "edit"


class Action(BaseModel):
    """A single operation that requires a human decision before it runs."""

    id: str = Field(description="Unique identifier of the action")
    name: str = Field(description="Short human-readable name")
    description: str = Field(default="", description="What the action does")
    decision: ActionDecision = Field(default=ActionDecision.PENDING)
    feedback: str | None = Field(default=None, description="Approver feedback")

    def approve(self, feedback: str | None = None) -> None:
        self.decision = ActionDecision.APPROVED
        if feedback is not None:
            self.feedback = feedback

    def reject(self, feedback: str | None = None) -> None:
        self.decision = ActionDecision.REJECTED
        if feedback is not None:
            self.feedback = feedback

    def edit(self, feedback: str | None = None) -> None:
        self.decision = ActionDecision.EDIT
        if feedback is not None:
            self.feedback = feedback

    @property
    def is_pending(self) -> bool:
        return self.decision == ActionDecision.PENDING

    @property
    def is_approved(self) -> bool:
        return self.decision == ActionDecision.APPROVED

    @property
    def is_rejected(self) -> bool:
        return self.decision == ActionDecision.REJECTED

    @property
    def is_edited(self) -> bool:
        return self.decision == ActionDecision.EDIT

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Action:
        return cls.model_validate(data)


class InterruptRequest(BaseModel):
    """Base interrupt payload carrying a human-readable reason."""

    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InterruptRequest:
        return cls.model_validate(data)


class ApprovalRequest(InterruptRequest):
    """Interrupt payload listing actions that need approval.

    Actions are keyed by id; adding an action whose id already exists
    replaces the previous one.
    """

    actions: dict[str, Action] = Field(default_factory=dict)

    @field_validator("actions", mode="before")
    @classmethod
    def _key_actions_by_id(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, str):
            value = json.loads(value) if value else []
        if isinstance(value, (list, tuple)):
            keyed: dict[str, Any] = {}
            for item in value:
                action_id = item.id if isinstance(item, Action) else item["id"]
                keyed[action_id] = item
            return keyed
        return value

    def add_action(self, action: Action) -> ApprovalRequest:
        self.actions[action.id] = action
        return self

    def set_actions(self, actions: list[Action]) -> ApprovalRequest:
        for action in actions:
            self.add_action(action)
        return self

    def get_action(self, action_id: str) -> Action | None:
        return self.actions.get(action_id)

    def get_actions(self) -> list[Action]:
        return list(self.actions.values())

    def pending_actions(self) -> list[Action]:
        return [a for a in self.actions.values() if a.is_pending]

    def approved_actions(self) -> list[Action]:
        return [a for a in self.actions.values() if a.is_approved]

    def rejected_actions(self) -> list[Action]:
        return [a for a in self.actions.values() if a.is_rejected]

    @property
    def is_resolved(self) -> bool:
        """True once every action has a decision."""
        return not self.pending_actions()

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "actions": [action.to_dict() for action in self.actions.values()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApprovalRequest:
        """Build a request from ``to_dict`` output.

        ``actions`` may be a list of action dicts or a JSON-encoded string
        of that list; a missing key yields an empty request.
        """
        return cls.model_validate(
            {"message": data.get("message", ""), "actions": data.get("actions", [])}
        )
