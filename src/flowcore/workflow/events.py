"""Event types exchanged between workflow nodes."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Event(BaseModel):
    """Base class for all workflow events.

    The concrete class of an event is its routing tag. Events are treated
    as immutable once produced.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)


class StartEvent(Event):
    """Entry event of a workflow run."""

    data: dict[str, Any] = Field(default_factory=dict)


class StopEvent(Event):
    """Terminal event; producing it completes the run."""

    result: Any = None
