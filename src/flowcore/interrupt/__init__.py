"""Human-in-the-loop interrupt models and snapshots."""

from flowcore.interrupt.models import (
    Action,
    ActionDecision,
    ApprovalRequest,
    InterruptRequest,
)
from flowcore.interrupt.snapshot import InterruptSnapshot

__all__ = [
    "Action",
    "ActionDecision",
    "ApprovalRequest",
    "InterruptRequest",
    "InterruptSnapshot",
]
