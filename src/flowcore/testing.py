"""Test doubles for code built on flowcore."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from flowcore.workflow.events import Event
from flowcore.workflow.middleware import MiddlewareDecision, WorkflowMiddleware
from flowcore.workflow.node import Node
from flowcore.workflow.state import WorkflowState


@dataclass(frozen=True)
class MiddlewareRecord:
    """One recorded middleware hook call."""

    method: str
    node: Node
    event: Event
    state: WorkflowState


class FakeMiddleware(WorkflowMiddleware):
    """Middleware that records every hook call.

    Optional handlers and exceptions let tests steer the pipeline.
    """

    def __init__(
        self,
        before_handler: Callable[[Node, Event, WorkflowState], Any] | None = None,
        after_handler: Callable[[Node, Event, WorkflowState], Any] | None = None,
        raise_on_before: BaseException | None = None,
        raise_on_after: BaseException | None = None,
    ) -> None:
        self.records: list[MiddlewareRecord] = []
        self.before_handler = before_handler
        self.after_handler = after_handler
        self.raise_on_before = raise_on_before
        self.raise_on_after = raise_on_after

    def before(
        self, node: Node, event: Event, state: WorkflowState
    ) -> MiddlewareDecision | None:
        self.records.append(MiddlewareRecord("before", node, event, state))
        decision = None
        if self.before_handler is not None:
            decision = self.before_handler(node, event, state)
        if self.raise_on_before is not None:
            raise self.raise_on_before
        return decision

    def after(self, node: Node, result: Event, state: WorkflowState) -> None:
        self.records.append(MiddlewareRecord("after", node, result, state))
        if self.after_handler is not None:
            self.after_handler(node, result, state)
        if self.raise_on_after is not None:
            raise self.raise_on_after

    @property
    def before_records(self) -> list[MiddlewareRecord]:
        return [r for r in self.records if r.method == "before"]

    @property
    def after_records(self) -> list[MiddlewareRecord]:
        return [r for r in self.records if r.method == "after"]

    def assert_before_called(self, times: int | None = None) -> None:
        count = len(self.before_records)
        if times is None:
            assert count > 0, "Expected before() to be called at least once, but it was not called."
        else:
            assert count == times, f"Expected before() to be called {times} times, got {count}."

    def assert_after_called(self, times: int | None = None) -> None:
        count = len(self.after_records)
        if times is None:
            assert count > 0, "Expected after() to be called at least once, but it was not called."
        else:
            assert count == times, f"Expected after() to be called {times} times, got {count}."

    def assert_before_not_called(self) -> None:
        assert not self.before_records, (
            f"Expected before() not to be called, but it was called {len(self.before_records)} times."
        )

    def assert_after_not_called(self) -> None:
        assert not self.after_records, (
            f"Expected after() not to be called, but it was called {len(self.after_records)} times."
        )

    def assert_called_for_node(self, node_type: type[Node]) -> None:
        assert any(isinstance(r.node, node_type) for r in self.records), (
            f"Expected a hook to be called for {node_type.__name__}."
        )

    def assert_received_event(self, event_type: type[Event]) -> None:
        assert any(isinstance(r.event, event_type) for r in self.records), (
            f"Expected a hook to receive {event_type.__name__}."
        )

    def reset(self) -> None:
        self.records.clear()
