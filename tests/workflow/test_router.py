"""Tests for event type discovery and router validation."""

from __future__ import annotations

import pytest

from flowcore.exceptions import WorkflowValidationError
from flowcore.workflow import Event, Node, StartEvent, StopEvent, Workflow, WorkflowState
from flowcore.workflow.router import EventRouter, accepted_event_type, produced_event_types
from stubs import (
    ConditionalNode,
    FirstEvent,
    NodeOne,
    NodeThree,
    NodeTwo,
    SecondEvent,
    StreamingNode,
    ThirdEvent,
)


class OneParamNode(Node):
    def __call__(self, event: StartEvent) -> StopEvent:
        return StopEvent()


class UntypedNode(Node):
    def __call__(self, event, state):
        return StopEvent()


class NotAnEventNode(Node):
    def __call__(self, event: str, state: WorkflowState) -> StopEvent:
        return StopEvent()


class UnionInputNode(Node):
    def __call__(self, event: FirstEvent | SecondEvent, state: WorkflowState) -> StopEvent:
        return StopEvent()


class DeclaredNode(Node):
    accepts = FirstEvent
    produces = (ThirdEvent,)

    def __call__(self, event, state):
        return ThirdEvent()


class AnotherStartNode(Node):
    def __call__(self, event: StartEvent, state: WorkflowState) -> StopEvent:
        return StopEvent()


class TestAcceptedEventType:
    """Test suite for input type resolution."""

    def test_from_signature(self) -> None:
        assert accepted_event_type(NodeTwo()) is FirstEvent

    def test_explicit_declaration_wins(self) -> None:
        assert accepted_event_type(DeclaredNode()) is FirstEvent

    def test_requires_two_parameters(self) -> None:
        with pytest.raises(WorkflowValidationError, match="OneParamNode: must have at least 2 parameters"):
            accepted_event_type(OneParamNode())

    def test_requires_annotation(self) -> None:
        with pytest.raises(WorkflowValidationError, match="first parameter must be an Event type"):
            accepted_event_type(UntypedNode())

    def test_rejects_non_event_annotation(self) -> None:
        with pytest.raises(WorkflowValidationError, match="NotAnEventNode"):
            accepted_event_type(NotAnEventNode())

    def test_rejects_union_input(self) -> None:
        with pytest.raises(WorkflowValidationError, match="not a union"):
            accepted_event_type(UnionInputNode())


class TestProducedEventTypes:
    """Test suite for output type resolution."""

    def test_single_return_type(self) -> None:
        assert produced_event_types(NodeOne()) == (FirstEvent,)

    def test_union_return_type(self) -> None:
        assert set(produced_event_types(ConditionalNode())) == {SecondEvent, ThirdEvent}

    def test_generator_return_type(self) -> None:
        assert produced_event_types(StreamingNode()) == (StopEvent,)

    def test_declared_produces(self) -> None:
        assert produced_event_types(DeclaredNode()) == (ThirdEvent,)

    def test_missing_annotation(self) -> None:
        assert produced_event_types(UntypedNode()) == ()


class TestEventRouter:
    """Test suite for router construction."""

    def test_routes_by_type(self) -> None:
        router = EventRouter({"one": NodeOne(), "two": NodeTwo()})

        assert router.route(StartEvent()) == "one"
        assert router.route(FirstEvent()) == "two"
        assert router.resolve(ThirdEvent) is None

    def test_missing_start_node(self) -> None:
        with pytest.raises(WorkflowValidationError, match="No node found that accepts StartEvent"):
            EventRouter({"two": NodeTwo()})

    def test_duplicate_start_node(self) -> None:
        with pytest.raises(WorkflowValidationError, match="only one start node is allowed"):
            EventRouter({"one": NodeOne(), "other": AnotherStartNode()})

    def test_conflicting_claims(self) -> None:
        with pytest.raises(
            WorkflowValidationError, match="Multiple nodes found that accept event FirstEvent"
        ):
            EventRouter({"one": NodeOne(), "two": NodeTwo(), "declared": DeclaredNode()})

    def test_strict_rejects_unroutable_output(self) -> None:
        nodes = {"one": NodeOne(), "two": NodeTwo()}

        EventRouter(nodes)
        with pytest.raises(WorkflowValidationError, match="accepts event SecondEvent"):
            EventRouter(nodes, strict=True)

    def test_strict_accepts_complete_graph(self) -> None:
        router = EventRouter(
            {"one": NodeOne(), "two": NodeTwo(), "three": NodeThree()}, strict=True
        )

        assert router.mapping == {StartEvent: "one", FirstEvent: "two", SecondEvent: "three"}

    def test_custom_start_event(self) -> None:
        class Kickoff(Event):
            pass

        router = EventRouter({"declared": DeclaredNode()}, {Kickoff: "declared"}, Kickoff)

        assert router.route(Kickoff()) == "declared"


def test_workflow_build_errors_surface_before_running() -> None:
    """Test that validation errors prevent any node from running."""
    workflow = Workflow().add_nodes([NodeOne(), AnotherStartNode()])

    with pytest.raises(WorkflowValidationError):
        workflow.run()
    assert workflow.state is None


def test_validate_strict() -> None:
    """Test opt-in validation of declared outputs."""
    workflow = Workflow().add_nodes([NodeOne(), NodeTwo()])

    workflow.validate()
    with pytest.raises(WorkflowValidationError, match="SecondEvent"):
        workflow.validate(strict=True)


def test_workflow_without_nodes_is_invalid() -> None:
    """Test that an empty workflow cannot run."""
    with pytest.raises(WorkflowValidationError, match="no nodes"):
        Workflow().run()
