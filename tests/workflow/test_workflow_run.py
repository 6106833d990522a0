"""Tests for event-routed workflow runs."""

from __future__ import annotations

import pytest

from flowcore.exceptions import RoutingError, WorkflowError
from flowcore.workflow import (
    FunctionNode,
    StartEvent,
    StopEvent,
    Workflow,
    WorkflowState,
    WorkflowStatus,
    node,
)
from stubs import (
    ConditionalNode,
    FirstEvent,
    NodeForSecond,
    NodeForThird,
    NodeOne,
    NodeThree,
    NodeTwo,
    SecondEvent,
    SpecialNodeTwo,
)


def test_linear_workflow_runs_every_node() -> None:
    """Test a three node chain routed by event types."""
    workflow = Workflow().add_nodes([NodeOne(), NodeTwo(), NodeThree()])

    state = workflow.run()

    assert state.get("node_one_executed") is True
    assert state.get("node_two_executed") is True
    assert state.get("node_three_executed") is True
    assert workflow.status == WorkflowStatus.COMPLETED
    assert isinstance(workflow.result, StopEvent)
    assert workflow.result.result == "Second complete"


def test_run_uses_supplied_state() -> None:
    """Test that the caller's state object is mutated and returned."""
    initial = WorkflowState({"counter": 7})
    workflow = Workflow().add_nodes([NodeOne(), NodeTwo(), NodeThree()])

    state = workflow.run(initial)

    assert state is initial
    assert state.get("counter") == 7


def test_run_accepts_plain_mapping() -> None:
    """Test that a dict is wrapped into a WorkflowState."""
    workflow = Workflow(state={"seed": 1}).add_nodes([NodeOne(), NodeTwo(), NodeThree()])

    state = workflow.run()

    assert isinstance(state, WorkflowState)
    assert state.get("seed") == 1


@pytest.mark.parametrize(
    ("condition", "expected"),
    [("second", "second"), ("third", "third")],
)
def test_branching_node_routes_by_produced_type(condition: str, expected: str) -> None:
    """Test that a union-returning node branches on the runtime event type."""
    workflow = Workflow().add_nodes(
        [NodeOne(), ConditionalNode(), NodeForSecond(), NodeForThird()]
    )

    state = workflow.run({"condition": condition})

    assert state.get("final_node") == expected


def test_unhandled_event_fails_when_dispatched() -> None:
    """Test that a missing handler aborts the run naming the event type."""
    workflow = Workflow().add_nodes([NodeOne(), ConditionalNode(), NodeForThird()])
    state = WorkflowState({"condition": "second"})

    with pytest.raises(RoutingError, match="SecondEvent") as exc_info:
        workflow.run(state)

    assert exc_info.value.event_type is SecondEvent
    assert state.get("node_one_executed") is True
    assert workflow.status == WorkflowStatus.FAILED


def test_subclass_event_falls_back_to_parent_handler() -> None:
    """Test that routing walks the event class hierarchy."""
    workflow = Workflow().add_nodes([NodeOne(), SpecialNodeTwo(), NodeThree()])

    state = workflow.run()

    assert state.get("special_node_two_executed") is True
    assert workflow.result.result == "Special"


def test_node_exception_propagates_unchanged() -> None:
    """Test that handler errors reach the caller and mark the run failed."""

    class Boom(Exception):
        pass

    def explode(event: StartEvent, state: WorkflowState) -> StopEvent:
        raise Boom("kaboom")

    workflow = Workflow().add_node(explode)

    with pytest.raises(Boom, match="kaboom"):
        workflow.run()
    assert workflow.status == WorkflowStatus.FAILED


def test_node_returning_non_event_is_rejected() -> None:
    """Test that a handler must produce an Event."""

    def bad(event: StartEvent, state: WorkflowState) -> StopEvent:
        return "not an event"

    with pytest.raises(WorkflowError, match="must produce an Event"):
        Workflow().add_node(bad).run()


def test_function_nodes() -> None:
    """Test plain functions and decorated functions as nodes."""

    @node
    def greet(event: StartEvent, state: WorkflowState) -> FirstEvent:
        state.set("greeting", f"hello {event.data['name']}")
        return FirstEvent()

    def finish(event: FirstEvent, state: WorkflowState) -> StopEvent:
        return StopEvent(result=state.get("greeting"))

    workflow = Workflow().add_node(greet).add_node(finish)
    workflow.set_start_event(StartEvent(data={"name": "ada"}))

    workflow.run()

    assert isinstance(greet, FunctionNode)
    assert workflow.result.result == "hello ada"


def test_explicit_event_mapping_bypasses_introspection() -> None:
    """Test registering nodes keyed by the event type they handle."""
    passthrough = FunctionNode(lambda event, state: StopEvent(result="mapped"))
    workflow = Workflow().add_nodes({StartEvent: passthrough})

    workflow.run()

    assert workflow.result.result == "mapped"
    assert workflow.get_event_node_map() == {StartEvent: passthrough}


def test_get_event_node_map() -> None:
    """Test the resolved event to node mapping."""
    one, two, three = NodeOne(), NodeTwo(), NodeThree()
    workflow = Workflow().add_nodes([one, two, three])

    mapping = workflow.get_event_node_map()

    assert mapping == {StartEvent: one, FirstEvent: two, SecondEvent: three}


def test_event_map_cache_invalidated_on_add() -> None:
    """Test that adding nodes after building recomputes the map."""
    workflow = Workflow().add_nodes([NodeOne(), NodeTwo()])
    assert SecondEvent not in workflow.get_event_node_map()

    workflow.add_node(NodeThree())

    assert SecondEvent in workflow.get_event_node_map()


def test_shared_node_instance_across_workflows() -> None:
    """Test that node instances can be reused by independent workflows."""
    nodes = [NodeOne(), NodeTwo(), NodeThree()]

    first = Workflow().add_nodes(nodes).run()
    second = Workflow().add_nodes(nodes).run()

    assert first is not second
    assert first.get("node_three_executed") and second.get("node_three_executed")


@pytest.mark.asyncio
async def test_arun() -> None:
    """Test running a workflow from inside an event loop."""
    workflow = Workflow().add_nodes([NodeOne(), NodeTwo(), NodeThree()])

    state = await workflow.arun()

    assert state.get("node_three_executed") is True


def test_run_ids_are_unique() -> None:
    """Test generated run ids."""
    assert Workflow().run_id != Workflow().run_id
    assert Workflow().run_id.startswith("workflow_")
    assert Workflow(run_id="custom").run_id == "custom"
