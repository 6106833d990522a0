"""Tests for WorkflowState and the built-in events."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from flowcore.exceptions import SerializationError
from flowcore.workflow import Event, StartEvent, StopEvent, WorkflowState
from stubs import CounterState, FirstEvent


class TestWorkflowState:
    """Test suite for the key/value store."""

    def test_basic_operations(self) -> None:
        state = WorkflowState({"a": 1})

        state.set("b", 2)
        state.delete("a")
        state.delete("missing")

        assert state.get("a") is None
        assert state.get("a", "default") == "default"
        assert state.has("b")
        assert "b" in state
        assert state.keys() == ["b"]
        assert len(state) == 1
        assert list(state) == ["b"]

    def test_all_returns_copy(self) -> None:
        state = WorkflowState({"a": 1})

        snapshot = state.all()
        snapshot["a"] = 99

        assert state.get("a") == 1

    def test_initial_mapping_is_copied(self) -> None:
        data = {"a": 1}
        state = WorkflowState(data)

        state.set("a", 2)

        assert data == {"a": 1}

    def test_equality_requires_same_class(self) -> None:
        assert WorkflowState({"a": 1}) == WorkflowState({"a": 1})
        assert WorkflowState({"a": 1}) != CounterState({"a": 1})
        assert WorkflowState({"a": 1}) != WorkflowState({"a": 2})

    def test_dict_round_trip_preserves_rich_values(self) -> None:
        moment = datetime(2024, 5, 1, 12, 30, tzinfo=UTC)
        state = WorkflowState(
            {"event": FirstEvent(message="hi"), "pair": (1, 2), "when": moment, "raw": b"\x00"}
        )

        restored = WorkflowState.from_dict(state.to_dict())

        assert restored == state
        assert isinstance(restored.get("event"), FirstEvent)
        assert restored.get("pair") == (1, 2)

    def test_subclass_from_dict(self) -> None:
        restored = CounterState.from_dict({"counter": 4})

        assert isinstance(restored, CounterState)
        assert restored.counter == 4

    def test_unserializable_value(self) -> None:
        state = WorkflowState({"handle": object()})

        with pytest.raises(SerializationError, match="object"):
            state.to_dict()


class TestEvents:
    """Test suite for event models."""

    def test_start_event_defaults(self) -> None:
        assert StartEvent().data == {}
        assert StartEvent(data={"x": 1}).data == {"x": 1}

    def test_stop_event_result(self) -> None:
        assert StopEvent().result is None
        assert StopEvent(result=[1, 2]).result == [1, 2]

    def test_events_compare_by_value(self) -> None:
        assert FirstEvent(message="a") == FirstEvent(message="a")
        assert FirstEvent(message="a") != FirstEvent(message="b")

    def test_custom_event_fields(self) -> None:
        class Payload(Event):
            items: list[int]

        event = Payload(items=[1, 2])

        assert event.items == [1, 2]
        assert isinstance(event, Event)
