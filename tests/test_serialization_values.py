"""Tests for snapshot value serialization."""

from __future__ import annotations

import json
from datetime import date, datetime
from enum import Enum, IntEnum

import pytest

from flowcore.exceptions import SerializationError
from flowcore.interrupt import ActionDecision
from flowcore.serialization import (
    DATA_KEY,
    TYPE_KEY,
    dump_value,
    import_qualified,
    load_value,
    qualified_name,
)
from flowcore.workflow import StopEvent, WorkflowState
from stubs import FirstEvent


class Color(Enum):
    RED = "red"


class Priority(IntEnum):
    LOW = 1
    HIGH = 2


def test_plain_values_pass_through() -> None:
    value = {"a": [1, 2.5, "x", None, True], "b": {"nested": "ok"}}

    assert dump_value(value) == value
    assert load_value(value) == value


def test_rich_values_are_tagged_and_json_safe() -> None:
    value = {
        "event": FirstEvent(message="hi"),
        "decision": ActionDecision.APPROVED,
        "pair": (1, "two"),
        "tags": {"x"},
        "when": datetime(2024, 1, 2, 3, 4, 5),
        "day": date(2024, 1, 2),
        "raw": b"\x01\x02",
        "color": Color.RED,
    }

    dumped = dump_value(value)
    restored = load_value(json.loads(json.dumps(dumped)))

    assert dumped["event"][TYPE_KEY] == "stubs:FirstEvent"
    assert dumped["event"][DATA_KEY] == {"message": "hi"}
    assert restored == value


def test_nested_models_inside_models() -> None:
    event = StopEvent(result={"inner": [1, 2]})

    assert load_value(dump_value(event)) == event


@pytest.mark.parametrize("value", [object(), {1: "int key"}, lambda: None])
def test_unsupported_values(value) -> None:
    with pytest.raises(SerializationError):
        dump_value(value)


def test_qualified_name_round_trip() -> None:
    path = qualified_name(FirstEvent)

    assert path == "stubs:FirstEvent"
    assert import_qualified(path) is FirstEvent


@pytest.mark.parametrize(
    "path",
    ["no_colon", "stubs:Missing", "missing_module_xyz:Thing", "stubs:make.<locals>.Local"],
)
def test_import_qualified_errors(path: str) -> None:
    with pytest.raises(SerializationError):
        import_qualified(path)


def test_unknown_tag_rejected() -> None:
    with pytest.raises(SerializationError, match="Unsupported serialized type"):
        load_value({TYPE_KEY: "stubs:is_even", DATA_KEY: {}})


class TestEnumsKeepTheirType:
    """Test suite for enums that also subclass a builtin type."""

    @pytest.mark.parametrize("member", [ActionDecision.APPROVED, Priority.HIGH, Color.RED])
    def test_member_restored(self, member: Enum) -> None:
        dumped = dump_value(member)
        restored = load_value(json.loads(json.dumps(dumped)))

        assert dumped[TYPE_KEY] == qualified_name(type(member))
        assert type(restored) is type(member)
        assert restored is member

    def test_state_round_trip_keeps_enums(self) -> None:
        state = WorkflowState({"decision": ActionDecision.REJECTED, "priority": Priority.LOW})

        restored = WorkflowState.from_dict(json.loads(json.dumps(state.to_dict())))

        assert isinstance(restored.get("decision"), ActionDecision)
        assert isinstance(restored.get("priority"), Priority)
        assert restored == state


class TestModelFieldsKeepTheirType:
    """Test suite for rich values held in loosely typed model fields."""

    def test_any_field_values_restored(self) -> None:
        when = datetime(2024, 1, 2, 3, 4, 5)
        event = StopEvent(result={"when": when, "pair": (1, 2), "decision": Priority.HIGH})

        dumped = dump_value(event)
        restored = load_value(json.loads(json.dumps(dumped)))

        assert dumped[DATA_KEY]["result"]["when"][TYPE_KEY] == "datetime"
        assert restored.result["when"] == when
        assert restored.result["pair"] == (1, 2)
        assert type(restored.result["decision"]) is Priority

    def test_nested_event_in_any_field(self) -> None:
        event = StopEvent(result=FirstEvent(message="inner"))

        restored = load_value(json.loads(json.dumps(dump_value(event))))

        assert isinstance(restored.result, FirstEvent)
        assert restored.result.message == "inner"
