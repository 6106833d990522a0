"""Conversion of state values and events to plain JSON-compatible data.

Pydantic models, enums and a few non-JSON builtins are tagged with their
type so that they can be rebuilt when a snapshot is restored. Models are
dumped field by field, so values held in ``Any`` fields keep their type too.
"""

from __future__ import annotations

import base64
import importlib
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from flowcore.exceptions import SerializationError

TYPE_KEY = "__type__"
DATA_KEY = "__data__"


def qualified_name(cls: type) -> str:
    """Return an importable ``module:QualName`` path for a class."""
    return f"{cls.__module__}:{cls.__qualname__}"


def import_qualified(path: str) -> Any:
    """Import an object from a ``module:QualName`` path."""
    module_name, _, qualname = path.partition(":")
    if not qualname or "<locals>" in qualname:
        raise SerializationError(f"Cannot import {path!r}")
    try:
        obj: Any = importlib.import_module(module_name)
        for attr in qualname.split("."):
            obj = getattr(obj, attr)
    except (ImportError, AttributeError) as e:
        raise SerializationError(f"Cannot import {path!r}: {e}") from e
    return obj


def dump_value(value: Any) -> Any:
    """Convert a value to JSON-compatible data, tagging rich types."""
    # str and int enums are instances of their mixin type too
    if isinstance(value, Enum):
        return {TYPE_KEY: qualified_name(type(value)), DATA_KEY: dump_value(value.value)}
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, BaseModel):
        return {TYPE_KEY: qualified_name(type(value)), DATA_KEY: _dump_fields(value)}
    if isinstance(value, dict):
        dumped = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise SerializationError(
                    f"Only string keys can be serialized, got {key!r}"
                )
            dumped[key] = dump_value(item)
        return dumped
    if isinstance(value, list):
        return [dump_value(item) for item in value]
    if isinstance(value, tuple):
        return {TYPE_KEY: "tuple", DATA_KEY: [dump_value(item) for item in value]}
    if isinstance(value, (set, frozenset)):
        return {TYPE_KEY: "set", DATA_KEY: [dump_value(item) for item in value]}
    if isinstance(value, datetime):
        return {TYPE_KEY: "datetime", DATA_KEY: value.isoformat()}
    if isinstance(value, date):
        return {TYPE_KEY: "date", DATA_KEY: value.isoformat()}
    if isinstance(value, bytes):
        return {TYPE_KEY: "bytes", DATA_KEY: base64.b64encode(value).decode("ascii")}

    raise SerializationError(
        f"Value of type {type(value).__name__} cannot be stored in a snapshot"
    )


def _dump_fields(model: BaseModel) -> dict[str, Any]:
    """Dump each field value on its own so that rich values keep their tags."""
    return {
        info.alias or name: dump_value(getattr(model, name))
        for name, info in type(model).model_fields.items()
    }


def load_value(data: Any) -> Any:
    """Rebuild a value produced by ``dump_value``."""
    if isinstance(data, list):
        return [load_value(item) for item in data]
    if not isinstance(data, dict):
        return data
    if TYPE_KEY not in data or DATA_KEY not in data:
        return {key: load_value(item) for key, item in data.items()}

    tag = data[TYPE_KEY]
    payload = data[DATA_KEY]
    if tag == "tuple":
        return tuple(load_value(item) for item in payload)
    if tag == "set":
        return {load_value(item) for item in payload}
    if tag == "datetime":
        return datetime.fromisoformat(payload)
    if tag == "date":
        return date.fromisoformat(payload)
    if tag == "bytes":
        return base64.b64decode(payload)

    cls = import_qualified(tag)
    if isinstance(cls, type) and issubclass(cls, BaseModel):
        return cls.model_validate(load_value(payload))
    if isinstance(cls, type) and issubclass(cls, Enum):
        return cls(load_value(payload))
    raise SerializationError(f"Unsupported serialized type {tag!r}")
