"""Mutable key/value state shared by the nodes of one workflow run."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from flowcore.serialization import dump_value, load_value


class WorkflowState:
    """Key/value store owned by a single workflow run.

    Subclasses may add typed accessors; they must accept the initial data
    mapping as their only required constructor argument so that they can be
    restored from a snapshot.
    """

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def has(self, key: str) -> bool:
        return key in self._data

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def all(self) -> dict[str, Any]:
        """Return a shallow copy of every key/value pair."""
        return dict(self._data)

    def keys(self) -> list[str]:
        return list(self._data)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible data."""
        return dump_value(self._data)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WorkflowState:
        return cls(load_value(dict(data)))

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WorkflowState):
            return NotImplemented
        return type(self) is type(other) and self._data == other._data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"
