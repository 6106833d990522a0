"""Resolution of the event type each node accepts and produces."""

from __future__ import annotations

import collections.abc
import inspect
import types
import typing
from collections.abc import Mapping
from typing import Any

import structlog

from flowcore.exceptions import RoutingError, WorkflowValidationError
from flowcore.workflow.events import Event, StartEvent, StopEvent
from flowcore.workflow.node import Node

logger = structlog.get_logger()

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


def _is_event_type(candidate: Any) -> bool:
    return inspect.isclass(candidate) and issubclass(candidate, Event)


def _is_union(annotation: Any) -> bool:
    return typing.get_origin(annotation) in (typing.Union, types.UnionType)


def _type_hints(node: Node) -> dict[str, Any]:
    handler = node.handler
    target = getattr(handler, "__func__", handler)
    if not inspect.isfunction(target) and not inspect.ismethod(target):
        target = getattr(target, "__call__", target)
    try:
        return typing.get_type_hints(inspect.unwrap(target))
    except (NameError, TypeError) as e:
        raise WorkflowValidationError(
            f"Failed to validate {node.name}: could not resolve type hints ({e})"
        ) from e


def accepted_event_type(node: Node) -> type[Event]:
    """Return the event type a node handles.

    Raises:
        WorkflowValidationError: If the node does not declare exactly one
            Event subclass as its input
    """
    if node.accepts is not None:
        if not _is_event_type(node.accepts):
            raise WorkflowValidationError(
                f"Failed to validate {node.name}: accepts must be an Event type"
            )
        return node.accepts

    try:
        signature = inspect.signature(node.handler)
    except (TypeError, ValueError) as e:
        raise WorkflowValidationError(
            f"Failed to validate {node.name}: handler signature is not inspectable"
        ) from e

    params = [p for p in signature.parameters.values() if p.kind in _POSITIONAL]
    if len(params) < 2:
        raise WorkflowValidationError(
            f"Failed to validate {node.name}: must have at least 2 parameters"
        )

    annotation = _type_hints(node).get(params[0].name)
    if _is_union(annotation):
        raise WorkflowValidationError(
            f"Failed to validate {node.name}: first parameter must be a single "
            "Event type, not a union"
        )
    if not _is_event_type(annotation):
        raise WorkflowValidationError(
            f"Failed to validate {node.name}: first parameter must be an Event type"
        )
    return annotation


def produced_event_types(node: Node) -> tuple[type[Event], ...]:
    """Return the statically declared output types of a node.

    Explicit ``produces`` wins over the return annotation. Unions are
    flattened and a generator's return type is used; anything that cannot
    be determined statically yields an empty tuple.
    """
    if node.produces:
        return tuple(node.produces)

    annotation = _type_hints(node).get("return")
    if annotation is None:
        return ()

    if typing.get_origin(annotation) is collections.abc.Generator:
        args = typing.get_args(annotation)
        annotation = args[2] if len(args) == 3 else None

    candidates = typing.get_args(annotation) if _is_union(annotation) else (annotation,)
    return tuple(c for c in candidates if _is_event_type(c))


class EventRouter:
    """Maps event types to the key of the node that handles them."""

    def __init__(
        self,
        nodes: Mapping[str, Node],
        explicit: Mapping[type[Event], str] | None = None,
        start_event_type: type[Event] = StartEvent,
        strict: bool = False,
    ) -> None:
        """Build and validate the event map.

        Args:
            nodes: Registered nodes by key
            explicit: Event type to node key bindings that bypass
                signature introspection
            start_event_type: Type of the event that starts a run
            strict: Also require every statically declared output type to
                be routable; otherwise unroutable events fail when dispatched

        Raises:
            WorkflowValidationError: On conflicting claims, a missing or
                duplicated start node, or (when strict) an unroutable
                declared output
        """
        self._nodes = dict(nodes)
        self._start_event_type = start_event_type
        self._map: dict[type[Event], str] = {}

        explicit = dict(explicit or {})
        bound_keys = set(explicit.values())
        for event_type, key in explicit.items():
            self._claim(event_type, key)
        for key, node in self._nodes.items():
            if key not in bound_keys:
                self._claim(accepted_event_type(node), key)

        self._validate(strict)
        logger.debug(
            "event_router_built",
            events=[t.__name__ for t in self._map],
            node_count=len(self._nodes),
        )

    def _claim(self, event_type: type[Event], key: str) -> None:
        if event_type in self._map and self._map[event_type] != key:
            if issubclass(event_type, self._start_event_type):
                raise WorkflowValidationError(
                    f"Multiple nodes found that accept {event_type.__name__} "
                    "- only one start node is allowed"
                )
            raise WorkflowValidationError(
                f"Multiple nodes found that accept event {event_type.__name__}"
            )
        self._map[event_type] = key

    def _validate(self, strict: bool) -> None:
        if self.resolve(self._start_event_type) is None:
            raise WorkflowValidationError(
                f"No node found that accepts {self._start_event_type.__name__}"
            )
        if not strict:
            return
        for key, node in self._nodes.items():
            for produced in produced_event_types(node):
                if produced is Event or issubclass(produced, StopEvent):
                    continue
                if self.resolve(produced) is None:
                    raise WorkflowValidationError(
                        f"No node found that accepts event {produced.__name__} "
                        f"(produced by {key})"
                    )

    @property
    def start_event_type(self) -> type[Event]:
        return self._start_event_type

    @property
    def mapping(self) -> dict[type[Event], str]:
        return dict(self._map)

    def resolve(self, event_type: type[Event]) -> str | None:
        """Find the node key for an event type, falling back along its MRO."""
        for cls in event_type.__mro__:
            key = self._map.get(cls)
            if key is not None:
                return key
        return None

    def route(self, event: Event) -> str:
        """Return the key of the node handling ``event``.

        Raises:
            RoutingError: If no node handles the event type
        """
        key = self.resolve(type(event))
        if key is None:
            raise RoutingError(type(event))
        return key
