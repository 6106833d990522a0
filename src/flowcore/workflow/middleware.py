"""Middleware hooks wrapped around node invocations."""

from __future__ import annotations

import inspect
from enum import Enum
from typing import Any

import structlog

from flowcore.exceptions import SkipRemainingMiddleware
from flowcore.workflow.events import Event
from flowcore.workflow.node import Node
from flowcore.workflow.state import WorkflowState

logger = structlog.get_logger()


class MiddlewareDecision(str, Enum):
    """Value a ``before`` hook may return to steer the pipeline."""

    PROCEED = "proceed"
    SKIP_REMAINING = "skip_remaining"


class WorkflowMiddleware:
    """Base class for middleware. Both hooks are optional and may be async."""

    def before(
        self, node: Node, event: Event, state: WorkflowState
    ) -> MiddlewareDecision | None:
        return None

    def after(self, node: Node, result: Event, state: WorkflowState) -> None:
        return None


async def _call_hook(hook: Any, *args: Any) -> Any:
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class MiddlewarePipeline:
    """Global and node-scoped middleware in registration order.

    Order per invocation: global ``before``, node ``before``, the node,
    global ``after``, node ``after``. A ``before`` hook may skip every
    remaining ``before`` hook; the node and all ``after`` hooks still run.
    """

    def __init__(self) -> None:
        self._global: list[WorkflowMiddleware] = []
        self._scoped: dict[str, list[WorkflowMiddleware]] = {}

    def add_global(self, middleware: WorkflowMiddleware) -> None:
        self._global.append(middleware)

    def add(self, node_key: str, middleware: WorkflowMiddleware) -> None:
        self._scoped.setdefault(node_key, []).append(middleware)

    def scoped_keys(self) -> list[str]:
        return list(self._scoped)

    def chain(self, node_key: str) -> list[WorkflowMiddleware]:
        return [*self._global, *self._scoped.get(node_key, [])]

    async def run_before(
        self, node_key: str, node: Node, event: Event, state: WorkflowState
    ) -> bool:
        """Run ``before`` hooks; return True when the remainder was skipped."""
        for middleware in self.chain(node_key):
            try:
                decision = await _call_hook(middleware.before, node, event, state)
            except SkipRemainingMiddleware as e:
                logger.debug(
                    "middleware_skip_remaining",
                    node=node_key,
                    middleware=type(middleware).__name__,
                    reason=str(e),
                )
                return True
            if decision == MiddlewareDecision.SKIP_REMAINING:
                logger.debug(
                    "middleware_skip_remaining",
                    node=node_key,
                    middleware=type(middleware).__name__,
                )
                return True
        return False

    async def run_after(
        self, node_key: str, node: Node, result: Event, state: WorkflowState
    ) -> None:
        for middleware in self.chain(node_key):
            await _call_hook(middleware.after, node, result, state)
