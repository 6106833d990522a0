"""Workflow node base class and per-invocation execution context."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ClassVar

from flowcore.exceptions import NodeSuspended, WorkflowError
from flowcore.workflow.events import Event
from flowcore.workflow.state import WorkflowState

DEFAULT_INTERRUPT_MESSAGE = "Workflow interrupted for human input"

NO_FEEDBACK = object()


@dataclass
class NodeContext:
    """Execution context of one node invocation.

    One context exists per invocation, so a node instance shared between
    concurrently running workflows never sees another run's feedback.
    """

    run_id: str
    node_key: str
    event: Event
    state: WorkflowState
    feedback: Any = NO_FEEDBACK
    checkpoints: dict[str, Any] = field(default_factory=dict)
    resuming: bool = False

    @property
    def has_feedback(self) -> bool:
        return self.feedback is not NO_FEEDBACK

    def consume_feedback(self) -> Any:
        feedback = self.feedback
        self.feedback = NO_FEEDBACK
        return feedback


_current_context: ContextVar[NodeContext | None] = ContextVar(
    "flowcore_node_context", default=None
)


def current_context() -> NodeContext:
    """Return the context of the node invocation in progress.

    Raises:
        WorkflowError: If no node is executing in the current context
    """
    context = _current_context.get()
    if context is None:
        raise WorkflowError(
            "Node context is not set: interrupt and checkpoint helpers can "
            "only be used while a node is executing inside a workflow"
        )
    return context


def bind_context(context: NodeContext | None) -> Any:
    """Bind a node context, returning the token needed to unbind it."""
    return _current_context.set(context)


def unbind_context(token: Any) -> None:
    _current_context.reset(token)


def interrupt(payload: Any = None, message: str = DEFAULT_INTERRUPT_MESSAGE) -> Any:
    """Suspend the running node, or return the resume feedback.

    On the first call of a resumed invocation the feedback supplied to
    ``Workflow.resume`` is consumed and returned instead of suspending.
    Middleware ``before`` hooks may call this too.
    """
    context = current_context()
    if context.has_feedback:
        return context.consume_feedback()
    raise NodeSuspended(payload, message)


def interrupt_if(
    condition: bool | Callable[[], bool],
    payload: Any = None,
    message: str = DEFAULT_INTERRUPT_MESSAGE,
) -> Any:
    """Suspend only when ``condition`` holds.

    Pending resume feedback is returned before the condition is evaluated.
    Returns None when the condition is false.
    """
    context = current_context()
    if context.has_feedback:
        return context.consume_feedback()
    if condition() if callable(condition) else condition:
        raise NodeSuspended(payload, message)
    return None


class Node(ABC):
    """Base class for workflow nodes.

    A node handles exactly one event type. It is declared with the
    ``accepts`` class attribute or, when that is unset, by the type
    annotation of the first parameter of ``__call__``. Output types may be
    declared with ``produces`` or with the return annotation.

    ``__call__`` may return an event, a coroutine resolving to an event, a
    generator that yields progress and returns the final event, or an
    async generator whose last item is the final event.
    """

    accepts: ClassVar[type[Event] | None] = None
    produces: ClassVar[tuple[type[Event], ...]] = ()

    @abstractmethod
    def __call__(self, event: Any, state: WorkflowState) -> Any:
        """Handle an event and produce the next one."""

    @property
    def handler(self) -> Callable[..., Any]:
        """Callable inspected for the accepted and produced event types."""
        return self.__call__

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def context(self) -> NodeContext:
        return current_context()

    @property
    def is_resuming(self) -> bool:
        """True while re-executing after ``Workflow.resume``."""
        return self.context.resuming

    @property
    def resume_feedback(self) -> Any:
        """Feedback passed to ``Workflow.resume``, if not consumed yet."""
        context = self.context
        return context.feedback if context.has_feedback else None

    def interrupt(
        self, payload: Any = None, message: str = DEFAULT_INTERRUPT_MESSAGE
    ) -> Any:
        return interrupt(payload, message)

    def interrupt_if(
        self,
        condition: bool | Callable[[], bool],
        payload: Any = None,
        message: str = DEFAULT_INTERRUPT_MESSAGE,
    ) -> Any:
        return interrupt_if(condition, payload, message)

    def checkpoint(self, name: str, compute: Callable[[], Any]) -> Any:
        """Compute a value once per invocation, surviving suspend/resume.

        Checkpointed values are stored in the interrupt snapshot, so work
        done before an ``interrupt`` call is not repeated on resume.
        """
        checkpoints = self.context.checkpoints
        if name not in checkpoints:
            checkpoints[name] = compute()
        return checkpoints[name]

    async def acheckpoint(
        self, name: str, compute: Callable[[], Awaitable[Any]]
    ) -> Any:
        checkpoints = self.context.checkpoints
        if name not in checkpoints:
            checkpoints[name] = await compute()
        return checkpoints[name]

    def __repr__(self) -> str:
        return f"<{self.name}>"


class FunctionNode(Node):
    """Adapt a plain ``(event, state)`` function into a node."""

    def __init__(
        self,
        func: Callable[..., Any],
        *,
        accepts: type[Event] | None = None,
        produces: tuple[type[Event], ...] = (),
        name: str | None = None,
    ) -> None:
        self.func = func
        self._name = name or getattr(func, "__name__", type(func).__name__)
        if accepts is not None:
            self.accepts = accepts
        if produces:
            self.produces = tuple(produces)

    def __call__(self, event: Any, state: WorkflowState) -> Any:
        return self.func(event, state)

    @property
    def handler(self) -> Callable[..., Any]:
        return self.func

    @property
    def name(self) -> str:
        return self._name


def node(
    func: Callable[..., Any] | None = None,
    *,
    accepts: type[Event] | None = None,
    produces: tuple[type[Event], ...] = (),
    name: str | None = None,
) -> Any:
    """Decorator turning a function into a ``FunctionNode``.

    Usable bare (``@node``) or with arguments (``@node(accepts=MyEvent)``).
    """

    def wrap(f: Callable[..., Any]) -> FunctionNode:
        return FunctionNode(f, accepts=accepts, produces=produces, name=name)

    if func is not None:
        return wrap(func)
    return wrap
