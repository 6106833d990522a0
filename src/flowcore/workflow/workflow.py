"""Workflow orchestrator: registration, run loop, suspension and resume."""

from __future__ import annotations

import asyncio
import contextvars
import inspect
from contextlib import aclosing
from collections.abc import AsyncIterator, Callable, Iterable, Iterator, Mapping
from typing import Any
from uuid import uuid4

import networkx as nx
import structlog

from flowcore.config import WorkflowSettings, get_settings
from flowcore.exceptions import (
    NodeSuspended,
    WorkflowError,
    WorkflowInterrupt,
    WorkflowValidationError,
)
from flowcore.exporter import MermaidExporter, WorkflowExporter
from flowcore.persistence import PersistenceBackend, create_persistence
from flowcore.workflow.edges import Edge, EdgeTopology
from flowcore.workflow.events import Event, StartEvent, StopEvent
from flowcore.workflow.graph import edge_graph, event_graph
from flowcore.workflow.middleware import MiddlewarePipeline, WorkflowMiddleware
from flowcore.workflow.models import (
    Complete,
    Continue,
    Progress,
    Suspend,
    WorkflowStatus,
)
from flowcore.workflow.node import (
    NO_FEEDBACK,
    FunctionNode,
    Node,
    NodeContext,
    bind_context,
    unbind_context,
)
from flowcore.workflow.router import EventRouter
from flowcore.workflow.state import WorkflowState

logger = structlog.get_logger()

_UNSET = object()

MiddlewareTarget = str | type[Node]


class Workflow:
    """Executes a graph of nodes connected by events or explicit edges.

    Without edges, each produced event is dispatched to the node that
    accepts its type. Once any edge is registered, nodes are addressed by
    key and the next node is chosen by the first eligible outgoing edge.

    Subclasses may declare their structure by overriding ``nodes``,
    ``edges``, ``start_node``, ``end_nodes``, ``global_middleware`` and
    ``middleware``.

    A ``Workflow`` instance represents one run: concurrent runs need
    separate instances, which may share node instances.
    """

    def __init__(
        self,
        persistence: PersistenceBackend | None = None,
        run_id: str | None = None,
        state: WorkflowState | Mapping[str, Any] | None = None,
        *,
        settings: WorkflowSettings | None = None,
        exporter: WorkflowExporter | None = None,
        retain_snapshots: bool | None = None,
    ) -> None:
        """
        Initialize a workflow.

        Args:
            persistence: Snapshot backend, defaults to the configured one
            run_id: Run identifier, generated when omitted
            state: Initial state used when ``run`` gets none
            settings: Settings, defaults to ``get_settings()``
            exporter: Structure exporter, defaults to Mermaid
            retain_snapshots: Keep the snapshot after the run completes
        """
        self._settings = settings or get_settings()
        self.persistence = (
            persistence if persistence is not None else create_persistence(self._settings)
        )
        self.run_id = run_id or f"{self._settings.run_id_prefix}{uuid4().hex}"
        self._initial_state = state
        self._exporter = exporter or MermaidExporter()
        self._retain_snapshots = (
            not self._settings.delete_snapshot_on_complete
            if retain_snapshots is None
            else retain_snapshots
        )

        self._nodes: dict[str, Node] = {}
        self._explicit_events: dict[type[Event], str] = {}
        self._edges: list[Edge] = []
        self._start_key: str | None = None
        self._end_keys: list[str] = []
        self._global_middleware: list[WorkflowMiddleware] = []
        self._scoped_middleware: list[tuple[MiddlewareTarget, WorkflowMiddleware]] = []
        self._start_event: Event = StartEvent()

        self._router: EventRouter | None = None
        self._topology: EdgeTopology | None = None
        self._pipeline: MiddlewarePipeline | None = None
        self._declared = False

        self.status = WorkflowStatus.PENDING
        self.state: WorkflowState | None = None
        self.result: Event | None = None

    # Declarative hooks

    def nodes(self) -> Iterable[Node] | Mapping[Any, Node]:
        return []

    def edges(self) -> Iterable[Edge]:
        return []

    def start_node(self) -> str | None:
        return None

    def end_nodes(self) -> Iterable[str]:
        return []

    def global_middleware(self) -> Iterable[WorkflowMiddleware]:
        return []

    def middleware(self) -> Mapping[MiddlewareTarget, WorkflowMiddleware | list[WorkflowMiddleware]]:
        return {}

    def _apply_declarations(self) -> None:
        if self._declared:
            return
        self._declared = True
        self.add_nodes(self.nodes())
        self.add_edges(self.edges())
        start = self.start_node()
        if start is not None:
            self.set_start(start)
        end = list(self.end_nodes())
        if end:
            self.set_end(*end)
        self.add_global_middleware(list(self.global_middleware()))
        for target, middleware in self.middleware().items():
            self.add_middleware(target, middleware)

    # Registration

    def _invalidate(self) -> None:
        self._router = None
        self._topology = None
        self._pipeline = None

    def add_node(self, node: Node | Callable[..., Any], key: str | None = None) -> Workflow:
        """Register a node under ``key`` (defaults to the node name).

        Plain callables are wrapped in ``FunctionNode``.
        """
        self._register(node, key)
        return self

    def _register(self, node: Node | Callable[..., Any], key: str | None) -> str:
        if not isinstance(node, Node):
            if not callable(node):
                raise WorkflowValidationError(f"{node!r} is not a node or callable")
            node = FunctionNode(node)

        if key is None:
            key = node.name
            suffix = 2
            while key in self._nodes and self._nodes[key] is not node:
                key = f"{node.name}_{suffix}"
                suffix += 1
        elif key in self._nodes and self._nodes[key] is not node:
            raise WorkflowValidationError(f"Node key {key} is already registered")

        self._nodes[key] = node
        self._invalidate()
        return key

    def add_nodes(self, nodes: Iterable[Node] | Mapping[Any, Node]) -> Workflow:
        """Register several nodes.

        A mapping may be keyed by node key or by the event type the node
        should handle; event-type keys bypass signature introspection.
        """
        if isinstance(nodes, Mapping):
            for key, node in nodes.items():
                if isinstance(key, str):
                    self.add_node(node, key)
                elif isinstance(key, type) and issubclass(key, Event):
                    self._explicit_events[key] = self._register(node, None)
                else:
                    raise WorkflowValidationError(
                        f"Node mapping keys must be strings or Event types, got {key!r}"
                    )
        else:
            for node in nodes:
                self.add_node(node)
        return self

    def add_edge(
        self,
        source: str | Edge,
        target: str | None = None,
        condition: Callable[[WorkflowState], bool] | None = None,
    ) -> Workflow:
        """Connect two nodes so that the workflow runs in edge mode.

        Args:
            source: Key of the node the edge leaves, or a ready ``Edge``.
            target: Key of the node the edge enters. Ignored when ``source``
                is an ``Edge``.
            condition: Predicate on the run state; the edge is followed only
                when it returns true.

        Returns:
            This workflow, for chaining.
        """
        edge = source if isinstance(source, Edge) else Edge(source, target, condition)
        self._edges.append(edge)
        self._invalidate()
        return self

    def add_edges(self, edges: Iterable[Edge]) -> Workflow:
        """Add several edges in order.

        Args:
            edges: Edges to add, as accepted by ``add_edge``.

        Returns:
            This workflow, for chaining.
        """
        for edge in edges:
            self.add_edge(edge)
        return self

    def set_start(self, key: str) -> Workflow:
        """Choose the node an edge-mode run begins with.

        Args:
            key: Key of a registered node.

        Returns:
            This workflow, for chaining.
        """
        self._start_key = key
        self._invalidate()
        return self

    def set_end(self, *keys: str) -> Workflow:
        """Mark the nodes after which an edge-mode run completes.

        Args:
            *keys: Keys of registered nodes. Replaces any earlier end nodes.

        Returns:
            This workflow, for chaining.
        """
        self._end_keys = list(keys)
        self._invalidate()
        return self

    def set_start_event(self, event: Event) -> Workflow:
        """Replace the event that starts a run."""
        self._start_event = event
        self._invalidate()
        return self

    def add_global_middleware(
        self, middleware: WorkflowMiddleware | Iterable[WorkflowMiddleware]
    ) -> Workflow:
        items = [middleware] if isinstance(middleware, WorkflowMiddleware) else list(middleware)
        self._global_middleware.extend(items)
        self._pipeline = None
        return self

    def add_middleware(
        self,
        target: MiddlewareTarget | Iterable[MiddlewareTarget],
        middleware: WorkflowMiddleware | Iterable[WorkflowMiddleware],
    ) -> Workflow:
        """Attach middleware to nodes, addressed by key or by node class."""
        targets = [target] if isinstance(target, (str, type)) else list(target)
        items = [middleware] if isinstance(middleware, WorkflowMiddleware) else list(middleware)
        for node_target in targets:
            for item in items:
                self._scoped_middleware.append((node_target, item))
        self._pipeline = None
        return self

    def set_exporter(self, exporter: WorkflowExporter) -> Workflow:
        self._exporter = exporter
        return self

    # Build

    def _build(self) -> None:
        """Resolve routing and middleware, validating the definition."""
        self._apply_declarations()
        if not self._nodes:
            raise WorkflowValidationError("Workflow has no nodes")

        if self._edges:
            if self._topology is None:
                self._topology = EdgeTopology(
                    self._nodes, self._edges, self._start_key, self._end_keys
                )
        elif self._router is None:
            self._router = EventRouter(
                self._nodes, self._explicit_events, type(self._start_event)
            )

        if self._pipeline is None:
            pipeline = MiddlewarePipeline()
            for middleware in self._global_middleware:
                pipeline.add_global(middleware)
            for target, middleware in self._scoped_middleware:
                for key in self._resolve_target(target):
                    pipeline.add(key, middleware)
            self._pipeline = pipeline

    def _resolve_target(self, target: MiddlewareTarget) -> list[str]:
        if isinstance(target, str):
            if target not in self._nodes:
                raise WorkflowValidationError(
                    f"Middleware registered for unknown node {target}"
                )
            return [target]
        keys = [key for key, node in self._nodes.items() if isinstance(node, target)]
        if not keys:
            raise WorkflowValidationError(
                f"Middleware registered for unknown node {target.__name__}"
            )
        return keys

    def validate(self, strict: bool = False) -> Workflow:
        """Build and validate the workflow without running it.

        With ``strict``, every output type declared by a node must also be
        handled by some node.
        """
        self._build()
        if strict and self._router is not None:
            EventRouter(
                self._nodes, self._explicit_events, type(self._start_event), strict=True
            )
        return self

    def get_event_node_map(self) -> dict[type[Event], Node]:
        """Return which node handles each event type.

        Empty when the workflow routes by explicit edges.
        """
        self._build()
        if self._router is None:
            return {}
        return {event_type: self._nodes[key] for event_type, key in self._router.mapping.items()}

    def get_node(self, key: str) -> Node:
        """Look up a registered node.

        Args:
            key: Key the node was registered under.

        Returns:
            The node instance.

        Raises:
            KeyError: If no node has that key.
        """
        self._apply_declarations()
        return self._nodes[key]

    def to_graph(self) -> nx.DiGraph:
        """Build a graph of the workflow structure.

        Edge-mode workflows give a ``node -> node`` graph of the declared
        edges. Event-mode workflows give an ``event -> node -> produced
        event`` graph, with a ``kind`` attribute on every graph node.

        Returns:
            A ``networkx.DiGraph`` whose ``mode`` graph attribute is
            ``"edges"`` or ``"events"``.

        Raises:
            WorkflowValidationError: If the workflow cannot be built.
        """
        self._build()
        if self._topology is not None:
            return edge_graph(self._topology)
        return event_graph(self._router, self._nodes)

    def export(self) -> str:
        """Render the workflow structure with the configured exporter."""
        return self._exporter.export(self.to_graph())

    # Execution

    def _prepare_state(self, state: WorkflowState | Mapping[str, Any] | None) -> WorkflowState:
        state = state if state is not None else self._initial_state
        if state is None:
            return WorkflowState()
        if isinstance(state, WorkflowState):
            return state
        return WorkflowState(state)

    def _entry_key(self) -> str:
        if self._topology is not None:
            return self._topology.start_key
        return self._router.route(self._start_event)

    def _next_key(self, key: str, event: Event, state: WorkflowState) -> str:
        if self._topology is not None:
            return self._topology.next_key(key, state)
        return self._router.route(event)

    def _is_end(self, key: str, event: Event) -> bool:
        if isinstance(event, StopEvent):
            return True
        return self._topology is not None and self._topology.is_end(key)

    async def _invoke(
        self, key: str, node: Node, event: Event, state: WorkflowState
    ) -> AsyncIterator[Progress | Continue]:
        result = node(event, state)
        if inspect.isawaitable(result):
            result = await result

        if inspect.isgenerator(result):
            while True:
                try:
                    item = next(result)
                except StopIteration as stop:
                    result = stop.value
                    break
                yield Progress(key, item)
        elif inspect.isasyncgen(result):
            last: Any = _UNSET
            async for item in result:
                if last is not _UNSET:
                    yield Progress(key, last)
                last = item
            result = None if last is _UNSET else last

        if not isinstance(result, Event):
            raise WorkflowError(
                f"Node {key} must produce an Event, got {type(result).__name__}"
            )
        yield Continue(key, result)

    async def _step(
        self, key: str, event: Event, state: WorkflowState, context: NodeContext
    ) -> AsyncIterator[Progress | Continue | Suspend]:
        """Run one node through the middleware pipeline."""
        node = self._nodes[key]
        pipeline = self._pipeline
        outcome: Continue | None = None
        token = bind_context(context)
        try:
            logger.debug(
                "workflow_node_started",
                run_id=self.run_id,
                node=key,
                event_type=type(event).__name__,
                resuming=context.resuming,
            )
            await pipeline.run_before(key, node, event, state)
            async with aclosing(self._invoke(key, node, event, state)) as results:
                async for item in results:
                    if isinstance(item, Progress):
                        yield item
                    else:
                        outcome = item
            await pipeline.run_after(key, node, outcome.event, state)
        except NodeSuspended as signal:
            yield Suspend(
                WorkflowInterrupt(
                    message=signal.message,
                    payload=signal.payload,
                    node_key=key,
                    event=event,
                    state=state,
                    run_id=self.run_id,
                    checkpoints=context.checkpoints,
                )
            )
            return
        finally:
            unbind_context(token)

        logger.debug(
            "workflow_node_completed",
            run_id=self.run_id,
            node=key,
            produced=type(outcome.event).__name__,
        )
        yield outcome

    async def _execute(
        self,
        state: WorkflowState,
        key: str,
        event: Event,
        feedback: Any = NO_FEEDBACK,
        checkpoints: dict[str, Any] | None = None,
    ) -> AsyncIterator[Progress | Complete]:
        self.status = WorkflowStatus.RUNNING
        self.state = state
        self.result = None
        resuming = feedback is not NO_FEEDBACK

        try:
            while True:
                context = NodeContext(
                    run_id=self.run_id,
                    node_key=key,
                    event=event,
                    state=state,
                    feedback=feedback,
                    checkpoints=dict(checkpoints or {}),
                    resuming=resuming,
                )
                feedback, checkpoints, resuming = NO_FEEDBACK, None, False

                outcome: Continue | Suspend | None = None
                async with aclosing(self._step(key, event, state, context)) as steps:
                    async for item in steps:
                        if isinstance(item, Progress):
                            yield item
                        else:
                            outcome = item

                if isinstance(outcome, Suspend):
                    await self._suspend(outcome.interrupt)
                    raise outcome.interrupt

                produced = outcome.event
                if self._is_end(key, produced):
                    await self._complete(produced)
                    yield Complete(state, produced)
                    return

                key = self._next_key(key, produced, state)
                event = produced
        except WorkflowInterrupt:
            raise
        except Exception as e:
            self.status = WorkflowStatus.FAILED
            logger.error(
                "workflow_failed",
                run_id=self.run_id,
                node=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def _suspend(self, interrupt: WorkflowInterrupt) -> None:
        await self.persistence.save(self.run_id, interrupt.to_snapshot())
        self.status = WorkflowStatus.SUSPENDED
        logger.info(
            "workflow_interrupted",
            run_id=self.run_id,
            node=interrupt.node_key,
            message=interrupt.message,
        )

    async def _complete(self, event: Event) -> None:
        if not self._retain_snapshots:
            await self.persistence.delete(self.run_id)
        self.result = event
        self.status = WorkflowStatus.COMPLETED
        logger.info("workflow_completed", run_id=self.run_id, final_event=type(event).__name__)

    async def astream(
        self, state: WorkflowState | Mapping[str, Any] | None = None
    ) -> AsyncIterator[Any]:
        """Run from the start event, yielding progress from streaming nodes.

        The final state is available as ``self.state`` once exhausted.

        Raises:
            WorkflowInterrupt: If a node suspends
        """
        self._build()
        prepared = self._prepare_state(state)
        logger.info("workflow_started", run_id=self.run_id, start_event=type(self._start_event).__name__)
        items = self._execute(prepared, self._entry_key(), self._start_event)
        async with aclosing(items):
            async for item in items:
                if isinstance(item, Progress):
                    yield item.item

    async def astream_resume(self, feedback: Any = None, run_id: str | None = None) -> AsyncIterator[Any]:
        """Resume a suspended run, yielding progress from streaming nodes.

        Raises:
            SnapshotNotFoundError: If no snapshot is stored for the run
            WorkflowInterrupt: If a node suspends again
        """
        self._build()
        if run_id is not None:
            self.run_id = run_id
        snapshot = await self.persistence.load(self.run_id)
        interrupt = snapshot.restore()
        if interrupt.node_key not in self._nodes:
            raise WorkflowValidationError(
                f"Cannot resume run {self.run_id}: node {interrupt.node_key} is not registered"
            )

        logger.info("workflow_resumed", run_id=self.run_id, node=interrupt.node_key)
        items = self._execute(
            interrupt.state,
            interrupt.node_key,
            interrupt.event,
            feedback=feedback,
            checkpoints=interrupt.checkpoints,
        )
        async with aclosing(items):
            async for item in items:
                if isinstance(item, Progress):
                    yield item.item

    async def arun(self, state: WorkflowState | Mapping[str, Any] | None = None) -> WorkflowState:
        """Run to completion and return the final state.

        Raises:
            WorkflowInterrupt: If a node suspends
        """
        async for _ in self.astream(state):
            pass
        return self.state

    async def aresume(self, feedback: Any = None, run_id: str | None = None) -> WorkflowState:
        """Resume a suspended run and return the final state."""
        async for _ in self.astream_resume(feedback, run_id):
            pass
        return self.state

    def run(self, state: WorkflowState | Mapping[str, Any] | None = None) -> WorkflowState:
        """Blocking variant of ``arun``; must not be called from a running loop."""
        return asyncio.run(self.arun(state))

    def resume(self, feedback: Any = None, run_id: str | None = None) -> WorkflowState:
        """Blocking variant of ``aresume``."""
        return asyncio.run(self.aresume(feedback, run_id))

    def events(self, state: WorkflowState | Mapping[str, Any] | None = None) -> Iterator[Any]:
        """Blocking variant of ``astream``."""
        return _iterate_blocking(self.astream(state))

    def resume_events(self, feedback: Any = None, run_id: str | None = None) -> Iterator[Any]:
        """Blocking variant of ``astream_resume``."""
        return _iterate_blocking(self.astream_resume(feedback, run_id))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} run_id={self.run_id} status={self.status.value}>"


def _iterate_blocking(stream: AsyncIterator[Any]) -> Iterator[Any]:
    """Drive an async generator from synchronous code.

    Every step runs in the same ``contextvars`` context so that node
    context bound in one step is still visible in the next.
    """
    loop = asyncio.new_event_loop()
    context = contextvars.copy_context()

    async def advance() -> Any:
        return await stream.__anext__()

    async def close() -> None:
        await stream.aclose()

    try:
        while True:
            try:
                item = loop.run_until_complete(loop.create_task(advance(), context=context))
            except StopAsyncIteration:
                return
            yield item
    finally:
        try:
            loop.run_until_complete(loop.create_task(close(), context=context))
            loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            loop.close()
