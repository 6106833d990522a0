"""Concurrent execution of independent workflow runs on one event loop."""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Awaitable, Generator, Iterable
from typing import Any

import structlog

from flowcore.config import get_settings
from flowcore.workflow.models import WorkflowStatus
from flowcore.workflow.state import WorkflowState
from flowcore.workflow.workflow import Workflow

logger = structlog.get_logger()

_NOT_RESUMING = object()


class WorkflowHandle:
    """Awaitable handle of a scheduled workflow run."""

    def __init__(self, workflow: Workflow, task: asyncio.Task[WorkflowState]) -> None:
        self.workflow = workflow
        self._task = task

    @property
    def run_id(self) -> str:
        return self.workflow.run_id

    @property
    def status(self) -> WorkflowStatus:
        return self.workflow.status

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        return self._task.cancel()

    async def result(self) -> WorkflowState:
        """Wait for the run and return its final state.

        Raises:
            WorkflowInterrupt: If the run suspended
        """
        return await self._task

    def __await__(self) -> Generator[Any, None, WorkflowState]:
        return self._task.__await__()

    def __repr__(self) -> str:
        return f"<WorkflowHandle run_id={self.run_id} done={self.done()}>"


class WorkflowExecutor:
    """Schedules workflow runs as asyncio tasks.

    Runs only interleave at ``await`` points inside async nodes, middleware
    or persistence; a blocking sync node holds the loop until it returns.
    """

    def __init__(self, max_concurrency: int | None = None) -> None:
        """Initialize executor.

        Args:
            max_concurrency: Upper bound of simultaneously running workflows,
                defaults to ``executor_max_concurrency`` (unbounded if unset)
        """
        self.max_concurrency = (
            max_concurrency
            if max_concurrency is not None
            else get_settings().executor_max_concurrency
        )
        # asyncio primitives are bound to the loop that first uses them
        self._semaphores: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, asyncio.Semaphore
        ] = weakref.WeakKeyDictionary()

    def _limit(self) -> asyncio.Semaphore | None:
        if self.max_concurrency is None:
            return None
        loop = asyncio.get_running_loop()
        semaphore = self._semaphores.get(loop)
        if semaphore is None:
            semaphore = asyncio.Semaphore(self.max_concurrency)
            self._semaphores[loop] = semaphore
        return semaphore

    async def _run(self, awaitable: Awaitable[WorkflowState], run_id: str) -> WorkflowState:
        semaphore = self._limit()
        if semaphore is None:
            return await awaitable
        async with semaphore:
            logger.debug("executor_slot_acquired", run_id=run_id)
            return await awaitable

    def execute(
        self,
        workflow: Workflow,
        state: WorkflowState | dict[str, Any] | None = None,
        *,
        feedback: Any = _NOT_RESUMING,
    ) -> WorkflowHandle:
        """Schedule a run (or a resume when ``feedback`` is given).

        Must be called while an event loop is running.
        """
        if feedback is _NOT_RESUMING:
            coro = workflow.arun(state)
        else:
            coro = workflow.aresume(feedback)
        task = asyncio.get_running_loop().create_task(
            self._run(coro, workflow.run_id), name=f"workflow:{workflow.run_id}"
        )
        logger.info("workflow_scheduled", run_id=workflow.run_id)
        return WorkflowHandle(workflow, task)

    async def gather(
        self, *handles: WorkflowHandle, return_exceptions: bool = False
    ) -> list[Any]:
        """Wait for all handles, returning results in the given order."""
        return await asyncio.gather(
            *(handle._task for handle in handles), return_exceptions=return_exceptions
        )

    async def run_all(
        self, workflows: Iterable[Workflow], return_exceptions: bool = False
    ) -> list[Any]:
        """Run several workflows concurrently and wait for all of them."""
        handles = [self.execute(workflow) for workflow in workflows]
        return await self.gather(*handles, return_exceptions=return_exceptions)

    def run_concurrently(
        self, workflows: Iterable[Workflow], return_exceptions: bool = False
    ) -> list[Any]:
        """Blocking variant of ``run_all``."""
        workflows = list(workflows)
        return asyncio.run(self.run_all(workflows, return_exceptions=return_exceptions))
