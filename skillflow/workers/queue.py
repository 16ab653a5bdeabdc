"""TaskQueue: single-slot execution with a FIFO backlog of scheduled runs.

Exactly one workflow runs at a time.  Scheduled firings queue behind the
running task and drain in order; manual triggers never queue: they take the
slot immediately or are rejected with TaskBusyError.

The slot check and the slot assignment happen with no await in between, so
admission is atomic on the event loop without a lock.  Freeing the slot and
handing it to the next queued task is synchronous for the same reason.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import aclosing
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, Optional
from uuid import uuid4

from skillflow.exceptions import TaskBusyError
from skillflow.triggers.event_bus import (
    EVENT_TASK_CANCELLED,
    EVENT_TASK_COMPLETED,
    EVENT_TASK_FAILED,
    EVENT_TASK_QUEUED,
    EVENT_TASK_STARTED,
    EventBus,
)
from skillflow.types import (
    EventType,
    ExecutionEvent,
    ExecutionResult,
    QueuedTask,
    QueueStatus,
    TaskStatus,
    TriggerType,
    WorkflowDefinition,
)

from .history import BoundedHistory

logger = logging.getLogger(__name__)

INTERRUPTED = "Execution interrupted"

TaskRunner = Callable[[WorkflowDefinition, QueuedTask], Awaitable[ExecutionResult]]
EventRunner = Callable[[WorkflowDefinition, QueuedTask], AsyncIterator[ExecutionEvent]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TaskQueue:
    """
    Args:
        task_runner:  ``await task_runner(workflow, task)`` runs a task to completion.
        event_runner: ``event_runner(workflow, task)`` runs a task yielding progress events.
        recent_size:  How many finished tasks ``get_status`` reports.
        event_bus:    Optional bus receiving task.* lifecycle events.
    """

    def __init__(
        self,
        task_runner: TaskRunner,
        event_runner: EventRunner,
        recent_size: int = 10,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._task_runner = task_runner
        self._event_runner = event_runner
        self._event_bus = event_bus
        self._pending: deque[tuple[QueuedTask, WorkflowDefinition]] = deque()
        self._current: Optional[QueuedTask] = None
        self._recent: BoundedHistory[QueuedTask] = BoundedHistory(recent_size)
        self._background: set[asyncio.Task] = set()

    # ── Introspection ────────────────────────────────────────────────────────

    @property
    def current_task(self) -> Optional[QueuedTask]:
        return self._current

    @property
    def queue_length(self) -> int:
        return len(self._pending)

    def is_busy(self) -> bool:
        return self._current is not None

    def get_status(self) -> QueueStatus:
        """Snapshot of the slot, the backlog, and recently finished tasks."""
        return QueueStatus(
            current_task=self._current.model_copy(deep=True) if self._current else None,
            queued_tasks=[task.model_copy(deep=True) for task, _ in self._pending],
            recent_tasks=self._recent.snapshot(),
        )

    # ── Admission ────────────────────────────────────────────────────────────

    def enqueue_scheduled(self, workflow: WorkflowDefinition, inputs: Optional[dict[str, Any]] = None) -> QueuedTask:
        """Append a scheduled run to the backlog.

        When the slot is free the head of the backlog takes it before this
        returns, so a manual trigger arriving next is rejected rather than
        jumping the queue.  Returns a copy of the task as it was queued.
        Must be called from within the running event loop.
        """
        task = self._new_task(workflow, inputs, TriggerType.SCHEDULED)
        self._pending.append((task, workflow))
        logger.info(
            "Queued scheduled task %s for workflow %s (queue length %d)", task.id, workflow.id, len(self._pending)
        )
        queued = task.model_copy(deep=True)
        self._spawn(self._publish(EVENT_TASK_QUEUED, task))
        self._advance()
        return queued

    async def execute_manual(
        self,
        workflow: WorkflowDefinition,
        inputs: Optional[dict[str, Any]] = None,
    ) -> ExecutionResult:
        """Run *workflow* now in the execution slot.

        Raises:
            TaskBusyError: another task holds the slot; nothing is queued.
        """
        task = self._admit(workflow, inputs)
        return await self._run_in_slot(workflow, task, "Manual")

    def execute_manual_with_events(
        self,
        workflow: WorkflowDefinition,
        inputs: Optional[dict[str, Any]] = None,
    ) -> AsyncIterator[ExecutionEvent]:
        """Run *workflow* now and return its progress events.

        The busy check happens here, at call time.  The run itself proceeds in
        a background task, so the slot is released even if the caller stops
        reading.  The returned iterator ends after exactly one terminal event.

        Raises:
            TaskBusyError: another task holds the slot; nothing is queued.
        """
        task = self._admit(workflow, inputs)
        events: asyncio.Queue[Optional[ExecutionEvent]] = asyncio.Queue()
        self._spawn(self._pump_events(workflow, task, events))
        return self._iter_events(events)

    def cancel_queued_task(self, task_id: str) -> bool:
        """Drop a not-yet-started task from the backlog. Running tasks cannot be cancelled."""
        for entry in list(self._pending):
            task, _ = entry
            if task.id == task_id:
                self._pending.remove(entry)
                logger.info("Cancelled queued task %s (workflow %s)", task_id, task.workflow_id)
                self._spawn(self._publish(EVENT_TASK_CANCELLED, task))
                return True
        return False

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def wait_idle(self, poll_seconds: float = 0.01) -> None:
        """Return once nothing is running, queued, or still publishing."""
        while self._current is not None or self._pending or self._background:
            await asyncio.sleep(poll_seconds)

    async def stop(self) -> None:
        """Cancel running queued work and background publishing. Queued tasks are discarded.

        A task interrupted here is recorded as failed and its slot is freed.
        """
        self._pending.clear()
        tasks = [t for t in self._background if not t.done()]
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        # failure notices published by the interrupted tasks
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # ── Internal ─────────────────────────────────────────────────────────────

    def _new_task(
        self,
        workflow: WorkflowDefinition,
        inputs: Optional[dict[str, Any]],
        trigger_type: TriggerType,
    ) -> QueuedTask:
        return QueuedTask(
            id=uuid4().hex,
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            trigger_type=trigger_type,
            inputs=dict(inputs or {}),
        )

    def _admit(self, workflow: WorkflowDefinition, inputs: Optional[dict[str, Any]]) -> QueuedTask:
        if self._current is not None:
            logger.info(
                "Rejected manual run of %s: task %s (%s) is running",
                workflow.id, self._current.id, self._current.workflow_name,
            )
            raise TaskBusyError(self._current.model_copy(deep=True))
        task = self._new_task(workflow, inputs, TriggerType.MANUAL)
        self._occupy(task)
        return task

    def _occupy(self, task: QueuedTask) -> None:
        task.status = TaskStatus.RUNNING
        task.started_at = _now()
        self._current = task

    def _release(self, task: QueuedTask, success: bool, error: Optional[str]) -> None:
        """Record *task* as finished, free the slot, then hand it to the backlog head."""
        task.status = TaskStatus.COMPLETED if success else TaskStatus.FAILED
        task.error = None if success else error
        task.completed_at = _now()
        if self._current is task:
            self._current = None
        self._recent.append(task.model_copy(deep=True))
        self._spawn(self._publish(EVENT_TASK_COMPLETED if success else EVENT_TASK_FAILED, task))
        self._advance()

    def _advance(self) -> None:
        if self._current is not None or not self._pending:
            return
        task, workflow = self._pending.popleft()
        self._occupy(task)
        logger.info("Starting queued task %s for workflow %s", task.id, workflow.id)
        self._spawn(self._run_queued(workflow, task))

    async def _run_queued(self, workflow: WorkflowDefinition, task: QueuedTask) -> None:
        await self._run_in_slot(workflow, task, "Queued", reraise=False)

    async def _run_in_slot(
        self,
        workflow: WorkflowDefinition,
        task: QueuedTask,
        label: str,
        reraise: bool = True,
    ) -> ExecutionResult:
        """Run *task*, which already holds the slot; the slot is freed however the run ends."""
        outcome: Optional[tuple[bool, Optional[str]]] = None
        try:
            await self._publish(EVENT_TASK_STARTED, task)
            result = await self._task_runner(workflow, task)
            outcome = (result.success, result.error)
            return result
        except Exception as exc:
            logger.exception("%s task %s for workflow %s raised", label, task.id, workflow.id)
            outcome = (False, str(exc) or type(exc).__name__)
            if reraise:
                raise
            return ExecutionResult(success=False, workflow_id=workflow.id, error=outcome[1])
        finally:
            if outcome is None:
                logger.warning("%s task %s for workflow %s was interrupted", label, task.id, workflow.id)
                outcome = (False, INTERRUPTED)
            self._release(task, *outcome)

    async def _pump_events(
        self,
        workflow: WorkflowDefinition,
        task: QueuedTask,
        events: asyncio.Queue[Optional[ExecutionEvent]],
    ) -> None:
        terminal: Optional[ExecutionEvent] = None
        try:
            await self._publish(EVENT_TASK_STARTED, task)
            async with aclosing(self._event_runner(workflow, task)) as stream:
                async for event in stream:
                    events.put_nowait(event)
                    if event.is_terminal:
                        terminal = event
                        break
        except Exception as exc:
            logger.exception("Streaming task %s for workflow %s raised", task.id, workflow.id)
            terminal = ExecutionEvent(type=EventType.EXECUTION_ERROR, success=False, error=str(exc) or type(exc).__name__)
            events.put_nowait(terminal)
        finally:
            if terminal is None:
                terminal = ExecutionEvent(type=EventType.EXECUTION_ERROR, success=False, error=INTERRUPTED)
                events.put_nowait(terminal)
            events.put_nowait(None)
            self._release(task, success=terminal.type == EventType.EXECUTION_COMPLETE, error=terminal.error)

    @staticmethod
    async def _iter_events(events: asyncio.Queue[Optional[ExecutionEvent]]) -> AsyncIterator[ExecutionEvent]:
        while True:
            event = await events.get()
            if event is None:
                return
            yield event

    def _spawn(self, coro: Awaitable[None]) -> None:
        t = asyncio.get_running_loop().create_task(coro)
        self._background.add(t)
        t.add_done_callback(self._background.discard)

    def _publish(self, event: str, task: QueuedTask) -> Awaitable[None]:
        """Snapshot *task* now; the returned awaitable delivers it to the bus."""
        return self._emit(event, task.model_copy(deep=True) if self._event_bus is not None else None)

    async def _emit(self, event: str, snapshot: Optional[QueuedTask]) -> None:
        if self._event_bus is not None:
            await self._event_bus.emit(event, snapshot)
