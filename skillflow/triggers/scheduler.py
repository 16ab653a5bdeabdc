"""WorkflowScheduler: cron and interval timers that feed the task queue.

One asyncio task per scheduled workflow.  A firing never runs the workflow
itself; it looks up the latest definition and hands it to ``enqueue``.  The
queue later calls back into ``execute_directly``, which owns the retry loop
and writes exactly one ExecutionRecord per run.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, AsyncIterator, Callable, Optional
from uuid import uuid4
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from skillflow.config import SkillflowConfig
from skillflow.exceptions import ScheduleError, WorkflowNotFound
from skillflow.triggers.event_bus import EVENT_SCHEDULE_FIRED, EventBus
from skillflow.types import (
    ExecutionEvent,
    ExecutionRecord,
    ExecutionResult,
    QueuedTask,
    ScheduleStatus,
    TriggerType,
    WorkflowDefinition,
)
from skillflow.workers.history import BoundedHistory
from skillflow.workflows.executor import SkillExecutor

logger = logging.getLogger(__name__)

WorkflowSource = Callable[[], list[WorkflowDefinition]]
Enqueue = Callable[[WorkflowDefinition, dict[str, Any]], QueuedTask]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowScheduler:
    """
    Args:
        executor:        Runs workflows for direct and manual execution.
        workflow_source: Returns the current workflow definitions.
        enqueue:         Receives a workflow and its default inputs when a timer fires.
        config:          SkillflowConfig; a default instance is created if not supplied.
        event_bus:       Optional bus receiving a schedule.fired event per firing.
    """

    def __init__(
        self,
        executor: SkillExecutor,
        workflow_source: WorkflowSource,
        enqueue: Enqueue,
        config: Optional[SkillflowConfig] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._executor = executor
        self._event_bus = event_bus
        self._source = workflow_source
        self._enqueue = enqueue
        self._config = config or SkillflowConfig()
        self._timers: dict[str, asyncio.Task] = {}
        self._scheduled: dict[str, WorkflowDefinition] = {}
        self._next_runs: dict[str, datetime] = {}
        self._history: BoundedHistory[ExecutionRecord] = BoundedHistory(self._config.execution_history_size)

    # ── Timer management ─────────────────────────────────────────────────────

    def initialize(self) -> int:
        """Schedule every enabled workflow with an enabled schedule. Returns the timer count."""
        for workflow in self._source():
            if not (workflow.enabled and workflow.schedule and workflow.schedule.enabled):
                continue
            try:
                self.schedule_workflow(workflow)
            except ScheduleError as exc:
                logger.error("Could not schedule workflow %s: %s", workflow.id, exc)
        logger.info("Scheduler initialized with %d timers", len(self._timers))
        return len(self._timers)

    def schedule_workflow(self, workflow: WorkflowDefinition) -> bool:
        """(Re)create the timer for *workflow*. Returns True when a timer is running.

        Raises:
            ScheduleError: invalid cron expression, timezone, or interval.
        """
        self.unschedule_workflow(workflow.id)
        schedule = workflow.schedule
        if not workflow.enabled or schedule is None or not schedule.enabled:
            return False
        if not schedule.has_trigger:
            logger.warning("Workflow %s has an enabled schedule with neither cron nor interval", workflow.id)
            return False

        if schedule.cron:
            if not croniter.is_valid(schedule.cron):
                raise ScheduleError(f"Invalid cron expression '{schedule.cron}'", workflow_id=workflow.id)
            tz = self._timezone(workflow)
            loop_coro = self._cron_loop(workflow, schedule.cron, tz)
            logger.info("Scheduled workflow %s with cron '%s' (%s)", workflow.id, schedule.cron, tz)
        else:
            interval = schedule.interval or 0
            if interval < self._config.min_interval_ms:
                raise ScheduleError(
                    f"Interval {interval}ms is below the minimum of {self._config.min_interval_ms}ms",
                    workflow_id=workflow.id,
                )
            loop_coro = self._interval_loop(workflow, interval)
            logger.info("Scheduled workflow %s every %dms", workflow.id, interval)

        self._scheduled[workflow.id] = workflow
        self._timers[workflow.id] = asyncio.get_running_loop().create_task(
            loop_coro, name=f"skill-{workflow.id}"
        )
        return True

    def unschedule_workflow(self, workflow_id: str) -> bool:
        timer = self._timers.pop(workflow_id, None)
        self._scheduled.pop(workflow_id, None)
        self._next_runs.pop(workflow_id, None)
        if timer is None:
            return False
        timer.cancel()
        logger.info("Unscheduled workflow %s", workflow_id)
        return True

    def clear_all_schedules(self) -> None:
        for workflow_id in list(self._timers):
            self.unschedule_workflow(workflow_id)

    def sync_workflow(self, workflow: WorkflowDefinition) -> bool:
        """Bring the timer for an edited workflow in line with its definition."""
        if workflow.enabled and workflow.schedule and workflow.schedule.enabled:
            return self.schedule_workflow(workflow)
        self.unschedule_workflow(workflow.id)
        return False

    def is_scheduled(self, workflow_id: str) -> bool:
        return workflow_id in self._timers

    def scheduled_count(self) -> int:
        return len(self._timers)

    # ── Execution ────────────────────────────────────────────────────────────

    async def execute_directly(
        self,
        workflow: WorkflowDefinition,
        inputs: Optional[dict[str, Any]] = None,
    ) -> ExecutionResult:
        """Run a scheduled workflow with its retry policy; one history record per call."""
        triggered_at = _now()
        schedule = workflow.schedule
        max_retries = schedule.max_retries if schedule and schedule.retry_on_failure else 0

        result = await self._run_once(workflow, inputs)
        attempt = 0
        while not result.success and attempt < max_retries:
            attempt += 1
            logger.info("Retrying workflow %s, attempt %d/%d", workflow.id, attempt, max_retries)
            result = await self._run_once(workflow, inputs)

        if not result.success:
            logger.error("Scheduled workflow %s failed: %s", workflow.id, result.error)
        self._record(workflow, TriggerType.SCHEDULED, triggered_at, result.success, result.error)
        return result

    async def trigger_now(
        self,
        workflow: WorkflowDefinition,
        inputs: Optional[dict[str, Any]] = None,
    ) -> ExecutionResult:
        """Single attempt, recorded as a manual run."""
        triggered_at = _now()
        result = await self._run_once(workflow, inputs)
        self._record(workflow, TriggerType.MANUAL, triggered_at, result.success, result.error)
        return result

    async def stream_now(
        self,
        workflow: WorkflowDefinition,
        inputs: Optional[dict[str, Any]] = None,
    ) -> AsyncIterator[ExecutionEvent]:
        """Single attempt yielding progress events; recorded as a manual run on the terminal event."""
        triggered_at = _now()
        async for event in self._executor.iter_execute(workflow, inputs):
            if event.is_terminal:
                self._record(workflow, TriggerType.MANUAL, triggered_at, bool(event.success), event.error)
            yield event

    # ── Status / history ─────────────────────────────────────────────────────

    def get_schedule_status(self, workflow_id: str) -> ScheduleStatus:
        workflow = self._lookup(workflow_id)
        if workflow is None:
            raise WorkflowNotFound(f"Workflow '{workflow_id}' not found", workflow_id=workflow_id)
        return self._status_for(workflow)

    def schedule_status(self, workflows: Optional[list[WorkflowDefinition]] = None) -> list[ScheduleStatus]:
        """Status of every workflow that has a schedule block."""
        return [self._status_for(wf) for wf in (workflows if workflows is not None else self._source()) if wf.schedule]

    def history(self, workflow_id: Optional[str] = None, limit: int = 50) -> list[ExecutionRecord]:
        if workflow_id is None:
            return self._history.snapshot(limit)
        return self._history.filter(lambda r: r.workflow_id == workflow_id, limit)

    # ── Internal ─────────────────────────────────────────────────────────────

    def _timezone(self, workflow: WorkflowDefinition) -> tzinfo:
        name = (workflow.schedule.timezone if workflow.schedule else None) or self._config.default_timezone
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ScheduleError(f"Unknown timezone '{name}'", workflow_id=workflow.id) from exc

    async def _cron_loop(self, workflow: WorkflowDefinition, expression: str, tz: tzinfo) -> None:
        itr = croniter(expression, datetime.now(tz))
        while True:
            next_run = itr.get_next(datetime)
            self._next_runs[workflow.id] = next_run
            delay = (next_run - datetime.now(tz)).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)
            await self._fire(workflow)

    async def _interval_loop(self, workflow: WorkflowDefinition, interval_ms: int) -> None:
        period = interval_ms / 1000
        while True:
            self._next_runs[workflow.id] = _now() + timedelta(milliseconds=interval_ms)
            await asyncio.sleep(period)
            await self._fire(workflow)

    async def _fire(self, captured: WorkflowDefinition) -> None:
        workflow = self._lookup(captured.id) or captured
        if not workflow.enabled:
            logger.info("Skipping firing of disabled workflow %s", workflow.id)
            return
        try:
            task = self._enqueue(workflow, workflow.default_inputs())
            logger.info("Workflow %s fired; queued as task %s", workflow.id, task.id)
        except Exception:
            logger.exception("Enqueueing scheduled workflow %s failed", workflow.id)
            return
        if self._event_bus is not None:
            await self._event_bus.emit(EVENT_SCHEDULE_FIRED, {"workflowId": workflow.id, "taskId": task.id})

    def _lookup(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        try:
            workflows = self._source()
        except Exception:
            logger.exception("Workflow source raised; using the scheduled definition of %s", workflow_id)
            return self._scheduled.get(workflow_id)
        for wf in workflows:
            if wf.id == workflow_id:
                return wf
        return None

    async def _run_once(self, workflow: WorkflowDefinition, inputs: Optional[dict[str, Any]]) -> ExecutionResult:
        try:
            return await self._executor.execute(workflow, inputs)
        except Exception as exc:
            logger.exception("Workflow %s raised outside step handling", workflow.id)
            return ExecutionResult(success=False, workflow_id=workflow.id, error=str(exc) or type(exc).__name__)

    def _record(
        self,
        workflow: WorkflowDefinition,
        trigger_type: TriggerType,
        triggered_at: datetime,
        success: bool,
        error: Optional[str],
    ) -> ExecutionRecord:
        completed_at = _now()
        record = ExecutionRecord(
            id=uuid4().hex,
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            triggered_at=triggered_at,
            completed_at=completed_at,
            trigger_type=trigger_type,
            success=success,
            error=None if success else error,
            duration=int((completed_at - triggered_at).total_seconds() * 1000),
        )
        self._history.append(record)
        return record

    def _status_for(self, workflow: WorkflowDefinition) -> ScheduleStatus:
        schedule = workflow.schedule
        last = self._history.latest(lambda r: r.workflow_id == workflow.id)
        return ScheduleStatus(
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            enabled=bool(schedule and schedule.enabled and workflow.enabled),
            cron=schedule.cron if schedule else None,
            interval=schedule.interval if schedule else None,
            timezone=(schedule.timezone or self._config.default_timezone) if schedule and schedule.cron else None,
            next_run=self._next_runs.get(workflow.id),
            last_run=last.triggered_at if last else None,
            last_success=last.success if last else None,
        )
