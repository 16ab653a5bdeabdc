"""SkillflowService: wires store → registry → executor → queue → scheduler.

Every collaborator is passed in through a constructor; the scheduler only
sees the store's ``list`` and the queue's ``enqueue_scheduled``, and the queue
only sees two runner callables defined here.

Usage:
    service = SkillflowService.from_config()
    await service.start()
    result = await service.run_now("daily-report", {"url": "https://example.com"})
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

import httpx

from skillflow.callbacks import ExecutionCallback, LoggingCallback
from skillflow.capabilities.registry import CapabilityRegistry, build_default_registry
from skillflow.config import SkillflowConfig, load_executors_yaml
from skillflow.exceptions import TaskNotFound
from skillflow.triggers.event_bus import EventBus
from skillflow.triggers.scheduler import WorkflowScheduler
from skillflow.types import (
    ExecutionEvent,
    ExecutionRecord,
    ExecutionResult,
    QueuedTask,
    QueueStatus,
    ScheduleStatus,
    TriggerType,
    WorkflowDefinition,
)
from skillflow.workers.queue import TaskQueue
from skillflow.workflows.executor import SkillExecutor
from skillflow.workflows.store import WorkflowStore
from skillflow.workflows.validator import WorkflowValidator

logger = logging.getLogger(__name__)


class SkillflowService:
    """Caller-facing API: trigger runs, read status and history, manage definitions."""

    def __init__(
        self,
        store: WorkflowStore,
        registry: CapabilityRegistry,
        config: Optional[SkillflowConfig] = None,
        callbacks: Optional[list[ExecutionCallback]] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self.config = config or SkillflowConfig()
        self.store = store
        self.registry = registry
        self.event_bus = event_bus or EventBus()
        self.executor = SkillExecutor(
            registry,
            callbacks=[LoggingCallback()] if callbacks is None else callbacks,
            condition_failure_policy=self.config.condition_failure_policy,
        )
        self.queue = TaskQueue(
            task_runner=self._run_task,
            event_runner=self._stream_task,
            recent_size=self.config.recent_tasks_size,
            event_bus=self.event_bus,
        )
        self.scheduler = WorkflowScheduler(
            executor=self.executor,
            workflow_source=store.list,
            enqueue=self.queue.enqueue_scheduled,
            config=self.config,
            event_bus=self.event_bus,
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[SkillflowConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SkillflowService":
        """Build a service from the YAML files in ``config.config_dir``."""
        config = config or SkillflowConfig()
        validator = WorkflowValidator(max_steps=config.max_workflow_steps, min_interval_ms=config.min_interval_ms)
        store = WorkflowStore(config_dir=config.config_dir, validator=validator)
        registry = build_default_registry(
            load_executors_yaml(config_dir=config.config_dir),
            timeout_seconds=config.executor_timeout_seconds,
            health_timeout_seconds=config.health_timeout_seconds,
            transport=transport,
        )
        return cls(store, registry, config=config)

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def start(self) -> None:
        count = self.scheduler.initialize()
        logger.info("Skillflow started: %d workflows, %d schedules", len(self.store.list()), count)

    async def stop(self) -> None:
        self.scheduler.clear_all_schedules()
        await self.queue.stop()
        logger.info("Skillflow stopped")

    # ── Triggers ─────────────────────────────────────────────────────────────

    async def run_now(self, workflow_id: str, inputs: Optional[dict[str, Any]] = None) -> ExecutionResult:
        """Run a workflow immediately.

        Raises:
            WorkflowNotFound: unknown id.
            TaskBusyError: another task is running.
        """
        workflow = self.store.get(workflow_id)
        return await self.queue.execute_manual(workflow, self._merge_inputs(workflow, inputs))

    def run_now_streaming(
        self,
        workflow_id: str,
        inputs: Optional[dict[str, Any]] = None,
    ) -> AsyncIterator[ExecutionEvent]:
        """Run a workflow immediately, returning its progress events.

        Raises:
            WorkflowNotFound: unknown id.
            TaskBusyError: another task is running.
        """
        workflow = self.store.get(workflow_id)
        return self.queue.execute_manual_with_events(workflow, self._merge_inputs(workflow, inputs))

    def cancel_task(self, task_id: str) -> None:
        if not self.queue.cancel_queued_task(task_id):
            raise TaskNotFound(f"No queued task '{task_id}'", task_id=task_id)

    # ── Status ───────────────────────────────────────────────────────────────

    def schedule_status(self, workflow_id: str) -> ScheduleStatus:
        return self.scheduler.get_schedule_status(workflow_id)

    def list_schedule_status(self) -> list[ScheduleStatus]:
        return self.scheduler.schedule_status()

    def queue_status(self) -> QueueStatus:
        return self.queue.get_status()

    def history(self, workflow_id: Optional[str] = None, limit: int = 50) -> list[ExecutionRecord]:
        return self.scheduler.history(workflow_id, limit)

    # ── Definitions ──────────────────────────────────────────────────────────

    def reload(self) -> int:
        """Re-read workflow definitions and rebuild every timer. Returns the timer count."""
        workflows = self.store.reload()
        self.scheduler.clear_all_schedules()
        count = self.scheduler.initialize()
        logger.info("Reloaded %d workflows, %d schedules", len(workflows), count)
        return count

    def update_workflow(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        self.store.upsert(workflow)
        self.scheduler.sync_workflow(workflow)
        return workflow

    def remove_workflow(self, workflow_id: str) -> WorkflowDefinition:
        """Delete a definition and its timer.

        Raises:
            WorkflowNotFound: unknown id.
            WorkflowProtected: the workflow is reserved.
        """
        workflow = self.store.remove(workflow_id)
        self.scheduler.unschedule_workflow(workflow_id)
        return workflow

    # ── Internal ─────────────────────────────────────────────────────────────

    @staticmethod
    def _merge_inputs(workflow: WorkflowDefinition, inputs: Optional[dict[str, Any]]) -> dict[str, Any]:
        merged = workflow.default_inputs()
        merged.update(inputs or {})
        return merged

    async def _run_task(self, workflow: WorkflowDefinition, task: QueuedTask) -> ExecutionResult:
        if task.trigger_type == TriggerType.SCHEDULED:
            return await self.scheduler.execute_directly(workflow, task.inputs)
        return await self.scheduler.trigger_now(workflow, task.inputs)

    def _stream_task(self, workflow: WorkflowDefinition, task: QueuedTask) -> AsyncIterator[ExecutionEvent]:
        return self.scheduler.stream_now(workflow, task.inputs)
