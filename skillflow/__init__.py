"""skillflow: multi-step automation workflows, run on demand or on a schedule.

Usage:
    from skillflow import SkillflowService

    service = SkillflowService.from_config()
    await service.start()
    result = await service.run_now("daily-report", {"url": "https://example.com"})
"""

from skillflow.types import (
    WorkflowDefinition, WorkflowStep, WorkflowSchedule, UserInputField, BuiltinVariables,
    ExecutionContext, ExecutionEvent, ExecutionResult, StepResult, EventType,
    QueuedTask, QueueStatus, TaskStatus, TriggerType, ExecutionRecord, ScheduleStatus,
    ExecutorInstance, InvokeResult,
)
from skillflow.exceptions import (
    SkillflowError, WorkflowError, WorkflowNotFound, WorkflowProtected,
    WorkflowValidationError, ConditionError, CapabilityError, CapabilityNotFound,
    ScheduleError, TaskBusyError, TaskNotFound,
)
from skillflow.service import SkillflowService
from skillflow.version import __version__

__all__ = [
    "WorkflowDefinition", "WorkflowStep", "WorkflowSchedule", "UserInputField", "BuiltinVariables",
    "ExecutionContext", "ExecutionEvent", "ExecutionResult", "StepResult", "EventType",
    "QueuedTask", "QueueStatus", "TaskStatus", "TriggerType", "ExecutionRecord", "ScheduleStatus",
    "ExecutorInstance", "InvokeResult",
    "SkillflowError", "WorkflowError", "WorkflowNotFound", "WorkflowProtected",
    "WorkflowValidationError", "ConditionError", "CapabilityError", "CapabilityNotFound",
    "ScheduleError", "TaskBusyError", "TaskNotFound",
    "SkillflowService",
    "__version__",
]
