"""All shared types, enums, and type aliases. Everything imports from here."""

from enum import Enum
from typing import Any, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Model(BaseModel):
    """Base for every skillflow model.

    Fields are snake_case in Python and camelCase on the wire (YAML config
    files and JSON API payloads); both spellings are accepted on input.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Enums ──────────────────────────────────────────────────────────────

class TriggerType(str, Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"

class TaskStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

class EventType(str, Enum):
    STEP_START = "step-start"
    STEP_COMPLETE = "step-complete"
    STEP_ERROR = "step-error"
    EXECUTION_COMPLETE = "execution-complete"
    EXECUTION_ERROR = "execution-error"

class InputFieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    NUMBER = "number"
    CHECKBOX = "checkbox"

class ExecutorStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


TERMINAL_EVENTS = frozenset({EventType.EXECUTION_COMPLETE, EventType.EXECUTION_ERROR})


# ── Workflow definition ────────────────────────────────────────────────

class BuiltinVariables(_Model):
    """Which builtin values a workflow wants generated for each run."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    current_date: bool = False
    current_time: bool = False
    current_datetime: bool = False
    random_id: bool = False

class InputOption(_Model):
    label: str
    value: str

class UserInputField(_Model):
    """A value the caller supplies at trigger time."""
    name: str
    label: str = ""
    type: InputFieldType = InputFieldType.TEXT
    required: bool = False
    default_value: Any = None
    placeholder: Optional[str] = None
    options: list[InputOption] = Field(default_factory=list)

class WorkflowStep(_Model):
    """One capability invocation. Order inside WorkflowDefinition.steps is execution order."""
    id: str
    name: str = ""
    executor_type: str                  # capability type, e.g. "playwright", "builtin"
    executor_name: Optional[str] = None # explicit instance; else first enabled of the type
    action: str
    params: dict[str, Any] = Field(default_factory=dict)
    output_variable: Optional[str] = None
    condition: Optional[str] = None

class WorkflowSchedule(_Model):
    enabled: bool = False
    cron: Optional[str] = None          # e.g. "0 9 * * *"
    interval: Optional[int] = None      # milliseconds; alternative to cron
    timezone: Optional[str] = None
    retry_on_failure: bool = False
    max_retries: int = Field(default=3, ge=0)

    @property
    def has_trigger(self) -> bool:
        return bool(self.cron) or bool(self.interval)

class WorkflowDefinition(_Model):
    """A named, ordered sequence of steps (a "skill")."""
    id: str
    name: str
    description: str = ""
    icon: Optional[str] = None
    enabled: bool = True
    builtin: bool = False
    reserved: bool = False              # reserved workflows cannot be removed
    builtin_variables: BuiltinVariables = Field(default_factory=BuiltinVariables)
    user_inputs: list[UserInputField] = Field(default_factory=list)
    steps: list[WorkflowStep] = Field(default_factory=list)
    schedule: Optional[WorkflowSchedule] = None

    def default_inputs(self) -> dict[str, Any]:
        """Values of every user input field that declares a default."""
        return {
            field.name: field.default_value
            for field in self.user_inputs
            if field.default_value is not None
        }


# ── Execution ──────────────────────────────────────────────────────────

class ExecutionContext(_Model):
    """Variable namespaces for one run. Never persisted."""
    builtin_values: dict[str, str] = Field(default_factory=dict)
    user_input_values: dict[str, Any] = Field(default_factory=dict)
    step_outputs: dict[str, Any] = Field(default_factory=dict)

class BuiltinVariableInfo(_Model):
    name: str
    description: str
    example: str

class StepResult(_Model):
    step_id: str
    step_name: str
    success: bool
    output: Any = None
    raw_output: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False
    duration: int = 0                   # milliseconds

class ExecutionResult(_Model):
    success: bool
    workflow_id: str
    step_results: list[StepResult] = Field(default_factory=list)
    final_output: Any = None
    error: Optional[str] = None
    duration: int = 0                   # milliseconds

class ExecutionEvent(_Model):
    """Progress event streamed while a run is in flight."""
    type: EventType
    step_id: Optional[str] = None
    step_name: Optional[str] = None
    step_index: Optional[int] = None
    total_steps: Optional[int] = None
    success: Optional[bool] = None
    skipped: bool = False
    output: Any = None
    raw_output: Optional[str] = None
    error: Optional[str] = None
    duration: Optional[int] = None
    result: Optional[ExecutionResult] = None

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS


# ── Queue / schedule bookkeeping ───────────────────────────────────────

class QueuedTask(_Model):
    id: str
    workflow_id: str
    workflow_name: str
    trigger_type: TriggerType
    inputs: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    status: TaskStatus = TaskStatus.QUEUED
    error: Optional[str] = None

class QueueStatus(_Model):
    current_task: Optional[QueuedTask] = None
    queued_tasks: list[QueuedTask] = Field(default_factory=list)
    recent_tasks: list[QueuedTask] = Field(default_factory=list)

class ExecutionRecord(_Model):
    """One history entry per finished run (retries collapse into one record)."""
    id: str
    workflow_id: str
    workflow_name: str
    triggered_at: datetime
    completed_at: Optional[datetime] = None
    trigger_type: TriggerType
    success: bool
    error: Optional[str] = None
    duration: int = 0

class ScheduleStatus(_Model):
    workflow_id: str
    workflow_name: str
    enabled: bool
    cron: Optional[str] = None
    interval: Optional[int] = None
    timezone: Optional[str] = None
    next_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    last_success: Optional[bool] = None


# ── Capabilities ───────────────────────────────────────────────────────

class ExecutorInstance(_Model):
    """A configured instance of a capability type (an "executor")."""
    name: str
    type: str
    endpoint: str = ""
    health_path: str = "/health"
    enabled: bool = True
    description: Optional[str] = None
    type_config: dict[str, Any] = Field(default_factory=dict)
    status: ExecutorStatus = ExecutorStatus.UNKNOWN
    last_checked: Optional[datetime] = None
    response_time: Optional[int] = None

class InvokeResult(_Model):
    success: bool
    data: Any = None
    error: Optional[str] = None
    raw_output: Optional[str] = None    # unparsed text output, kept for debugging

class HealthResult(_Model):
    healthy: bool
    response_time: Optional[int] = None
    message: Optional[str] = None

class ActionParameter(_Model):
    name: str
    type: str = "string"
    required: bool = False
    description: str = ""
    example: Any = None

class ActionDefinition(_Model):
    name: str
    display_name: str
    description: str
    params: list[ActionParameter] = Field(default_factory=list)
