"""Typed exception hierarchy. Every error skillflow can raise."""


class SkillflowError(Exception):
    """Base exception for all skillflow errors."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


# ── Workflows ────────────────────────────────────────────────────────────────


class WorkflowError(SkillflowError):
    """Base exception for all workflow-related errors."""
    pass


class WorkflowNotFound(WorkflowError):
    """Requested workflow does not exist."""
    def __init__(self, message: str, workflow_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.workflow_id = workflow_id


class WorkflowProtected(WorkflowError):
    """Workflow is reserved and cannot be removed."""
    def __init__(self, message: str, workflow_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.workflow_id = workflow_id


class WorkflowValidationError(WorkflowError):
    """Workflow definition is structurally invalid (duplicate step ids, bad schedule, etc.)."""
    def __init__(self, message: str, violations: list = None, **kwargs):
        super().__init__(message, **kwargs)
        self.violations = violations or []


class ConditionError(WorkflowError):
    """A step condition could not be parsed or uses a disallowed construct."""
    def __init__(self, message: str, expression: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.expression = expression


# ── Capabilities ─────────────────────────────────────────────────────────────


class CapabilityError(SkillflowError):
    """A capability could not be resolved or invoked."""
    def __init__(self, message: str, capability_type: str = "", instance_name: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.capability_type = capability_type
        self.instance_name = instance_name


class CapabilityNotFound(CapabilityError):
    """No instance matches the requested type/name, or the match is disabled."""
    pass


class UnsupportedAction(CapabilityError):
    """The capability does not implement the requested action."""
    def __init__(self, message: str, action: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.action = action


# ── Scheduling / queueing ────────────────────────────────────────────────────


class ScheduleError(SkillflowError):
    """Schedule configuration is invalid (bad cron expression or timezone)."""
    def __init__(self, message: str, workflow_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.workflow_id = workflow_id


class TaskBusyError(SkillflowError):
    """A manual trigger arrived while another task holds the execution slot."""
    def __init__(self, current_task, **kwargs):
        super().__init__(
            f"A task is already running, please retry later. Current task: {current_task.workflow_name}",
            **kwargs,
        )
        self.current_task = current_task


class TaskNotFound(SkillflowError):
    """No queued task with the given id."""
    def __init__(self, message: str, task_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.task_id = task_id
