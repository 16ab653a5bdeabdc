"""skillflow.workflows: templating, conditions, execution, and definition storage."""

from .conditions import evaluate_condition, validate_condition
from .executor import SkillExecutor
from .store import WorkflowStore
from .template import describe_builtin_variables, generate_builtin_values, resolve_template
from .validator import WorkflowValidator

__all__ = [
    "SkillExecutor",
    "WorkflowStore",
    "WorkflowValidator",
    "evaluate_condition",
    "validate_condition",
    "resolve_template",
    "generate_builtin_values",
    "describe_builtin_variables",
]
