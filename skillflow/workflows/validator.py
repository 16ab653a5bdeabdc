"""
WorkflowValidator: structural correctness checker for WorkflowDefinition.

All checks are non-destructive reads.  Warnings (soft issues) are returned
with a "WARNING:" prefix so callers can choose to treat them differently from
hard errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from skillflow.exceptions import ConditionError
from skillflow.types import WorkflowDefinition

from .conditions import validate_condition
from .template import find_placeholders

if TYPE_CHECKING:
    from skillflow.capabilities.registry import CapabilityRegistry

_BUILTIN_NAMES = {
    "current_date": "currentDate",
    "current_time": "currentTime",
    "current_datetime": "currentDatetime",
    "random_id": "randomId",
}


def check_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


class WorkflowValidator:
    """
    Validates a WorkflowDefinition.

    Usage::

        validator = WorkflowValidator()
        errors = validator.validate(workflow, registry=registry)
        hard_errors = [e for e in errors if not e.startswith("WARNING:")]
        if hard_errors:
            raise WorkflowValidationError("Invalid workflow", violations=hard_errors)

    All checks run even if earlier ones fail, so callers get the full error
    list in one shot.
    """

    def __init__(self, max_steps: int = 50, min_interval_ms: int = 1000):
        self.max_steps = max_steps
        self.min_interval_ms = min_interval_ms

    def validate(
        self,
        workflow: WorkflowDefinition,
        registry: Optional["CapabilityRegistry"] = None,
    ) -> list[str]:
        """
        Run all checks on a WorkflowDefinition.

        Args:
            workflow: The workflow to validate.
            registry: Optional CapabilityRegistry; executor checks are skipped if None.

        Returns:
            List of error strings.  Empty list means the workflow is valid.
            Items prefixed "WARNING:" are soft warnings, not hard failures.
        """
        errors: list[str] = []
        steps = workflow.steps

        # ── Step count ────────────────────────────────────────────────────────
        if not steps:
            errors.append("WARNING: Workflow has no steps.")
        if len(steps) > self.max_steps:
            errors.append(f"Workflow has {len(steps)} steps; the maximum is {self.max_steps}.")

        # ── Unique step ids ───────────────────────────────────────────────────
        seen: set[str] = set()
        for step in steps:
            if step.id in seen:
                errors.append(f"Duplicate step id '{step.id}'.")
            seen.add(step.id)

        # ── Conditions ────────────────────────────────────────────────────────
        for step in steps:
            if not step.condition:
                continue
            try:
                validate_condition(step.condition)
            except ConditionError as exc:
                errors.append(f"Step '{step.id}': {exc}")

        # ── Variable references ───────────────────────────────────────────────
        known = {
            alias for field, alias in _BUILTIN_NAMES.items()
            if getattr(workflow.builtin_variables, field)
        }
        known.update(f.name for f in workflow.user_inputs)
        input_names = {f.name for f in workflow.user_inputs}
        for step in steps:
            refs = find_placeholders(step.params) | find_placeholders(step.condition or "")
            for ref in sorted(refs):
                root = ref.split(".", 1)[0]
                if ref not in known and root not in known:
                    errors.append(
                        f"WARNING: Step '{step.id}' references '{{{{{ref}}}}}', which no earlier "
                        "step, user input, or enabled builtin provides; it will resolve to ''."
                    )
            known.add(step.id)
            if step.output_variable:
                if step.output_variable in input_names:
                    errors.append(
                        f"WARNING: Step '{step.id}' output variable '{step.output_variable}' "
                        "is shadowed by a user input of the same name."
                    )
                known.add(step.output_variable)

        # ── Executors ─────────────────────────────────────────────────────────
        if registry is not None:
            types = set(registry.list_types())
            for step in steps:
                if step.executor_type not in types:
                    errors.append(f"Step '{step.id}': unknown executor type '{step.executor_type}'.")
                    continue
                instances = registry.list_instances(step.executor_type)
                if step.executor_name and step.executor_name not in {i.name for i in instances}:
                    errors.append(
                        f"WARNING: Step '{step.id}': executor '{step.executor_name}' of type "
                        f"'{step.executor_type}' is not configured."
                    )
                elif not any(i.enabled for i in instances):
                    errors.append(
                        f"WARNING: Step '{step.id}': no enabled executor of type '{step.executor_type}'."
                    )

        # ── Schedule ──────────────────────────────────────────────────────────
        schedule = workflow.schedule
        if schedule is not None:
            if schedule.cron and not croniter.is_valid(schedule.cron):
                errors.append(f"Invalid cron expression '{schedule.cron}'.")
            if schedule.timezone and not check_timezone(schedule.timezone):
                errors.append(f"Unknown timezone '{schedule.timezone}'.")
            if schedule.interval is not None and schedule.interval < self.min_interval_ms:
                errors.append(
                    f"Schedule interval {schedule.interval}ms is below the minimum of {self.min_interval_ms}ms."
                )
            if schedule.cron and schedule.interval:
                errors.append("WARNING: Schedule sets both cron and interval; cron takes precedence.")
            if schedule.enabled and not schedule.has_trigger:
                errors.append("WARNING: Schedule is enabled but has neither cron nor interval.")

        return errors
