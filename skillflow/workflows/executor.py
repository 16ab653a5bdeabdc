"""SkillExecutor: runs one workflow's steps in order, once.

Each step is, in order: condition check → param resolution → capability
dispatch → output stored under the step id (and output variable).  The first
failing step aborts the run.  ``iter_execute`` is the only implementation;
``execute`` drains it and returns the terminal result.
"""

from __future__ import annotations

import logging
import time
from contextlib import aclosing
from typing import Any, AsyncIterator, Callable, Optional

from skillflow.callbacks.base import ExecutionCallback
from skillflow.capabilities.registry import CapabilityRegistry
from skillflow.exceptions import ConditionError, SkillflowError
from skillflow.types import (
    EventType,
    ExecutionContext,
    ExecutionEvent,
    ExecutionResult,
    InvokeResult,
    StepResult,
    WorkflowDefinition,
    WorkflowStep,
)

from .conditions import FailurePolicy, evaluate_condition
from .template import generate_builtin_values, resolve_template

logger = logging.getLogger(__name__)


def _elapsed_ms(clock: Callable[[], float], started: float) -> int:
    return int((clock() - started) * 1000)


class SkillExecutor:
    """Sequential, fail-fast step runner."""

    def __init__(
        self,
        registry: CapabilityRegistry,
        callbacks: Optional[list[ExecutionCallback]] = None,
        condition_failure_policy: FailurePolicy = "run",
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            registry: Resolves and dispatches step actions.
            callbacks: Async callables ``cb(workflow_id, event)`` awaited for every event.
            condition_failure_policy: How a malformed step condition is treated.
            clock: Monotonic seconds source for durations (tests inject a fake).
        """
        self.registry = registry
        self.callbacks = callbacks or []
        self.condition_failure_policy = condition_failure_policy
        self._clock = clock or time.monotonic

    async def execute(
        self,
        workflow: WorkflowDefinition,
        inputs: Optional[dict[str, Any]] = None,
    ) -> ExecutionResult:
        """Run *workflow* to completion and return its result."""
        async with aclosing(self.iter_execute(workflow, inputs)) as events:
            async for event in events:
                if event.is_terminal and event.result is not None:
                    return event.result
        raise SkillflowError(f"Workflow {workflow.id} ended without a terminal event")

    async def iter_execute(
        self,
        workflow: WorkflowDefinition,
        inputs: Optional[dict[str, Any]] = None,
    ) -> AsyncIterator[ExecutionEvent]:
        """Run *workflow*, yielding a progress event before and after each step.

        The last event is always exactly one ``execution-complete`` or
        ``execution-error`` carrying the ExecutionResult.
        """
        started = self._clock()
        context = ExecutionContext(
            builtin_values=generate_builtin_values(workflow.builtin_variables),
            user_input_values=dict(inputs or {}),
        )
        step_results: list[StepResult] = []
        total = len(workflow.steps)
        logger.info("Executing workflow %s (%d steps)", workflow.id, total)

        for index, step in enumerate(workflow.steps):
            step_name = step.name or step.id
            step_started = self._clock()

            try:
                should_run = evaluate_condition(step.condition, context, self.condition_failure_policy)
            except ConditionError as exc:
                failure = StepResult(
                    step_id=step.id, step_name=step_name, success=False, error=str(exc),
                    duration=_elapsed_ms(self._clock, step_started),
                )
                step_results.append(failure)
                async for event in self._abort(workflow, index, total, failure, step_results, started):
                    yield event
                return

            if not should_run:
                logger.info("Skipping step %s of %s: condition %r is false", step.id, workflow.id, step.condition)
                skipped = StepResult(step_id=step.id, step_name=step_name, success=True, skipped=True)
                step_results.append(skipped)
                yield await self._emit(workflow, ExecutionEvent(
                    type=EventType.STEP_COMPLETE, step_id=step.id, step_name=step_name,
                    step_index=index, total_steps=total, success=True, skipped=True, duration=0,
                ))
                continue

            yield await self._emit(workflow, ExecutionEvent(
                type=EventType.STEP_START, step_id=step.id, step_name=step_name,
                step_index=index, total_steps=total,
            ))

            invoke = await self._dispatch(step, context)
            duration = _elapsed_ms(self._clock, step_started)

            if not invoke.success:
                failure = StepResult(
                    step_id=step.id, step_name=step_name, success=False,
                    error=invoke.error or "Unknown error", raw_output=invoke.raw_output, duration=duration,
                )
                step_results.append(failure)
                async for event in self._abort(workflow, index, total, failure, step_results, started):
                    yield event
                return

            output = invoke.model_dump(by_alias=True, exclude_none=True)
            context.step_outputs[step.id] = output
            if step.output_variable:
                context.step_outputs[step.output_variable] = output

            step_results.append(StepResult(
                step_id=step.id, step_name=step_name, success=True,
                output=output, raw_output=invoke.raw_output, duration=duration,
            ))
            yield await self._emit(workflow, ExecutionEvent(
                type=EventType.STEP_COMPLETE, step_id=step.id, step_name=step_name,
                step_index=index, total_steps=total, success=True,
                output=output, raw_output=invoke.raw_output, duration=duration,
            ))

        final_output = None
        if workflow.steps:
            last = workflow.steps[-1]
            final_output = context.step_outputs.get(last.output_variable or last.id)

        result = ExecutionResult(
            success=True,
            workflow_id=workflow.id,
            step_results=step_results,
            final_output=final_output,
            duration=_elapsed_ms(self._clock, started),
        )
        logger.info("Workflow %s completed in %dms", workflow.id, result.duration)
        yield await self._emit(workflow, ExecutionEvent(
            type=EventType.EXECUTION_COMPLETE, success=True, total_steps=total,
            duration=result.duration, result=result,
        ))

    # ── Internal ─────────────────────────────────────────────────────────────

    async def _dispatch(self, step: WorkflowStep, context: ExecutionContext) -> InvokeResult:
        try:
            params = resolve_template(step.params, context)
            return await self.registry.invoke(step.executor_type, step.executor_name, step.action, params)
        except SkillflowError as exc:
            return InvokeResult(success=False, error=str(exc))
        except Exception as exc:
            logger.exception("Step %s dispatch raised", step.id)
            return InvokeResult(success=False, error=str(exc) or type(exc).__name__)

    async def _abort(
        self,
        workflow: WorkflowDefinition,
        index: int,
        total: int,
        failure: StepResult,
        step_results: list[StepResult],
        started: float,
    ) -> AsyncIterator[ExecutionEvent]:
        yield await self._emit(workflow, ExecutionEvent(
            type=EventType.STEP_ERROR, step_id=failure.step_id, step_name=failure.step_name,
            step_index=index, total_steps=total, success=False,
            raw_output=failure.raw_output, error=failure.error, duration=failure.duration,
        ))
        message = f"Step {failure.step_id} failed: {failure.error}"
        result = ExecutionResult(
            success=False,
            workflow_id=workflow.id,
            step_results=step_results,
            error=message,
            duration=_elapsed_ms(self._clock, started),
        )
        logger.warning("Workflow %s aborted: %s", workflow.id, message)
        yield await self._emit(workflow, ExecutionEvent(
            type=EventType.EXECUTION_ERROR, success=False, total_steps=total,
            error=message, duration=result.duration, result=result,
        ))

    async def _emit(self, workflow: WorkflowDefinition, event: ExecutionEvent) -> ExecutionEvent:
        for cb in self.callbacks:
            try:
                await cb(workflow.id, event)
            except Exception:
                logger.exception("Execution callback raised for event=%s", event.type.value)
        return event
