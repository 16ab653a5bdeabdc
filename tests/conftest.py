"""Test fixtures: scripted capability backend, registry, executor, sample workflows.

All tests should use these fixtures for consistency.
"""

import inspect
from typing import Any, Callable, Union

import pytest

from skillflow.capabilities.base import BaseCapability
from skillflow.capabilities.builtin import BuiltinCapability
from skillflow.capabilities.registry import CapabilityRegistry
from skillflow.config import SkillflowConfig
from skillflow.types import (
    ExecutorInstance,
    InvokeResult,
    UserInputField,
    WorkflowDefinition,
    WorkflowSchedule,
    WorkflowStep,
)
from skillflow.workflows.executor import SkillExecutor

Handler = Union[InvokeResult, Exception, list, Callable[[dict], Any]]


class FakeBackend:
    """Records every dispatch and answers from per-action scripts.

    A script is an InvokeResult, an exception to raise, a callable taking the
    params (sync or async), or a list of any of those consumed in order.
    Unscripted actions succeed with the params echoed back as data.
    """

    def __init__(self):
        self.calls: list[tuple[str, str, dict]] = []
        self.handlers: dict[str, Handler] = {}

    def on(self, action: str, handler: Handler) -> None:
        self.handlers[action] = handler

    def actions(self, name: str) -> list[dict]:
        """Params of every call to *action*."""
        return [params for _, action, params in self.calls if action == name]

    async def handle(self, instance: ExecutorInstance, action: str, params: dict) -> InvokeResult:
        self.calls.append((instance.name, action, params))
        handler = self.handlers.get(action)
        if isinstance(handler, list):
            handler = handler.pop(0) if handler else None
        if handler is None:
            return InvokeResult(success=True, data=dict(params))
        if isinstance(handler, Exception):
            raise handler
        if isinstance(handler, InvokeResult):
            return handler
        result = handler(params)
        if inspect.isawaitable(result):
            result = await result
        return result


class ScriptedCapability(BaseCapability):
    type_name = "scripted"
    BASE_ACTIONS = ["fetch", "summarize", "send", "noop"]

    def __init__(self, instance: ExecutorInstance, backend: FakeBackend):
        super().__init__(instance)
        self.backend = backend

    def supported_actions(self) -> list[str]:
        return self.BASE_ACTIONS + [a for a in self.backend.handlers if a not in self.BASE_ACTIONS]

    async def invoke(self, action: str, params: dict) -> InvokeResult:
        return await self.backend.handle(self.instance, action, params)


# ── Builders ─────────────────────────────────────────────────────────────────


def make_step(step_id: str, action: str = "noop", executor_type: str = "scripted", **kwargs) -> WorkflowStep:
    return WorkflowStep(id=step_id, name=kwargs.pop("name", step_id), executor_type=executor_type, action=action, **kwargs)


def make_workflow(workflow_id: str = "wf", steps=None, **kwargs) -> WorkflowDefinition:
    return WorkflowDefinition(
        id=workflow_id,
        name=kwargs.pop("name", workflow_id.replace("-", " ").title()),
        steps=steps if steps is not None else [make_step("only")],
        **kwargs,
    )


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def config():
    """Test configuration with safe defaults."""
    return SkillflowConfig(
        _env_file=None,
        config_dir="./does-not-exist",
        default_timezone="UTC",
        min_interval_ms=10,
        execution_history_size=100,
        recent_tasks_size=10,
        condition_failure_policy="run",
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def registry(backend):
    """Registry with a scripted type (two instances, the second disabled) and the builtin type."""
    reg = CapabilityRegistry()
    reg.register_type("scripted", lambda instance: ScriptedCapability(instance, backend))
    reg.register_type("builtin", BuiltinCapability)
    reg.add_instance(ExecutorInstance(name="scripted-1", type="scripted", endpoint="http://scripted.test"))
    reg.add_instance(ExecutorInstance(name="scripted-2", type="scripted", endpoint="http://scripted.test", enabled=False))
    reg.add_instance(ExecutorInstance(name="builtin", type="builtin"))
    return reg


@pytest.fixture
def executor(registry):
    return SkillExecutor(registry)


@pytest.fixture
def fetch_summarize_workflow():
    """fetch(url={{url}}) → summarize(text={{fetch.data.textContent}})."""
    return make_workflow(
        "page-summary",
        user_inputs=[UserInputField(name="url", default_value="https://default.test")],
        steps=[
            make_step("fetch", "fetch", params={"url": "{{url}}"}),
            make_step("summarize", "summarize", params={"text": "{{fetch.data.textContent}}"}),
        ],
    )


@pytest.fixture
def scheduled_workflow():
    return make_workflow(
        "nightly",
        schedule=WorkflowSchedule(enabled=True, cron="0 3 * * *", timezone="UTC", retry_on_failure=True, max_retries=3),
    )
