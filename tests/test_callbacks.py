"""BaseCallback dispatch and the JSON audit logging callback."""

import json
import logging

import pytest

from skillflow.callbacks import BaseCallback, LoggingCallback, SkillflowCallback
from skillflow.types import EventType, ExecutionEvent, ExecutionResult, InvokeResult
from skillflow.workflows.executor import SkillExecutor

from conftest import make_step, make_workflow


class Recorder(BaseCallback):
    def __init__(self):
        self.seen = []

    async def on_step_start(self, workflow_id, event):
        self.seen.append(("start", workflow_id, event.step_id))

    async def on_execution_error(self, workflow_id, event):
        self.seen.append(("error", workflow_id, event.error))


@pytest.mark.asyncio
async def test_base_callback_routes_to_named_hooks():
    cb = Recorder()
    assert isinstance(cb, SkillflowCallback)
    await cb("wf", ExecutionEvent(type=EventType.STEP_START, step_id="a"))
    await cb("wf", ExecutionEvent(type=EventType.STEP_COMPLETE, step_id="a"))
    await cb("wf", ExecutionEvent(type=EventType.EXECUTION_ERROR, error="x"))
    assert cb.seen == [("start", "wf", "a"), ("error", "wf", "x")]


def _audit_lines(caplog):
    return [json.loads(r.getMessage()) for r in caplog.records if r.name == "skillflow.audit"]


@pytest.mark.asyncio
async def test_logging_callback_writes_json_lines(registry, caplog):
    caplog.set_level(logging.INFO, logger="skillflow.audit")
    executor = SkillExecutor(registry, callbacks=[LoggingCallback()])
    wf = make_workflow("audited", steps=[make_step("a"), make_step("b", condition="false")])

    await executor.execute(wf)

    lines = _audit_lines(caplog)
    assert [line["event"] for line in lines] == ["step_start", "step_complete", "step_skipped", "execution_complete"]
    assert all(line["workflow_id"] == "audited" for line in lines)
    assert lines[-1]["steps"] == 2
    assert lines[0]["ts"].endswith("Z")


@pytest.mark.asyncio
async def test_logging_callback_logs_failures_at_error(registry, backend, caplog):
    caplog.set_level(logging.INFO, logger="skillflow.audit")
    backend.on("send", InvokeResult(success=False, error="smtp down"))
    executor = SkillExecutor(registry, callbacks=[LoggingCallback()])

    await executor.execute(make_workflow("mail", steps=[make_step("notify", "send")]))

    errors = [r for r in caplog.records if r.name == "skillflow.audit" and r.levelno == logging.ERROR]
    events = [json.loads(r.getMessage())["event"] for r in errors]
    assert events == ["step_error", "execution_error"]
    assert json.loads(errors[-1].getMessage())["error"] == "Step notify failed: smtp down"


@pytest.mark.asyncio
async def test_logging_callback_handles_missing_result(caplog):
    caplog.set_level(logging.INFO, logger="skillflow.audit")
    await LoggingCallback()("wf", ExecutionEvent(type=EventType.EXECUTION_COMPLETE, success=True))
    await LoggingCallback()("wf", ExecutionEvent(
        type=EventType.EXECUTION_COMPLETE, success=True, result=ExecutionResult(success=True, workflow_id="wf", duration=5),
    ))
    lines = _audit_lines(caplog)
    assert lines[0]["steps"] == 0 and lines[0]["duration_ms"] is None
    assert lines[1]["duration_ms"] == 5
