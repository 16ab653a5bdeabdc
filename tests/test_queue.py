"""TaskQueue: single slot, FIFO backlog, busy rejection, streaming, cancellation."""

import asyncio

import pytest

from skillflow.exceptions import TaskBusyError
from skillflow.triggers.event_bus import (
    EVENT_TASK_CANCELLED,
    EVENT_TASK_COMPLETED,
    EVENT_TASK_FAILED,
    EVENT_TASK_QUEUED,
    EVENT_TASK_STARTED,
    EventBus,
)
from skillflow.types import EventType, ExecutionEvent, ExecutionResult, TaskStatus, TriggerType
from skillflow.workers.queue import TaskQueue

from conftest import make_workflow


class Runners:
    """Task and event runners whose runs can be held open per workflow id."""

    def __init__(self):
        self.started: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.outcomes: dict[str, object] = {}

    def hold(self, workflow_id: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[workflow_id] = gate
        return gate

    async def _wait(self, workflow_id: str) -> None:
        gate = self.gates.get(workflow_id)
        if gate is not None:
            await gate.wait()

    async def task_runner(self, workflow, task):
        self.started.append(workflow.id)
        await self._wait(workflow.id)
        outcome = self.outcomes.get(workflow.id)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome or ExecutionResult(success=True, workflow_id=workflow.id)

    async def event_runner(self, workflow, task):
        self.started.append(workflow.id)
        yield ExecutionEvent(type=EventType.STEP_START, step_id="s", step_index=0, total_steps=1)
        await self._wait(workflow.id)
        outcome = self.outcomes.get(workflow.id)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome == "truncated":
            return
        result = ExecutionResult(success=True, workflow_id=workflow.id)
        yield ExecutionEvent(type=EventType.EXECUTION_COMPLETE, success=True, result=result)


async def _until(predicate, timeout: float = 1.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.001)
    await asyncio.wait_for(poll(), timeout)


@pytest.fixture
def runners():
    return Runners()


@pytest.fixture
def queue(runners):
    return TaskQueue(runners.task_runner, runners.event_runner)


A, B, C = make_workflow("a"), make_workflow("b"), make_workflow("c")


# ── Scheduled backlog ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_scheduled_tasks_run_one_at_a_time_in_fifo_order(queue, runners):
    gate = runners.hold("a")
    for wf in (A, B, C):
        queue.enqueue_scheduled(wf)
    await _until(lambda: runners.started == ["a"])

    assert queue.current_task.workflow_id == "a"
    assert queue.queue_length == 2
    status = queue.get_status()
    assert [t.workflow_id for t in status.queued_tasks] == ["b", "c"]
    assert all(t.status == TaskStatus.QUEUED for t in status.queued_tasks)

    gate.set()
    await queue.wait_idle()

    assert runners.started == ["a", "b", "c"]
    recent = queue.get_status().recent_tasks
    assert [t.workflow_id for t in recent] == ["c", "b", "a"]
    assert all(t.status == TaskStatus.COMPLETED and t.trigger_type == TriggerType.SCHEDULED for t in recent)
    assert queue.current_task is None


@pytest.mark.asyncio
async def test_enqueue_returns_task_with_inputs(queue):
    task = queue.enqueue_scheduled(A, {"url": "https://x.test"})
    assert task.status == TaskStatus.QUEUED
    assert task.inputs == {"url": "https://x.test"}
    assert task.workflow_name == "A"
    await queue.wait_idle()


@pytest.mark.asyncio
async def test_raising_task_is_failed_and_drain_continues(queue, runners):
    runners.outcomes["a"] = RuntimeError("boom")
    queue.enqueue_scheduled(A)
    queue.enqueue_scheduled(B)
    await queue.wait_idle()

    recent = queue.get_status().recent_tasks
    assert [(t.workflow_id, t.status) for t in recent] == [("b", TaskStatus.COMPLETED), ("a", TaskStatus.FAILED)]
    assert recent[1].error == "boom"


@pytest.mark.asyncio
async def test_failed_result_marks_task_failed(queue, runners):
    runners.outcomes["a"] = ExecutionResult(success=False, workflow_id="a", error="Step x failed: y")
    queue.enqueue_scheduled(A)
    await queue.wait_idle()
    task = queue.get_status().recent_tasks[0]
    assert task.status == TaskStatus.FAILED
    assert task.error == "Step x failed: y"
    assert task.started_at is not None and task.completed_at is not None


# ── Manual admission ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_manual_run_when_idle(queue):
    result = await queue.execute_manual(A, {"x": 1})
    assert result.success is True
    task = queue.get_status().recent_tasks[0]
    assert task.trigger_type == TriggerType.MANUAL
    assert task.inputs == {"x": 1}
    assert task.status == TaskStatus.COMPLETED
    assert not queue.is_busy()


@pytest.mark.asyncio
async def test_manual_run_rejected_while_busy_and_nothing_queued(queue, runners):
    gate = runners.hold("a")
    queue.enqueue_scheduled(A)
    await _until(lambda: queue.is_busy())

    with pytest.raises(TaskBusyError) as info:
        await queue.execute_manual(B)

    assert info.value.current_task.workflow_id == "a"
    assert "Current task: A" in str(info.value)
    assert queue.queue_length == 0
    assert queue.current_task.workflow_id == "a"

    gate.set()
    await queue.wait_idle()
    assert runners.started == ["a"]


@pytest.mark.asyncio
async def test_scheduled_task_waits_for_manual_run(queue, runners):
    gate = runners.hold("a")
    manual = asyncio.create_task(queue.execute_manual(A))
    await _until(lambda: runners.started == ["a"])

    queue.enqueue_scheduled(B)
    await asyncio.sleep(0.01)
    assert runners.started == ["a"]
    assert queue.queue_length == 1

    gate.set()
    await manual
    await queue.wait_idle()
    assert runners.started == ["a", "b"]


@pytest.mark.asyncio
async def test_manual_runner_exception_propagates_and_releases(queue, runners):
    runners.outcomes["a"] = RuntimeError("kaboom")
    with pytest.raises(RuntimeError, match="kaboom"):
        await queue.execute_manual(A)
    assert not queue.is_busy()
    assert queue.get_status().recent_tasks[0].status == TaskStatus.FAILED


@pytest.mark.asyncio
async def test_cancelled_manual_run_frees_the_slot(queue, runners):
    runners.hold("a")
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(queue.execute_manual(A), 0.05)

    assert not queue.is_busy()
    task = queue.get_status().recent_tasks[0]
    assert task.status == TaskStatus.FAILED
    assert task.error == "Execution interrupted"

    queue.enqueue_scheduled(B)
    await queue.wait_idle()
    assert runners.started == ["a", "b"]
    assert (await queue.execute_manual(C)).success is True


@pytest.mark.asyncio
async def test_idle_enqueue_takes_the_slot_before_a_manual_trigger(queue, runners):
    queued = queue.enqueue_scheduled(A)
    assert queued.status == TaskStatus.QUEUED

    status = queue.get_status()
    assert status.current_task.id == queued.id
    assert status.current_task.status == TaskStatus.RUNNING
    assert status.queued_tasks == []

    with pytest.raises(TaskBusyError):
        await queue.execute_manual(B)
    with pytest.raises(TaskBusyError):
        queue.execute_manual_with_events(B)

    await queue.wait_idle()
    assert runners.started == ["a"]


# ── Streaming ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_streaming_run_occupies_slot_at_call_time(queue):
    events = queue.execute_manual_with_events(A)
    assert queue.is_busy()

    collected = [event async for event in events]
    assert [e.type for e in collected] == [EventType.STEP_START, EventType.EXECUTION_COMPLETE]

    await queue.wait_idle()
    assert queue.get_status().recent_tasks[0].status == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_streaming_busy_check_raises_before_iteration(queue, runners):
    runners.hold("a")
    queue.enqueue_scheduled(A)
    await _until(lambda: queue.is_busy())
    with pytest.raises(TaskBusyError):
        queue.execute_manual_with_events(B)
    await queue.stop()


@pytest.mark.asyncio
async def test_abandoned_stream_still_releases_slot(queue, runners):
    gate = runners.hold("a")
    events = queue.execute_manual_with_events(A)
    first = await events.__anext__()
    assert first.type == EventType.STEP_START
    await events.aclose()

    gate.set()
    await queue.wait_idle()
    assert not queue.is_busy()
    assert queue.get_status().recent_tasks[0].status == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_stream_runner_exception_becomes_terminal_error(queue, runners):
    runners.outcomes["a"] = RuntimeError("stream broke")
    collected = [event async for event in queue.execute_manual_with_events(A)]
    assert [e.type for e in collected] == [EventType.STEP_START, EventType.EXECUTION_ERROR]
    assert collected[-1].error == "stream broke"
    await queue.wait_idle()
    assert queue.get_status().recent_tasks[0].status == TaskStatus.FAILED


@pytest.mark.asyncio
async def test_stream_without_terminal_event_is_interrupted(queue, runners):
    runners.outcomes["a"] = "truncated"
    collected = [event async for event in queue.execute_manual_with_events(A)]
    assert collected[-1].type == EventType.EXECUTION_ERROR
    assert collected[-1].error == "Execution interrupted"
    assert sum(1 for e in collected if e.is_terminal) == 1


@pytest.mark.asyncio
async def test_stream_runner_is_closed_after_terminal_event(runners):
    closed = []

    async def event_runner(workflow, task):
        try:
            yield ExecutionEvent(type=EventType.EXECUTION_COMPLETE, success=True)
            yield ExecutionEvent(type=EventType.STEP_START, step_id="never")
        finally:
            closed.append(workflow.id)

    queue = TaskQueue(runners.task_runner, event_runner)
    collected = [event async for event in queue.execute_manual_with_events(A)]
    await queue.wait_idle()

    assert [e.type for e in collected] == [EventType.EXECUTION_COMPLETE]
    assert closed == ["a"]


# ── Cancellation, bounds, snapshots ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_cancel_queued_task(queue, runners):
    gate = runners.hold("a")
    running = queue.enqueue_scheduled(A)
    doomed = queue.enqueue_scheduled(B)
    queue.enqueue_scheduled(C)
    await _until(lambda: runners.started == ["a"])

    assert queue.cancel_queued_task(doomed.id) is True
    assert queue.cancel_queued_task(doomed.id) is False
    assert queue.cancel_queued_task(running.id) is False
    assert queue.cancel_queued_task("unknown") is False

    gate.set()
    await queue.wait_idle()
    assert runners.started == ["a", "c"]


@pytest.mark.asyncio
async def test_recent_tasks_are_bounded(runners):
    queue = TaskQueue(runners.task_runner, runners.event_runner, recent_size=2)
    for wf in (A, B, C):
        await queue.execute_manual(wf)
    assert [t.workflow_id for t in queue.get_status().recent_tasks] == ["c", "b"]


@pytest.mark.asyncio
async def test_status_is_a_snapshot(queue, runners):
    gate = runners.hold("a")
    queue.enqueue_scheduled(A)
    queue.enqueue_scheduled(B)
    await _until(lambda: queue.is_busy())

    status = queue.get_status()
    status.current_task.workflow_name = "changed"
    status.queued_tasks.clear()

    assert queue.current_task.workflow_name == "A"
    assert queue.queue_length == 1
    gate.set()
    await queue.wait_idle()


@pytest.mark.asyncio
async def test_lifecycle_events_published(runners):
    bus = EventBus()
    seen = []
    for name in (EVENT_TASK_QUEUED, EVENT_TASK_STARTED, EVENT_TASK_COMPLETED, EVENT_TASK_FAILED, EVENT_TASK_CANCELLED):
        bus.subscribe(name, lambda task, name=name: seen.append((name, task.workflow_id)))
    queue = TaskQueue(runners.task_runner, runners.event_runner, event_bus=bus)

    queue.enqueue_scheduled(A)
    await queue.wait_idle()
    assert seen == [(EVENT_TASK_QUEUED, "a"), (EVENT_TASK_STARTED, "a"), (EVENT_TASK_COMPLETED, "a")]

    seen.clear()
    gate = runners.hold("b")
    queue.enqueue_scheduled(B)
    doomed = queue.enqueue_scheduled(C)
    await _until(lambda: queue.is_busy())
    queue.cancel_queued_task(doomed.id)
    gate.set()
    await queue.wait_idle()
    assert (EVENT_TASK_CANCELLED, "c") in seen
    assert (EVENT_TASK_STARTED, "c") not in seen


@pytest.mark.asyncio
async def test_stop_discards_backlog(queue, runners):
    runners.hold("a")
    queue.enqueue_scheduled(A)
    queue.enqueue_scheduled(B)
    await _until(lambda: runners.started == ["a"])
    await queue.stop()
    assert queue.queue_length == 0
    assert runners.started == ["a"]
    assert not queue.is_busy()
    interrupted = queue.get_status().recent_tasks[0]
    assert (interrupted.workflow_id, interrupted.status) == ("a", TaskStatus.FAILED)
    assert interrupted.error == "Execution interrupted"
