"""Base callback protocol for skill execution events.

The executor accepts callbacks as plain async callables
``async def cb(workflow_id: str, event: ExecutionEvent)`` and awaits each one
for every event it yields.  BaseCallback turns that single entry point into
one named hook per event type.

Usage:
    class MyCallback(BaseCallback):
        async def on_step_error(self, workflow_id, event):
            print(f"{workflow_id}: step {event.step_id} failed: {event.error}")

    executor = SkillExecutor(registry, callbacks=[MyCallback()])
"""

from typing import Awaitable, Callable, Protocol, runtime_checkable

from skillflow.types import EventType, ExecutionEvent

ExecutionCallback = Callable[[str, ExecutionEvent], Awaitable[None]]


@runtime_checkable
class SkillflowCallback(Protocol):
    """Named hooks for execution events. All are optional."""

    async def on_step_start(self, workflow_id: str, event: ExecutionEvent) -> None:
        ...

    async def on_step_complete(self, workflow_id: str, event: ExecutionEvent) -> None:
        """Called after a step succeeds or is skipped by its condition."""
        ...

    async def on_step_error(self, workflow_id: str, event: ExecutionEvent) -> None:
        ...

    async def on_execution_complete(self, workflow_id: str, event: ExecutionEvent) -> None:
        ...

    async def on_execution_error(self, workflow_id: str, event: ExecutionEvent) -> None:
        ...


class BaseCallback:
    """Concrete base with no-op hooks and an event dispatcher."""

    async def __call__(self, workflow_id: str, event: ExecutionEvent) -> None:
        handler = {
            EventType.STEP_START: self.on_step_start,
            EventType.STEP_COMPLETE: self.on_step_complete,
            EventType.STEP_ERROR: self.on_step_error,
            EventType.EXECUTION_COMPLETE: self.on_execution_complete,
            EventType.EXECUTION_ERROR: self.on_execution_error,
        }[event.type]
        await handler(workflow_id, event)

    async def on_step_start(self, workflow_id: str, event: ExecutionEvent) -> None:
        pass

    async def on_step_complete(self, workflow_id: str, event: ExecutionEvent) -> None:
        pass

    async def on_step_error(self, workflow_id: str, event: ExecutionEvent) -> None:
        pass

    async def on_execution_complete(self, workflow_id: str, event: ExecutionEvent) -> None:
        pass

    async def on_execution_error(self, workflow_id: str, event: ExecutionEvent) -> None:
        pass
