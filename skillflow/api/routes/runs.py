"""POST /v1/workflows/{id}/run and /run/stream: manual triggers.

SSE Event Format (one event per ExecutionEvent, named by its type):
    event: step-start          data: {"type": "step-start", "stepId": "fetch", "stepIndex": 0, "totalSteps": 2}
    event: step-complete       data: {"type": "step-complete", "stepId": "fetch", "success": true, "output": {...}}
    event: step-error          data: {"type": "step-error", "stepId": "fetch", "error": "..."}
    event: execution-complete  data: {"type": "execution-complete", "result": {...}}
    event: execution-error     data: {"type": "execution-error", "error": "..."}
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from skillflow.api.schemas import RunRequest
from skillflow.exceptions import TaskBusyError, WorkflowNotFound
from skillflow.service import SkillflowService
from skillflow.types import EventType, ExecutionEvent, ExecutionResult

logger = logging.getLogger(__name__)
router = APIRouter(tags=["runs"])


def _sse(event_type: str, data: dict) -> str:
    """Format a server-sent event."""
    return f"event: {event_type}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


def _busy_detail(exc: TaskBusyError) -> dict:
    return {
        "message": str(exc),
        "currentTask": exc.current_task.model_dump(by_alias=True, mode="json"),
    }


async def _single(event: ExecutionEvent) -> AsyncIterator[ExecutionEvent]:
    yield event


@router.post("/workflows/{workflow_id}/run", response_model=ExecutionResult)
async def run_workflow(request: Request, workflow_id: str, body: Optional[RunRequest] = None):
    """Run a workflow now and wait for its result. 409 when another task is running."""
    service: SkillflowService = request.app.state.service
    try:
        return await service.run_now(workflow_id, body.inputs if body else None)
    except WorkflowNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except TaskBusyError as exc:
        raise HTTPException(status_code=409, detail=_busy_detail(exc))


@router.post("/workflows/{workflow_id}/run/stream")
async def run_workflow_stream(request: Request, workflow_id: str, body: Optional[RunRequest] = None):
    """Run a workflow now, streaming progress events over SSE.

    When another task is running the stream carries a single execution-error event.
    """
    service: SkillflowService = request.app.state.service
    try:
        events = service.run_now_streaming(workflow_id, body.inputs if body else None)
    except WorkflowNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except TaskBusyError as exc:
        events = _single(ExecutionEvent(type=EventType.EXECUTION_ERROR, success=False, error=str(exc)))

    timeout = service.config.stream_timeout_seconds

    async def event_generator():
        iterator = events.__aiter__()
        try:
            while True:
                try:
                    event = await asyncio.wait_for(iterator.__anext__(), timeout=timeout)
                except StopAsyncIteration:
                    break
                yield _sse(event.type.value, event.model_dump(by_alias=True, mode="json", exclude_none=True))
        except asyncio.TimeoutError:
            logger.warning("Event stream for workflow %s timed out after %ss", workflow_id, timeout)
            yield _sse("error", {"message": "Stream timed out"})

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )
