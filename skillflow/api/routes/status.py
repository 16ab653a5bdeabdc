"""Schedule, queue and history status, plus definition reload."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from skillflow.api.schemas import ReloadResponse
from skillflow.exceptions import TaskNotFound, WorkflowNotFound
from skillflow.types import BuiltinVariableInfo, ExecutionRecord, QueueStatus, ScheduleStatus
from skillflow.workflows.template import describe_builtin_variables

logger = logging.getLogger(__name__)
router = APIRouter(tags=["status"])


@router.get("/workflows/{workflow_id}/schedule", response_model=ScheduleStatus)
async def get_schedule(request: Request, workflow_id: str):
    try:
        return request.app.state.service.schedule_status(workflow_id)
    except WorkflowNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.get("/schedules", response_model=list[ScheduleStatus])
async def list_schedules(request: Request):
    return request.app.state.service.list_schedule_status()


@router.get("/queue", response_model=QueueStatus)
async def get_queue(request: Request):
    return request.app.state.service.queue_status()


@router.delete("/queue/{task_id}", status_code=204)
async def cancel_queued_task(request: Request, task_id: str):
    """Cancel a task that has not started yet."""
    try:
        request.app.state.service.cancel_task(task_id)
    except TaskNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.get("/history", response_model=list[ExecutionRecord])
async def get_history(
    request: Request,
    workflow_id: Optional[str] = Query(default=None, alias="workflowId"),
    limit: int = Query(default=50, ge=1, le=1000),
):
    return request.app.state.service.history(workflow_id, limit)


@router.post("/reload", response_model=ReloadResponse)
async def reload_definitions(request: Request):
    """Re-read workflows.yaml and rebuild every schedule."""
    service = request.app.state.service
    try:
        schedules = service.reload()
    except (OSError, ValueError) as exc:
        logger.error("Reload failed: %s", exc)
        raise HTTPException(status_code=400, detail=f"Reload failed: {exc}")
    return ReloadResponse(workflows=len(service.store.list()), schedules=schedules)


@router.get("/builtin-variables", response_model=list[BuiltinVariableInfo])
async def builtin_variables():
    return describe_builtin_variables()
