"""GET /health: liveness plus a summary of the engine's state."""

from fastapi import APIRouter, Request

from skillflow.api.schemas import HealthResponse
from skillflow.version import __version__

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    service = request.app.state.service
    current = service.queue.current_task
    return HealthResponse(
        status="ok",
        version=__version__,
        workflows=len(service.store.list()),
        schedules=service.scheduler.scheduled_count(),
        busy=current is not None,
        current_task=current.workflow_name if current else None,
    )
