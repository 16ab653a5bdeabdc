"""Executor listing and on-demand health probes."""

from fastapi import APIRouter, HTTPException, Request

from skillflow.api.schemas import ExecutorResponse
from skillflow.exceptions import CapabilityNotFound
from skillflow.types import HealthResult

router = APIRouter(tags=["executors"])


@router.get("/executors", response_model=list[ExecutorResponse])
async def list_executors(request: Request):
    registry = request.app.state.service.registry
    return [
        ExecutorResponse(executor=instance, actions=registry.actions_for(instance.name))
        for instance in registry.list_instances()
    ]


@router.post("/executors/{name}/check", response_model=HealthResult)
async def check_executor(request: Request, name: str):
    try:
        return await request.app.state.service.registry.check_health(name)
    except CapabilityNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
