"""Request/response bodies for the HTTP surface that are not domain types."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from skillflow.types import ActionDefinition, ExecutorInstance, _Model


class RunRequest(BaseModel):
    inputs: dict[str, Any] = Field(default_factory=dict)  # {"url": "https://example.com"}


class ReloadResponse(_Model):
    workflows: int
    schedules: int


class ExecutorResponse(_Model):
    executor: ExecutorInstance
    actions: list[ActionDefinition] = Field(default_factory=list)


class HealthResponse(_Model):
    status: str
    version: str
    workflows: int
    schedules: int
    busy: bool
    current_task: Optional[str] = None
