"""Pydantic models for YAML configuration validation.

Workflow and executor entries validate straight into the runtime types from
skillflow/types.py; these root schemas only describe the file layout.
"""

from pydantic import BaseModel, Field, model_validator

from skillflow.types import ExecutorInstance, WorkflowDefinition


class WorkflowsConfig(BaseModel):
    """Root schema for workflows.yaml.

    Older files list definitions under ``skills:``; both keys are accepted.
    """
    workflows: list[WorkflowDefinition] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_skills_key(cls, data):
        if isinstance(data, dict) and "workflows" not in data and "skills" in data:
            data = {**data, "workflows": data["skills"]}
        return data


class ExecutorsConfig(BaseModel):
    """Root schema for executors.yaml."""
    executors: list[ExecutorInstance] = Field(default_factory=list)
