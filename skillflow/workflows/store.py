"""
WorkflowStore: in-memory set of WorkflowDefinitions loaded from workflows.yaml.

The store is the read side the engine pulls from: ``list`` is the workflow
source callback handed to the scheduler.  Upserts and removals live only in
memory until the next ``reload``.
"""

from __future__ import annotations

import logging
from typing import Optional

from skillflow.config.loader import PathLike, load_workflows_yaml
from skillflow.exceptions import WorkflowNotFound, WorkflowProtected, WorkflowValidationError
from skillflow.types import WorkflowDefinition

from .validator import WorkflowValidator

logger = logging.getLogger(__name__)


def _hard_errors(errors: list[str]) -> list[str]:
    return [e for e in errors if not e.startswith("WARNING:")]


class WorkflowStore:
    """
    Args:
        path:       Explicit workflows.yaml path.
        config_dir: Directory searched for workflows.yaml when no path is given.
        validator:  WorkflowValidator; a default instance is created if not supplied.
        workflows:  Initial definitions; when given, nothing is read from disk
                    until ``reload`` is called.
    """

    def __init__(
        self,
        path: Optional[PathLike] = None,
        config_dir: Optional[PathLike] = None,
        validator: Optional[WorkflowValidator] = None,
        workflows: Optional[list[WorkflowDefinition]] = None,
    ) -> None:
        self._path = path
        self._config_dir = config_dir
        self._validator = validator or WorkflowValidator()
        self._workflows: dict[str, WorkflowDefinition] = {}
        if workflows is not None:
            for wf in workflows:
                self.upsert(wf)
        else:
            self.reload()

    def reload(self) -> list[WorkflowDefinition]:
        """Re-read workflows.yaml, replacing every in-memory definition.

        Definitions with hard validation errors are logged and left out.
        """
        loaded: dict[str, WorkflowDefinition] = {}
        for wf in load_workflows_yaml(self._path, self._config_dir):
            problems = self._validator.validate(wf)
            hard = _hard_errors(problems)
            if hard:
                logger.error("Skipping invalid workflow %s: %s", wf.id, "; ".join(hard))
                continue
            for warning in problems:
                logger.warning("Workflow %s: %s", wf.id, warning)
            if wf.id in loaded:
                logger.warning("Duplicate workflow id %s; the later definition wins", wf.id)
            loaded[wf.id] = wf
        self._workflows = loaded
        return self.list()

    def list(self) -> list[WorkflowDefinition]:
        return list(self._workflows.values())

    def get(self, workflow_id: str) -> WorkflowDefinition:
        wf = self._workflows.get(workflow_id)
        if wf is None:
            raise WorkflowNotFound(f"Workflow '{workflow_id}' not found", workflow_id=workflow_id)
        return wf

    def find(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        return self._workflows.get(workflow_id)

    def upsert(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        """Insert or replace a definition after validating it.

        Raises:
            WorkflowValidationError: if the definition has hard errors.
        """
        hard = _hard_errors(self._validator.validate(workflow))
        if hard:
            raise WorkflowValidationError(f"Invalid workflow '{workflow.id}'", violations=hard)
        self._workflows[workflow.id] = workflow
        return workflow

    def remove(self, workflow_id: str) -> WorkflowDefinition:
        """Remove and return a definition.

        Raises:
            WorkflowNotFound: unknown id.
            WorkflowProtected: the workflow is reserved.
        """
        wf = self.get(workflow_id)
        if wf.reserved:
            raise WorkflowProtected(
                f"Workflow '{workflow_id}' is reserved and cannot be removed", workflow_id=workflow_id
            )
        del self._workflows[workflow_id]
        return wf
