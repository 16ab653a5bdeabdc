"""Load and validate workflows.yaml / executors.yaml into Python objects.

Resolution order for each file:
  1. Path passed explicitly by caller (must exist)
  2. <config_dir>/<name> (config_dir defaults to ./config)
  3. Nothing found → empty list; a fresh install simply has no definitions yet
"""

import logging
from pathlib import Path
from typing import Optional, Union

import yaml

from skillflow.config.schema import ExecutorsConfig, WorkflowsConfig
from skillflow.types import ExecutorInstance, WorkflowDefinition

logger = logging.getLogger(__name__)

WORKFLOWS_FILE = "workflows.yaml"
EXECUTORS_FILE = "executors.yaml"

PathLike = Union[str, Path]


def _find_file(name: str, explicit: Optional[PathLike], config_dir: Optional[PathLike]) -> Optional[Path]:
    """Locate config file: explicit > config_dir. Returns None when absent."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise FileNotFoundError(f"Config file not found: {p}")
        return p

    candidate = Path(config_dir or "./config") / name
    if candidate.exists():
        return candidate
    return None


def _read_yaml(path: Path) -> dict:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"{path}: invalid YAML: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: expected a mapping at the top level, got {type(raw).__name__}")
    return raw


def load_workflows_yaml(
    path: Optional[PathLike] = None,
    config_dir: Optional[PathLike] = None,
) -> list[WorkflowDefinition]:
    """Load workflows.yaml → list of WorkflowDefinition objects.

    Args:
        path: Explicit path to the file. If None, looks in config_dir.
        config_dir: Directory searched when no explicit path is given.

    Returns:
        List of validated WorkflowDefinition instances, in file order.
    """
    resolved = _find_file(WORKFLOWS_FILE, path, config_dir)
    if resolved is None:
        logger.info("No %s found in %s; starting with no workflows", WORKFLOWS_FILE, config_dir or "./config")
        return []
    parsed = WorkflowsConfig.model_validate(_read_yaml(resolved))
    logger.info("Loaded %d workflows from %s", len(parsed.workflows), resolved)
    return parsed.workflows


def load_executors_yaml(
    path: Optional[PathLike] = None,
    config_dir: Optional[PathLike] = None,
) -> list[ExecutorInstance]:
    """Load executors.yaml → list of ExecutorInstance objects."""
    resolved = _find_file(EXECUTORS_FILE, path, config_dir)
    if resolved is None:
        return []
    parsed = ExecutorsConfig.model_validate(_read_yaml(resolved))
    logger.info("Loaded %d executors from %s", len(parsed.executors), resolved)
    return parsed.executors
