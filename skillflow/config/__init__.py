"""Application configuration + declarative YAML config loader for skillflow.

All env vars defined here with SKILLFLOW_ prefix.
YAML loaders: load_workflows_yaml(), load_executors_yaml()
"""

from typing import Literal

from pydantic_settings import BaseSettings

from skillflow.config.loader import load_executors_yaml, load_workflows_yaml
from skillflow.config.schema import ExecutorsConfig, WorkflowsConfig


class SkillflowConfig(BaseSettings):
    # ── App ──
    app_name: str = "skillflow"
    debug: bool = False
    log_level: str = "INFO"

    # ── Server ──
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:5173"]  # dashboard dev server

    # ── Definitions ──
    config_dir: str = "./config"                     # holds workflows.yaml / executors.yaml

    # ── Scheduling ──
    default_timezone: str = "Asia/Shanghai"          # cron timezone when a schedule names none
    min_interval_ms: int = 1000

    # ── History ──
    execution_history_size: int = 100
    recent_tasks_size: int = 10

    # ── Execution ──
    condition_failure_policy: Literal["run", "skip", "fail"] = "run"
    max_workflow_steps: int = 50
    executor_timeout_seconds: float = 30.0
    health_timeout_seconds: float = 5.0
    stream_timeout_seconds: float = 600.0

    model_config = {"env_prefix": "SKILLFLOW_", "env_file": ".env", "extra": "ignore"}


config = SkillflowConfig()


__all__ = [
    "SkillflowConfig",
    "config",
    "load_workflows_yaml",
    "load_executors_yaml",
    "WorkflowsConfig",
    "ExecutorsConfig",
]
