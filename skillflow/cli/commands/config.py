"""skillflow config: print the settings the service would start with."""

import json
import os

import typer
from rich.console import Console
from rich.table import Table

console = Console()

_GROUPS = {
    "Service": ("app_name", "debug", "log_level", "host", "port", "cors_origins"),
    "Definitions": ("config_dir", "max_workflow_steps"),
    "Timers": ("default_timezone", "min_interval_ms"),
    "Bounds": ("execution_history_size", "recent_tasks_size"),
    "Executors": (
        "condition_failure_policy",
        "executor_timeout_seconds",
        "health_timeout_seconds",
        "stream_timeout_seconds",
    ),
}


def _env_name(field: str) -> str:
    return f"SKILLFLOW_{field.upper()}"


def config_show(
    as_json: bool = typer.Option(False, "--json", help="Print the settings as a JSON object"),
):
    """Show every SKILLFLOW_* setting, its value and where the value came from.

    Example:
        skillflow config --json
    """
    from skillflow.config import SkillflowConfig
    settings = SkillflowConfig()
    values = settings.model_dump(mode="json")

    if as_json:
        typer.echo(json.dumps(values, indent=2, sort_keys=True))
        return

    table = Table(title="skillflow settings", header_style="bold")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_column("Source", style="dim")

    for group, fields in _GROUPS.items():
        table.add_section()
        table.add_row(f"[bold]{group}[/bold]", "", "")
        for field in fields:
            env = _env_name(field)
            source = env if env in os.environ else "default / .env"
            table.add_row(field, str(values.get(field)), source)

    console.print(table)
