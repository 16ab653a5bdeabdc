"""skillflow validate: check definition files without running anything."""

from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console

console = Console()


def validate_definitions(
    config_dir: Optional[str] = typer.Option(None, "--config-dir", "-c", help="Directory holding the YAML files"),
):
    """Validate workflows.yaml and executors.yaml.

    Exits with status 1 when any workflow has a hard error.

    Example:
        skillflow validate --config-dir ./config
    """
    from skillflow.capabilities import build_default_registry
    from skillflow.config import config, load_executors_yaml, load_workflows_yaml
    from skillflow.workflows import WorkflowValidator

    directory = config_dir or config.config_dir
    try:
        executors = load_executors_yaml(config_dir=directory)
        workflows = load_workflows_yaml(config_dir=directory)
    except (ValidationError, ValueError, OSError) as exc:
        console.print(f"[red]Could not load definitions:[/red] {exc}")
        raise typer.Exit(1)

    registry = build_default_registry(executors)
    validator = WorkflowValidator(max_steps=config.max_workflow_steps, min_interval_ms=config.min_interval_ms)

    failed = 0
    for wf in workflows:
        problems = validator.validate(wf, registry=registry)
        hard = [p for p in problems if not p.startswith("WARNING:")]
        if hard:
            failed += 1
            console.print(f"[red]✗[/red] [bold]{wf.id}[/bold]")
        else:
            console.print(f"[green]✓[/green] [bold]{wf.id}[/bold]")
        for p in problems:
            style = "yellow" if p.startswith("WARNING:") else "red"
            console.print(f"    [{style}]{p}[/{style}]")

    console.print(
        f"\n{len(workflows)} workflow(s), {len(executors)} executor(s); "
        + (f"[red]{failed} invalid[/red]" if failed else "[green]all valid[/green]")
    )
    if failed:
        raise typer.Exit(1)
