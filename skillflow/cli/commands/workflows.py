"""skillflow list: show workflow definitions."""

from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

console = Console()


def workflows_list(
    config_dir: Optional[str] = typer.Option(None, "--config-dir", "-c", help="Directory holding workflows.yaml"),
):
    """List workflows with their steps and schedules.

    Example:
        skillflow list
    """
    from skillflow.config import config, load_workflows_yaml

    workflows = load_workflows_yaml(config_dir=config_dir or config.config_dir)
    if not workflows:
        console.print("[dim]No workflows defined.[/dim]")
        return

    table = Table(box=box.ROUNDED, header_style="bold dim", title=f"[bold]Workflows ({len(workflows)})[/bold]")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Steps", justify="right")
    table.add_column("Schedule")
    table.add_column("Enabled", justify="center")

    for wf in workflows:
        schedule = wf.schedule
        if schedule is None or not schedule.has_trigger:
            when = "[dim]manual[/dim]"
        elif schedule.cron:
            when = f"cron {schedule.cron} ({schedule.timezone or config.default_timezone})"
        else:
            when = f"every {schedule.interval}ms"
        if schedule is not None and schedule.has_trigger and not schedule.enabled:
            when = f"[dim]{when} (off)[/dim]"
        table.add_row(
            wf.id,
            wf.name,
            str(len(wf.steps)),
            when,
            "[green]✓[/green]" if wf.enabled else "[red]✗[/red]",
        )

    console.print(table)
