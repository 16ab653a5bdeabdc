"""skillflow run: execute one workflow from the command line."""

import asyncio
import json
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from skillflow.types import EventType, ExecutionResult

console = Console()

_STATUS = {
    "ok": "[bold green]✓ ok[/bold green]",
    "skipped": "[dim]- skipped[/dim]",
    "failed": "[bold red]✗ failed[/bold red]",
}


def parse_inputs(pairs: list[str]) -> dict[str, str]:
    """Turn ``key=value`` strings into a dict; the value may itself contain '='."""
    inputs: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected key=value, got {pair!r}", param_hint="--input")
        inputs[key.strip()] = value
    return inputs


def _preview(value, width: int = 60) -> str:
    if value is None:
        return ""
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)
    return text if len(text) <= width else text[: width - 1] + "…"


def _print_result(result: ExecutionResult) -> None:
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold dim", padding=(0, 1))
    table.add_column("Step", style="cyan")
    table.add_column("Status", width=12)
    table.add_column("Time", width=8, justify="right")
    table.add_column("Output / Error")

    for step in result.step_results:
        if step.skipped:
            status, detail = _STATUS["skipped"], ""
        elif step.success:
            status, detail = _STATUS["ok"], f"[dim]{_preview(step.output)}[/dim]"
        else:
            status, detail = _STATUS["failed"], f"[red]{step.error}[/red]"
        table.add_row(step.step_name, status, f"{step.duration}ms", detail)

    color = "green" if result.success else "red"
    title = (
        f"[bold]{result.workflow_id}[/bold]  "
        f"[{color}]{'COMPLETED' if result.success else 'FAILED'}[/{color}]  "
        f"[dim]{result.duration}ms[/dim]"
    )
    console.print(Panel(table, title=title, border_style=color))
    if result.error:
        console.print(f"[red]Error:[/red] {result.error}")
    elif result.final_output is not None:
        console.print("[bold]Final output:[/bold]")
        console.print_json(json.dumps(result.final_output, ensure_ascii=False, default=str))


async def _execute(workflow_id: str, inputs: dict[str, str], config_dir: Optional[str]) -> ExecutionResult:
    from skillflow.config import SkillflowConfig
    from skillflow.service import SkillflowService

    cfg = SkillflowConfig(config_dir=config_dir) if config_dir else SkillflowConfig()
    service = SkillflowService.from_config(cfg)
    result: Optional[ExecutionResult] = None
    try:
        async for event in service.run_now_streaming(workflow_id, inputs):
            if event.type == EventType.STEP_START:
                console.print(f"[blue]▶[/blue] [{event.step_index + 1}/{event.total_steps}] {event.step_name}")
            elif event.is_terminal:
                result = event.result
    finally:
        await service.queue.wait_idle()
        await service.stop()
    if result is None:
        raise RuntimeError("Execution ended without a result")
    return result


def run_workflow(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    input_pairs: list[str] = typer.Option([], "--input", "-i", help="User input as key=value (repeatable)"),
    config_dir: Optional[str] = typer.Option(None, "--config-dir", "-c", help="Directory holding workflows.yaml"),
):
    """Run a workflow once, in-process, and print a step summary.

    Example:
        skillflow run daily-report -i url=https://example.com
    """
    inputs = parse_inputs(input_pairs)
    try:
        result = asyncio.run(_execute(workflow_id, inputs, config_dir))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise typer.Exit(1)
    except Exception as exc:
        console.print(f"\n[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    _print_result(result)
    if not result.success:
        raise typer.Exit(1)
