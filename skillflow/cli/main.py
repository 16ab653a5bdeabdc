"""skillflow CLI: Typer application."""

import logging
from typing import Optional

import typer
from rich.console import Console

from skillflow.version import __version__

app = typer.Typer(
    name="skillflow",
    help="skillflow: run multi-step automation workflows on demand or on a schedule.",
    no_args_is_help=True,
    invoke_without_command=True,
)
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", is_eager=True, help="Show version"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (default from config)"),
):
    """skillflow CLI."""
    if version:
        console.print(f"skillflow v{__version__}")
        raise typer.Exit()
    from skillflow.config import config
    logging.basicConfig(level=(log_level or config.log_level).upper(), format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


from skillflow.cli.commands import config, run, serve, validate, workflows  # noqa: E402

app.command(name="run", help="Run a workflow now and print its steps")(run.run_workflow)
app.command(name="list", help="List workflows and their schedules")(workflows.workflows_list)
app.command(name="validate", help="Check workflows.yaml and executors.yaml")(validate.validate_definitions)
app.command(name="serve", help="Start the HTTP API with schedules running")(serve.serve)
app.command(name="config", help="Show resolved configuration")(config.config_show)


if __name__ == "__main__":
    app()
