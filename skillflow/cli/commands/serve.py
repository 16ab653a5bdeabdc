"""skillflow serve: start the API server with schedules running."""

import typer
from rich.console import Console

console = Console()


def serve(
    host: str = typer.Option(None, help="Host to bind to (default from config)"),
    port: int = typer.Option(None, help="Port to listen on (default from config)"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Start the skillflow API server."""
    import uvicorn

    from skillflow.config import config

    host = host or config.host
    port = port or config.port
    console.print(f"[green]Starting skillflow on {host}:{port}[/green]")
    uvicorn.run("skillflow.api.main:app", host=host, port=port, reload=reload, log_level=config.log_level.lower())
