"""
Brickstore - Main CLI Application

Command-line interface for running and maintaining the service.
"""
import asyncio
import logging
import os
from pathlib import Path
from typing import Dict, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import ConfigLoader
from core.errors import BrickstoreError
from observability import LoggingConfig, setup_logging

# Initialize app
app = typer.Typer(
    name="brickstore",
    help="Brickstore - bricks catalog, cart and order service",
    add_completion=False
)

console = Console()

logger = logging.getLogger("brickstore.cli")

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Settings file (default: application.toml or $BRICKSTORE_CONFIG)",
)


@app.callback()
def configure(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
):
    """Configure logging before any command runs."""
    config = LoggingConfig()
    if log_level:
        config.level = log_level.upper()
    setup_logging(config, force=True)


@app.command()
def serve(
    config: Optional[Path] = ConfigOption,
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Override server host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Override server port"),
):
    """Start the service and serve until SIGINT/SIGTERM."""
    from core.bootstrap import Application, run_application

    overrides: Dict[str, str] = {}
    if host is not None:
        overrides["SERVER_HOST"] = host
    if port is not None:
        overrides["SERVER_PORT"] = str(port)

    loader = _loader(config, overrides)
    console.print("[bold]Starting Brickstore[/bold]")
    try:
        asyncio.run(run_application(Application(config_loader=loader)))
    except BrickstoreError as e:
        _fail(e)
    console.print("[green]Stopped[/green]")


@app.command()
def migrate(config: Optional[Path] = ConfigOption):
    """Upgrade the database schema to the latest revision and exit."""
    from db.migrations import MigrationRunner

    try:
        db_config = _loader(config).load()
        runner = MigrationRunner()
        runner.migrate(db_config)
        revision = runner.current_revision(db_config)
    except BrickstoreError as e:
        _fail(e)
    console.print(f"[green]Schema at revision {revision}[/green]")


@app.command(name="config")
def show_config(config: Optional[Path] = ConfigOption):
    """Show the effective configuration (secrets masked)."""
    try:
        settings = _loader(config).load_app().to_dict()
    except BrickstoreError as e:
        _fail(e)

    table = Table(title="Effective Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for section, values in settings.items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", str(value))
    console.print(table)


def _loader(path: Optional[Path], overrides: Optional[Dict[str, str]] = None) -> ConfigLoader:
    environ = dict(os.environ)
    environ.update(overrides or {})
    return ConfigLoader(path=path, environ=environ)


def _fail(error: BrickstoreError) -> None:
    """Print a startup diagnostic and exit non-zero."""
    lines = [f"[bold red]{error.message}[/bold red]"]
    if error.cause:
        lines.append(f"caused by: {error.cause}")
    for suggestion in error.suggestions:
        lines.append(f"[yellow]- {suggestion}[/yellow]")
    console.print(Panel.fit("\n".join(lines), title=error.error_code, border_style="red"))
    logger.debug(f"Exiting after {type(error).__name__}")
    raise typer.Exit(1)


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
