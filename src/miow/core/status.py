"""Miow status display."""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from miow.client.api_client import HealthResponse
from miow.core.config import (
    get_api_base_url,
    get_config_path,
    get_project_config_path,
    get_timeout,
    load_config,
)

console = Console()


def show_status(
    health: Optional[HealthResponse] = None,
    health_error: Optional[str] = None,
    out: Optional[Console] = None,
):
    """Display current Miow configuration and backend health.

    Args:
        health: Result of the health check, if it succeeded
        health_error: Error message if the health check failed
        out: Console to print to (defaults to the module console)
    """
    out = out or console
    out.print("\n[bold cyan]Miow Status[/bold cyan]\n")

    config_path = get_config_path()
    project_config_path = get_project_config_path()
    config = load_config()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value")

    # Global config
    if config_path.exists():
        table.add_row("Global config", f"[green]✓[/green] {config_path}")
    else:
        table.add_row("Global config", "[yellow]Not configured[/yellow]")

    # Project config
    if project_config_path:
        table.add_row("Project config", f"[green]✓[/green] {project_config_path}")
    else:
        table.add_row("Project config", "[dim]None[/dim]")

    table.add_row("Backend", Text(get_api_base_url(config)))
    table.add_row("Timeout", f"{get_timeout(config):g}s")

    table.add_row("", "")  # Spacer
    if health is None:
        table.add_row("Backend health", f"[red]✗[/red] {escape(health_error or 'unknown')}")
    else:
        table.add_row("Backend health", f"[green]✓[/green] {escape(health.status)} (v{escape(health.version)})")
        table.add_row("Qdrant", _flag(health.qdrant_connected, "connected", "not connected"))
        table.add_row("Gemini", _flag(health.gemini_configured, "configured", "not configured"))

    out.print(table)
    out.print()


def _flag(value: bool, yes: str, no: str) -> str:
    return f"[green]✓[/green] {yes}" if value else f"[yellow]✗ {no}[/yellow]"
