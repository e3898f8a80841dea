"""
Miow CLI - stream the autonomous code agent from the terminal.

The backend indexes the codebase and runs the agent; the CLI streams its
events, records the ones you care about and lets you pause or stop.

Usage:
    miow health                                   # Check backend
    miow generate ./project "add a settings page" # Stream the agent
    miow generate ./project "..." -f Step,ToolCall
    miow files ./project "where is auth handled"  # Relevant files
    miow debug ./project                          # Signature + index stats
"""
from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.logging import RichHandler
from rich.markup import escape

from miow import __version__
from miow.client import MiowAPIClient
from miow.core.config import get_api_base_url, get_timeout, load_config, save_config
from miow.core.status import show_status
from miow.errors import MiowAPIError, MiowConnectionError, SourceError
from miow.stream.history import EventFilter
from miow.stream.session import SessionControls, SessionState, StreamSession
from miow.ui import KeyboardMonitor, MiowConsole
from miow.ui.keyboard import create_keyboard_hints

logger = logging.getLogger(__name__)

# Global console instance
console: Optional[MiowConsole] = None

EXIT_FAILED = 1
EXIT_STOPPED = 130


def get_console(verbose: bool = False) -> MiowConsole:
    """Get or create console instance."""
    global console
    if console is None:
        console = MiowConsole(verbose=verbose)
    console.verbose = console.verbose or verbose
    return console


def configure_logging(verbose: bool = False):
    """Route library logging through rich; DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def make_client(event_filter: Optional[EventFilter] = None) -> MiowAPIClient:
    config = load_config()
    return MiowAPIClient(
        get_api_base_url(config),
        timeout=get_timeout(config),
        event_filter=event_filter,
    )


def _resolve_path(codebase_path: str) -> str:
    return str(Path(codebase_path).resolve())


def _run_request(ui: MiowConsole, message: str, coro):
    """Run one request/response call, exiting on backend errors."""
    try:
        with ui.thinking(message):
            return asyncio.run(coro)
    except MiowConnectionError as e:
        ui.print_error(str(e), recoverable=False)
        sys.exit(EXIT_FAILED)
    except MiowAPIError as e:
        ui.print_error(str(e), recoverable=False)
        sys.exit(EXIT_FAILED)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="Miow")
@click.pass_context
def cli(ctx):
    """
    Miow - Autonomous code agent client.

    Quick start:
        miow config --backend-url http://localhost:3000
        miow health
        miow generate ./my-project "add input validation to the signup form"
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.option("--backend-url", "-u", help="Set the backend URL")
@click.option("--timeout", "-t", type=float, help="Set the request/stream timeout in seconds")
@click.option("--project", is_flag=True, help="Save to ./.miow/client.json instead of ~/.miow")
@click.option("--show", is_flag=True, help="Show current configuration")
def config(backend_url: Optional[str], timeout: Optional[float], project: bool, show: bool):
    """
    Configure Miow settings.

        miow config --backend-url http://localhost:3000
        miow config --show
    """
    ui = get_console()
    current = load_config()

    if show:
        ui.console.print("\n[bold]Miow Configuration[/]")
        ui.console.print("─" * 50)
        ui.console.print(f"Backend URL:   {escape(get_api_base_url(current))}")
        ui.console.print(f"Timeout:       {get_timeout(current):g}s")
        ui.console.print()
        return

    if backend_url is None and timeout is None:
        ui.print_info("No configuration changes made. Use --help to see options.")
        return

    updates = {}
    if backend_url:
        if not backend_url.startswith(("http://", "https://")):
            ui.print_warning("Backend URL usually starts with http:// or https://")
        updates["backend_url"] = backend_url.rstrip("/")
    if timeout is not None:
        if timeout <= 0:
            raise click.BadParameter("must be positive", param_hint="--timeout")
        updates["timeout"] = timeout

    save_config({**current, **updates}, project_level=project)
    for key, value in updates.items():
        ui.print_success(f"{key} set to: {value}")


@cli.command()
def health():
    """Check backend health."""
    ui = get_console()
    client = make_client()
    result = _run_request(ui, "Checking backend...", client.health())
    ui.print_health(result)
    if not result.ready_for_generation:
        ui.print_warning("Gemini is not configured on the backend; generation will not start.")


@cli.command()
def status():
    """Show Miow configuration and backend status."""
    client = make_client()
    try:
        result = asyncio.run(client.health())
    except (MiowConnectionError, MiowAPIError) as e:
        show_status(health_error=str(e), out=get_console().console)
        return
    show_status(health=result, out=get_console().console)


@cli.command()
@click.argument("codebase_path", type=click.Path(exists=True, file_okay=False))
@click.argument("prompt")
@click.option("--verbose", "-v", is_flag=True, help="Show previews")
def files(codebase_path: str, prompt: str, verbose: bool):
    """List files relevant to PROMPT in CODEBASE_PATH."""
    ui = get_console(verbose)
    client = make_client()
    result = _run_request(
        ui, "Ranking files...", client.relevant_files(_resolve_path(codebase_path), prompt)
    )
    if not result.success:
        ui.print_error(result.error or "Failed to load relevant files", recoverable=False)
        sys.exit(EXIT_FAILED)
    ui.print_files(result.files)


@cli.command()
@click.argument("codebase_path", type=click.Path(exists=True, file_okay=False))
@click.argument("query")
def search(codebase_path: str, query: str):
    """Search CODEBASE_PATH for files matching QUERY."""
    ui = get_console()
    client = make_client()
    result = _run_request(ui, "Searching...", client.search_files(_resolve_path(codebase_path), query))
    if not result.success:
        ui.print_error(result.error or "Search failed", recoverable=False)
        sys.exit(EXIT_FAILED)
    ui.print_search_results(result.files or [])


@cli.command()
@click.argument("codebase_path", type=click.Path(exists=True, file_okay=False))
def debug(codebase_path: str):
    """Show the project signature and index statistics."""
    ui = get_console()
    client = make_client()
    path = _resolve_path(codebase_path)

    signature = _run_request(ui, "Detecting signature...", client.signature(path))
    if signature.success and signature.signature:
        ui.print_signature(signature.signature)
    else:
        ui.print_warning(signature.error or "No signature available")

    context = _run_request(ui, "Loading index stats...", client.context(path))
    if context.success and context.context:
        ui.print_context(context.context)
    else:
        ui.print_warning(context.error or "No index context available")


@cli.command()
@click.argument("codebase_path", type=click.Path(exists=True, file_okay=False))
@click.argument("prompt")
@click.option("--filter", "-f", "kinds", help="Event kinds to record, e.g. Step,Thought,ToolCall")
@click.option("--with-files", "-w", multiple=True, help="Restrict the agent to these files (no streaming)")
@click.option("--no-stream", is_flag=True, help="Wait for the final result instead of streaming")
@click.option("--skip-health-check", is_flag=True, help="Start even if the backend reports it is unconfigured")
@click.option("--no-keys", is_flag=True, help="Disable ESC/SPACE stream controls")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def generate(
    codebase_path: str,
    prompt: str,
    kinds: Optional[str],
    with_files: Tuple[str, ...],
    no_stream: bool,
    skip_health_check: bool,
    no_keys: bool,
    verbose: bool,
):
    """
    Run the agent on CODEBASE_PATH with PROMPT.

    Streams the agent's steps, thoughts and tool calls. Press SPACE to
    pause/resume and ESC to stop.

    Examples:
        miow generate . "add dark mode"
        miow generate . "fix the login bug" --filter Step,ToolCall
        miow generate . "document the API" -w src/api.py --no-stream
    """
    ui = get_console(verbose)
    configure_logging(verbose)

    try:
        event_filter = EventFilter.parse(kinds)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--filter")

    client = make_client(event_filter)
    path = _resolve_path(codebase_path)
    ui.print_banner(__version__, client.base_url)

    if not skip_health_check:
        result = _run_request(ui, "Checking backend...", client.health())
        if not result.ready_for_generation:
            ui.print_error("Backend is not configured for generation (Gemini missing).", recoverable=False)
            ui.console.print("Use [cyan]--skip-health-check[/] to try anyway.")
            sys.exit(EXIT_FAILED)

    if no_stream or with_files:
        response = _run_request(
            ui, "Agent is working...", client.generate(path, prompt, list(with_files) or None)
        )
        if not response.success:
            ui.print_error(response.error or "Generation failed", recoverable=False)
            sys.exit(EXIT_FAILED)
        ui.print_message(response.result or "", title="Generated Prompt")
        return

    try:
        session = asyncio.run(stream_generation(client, path, prompt, ui, keyboard=not no_keys))
    except KeyboardInterrupt:
        ui.console.print("\n[yellow]Interrupted[/]")
        sys.exit(EXIT_STOPPED)

    if verbose:
        ui.print_history(session.history)

    if session.state is SessionState.STOPPED:
        ui.print_warning(session.status)
        sys.exit(EXIT_STOPPED)
    if session.state is SessionState.FAILED:
        sys.exit(EXIT_FAILED)
    if session.result is None:
        ui.print_warning("Stream ended without a result")


async def stream_generation(
    client: MiowAPIClient,
    codebase_path: str,
    prompt: str,
    ui: MiowConsole,
    keyboard: bool = True,
) -> StreamSession:
    """Stream one generation session, rendering records as they arrive."""
    session = client.create_session(codebase_path, prompt)

    monitor: Optional[KeyboardMonitor] = None
    if keyboard:
        controls = SessionControls(session, asyncio.get_running_loop())
        monitor = KeyboardMonitor(controls, on_status=ui.console.print)
        ui.console.print(create_keyboard_hints())

    spinner = ui.console.status(f"[bold cyan]{session.status}[/]", spinner="dots")

    def on_record(record):
        ui.print_record(record, session.event_filter)
        label = session.status if session.state is not SessionState.PAUSED else f"Paused - {session.status}"
        spinner.update(f"[bold cyan]{escape(label[:100])}[/]")

    spinner.start()
    if monitor:
        monitor.start()
    try:
        await session.run(on_record)
    except SourceError as e:
        ui.print_error(str(e), recoverable=False)
    finally:
        if monitor:
            monitor.stop()
        spinner.stop()
        if session.state.is_active:
            await session.stop()

    logger.debug(f"Session ended: {session.state.value}, {len(session.history)} event(s) recorded")
    return session


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
