"""Rich console UI for Miow CLI."""

from __future__ import annotations

import json
from typing import List, Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from miow.client.api_client import DebugContext, FileInfo, HealthResponse, ProjectSignature
from miow.stream.events import (
    DoneEvent,
    ErrorEvent,
    EventKind,
    StatusMarker,
    StepEvent,
    StreamRecord,
    TerminalResult,
    ThoughtEvent,
    ToolCallEvent,
    ToolOutputEvent,
)
from miow.stream.history import EventFilter, EventHistory

KIND_ICONS = {
    EventKind.STEP: "📍",
    EventKind.THOUGHT: "💭",
    EventKind.TOOL_CALL: "🔨",
    EventKind.TOOL_OUTPUT: "📤",
    EventKind.ERROR: "❌",
    EventKind.DONE: "✅",
}

# Tool output gets long (file views, search hits)
TOOL_OUTPUT_PREVIEW = 400


class MiowConsole:
    """Rich console for the Miow CLI."""

    def __init__(self, verbose: bool = False, console: Optional[Console] = None):
        self.console = console or Console()
        self.verbose = verbose

    def print_banner(self, version: str, backend_url: str):
        """Print the startup banner."""
        info_text = f"[bold cyan]Miow[/] [dim]v{version}[/] │ {escape(backend_url)}"
        self.console.print(Panel(info_text, style="blue", padding=(0, 1)))

    def thinking(self, message: str = "Working..."):
        """Return a spinner context for a blocking request."""
        return self.console.status(f"[bold cyan]{message}[/]", spinner="dots")

    def print_message(self, message: str, title: str = "Result"):
        """Print a result in a panel with markdown."""
        md = Markdown(message)
        self.console.print(Panel(md, title=f"[bold green]{title}[/]", border_style="green"))

    def print_error(self, error: str, recoverable: bool = True):
        """Print an error message."""
        style = "yellow" if recoverable else "red"
        icon = "⚠" if recoverable else "✗"
        self.console.print(f"[{style}]{icon} {escape(error)}[/{style}]")

    def print_success(self, message: str):
        """Print a success message."""
        self.console.print(f"[green]✓ {escape(message)}[/green]")

    def print_info(self, message: str):
        """Print an info message."""
        self.console.print(f"[blue]ℹ {escape(message)}[/blue]")

    def print_warning(self, message: str):
        """Print a warning message."""
        self.console.print(f"[yellow]⚠ {escape(message)}[/yellow]")

    # =========================================================================
    # Stream rendering
    # =========================================================================

    def print_record(self, record: StreamRecord, event_filter: Optional[EventFilter] = None):
        """Render one classified record.

        Agent events hidden by the filter are not printed; markers and the
        terminal result always are.
        """
        if isinstance(record, StatusMarker):
            self.console.print(f"[dim]… {escape(record.text)}[/dim]")
            return

        if isinstance(record, TerminalResult):
            if record.is_error:
                self.print_error(record.text, recoverable=False)
            else:
                self.console.print(Rule("[bold green]Result[/]", style="green"))
                self.print_message(record.text, title="Generated Prompt")
            return

        if event_filter is not None and not event_filter.accepts(record):
            return

        icon = KIND_ICONS[record.kind]
        if isinstance(record, StepEvent):
            self.console.print(f"\n{icon} [bold]Step {record.step}/{record.max_steps}[/bold]")
        elif isinstance(record, ThoughtEvent):
            self.console.print(f"{icon} [italic]{escape(record.content)}[/italic]")
        elif isinstance(record, ToolCallEvent):
            self.console.print(f"{icon} [cyan]{escape(record.tool)}[/cyan]")
            if self.verbose and record.args:
                args = json.dumps(record.args, indent=2, default=str)
                self.console.print(Syntax(args, "json", theme="monokai", line_numbers=False))
        elif isinstance(record, ToolOutputEvent):
            output = record.output
            if not self.verbose and len(output) > TOOL_OUTPUT_PREVIEW:
                output = output[:TOOL_OUTPUT_PREVIEW] + "\n... (truncated)"
            self.console.print(Panel(Text(output), border_style="dim", title=f"{icon} output"))
        elif isinstance(record, ErrorEvent):
            self.console.print(f"{icon} [red]{escape(record.message)}[/red]")
        elif isinstance(record, DoneEvent):
            self.console.print(f"{icon} [green]Agent finished[/green]")

    def print_history(self, history: EventHistory):
        """Print a per-kind summary of the recorded history."""
        table = Table(title="Recorded events", show_header=True, box=None, padding=(0, 2))
        table.add_column("Kind", style="bold")
        table.add_column("Count", justify="right")
        for kind in EventKind:
            count = len(history.of_kind(kind))
            if count:
                table.add_row(f"{KIND_ICONS[kind]} {kind.value}", str(count))
        table.add_row("[dim]Total[/dim]", f"[dim]{len(history)}[/dim]")
        self.console.print(table)

    # =========================================================================
    # Request/response results
    # =========================================================================

    def print_health(self, health: HealthResponse):
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="dim")
        table.add_column()
        table.add_row("Status", Text(health.status, style="green"))
        table.add_row("Version", Text(health.version) if health.version else "[dim]unknown[/dim]")
        table.add_row("Qdrant", "[green]✓[/]" if health.qdrant_connected else "[yellow]✗[/]")
        table.add_row("Gemini", "[green]✓[/]" if health.gemini_configured else "[yellow]✗[/]")
        self.console.print(table)

    def print_files(self, files: List[FileInfo]):
        """Print relevant files ranked by score."""
        if not files:
            self.print_info("No relevant files found")
            return
        table = Table(show_header=True, header_style="bold")
        table.add_column("Score", justify="right")
        table.add_column("File")
        table.add_column("Symbol")
        table.add_column("Kind", style="dim")
        for f in files:
            table.add_row(f"{f.relevance_score:.2f}", Text(f.file_path), Text(f.symbol_name), Text(f.symbol_kind))
            if self.verbose and f.preview:
                table.add_row("", Text(f.preview[:120], style="dim"), "", "")
        self.console.print(table)

    def print_search_results(self, files: List[str]):
        if not files:
            self.print_info("No matching files")
            return
        for path in files:
            self.console.print(f"  📄 {escape(path)}")

    def print_signature(self, signature: ProjectSignature):
        table = Table(title="Project Signature", show_header=False, box=None, padding=(0, 2))
        table.add_column(style="dim")
        table.add_column()
        for label, value in (
            ("Language", signature.language),
            ("Framework", signature.framework),
            ("Package manager", signature.package_manager),
            ("UI library", signature.ui_library),
            ("Validation", signature.validation_library),
            ("Auth", signature.auth_library),
        ):
            table.add_row(label, Text(value) if value else "[dim]none[/dim]")
        self.console.print(table)
        if signature.description:
            self.console.print(Text(signature.description, style="dim"))

    def print_context(self, context: DebugContext):
        table = Table(title="Index", show_header=False, box=None, padding=(0, 2))
        table.add_column(style="dim")
        table.add_column()
        table.add_row("Files", f"{context.total_files:,}")
        table.add_row("Symbols", f"{context.total_symbols:,}")
        table.add_row("Database", Text(context.db_path))
        table.add_row("Collection", Text(context.collection_name))
        self.console.print(table)
