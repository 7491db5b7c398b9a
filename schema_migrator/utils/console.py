"""
Rich console utilities for dual-mode CLI output.

Provides readable terminal output for humans and structured JSON for automation.
All output functions adapt to the global output_mode setting.

This module provides:
- OutputMode: Class to manage output format (text/json/quiet)
- Context manager: spinner()
- Output functions: success(), error(), warning(), info()
- Display functions: print_banner(), print_migration_report(), print_status_table()

Human Mode (--format text):
    - Rich spinners, colored tables and panels

Agent Mode (--format json):
    - Structured JSON output to stdout
    - No ANSI codes or spinners

Quiet Mode (--quiet):
    - Minimal tab-separated output

Examples:
    >>> from schema_migrator.utils.console import output_mode, spinner, success
    >>> output_mode.format = "text"
    >>> with spinner("Connecting..."):
    ...     db = connect(config.database)
    >>> success("Connected")
"""

from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from schema_migrator.migrations.models import MigrationReport, MigrationStatus


class OutputMode:
    """
    Output mode configuration for dual-mode CLI.

    Attributes:
        format: Output format - "text" (human) or "json" (agent)
        quiet: If True, suppress non-essential output
        _json_buffer: Internal buffer for JSON output in agent mode

    Examples:
        >>> mode = OutputMode()
        >>> mode.is_human()
        True
        >>> mode.format = "json"
        >>> mode.is_agent()
        True
    """

    def __init__(self, format_type: str = "text", quiet: bool = False):
        """
        Raises:
            ValueError: If format_type is not "text" or "json"
        """
        if format_type not in ["text", "json"]:
            raise ValueError(f"Invalid format: {format_type}. Must be 'text' or 'json'")

        self.format = format_type
        self.quiet = quiet
        self._json_buffer: dict[str, Any] = {}

    def is_human(self) -> bool:
        return self.format == "text"

    def is_agent(self) -> bool:
        return self.format == "json"

    def add_json(self, key: str, value: Any) -> None:
        """Add key-value pair to the JSON buffer flushed by flush_json()."""
        self._json_buffer[key] = value

    def flush_json(self) -> None:
        """
        Output buffered JSON to stdout and clear buffer.

        Only outputs in agent mode. In human mode, this is a no-op.
        """
        if self.is_agent() and self._json_buffer:
            json.dump(self._json_buffer, sys.stdout, indent=2)
            sys.stdout.write("\n")
            sys.stdout.flush()
            self._json_buffer.clear()

    def reset(self) -> None:
        """Restore defaults. The CLI calls this at the start of every command."""
        self.format = "text"
        self.quiet = False
        self._json_buffer.clear()


# Global output mode instance (set by CLI flags)
output_mode = OutputMode()

# Global Rich console instances for human mode
console = Console()  # stdout
console_err = Console(stderr=True)  # stderr


@contextmanager
def spinner(message: str):
    """
    Context manager for showing a spinner during operations.

    Displays a Rich spinner with message in human mode.
    Silent in agent/quiet modes.
    """
    if output_mode.is_human() and not output_mode.quiet:
        with console.status(f"[bold blue]{message}", spinner="dots") as status:
            yield status
    else:
        yield None


def success(message: str) -> None:
    """
    Print a success message.

    Human mode: Green checkmark with message
    Agent mode: Buffer to JSON
    Quiet mode: Silent
    """
    if output_mode.is_agent():
        output_mode.add_json("message", message)
    elif not output_mode.quiet:
        console.print(f"[green]✓[/green] {message}")


def error(message: str) -> None:
    """
    Print an error message.

    Human mode: Red X with message to stderr
    Agent mode: Buffer to JSON
    Quiet mode: Plain message to stderr (errors are never silenced)
    """
    if output_mode.is_agent():
        output_mode.add_json("error", message)
    elif output_mode.quiet:
        print(message, file=sys.stderr)
    else:
        console_err.print(f"[red]✗[/red] {message}", style="red")


def warning(message: str) -> None:
    """
    Print a warning message.

    Human mode: Yellow warning symbol with message
    Agent mode: Buffer to JSON
    Quiet mode: Silent
    """
    if output_mode.is_agent():
        output_mode.add_json("warning", message)
    elif not output_mode.quiet:
        console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")


def info(message: str) -> None:
    """
    Print an info message.

    Human mode: Blue info symbol with message
    Agent/Quiet mode: Silent
    """
    if output_mode.is_human() and not output_mode.quiet:
        console.print(f"[blue]ℹ[/blue] {message}")


def print_banner(version: str) -> None:
    """Print a startup banner (human mode only)."""
    if not output_mode.is_human() or output_mode.quiet:
        return

    banner = f"""
[bold cyan]╔{"═" * 39}╗
║   Schema Migrator v{version:<18} ║
║   Sequential SQL schema migrations    ║
╚{"═" * 39}╝[/bold cyan]
"""

    console.print(banner)


def print_migration_report(report: MigrationReport) -> None:
    """
    Print the outcome of a migration run.

    Human mode: Rich panel (green completed, yellow metadata incomplete, red halted)
    Agent mode: Flush all buffered JSON including the report
    Quiet mode: Tab-separated status, applied count, last completed script
    """
    if output_mode.is_agent():
        output_mode.add_json("report", report.to_dict())
        output_mode.flush_json()
        return

    if output_mode.quiet:
        print(
            f"{report.status.value}\t{report.count}\t{report.last_completed or ''}"
        )
        return

    verb = "would be applied" if report.dry_run else "applied"
    lines = [f"[bold]Resume point:[/bold] {report.resume_point or '(none)'}"]

    if report.count > 0:
        lines.append(f"[bold]Migrations {verb}:[/bold] {report.count}")
        for name in report.applied:
            lines.append(f"  • {name}")
        lines.append(f"[bold]Last completed:[/bold] {report.last_completed}")
    else:
        lines.append("No migrations performed")

    if report.skipped:
        lines.append(f"[bold]Already applied:[/bold] {len(report.skipped)}")

    if report.unrecorded:
        lines.append("[bold yellow]Applied but not recorded:[/bold yellow]")
        for name in report.unrecorded:
            lines.append(f"  • {name}")

    if report.halt_reason is not None:
        lines.append(f"[bold red]Halted:[/bold red] {report.halt_reason.value}")
        if report.halted_at:
            lines.append(f"[bold red]At:[/bold red] {report.halted_at}")
        if report.error:
            lines.append(f"[bold red]Error:[/bold red] {report.error}")

    if report.halt_reason is not None:
        border_style = "red"
        title = "[bold red]✗ Migration Run Halted[/bold red]"
    elif report.unrecorded:
        border_style = "yellow"
        title = "[bold yellow]⚠ Migrations Applied, Metadata Incomplete[/bold yellow]"
    else:
        border_style = "green"
        title = "[bold green]✓ Migration Run Completed[/bold green]"

    if report.dry_run:
        title += " [dim](dry run)[/dim]"

    console.print(
        Panel("\n".join(lines), title=title, border_style=border_style, box=box.ROUNDED)
    )


def print_status_table(status: MigrationStatus) -> None:
    """
    Print every discovered script with its state.

    Human mode: Rich table with colored states
    Agent mode: Flush all buffered JSON including the status
    Quiet mode: One "state<TAB>script" line per script
    """
    if output_mode.is_agent():
        output_mode.add_json("status", status.to_dict())
        output_mode.flush_json()
        return

    if output_mode.quiet:
        for script in status.scripts:
            print(f"{script.state.value}\t{script.script_name}")
        return

    table = Table(title="Migration Status", box=box.ROUNDED)
    table.add_column("Script", style="cyan")
    table.add_column("State", justify="center")
    table.add_column("Applied at", style="dim")

    state_styles = {
        "applied": "[green]applied[/green]",
        "pending": "[yellow]pending[/yellow]",
        "blocked": "[red]blocked[/red]",
    }
    for script in status.scripts:
        table.add_row(
            script.script_name,
            state_styles[script.state.value],
            script.applied_at or "",
        )

    console.print(table)
    console.print(f"[bold]Resume point:[/bold] {status.resume_point or '(none)'}")
    if status.invalid_name:
        console_err.print(
            f"[red]✗[/red] Invalid file name blocks later scripts: {status.invalid_name}"
        )
