"""
CLI entrypoint for Schema Migrator.

Provides a dual-mode command-line interface with:
- Human-friendly output: Rich spinners, tables, panels, colored text
- Agent-friendly output: Structured JSON for automation
- Quiet mode: Tab-separated minimal output for shell scripts

Commands:
    migrate: Apply pending migration scripts
    status: Show applied, pending and blocked scripts
    validate: Validate configuration without touching the database

Exit codes:
    0: Success (including "no migrations performed")
    1: Configuration error (invalid YAML, missing DATABASE_URL)
    2: Database error (cannot connect, cannot create bookkeeping table)
    3: Run halted (invalid filename, failed script, lock held, unreadable metadata)
    4: Migrations applied but some could not be recorded in the bookkeeping table

Examples:
    # Apply pending migrations
    schema-migrator migrate --config migrator.config.yaml

    # See what would run
    schema-migrator migrate --config migrator.config.yaml --dry-run

    # JSON output for CI pipelines
    schema-migrator migrate --config migrator.config.yaml --format json

Security:
    - The database DSN is loaded from environment variables only
    - Errors may contain file paths but never the DSN password
"""

from pathlib import Path
from typing import NoReturn

import typer
from rich.traceback import install as install_rich_traceback

from schema_migrator.config.loader import load_config
from schema_migrator.config.schema import RuntimeConfig
from schema_migrator.exceptions import (
    ConfigurationError,
    DatabaseConnectionError,
    DatabaseError,
    DiscoveryError,
    MetadataReadError,
    MetadataTableError,
)
from schema_migrator.migrations.models import RunStatus
from schema_migrator.migrations.orchestrator import MigrationOrchestrator
from schema_migrator.storage.db import Database, connect
from schema_migrator.utils.console import (
    error,
    info,
    output_mode,
    print_banner,
    print_migration_report,
    print_status_table,
    spinner,
    success,
    warning,
)
from schema_migrator.utils.logging import setup_logging

# Install Rich tracebacks for better error messages
install_rich_traceback(show_locals=False)

# Exit codes
EXIT_SUCCESS = 0  # Run completed (possibly with nothing to do)
EXIT_CONFIG_ERROR = 1  # Config validation failed
EXIT_DB_ERROR = 2  # Connection or bookkeeping table failure
EXIT_HALTED = 3  # Run stopped before the end of the script list
EXIT_METADATA_INCOMPLETE = 4  # Applied scripts missing bookkeeping rows

# Create Typer app
app = typer.Typer(
    name="schema-migrator",
    help="Apply SQL migration scripts in order and track them in the database",
    add_completion=False,
)


def _set_output_mode(format: str, quiet: bool = False) -> None:
    output_mode.reset()
    if format not in ("text", "json"):
        error(f"Invalid format: {format}. Must be 'text' or 'json'")
        raise typer.Exit(EXIT_CONFIG_ERROR)
    output_mode.format = format
    output_mode.quiet = quiet


def _fail(message: str, exit_code: int) -> NoReturn:
    """Report an error in the current output mode and exit."""
    error(message)
    output_mode.flush_json()
    raise typer.Exit(exit_code)


def _load_runtime_config(config: Path) -> RuntimeConfig:
    try:
        with spinner("Loading configuration..."):
            runtime_config = load_config(config)
    except ConfigurationError as e:
        _fail(f"Configuration error: {e}", EXIT_CONFIG_ERROR)

    success(f"Loaded configuration: {config}")
    return runtime_config


def _open_database(runtime_config: RuntimeConfig) -> Database:
    try:
        with spinner("Connecting to database..."):
            db = connect(runtime_config.database)
    except DatabaseConnectionError as e:
        _fail(f"Database connection failed: {e}", EXIT_DB_ERROR)

    success(f"Connected: {runtime_config.database.display_name}")
    return db


def exit_code_for(status: RunStatus) -> int:
    """Map a run outcome to the process exit code."""
    if status == RunStatus.HALTED:
        return EXIT_HALTED
    if status == RunStatus.METADATA_INCOMPLETE:
        return EXIT_METADATA_INCOMPLETE
    return EXIT_SUCCESS


@app.command()
def migrate(
    config: Path = typer.Option(
        ...,
        "--config",
        "-c",
        help="Path to YAML configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show which scripts would be applied without running them",
    ),
    format: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: 'text' (human-friendly) or 'json' (machine-readable)",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Minimal output (tab-separated values)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
):
    """
    Apply pending migration scripts in order.

    Scripts sorting after the last recorded one are run one at a time, each
    in its own transaction. The run stops at the first invalid filename or
    failing script; scripts applied before that stay committed.

    Exit codes:
      0: Completed (or nothing to do)
      1: Configuration error
      2: Database error
      3: Run halted
      4: Applied but not fully recorded

    Examples:
      schema-migrator migrate --config migrator.config.yaml
      schema-migrator migrate --config migrator.config.yaml --dry-run
      schema-migrator migrate --config migrator.config.yaml --format json
    """
    _set_output_mode(format, quiet)

    # Suppress JSON logs in human mode (unless verbose=True)
    setup_logging(verbose=verbose, quiet_logs=output_mode.is_human())

    print_banner(_read_version())

    runtime_config = _load_runtime_config(config)
    if not runtime_config.lock.enabled:
        warning(
            "Run lock disabled: concurrent runs against this database are not prevented"
        )

    with _open_database(runtime_config) as db:
        orchestrator = MigrationOrchestrator.from_config(db, runtime_config)
        try:
            with spinner("Planning migrations..." if dry_run else "Applying migrations..."):
                report = orchestrator.run(dry_run=dry_run)
        except MetadataTableError as e:
            _fail(f"Cannot create bookkeeping table: {e}", EXIT_DB_ERROR)
        except DatabaseError as e:
            _fail(f"Database error: {e}", EXIT_DB_ERROR)

    print_migration_report(report)
    raise typer.Exit(exit_code_for(report.status))


@app.command()
def status(
    config: Path = typer.Option(
        ...,
        "--config",
        "-c",
        help="Path to YAML configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    format: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: 'text' or 'json'",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Minimal output (tab-separated values)",
    ),
):
    """
    Show which scripts are applied, pending, or blocked by an invalid filename.

    Nothing is executed. The bookkeeping table is created if it is missing.

    Exit codes:
      0: Status shown, no invalid filenames
      1: Configuration error
      2: Database error
      3: An invalid filename blocks later scripts, or scripts can't be listed
    """
    _set_output_mode(format, quiet)
    setup_logging(quiet_logs=True)

    runtime_config = _load_runtime_config(config)

    with _open_database(runtime_config) as db:
        orchestrator = MigrationOrchestrator(db, runtime_config.migrations)
        try:
            with spinner("Reading migration status..."):
                migration_status = orchestrator.status()
        except DiscoveryError as e:
            _fail(f"Cannot list migration scripts: {e}", EXIT_HALTED)
        except MetadataReadError as e:
            _fail(f"Cannot read bookkeeping table: {e}", EXIT_DB_ERROR)
        except DatabaseError as e:
            _fail(f"Database error: {e}", EXIT_DB_ERROR)

    print_status_table(migration_status)
    raise typer.Exit(EXIT_HALTED if migration_status.invalid_name else EXIT_SUCCESS)


@app.command()
def validate(
    config: Path = typer.Option(
        ...,
        "--config",
        "-c",
        help="Path to YAML configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    format: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: 'text' or 'json'",
    ),
):
    """
    Validate configuration file without connecting to the database.

    Checks:
    - YAML syntax is valid
    - All fields pass validation rules
    - The DSN environment variable is set (PostgreSQL)

    Exit codes:
      0: Configuration is valid
      1: Configuration is invalid
    """
    _set_output_mode(format)

    try:
        with spinner("Validating configuration..."):
            runtime_config = load_config(config)
    except ConfigurationError as e:
        if output_mode.is_agent():
            output_mode.add_json("valid", False)
            output_mode.add_json("error_type", type(e).__name__)
        _fail(f"Validation failed: {e}", EXIT_CONFIG_ERROR)

    success("Configuration is valid")
    info(f"Database: {runtime_config.database.display_name}")
    info(f"Scripts: {runtime_config.migrations.root}/{runtime_config.migrations.scripts_glob}")
    info(f"Bookkeeping table: {runtime_config.migrations.table_name}")
    info(f"Run lock: {'enabled' if runtime_config.lock.enabled else 'disabled'}")

    if output_mode.is_agent():
        output_mode.add_json("valid", True)
        output_mode.add_json("driver", runtime_config.database.driver)
        output_mode.add_json("scripts_glob", runtime_config.migrations.scripts_glob)
        output_mode.add_json("table_name", runtime_config.migrations.table_name)
        output_mode.add_json("lock_enabled", runtime_config.lock.enabled)
        output_mode.flush_json()

    raise typer.Exit(EXIT_SUCCESS)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
    ),
):
    """
    Schema Migrator - apply SQL migration scripts in order.

    Use 'schema-migrator COMMAND --help' for detailed command documentation.
    """
    if version:
        from rich.console import Console

        Console().print(
            f"[bold cyan]schema-migrator[/bold cyan] version {_read_version()}"
        )
        raise typer.Exit(EXIT_SUCCESS)

    if ctx.invoked_subcommand is None:
        from rich.console import Console

        console = Console()
        console.print("[yellow]Use --help to see available commands[/yellow]")
        console.print()
        console.print("Commands:")
        console.print("  migrate   Apply pending migration scripts")
        console.print("  status    Show applied, pending and blocked scripts")
        console.print("  validate  Validate configuration without connecting")


def _read_version() -> str:
    """Read version from package metadata (pyproject.toml)."""
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("schema-migrator")
    except PackageNotFoundError:
        return "0.1.0"


if __name__ == "__main__":
    app()
