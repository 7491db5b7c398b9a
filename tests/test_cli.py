"""
Tests for CLI module - commands, output modes and exit codes.

Commands:
    - migrate: Apply pending scripts (text/json/quiet, --dry-run, --verbose)
    - status: Applied/pending/blocked listing
    - validate: Config validation command
    - main callback: Version flag and help output

Exit Codes:
    - 0: Success
    - 1: Configuration error
    - 2: Database error
    - 3: Run halted
    - 4: Applied but metadata incomplete

Every test runs against a real SQLite database in tmp_path.
"""

import json
import sqlite3
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from schema_migrator.cli import (
    EXIT_CONFIG_ERROR,
    EXIT_DB_ERROR,
    EXIT_HALTED,
    EXIT_METADATA_INCOMPLETE,
    EXIT_SUCCESS,
    app,
    exit_code_for,
)
from schema_migrator.migrations.models import RunStatus

INIT = "migrations/scripts/00000000000000000001_init.sql"
USERS = "migrations/scripts/00000000000000000002_users.sql"
ORDERS = "migrations/scripts/00000000000000000003_orders.sql"

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def cli_runner():
    """Return CliRunner for testing Typer apps."""
    return CliRunner()


@pytest.fixture(autouse=True)
def mock_setup_logging():
    """Keep JSON logs off the captured output and pytest's handlers in place."""
    with patch("schema_migrator.cli.setup_logging") as mock:
        yield mock


@pytest.fixture(autouse=True)
def reset_output_mode():
    """Reset global output_mode after each test."""
    from schema_migrator.utils.console import output_mode

    yield
    output_mode.reset()


@pytest.fixture
def project_root(tmp_path):
    root = tmp_path / "project"
    (root / "migrations" / "scripts").mkdir(parents=True)
    return root


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "data" / "app.db"


@pytest.fixture
def write_script(project_root):
    def _write(identifier, sql):
        (project_root / identifier).write_text(sql, encoding="utf-8")

    return _write


@pytest.fixture
def three_scripts(write_script):
    write_script(INIT, "CREATE TABLE accounts (id INTEGER PRIMARY KEY);")
    write_script(USERS, "CREATE TABLE users (id INTEGER PRIMARY KEY);")
    write_script(ORDERS, "CREATE TABLE orders (id INTEGER PRIMARY KEY);")


@pytest.fixture
def config_file(tmp_path, project_root, db_path):
    """Valid SQLite config pointing at project_root."""
    config_data = {
        "database": {"driver": "sqlite", "path": str(db_path)},
        "migrations": {"root": str(project_root)},
    }
    path = tmp_path / "migrator.config.yaml"
    with path.open("w", encoding="utf-8") as f:
        yaml.dump(config_data, f)
    return path


@pytest.fixture
def invalid_config_yaml(tmp_path):
    path = tmp_path / "invalid.yaml"
    path.write_text("database: [unclosed", encoding="utf-8")
    return path


def user_tables(db_path):
    conn = sqlite3.connect(db_path)
    try:
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name NOT LIKE 'migrations_%' ORDER BY name"
        ).fetchall()
    finally:
        conn.close()
    return [row[0] for row in rows]


# ============================================================================
# migrate
# ============================================================================


class TestMigrateCommand:
    """Test 'migrate' command."""

    def test_applies_all_scripts_json(self, cli_runner, config_file, db_path, three_scripts):
        result = cli_runner.invoke(
            app, ["migrate", "--config", str(config_file), "--format", "json"]
        )

        assert result.exit_code == EXIT_SUCCESS
        report = json.loads(result.output)["report"]
        assert report["status"] == "completed"
        assert report["applied"] == [INIT, USERS, ORDERS]
        assert report["last_completed"] == ORDERS
        assert user_tables(db_path) == ["accounts", "orders", "users"]

    def test_second_run_does_nothing(self, cli_runner, config_file, three_scripts):
        cli_runner.invoke(app, ["migrate", "--config", str(config_file), "--format", "json"])

        result = cli_runner.invoke(
            app, ["migrate", "--config", str(config_file), "--format", "json"]
        )

        assert result.exit_code == EXIT_SUCCESS
        report = json.loads(result.output)["report"]
        assert report["applied_count"] == 0
        assert report["resume_point"] == ORDERS
        assert report["skipped_count"] == 3

    def test_empty_scripts_directory(self, cli_runner, config_file):
        result = cli_runner.invoke(
            app, ["migrate", "--config", str(config_file), "--format", "json"]
        )

        assert result.exit_code == EXIT_SUCCESS
        assert json.loads(result.output)["report"]["applied_count"] == 0

    def test_failing_script_exits_halted(
        self, cli_runner, config_file, db_path, write_script
    ):
        write_script(INIT, "CREATE TABLE accounts (id INTEGER);")
        write_script(USERS, "CREATE TABLE users (id INTEGER); SELECT * FROM nope;")
        write_script(ORDERS, "CREATE TABLE orders (id INTEGER);")

        result = cli_runner.invoke(
            app, ["migrate", "--config", str(config_file), "--format", "json"]
        )

        assert result.exit_code == EXIT_HALTED
        report = json.loads(result.output)["report"]
        assert report["status"] == "halted"
        assert report["halt_reason"] == "execution_failed"
        assert report["halted_at"] == USERS
        assert report["applied"] == [INIT]
        assert user_tables(db_path) == ["accounts"]

    def test_invalid_name_exits_halted(self, cli_runner, config_file, write_script):
        write_script("migrations/scripts/1_bad.sql", "SELECT 1;")

        result = cli_runner.invoke(
            app, ["migrate", "--config", str(config_file), "--format", "json"]
        )

        assert result.exit_code == EXIT_HALTED
        report = json.loads(result.output)["report"]
        assert report["halt_reason"] == "invalid_name"
        assert report["halted_at"] == "migrations/scripts/1_bad.sql"

    def test_unrecorded_script_exits_metadata_incomplete(
        self, cli_runner, config_file, db_path, three_scripts
    ):
        db_path.parent.mkdir(parents=True)
        conn = sqlite3.connect(db_path)
        conn.execute(
            "CREATE TABLE migrations_metadata ("
            "migrated_at TIMESTAMP, "
            "script_name TEXT CHECK (script_name NOT LIKE '%orders%'))"
        )
        conn.commit()
        conn.close()

        result = cli_runner.invoke(
            app, ["migrate", "--config", str(config_file), "--format", "json"]
        )

        assert result.exit_code == EXIT_METADATA_INCOMPLETE
        report = json.loads(result.output)["report"]
        assert report["status"] == "metadata_incomplete"
        assert report["unrecorded"] == [ORDERS]

    def test_dry_run_changes_nothing(self, cli_runner, config_file, db_path, three_scripts):
        result = cli_runner.invoke(
            app,
            ["migrate", "--config", str(config_file), "--dry-run", "--format", "json"],
        )

        assert result.exit_code == EXIT_SUCCESS
        report = json.loads(result.output)["report"]
        assert report["dry_run"] is True
        assert report["applied_count"] == 3
        assert user_tables(db_path) == []

    def test_invalid_config_exits_config_error(self, cli_runner, invalid_config_yaml):
        result = cli_runner.invoke(
            app, ["migrate", "--config", str(invalid_config_yaml), "--format", "json"]
        )

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "Invalid YAML syntax" in json.loads(result.output)["error"]

    def test_missing_config_file_is_usage_error(self, cli_runner, tmp_path):
        result = cli_runner.invoke(
            app, ["migrate", "--config", str(tmp_path / "missing.yaml")]
        )

        assert result.exit_code != EXIT_SUCCESS

    def test_unopenable_database_exits_db_error(self, cli_runner, tmp_path, project_root):
        # Parent "directory" is a regular file
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        config_data = {
            "database": {"path": str(blocker / "app.db")},
            "migrations": {"root": str(project_root)},
        }
        path = tmp_path / "bad-db.yaml"
        path.write_text(yaml.dump(config_data), encoding="utf-8")

        result = cli_runner.invoke(
            app, ["migrate", "--config", str(path), "--format", "json"]
        )

        assert result.exit_code == EXIT_DB_ERROR
        assert "Database connection failed" in json.loads(result.output)["error"]

    def test_invalid_format(self, cli_runner, config_file):
        result = cli_runner.invoke(
            app, ["migrate", "--config", str(config_file), "--format", "xml"]
        )

        assert result.exit_code == EXIT_CONFIG_ERROR

    def test_quiet_output(self, cli_runner, config_file, three_scripts):
        result = cli_runner.invoke(
            app, ["migrate", "--config", str(config_file), "--quiet"]
        )

        assert result.exit_code == EXIT_SUCCESS
        assert result.output.strip() == f"completed\t3\t{ORDERS}"

    def test_human_output(self, cli_runner, config_file, three_scripts):
        result = cli_runner.invoke(app, ["migrate", "--config", str(config_file)])

        assert result.exit_code == EXIT_SUCCESS
        assert "Migration Run Completed" in result.output
        assert "Schema Migrator" in result.output

    def test_json_output_has_no_ansi_codes(self, cli_runner, config_file, three_scripts):
        result = cli_runner.invoke(
            app, ["migrate", "--config", str(config_file), "--format", "json"]
        )

        assert "\x1b[" not in result.output

    def test_verbose_flag_passed_to_logging(
        self, cli_runner, config_file, mock_setup_logging
    ):
        cli_runner.invoke(
            app, ["migrate", "--config", str(config_file), "--verbose", "--format", "json"]
        )

        mock_setup_logging.assert_called_once_with(verbose=True, quiet_logs=False)


# ============================================================================
# status
# ============================================================================


class TestStatusCommand:
    """Test 'status' command."""

    def test_lists_pending_scripts(self, cli_runner, config_file, db_path, three_scripts):
        result = cli_runner.invoke(
            app, ["status", "--config", str(config_file), "--format", "json"]
        )

        assert result.exit_code == EXIT_SUCCESS
        status = json.loads(result.output)["status"]
        assert status["pending_count"] == 3
        assert status["applied_count"] == 0
        assert user_tables(db_path) == []

    def test_after_migrate(self, cli_runner, config_file, three_scripts):
        cli_runner.invoke(app, ["migrate", "--config", str(config_file), "--format", "json"])

        result = cli_runner.invoke(
            app, ["status", "--config", str(config_file), "--format", "json"]
        )

        status = json.loads(result.output)["status"]
        assert status["resume_point"] == ORDERS
        assert status["applied_count"] == 3
        assert all(s["applied_at"] for s in status["scripts"])

    def test_invalid_name_exits_halted(self, cli_runner, config_file, write_script):
        write_script(INIT, "SELECT 1;")
        write_script("migrations/scripts/5_bad.sql", "SELECT 1;")

        result = cli_runner.invoke(
            app, ["status", "--config", str(config_file), "--format", "json"]
        )

        assert result.exit_code == EXIT_HALTED
        status = json.loads(result.output)["status"]
        assert status["invalid_name"] == "migrations/scripts/5_bad.sql"
        assert status["blocked_count"] == 1

    def test_quiet_output(self, cli_runner, config_file, write_script):
        write_script(INIT, "SELECT 1;")

        result = cli_runner.invoke(
            app, ["status", "--config", str(config_file), "--quiet"]
        )

        assert result.exit_code == EXIT_SUCCESS
        assert result.output.strip() == f"pending\t{INIT}"

    def test_human_output(self, cli_runner, config_file, three_scripts):
        result = cli_runner.invoke(app, ["status", "--config", str(config_file)])

        assert result.exit_code == EXIT_SUCCESS
        assert "Migration Status" in result.output


# ============================================================================
# validate
# ============================================================================


class TestValidateCommand:
    """Test 'validate' command."""

    def test_valid_config(self, cli_runner, config_file, db_path):
        result = cli_runner.invoke(
            app, ["validate", "--config", str(config_file), "--format", "json"]
        )

        assert result.exit_code == EXIT_SUCCESS
        data = json.loads(result.output)
        assert data["valid"] is True
        assert data["driver"] == "sqlite"
        assert data["table_name"] == "migrations_metadata"
        assert data["lock_enabled"] is True
        # validate never touches the database
        assert not db_path.exists()

    def test_invalid_config(self, cli_runner, invalid_config_yaml):
        result = cli_runner.invoke(
            app, ["validate", "--config", str(invalid_config_yaml), "--format", "json"]
        )

        assert result.exit_code == EXIT_CONFIG_ERROR
        data = json.loads(result.output)
        assert data["valid"] is False
        assert data["error_type"] == "ConfigValidationError"

    def test_missing_database_url(self, cli_runner, tmp_path, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        path = tmp_path / "pg.yaml"
        path.write_text("database:\n  driver: postgres\n", encoding="utf-8")

        result = cli_runner.invoke(
            app, ["validate", "--config", str(path), "--format", "json"]
        )

        assert result.exit_code == EXIT_CONFIG_ERROR
        data = json.loads(result.output)
        assert data["error_type"] == "DatabaseURLMissingError"
        assert "DATABASE_URL" in data["error"]

    def test_human_output(self, cli_runner, config_file):
        result = cli_runner.invoke(app, ["validate", "--config", str(config_file)])

        assert result.exit_code == EXIT_SUCCESS
        assert "Configuration is valid" in result.output


# ============================================================================
# Callback and helpers
# ============================================================================


class TestMainCallback:
    """Test main callback (version flag, help text)."""

    def test_version_flag(self, cli_runner):
        result = cli_runner.invoke(app, ["--version"])

        assert result.exit_code == EXIT_SUCCESS
        assert "schema-migrator" in result.output

    def test_no_command_prints_hint(self, cli_runner):
        result = cli_runner.invoke(app, [])

        assert "Use --help" in result.output
        assert "migrate" in result.output


@pytest.mark.parametrize(
    ("status", "code"),
    [
        (RunStatus.COMPLETED, EXIT_SUCCESS),
        (RunStatus.HALTED, EXIT_HALTED),
        (RunStatus.METADATA_INCOMPLETE, EXIT_METADATA_INCOMPLETE),
    ],
)
def test_exit_code_for(status, code):
    assert exit_code_for(status) == code


def test_migrate_warns_when_lock_disabled(cli_runner, tmp_path, project_root, db_path):
    config_data = {
        "database": {"path": str(db_path)},
        "migrations": {"root": str(project_root)},
        "lock": {"enabled": False},
    }
    path = tmp_path / "nolock.yaml"
    path.write_text(yaml.dump(config_data), encoding="utf-8")

    result = cli_runner.invoke(app, ["migrate", "--config", str(path), "--format", "json"])

    assert result.exit_code == EXIT_SUCCESS
    assert "Run lock disabled" in json.loads(result.output)["warning"]
