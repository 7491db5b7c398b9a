"""
Configuration loader for Schema Migrator.

This module loads YAML configuration files, validates them with Pydantic models,
and resolves the database DSN from environment variables to create a RuntimeConfig.

Configuration specification (MigratorConfig from YAML) is kept separate from
runtime configuration (RuntimeConfig with the resolved DSN), so database
credentials never need to be committed to version control.

Functions:
    load_config: Main entrypoint to load and validate migrator.config.yaml
    resolve_database: Helper to resolve the DSN for the configured driver
"""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from schema_migrator.exceptions import (
    ConfigFileNotFoundError,
    ConfigValidationError,
    DatabaseURLMissingError,
)

from .schema import MigratorConfig, RuntimeConfig, RuntimeDatabase

# Pattern to match ${ENV_VAR_NAME}
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def load_config(config_path: str | Path) -> RuntimeConfig:
    """
    Load migrator.config.yaml and resolve the database DSN from the environment.

    This function:
    1. Loads YAML from the specified path
    2. Expands ${ENV_VAR} references in string values
    3. Validates structure using the MigratorConfig Pydantic model
    4. Resolves the PostgreSQL DSN (if used) from the environment
    5. Returns RuntimeConfig ready to hand to the orchestrator

    Args:
        config_path: Path to migrator.config.yaml file (relative or absolute)

    Returns:
        RuntimeConfig with resolved database settings

    Raises:
        ConfigFileNotFoundError: If config file doesn't exist at the specified path
        ConfigValidationError: If YAML is invalid or config validation fails
        DatabaseURLMissingError: If a referenced environment variable is missing

    Example:
        >>> config = load_config("migrator.config.yaml")
        >>> config.migrations.scripts_glob
        'migrations/scripts/*.sql'

    Security:
        - The DSN is loaded from environment variables only
        - The DSN is NEVER logged or written to disk
        - Uses yaml.safe_load() to prevent code injection
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigFileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with config_path.open(encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigValidationError(
            f"Failed to read configuration file {config_path}: {e}"
        ) from e

    if raw_config is None:
        raise ConfigValidationError(f"Configuration file is empty: {config_path}")

    if not isinstance(raw_config, dict):
        raise ConfigValidationError(
            f"Configuration root must be a mapping in {config_path}, "
            f"got {type(raw_config).__name__}"
        )

    raw_config = _resolve_env_vars_recursive(raw_config)

    try:
        migrator_config = MigratorConfig.model_validate(raw_config)
    except ValidationError as e:
        # Format validation errors in a user-friendly way
        error_messages = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            error_messages.append(f"  - {loc}: {msg}")

        raise ConfigValidationError(
            f"Configuration validation failed in {config_path}:\n"
            + "\n".join(error_messages)
        ) from e

    return RuntimeConfig(
        database=resolve_database(migrator_config),
        migrations=migrator_config.migrations,
        lock=migrator_config.lock,
    )


def resolve_database(config: MigratorConfig) -> RuntimeDatabase:
    """
    Resolve database settings for the configured driver.

    SQLite needs only the file path. PostgreSQL takes `dsn` when it is set in
    the config, otherwise the value of the environment variable named by
    `env_dsn`.

    Raises:
        DatabaseURLMissingError: If the DSN environment variable is unset or empty
    """
    database = config.database

    if database.driver == "sqlite":
        return RuntimeDatabase(
            driver="sqlite",
            path=database.path,
            connect_timeout=database.connect_timeout,
        )

    dsn = database.dsn
    if not dsn:
        dsn = os.environ.get(database.env_dsn)
        if not dsn or dsn.isspace():
            raise DatabaseURLMissingError(
                f"{database.env_dsn} environment variable not set. "
                f"Set it to the PostgreSQL connection string or add "
                f"database.dsn to the configuration file."
            )

    return RuntimeDatabase(
        driver="postgres",
        dsn=dsn,
        connect_timeout=database.connect_timeout,
    )


def _resolve_env_vars_recursive(obj):
    """
    Recursively resolve ${ENV_VAR} references in nested dicts/lists.

    Raises:
        DatabaseURLMissingError: If a referenced env var is not set
    """
    if isinstance(obj, dict):
        return {key: _resolve_env_vars_recursive(value) for key, value in obj.items()}

    if isinstance(obj, list):
        return [_resolve_env_vars_recursive(item) for item in obj]

    if isinstance(obj, str):

        def substitute(match: re.Match) -> str:
            env_var_name = match.group(1)
            env_value = os.environ.get(env_var_name)
            if env_value is None:
                raise DatabaseURLMissingError(
                    f"Environment variable ${{{env_var_name}}} not set. "
                    f"Please set it in your environment."
                )
            return env_value

        return _ENV_VAR_PATTERN.sub(substitute, obj)

    # Return scalar values as-is (int, bool, float, None)
    return obj
