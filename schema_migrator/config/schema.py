"""
Configuration schema models for Schema Migrator.

This module defines Pydantic models for validating and parsing the
migrator.config.yaml file. All models use Pydantic v2 field validators.

Models:
    DatabaseSettings: Target database (driver, SQLite path or PostgreSQL DSN source)
    MigrationSettings: Where scripts live and which bookkeeping table to use
    LockSettings: Cross-process run lock
    MigratorConfig: Root configuration model (validates entire YAML)
    RuntimeDatabase: Database settings with the DSN resolved from the environment
    RuntimeConfig: Runtime configuration handed to the orchestrator
"""

import re
from pathlib import PurePath
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import (
    DEFAULT_DSN_ENV_VAR,
    DEFAULT_LOCK_KEY,
    DEFAULT_LOCK_TIMEOUT_SECONDS,
    DEFAULT_METADATA_TABLE,
    DEFAULT_ROOT,
    DEFAULT_SCRIPTS_GLOB,
)

# Plain, unquoted SQL identifier, optionally schema-qualified
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class DatabaseSettings(BaseModel):
    """
    Target database configuration from migrator.config.yaml.

    Attributes:
        driver: "sqlite" (default) or "postgres"
        path: SQLite database file. Required for the sqlite driver.
        dsn: PostgreSQL DSN. May contain ${ENV_VAR} references.
             If omitted, the DSN is read from the variable named by env_dsn.
        env_dsn: Environment variable holding the DSN (default: DATABASE_URL)
        connect_timeout: Seconds to wait when connecting (default: 10)
    """

    driver: Literal["sqlite", "postgres"] = "sqlite"
    path: str | None = None
    dsn: str | None = None
    env_dsn: str = DEFAULT_DSN_ENV_VAR
    connect_timeout: int = 10

    @field_validator("env_dsn")
    @classmethod
    def validate_env_dsn(cls, v: str) -> str:
        """Validate env_dsn is non-empty."""
        if not v or v.isspace():
            raise ValueError("env_dsn cannot be empty")
        return v

    @field_validator("connect_timeout")
    @classmethod
    def validate_connect_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"connect_timeout must be positive, got: {v}")
        return v

    @model_validator(mode="after")
    def validate_sqlite_path(self) -> "DatabaseSettings":
        """The sqlite driver needs a database file path."""
        if self.driver == "sqlite" and (not self.path or self.path.isspace()):
            raise ValueError("path is required when driver is 'sqlite'")
        return self


class MigrationSettings(BaseModel):
    """
    Script discovery and bookkeeping settings.

    Attributes:
        root: Project root that scripts_glob is resolved against
              and that script identifiers are made relative to
        scripts_glob: Relative glob matching migration scripts.
                      Matched files must sit in a directory named "scripts"
                      to pass the filename check.
        table_name: Bookkeeping table name (plain SQL identifier)
    """

    root: str = DEFAULT_ROOT
    scripts_glob: str = DEFAULT_SCRIPTS_GLOB
    table_name: str = DEFAULT_METADATA_TABLE

    @field_validator("root")
    @classmethod
    def validate_root(cls, v: str) -> str:
        """Validate root is non-empty."""
        if not v or v.isspace():
            raise ValueError("root cannot be empty")
        return v

    @field_validator("scripts_glob")
    @classmethod
    def validate_scripts_glob(cls, v: str) -> str:
        """Validate scripts_glob is a non-empty relative pattern."""
        if not v or v.isspace():
            raise ValueError("scripts_glob cannot be empty")
        if PurePath(v).is_absolute():
            raise ValueError(
                f"scripts_glob must be relative to root, got absolute pattern: {v}"
            )
        return v

    @field_validator("table_name")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        """
        Validate table_name is a plain SQL identifier.

        The name is interpolated into DDL and DML, so anything needing
        quoting is rejected.
        """
        if not _IDENTIFIER_PATTERN.match(v):
            raise ValueError(
                f"table_name must be a plain SQL identifier "
                f"(letters, digits, underscores), got: {v!r}"
            )
        return v


class LockSettings(BaseModel):
    """
    Cross-process run lock.

    Attributes:
        enabled: Acquire the lock around each run (default: True)
        key: Lock name. Runs sharing a key exclude each other.
        timeout_seconds: Age after which a table lock left by a crashed
                         run is considered stale (SQLite only)
    """

    enabled: bool = True
    key: str = DEFAULT_LOCK_KEY
    timeout_seconds: int = DEFAULT_LOCK_TIMEOUT_SECONDS

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Validate key is non-empty."""
        if not v or v.isspace():
            raise ValueError("key cannot be empty")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout_seconds(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"timeout_seconds must be positive, got: {v}")
        return v


class MigratorConfig(BaseModel):
    """
    Root configuration model for migrator.config.yaml.

    Example:
        database:
          driver: postgres
          env_dsn: DATABASE_URL
        migrations:
          root: .
          scripts_glob: migrations/scripts/*.sql
        lock:
          enabled: true
    """

    database: DatabaseSettings
    migrations: MigrationSettings = Field(default_factory=MigrationSettings)
    lock: LockSettings = Field(default_factory=LockSettings)


class RuntimeDatabase(BaseModel):
    """
    Database settings with secrets resolved.

    Attributes:
        driver: "sqlite" or "postgres"
        path: SQLite database file (sqlite only)
        dsn: Resolved PostgreSQL DSN (postgres only). NEVER log this value.
        connect_timeout: Seconds to wait when connecting
    """

    driver: Literal["sqlite", "postgres"]
    path: str | None = None
    dsn: str | None = None
    connect_timeout: int = 10

    @property
    def display_name(self) -> str:
        """Human-readable target without credentials."""
        if self.driver == "sqlite":
            return f"sqlite:{self.path}"
        return "postgres"


class RuntimeConfig(BaseModel):
    """
    Runtime configuration with the database DSN resolved.

    Created once by config.loader at process start and passed explicitly
    to the orchestrator. Core modules never read the environment.
    """

    database: RuntimeDatabase
    migrations: MigrationSettings
    lock: LockSettings
