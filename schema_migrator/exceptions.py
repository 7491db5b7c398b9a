"""
Custom exceptions for Schema Migrator.

This module provides a hierarchy of exceptions that enable type-safe error
handling throughout the application. All exceptions inherit from the base
SchemaMigratorError for consistent catching.

Exception Hierarchy:
    SchemaMigratorError (base)
    ├── ConfigurationError
    │   ├── ConfigFileNotFoundError
    │   ├── ConfigValidationError
    │   └── DatabaseURLMissingError
    ├── DatabaseError
    │   ├── DatabaseConnectionError
    │   ├── DatabaseQueryError
    │   │   └── ScriptExecutionError
    │   ├── MetadataTableError
    │   └── MetadataReadError
    └── MigrationError
        ├── DiscoveryError
        └── LockUnavailableError

Usage:
    from schema_migrator.exceptions import MetadataTableError

    try:
        report = orchestrator.run()
    except MetadataTableError as e:
        logger.critical(f"Cannot create bookkeeping table: {e}")
        sys.exit(2)
"""


class SchemaMigratorError(Exception):
    """
    Base exception for all Schema Migrator errors.

    All custom exceptions in this application inherit from this class,
    so a single except clause catches every application-specific error.
    """

    pass


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(SchemaMigratorError):
    """
    Base class for configuration-related errors.

    Should be caught and result in exit code 1 (configuration error).
    """

    pass


class ConfigFileNotFoundError(ConfigurationError):
    """
    Configuration file does not exist at the specified path.

    Example:
        raise ConfigFileNotFoundError("/path/to/migrator.config.yaml")
    """

    pass


class ConfigValidationError(ConfigurationError):
    """
    Configuration file is invalid (YAML syntax or schema validation failed).

    Example:
        raise ConfigValidationError("database.driver: Input should be 'sqlite' or 'postgres'")
    """

    pass


class DatabaseURLMissingError(ConfigurationError):
    """
    Environment variable holding the database DSN is not set.

    Example:
        raise DatabaseURLMissingError("DATABASE_URL environment variable not set")
    """

    pass


# ============================================================================
# Database Errors
# ============================================================================


class DatabaseError(SchemaMigratorError):
    """
    Base class for database-related errors.

    Should be caught and result in exit code 2 (database error) unless the
    orchestrator handles it locally.
    """

    pass


class DatabaseConnectionError(DatabaseError):
    """
    Connecting to the target database failed.

    Example:
        raise DatabaseConnectionError("could not connect to server: Connection refused")
    """

    pass


class DatabaseQueryError(DatabaseError):
    """
    A SQL statement failed to execute.

    The original driver exception is chained as ``__cause__``.
    """

    pass


class ScriptExecutionError(DatabaseQueryError):
    """
    A migration script failed inside its transaction.

    The transaction has already been rolled back when this is raised.

    Attributes:
        sql: The full SQL text that was being executed
    """

    def __init__(self, message: str, sql: str | None = None):
        super().__init__(message)
        self.sql = sql


class MetadataTableError(DatabaseError):
    """
    The bookkeeping table could not be created.

    This is fatal: no migration may run without a place to record it.
    """

    pass


class MetadataReadError(DatabaseError):
    """
    Reading the last applied script from the bookkeeping table failed.

    Distinct from an empty table, which is the normal "no migrations yet"
    state and is reported as an empty string instead of an error.
    """

    pass


# ============================================================================
# Migration Errors
# ============================================================================


class MigrationError(SchemaMigratorError):
    """Base class for errors raised while planning or running migrations."""

    pass


class DiscoveryError(MigrationError):
    """
    Enumerating migration scripts failed (bad glob pattern, unreadable directory).

    Example:
        raise DiscoveryError("Failed to list migration scripts: permission denied")
    """

    pass


class LockUnavailableError(MigrationError):
    """
    Another migration run holds the run lock for this database.

    Example:
        raise LockUnavailableError("Run lock 'schema-migrations' is held by host-a:4242")
    """

    pass
