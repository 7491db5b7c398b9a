"""
Configuration constants for Schema Migrator.

This module contains global constants used across the application
to avoid tight coupling between modules.
"""

# Scripts are found relative to the project root, which defaults to the
# working directory the migrator is started from
DEFAULT_ROOT = "."
DEFAULT_SCRIPTS_GLOB = "migrations/scripts/*.sql"

# Bookkeeping table: migrated_at TIMESTAMP, script_name TEXT
DEFAULT_METADATA_TABLE = "migrations_metadata"

# Width of the timestamp prefix in script filenames (YYYYMMDDHHMMSS + 6 digits)
TIMESTAMP_DIGITS = 20

# Run lock
DEFAULT_LOCK_KEY = "schema-migrations"
DEFAULT_LOCK_TIMEOUT_SECONDS = 3600
LOCK_TABLE = "migrations_lock"

# Environment variable holding the PostgreSQL DSN
DEFAULT_DSN_ENV_VAR = "DATABASE_URL"
