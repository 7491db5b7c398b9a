"""
Database connection handle for Schema Migrator.

This module wraps a DB-API connection into the small surface the migrator
needs: single statements with commit (exec), single-row reads (get), and
whole-script execution inside one transaction (run_script).

Two backends are supported:
- SQLite via the standard library sqlite3 module
- PostgreSQL via psycopg 3 (optional dependency, imported on first use)

Example usage:
    >>> from schema_migrator.storage.db import connect
    >>> with connect(runtime_config.database) as db:
    ...     db.exec("CREATE TABLE IF NOT EXISTS t (x TEXT)")
    ...     db.get("SELECT COUNT(*) FROM t")
    (0,)

Security:
    - Callers pass values as parameters, never by string formatting
    - The PostgreSQL DSN is never included in raised error messages
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..config.schema import RuntimeDatabase
from ..exceptions import (
    DatabaseConnectionError,
    DatabaseQueryError,
    ScriptExecutionError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dialect:
    """
    SQL differences between supported backends.

    Attributes:
        name: Backend name ("sqlite" or "postgres")
        placeholder: DB-API parameter marker
        now_sql: Expression evaluating to the database's current timestamp
    """

    name: str
    placeholder: str
    now_sql: str


# SQLite CURRENT_TIMESTAMP has one-second resolution; keep milliseconds so
# scripts applied in the same second still order by migrated_at
SQLITE = Dialect(
    name="sqlite",
    placeholder="?",
    now_sql="strftime('%Y-%m-%d %H:%M:%f', 'now')",
)

POSTGRES = Dialect(
    name="postgres",
    placeholder="%s",
    now_sql="NOW()",
)


class Database(ABC):
    """
    Ready-to-use SQL handle over a DB-API connection.

    Abstract: use connect() to get a backend-specific subclass. Subclasses provide the dialect, the driver's base exception type, and
    transactional script execution.
    """

    dialect: Dialect
    driver_error: type[Exception] = Exception

    def __init__(self, conn: Any):
        self._conn = conn

    @property
    def connection(self) -> Any:
        """Underlying DB-API connection."""
        return self._conn

    def exec(self, sql: str, params: tuple = ()) -> int:
        """
        Execute one statement and commit.

        Args:
            sql: SQL statement using this dialect's placeholder
            params: Parameter values

        Returns:
            Number of rows affected (driver-dependent, -1 if unknown)

        Raises:
            DatabaseQueryError: If the statement fails (rolled back)
        """
        cursor = self._conn.cursor()
        try:
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
            rowcount = cursor.rowcount
            self._conn.commit()
            return rowcount
        except self.driver_error as e:
            self._conn.rollback()
            raise DatabaseQueryError(f"Statement failed: {e}") from e
        finally:
            cursor.close()

    def get(self, sql: str, params: tuple = ()) -> tuple | None:
        """
        Execute a query and return its first row, or None if it returned no rows.

        Raises:
            DatabaseQueryError: If the query fails
        """
        cursor = self._conn.cursor()
        try:
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
            row = cursor.fetchone()
            self._conn.commit()
            return tuple(row) if row is not None else None
        except self.driver_error as e:
            self._conn.rollback()
            raise DatabaseQueryError(f"Query failed: {e}") from e
        finally:
            cursor.close()

    def get_all(self, sql: str, params: tuple = ()) -> list[tuple]:
        """
        Execute a query and return every row.

        Raises:
            DatabaseQueryError: If the query fails
        """
        cursor = self._conn.cursor()
        try:
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
            rows = cursor.fetchall()
            self._conn.commit()
            return [tuple(row) for row in rows]
        except self.driver_error as e:
            self._conn.rollback()
            raise DatabaseQueryError(f"Query failed: {e}") from e
        finally:
            cursor.close()

    @abstractmethod
    def run_script(self, sql: str) -> None:
        """
        Execute a multi-statement script inside a single transaction.

        Commits when every statement succeeds. On the first failing statement
        the transaction is rolled back, so the script leaves no partial change.

        Raises:
            ScriptExecutionError: If any statement fails (already rolled back)
        """

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *args) -> None:
        self.close()


class SQLiteDatabase(Database):
    """SQLite backend over the standard library sqlite3 module."""

    dialect = SQLITE
    driver_error = sqlite3.Error

    def run_script(self, sql: str) -> None:
        # executescript() commits any pending transaction before running, so
        # the explicit BEGIN has to be part of the script itself
        try:
            self._conn.executescript("BEGIN;\n" + sql)
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise ScriptExecutionError(f"Script failed: {e}", sql=sql) from e


class PostgresDatabase(Database):
    """
    PostgreSQL backend over psycopg 3.

    The connection must be in autocommit mode: single statements commit on
    their own and each script gets an explicit transaction block.
    """

    dialect = POSTGRES

    def __init__(self, conn: Any):
        import psycopg

        super().__init__(conn)
        self.driver_error = psycopg.Error

    def run_script(self, sql: str) -> None:
        # No parameters, so psycopg sends the whole script as one simple query
        try:
            with self._conn.transaction():
                self._conn.execute(sql)
        except self.driver_error as e:
            raise ScriptExecutionError(f"Script failed: {e}", sql=sql) from e


def connect(settings: RuntimeDatabase) -> Database:
    """
    Open a connection to the configured database.

    Args:
        settings: Resolved database settings from RuntimeConfig

    Returns:
        SQLiteDatabase or PostgresDatabase

    Raises:
        DatabaseConnectionError: If the database cannot be opened

    Note:
        For SQLite the parent directory of the database file is created
        if needed. psycopg is imported only when PostgreSQL is configured.
    """
    if settings.driver == "sqlite":
        return _connect_sqlite(settings)
    return _connect_postgres(settings)


def _connect_sqlite(settings: RuntimeDatabase) -> SQLiteDatabase:
    db_path = settings.path
    try:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(db_path, timeout=settings.connect_timeout)
    except (sqlite3.Error, OSError) as e:
        raise DatabaseConnectionError(
            f"Failed to open SQLite database {db_path}: {e}"
        ) from e

    logger.debug(f"Opened SQLite database: {db_path}")
    return SQLiteDatabase(conn)


def _connect_postgres(settings: RuntimeDatabase) -> PostgresDatabase:
    try:
        import psycopg
    except ImportError as e:
        raise DatabaseConnectionError(
            "PostgreSQL support requires psycopg. "
            "Install it with: pip install 'schema-migrator[postgres]'"
        ) from e

    try:
        conn = psycopg.connect(
            settings.dsn,
            autocommit=True,
            connect_timeout=settings.connect_timeout,
        )
    except psycopg.Error as e:
        raise DatabaseConnectionError(f"Failed to connect to PostgreSQL: {e}") from e

    logger.debug("Opened PostgreSQL connection")
    return PostgresDatabase(conn)
