"""
Bookkeeping table access for Schema Migrator.

The bookkeeping table records one row per successfully applied migration
script:

    migrations_metadata (migrated_at TIMESTAMP, script_name TEXT)

Rows are append-only. The newest row names the last applied script, which is
the resume point for the next run. migrated_at is always assigned by the
database clock at insert time.

Example:
    >>> store = MetadataStore(db)
    >>> store.ensure_table()
    >>> store.read_last_applied()
    ''
    >>> store.record_applied("migrations/scripts/00000000000000000001_init.sql")
    True
"""

import logging
from dataclasses import dataclass

from ..config.constants import DEFAULT_METADATA_TABLE
from ..exceptions import DatabaseQueryError, MetadataReadError, MetadataTableError
from .db import Database

logger = logging.getLogger(__name__)


@dataclass
class MetadataRecord:
    """One row of the bookkeeping table."""

    migrated_at: str
    script_name: str


class MetadataStore:
    """
    Reads and writes the bookkeeping table through a Database handle.

    Args:
        db: Open database handle
        table_name: Bookkeeping table name. Must already be validated as a
                    plain identifier (config.schema.MigrationSettings does this).
    """

    def __init__(self, db: Database, table_name: str = DEFAULT_METADATA_TABLE):
        self._db = db
        self.table_name = table_name

    def ensure_table(self) -> None:
        """
        Create the bookkeeping table if it doesn't exist.

        Raises:
            MetadataTableError: If the CREATE statement fails. This is fatal:
                                migrations must not run without bookkeeping.
        """
        try:
            self._db.exec(
                f"CREATE TABLE IF NOT EXISTS {self.table_name} "
                f"(migrated_at TIMESTAMP, script_name TEXT)"
            )
        except DatabaseQueryError as e:
            logger.critical(
                f"Cannot create bookkeeping table {self.table_name}: {e}",
                exc_info=True,
            )
            raise MetadataTableError(
                f"Failed to create bookkeeping table {self.table_name}: {e}"
            ) from e

    def read_last_applied(self) -> str:
        """
        Return the identifier of the most recently applied script.

        Ordered by migrated_at; rows sharing a timestamp are ordered by
        script_name, which matches application order.

        Returns:
            str: Script identifier, or "" if no migration has been recorded yet

        Raises:
            MetadataReadError: If the query fails. A failed read is never
                               reported as "" since that would restart
                               from the first script.
        """
        try:
            row = self._db.get(
                f"SELECT script_name FROM {self.table_name} "
                f"ORDER BY migrated_at DESC, script_name DESC LIMIT 1"
            )
        except DatabaseQueryError as e:
            raise MetadataReadError(
                f"Failed to read last applied script from {self.table_name}: {e}"
            ) from e

        if row is None or row[0] is None:
            return ""
        return row[0]

    def record_applied(self, script_name: str) -> bool:
        """
        Append a row for a script whose transaction has committed.

        Returns:
            bool: True if the row was written, False if the insert failed.
                  Failures are logged here and never raised.
        """
        placeholder = self._db.dialect.placeholder
        try:
            self._db.exec(
                f"INSERT INTO {self.table_name} (migrated_at, script_name) "
                f"VALUES ({self._db.dialect.now_sql}, {placeholder})",
                (script_name,),
            )
        except DatabaseQueryError as e:
            logger.error(
                f"Failed to record applied migration {script_name}: {e}",
                extra={"script": script_name},
            )
            return False
        return True

    def list_applied(self) -> list[MetadataRecord]:
        """
        Return every recorded application, oldest first.

        Raises:
            MetadataReadError: If the query fails
        """
        try:
            rows = self._db.get_all(
                f"SELECT migrated_at, script_name FROM {self.table_name} "
                f"ORDER BY migrated_at, script_name"
            )
        except DatabaseQueryError as e:
            raise MetadataReadError(
                f"Failed to list applied scripts from {self.table_name}: {e}"
            ) from e

        return [
            MetadataRecord(migrated_at=str(row[0]), script_name=row[1])
            for row in rows
        ]
