"""
Cross-process run lock for Schema Migrator.

At most one migration run may be active against a database at a time. The
orchestrator holds a RunLock from script discovery through the final report.

Two implementations:
- PostgresAdvisoryLock: session-scoped pg_try_advisory_lock. Released
  explicitly, or by the server when the session ends.
- TableLock: a row in a small lock table with an expiry time, for backends
  without advisory locks (SQLite). A lock left by a crashed run is taken over
  once it expires.

Example:
    >>> lock = build_run_lock(db, runtime_config.lock)
    >>> if lock is None or lock.acquire():
    ...     try:
    ...         run_migrations()
    ...     finally:
    ...         if lock is not None:
    ...             lock.release()
"""

import hashlib
import logging
import os
import socket
from datetime import timedelta
from typing import Protocol

from ..config.constants import LOCK_TABLE
from ..config.schema import LockSettings
from ..exceptions import DatabaseQueryError
from ..utils.time import utc_now, utc_timestamp
from .db import Database

logger = logging.getLogger(__name__)


class RunLock(Protocol):
    """Mutual exclusion for one migration run."""

    key: str
    holder: str | None

    def acquire(self) -> bool:
        """Try to take the lock without waiting. True if it is now held."""
        ...

    def release(self) -> None:
        """Give the lock back. Safe to call when the lock is not held."""
        ...


def default_owner() -> str:
    """Owner tag for lock rows: hostname:pid."""
    return f"{socket.gethostname()}:{os.getpid()}"


def advisory_lock_id(key: str) -> int:
    """Map a lock name to the signed 64-bit id pg_advisory_lock expects."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


class PostgresAdvisoryLock:
    """Session-level PostgreSQL advisory lock keyed by a name."""

    def __init__(self, db: Database, key: str):
        self._db = db
        self.key = key
        self.lock_id = advisory_lock_id(key)
        self.holder: str | None = None
        self._held = False

    def acquire(self) -> bool:
        row = self._db.get("SELECT pg_try_advisory_lock(%s)", (self.lock_id,))
        self._held = bool(row and row[0])
        if self._held:
            logger.debug(f"Acquired advisory lock {self.key} ({self.lock_id})")
        else:
            logger.warning(f"Advisory lock {self.key} is held by another session")
        return self._held

    def release(self) -> None:
        if not self._held:
            return
        self._db.get("SELECT pg_advisory_unlock(%s)", (self.lock_id,))
        self._held = False
        logger.debug(f"Released advisory lock {self.key}")


class TableLock:
    """
    Lock row in the migrations_lock table with automatic expiry.

    The lock_key primary key makes the insert fail while another run holds
    the lock. Expired rows are deleted before each attempt, so a process that
    crashed without releasing blocks others for at most timeout_seconds.

    Args:
        db: Open database handle
        key: Lock name
        owner: Tag identifying this run (default: hostname:pid)
        timeout_seconds: Lock lifetime
    """

    def __init__(
        self,
        db: Database,
        key: str,
        owner: str | None = None,
        timeout_seconds: int = 3600,
    ):
        self._db = db
        self.key = key
        self.owner = owner or default_owner()
        self.timeout_seconds = timeout_seconds
        self.holder: str | None = None
        self._held = False

    def acquire(self) -> bool:
        p = self._db.dialect.placeholder
        now = utc_now()
        expires_at = now + timedelta(seconds=self.timeout_seconds)

        self._db.exec(
            f"CREATE TABLE IF NOT EXISTS {LOCK_TABLE} ("
            f"lock_key TEXT PRIMARY KEY, "
            f"owner TEXT NOT NULL, "
            f"acquired_at TEXT NOT NULL, "
            f"expires_at TEXT NOT NULL)"
        )

        # Reap a stale lock left by a crashed run
        reaped = self._db.exec(
            f"DELETE FROM {LOCK_TABLE} WHERE lock_key = {p} AND expires_at < {p}",
            (self.key, utc_timestamp(now)),
        )
        if reaped > 0:
            logger.warning(f"Removed expired run lock {self.key}")

        try:
            self._db.exec(
                f"INSERT INTO {LOCK_TABLE} (lock_key, owner, acquired_at, expires_at) "
                f"VALUES ({p}, {p}, {p}, {p})",
                (self.key, self.owner, utc_timestamp(now), utc_timestamp(expires_at)),
            )
        except DatabaseQueryError:
            row = self._db.get(
                f"SELECT owner FROM {LOCK_TABLE} WHERE lock_key = {p}", (self.key,)
            )
            if row is None:
                # Insert failed for a reason other than an existing lock
                raise
            self.holder = row[0]
            if self.holder != self.owner:
                logger.warning(f"Run lock {self.key} is held by {self.holder}")
                return False

            # We already hold it; extend
            self._db.exec(
                f"UPDATE {LOCK_TABLE} SET expires_at = {p} "
                f"WHERE lock_key = {p} AND owner = {p}",
                (utc_timestamp(expires_at), self.key, self.owner),
            )

        self.holder = self.owner
        self._held = True
        logger.debug(f"Acquired run lock {self.key} as {self.owner}")
        return True

    def release(self) -> None:
        if not self._held:
            return
        p = self._db.dialect.placeholder
        self._db.exec(
            f"DELETE FROM {LOCK_TABLE} WHERE lock_key = {p} AND owner = {p}",
            (self.key, self.owner),
        )
        self._held = False
        logger.debug(f"Released run lock {self.key}")


def build_run_lock(db: Database, settings: LockSettings) -> RunLock | None:
    """
    Create the run lock suited to the database backend.

    Returns:
        PostgresAdvisoryLock for PostgreSQL, TableLock otherwise,
        or None if locking is disabled in config
    """
    if not settings.enabled:
        return None
    if db.dialect.name == "postgres":
        return PostgresAdvisoryLock(db, settings.key)
    return TableLock(db, settings.key, timeout_seconds=settings.timeout_seconds)
