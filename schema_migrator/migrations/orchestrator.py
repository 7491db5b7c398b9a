"""
Migration orchestrator: finds the last applied script and runs every later one.

A run works through these steps:
1. Take the run lock (if configured)
2. Discover scripts and sort them lexically
3. Ensure the bookkeeping table exists
4. Read the resume point (last applied script)
5. For each script in order:
   - stop at the first invalid filename
   - skip scripts at or before the resume point
   - run the rest, one transaction per script, and record each success
   - stop at the first script that fails
6. Log a summary and return a MigrationReport

The run stops at the first problem. Each script commits on its own, so
scripts applied before a failure stay applied.

Example:
    >>> with connect(config.database) as db:
    ...     orchestrator = MigrationOrchestrator.from_config(db, config)
    ...     report = orchestrator.run()
    >>> report.count, report.last_completed
    (3, 'migrations/scripts/00000000000000000003_orders.sql')
"""

import logging
from contextlib import contextmanager

from ..config.schema import MigrationSettings, RuntimeConfig
from ..exceptions import (
    DatabaseError,
    DiscoveryError,
    LockUnavailableError,
    MetadataReadError,
    ScriptExecutionError,
)
from ..storage.db import Database
from ..storage.lock import RunLock, build_run_lock
from ..storage.metadata import MetadataStore
from ..utils.logging import log_with_context
from .discovery import discover_scripts, read_script
from .models import (
    HaltReason,
    MigrationReport,
    MigrationStatus,
    ScriptState,
    ScriptStatus,
)
from .naming import is_valid_name

logger = logging.getLogger(__name__)


def is_eligible(script_name: str, resume_point: str) -> bool:
    """
    A script is eligible when nothing has been applied yet or it sorts
    strictly after the resume point.
    """
    return resume_point == "" or script_name > resume_point


class MigrationOrchestrator:
    """
    Applies pending migration scripts to one database.

    Args:
        db: Open database handle
        settings: Script location and bookkeeping table
        lock: Run lock held for the whole run, or None to run unguarded
    """

    def __init__(
        self,
        db: Database,
        settings: MigrationSettings,
        lock: RunLock | None = None,
    ):
        self._db = db
        self.settings = settings
        self.metadata = MetadataStore(db, settings.table_name)
        self._lock = lock

    @classmethod
    def from_config(cls, db: Database, config: RuntimeConfig) -> "MigrationOrchestrator":
        """Build an orchestrator with the run lock suited to the backend."""
        return cls(db, config.migrations, build_run_lock(db, config.lock))

    def run(self, dry_run: bool = False) -> MigrationReport:
        """
        Apply every pending script in order.

        Args:
            dry_run: Report which scripts would be applied without running them

        Returns:
            MigrationReport. A halted run is reported through halt_reason,
            not raised.

        Raises:
            MetadataTableError: If the bookkeeping table can't be created
            DatabaseQueryError: If the run lock table can't be used
        """
        report = MigrationReport(dry_run=dry_run)

        try:
            with self._run_lock():
                self._run_locked(report)
        except LockUnavailableError as e:
            logger.error(f"Migration run aborted: {e}")
            report.halt(HaltReason.LOCK_UNAVAILABLE, str(e))

        self._log_summary(report)
        return report

    def status(self) -> MigrationStatus:
        """
        Classify every discovered script without executing anything.

        Creates the bookkeeping table if it is missing.

        Raises:
            DiscoveryError: If scripts can't be listed
            MetadataTableError: If the bookkeeping table can't be created
            MetadataReadError: If the bookkeeping table can't be read
        """
        scripts = discover_scripts(self.settings.root, self.settings.scripts_glob)
        self.metadata.ensure_table()
        resume_point = self.metadata.read_last_applied()
        # Newest row wins for scripts recorded more than once
        applied_at = {
            record.script_name: record.migrated_at
            for record in self.metadata.list_applied()
        }

        status = MigrationStatus(resume_point=resume_point)
        for name in scripts:
            if status.invalid_name is None and not is_valid_name(name):
                status.invalid_name = name

            if status.invalid_name is not None:
                state = ScriptState.BLOCKED
            elif is_eligible(name, resume_point):
                state = ScriptState.PENDING
            else:
                state = ScriptState.APPLIED
            recorded_at = applied_at.get(name) if state == ScriptState.APPLIED else None
            status.scripts.append(
                ScriptStatus(script_name=name, state=state, applied_at=recorded_at)
            )

        return status

    @contextmanager
    def _run_lock(self):
        if self._lock is None:
            yield
            return

        if not self._lock.acquire():
            holder = self._lock.holder or "another session"
            raise LockUnavailableError(
                f"Run lock {self._lock.key!r} is held by {holder}"
            )
        try:
            yield
        finally:
            try:
                self._lock.release()
            except DatabaseError as e:
                logger.error(f"Failed to release run lock {self._lock.key!r}: {e}")

    def _run_locked(self, report: MigrationReport) -> None:
        try:
            scripts = discover_scripts(self.settings.root, self.settings.scripts_glob)
        except DiscoveryError as e:
            logger.error(f"Error listing migration scripts: {e}")
            report.halt(HaltReason.DISCOVERY_FAILED, str(e))
            return

        logger.info(f"Found {len(scripts)} migration scripts")

        logger.info("Reading from metadata table...")
        self.metadata.ensure_table()
        try:
            resume_point = self.metadata.read_last_applied()
        except MetadataReadError as e:
            logger.error(f"Cannot determine last applied migration: {e}")
            report.halt(HaltReason.METADATA_READ_FAILED, str(e))
            return

        report.resume_point = resume_point
        logger.info(f"Last migrated script: {resume_point or '(none)'}")

        for name in scripts:
            if not is_valid_name(name):
                message = f"Invalid file name format for file: {name}"
                logger.error(message, extra={"script": name})
                report.halt(HaltReason.INVALID_NAME, message, name)
                break

            if not is_eligible(name, resume_point):
                logger.debug(f"Skipping already applied migration: {name}")
                report.skipped.append(name)
                continue

            if not self._apply(name, report):
                break

    def _apply(self, name: str, report: MigrationReport) -> bool:
        """Run one script. Returns False if the run has to stop."""
        logger.info(f"Running migration: {name}", extra={"script": name})

        try:
            sql = read_script(self.settings.root, name)
        except (OSError, UnicodeDecodeError) as e:
            message = f"Failed to read migration script {name}: {e}"
            logger.error(message, extra={"script": name})
            report.halt(HaltReason.EXECUTION_FAILED, message, name)
            return False

        if report.dry_run:
            logger.info(f"[dry run] Would apply: {name}", extra={"script": name})
            report.applied.append(name)
            return True

        try:
            self._db.run_script(sql)
        except ScriptExecutionError as e:
            log_with_context(
                logger,
                logging.ERROR,
                f"Migration failed, rolled back: {name}: {e}",
                context={"sql": e.sql, "error": str(e.__cause__ or e)},
                script=name,
            )
            report.halt(HaltReason.EXECUTION_FAILED, str(e), name)
            return False

        report.applied.append(name)
        logger.info(f"Completed migration: {name}", extra={"script": name})

        if not self.metadata.record_applied(name):
            logger.error(
                f"Migration {name} is committed but has no row in "
                f"{self.metadata.table_name}; it may be applied again unless "
                f"a later migration is recorded",
                extra={"script": name},
            )
            report.unrecorded.append(name)

        return True

    def _log_summary(self, report: MigrationReport) -> None:
        if report.count == 0:
            logger.info("No migrations performed")
        elif report.dry_run:
            logger.info(
                f"{report.count} migrations would be applied. "
                f"Last: {report.last_completed}"
            )
        else:
            logger.info(
                f"{report.count} migrations completed. "
                f"Last completed: {report.last_completed}"
            )
