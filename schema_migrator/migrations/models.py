"""
Result types for migration runs and status checks.

MigrationReport is returned by MigrationOrchestrator.run(). The orchestrator
handles errors itself and reports them here instead of raising, so callers
decide what a halted run means for them (the CLI maps it to an exit code).
"""

from dataclasses import dataclass, field
from enum import Enum


class HaltReason(str, Enum):
    """Why a run stopped before reaching the end of the script list."""

    LOCK_UNAVAILABLE = "lock_unavailable"
    DISCOVERY_FAILED = "discovery_failed"
    METADATA_READ_FAILED = "metadata_read_failed"
    INVALID_NAME = "invalid_name"
    EXECUTION_FAILED = "execution_failed"


class RunStatus(str, Enum):
    """Overall outcome of a run."""

    COMPLETED = "completed"
    HALTED = "halted"
    # Every attempted script committed, but some have no metadata row
    METADATA_INCOMPLETE = "metadata_incomplete"


class ScriptState(str, Enum):
    APPLIED = "applied"
    PENDING = "pending"
    BLOCKED = "blocked"


@dataclass
class MigrationReport:
    """
    Outcome of one orchestrator run.

    Attributes:
        resume_point: Last applied script before this run ("" if none)
        applied: Scripts applied in this run, in order. In dry-run mode,
                 the scripts that would have been applied.
        skipped: Scripts at or before the resume point
        unrecorded: Applied scripts whose metadata row could not be written.
                    Their schema change is committed; a later run may try
                    to apply them again unless a later script gets recorded.
        halted_at: Script that stopped the run, if the run stopped on a script
        halt_reason: Why the run stopped early, None if it ran to the end
        error: Error message for the halt
        dry_run: True if nothing was executed
    """

    resume_point: str = ""
    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    unrecorded: list[str] = field(default_factory=list)
    halted_at: str | None = None
    halt_reason: HaltReason | None = None
    error: str | None = None
    dry_run: bool = False

    @property
    def count(self) -> int:
        return len(self.applied)

    @property
    def last_completed(self) -> str | None:
        return self.applied[-1] if self.applied else None

    @property
    def status(self) -> RunStatus:
        if self.halt_reason is not None:
            return RunStatus.HALTED
        if self.unrecorded:
            return RunStatus.METADATA_INCOMPLETE
        return RunStatus.COMPLETED

    def halt(self, reason: HaltReason, error: str, script: str | None = None) -> None:
        """Mark the run as stopped early."""
        self.halt_reason = reason
        self.error = error
        self.halted_at = script

    def to_dict(self) -> dict:
        """JSON-serializable summary for agent output."""
        return {
            "status": self.status.value,
            "dry_run": self.dry_run,
            "resume_point": self.resume_point,
            "applied": list(self.applied),
            "applied_count": self.count,
            "last_completed": self.last_completed,
            "skipped_count": len(self.skipped),
            "unrecorded": list(self.unrecorded),
            "halted_at": self.halted_at,
            "halt_reason": self.halt_reason.value if self.halt_reason else None,
            "error": self.error,
        }


@dataclass
class ScriptStatus:
    """
    One discovered script and where it stands relative to the resume point.

    applied_at is the bookkeeping timestamp for APPLIED scripts that have a
    row, None otherwise.
    """

    script_name: str
    state: ScriptState
    applied_at: str | None = None


@dataclass
class MigrationStatus:
    """
    Read-only view of migration progress.

    Attributes:
        resume_point: Last applied script ("" if none)
        scripts: Every discovered script in application order
        invalid_name: First script failing the filename check. It and every
                      later script are BLOCKED.
    """

    resume_point: str = ""
    scripts: list[ScriptStatus] = field(default_factory=list)
    invalid_name: str | None = None

    def names(self, state: ScriptState) -> list[str]:
        return [s.script_name for s in self.scripts if s.state == state]

    @property
    def pending(self) -> list[str]:
        return self.names(ScriptState.PENDING)

    def to_dict(self) -> dict:
        return {
            "resume_point": self.resume_point,
            "invalid_name": self.invalid_name,
            "scripts": [
                {
                    "script_name": s.script_name,
                    "state": s.state.value,
                    "applied_at": s.applied_at,
                }
                for s in self.scripts
            ],
            "applied_count": len(self.names(ScriptState.APPLIED)),
            "pending_count": len(self.pending),
            "blocked_count": len(self.names(ScriptState.BLOCKED)),
        }
