"""
Migration planning and execution for Schema Migrator.

Public API:
    - MigrationOrchestrator: Applies pending scripts and reports progress
    - MigrationReport: Outcome of one run
    - MigrationStatus: Read-only view of applied/pending/blocked scripts
    - HaltReason, RunStatus, ScriptState: Enumerations used in reports
    - is_valid_name: Filename shape check for migration scripts
    - discover_scripts: Sorted script identifiers under a root
"""

from schema_migrator.migrations.discovery import discover_scripts
from schema_migrator.migrations.models import (
    HaltReason,
    MigrationReport,
    MigrationStatus,
    RunStatus,
    ScriptState,
)
from schema_migrator.migrations.naming import is_valid_name
from schema_migrator.migrations.orchestrator import MigrationOrchestrator

__all__ = [
    "HaltReason",
    "MigrationOrchestrator",
    "MigrationReport",
    "MigrationStatus",
    "RunStatus",
    "ScriptState",
    "discover_scripts",
    "is_valid_name",
]
