"""
Structured JSON logging for Schema Migrator.

Provides standardized logging with:
- JSON formatted output to stderr
- UTC timestamps with timezone info
- Structured context fields
- Credential redaction (database passwords never appear in logs)

All logs use Python's standard logging module with custom formatting.
Log level defaults to INFO, use setup_logging(verbose=True) for DEBUG.

Examples:
    >>> import logging
    >>> from schema_migrator.utils.logging import setup_logging
    >>> setup_logging(verbose=True)
    >>> logger = logging.getLogger("schema_migrator.migrations.orchestrator")
    >>> logger.info("Running migration", extra={"context": {"script": "..."}})

Security:
    - NEVER log full DSNs with passwords
    - Only stderr is used (stdout reserved for user output)
"""

import json
import logging
import re
import sys
from typing import Any

from schema_migrator.utils.time import utc_timestamp


class JSONFormatter(logging.Formatter):
    """
    Custom formatter that outputs logs as JSON with structured fields.

    Each log record is formatted as a JSON object with:
    - timestamp: ISO 8601 UTC timestamp
    - level: Log level (INFO, WARNING, ERROR, DEBUG, CRITICAL)
    - component: Module/component name (from logger name)
    - message: Human-readable log message
    - context: Additional structured data (from 'context' in extra)
    - script: Migration script identifier (from 'script' in extra, if available)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": utc_timestamp(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "context") and isinstance(record.context, dict):
            log_entry["context"] = record.context

        if hasattr(record, "script"):
            log_entry["script"] = record.script

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class SecretRedactingFilter(logging.Filter):
    """
    Logging filter that redacts database credentials from log messages.

    Prevents accidental logging of:
    - Passwords in URL-style DSNs: postgresql://app:s3cret@db/prod
    - Passwords in keyword DSNs: host=db user=app password=s3cret

    Replacements:
    "postgresql://app:s3cret@db/prod" -> "postgresql://app:***@db/prod"
    "password=s3cret" -> "password=***"
    """

    SECRET_PATTERNS = [
        (re.compile(r"(\b[a-zA-Z][a-zA-Z0-9+.-]*://[^:/@\s]+:)[^@\s]+(@)"), r"\1***\2"),
        (re.compile(r"(\bpassword\s*=\s*)('[^']*'|\S+)", re.IGNORECASE), r"\1***"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        # Render args first so a redacted pattern can't be split across them
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        record.msg = self._redact_secrets(str(record.msg))

        if hasattr(record, "context") and isinstance(record.context, dict):
            record.context = self._redact_dict(record.context)

        return True

    def _redact_secrets(self, text: str) -> str:
        for pattern, replacement in self.SECRET_PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def _redact_dict(self, data: dict[str, Any]) -> dict[str, Any]:
        result = {}
        for key, value in data.items():
            if isinstance(value, str):
                result[key] = self._redact_secrets(value)
            elif isinstance(value, dict):
                result[key] = self._redact_dict(value)
            elif isinstance(value, list):
                result[key] = [
                    self._redact_secrets(v) if isinstance(v, str) else v for v in value
                ]
            else:
                result[key] = value
        return result


def setup_logging(verbose: bool = False, quiet_logs: bool = False) -> None:
    """
    Configure structured JSON logging for the application.

    Sets up:
    - JSON formatter for structured output
    - Credential redaction filter
    - stderr output (stdout reserved for user-facing content)
    - Log level: DEBUG if verbose, WARNING if quiet_logs, INFO otherwise

    Args:
        verbose: If True, set log level to DEBUG. Wins over quiet_logs.
        quiet_logs: If True, only WARNING and above reach stderr. Used in
            human mode where Rich output already reports progress.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet_logs:
        level = logging.WARNING
    else:
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove any existing handlers (prevents duplicate logs)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(SecretRedactingFilter())

    root_logger.addHandler(handler)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    context: dict[str, Any] | None = None,
    script: str | None = None,
) -> None:
    """
    Log a message with structured context and optional script identifier.

    Equivalent to logger.log(level, message, extra={'context': {...}, 'script': '...'})

    Example:
        >>> logger = logging.getLogger("schema_migrator.migrations.orchestrator")
        >>> log_with_context(
        ...     logger,
        ...     logging.ERROR,
        ...     "Migration failed",
        ...     context={"error": "no such table: users"},
        ...     script="migrations/scripts/00000000000000000002_users.sql",
        ... )
    """
    extra = {}

    if context is not None:
        extra["context"] = context

    if script is not None:
        extra["script"] = script

    logger.log(level, message, extra=extra if extra else None)
