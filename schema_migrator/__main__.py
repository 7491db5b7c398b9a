"""
Entry point for running Schema Migrator as a module.

Enables execution via:
    python -m schema_migrator [command] [options]

This is equivalent to running the installed CLI:
    schema-migrator [command] [options]

Examples:
    python -m schema_migrator --help
    python -m schema_migrator migrate --config migrator.config.yaml
    python -m schema_migrator status --config migrator.config.yaml --format json
"""

from schema_migrator.cli import app

if __name__ == "__main__":
    app()
