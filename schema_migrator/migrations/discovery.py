"""
Migration script discovery.

Scripts are enumerated with a glob relative to the project root and returned
as identifiers: POSIX paths relative to that root, sorted lexically. The
identifier is what gets validated, compared with the resume point, and
recorded in the bookkeeping table.
"""

import logging
from pathlib import Path

from ..exceptions import DiscoveryError

logger = logging.getLogger(__name__)


def discover_scripts(root: str | Path, scripts_glob: str) -> list[str]:
    """
    Find migration scripts and return their identifiers in application order.

    Args:
        root: Project root directory
        scripts_glob: Glob relative to root, e.g. "migrations/scripts/*.sql"

    Returns:
        Identifiers such as "migrations/scripts/00000000000000000001_init.sql",
        sorted in ascending lexical order. Empty if the root or the scripts
        directory does not exist.

    Raises:
        DiscoveryError: If the pattern is invalid or a directory can't be read
    """
    root_path = Path(root)

    if not root_path.is_dir():
        logger.warning(f"Migration root does not exist: {root_path}")
        return []

    try:
        matches = [p for p in root_path.glob(scripts_glob) if p.is_file()]
    except (OSError, ValueError, NotImplementedError) as e:
        raise DiscoveryError(
            f"Failed to list migration scripts with {scripts_glob!r} under {root_path}: {e}"
        ) from e

    identifiers = sorted(p.relative_to(root_path).as_posix() for p in matches)
    logger.debug(f"Discovered {len(identifiers)} migration scripts: {identifiers}")
    return identifiers


def read_script(root: str | Path, identifier: str) -> str:
    """
    Read a script's full SQL text.

    Raises:
        OSError: If the file can't be read
        UnicodeDecodeError: If the file is not valid UTF-8
    """
    return (Path(root) / identifier).read_text(encoding="utf-8")
