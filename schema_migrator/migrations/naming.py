"""
Migration script filename check.

Scripts are named `scripts/<20-digit timestamp>_<description>.sql`, e.g.
`scripts/20250102153045123456_create_users.sql`. The timestamp is fixed width,
so plain lexical order of identifiers is also creation order. Only the shape
is checked. The digits are never interpreted as a date.
"""

import re

from ..config.constants import TIMESTAMP_DIGITS

SCRIPT_NAME_PATTERN = re.compile(
    rf"(?:^|/)scripts/\d{{{TIMESTAMP_DIGITS}}}_\S+\.sql\Z", re.ASCII
)


def is_valid_name(name: str) -> bool:
    """
    Check that a script identifier has the expected lexical shape.

    Args:
        name: Script path or identifier, e.g.
              "migrations/scripts/00000000000000000001_init.sql"

    Returns:
        True if the path contains a `scripts/` directory segment followed by
        exactly 20 digits, an underscore, at least one non-whitespace
        character and a `.sql` suffix

    Examples:
        >>> is_valid_name("migrations/scripts/00000000000000000001_init.sql")
        True
        >>> is_valid_name("migrations/scripts/0001_init.sql")
        False
        >>> is_valid_name("migrations/scripts/00000000000000000001init.sql")
        False
    """
    return SCRIPT_NAME_PATTERN.search(name.replace("\\", "/")) is not None
