"""
Tests for migrations.naming module - script filename validation.

Valid names are `scripts/<20 digits>_<description>.sql`. Only the shape is
checked; the digits are never parsed as a date.
"""

import pytest

from schema_migrator.migrations.naming import is_valid_name


class TestIsValidName:
    """Test is_valid_name() function."""

    @pytest.mark.parametrize(
        "name",
        [
            "migrations/scripts/00000000000000000001_init.sql",
            "migrations/scripts/20250102153045123456_create_users.sql",
            "scripts/00000000000000000001_a.sql",
            "db/migrations/scripts/99999999999999999999_x-y.z.sql",
        ],
    )
    def test_accepts_well_formed_names(self, name):
        assert is_valid_name(name) is True

    @pytest.mark.parametrize(
        "name",
        [
            # 19 digits
            "migrations/scripts/0000000000000000001_init.sql",
            # 21 digits
            "migrations/scripts/000000000000000000001_init.sql",
            # Missing underscore
            "migrations/scripts/00000000000000000001init.sql",
            # Empty description
            "migrations/scripts/00000000000000000001_.sql",
            # Wrong extension
            "migrations/scripts/00000000000000000001_init.txt",
            "migrations/scripts/00000000000000000001_init.sql.bak",
            # Trailing newline
            "migrations/scripts/00000000000000000001_init.sql\n",
            # Whitespace in description
            "migrations/scripts/00000000000000000001_create users.sql",
            # Not under a scripts/ directory
            "migrations/00000000000000000001_init.sql",
            "migrations/myscripts/00000000000000000001_init.sql",
            "00000000000000000001_init.sql",
            "",
        ],
    )
    def test_rejects_malformed_names(self, name):
        assert is_valid_name(name) is False

    def test_does_not_interpret_timestamp(self):
        """Digits that are not a real date still pass the shape check."""
        assert is_valid_name("migrations/scripts/99991399999999999999_x.sql") is True

    def test_rejects_non_ascii_digits(self):
        """Only ASCII 0-9 count as digits."""
        arabic_indic = "١" * 20
        assert is_valid_name(f"migrations/scripts/{arabic_indic}_init.sql") is False

    def test_accepts_windows_separators(self):
        assert is_valid_name("migrations\\scripts\\00000000000000000001_init.sql") is True
