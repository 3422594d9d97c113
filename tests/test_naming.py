"""Tests for property naming strategies."""

import pytest

from jsonbind.naming import NamingStrategy, split_words, translate


class TestSplitWords:
    """Test word splitting of member names."""

    def test_snake_case(self) -> None:
        """Test splitting on underscores."""
        assert split_words("first_name") == ["first", "name"]

    def test_camel_case(self) -> None:
        """Test splitting camel case with acronyms and digits."""
        assert split_words("userHTTPAddress_line2") == ["user", "HTTP", "Address", "line2"]

    def test_separators(self) -> None:
        """Test splitting kebab and dotted names."""
        assert split_words("max-retry.count") == ["max", "retry", "count"]


@pytest.mark.parametrize(
    ("strategy", "expected"),
    [
        (NamingStrategy.SNAKE_CASE, "first_name"),
        (NamingStrategy.KEBAB_CASE, "first-name"),
        (NamingStrategy.LOWER_CAMEL_CASE, "firstName"),
        (NamingStrategy.UPPER_CAMEL_CASE, "FirstName"),
        (NamingStrategy.LOWER_DOT_CASE, "first.name"),
        (NamingStrategy.LOWER_CASE, "firstname"),
    ],
)
def test_translate(strategy: NamingStrategy, expected: str) -> None:
    """Test each strategy on a snake case member name."""
    assert translate("first_name", strategy) == expected


def test_translate_empty_name() -> None:
    """Test that a name without words is returned as is."""
    assert translate("_", NamingStrategy.LOWER_CAMEL_CASE) == "_"
