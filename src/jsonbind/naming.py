"""Property naming strategies."""

from __future__ import annotations

import re
from enum import Enum

_SEPARATORS = re.compile(r"[_\-.\s]+")
_LOWER_UPPER = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_ACRONYM_WORD = re.compile(r"(?<=[A-Z])(?=[A-Z][a-z])")


class NamingStrategy(Enum):
    """Strategies applied by JsonNaming to a member's canonical name."""

    SNAKE_CASE = "snake_case"
    KEBAB_CASE = "kebab-case"
    LOWER_CAMEL_CASE = "lowerCamelCase"
    UPPER_CAMEL_CASE = "UpperCamelCase"
    LOWER_DOT_CASE = "lower.dot.case"
    LOWER_CASE = "lowercase"


def split_words(name: str) -> list[str]:
    """Split snake, kebab, dotted or camel case names into words.

    >>> split_words("userHTTPAddress_line2")
    ['user', 'HTTP', 'Address', 'line2']
    """
    name = _ACRONYM_WORD.sub("_", _LOWER_UPPER.sub("_", name))
    return [word for word in _SEPARATORS.split(name) if word]


def translate(name: str, strategy: NamingStrategy) -> str:
    """Apply ``strategy`` to ``name``."""
    words = split_words(name)
    if not words:
        return name
    match strategy:
        case NamingStrategy.SNAKE_CASE:
            return "_".join(w.lower() for w in words)
        case NamingStrategy.KEBAB_CASE:
            return "-".join(w.lower() for w in words)
        case NamingStrategy.LOWER_DOT_CASE:
            return ".".join(w.lower() for w in words)
        case NamingStrategy.LOWER_CASE:
            return "".join(w.lower() for w in words)
        case NamingStrategy.LOWER_CAMEL_CASE:
            return words[0].lower() + "".join(w.capitalize() for w in words[1:])
        case NamingStrategy.UPPER_CAMEL_CASE:
            return "".join(w.capitalize() for w in words)
    return name
