"""Error types raised by the mapping engine.

Two families exist. ConfigurationError covers metadata that can never work
(duplicate unique annotations, incompatible combinations, missing hooks) and
is raised as soon as the offending class or member is reached. DataShapeError
covers input that does not fit the metadata; each case is governed by a
fail-fast feature flag and degrades to a documented fallback when the flag is
off.
"""

from __future__ import annotations


class MappingError(Exception):
    """Base class for every error raised by jsonbind."""


class ConfigurationError(MappingError):
    """Metadata attached to a class or member is invalid or incomplete."""


class DataShapeError(MappingError):
    """A value or document does not have the shape the metadata requires."""


def member_path(cls: type, member: str | None = None) -> str:
    """Format a class/member location for error messages: ``Cls["member"]``."""
    name = getattr(cls, "__name__", repr(cls))
    if member is None:
        return name
    return f'{name}["{member}"]'
