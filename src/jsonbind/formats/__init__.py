"""Format adapters for serialization.

Each format module provides to_<format> and from_<format> functions
that work on top of the default ObjectMapper.
"""

from jsonbind.formats.json import from_json, to_json

__all__ = ["from_json", "to_json"]
