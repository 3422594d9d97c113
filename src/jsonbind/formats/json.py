"""JSON format adapter."""

from __future__ import annotations

from typing import Any

from jsonbind.mapper import ObjectMapper

_default_mapper = ObjectMapper()


def to_json(obj: Any, *, indent: int | None = 2, **options: Any) -> str:
    """Serialize an object graph to a JSON string.

    Args:
        obj: The object to serialize
        indent: JSON indentation level (default 2, None for compact)
        **options: Per-call serialization options

    Returns:
        JSON string representation

    """
    return _default_mapper.stringify(obj, indent=indent, **options)


def from_json(s: str | bytes, target: Any, **options: Any) -> Any:
    """Deserialize a JSON string into an instance of ``target``.

    Args:
        s: JSON string to deserialize
        target: Type to build
        **options: Per-call deserialization options

    Returns:
        Deserialized object

    Raises:
        json.JSONDecodeError: If ``s`` is not valid JSON
        DataShapeError: If the document does not fit ``target``

    """
    return _default_mapper.parse(s, target, **options)
