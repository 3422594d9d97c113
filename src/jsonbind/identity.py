"""Object identity: id generation and per-call scope tables.

Serialization keeps, per scope, the id assigned to every object written in
full; later occurrences are written as references. Deserialization binds ids
to materialized objects and records patches for slots that received a
reference before its object existed.
"""

from __future__ import annotations

import itertools
import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from jsonbind.annotations import JsonIdentityInfo, ObjectIdGenerator
from jsonbind.errors import ConfigurationError, DataShapeError, member_path
from jsonbind.metadata import ClassMetadata, MetadataStore

logger = logging.getLogger(__name__)

_sequence = itertools.count(1)
_sequence_lock = threading.Lock()


def next_sequence() -> int:
    """Next value of the process-wide integer id sequence."""
    with _sequence_lock:
        return next(_sequence)


def reset_sequence(start: int = 1) -> None:
    """Restart the integer id sequence at ``start``."""
    global _sequence  # noqa: PLW0603
    with _sequence_lock:
        _sequence = itertools.count(start)


def identity_scope(cls: type, info: JsonIdentityInfo, store: MetadataStore) -> str:
    """Scope name: ``info.scope`` or the name of the class declaring ``info``."""
    if info.scope:
        return info.scope
    for klass in reversed(cls.__mro__):
        if store.find(klass, JsonIdentityInfo) is info:
            return klass.__name__
    return cls.__name__


def generate_id(obj: Any, info: JsonIdentityInfo, meta: ClassMetadata) -> Any:
    """Produce the id of ``obj`` with the generator ``info`` names.

    Raises:
        ConfigurationError: If the PROPERTY generator names no member, or a
            name-based UUID generator lacks its namespace or name.

    """
    match info.generator:
        case ObjectIdGenerator.INT_SEQUENCE:
            return next_sequence()
        case ObjectIdGenerator.PROPERTY:
            member = id_member(info, meta)
            if member is None:
                msg = (
                    f"{member_path(meta.cls, info.property)} is not a member; "
                    "the PROPERTY id generator needs it"
                )
                raise ConfigurationError(msg)
            return member.read(obj)
        case ObjectIdGenerator.UUID1:
            return str(uuid.uuid1())
        case ObjectIdGenerator.UUID4:
            return str(uuid.uuid4())
        case ObjectIdGenerator.UUID3 | ObjectIdGenerator.UUID5:
            if info.uuid_namespace is None or info.uuid_name is None:
                msg = (
                    f"{info.generator.name} ids on {member_path(meta.cls)} need "
                    "uuid_namespace and uuid_name"
                )
                raise ConfigurationError(msg)
            make = uuid.uuid3 if info.generator is ObjectIdGenerator.UUID3 else uuid.uuid5
            return str(make(uuid.UUID(str(info.uuid_namespace)), info.uuid_name))
        case ObjectIdGenerator.NONE:
            return None
    msg = f"Unknown id generator {info.generator!r}"
    raise ConfigurationError(msg)


def id_member(info: JsonIdentityInfo, meta: ClassMetadata) -> Any:
    """Member holding the id for the PROPERTY generator, by attribute or JSON name."""
    member = meta.member(info.property)
    if member is not None:
        return member
    for candidate in meta.members:
        if meta.json_name(candidate) == info.property:
            return candidate
    return None


class SerializationIdentities:
    """Ids assigned to objects already written in full, keyed by scope."""

    def __init__(self) -> None:
        # Objects are kept alive so their id() stays unique for the call
        self._seen: dict[tuple[str, int], tuple[Any, Any]] = {}

    def lookup(self, scope: str, obj: Any) -> tuple[bool, Any]:
        """Return (seen, id) for ``obj`` in ``scope``."""
        entry = self._seen.get((scope, id(obj)))
        if entry is None:
            return False, None
        return True, entry[1]

    def register(self, scope: str, obj: Any, object_id: Any) -> None:
        """Record ``obj`` as written under ``object_id``."""
        self._seen[(scope, id(obj))] = (obj, object_id)


@dataclass(frozen=True)
class Unresolved:
    """Stand-in returned for a reference whose object is not yet materialized."""

    scope: str
    id: Any


class DeserializationIdentities:
    """Objects bound to ids, plus patches waiting for forward references."""

    def __init__(self) -> None:
        self._objects: dict[tuple[str, Any], Any] = {}
        self._pending: dict[tuple[str, Any], list[Callable[[Any], None]]] = {}

    def resolve(self, scope: str, object_id: Any) -> Any:
        """The object bound to ``object_id``, or an Unresolved stand-in."""
        key = (scope, _hashable(object_id))
        if key in self._objects:
            return self._objects[key]
        return Unresolved(scope, object_id)

    def bind(self, scope: str, object_id: Any, obj: Any) -> None:
        """Bind ``obj`` to ``object_id`` and run the patches waiting for it.

        Raises:
            DataShapeError: If the id is already bound to an instance of a
                different class.

        """
        key = (scope, _hashable(object_id))
        existing = self._objects.get(key)
        if existing is not None and type(existing) is not type(obj):
            msg = (
                f"Object id {object_id!r} in scope '{scope}' is already bound to "
                f"{type(existing).__name__}, got a second {type(obj).__name__}"
            )
            raise DataShapeError(msg)
        self._objects[key] = obj
        for patch in self._pending.pop(key, ()):
            patch(obj)

    def defer(self, ref: Unresolved, patch: Callable[[Any], None]) -> None:
        """Run ``patch`` with the object once ``ref`` is bound.

        The id may have been bound after ``ref`` was handed out, for example
        by a later creator argument of the same object; the patch then runs
        at once.
        """
        key = (ref.scope, _hashable(ref.id))
        if key in self._objects:
            patch(self._objects[key])
            return
        self._pending.setdefault(key, []).append(patch)

    def unresolved(self) -> list[tuple[str, Any]]:
        """(scope, id) pairs still waiting for their object."""
        return list(self._pending)


def _hashable(object_id: Any) -> Any:
    """Ids are compared by value; lists and dicts are frozen for hashing."""
    if isinstance(object_id, list):
        return tuple(_hashable(v) for v in object_id)
    if isinstance(object_id, dict):
        return tuple(sorted((k, _hashable(v)) for k, v in object_id.items()))
    return object_id
