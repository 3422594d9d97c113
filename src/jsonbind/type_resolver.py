"""Polymorphic type ids: which id to write, which class an id names."""

from __future__ import annotations

import logging
from typing import Any

from jsonbind.annotations import (
    JsonTypeId,
    JsonTypeIdResolver,
    JsonTypeInfo,
    JsonTypeName,
    TypeIdKind,
)
from jsonbind.errors import ConfigurationError, member_path
from jsonbind.metadata import MetadataStore, subtypes_of

logger = logging.getLogger(__name__)


def qualified_name(cls: type) -> str:
    """``module.QualName`` of a class, the id written for TypeIdKind.CLASS."""
    return f"{cls.__module__}.{cls.__qualname__}"


class TypeResolver:
    """Maps runtime classes to type ids and back, per JsonTypeInfo."""

    def __init__(self, store: MetadataStore) -> None:
        self.store = store

    def type_info(self, cls: type) -> JsonTypeInfo | None:
        """JsonTypeInfo declared on ``cls`` or inherited from a base."""
        return self.store.metadata(cls).find(JsonTypeInfo)

    def type_name(self, cls: type) -> str:
        """Logical name of ``cls``: its own JsonTypeName or its class name."""
        record = self.store.metadata(cls).find(JsonTypeName)
        return record.value if record is not None else cls.__name__

    def id_for(self, obj: Any, info: JsonTypeInfo, context: Any) -> str | None:
        """Type id to write for ``obj``.

        Tried in order: the custom resolver, a JsonTypeId member, the subtype
        table, JsonTypeName, then the class name (NAME) or qualified name
        (CLASS).

        Raises:
            ConfigurationError: If ``info.use`` is CUSTOM and no resolver is
                declared.

        """
        cls = type(obj)
        meta = self.store.metadata(cls)

        resolver = meta.find(JsonTypeIdResolver)
        if resolver is not None:
            type_id = resolver.resolver.id_from_value(obj, context)
            if type_id is not None:
                return type_id
        elif info.use is TypeIdKind.CUSTOM:
            msg = f"{member_path(cls)} uses CUSTOM type ids without @JsonTypeIdResolver()"
            raise ConfigurationError(msg)

        member = meta.member_with(JsonTypeId)
        if member is not None:
            return member.read(obj)

        if info.use is TypeIdKind.CLASS:
            return qualified_name(cls)

        for subtype, name in subtypes_of(cls, self.store):
            if subtype is cls and name:
                return name
        return self.type_name(cls)

    def class_for(self, declared: type, type_id: str, context: Any) -> type | None:
        """Class named by ``type_id`` below ``declared``, or None if unknown."""
        meta = self.store.metadata(declared)
        info = meta.find(JsonTypeInfo)

        resolver = meta.find(JsonTypeIdResolver)
        if resolver is not None:
            cls = resolver.resolver.type_from_id(type_id, context)
            if cls is not None:
                return cls

        if info is not None and info.use is TypeIdKind.CLASS:
            for candidate in _with_subclasses(declared):
                if qualified_name(candidate) == type_id:
                    return candidate
            return None

        for subtype, name in subtypes_of(declared, self.store):
            if (name or self.type_name(subtype)) == type_id:
                return subtype
        for candidate in _with_subclasses(declared):
            if self.type_name(candidate) == type_id:
                return candidate
        logger.debug("No subtype of %s is named %r", declared.__name__, type_id)
        return None


def _with_subclasses(cls: type) -> list[type]:
    """``cls`` followed by all its subclasses, breadth first."""
    found = [cls]
    index = 0
    while index < len(found):
        for sub in found[index].__subclasses__():
            if sub not in found:
                found.append(sub)
        index += 1
    return found
