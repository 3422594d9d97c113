"""Traversal contexts threaded through one serialization or deserialization call."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Self

from jsonbind.annotations import Include, PropertyFilter
from jsonbind.features import Feature, MapperFeature, resolve_features
from jsonbind.metadata import MetadataStore, default_store
from jsonbind.types import (
    BoolType,
    DecimalType,
    FloatType,
    IntType,
    StrType,
    TypeDef,
    is_primitive,
    strip_optional,
    zero_value,
)


@dataclass(frozen=True)
class CustomMapper:
    """Ad-hoc (de)serializer with type affinity and ordering.

    ``mapper(value, context)`` returns the replacement value. With ``type``
    set, the mapper only runs for values (serialization) or declared classes
    (deserialization) of that type or a subclass. Lower ``order`` runs first.
    """

    mapper: Callable[[Any, Any], Any]
    type: type | None = None
    order: int = 0


def sort_mappers(mappers: tuple[CustomMapper, ...] | list[CustomMapper]) -> tuple[CustomMapper, ...]:
    """Mappers sorted by ``order``; ties keep registration order."""
    return tuple(sorted(mappers, key=lambda m: m.order))


def _view_matches(view: Any, active: Any) -> bool:
    if view == active:
        return True
    return isinstance(view, type) and isinstance(active, type) and issubclass(view, active)


@dataclass(frozen=True)
class BaseContext:
    """Options shared by both directions.

    ``for_type`` maps a class to field overrides (``{"views": ..., "features":
    {...}}``) applied while the traversal is inside values of that class.
    """

    features: Mapping[Feature, bool] = field(default_factory=resolve_features)
    views: tuple[Any, ...] = ()
    for_type: Mapping[type, Mapping[str, Any]] = field(default_factory=dict)
    default_inclusion: Include = Include.ALWAYS
    store: MetadataStore = default_store

    def is_enabled(self, feature: Feature) -> bool:
        """True if ``feature`` is on in this context."""
        return self.features.get(feature, False)

    def null_substitute(self, typedef: TypeDef) -> Any:
        """Zero value for a null of ``typedef`` if a SET_DEFAULT_VALUE flag covers it."""
        typedef = strip_optional(typedef)
        if not is_primitive(typedef):
            return None
        flags = [MapperFeature.SET_DEFAULT_VALUE_FOR_PRIMITIVES_ON_NULL]
        match typedef:
            case IntType() | FloatType():
                flags.append(MapperFeature.SET_DEFAULT_VALUE_FOR_NUMBER_ON_NULL)
            case StrType():
                flags.append(MapperFeature.SET_DEFAULT_VALUE_FOR_STRING_ON_NULL)
            case BoolType():
                flags.append(MapperFeature.SET_DEFAULT_VALUE_FOR_BOOLEAN_ON_NULL)
            case DecimalType():
                flags.append(MapperFeature.SET_DEFAULT_VALUE_FOR_DECIMAL_ON_NULL)
        if any(self.is_enabled(flag) for flag in flags):
            return zero_value(typedef)
        return None

    def view_allows(self, views: tuple[Any, ...] | None) -> bool:
        """True if a member tagged with ``views`` takes part under the active views.

        Untagged members follow DEFAULT_VIEW_INCLUSION. A tag matches an active
        view that is equal to it or a base class of it.
        """
        if not self.views:
            return True
        if not views:
            return self.is_enabled(MapperFeature.DEFAULT_VIEW_INCLUSION)
        return any(_view_matches(view, active) for view in views for active in self.views)

    def for_class(self, cls: type) -> Self:
        """Context with the ``for_type`` overrides of ``cls`` applied.

        Raises:
            TypeError: If an override names a field the context lacks.

        """
        overrides = self.for_type.get(cls)
        if not overrides:
            return self
        changes = dict(overrides)
        if "features" in changes:
            changes["features"] = resolve_features(self.features, changes["features"])
        if "views" in changes:
            changes["views"] = tuple(changes["views"] or ())
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class SerializationContext(BaseContext):
    """Options for one serialization call.

    ``date_formatter(value, pattern)`` renders dates for JsonFormat string
    shapes; ``attributes`` feeds JsonAppend; ``filters`` resolves JsonFilter
    names.
    """

    attributes: Mapping[str, Any] = field(default_factory=dict)
    filters: Mapping[str, PropertyFilter] = field(default_factory=dict)
    serializers: tuple[CustomMapper, ...] = ()
    date_formatter: Callable[[Any, str | None], str] | None = None


@dataclass(frozen=True)
class DeserializationContext(BaseContext):
    """Options for one deserialization call.

    ``creator_name`` selects a named JsonCreator where the class declares one;
    ``injectable_values`` feed JsonInject members and creator ``inject``
    parameters; ``date_parser(text, pattern)`` parses JsonFormat string dates.
    """

    deserializers: tuple[CustomMapper, ...] = ()
    injectable_values: Mapping[str, Any] = field(default_factory=dict)
    creator_name: str | None = None
    date_parser: Callable[[str, str | None], Any] | None = None
