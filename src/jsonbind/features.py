"""Feature flags, grouped into common, serialization and deserialization sets.

Every flag has a documented default in ``DEFAULT_FEATURES``. Callers pass
partial mappings; ``resolve_features`` overlays them on the defaults.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType


class Feature(Enum):
    """Base for feature enums. Values are the flag names."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}.{self.name}"


class MapperFeature(Feature):
    """Features shared by serialization and deserialization."""

    # Members without JsonView are included when views are active.
    DEFAULT_VIEW_INCLUSION = "DEFAULT_VIEW_INCLUSION"
    SET_DEFAULT_VALUE_FOR_PRIMITIVES_ON_NULL = "SET_DEFAULT_VALUE_FOR_PRIMITIVES_ON_NULL"
    SET_DEFAULT_VALUE_FOR_NUMBER_ON_NULL = "SET_DEFAULT_VALUE_FOR_NUMBER_ON_NULL"
    SET_DEFAULT_VALUE_FOR_STRING_ON_NULL = "SET_DEFAULT_VALUE_FOR_STRING_ON_NULL"
    SET_DEFAULT_VALUE_FOR_BOOLEAN_ON_NULL = "SET_DEFAULT_VALUE_FOR_BOOLEAN_ON_NULL"
    SET_DEFAULT_VALUE_FOR_DECIMAL_ON_NULL = "SET_DEFAULT_VALUE_FOR_DECIMAL_ON_NULL"


class SerializationFeature(Feature):
    """Features read by the serializer only."""

    FAIL_ON_SELF_REFERENCES = "FAIL_ON_SELF_REFERENCES"
    WRITE_SELF_REFERENCES_AS_NULL = "WRITE_SELF_REFERENCES_AS_NULL"
    ORDER_MAP_ENTRIES_BY_KEYS = "ORDER_MAP_ENTRIES_BY_KEYS"
    SORT_PROPERTIES_ALPHABETICALLY = "SORT_PROPERTIES_ALPHABETICALLY"
    WRAP_ROOT_VALUE = "WRAP_ROOT_VALUE"
    WRITE_NAN_AS_ZERO = "WRITE_NAN_AS_ZERO"
    WRITE_POSITIVE_INFINITY_AS_MAX_SAFE_INTEGER = (
        "WRITE_POSITIVE_INFINITY_AS_MAX_SAFE_INTEGER"
    )
    WRITE_POSITIVE_INFINITY_AS_MAX_VALUE = "WRITE_POSITIVE_INFINITY_AS_MAX_VALUE"
    WRITE_NEGATIVE_INFINITY_AS_MIN_SAFE_INTEGER = (
        "WRITE_NEGATIVE_INFINITY_AS_MIN_SAFE_INTEGER"
    )
    WRITE_NEGATIVE_INFINITY_AS_MIN_VALUE = "WRITE_NEGATIVE_INFINITY_AS_MIN_VALUE"
    WRITE_DATES_AS_TIMESTAMPS = "WRITE_DATES_AS_TIMESTAMPS"


class DeserializationFeature(Feature):
    """Features read by the deserializer only."""

    ACCEPT_CASE_INSENSITIVE_PROPERTIES = "ACCEPT_CASE_INSENSITIVE_PROPERTIES"
    ACCEPT_EMPTY_ARRAY_AS_NULL_OBJECT = "ACCEPT_EMPTY_ARRAY_AS_NULL_OBJECT"
    ACCEPT_EMPTY_STRING_AS_NULL_OBJECT = "ACCEPT_EMPTY_STRING_AS_NULL_OBJECT"
    ACCEPT_FLOAT_AS_INT = "ACCEPT_FLOAT_AS_INT"
    ALLOW_COERCION_OF_SCALARS = "ALLOW_COERCION_OF_SCALARS"
    FAIL_ON_UNKNOWN_PROPERTIES = "FAIL_ON_UNKNOWN_PROPERTIES"
    FAIL_ON_NULL_FOR_PRIMITIVES = "FAIL_ON_NULL_FOR_PRIMITIVES"
    FAIL_ON_MISSING_CREATOR_PROPERTIES = "FAIL_ON_MISSING_CREATOR_PROPERTIES"
    FAIL_ON_NULL_CREATOR_PROPERTIES = "FAIL_ON_NULL_CREATOR_PROPERTIES"
    FAIL_ON_UNRESOLVED_OBJECT_IDS = "FAIL_ON_UNRESOLVED_OBJECT_IDS"
    FAIL_ON_INVALID_SUBTYPE = "FAIL_ON_INVALID_SUBTYPE"
    FAIL_ON_MISSING_TYPE_ID = "FAIL_ON_MISSING_TYPE_ID"
    UNWRAP_ROOT_VALUE = "UNWRAP_ROOT_VALUE"


DEFAULT_FEATURES: Mapping[Feature, bool] = MappingProxyType(
    {
        MapperFeature.DEFAULT_VIEW_INCLUSION: True,
        MapperFeature.SET_DEFAULT_VALUE_FOR_PRIMITIVES_ON_NULL: False,
        MapperFeature.SET_DEFAULT_VALUE_FOR_NUMBER_ON_NULL: False,
        MapperFeature.SET_DEFAULT_VALUE_FOR_STRING_ON_NULL: False,
        MapperFeature.SET_DEFAULT_VALUE_FOR_BOOLEAN_ON_NULL: False,
        MapperFeature.SET_DEFAULT_VALUE_FOR_DECIMAL_ON_NULL: False,
        SerializationFeature.FAIL_ON_SELF_REFERENCES: True,
        SerializationFeature.WRITE_SELF_REFERENCES_AS_NULL: False,
        SerializationFeature.ORDER_MAP_ENTRIES_BY_KEYS: False,
        SerializationFeature.SORT_PROPERTIES_ALPHABETICALLY: False,
        SerializationFeature.WRAP_ROOT_VALUE: False,
        SerializationFeature.WRITE_NAN_AS_ZERO: False,
        SerializationFeature.WRITE_POSITIVE_INFINITY_AS_MAX_SAFE_INTEGER: False,
        SerializationFeature.WRITE_POSITIVE_INFINITY_AS_MAX_VALUE: False,
        SerializationFeature.WRITE_NEGATIVE_INFINITY_AS_MIN_SAFE_INTEGER: False,
        SerializationFeature.WRITE_NEGATIVE_INFINITY_AS_MIN_VALUE: False,
        SerializationFeature.WRITE_DATES_AS_TIMESTAMPS: False,
        DeserializationFeature.ACCEPT_CASE_INSENSITIVE_PROPERTIES: False,
        DeserializationFeature.ACCEPT_EMPTY_ARRAY_AS_NULL_OBJECT: False,
        DeserializationFeature.ACCEPT_EMPTY_STRING_AS_NULL_OBJECT: False,
        DeserializationFeature.ACCEPT_FLOAT_AS_INT: False,
        DeserializationFeature.ALLOW_COERCION_OF_SCALARS: False,
        DeserializationFeature.FAIL_ON_UNKNOWN_PROPERTIES: True,
        DeserializationFeature.FAIL_ON_NULL_FOR_PRIMITIVES: False,
        DeserializationFeature.FAIL_ON_MISSING_CREATOR_PROPERTIES: False,
        DeserializationFeature.FAIL_ON_NULL_CREATOR_PROPERTIES: False,
        DeserializationFeature.FAIL_ON_UNRESOLVED_OBJECT_IDS: True,
        DeserializationFeature.FAIL_ON_INVALID_SUBTYPE: True,
        DeserializationFeature.FAIL_ON_MISSING_TYPE_ID: True,
        DeserializationFeature.UNWRAP_ROOT_VALUE: False,
    },
)

# Largest integer a double represents exactly (2**53 - 1).
MAX_SAFE_INTEGER = 9007199254740991
MIN_SAFE_INTEGER = -MAX_SAFE_INTEGER


def resolve_features(
    *overrides: Mapping[Feature, bool] | None,
) -> dict[Feature, bool]:
    """Overlay feature mappings on the defaults, later mappings winning.

    Raises:
        TypeError: If a key is not a Feature member.

    """
    resolved = dict(DEFAULT_FEATURES)
    for mapping in overrides:
        if not mapping:
            continue
        for feature, enabled in mapping.items():
            if not isinstance(feature, Feature):
                msg = f"Expected a Feature member, got {feature!r}"
                raise TypeError(msg)
            resolved[feature] = bool(enabled)
    return resolved
