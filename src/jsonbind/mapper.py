"""ObjectMapper: configure once, then convert between objects and JSON."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from jsonbind.context import DeserializationContext, SerializationContext, sort_mappers
from jsonbind.deserializer import Deserializer
from jsonbind.features import Feature, resolve_features
from jsonbind.metadata import MetadataStore, default_store
from jsonbind.serializer import Serializer

SERIALIZATION_OPTIONS = frozenset(
    {
        "views",
        "indent",
        "serializers",
        "filters",
        "attributes",
        "for_type",
        "features",
        "date_formatter",
        "declared_type",
        "default_inclusion",
    },
)
DESERIALIZATION_OPTIONS = frozenset(
    {
        "creator_name",
        "deserializers",
        "injectable_values",
        "features",
        "for_type",
        "views",
        "date_parser",
    },
)

# Options whose per-call value is merged into the default instead of replacing it.
_DICT_OPTIONS = frozenset({"filters", "attributes", "injectable_values", "for_type"})
_MAPPER_OPTIONS = frozenset({"serializers", "deserializers"})


class ObjectMapper:
    """Holds default options and runs serialization and deserialization.

    Per-call options are merged on top of the defaults given here: features
    key by key, ``filters``, ``attributes``, ``injectable_values`` and
    ``for_type`` as dicts, ad-hoc ``serializers``/``deserializers``
    concatenated and re-sorted by ``order``. Everything else is replaced.

    Example:
        >>> mapper = ObjectMapper(
        ...     features={DeserializationFeature.FAIL_ON_UNKNOWN_PROPERTIES: False},
        ... )
        >>> mapper.stringify(Point(1, 2))
        '{"x": 1, "y": 2}'

    """

    def __init__(
        self,
        features: Mapping[Feature, bool] | None = None,
        store: MetadataStore | None = None,
        logger: logging.Logger | None = None,
        **defaults: Any,
    ) -> None:
        unknown = set(defaults) - SERIALIZATION_OPTIONS - DESERIALIZATION_OPTIONS
        if unknown:
            msg = f"Unknown mapper options: {', '.join(sorted(unknown))}"
            raise TypeError(msg)
        self.features = resolve_features(features)
        self.store = store or default_store
        self.logger = logger or logging.getLogger(__name__)
        self.defaults = defaults
        self.serializer = Serializer(self.store, self.logger)
        self.deserializer = Deserializer(self.store, self.logger)

    # Serialization

    def to_builtins(self, value: Any, **options: Any) -> Any:
        """Convert ``value`` to JSON-compatible builtins.

        Raises:
            TypeError: If an option is not a serialization option.
            ConfigurationError: If metadata on a reached class is invalid.
            DataShapeError: If the graph cannot be written under the features.

        """
        merged = self._merge(options, SERIALIZATION_OPTIONS)
        merged.pop("indent", None)
        declared = merged.pop("declared_type", None)
        context = SerializationContext(store=self.store, **merged)
        return self.serializer.serialize(value, context, declared)

    def stringify(self, value: Any, **options: Any) -> str:
        """Serialize ``value`` to JSON text.

        Args:
            value: Root of the object graph.
            **options: Per-call options; ``indent`` is passed to ``json.dumps``.

        Returns:
            The JSON document.

        """
        indent = options.get("indent", self.defaults.get("indent"))
        return json.dumps(self.to_builtins(value, **options), indent=indent)

    # Deserialization

    def from_builtins(self, data: Any, target: Any, **options: Any) -> Any:
        """Build an instance of ``target`` from JSON-compatible builtins.

        Raises:
            TypeError: If an option is not a deserialization option.
            ConfigurationError: If metadata on a reached class is invalid.
            DataShapeError: If the data does not fit ``target`` under the features.

        """
        merged = self._merge(options, DESERIALIZATION_OPTIONS)
        context = DeserializationContext(store=self.store, **merged)
        return self.deserializer.deserialize(data, target, context)

    def parse(self, text: str | bytes, target: Any, **options: Any) -> Any:
        """Parse JSON text into an instance of ``target``.

        Raises:
            json.JSONDecodeError: If ``text`` is not valid JSON.

        """
        return self.from_builtins(json.loads(text), target, **options)

    def _merge(self, options: dict[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
        """Defaults for one direction with ``options`` merged on top."""
        unknown = set(options) - allowed
        if unknown:
            msg = f"Unknown options: {', '.join(sorted(unknown))}"
            raise TypeError(msg)

        merged = {key: value for key, value in self.defaults.items() if key in allowed}
        for key, value in options.items():
            if key in _DICT_OPTIONS and key in merged:
                merged[key] = {**merged[key], **value}
            elif key in _MAPPER_OPTIONS and key in merged:
                merged[key] = (*merged[key], *value)
            else:
                merged[key] = value

        for key in _MAPPER_OPTIONS & set(merged):
            merged[key] = sort_mappers(tuple(merged[key]))
        if "views" in merged:
            merged["views"] = _as_views(merged["views"])
        merged["features"] = resolve_features(self.features, merged.get("features"))
        return merged


def _as_views(views: Any) -> tuple[Any, ...]:
    """Accept a single view or a collection of views."""
    if views is None:
        return ()
    if isinstance(views, list | tuple | set | frozenset):
        return tuple(views)
    return (views,)
