"""Tests for the ObjectMapper facade and the JSON format helpers."""

import json
import logging
from dataclasses import dataclass
from typing import Any

import pytest

from jsonbind import from_json, to_json
from jsonbind.annotations import JsonIgnore, JsonInject, JsonView
from jsonbind.context import CustomMapper
from jsonbind.errors import DataShapeError
from jsonbind.features import DeserializationFeature, MapperFeature, SerializationFeature
from jsonbind.mapper import ObjectMapper
from jsonbind.metadata import MetadataStore, json_field


class Summary:
    """View marker."""


@dataclass
class Point:
    x: int
    y: int
    label: str = json_field(JsonView((Summary,)), default="")


@dataclass
class Stamp:
    a: Any = json_field(JsonInject("a"), default=None)
    b: Any = json_field(JsonInject("b"), default=None)


class TestText:
    """Test stringify and parse."""

    def test_stringify_compact(self) -> None:
        """Test that output is compact unless an indent is given."""
        assert ObjectMapper().stringify(Point(1, 2)) == '{"x": 1, "y": 2, "label": ""}'

    def test_stringify_indent(self) -> None:
        """Test per-call and default indentation."""
        expected = json.dumps({"x": 1, "y": 2, "label": ""}, indent=2)
        assert ObjectMapper().stringify(Point(1, 2), indent=2) == expected
        assert ObjectMapper(indent=2).stringify(Point(1, 2)) == expected

    def test_parse(self) -> None:
        """Test parsing text and bytes."""
        mapper = ObjectMapper()
        assert mapper.parse('{"x": 1, "y": 2}', Point) == Point(1, 2)
        assert mapper.parse(b'{"x": 1, "y": 2}', Point) == Point(1, 2)

    def test_syntax_errors_propagate(self) -> None:
        """Test that malformed JSON raises the parser's own error."""
        with pytest.raises(json.JSONDecodeError):
            ObjectMapper().parse('{"x": 1,', Point)

    def test_declared_type(self) -> None:
        """Test that declared_type drives the null default of the root."""
        features = {MapperFeature.SET_DEFAULT_VALUE_FOR_NUMBER_ON_NULL: True}
        assert ObjectMapper().to_builtins(None, declared_type=int, features=features) == 0
        assert ObjectMapper().to_builtins(None, features=features) is None


class TestOptions:
    """Test option validation and merging."""

    def test_unknown_default_option(self) -> None:
        """Test that the constructor rejects unknown options."""
        with pytest.raises(TypeError, match="colour"):
            ObjectMapper(colour="red")

    def test_unknown_call_option(self) -> None:
        """Test that each direction only accepts its own options."""
        mapper = ObjectMapper()
        with pytest.raises(TypeError, match="creator_name"):
            mapper.to_builtins(Point(1, 2), creator_name="x")
        with pytest.raises(TypeError, match="indent"):
            mapper.from_builtins({"x": 1, "y": 2}, Point, indent=2)

    def test_feature_defaults_and_overrides(self) -> None:
        """Test that per-call features overlay the mapper features."""
        mapper = ObjectMapper(features={DeserializationFeature.FAIL_ON_UNKNOWN_PROPERTIES: False})
        assert mapper.from_builtins({"x": 1, "y": 2, "z": 3}, Point) == Point(1, 2)
        with pytest.raises(DataShapeError):
            mapper.from_builtins(
                {"x": 1, "y": 2, "z": 3},
                Point,
                features={DeserializationFeature.FAIL_ON_UNKNOWN_PROPERTIES: True},
            )

    def test_single_view(self) -> None:
        """Test that a single view is accepted as well as a list."""
        mapper = ObjectMapper()
        assert mapper.to_builtins(Point(1, 2, "p"), views=Summary) == {"x": 1, "y": 2, "label": "p"}
        features = {SerializationFeature.SORT_PROPERTIES_ALPHABETICALLY: True}
        assert list(mapper.to_builtins(Point(1, 2, "p"), views=[Summary], features=features)) == [
            "label",
            "x",
            "y",
        ]

    def test_views_exclude_untagged_members(self) -> None:
        """Test DEFAULT_VIEW_INCLUSION off with a default view."""
        mapper = ObjectMapper(
            features={MapperFeature.DEFAULT_VIEW_INCLUSION: False},
            views=(Summary,),
        )
        assert mapper.to_builtins(Point(1, 2, "p")) == {"label": "p"}

    def test_mappers_are_concatenated(self) -> None:
        """Test that call mappers run together with the defaults, by order."""
        calls: list[str] = []

        def record(name: str) -> CustomMapper:
            def run(value: object, ctx: object) -> object:
                calls.append(name)
                return value

            return CustomMapper(run, type=Point, order={"first": 0, "second": 1}[name])

        mapper = ObjectMapper(serializers=[record("second")])
        mapper.to_builtins(Point(1, 2), serializers=[record("first")])
        assert calls == ["first", "second"]

    def test_injectable_values_are_merged(self) -> None:
        """Test that dict options merge key by key."""
        mapper = ObjectMapper(injectable_values={"a": 1, "b": 0})
        assert mapper.from_builtins({}, Stamp, injectable_values={"b": 2}) == Stamp(1, 2)


class TestStoreAndLogging:
    """Test the mapper's store and logger wiring."""

    def test_custom_store(self) -> None:
        """Test that records registered in a private store apply."""
        store = MetadataStore()
        store.register(Point, JsonIgnore(), member="label")
        assert ObjectMapper(store=store).to_builtins(Point(1, 2, "p")) == {"x": 1, "y": 2}

    def test_logger_is_used(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that dropped unknown properties are logged on the mapper's logger."""
        logger = logging.getLogger("jsonbind.test")
        mapper = ObjectMapper(
            features={DeserializationFeature.FAIL_ON_UNKNOWN_PROPERTIES: False},
            logger=logger,
        )
        with caplog.at_level(logging.DEBUG, logger="jsonbind.test"):
            mapper.from_builtins({"x": 1, "y": 2, "z": 3}, Point)
        assert "Dropping unknown property" in caplog.text


class TestFormatHelpers:
    """Test to_json and from_json."""

    def test_to_json_indents_by_default(self) -> None:
        """Test the default indentation of to_json."""
        assert to_json(Point(1, 2)) == json.dumps({"x": 1, "y": 2, "label": ""}, indent=2)
        assert to_json(Point(1, 2), indent=None) == '{"x": 1, "y": 2, "label": ""}'

    def test_from_json(self) -> None:
        """Test from_json with options."""
        data = '{"x": 1, "y": 2, "extra": true}'
        features = {DeserializationFeature.FAIL_ON_UNKNOWN_PROPERTIES: False}
        assert from_json(data, Point, features=features) == Point(1, 2)
