"""Tests for annotation records and their kind registry."""

import dataclasses

import pytest

from jsonbind.annotations import (
    Annotation,
    AppendAttr,
    Include,
    JsonAnySetter,
    JsonCreator,
    JsonIgnore,
    JsonProperty,
    JsonTypeInfo,
    JsonValue,
    NamedType,
    PropertyAccess,
    TypeInclude,
)


class TestAnnotationRegistry:
    """Test registration of record kinds."""

    def test_builtin_kinds_registered(self) -> None:
        """Test that each record class is registered under its class name."""
        assert Annotation.registry["JsonProperty"] is JsonProperty
        assert Annotation.registry["JsonIgnore"] is JsonIgnore
        assert JsonProperty.kind == "JsonProperty"

    def test_custom_kind(self) -> None:
        """Test registering a record under an explicit kind name."""

        class Audited(Annotation, kind="test.audited"):
            by: str = ""

        assert Annotation.registry["test.audited"] is Audited
        assert Audited(by="ops").by == "ops"

    def test_kind_collision_raises_error(self) -> None:
        """Test that a second class cannot take an existing kind."""

        class First(Annotation, kind="test.collision"):
            pass

        with pytest.raises(ValueError, match="Kind 'test.collision' already registered"):

            class Second(Annotation, kind="test.collision"):
                pass

    def test_unique_flag(self) -> None:
        """Test which kinds may be carried by a single member only."""
        assert JsonValue.unique
        assert JsonAnySetter.unique
        assert not JsonProperty.unique


class TestRecords:
    """Test record values and defaults."""

    def test_records_are_frozen(self) -> None:
        """Test that record options cannot be reassigned."""
        record = JsonProperty("name")
        with pytest.raises(dataclasses.FrozenInstanceError):
            record.value = "other"  # type: ignore[misc]

    def test_defaults(self) -> None:
        """Test default options of common records."""
        assert JsonProperty() == JsonProperty(None, required=False, access=PropertyAccess.AUTO)
        info = JsonTypeInfo()
        assert (info.include, info.property) == (TypeInclude.PROPERTY, "@type")
        assert JsonCreator().name == "default"

    def test_equality_by_value(self) -> None:
        """Test that records compare by kind and options."""
        assert JsonIgnore() == JsonIgnore()
        assert JsonProperty("a") != JsonProperty("b")

    def test_append_attr_defaults(self) -> None:
        """Test AppendAttr defaults."""
        attr = AppendAttr("version")
        assert (attr.prop_name, attr.required, attr.include) == (None, False, Include.ALWAYS)


class TestNamedType:
    """Test subtype declarations."""

    def test_resolve_class(self) -> None:
        """Test a declaration holding the class itself."""
        assert NamedType(int, "i").resolve() is int

    def test_resolve_thunk(self) -> None:
        """Test a declaration holding a zero-argument callable."""
        assert NamedType(lambda: str).resolve() is str
