"""Tests for polymorphic type id resolution."""

from dataclasses import dataclass
from typing import Any

import pytest

from jsonbind.annotations import (
    JsonSubTypes,
    JsonTypeId,
    JsonTypeIdResolver,
    JsonTypeInfo,
    JsonTypeName,
    NamedType,
    TypeIdKind,
)
from jsonbind.errors import ConfigurationError
from jsonbind.metadata import MetadataStore, json_field
from jsonbind.type_resolver import TypeResolver, qualified_name


@dataclass
class Vehicle:
    wheels: int = 4


@dataclass
class Car(Vehicle):
    pass


@dataclass
class Truck(Vehicle):
    load: int = 0


@dataclass
class Bike(Vehicle):
    wheels: int = 2


@dataclass
class Tagged:
    kind: str = json_field(JsonTypeId(), default="tagged")


class FixedResolver:
    """Resolver mapping every instance to 'fixed' and back to Truck."""

    def id_from_value(self, obj: Any, context: Any) -> str | None:
        return "fixed"

    def type_from_id(self, type_id: str, context: Any) -> type | None:
        return Truck if type_id == "fixed" else None


@pytest.fixture
def store() -> MetadataStore:
    store = MetadataStore()
    store.register(Vehicle, JsonTypeInfo(), JsonSubTypes((NamedType(Car, "car"),)))
    store.register(Truck, JsonTypeName("truck"))
    return store


class TestIdFor:
    """Test which id is written for an instance."""

    def test_subtype_table_name(self, store: MetadataStore) -> None:
        """Test that a JsonSubTypes entry names the class."""
        resolver = TypeResolver(store)
        info = resolver.type_info(Car)
        assert info is not None
        assert resolver.id_for(Car(), info, None) == "car"

    def test_type_name(self, store: MetadataStore) -> None:
        """Test that JsonTypeName is used when the table has no entry."""
        resolver = TypeResolver(store)
        assert resolver.id_for(Truck(), JsonTypeInfo(), None) == "truck"

    def test_class_name_fallback(self, store: MetadataStore) -> None:
        """Test that an undeclared class writes its class name."""
        resolver = TypeResolver(store)
        assert resolver.id_for(Bike(), JsonTypeInfo(), None) == "Bike"

    def test_class_kind(self, store: MetadataStore) -> None:
        """Test that TypeIdKind.CLASS writes the qualified name."""
        resolver = TypeResolver(store)
        info = JsonTypeInfo(use=TypeIdKind.CLASS)
        assert resolver.id_for(Car(), info, None) == f"{__name__}.Car"
        assert qualified_name(Car) == f"{__name__}.Car"

    def test_type_id_member(self) -> None:
        """Test that a JsonTypeId member supplies the id."""
        store = MetadataStore()
        store.register(Tagged, JsonTypeInfo())
        assert TypeResolver(store).id_for(Tagged("special"), JsonTypeInfo(), None) == "special"

    def test_custom_resolver(self, store: MetadataStore) -> None:
        """Test that a custom resolver wins over everything else."""
        store.register(Vehicle, JsonTypeIdResolver(FixedResolver()))
        info = JsonTypeInfo(use=TypeIdKind.CUSTOM)
        assert TypeResolver(store).id_for(Car(), info, None) == "fixed"

    def test_custom_without_resolver(self, store: MetadataStore) -> None:
        """Test that CUSTOM ids need a resolver."""
        info = JsonTypeInfo(use=TypeIdKind.CUSTOM)
        with pytest.raises(ConfigurationError, match="JsonTypeIdResolver"):
            TypeResolver(store).id_for(Car(), info, None)


class TestClassFor:
    """Test which class an id names."""

    def test_declared_and_named_subtypes(self, store: MetadataStore) -> None:
        """Test subtype table entries, JsonTypeName and class names."""
        resolver = TypeResolver(store)
        assert resolver.class_for(Vehicle, "car", None) is Car
        assert resolver.class_for(Vehicle, "truck", None) is Truck
        assert resolver.class_for(Vehicle, "Bike", None) is Bike
        assert resolver.class_for(Vehicle, "Vehicle", None) is Vehicle

    def test_unknown_id(self, store: MetadataStore) -> None:
        """Test that an unknown id resolves to None."""
        assert TypeResolver(store).class_for(Vehicle, "boat", None) is None

    def test_class_kind(self) -> None:
        """Test that CLASS ids are matched by qualified name."""
        store = MetadataStore()
        store.register(Vehicle, JsonTypeInfo(use=TypeIdKind.CLASS))
        resolver = TypeResolver(store)
        assert resolver.class_for(Vehicle, f"{__name__}.Truck", None) is Truck
        assert resolver.class_for(Vehicle, "Truck", None) is None

    def test_custom_resolver(self, store: MetadataStore) -> None:
        """Test that a custom resolver maps ids to classes."""
        store.register(Vehicle, JsonTypeIdResolver(FixedResolver()))
        assert TypeResolver(store).class_for(Vehicle, "fixed", None) is Truck
