"""Tests for polymorphic type ids on write and read."""

from dataclasses import dataclass, field

import pytest

from jsonbind.annotations import (
    JsonSubTypes,
    JsonTypeId,
    JsonTypeInfo,
    JsonTypeName,
    JsonUnwrapped,
    NamedType,
    TypeIdKind,
    TypeInclude,
)
from jsonbind.errors import ConfigurationError, DataShapeError
from jsonbind.features import DeserializationFeature
from jsonbind.mapper import ObjectMapper
from jsonbind.metadata import json_class, json_field
from jsonbind.type_resolver import qualified_name


@pytest.fixture
def mapper() -> ObjectMapper:
    return ObjectMapper()


@json_class(
    JsonTypeInfo(),
    JsonSubTypes((NamedType(lambda: Dog, "dog"), NamedType(lambda: Cat, "cat"))),
)
@dataclass
class Animal:
    name: str


@dataclass
class Dog(Animal):
    pass


@dataclass
class Cat(Animal):
    lives: int = 9


@dataclass
class Zoo:
    animals: list[Animal] = field(default_factory=list)


@json_class(JsonTypeInfo(include=TypeInclude.WRAPPER_OBJECT))
@dataclass
class Figure:
    pass


@json_class(JsonTypeName("circle"))
@dataclass
class Circle(Figure):
    r: float


@dataclass
class Square(Figure):
    side: float


@json_class(JsonTypeInfo(include=TypeInclude.WRAPPER_ARRAY))
@dataclass
class Command:
    pass


@dataclass
class Ping(Command):
    seq: int


@json_class(JsonTypeInfo(property="kind"))
@dataclass
class Message:
    kind: str = json_field(JsonTypeId(), default="")


@json_class(JsonTypeName("text"))
@dataclass
class Text(Message):
    body: str = ""


@json_class(JsonTypeInfo(use=TypeIdKind.CLASS))
@dataclass
class Plugin:
    name: str


@dataclass
class Fancy(Plugin):
    level: int = 1


@dataclass
class Kennel:
    pet: Animal = json_field(JsonUnwrapped())


class TestTypeIdProperty:
    """Test type ids carried in a property."""

    def test_write(self, mapper: ObjectMapper) -> None:
        """Test that the subtype name is appended as the type property."""
        assert mapper.to_builtins(Dog("Rex")) == {"name": "Rex", "@type": "dog"}
        assert mapper.from_builtins({"name": "Rex", "@type": "dog"}, Animal) == Dog("Rex")

    def test_read(self, mapper: ObjectMapper) -> None:
        """Test that the declared base type yields the named subtype."""
        animal = mapper.from_builtins({"@type": "cat", "name": "Tom", "lives": 3}, Animal)
        assert animal == Cat("Tom", 3)

    def test_container_round_trip(self, mapper: ObjectMapper) -> None:
        """Test a list of mixed subtypes through JSON text."""
        zoo = Zoo([Dog("Rex"), Cat("Tom")])
        assert mapper.parse(mapper.stringify(zoo), Zoo) == zoo

    def test_missing_type_id(self, mapper: ObjectMapper) -> None:
        """Test FAIL_ON_MISSING_TYPE_ID on and off."""
        with pytest.raises(DataShapeError, match="Missing type id"):
            mapper.from_builtins({"name": "Rex"}, Animal)
        features = {DeserializationFeature.FAIL_ON_MISSING_TYPE_ID: False}
        assert mapper.from_builtins({"name": "Rex"}, Animal, features=features) == Animal("Rex")

    def test_invalid_subtype(self, mapper: ObjectMapper) -> None:
        """Test FAIL_ON_INVALID_SUBTYPE on and off."""
        with pytest.raises(DataShapeError, match="bird"):
            mapper.from_builtins({"@type": "bird", "name": "Tweety"}, Animal)
        features = {DeserializationFeature.FAIL_ON_INVALID_SUBTYPE: False}
        result = mapper.from_builtins({"@type": "bird", "name": "Tweety"}, Animal, features=features)
        assert result == Animal("Tweety")

    def test_type_id_member(self, mapper: ObjectMapper) -> None:
        """Test that a JsonTypeId member supplies and receives the id."""
        assert mapper.to_builtins(Text("text", "hi")) == {"body": "hi", "kind": "text"}
        assert mapper.from_builtins({"kind": "text", "body": "hi"}, Message) == Text("text", "hi")


class TestWrappers:
    """Test wrapper-object and wrapper-array type ids."""

    def test_wrapper_object(self, mapper: ObjectMapper) -> None:
        """Test that the type id wraps the properties as a single key."""
        assert mapper.to_builtins(Circle(1.5)) == {"circle": {"r": 1.5}}
        assert mapper.to_builtins(Square(2.0)) == {"Square": {"side": 2.0}}
        assert mapper.from_builtins({"circle": {"r": 1.5}}, Figure) == Circle(1.5)
        assert mapper.from_builtins({"Square": {"side": 2.0}}, Figure) == Square(2.0)

    def test_wrapper_array(self, mapper: ObjectMapper) -> None:
        """Test the [type id, properties] form."""
        assert mapper.to_builtins(Ping(1)) == ["Ping", {"seq": 1}]
        assert mapper.from_builtins(["Ping", {"seq": 1}], Command) == Ping(1)

    def test_wrapper_array_shape(self, mapper: ObjectMapper) -> None:
        """Test that a malformed wrapper array is a shape error."""
        with pytest.raises(DataShapeError, match="WRAPPER_ARRAY"):
            mapper.from_builtins(["Ping"], Command)


class TestClassIds:
    """Test qualified class names as type ids."""

    def test_round_trip(self, mapper: ObjectMapper) -> None:
        """Test that the qualified name is written and resolved back."""
        data = mapper.to_builtins(Fancy("f", 2))
        assert data == {"name": "f", "level": 2, "@type": qualified_name(Fancy)}
        assert mapper.from_builtins(data, Plugin) == Fancy("f", 2)


class TestUnwrappedPolymorphism:
    """Test the unwrapped/type-info conflict."""

    def test_unwrapped_with_type_info(self, mapper: ObjectMapper) -> None:
        """Test that unwrapping a polymorphic value is a configuration error."""
        with pytest.raises(ConfigurationError, match="type information"):
            mapper.to_builtins(Kennel(Dog("Rex")))
