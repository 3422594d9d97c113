"""Tests for creator selection and invocation."""

from dataclasses import dataclass, field
from typing import Any

import pytest

from jsonbind.annotations import CreatorMode, JsonCreator, JsonProperty, JsonValue
from jsonbind.creators import CreatorResolver
from jsonbind.errors import ConfigurationError
from jsonbind.metadata import MetadataStore, json_field, json_method
from jsonbind.types import AnyType, IntType, ListType, StrType


@dataclass
class Temperature:
    celsius: float

    @json_method(JsonCreator(mode=CreatorMode.DELEGATING))
    @classmethod
    def from_string(cls, text: str) -> "Temperature":
        return cls(float(text.removesuffix("C")))

    @json_method(JsonCreator(name="kelvin", properties={"k": "kelvin"}))
    @classmethod
    def from_kelvin(cls, k: float) -> "Temperature":
        return cls(k - 273.15)


@dataclass
class Tag:
    label: str = json_field(JsonValue())


@dataclass
class Person:
    name: str = json_field(JsonProperty("fullName"))
    tags: list[str] = field(default_factory=list)


class Session:
    def __init__(self, user: str, /, timeout: int = 30, **extra: Any) -> None:
        self.user = user
        self.timeout = timeout
        self.extra = extra


@pytest.fixture
def resolver() -> CreatorResolver:
    return CreatorResolver(MetadataStore())


class TestSelection:
    """Test which creator is chosen."""

    def test_constructor_by_default(self, resolver: CreatorResolver) -> None:
        """Test that a class without JsonCreator binds properties to its constructor."""
        creator = resolver.creator_for(Person)
        assert creator.mode is CreatorMode.PROPERTIES
        assert creator.factory is Person
        assert [(p.name, p.json_name) for p in creator.params] == [
            ("name", "fullName"),
            ("tags", "tags"),
        ]
        assert creator.params[0].type == StrType()
        assert creator.params[1].type == ListType(element=StrType())
        assert creator.params[1].has_default

    def test_json_value_implies_delegating(self, resolver: CreatorResolver) -> None:
        """Test that a JsonValue class is rebuilt from its single value."""
        creator = resolver.creator_for(Tag)
        assert creator.mode is CreatorMode.DELEGATING
        assert creator.delegate("red") == Tag("red")

    def test_default_factory(self, resolver: CreatorResolver) -> None:
        """Test that an unnamed JsonCreator factory is the default creator."""
        creator = resolver.creator_for(Temperature)
        assert creator.mode is CreatorMode.DELEGATING
        assert creator.delegate("21.5C") == Temperature(21.5)

    def test_named_creator(self, resolver: CreatorResolver) -> None:
        """Test that a creator name selects the matching factory."""
        creator = resolver.creator_for(Temperature, "kelvin")
        assert creator.mode is CreatorMode.PROPERTIES
        assert [(p.name, p.json_name) for p in creator.params] == [("k", "kelvin")]
        assert creator.invoke({"k": 273.15}) == Temperature(0.0)

    def test_unknown_name_falls_back(self, resolver: CreatorResolver) -> None:
        """Test that an unknown creator name uses the default creator."""
        assert resolver.creator_for(Temperature, "missing").factory == Temperature.from_string

    def test_cached(self, resolver: CreatorResolver) -> None:
        """Test that creators are resolved once per class and name."""
        assert resolver.creator_for(Person) is resolver.creator_for(Person)


class TestParameters:
    """Test parameter binding."""

    def test_positional_only_and_var_keyword(self, resolver: CreatorResolver) -> None:
        """Test that positional-only parameters are passed positionally and **kwargs skipped."""
        creator = resolver.creator_for(Session)
        assert [p.name for p in creator.params] == ["user", "timeout"]
        assert creator.params[0].positional_only
        assert creator.params[1].type == IntType()

        session = creator.invoke({"user": "ada", "timeout": 5})
        assert (session.user, session.timeout, session.extra) == ("ada", 5, {})

    def test_missing_arguments_use_defaults(self, resolver: CreatorResolver) -> None:
        """Test that omitted arguments fall back to the signature default."""
        session = resolver.creator_for(Session).invoke({"user": "ada"})
        assert session.timeout == 30

    def test_injected_parameter(self) -> None:
        """Test that JsonCreator.inject marks parameters filled from injectables."""
        store = MetadataStore()
        store.register(Session, JsonCreator(inject={"timeout": "default_timeout"}))
        creator = CreatorResolver(store).creator_for(Session)
        assert creator.params[1].inject == "default_timeout"
        assert creator.params[0].type == StrType()

    def test_untyped_parameter(self) -> None:
        """Test that parameters without hints accept anything."""

        class Loose:
            def __init__(self, value) -> None:  # noqa: ANN001
                self.value = value

        creator = CreatorResolver(MetadataStore()).creator_for(Loose)
        assert creator.params[0].type == AnyType()

    def test_delegating_arity(self) -> None:
        """Test that a delegating creator must take exactly one argument."""
        store = MetadataStore()
        store.register(Person, JsonCreator(mode=CreatorMode.DELEGATING))
        with pytest.raises(ConfigurationError, match="exactly one"):
            CreatorResolver(store).creator_for(Person)
