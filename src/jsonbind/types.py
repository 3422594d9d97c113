"""Type descriptors attached to class members.

A descriptor tells the engine what a member holds without inspecting the
runtime value: a primitive, a container of descriptors, a reference to a
mapped class, or an enum. Descriptors are extracted from annotations by
``jsonbind.schema.extract_type`` or supplied explicitly with ``JsonClassType``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, ClassVar, dataclass_transform


@dataclass(frozen=True)
@dataclass_transform(frozen_default=True)
class TypeDef:
    """Base for type descriptors."""

    tag: ClassVar[str]
    registry: ClassVar[dict[str, type[TypeDef]]] = {}

    def __init_subclass__(cls, tag: str | None = None) -> None:
        """Register each descriptor under its tag, defaulting to the lowered class name."""
        dataclass(frozen=True)(cls)
        cls.tag = tag if tag is not None else cls.__name__.lower().removesuffix("type")

        if (existing := TypeDef.registry.get(cls.tag)) and existing is not cls:
            msg = (
                f"Descriptor tag '{cls.tag}' is already registered to "
                f"{existing.__name__}"
            )
            raise ValueError(msg)

        TypeDef.registry[cls.tag] = cls


class AnyType(TypeDef, tag="any"):
    """Unknown or unconstrained type; the runtime value decides."""


class IntType(TypeDef, tag="int"):
    """JSON integer, Python int."""


class FloatType(TypeDef, tag="float"):
    """JSON number, Python float."""


class StrType(TypeDef, tag="str"):
    """JSON string."""


class BoolType(TypeDef, tag="bool"):
    """JSON true/false."""


class NoneType(TypeDef, tag="none"):
    """JSON null."""


class BytesType(TypeDef, tag="bytes"):
    """Binary data type, written as base64."""


class DecimalType(TypeDef, tag="decimal"):
    """Decimal, written as its string form."""


class UUIDType(TypeDef, tag="uuid"):
    """UUID type, written as its canonical string."""


# Temporal types
class DateType(TypeDef, tag="date"):
    """Calendar date, ISO 8601 text by default."""


class TimeType(TypeDef, tag="time"):
    """Time of day, ISO 8601 text."""


class DateTimeType(TypeDef, tag="datetime"):
    """Timestamp, ISO 8601 text or epoch milliseconds."""


class DurationType(TypeDef, tag="duration"):
    """Duration/timedelta type, written as seconds."""


class ListType(TypeDef, tag="list"):
    """JSON array read back as a list."""

    element: TypeDef


class SetType(TypeDef, tag="set"):
    """JSON array read back as a set."""

    element: TypeDef


class FrozenSetType(TypeDef, tag="frozenset"):
    """JSON array read back as a frozenset."""

    element: TypeDef


class TupleType(TypeDef, tag="tuple"):
    """Tuple type.

    tuple[int, str] → TupleType(elements=(IntType(), StrType())).
    tuple[int, ...] → TupleType(elements=(IntType(),), variadic=True).
    """

    elements: tuple[TypeDef, ...]
    variadic: bool = False

    def element_at(self, index: int) -> TypeDef:
        """Descriptor for the element at ``index``."""
        if self.variadic:
            return self.elements[0]
        if index < len(self.elements):
            return self.elements[index]
        return AnyType()


class DictType(TypeDef, tag="dict"):
    """JSON object with typed keys; keys travel as strings."""

    key: TypeDef
    value: TypeDef


class LiteralType(TypeDef, tag="literal"):
    """Closed set of scalar values; input outside it is a shape error."""

    values: tuple[str | int | bool, ...]


class EnumType(TypeDef, tag="enum"):
    """Enum class, written as the member value."""

    cls: type


class ClassType(TypeDef, tag="class"):
    """Reference to a mapped class: Dog → ClassType(cls=Dog)."""

    cls: type


class UnionType(TypeDef, tag="union"):
    """Alternatives, chosen on input by the JSON shape of the value."""

    options: tuple[TypeDef, ...]

    def without_none(self) -> TypeDef:
        """Collapse ``X | None`` to ``X``; other unions are returned unchanged."""
        options = tuple(o for o in self.options if not isinstance(o, NoneType))
        if len(options) == 1:
            return options[0]
        if len(options) == len(self.options):
            return self
        return UnionType(options)


# Containers whose JSON form is an array.
ARRAY_TYPES = (ListType, SetType, FrozenSetType, TupleType)

_ZERO_VALUES: dict[type[TypeDef], Any] = {
    IntType: 0,
    FloatType: 0.0,
    StrType: "",
    BoolType: False,
    DecimalType: Decimal(0),
}


def strip_optional(typedef: TypeDef) -> TypeDef:
    """Return the non-null part of an optional descriptor."""
    if isinstance(typedef, UnionType):
        return typedef.without_none()
    return typedef


def is_primitive(typedef: TypeDef) -> bool:
    """True for descriptors that have a zero value (int, float, str, bool, Decimal)."""
    return type(strip_optional(typedef)) in _ZERO_VALUES


def zero_value(typedef: TypeDef) -> Any:
    """Zero value of a primitive descriptor (0, 0.0, "", False, Decimal(0))."""
    return _ZERO_VALUES[type(strip_optional(typedef))]


def class_of(typedef: TypeDef) -> type | None:
    """The mapped class a descriptor refers to, if any."""
    typedef = strip_optional(typedef)
    if isinstance(typedef, ClassType):
        return typedef.cls
    return None


def element_of(typedef: TypeDef) -> TypeDef:
    """Element descriptor of an array or map descriptor, AnyType otherwise."""
    typedef = strip_optional(typedef)
    if isinstance(typedef, ListType | SetType | FrozenSetType):
        return typedef.element
    if isinstance(typedef, TupleType):
        return typedef.element_at(0)
    if isinstance(typedef, DictType):
        return typedef.value
    return AnyType()
