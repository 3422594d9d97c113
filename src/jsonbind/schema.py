"""Type reflection: Python annotations to type descriptors."""

from __future__ import annotations

import datetime
import enum
import inspect
import logging
import types
import uuid
from collections.abc import Mapping, MutableMapping, MutableSequence, Sequence
from collections.abc import Set as AbstractSet
from decimal import Decimal
from typing import (
    Any,
    ClassVar,
    Literal,
    TypeAliasType,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from jsonbind.types import (
    AnyType,
    BoolType,
    BytesType,
    ClassType,
    DateTimeType,
    DateType,
    DecimalType,
    DictType,
    DurationType,
    EnumType,
    FloatType,
    FrozenSetType,
    IntType,
    ListType,
    LiteralType,
    NoneType,
    SetType,
    StrType,
    TimeType,
    TupleType,
    TypeDef,
    UnionType,
    UUIDType,
)

logger = logging.getLogger(__name__)

_SCALARS: dict[Any, type[TypeDef]] = {
    int: IntType,
    float: FloatType,
    str: StrType,
    bool: BoolType,
    type(None): NoneType,
    None: NoneType,
    bytes: BytesType,
    Decimal: DecimalType,
    uuid.UUID: UUIDType,
    datetime.date: DateType,
    datetime.time: TimeType,
    datetime.datetime: DateTimeType,
    datetime.timedelta: DurationType,
}


def extract_type(py_type: Any) -> TypeDef:
    """Convert a Python type annotation to a TypeDef.

    Args:
        py_type: An annotation such as ``int``, ``list[Dog]`` or ``Dog | None``.
            TypeDef instances are returned unchanged.

    Returns:
        The matching descriptor. Unknown classes become ``ClassType``; bare
        ``Any``, ``object`` and unparameterized containers become ``AnyType``
        or containers of ``AnyType``.

    Raises:
        ValueError: If a PEP 695 alias is given the wrong number of arguments.
        TypeError: If a Literal holds a value that is not str, int or bool.

    """
    if isinstance(py_type, TypeDef):
        return py_type
    if py_type is Any or py_type is object:
        return AnyType()

    origin = get_origin(py_type)
    args = get_args(py_type)

    # Expand PEP 695 type aliases
    if isinstance(py_type, TypeAliasType):
        return extract_type(py_type.__value__)
    if isinstance(origin, TypeAliasType):
        type_params = origin.__type_params__
        if len(type_params) != len(args):
            msg = (
                f"Type alias {origin.__name__} expects {len(type_params)} "
                f"arguments but got {len(args)}"
            )
            raise ValueError(msg)
        substitutions = dict(zip(type_params, args, strict=True))
        return extract_type(_substitute_type_params(origin.__value__, substitutions))

    if py_type in _SCALARS:
        return _SCALARS[py_type]()

    # Unparameterized containers
    if py_type is list:
        return ListType(element=AnyType())
    if py_type is set:
        return SetType(element=AnyType())
    if py_type is frozenset:
        return FrozenSetType(element=AnyType())
    if py_type is tuple:
        return TupleType(elements=(AnyType(),), variadic=True)
    if py_type is dict:
        return DictType(key=AnyType(), value=AnyType())

    if origin in (list, Sequence, MutableSequence):
        return ListType(element=extract_type(args[0]) if args else AnyType())

    if origin in (set, AbstractSet):
        return SetType(element=extract_type(args[0]) if args else AnyType())

    if origin is frozenset:
        return FrozenSetType(element=extract_type(args[0]) if args else AnyType())

    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return TupleType(elements=(extract_type(args[0]),), variadic=True)
        if not args:
            return TupleType(elements=(AnyType(),), variadic=True)
        return TupleType(elements=tuple(extract_type(arg) for arg in args))

    if origin in (dict, Mapping, MutableMapping):
        if len(args) != 2:
            return DictType(key=StrType(), value=AnyType())
        return DictType(key=extract_type(args[0]), value=extract_type(args[1]))

    if origin is Literal:
        for val in args:
            if not isinstance(val, str | int | bool):
                msg = f"Literal values must be str, int, or bool, got {type(val)}"
                raise TypeError(msg)
        return LiteralType(values=args)

    if origin is ClassVar:
        return extract_type(args[0]) if args else AnyType()

    if isinstance(py_type, types.UnionType) or origin is Union:
        return UnionType(tuple(extract_type(a) for a in args))

    if isinstance(py_type, type) and issubclass(py_type, enum.Enum):
        return EnumType(cls=py_type)

    if isinstance(py_type, type):
        return ClassType(cls=py_type)

    # Parameterized user generics (Box[int]) map to their origin class
    if isinstance(origin, type):
        return ClassType(cls=origin)

    logger.debug("No descriptor for annotation %r, treating as Any", py_type)
    return AnyType()


def _substitute_type_params(type_expr: Any, substitutions: dict[Any, Any]) -> Any:
    """Recursively substitute type parameters in a type expression."""
    if type_expr in substitutions:
        return substitutions[type_expr]

    origin = get_origin(type_expr)
    args = get_args(type_expr)

    if origin is None or not args:
        return type_expr

    new_args = tuple(_substitute_type_params(arg, substitutions) for arg in args)

    # UnionType (| operator) needs special reconstruction
    if isinstance(type_expr, types.UnionType):
        result = new_args[0]
        for arg in new_args[1:]:
            result = result | arg
        return result

    return origin[new_args]


def class_hints(cls: type) -> dict[str, Any]:
    """Resolved annotations of ``cls`` and its bases.

    Falls back to the raw ``__annotations__`` of each class in the MRO when a
    forward reference cannot be resolved (classes defined inside functions).
    """
    try:
        return get_type_hints(cls)
    except (NameError, TypeError):
        logger.debug("Could not resolve annotations of %s, using raw values", cls)
    hints: dict[str, Any] = {}
    for klass in reversed(cls.__mro__):
        for name, annotation in inspect.get_annotations(klass).items():
            hints[name] = AnyType() if isinstance(annotation, str) else annotation
    return hints


def is_class_var(annotation: Any) -> bool:
    """True for ``ClassVar[...]`` annotations, which are never members."""
    return annotation is ClassVar or get_origin(annotation) is ClassVar
