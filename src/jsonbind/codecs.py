"""Leaf codec registry for values with no native JSON form."""

from __future__ import annotations

import base64
import uuid
from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, ClassVar

from jsonbind.types import (
    BytesType,
    ClassType,
    DateTimeType,
    DateType,
    DecimalType,
    DurationType,
    TimeType,
    TypeDef,
    UUIDType,
    strip_optional,
)

type Codec = tuple[Callable[[Any], Any], Callable[[Any], Any]]

_DESCRIPTOR_TYPES: dict[type[TypeDef], type] = {
    BytesType: bytes,
    DecimalType: Decimal,
    UUIDType: uuid.UUID,
    DateType: date,
    TimeType: time,
    DateTimeType: datetime,
    DurationType: timedelta,
}


class TypeCodecs:
    """Registry of encode/decode pairs for leaf types.

    Builtin leaves (bytes, Decimal, UUID, date, time, datetime, timedelta) are
    registered on import. Applications register their own value types the same
    way:

        TypeCodecs.register(
            Money,
            encode=lambda m: f"{m.amount} {m.currency}",
            decode=Money.parse,
        )

    A registered type is written through its encoder wherever it appears and
    decoded wherever a member declares it.
    """

    _registry: ClassVar[dict[type, Codec]] = {}

    @classmethod
    def register[T](
        cls,
        typ: type[T],
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
    ) -> None:
        """Attach an encoder and a decoder to a leaf type.

        Re-registering the same type replaces its codec.

        Args:
            typ: The leaf type, e.g. ``datetime`` or an application ``Money``
            encode: Turns a ``typ`` value into JSON builtins
            decode: Turns JSON builtins back into a ``typ`` value

        Raises:
            ValueError: If another type of the same ``__name__`` holds a codec.

        """
        clash = next(
            (t for t in cls._registry if t is not typ and t.__name__ == typ.__name__),
            None,
        )
        if clash is not None:
            msg = (
                f"Cannot register {typ!r}: {clash!r} is already registered "
                f"under the name '{typ.__name__}'"
            )
            raise ValueError(msg)
        cls._registry[typ] = (encode, decode)

    @classmethod
    def get[T](cls, typ: type[T]) -> tuple[Callable[[T], Any], Callable[[Any], T]] | None:
        """Codec registered for exactly ``typ``."""
        return cls._registry.get(typ)

    @classmethod
    def lookup(cls, typ: type) -> Codec | None:
        """Codec of ``typ`` or of its nearest registered base class."""
        for klass in typ.__mro__:
            if (codec := cls._registry.get(klass)) is not None:
                return codec
        return None

    @classmethod
    def for_descriptor(cls, typedef: TypeDef) -> tuple[type, Callable[[Any], Any]] | None:
        """(type, decoder) for a member descriptor with a registered codec."""
        typedef = strip_optional(typedef)
        if isinstance(typedef, ClassType):
            typ = typedef.cls
        else:
            typ = _DESCRIPTOR_TYPES.get(type(typedef))
        if typ is None or (codec := cls._registry.get(typ)) is None:
            return None
        return typ, codec[1]

    @classmethod
    def unregister(cls, typ: type) -> bool:
        """Drop the codec of ``typ``; False if it had none."""
        return cls._registry.pop(typ, None) is not None

    @classmethod
    def clear(cls) -> None:
        """Drop every custom codec, keeping the builtin leaves."""
        cls._registry.clear()
        _register_builtins()


def _register_builtins() -> None:
    """Pre-register codecs for the stdlib leaf types."""
    builtins: list[tuple[type, Callable[[Any], Any], Callable[[Any], Any]]] = [
        (bytes, lambda b: base64.b64encode(b).decode("ascii"), _decode_base64),
        (Decimal, str, lambda v: Decimal(str(v))),
        (uuid.UUID, str, uuid.UUID),
        (datetime, datetime.isoformat, datetime.fromisoformat),
        (date, date.isoformat, date.fromisoformat),
        (time, time.isoformat, time.fromisoformat),
        (timedelta, timedelta.total_seconds, lambda s: timedelta(seconds=s)),
    ]
    for typ, encode, decode in builtins:
        TypeCodecs.register(typ, encode=encode, decode=decode)


def _decode_base64(text: str) -> bytes:
    return base64.b64decode(text, validate=True)


_register_builtins()


def to_timestamp(value: datetime) -> int:
    """Epoch milliseconds of a datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return round(value.timestamp() * 1000)


def from_timestamp(millis: float) -> datetime:
    """Aware UTC datetime from epoch milliseconds."""
    return datetime.fromtimestamp(millis / 1000, tz=UTC)
