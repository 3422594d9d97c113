"""Metadata store: annotation records keyed by class and member.

Records reach the store through explicit registration:

    @json_class(JsonTypeInfo(), JsonSubTypes((NamedType(lambda: Dog, "dog"),)))
    @dataclass
    class Animal:
        name: str
        tags: list[str] = json_field(JsonInclude(Include.NON_EMPTY), default_factory=list)

        @json_method(JsonAnyGetter())
        def extras(self) -> dict[str, Any]: ...

A class is scanned once, on first query, and the resulting ClassMetadata is
cached. Scanning validates the records and raises ConfigurationError for
combinations that can never work.
"""

from __future__ import annotations

import dataclasses
import inspect
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Final

from jsonbind.annotations import (
    DEFAULT_CREATOR,
    Annotation,
    JsonAnyGetter,
    JsonAnySetter,
    JsonBackReference,
    JsonClassType,
    JsonCreator,
    JsonGetter,
    JsonIgnoreProperties,
    JsonManagedReference,
    JsonNaming,
    JsonProperty,
    JsonSetter,
    JsonSubTypes,
    JsonTypeId,
    JsonTypeName,
    JsonValue,
)
from jsonbind.errors import ConfigurationError, member_path
from jsonbind.naming import translate
from jsonbind.schema import class_hints, extract_type, is_class_var
from jsonbind.types import AnyType, TypeDef

METADATA_KEY: Final = "jsonbind"
_FUNC_ATTR: Final = "__jsonbind__"

# Class-level kinds that describe one class only and are not inherited.
_NOT_INHERITED: frozenset[type[Annotation]] = frozenset({JsonTypeName, JsonCreator})

# Method-level kinds that make a method a member.
_METHOD_MEMBER_KINDS = (
    JsonGetter,
    JsonSetter,
    JsonProperty,
    JsonAnyGetter,
    JsonAnySetter,
    JsonValue,
    JsonTypeId,
)

MISSING: Final = dataclasses.MISSING


@dataclass(frozen=True)
class MemberInfo:
    """A member of a mapped class: field, property or annotated method."""

    name: str
    type: TypeDef
    annotations: tuple[Annotation, ...] = ()
    default: Any = field(default_factory=lambda: MISSING)
    default_factory: Callable[[], Any] | None = None
    is_method: bool = False

    def find[A: Annotation](self, kind: type[A]) -> A | None:
        """First record of ``kind`` on this member."""
        for record in self.annotations:
            if isinstance(record, kind):
                return record
        return None

    def has(self, kind: type[Annotation]) -> bool:
        """True if the member carries a record of ``kind``."""
        return self.find(kind) is not None

    def default_value(self) -> Any:
        """The declared default, or MISSING."""
        if self.default_factory is not None:
            return self.default_factory()
        return self.default

    def read(self, obj: Any) -> Any:
        """Read the member value from ``obj``, calling methods."""
        value = getattr(obj, self.name)
        return value() if self.is_method else value


@dataclass(frozen=True)
class CreatorInfo:
    """A creator: the JsonCreator record and the factory it decorates."""

    record: JsonCreator
    factory: str | None = None  # None means the class itself


@dataclass(frozen=True)
class ClassMetadata:
    """Scanned, validated metadata of one class."""

    cls: type
    members: tuple[MemberInfo, ...]
    annotations: tuple[Annotation, ...]
    creators: dict[str, CreatorInfo] = field(default_factory=dict)

    def find[A: Annotation](self, kind: type[A]) -> A | None:
        """Nearest class-level record of ``kind`` (own class first, then bases)."""
        for record in self.annotations:
            if isinstance(record, kind):
                return record
        return None

    def find_all[A: Annotation](self, kind: type[A]) -> Iterator[A]:
        """All class-level records of ``kind``, nearest first."""
        return (r for r in self.annotations if isinstance(r, kind))

    def member(self, name: str) -> MemberInfo | None:
        """Member by attribute name."""
        for member in self.members:
            if member.name == name:
                return member
        return None

    def member_with(self, kind: type[Annotation]) -> MemberInfo | None:
        """The member carrying a unique kind such as JsonAnyGetter."""
        for member in self.members:
            if member.has(kind):
                return member
        return None

    def json_name(self, member: MemberInfo) -> str:
        """JSON property name of ``member``.

        Explicit JsonProperty/JsonGetter/JsonSetter names win; otherwise the
        class naming strategy is applied to the attribute name.
        """
        for kind in (JsonProperty, JsonGetter, JsonSetter):
            record = member.find(kind)
            if record is not None and record.value:
                return record.value
        naming = self.find(JsonNaming)
        if naming is not None:
            return translate(member.name, naming.strategy)
        return member.name

    def ignored_names(self) -> frozenset[str]:
        """Names listed by JsonIgnoreProperties."""
        record = self.find(JsonIgnoreProperties)
        return frozenset(record.values) if record else frozenset()


class MetadataStore:
    """Registry of annotation records with a read-only query surface."""

    def __init__(self) -> None:
        self._explicit: dict[type, dict[str | None, list[Annotation]]] = {}
        self._cache: dict[type, ClassMetadata] = {}
        self._lock = threading.RLock()

    def register(
        self,
        cls: type,
        *records: Annotation,
        member: str | None = None,
    ) -> None:
        """Attach records to a class (``member=None``) or one of its members.

        Raises:
            TypeError: If a record is not an Annotation instance.

        """
        for record in records:
            if not isinstance(record, Annotation):
                msg = f"Expected an Annotation record, got {record!r}"
                raise TypeError(msg)
        with self._lock:
            self._explicit.setdefault(cls, {}).setdefault(member, []).extend(records)
            # Subclasses inherit records, so their cached scans go stale too
            for cached in list(self._cache):
                if issubclass(cached, cls):
                    del self._cache[cached]

    def metadata(self, cls: type) -> ClassMetadata:
        """Scanned metadata for ``cls``.

        Raises:
            ConfigurationError: If the records attached to ``cls`` are invalid.

        """
        cached = self._cache.get(cls)
        if cached is not None:
            return cached
        with self._lock:
            if (cached := self._cache.get(cls)) is None:
                cached = self._scan(cls)
                self._cache[cls] = cached
        return cached

    def get_members(self, cls: type) -> tuple[MemberInfo, ...]:
        """Members of ``cls`` in declaration order, bases first."""
        return self.metadata(cls).members

    def get_annotations(
        self,
        cls: type,
        member: str | None = None,
    ) -> tuple[Annotation, ...]:
        """Class-level records (``member=None``) or the records of one member."""
        meta = self.metadata(cls)
        if member is None:
            return meta.annotations
        info = meta.member(member)
        return info.annotations if info is not None else ()

    def find[A: Annotation](
        self,
        cls: type,
        kind: type[A],
        member: str | None = None,
    ) -> A | None:
        """First record of ``kind`` on the class or one of its members."""
        for record in self.get_annotations(cls, member):
            if isinstance(record, kind):
                return record
        return None

    def clear(self) -> None:
        """Drop explicit registrations and cached scans."""
        with self._lock:
            self._explicit.clear()
            self._cache.clear()

    # Scanning

    def _scan(self, cls: type) -> ClassMetadata:
        hints = class_hints(cls)
        members: dict[str, MemberInfo] = {}

        for name, records, default, factory in self._attribute_members(cls, hints):
            records = records + self._explicit_records(cls, name)
            members[name] = MemberInfo(
                name=name,
                type=_member_type(records, hints.get(name, AnyType())),
                annotations=records,
                default=default,
                default_factory=factory,
            )

        creators: dict[str, CreatorInfo] = {}
        for name, func_records in _method_records(cls):
            records = func_records + self._explicit_records(cls, name)
            creator_records = [r for r in records if isinstance(r, JsonCreator)]
            for record in creator_records:
                _add_creator(cls, creators, CreatorInfo(record, factory=name))
            if any(isinstance(r, _METHOD_MEMBER_KINDS) for r in records):
                members[name] = MemberInfo(
                    name=name,
                    type=_member_type(records, AnyType()),
                    annotations=tuple(
                        r for r in records if not isinstance(r, JsonCreator)
                    ),
                    is_method=callable(getattr(cls, name, None)),
                )

        # Explicit registrations for names not found by reflection
        for klass in cls.__mro__:
            for name, records in self._explicit.get(klass, {}).items():
                if name is None or name in members:
                    continue
                full = self._explicit_records(cls, name)
                members[name] = MemberInfo(
                    name=name,
                    type=_member_type(full, hints.get(name, AnyType())),
                    annotations=full,
                    is_method=callable(getattr(cls, name, None)),
                )

        annotations = self._class_records(cls)
        for record in annotations:
            if isinstance(record, JsonCreator) and record.name not in creators:
                _add_creator(cls, creators, CreatorInfo(record))

        meta = ClassMetadata(
            cls=cls,
            members=tuple(members.values()),
            annotations=annotations,
            creators=creators,
        )
        _validate(meta)
        return meta

    def _attribute_members(
        self,
        cls: type,
        hints: dict[str, Any],
    ) -> Iterator[tuple[str, tuple[Annotation, ...], Any, Any]]:
        """Yield (name, records, default, default_factory) for data members."""
        if dataclasses.is_dataclass(cls):
            for f in dataclasses.fields(cls):
                if f.name.startswith("_"):
                    continue
                factory = (
                    f.default_factory
                    if f.default_factory is not dataclasses.MISSING
                    else None
                )
                yield f.name, tuple(f.metadata.get(METADATA_KEY, ())), f.default, factory
            return

        seen: set[str] = set()
        for klass in reversed(cls.__mro__):
            if klass is object:
                continue
            for name in inspect.get_annotations(klass):
                if name in seen or name.startswith("_"):
                    continue
                if is_class_var(hints.get(name)):
                    continue
                seen.add(name)
                yield name, (), getattr(cls, name, MISSING), None

    def _explicit_records(self, cls: type, member: str) -> tuple[Annotation, ...]:
        """Explicit member records along the MRO, nearest class first."""
        records: list[Annotation] = []
        for klass in cls.__mro__:
            records.extend(self._explicit.get(klass, {}).get(member, ()))
        return tuple(records)

    def _class_records(self, cls: type) -> tuple[Annotation, ...]:
        """Class-level records along the MRO, nearest class first."""
        records: list[Annotation] = []
        for klass in cls.__mro__:
            for record in self._explicit.get(klass, {}).get(None, ()):
                if klass is cls or type(record) not in _NOT_INHERITED:
                    records.append(record)
        return tuple(records)


def _member_type(records: tuple[Annotation, ...], hint: Any) -> TypeDef:
    """Descriptor from JsonClassType if present, else from the annotation."""
    for record in records:
        if isinstance(record, JsonClassType):
            return extract_type(record.value)
    if is_class_var(hint):
        return AnyType()
    return extract_type(hint)


def _method_records(cls: type) -> Iterator[tuple[str, tuple[Annotation, ...]]]:
    """Yield (name, records) for methods decorated with json_method."""
    seen: set[str] = set()
    for klass in cls.__mro__:
        for name, attr in vars(klass).items():
            if name in seen:
                continue
            seen.add(name)
            func = _unwrap(attr)
            records = getattr(func, _FUNC_ATTR, None)
            if records:
                yield name, tuple(records)


def _unwrap(attr: Any) -> Any:
    """Underlying function of a classmethod, staticmethod or property."""
    if isinstance(attr, classmethod | staticmethod):
        return attr.__func__
    if isinstance(attr, property):
        return attr.fget
    return attr


def _add_creator(cls: type, creators: dict[str, CreatorInfo], info: CreatorInfo) -> None:
    name = info.record.name
    if name in creators:
        msg = f"Duplicate @JsonCreator named '{name}' on {member_path(cls)}"
        raise ConfigurationError(msg)
    creators[name] = info


def _validate(meta: ClassMetadata) -> None:
    """Reject record combinations that can never work."""
    for kind in Annotation.registry.values():
        if not kind.unique:
            continue
        carriers = [m.name for m in meta.members if m.has(kind)]
        if len(carriers) > 1:
            msg = (
                f"Multiple @{kind.kind}() members on {member_path(meta.cls)}: "
                f"{carriers}. At most one is allowed."
            )
            raise ConfigurationError(msg)

    for kind in (JsonManagedReference, JsonBackReference):
        names: dict[str, str] = {}
        for member in meta.members:
            record = member.find(kind)
            if record is None:
                continue
            if record.value in names:
                msg = (
                    f"Multiple @{kind.kind}() members named '{record.value}' on "
                    f"{member_path(meta.cls)}: "
                    f"'{names[record.value]}' and '{member.name}'"
                )
                raise ConfigurationError(msg)
            names[record.value] = member.name

    for member in meta.members:
        if member.has(JsonManagedReference) and member.has(JsonBackReference):
            msg = (
                f"{member_path(meta.cls, member.name)} cannot be both a managed "
                "and a back reference"
            )
            raise ConfigurationError(msg)


# Registration helpers

default_store = MetadataStore()


def annotate(
    cls: type,
    *records: Annotation,
    member: str | None = None,
    store: MetadataStore | None = None,
) -> None:
    """Register records on ``cls`` or one of its members."""
    (store or default_store).register(cls, *records, member=member)


def json_class[C: type](
    *records: Annotation,
    store: MetadataStore | None = None,
) -> Callable[[C], C]:
    """Class decorator attaching class-level records."""

    def decorate(cls: C) -> C:
        (store or default_store).register(cls, *records)
        return cls

    return decorate


def json_field(*records: Annotation, **kwargs: Any) -> Any:
    """``dataclasses.field`` carrying member records in its metadata."""
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[METADATA_KEY] = tuple(metadata.get(METADATA_KEY, ())) + records
    return dataclasses.field(metadata=metadata, **kwargs)


def json_method[F](*records: Annotation) -> Callable[[F], F]:
    """Method decorator attaching member records (or JsonCreator) to a method.

    Works above ``@classmethod``, ``@staticmethod`` and ``@property``.
    """

    def decorate(attr: F) -> F:
        func = _unwrap(attr)
        existing = getattr(func, _FUNC_ATTR, ())
        setattr(func, _FUNC_ATTR, tuple(existing) + records)
        return attr

    return decorate


def subtypes_of(cls: type, store: MetadataStore | None = None) -> list[tuple[type, str | None]]:
    """Declared subtypes of ``cls``: JsonSubTypes entries, then named subclasses."""
    store = store or default_store
    found: list[tuple[type, str | None]] = []
    for record in store.metadata(cls).find_all(JsonSubTypes):
        found.extend((entry.resolve(), entry.name) for entry in record.types)
    pending = list(cls.__subclasses__())
    while pending:
        sub = pending.pop(0)
        pending.extend(sub.__subclasses__())
        type_name = store.find(sub, JsonTypeName)
        if type_name is not None:
            found.append((sub, type_name.value))
    return found


__all__ = [
    "DEFAULT_CREATOR",
    "METADATA_KEY",
    "MISSING",
    "ClassMetadata",
    "CreatorInfo",
    "MemberInfo",
    "MetadataStore",
    "annotate",
    "default_store",
    "json_class",
    "json_field",
    "json_method",
    "subtypes_of",
]
