"""Serialization transformer: object graph to JSON-compatible builtins."""

from __future__ import annotations

import datetime
import enum
import json
import logging
import math
import sys
from collections.abc import Callable, Mapping, Sequence
from collections.abc import Set as AbstractSet
from typing import Any
from zoneinfo import ZoneInfo

from jsonbind.annotations import (
    FilterType,
    IdentityInclude,
    Include,
    JsonAnyGetter,
    JsonAnySetter,
    JsonAppend,
    JsonBackReference,
    JsonFilter,
    JsonFormat,
    JsonIdentityInfo,
    JsonIdentityReference,
    JsonIgnore,
    JsonIgnoreProperties,
    JsonIgnoreType,
    JsonInclude,
    JsonProperty,
    JsonPropertyOrder,
    JsonRawValue,
    JsonRootName,
    JsonSerialize,
    JsonSetter,
    JsonTypeId,
    JsonUnwrapped,
    JsonValue,
    JsonView,
    ObjectIdGenerator,
    PropertyAccess,
    PropertyFilter,
    ReferenceFormat,
    Shape,
    TypeInclude,
)
from jsonbind.codecs import TypeCodecs, to_timestamp
from jsonbind.context import SerializationContext
from jsonbind.errors import ConfigurationError, DataShapeError, member_path
from jsonbind.features import (
    MAX_SAFE_INTEGER,
    MIN_SAFE_INTEGER,
    SerializationFeature,
)
from jsonbind.identity import SerializationIdentities, generate_id, identity_scope
from jsonbind.metadata import MISSING, ClassMetadata, MemberInfo, MetadataStore
from jsonbind.schema import extract_type
from jsonbind.type_resolver import TypeResolver
from jsonbind.types import (
    AnyType,
    DictType,
    TupleType,
    TypeDef,
    element_of,
    strip_optional,
)

_SCALARS = (str, int, float, bool)
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


class _CallState:
    """Mutable state of one serialization call."""

    def __init__(self) -> None:
        self.identities = SerializationIdentities()
        self.path: set[int] = set()


class Serializer:
    """Walks an object graph and produces a JSON-compatible value tree.

    The serializer itself is stateless; every call to ``serialize`` gets a
    fresh identity table and ancestor path.
    """

    def __init__(
        self,
        store: MetadataStore | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    def serialize(
        self,
        value: Any,
        context: SerializationContext | None = None,
        declared: Any = None,
    ) -> Any:
        """Convert ``value`` to JSON-compatible builtins.

        Args:
            value: Root of the object graph.
            context: Options for this call; defaults apply when omitted.
            declared: Static type of the root (annotation or TypeDef), used for
                null defaults and container element types.

        Returns:
            A tree of dict, list, str, int, float, bool and None.

        Raises:
            ConfigurationError: If metadata on a reached class is invalid.
            DataShapeError: On a self reference the features do not absorb, or
                invalid raw JSON text.

        """
        context = context or SerializationContext()
        store = self.store or context.store
        walk = _Walk(store, self.logger)
        typedef = extract_type(declared) if declared is not None else AnyType()
        result = walk.value(value, typedef, context, _CallState())

        if context.is_enabled(SerializationFeature.WRAP_ROOT_VALUE) and _is_object(value):
            cls = type(value)
            root = store.find(cls, JsonRootName)
            result = {root.value if root else cls.__name__: result}
        return result


class _Walk:
    """Recursive descent over one graph."""

    def __init__(self, store: MetadataStore, logger: logging.Logger) -> None:
        self.store = store
        self.logger = logger
        self.types = TypeResolver(store)

    # Dispatch

    def value(
        self,
        value: Any,
        declared: TypeDef,
        ctx: SerializationContext,
        state: _CallState,
        member: MemberInfo | None = None,
    ) -> Any:
        """Serialize any value after running the ad-hoc serializers."""
        for custom in ctx.serializers:
            if custom.type is None or isinstance(value, custom.type):
                value = custom.mapper(value, ctx)
        return self.dispatch(value, declared, ctx, state, member)

    def dispatch(
        self,
        value: Any,
        declared: TypeDef,
        ctx: SerializationContext,
        state: _CallState,
        member: MemberInfo | None = None,
    ) -> Any:
        if value is None:
            return ctx.null_substitute(declared)
        if isinstance(value, enum.Enum):
            return self.value(value.value, AnyType(), ctx, state)
        if isinstance(value, float):
            return self._float(value, ctx)
        if isinstance(value, _SCALARS):
            return value
        if (codec := TypeCodecs.lookup(type(value))) is not None:
            if isinstance(value, datetime.datetime) and ctx.is_enabled(
                SerializationFeature.WRITE_DATES_AS_TIMESTAMPS,
            ):
                return to_timestamp(value)
            return codec[0](value)
        if isinstance(value, Mapping):
            return self._guarded(value, ctx, state, self._mapping, declared, member)
        if isinstance(value, Sequence | AbstractSet) and not isinstance(value, bytes | bytearray):
            return self._guarded(value, ctx, state, self._sequence, declared, member)
        return self._object(value, ctx, state)

    def _float(self, value: float, ctx: SerializationContext) -> float | int | None:
        if math.isnan(value):
            if ctx.is_enabled(SerializationFeature.WRITE_NAN_AS_ZERO):
                return 0
            return None
        if math.isinf(value) and value > 0:
            if ctx.is_enabled(SerializationFeature.WRITE_POSITIVE_INFINITY_AS_MAX_SAFE_INTEGER):
                return MAX_SAFE_INTEGER
            if ctx.is_enabled(SerializationFeature.WRITE_POSITIVE_INFINITY_AS_MAX_VALUE):
                return sys.float_info.max
            return None
        if math.isinf(value):
            if ctx.is_enabled(SerializationFeature.WRITE_NEGATIVE_INFINITY_AS_MIN_SAFE_INTEGER):
                return MIN_SAFE_INTEGER
            if ctx.is_enabled(SerializationFeature.WRITE_NEGATIVE_INFINITY_AS_MIN_VALUE):
                return -sys.float_info.max
            return None
        return value

    def _guarded(
        self,
        value: Any,
        ctx: SerializationContext,
        state: _CallState,
        walk: Callable[..., Any],
        *args: Any,
    ) -> Any:
        """Run ``walk`` with ``value`` on the ancestor path, rejecting re-entry."""
        key = id(value)
        if key in state.path:
            return self._self_reference(value, ctx)
        state.path.add(key)
        try:
            return walk(value, ctx, state, *args)
        finally:
            state.path.discard(key)

    def _self_reference(self, value: Any, ctx: SerializationContext) -> None:
        if not ctx.is_enabled(SerializationFeature.FAIL_ON_SELF_REFERENCES) and ctx.is_enabled(
            SerializationFeature.WRITE_SELF_REFERENCES_AS_NULL,
        ):
            self.logger.debug("Writing self reference to %s as null", type(value).__name__)
            return None
        msg = (
            f"Direct self-reference leading to cycle (through reference chain: "
            f"{member_path(type(value))})"
        )
        raise DataShapeError(msg)

    # Containers

    def _mapping(
        self,
        value: Mapping[Any, Any],
        ctx: SerializationContext,
        state: _CallState,
        declared: TypeDef,
        member: MemberInfo | None,
    ) -> dict[str, Any]:
        typedef = strip_optional(declared)
        value_type = typedef.value if isinstance(typedef, DictType) else AnyType()
        hooks = member.find(JsonSerialize) if member else None
        include = member.find(JsonInclude) if member else None

        items = [(self._key(k, hooks, ctx), v) for k, v in value.items()]
        if ctx.is_enabled(SerializationFeature.ORDER_MAP_ENTRIES_BY_KEYS):
            items.sort(key=lambda item: item[0])

        result: dict[str, Any] = {}
        for key, item in items:
            if include and not _passes(include.content, include.content_filter, item):
                continue
            if hooks and hooks.content_using and item is not None:
                item = hooks.content_using(item, ctx)
            result[key] = self.value(item, value_type, ctx, state)
        return result

    def _key(self, key: Any, hooks: JsonSerialize | None, ctx: SerializationContext) -> str:
        if hooks and hooks.key_using:
            key = hooks.key_using(key, ctx)
        if isinstance(key, str):
            return key
        if isinstance(key, enum.Enum):
            key = key.value
        if isinstance(key, bool) or key is None:
            return json.dumps(key)
        if (codec := TypeCodecs.lookup(type(key))) is not None:
            return str(codec[0](key))
        return str(key)

    def _sequence(
        self,
        value: Sequence[Any] | AbstractSet[Any],
        ctx: SerializationContext,
        state: _CallState,
        declared: TypeDef,
        member: MemberInfo | None,
    ) -> list[Any]:
        typedef = strip_optional(declared)
        hooks = member.find(JsonSerialize) if member else None
        include = member.find(JsonInclude) if member else None

        result = []
        for index, item in enumerate(value):
            if include and not _passes(include.content, include.content_filter, item):
                continue
            if hooks and hooks.content_using and item is not None:
                item = hooks.content_using(item, ctx)
            if isinstance(typedef, TupleType):
                item_type = typedef.element_at(index)
            else:
                item_type = element_of(typedef)
            result.append(self.value(item, item_type, ctx, state))
        return result

    # Objects

    def _object(self, obj: Any, ctx: SerializationContext, state: _CallState) -> Any:
        cls = type(obj)
        ctx = ctx.for_class(cls)
        meta = self.store.metadata(cls)

        custom = meta.find(JsonSerialize)
        if custom is not None and custom.using is not None:
            return self.dispatch(custom.using(obj, ctx), AnyType(), ctx, state)

        json_value = meta.member_with(JsonValue)
        if json_value is not None:
            return self._guarded(
                obj,
                ctx,
                state,
                lambda o, c, s: self.value(json_value.read(o), json_value.type, c, s),
            )

        info = meta.find(JsonIdentityInfo)
        if info is None:
            return self._guarded(obj, ctx, state, self._full_object, meta, None, None)

        scope = identity_scope(cls, info, self.store)
        seen, object_id = state.identities.lookup(scope, obj)
        if seen:
            return self._reference(object_id, info, ctx, state)
        object_id = generate_id(obj, info, meta)
        state.identities.register(scope, obj, object_id)
        always = meta.find(JsonIdentityReference)
        if always is not None and always.always_as_id:
            return self._reference(object_id, info, ctx, state)
        return self._full_object(obj, ctx, state, meta, info, object_id)

    def _reference(
        self,
        object_id: Any,
        info: JsonIdentityInfo,
        ctx: SerializationContext,
        state: _CallState,
    ) -> Any:
        written = self.value(object_id, AnyType(), ctx, state)
        if info.reference is ReferenceFormat.PROPERTY:
            return {info.property: written}
        return written

    def _full_object(
        self,
        obj: Any,
        ctx: SerializationContext,
        state: _CallState,
        meta: ClassMetadata,
        info: JsonIdentityInfo | None,
        object_id: Any,
    ) -> Any:
        props = self._properties(obj, meta, ctx, state)

        if info is not None:
            written_id = self.value(object_id, AnyType(), ctx, state)
            if info.include is IdentityInclude.WRAPPER_OBJECT:
                props = {"id": written_id, "item": props}
            elif info.generator is not ObjectIdGenerator.PROPERTY:
                props = {info.property: written_id, **props}

        type_info = self.types.type_info(meta.cls)
        if type_info is None:
            return props
        type_id = self.types.id_for(obj, type_info, ctx)
        match type_info.include:
            case TypeInclude.WRAPPER_OBJECT:
                return {type_id: props}
            case TypeInclude.WRAPPER_ARRAY:
                return [type_id, props]
            case _:
                props[type_info.property] = type_id
                return props

    def _properties(
        self,
        obj: Any,
        meta: ClassMetadata,
        ctx: SerializationContext,
        state: _CallState,
    ) -> dict[str, Any]:
        """Serialized members, any-getter entries and appended attributes."""
        class_filter = self._class_filter(meta, ctx)
        result: dict[str, Any] = {}

        for member in self._ordered(obj, meta, ctx):
            if self._ignored(member, meta):
                continue
            if not ctx.view_allows(_views(member, meta)):
                continue

            if member.has(JsonAnyGetter):
                self._any_getter(obj, member, meta, ctx, state, class_filter, result)
                continue

            name = meta.json_name(member)
            if class_filter is not None and _filtered_out(class_filter, name, member.name):
                continue

            value = member.read(obj)
            if value is not None and self._ignored_type(value):
                continue
            include = member.find(JsonInclude) or meta.find(JsonInclude)
            if include is not None:
                if not _passes(include.value, include.value_filter, value, member):
                    continue
            elif not _passes(ctx.default_inclusion, None, value, member):
                continue

            unwrapped = member.find(JsonUnwrapped)
            if unwrapped is not None:
                self._unwrap(value, member, unwrapped, meta, ctx, state, result)
                continue

            result[name] = self._member_value(value, member, meta, ctx, state)

        append = meta.find(JsonAppend)
        if append is not None:
            extra = self._appended(append, meta, ctx, state)
            result = {**extra, **result} if append.prepend else {**result, **extra}
        return result

    def _ordered(
        self,
        obj: Any,
        meta: ClassMetadata,
        ctx: SerializationContext,
    ) -> list[MemberInfo]:
        members = list(meta.members)
        if not members and hasattr(obj, "__dict__"):
            # Classes without annotations expose their instance attributes
            members = [
                MemberInfo(name=name, type=AnyType())
                for name in vars(obj)
                if not name.startswith("_")
            ]

        order = meta.find(JsonPropertyOrder)
        explicit: list[MemberInfo] = []
        if order is not None:
            for name in order.value:
                for member in members:
                    if member not in explicit and name in (member.name, meta.json_name(member)):
                        explicit.append(member)
                        break
        rest = [m for m in members if m not in explicit]
        if (order is not None and order.alphabetic) or ctx.is_enabled(
            SerializationFeature.SORT_PROPERTIES_ALPHABETICALLY,
        ):
            rest.sort(key=meta.json_name)
        return explicit + rest

    def _ignored(self, member: MemberInfo, meta: ClassMetadata) -> bool:
        """True for members that are never written."""
        if member.has(JsonIgnore) or member.has(JsonBackReference):
            return True
        if member.is_method and (member.has(JsonSetter) or member.has(JsonAnySetter)):
            return True
        if member.has(JsonAnySetter) and not member.has(JsonAnyGetter):
            return True
        if member.has(JsonTypeId):
            # Written as the type id instead
            return self.types.type_info(meta.cls) is not None
        prop = member.find(JsonProperty)
        if prop is not None and prop.access is PropertyAccess.WRITE_ONLY:
            return True
        ignore = meta.find(JsonIgnoreProperties)
        if ignore is not None and (
            member.name in ignore.values or meta.json_name(member) in ignore.values
        ):
            return not (ignore.allow_getters and member.is_method)
        return False

    def _ignored_type(self, value: Any) -> bool:
        if not _is_object(value):
            return False
        return self.store.find(type(value), JsonIgnoreType) is not None

    def _class_filter(
        self,
        meta: ClassMetadata,
        ctx: SerializationContext,
    ) -> PropertyFilter | None:
        record = meta.find(JsonFilter)
        if record is None:
            return None
        return ctx.filters.get(record.value)

    def _any_getter(
        self,
        obj: Any,
        member: MemberInfo,
        meta: ClassMetadata,
        ctx: SerializationContext,
        state: _CallState,
        class_filter: PropertyFilter | None,
        result: dict[str, Any],
    ) -> None:
        extra = member.read(obj)
        if extra is None:
            return
        if not isinstance(extra, Mapping):
            msg = (
                f"@JsonAnyGetter() {member_path(meta.cls, member.name)} must return "
                f"a mapping, got {type(extra).__name__}"
            )
            raise ConfigurationError(msg)
        ignored = meta.ignored_names()
        include = meta.find(JsonInclude)
        for key, value in extra.items():
            key = str(key)
            if key in ignored:
                continue
            if class_filter is not None and _filtered_out(class_filter, key, key):
                continue
            if include is not None and not _passes(include.value, include.value_filter, value):
                continue
            result[key] = self.value(value, AnyType(), ctx, state)

    def _unwrap(
        self,
        value: Any,
        member: MemberInfo,
        record: JsonUnwrapped,
        meta: ClassMetadata,
        ctx: SerializationContext,
        state: _CallState,
        result: dict[str, Any],
    ) -> None:
        if value is None:
            return
        if self.types.type_info(type(value)) is not None:
            msg = (
                "Unwrapped property requires use of type information: cannot "
                f"serialize (through reference chain: {member_path(meta.cls, member.name)})"
            )
            raise ConfigurationError(msg)
        written = self.value(value, member.type, ctx, state)
        if not isinstance(written, dict):
            result[meta.json_name(member)] = written
            return
        for key, item in written.items():
            result[f"{record.prefix}{key}{record.suffix}"] = item

    def _appended(
        self,
        append: JsonAppend,
        meta: ClassMetadata,
        ctx: SerializationContext,
        state: _CallState,
    ) -> dict[str, Any]:
        extra: dict[str, Any] = {}
        for attr in append.attrs:
            if attr.value not in ctx.attributes:
                if attr.required:
                    msg = (
                        f'Missing @JsonAppend() required attribute "{attr.value}" '
                        f"for {member_path(meta.cls)}"
                    )
                    raise ConfigurationError(msg)
                value = None
            else:
                value = ctx.attributes[attr.value]
            if not _passes(attr.include, None, value):
                continue
            extra[attr.prop_name or attr.value] = self.value(value, AnyType(), ctx, state)
        return extra

    def _member_value(
        self,
        value: Any,
        member: MemberInfo,
        meta: ClassMetadata,
        ctx: SerializationContext,
        state: _CallState,
    ) -> Any:
        hooks = member.find(JsonSerialize)
        if value is None:
            if hooks is not None and hooks.nulls_using is not None:
                return hooks.nulls_using(ctx)
            return ctx.null_substitute(member.type)
        if hooks is not None and hooks.using is not None:
            return self.value(hooks.using(value, ctx), AnyType(), ctx, state)

        if member.has(JsonRawValue):
            return _raw(value, meta, member)

        fmt = member.find(JsonFormat)
        if fmt is not None and fmt.shape is not Shape.ANY:
            written = self._format(value, fmt, member, meta, ctx, state)
        else:
            written = self.value(value, member.type, ctx, state, member)

        record = member.find(JsonFilter)
        if record is not None and isinstance(written, dict):
            member_filter = ctx.filters.get(record.value)
            if member_filter is not None:
                written = {
                    k: v for k, v in written.items() if not _filtered_out(member_filter, k, k)
                }
        return written

    def _format(
        self,
        value: Any,
        fmt: JsonFormat,
        member: MemberInfo,
        meta: ClassMetadata,
        ctx: SerializationContext,
        state: _CallState,
    ) -> Any:
        """Apply a JsonFormat shape to a member value."""
        match fmt.shape:
            case Shape.STRING:
                return self._format_string(value, fmt, member, meta, ctx, state)
            case Shape.BOOLEAN:
                return bool(value)
            case Shape.NUMBER_INT:
                if isinstance(value, datetime.datetime):
                    return to_timestamp(value)
                return int(value)
            case Shape.NUMBER_FLOAT:
                if isinstance(value, datetime.datetime):
                    return float(to_timestamp(value))
                return float(value)

        written = self.value(value, member.type, ctx, state, member)
        match fmt.shape:
            case Shape.ARRAY:
                if isinstance(value, Mapping):
                    return [[k, v] for k, v in written.items()]
                if isinstance(written, dict):
                    return list(written.values())
                if isinstance(written, list):
                    return written
                return [written]
            case Shape.OBJECT:
                if isinstance(written, list):
                    return {str(i): item for i, item in enumerate(written)}
                return written
            case Shape.SCALAR:
                if written is None or isinstance(written, _SCALARS):
                    return written
                return None
        return written

    def _format_string(
        self,
        value: Any,
        fmt: JsonFormat,
        member: MemberInfo,
        meta: ClassMetadata,
        ctx: SerializationContext,
        state: _CallState,
    ) -> str:
        if isinstance(value, datetime.date | datetime.time):
            if fmt.timezone and isinstance(value, datetime.datetime) and value.tzinfo:
                value = value.astimezone(ZoneInfo(fmt.timezone))
            if ctx.date_formatter is not None:
                return ctx.date_formatter(value, fmt.pattern)
            if fmt.pattern is None:
                msg = (
                    f"{member_path(meta.cls, member.name)} uses a STRING date shape "
                    "without a pattern or a context date formatter"
                )
                raise ConfigurationError(msg)
            return value.strftime(fmt.pattern)
        if isinstance(value, bool):
            return json.dumps(value)
        if isinstance(value, int | float):
            if fmt.radix is not None:
                return _to_radix(int(value), fmt.radix)
            if fmt.to_exponential is not None:
                return f"{value:.{fmt.to_exponential}e}"
            if fmt.to_fixed is not None:
                return f"{value:.{fmt.to_fixed}f}"
            if fmt.to_precision is not None:
                return f"{value:.{fmt.to_precision}g}"
            return str(value)
        written = self.value(value, member.type, ctx, state, member)
        return written if isinstance(written, str) else json.dumps(written)


def _is_object(value: Any) -> bool:
    """True for instances of user classes (not builtins, enums or codec types)."""
    if value is None or isinstance(value, (*_SCALARS, enum.Enum, Mapping, Sequence, AbstractSet)):
        return False
    return TypeCodecs.lookup(type(value)) is None


def _views(member: MemberInfo, meta: ClassMetadata) -> tuple[Any, ...] | None:
    record = member.find(JsonView) or meta.find(JsonView)
    return record.views if record is not None else None


def _filtered_out(filt: PropertyFilter, name: str, attr: str) -> bool:
    match filt.type:
        case FilterType.SERIALIZE_ALL_EXCEPT:
            return name in filt.values or attr in filt.values
        case FilterType.FILTER_OUT_ALL_EXCEPT:
            return name not in filt.values and attr not in filt.values
    return False


def is_empty(value: Any) -> bool:
    """Null, or a string/collection of length zero."""
    if value is None:
        return True
    if isinstance(value, str | bytes | Mapping | Sequence | AbstractSet):
        return len(value) == 0
    return False


def _passes(
    include: Include,
    value_filter: Any,
    value: Any,
    member: MemberInfo | None = None,
) -> bool:
    """True if ``value`` is written under the inclusion policy."""
    match include:
        case Include.NON_NULL:
            return value is not None
        case Include.NON_EMPTY:
            return not is_empty(value)
        case Include.NON_DEFAULT:
            if is_empty(value):
                return False
            default = member.default_value() if member is not None else MISSING
            if default is not MISSING:
                return value != default
            return not (isinstance(value, int | float | bool) and not value)
        case Include.CUSTOM:
            # The filter returns True for values to leave out
            return value_filter is None or not value_filter(value)
    return True


def _raw(value: Any, meta: ClassMetadata, member: MemberInfo) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        msg = f"{member_path(meta.cls, member.name)} holds invalid raw JSON: {exc}"
        raise DataShapeError(msg) from exc


def _to_radix(number: int, radix: int) -> str:
    if not 2 <= radix <= 36:  # noqa: PLR2004
        msg = f"radix must be between 2 and 36, got {radix}"
        raise ValueError(msg)
    if number == 0:
        return "0"
    sign = "-" if number < 0 else ""
    number = abs(number)
    digits = []
    while number:
        number, rem = divmod(number, radix)
        digits.append(_DIGITS[rem])
    return sign + "".join(reversed(digits))
