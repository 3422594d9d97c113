"""Deserialization transformer: JSON-compatible builtins to an object graph."""

from __future__ import annotations

import datetime
import json
import logging
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from typing import Any

from jsonbind.annotations import (
    CreatorMode,
    IdentityInclude,
    JsonAlias,
    JsonAnyGetter,
    JsonAnySetter,
    JsonBackReference,
    JsonDeserialize,
    JsonFormat,
    JsonGetter,
    JsonIdentityInfo,
    JsonIgnore,
    JsonIgnoreProperties,
    JsonIgnoreType,
    JsonInject,
    JsonManagedReference,
    JsonProperty,
    JsonRawValue,
    JsonRootName,
    JsonSetter,
    JsonTypeId,
    JsonTypeInfo,
    JsonUnwrapped,
    JsonValue,
    JsonView,
    ObjectIdGenerator,
    PropertyAccess,
    ReferenceFormat,
    Shape,
    TypeInclude,
)
from jsonbind.codecs import TypeCodecs, from_timestamp
from jsonbind.context import DeserializationContext
from jsonbind.creators import Creator, CreatorResolver
from jsonbind.errors import ConfigurationError, DataShapeError, member_path
from jsonbind.features import DeserializationFeature
from jsonbind.identity import DeserializationIdentities, Unresolved, id_member, identity_scope
from jsonbind.metadata import MISSING, ClassMetadata, MemberInfo, MetadataStore
from jsonbind.schema import extract_type
from jsonbind.type_resolver import TypeResolver
from jsonbind.types import (
    ARRAY_TYPES,
    AnyType,
    BoolType,
    ClassType,
    DateTimeType,
    DateType,
    DecimalType,
    DictType,
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
    class_of,
    strip_optional,
)

_SCALAR_TYPES: dict[type[TypeDef], type] = {
    IntType: int,
    FloatType: float,
    StrType: str,
    BoolType: bool,
    DecimalType: Decimal,
}
_TRUE_STRINGS = frozenset({"true", "True", "TRUE"})
_FALSE_STRINGS = frozenset({"false", "False", "FALSE"})


class _CallState:
    """Mutable state of one deserialization call."""

    def __init__(self) -> None:
        self.identities = DeserializationIdentities()
        # Instances whose managed members are linked once every id is bound
        self.managed: list[tuple[Any, ClassMetadata]] = []


class Deserializer:
    """Builds an object graph from a JSON value tree and a target type.

    The deserializer itself is stateless; every call to ``deserialize`` gets a
    fresh identity table.
    """

    def __init__(
        self,
        store: MetadataStore | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    def deserialize(
        self,
        data: Any,
        target: Any,
        context: DeserializationContext | None = None,
    ) -> Any:
        """Convert JSON builtins ``data`` into an instance of ``target``.

        Args:
            data: Parsed JSON (dict, list, str, int, float, bool or None).
            target: The type to build, as an annotation or TypeDef.
            context: Options for this call; defaults apply when omitted.

        Returns:
            The materialized value.

        Raises:
            ConfigurationError: If metadata on a reached class is invalid.
            DataShapeError: If the document does not fit the target and the
                governing feature is on.

        """
        context = context or DeserializationContext()
        store = self.store or context.store
        typedef = extract_type(target)
        walk = _Walk(store, self.logger)
        state = _CallState()

        if context.is_enabled(DeserializationFeature.UNWRAP_ROOT_VALUE):
            data = _unwrap_root(data, typedef, store)

        result = walk.value(data, typedef, context, state)
        for instance, meta in state.managed:
            walk.link_back_references(instance, meta)

        unresolved = state.identities.unresolved()
        if unresolved:
            if context.is_enabled(DeserializationFeature.FAIL_ON_UNRESOLVED_OBJECT_IDS):
                ids = ", ".join(f"{scope}:{object_id!r}" for scope, object_id in unresolved)
                msg = f"Unresolved object ids: {ids}"
                raise DataShapeError(msg)
            self.logger.debug("Leaving unresolved object ids as null: %s", unresolved)
        if isinstance(result, Unresolved):
            return None
        return result


def _unwrap_root(data: Any, typedef: TypeDef, store: MetadataStore) -> Any:
    cls = class_of(typedef)
    name = None
    if cls is not None:
        root = store.find(cls, JsonRootName)
        name = root.value if root else cls.__name__
    if not isinstance(data, dict) or len(data) != 1 or (name is not None and name not in data):
        msg = f"Root value is not wrapped in a single '{name}' property"
        raise DataShapeError(msg)
    return next(iter(data.values()))


class _Walk:
    """Recursive descent over one document."""

    def __init__(self, store: MetadataStore, logger: logging.Logger) -> None:
        self.store = store
        self.logger = logger
        self.types = TypeResolver(store)
        self.creators = CreatorResolver(store)

    # Dispatch

    def value(
        self,
        data: Any,
        declared: TypeDef,
        ctx: DeserializationContext,
        state: _CallState,
        member: MemberInfo | None = None,
    ) -> Any:
        """Deserialize any node after running the ad-hoc deserializers."""
        target = _declared_class(declared)
        for custom in ctx.deserializers:
            if custom.type is None or (target is not None and issubclass(target, custom.type)):
                data = custom.mapper(data, ctx)
        cls = class_of(declared)
        if cls is not None and isinstance(data, cls):
            return data
        return self.dispatch(data, declared, ctx, state, member)

    def dispatch(
        self,
        data: Any,
        declared: TypeDef,
        ctx: DeserializationContext,
        state: _CallState,
        member: MemberInfo | None = None,
    ) -> Any:
        typedef = strip_optional(declared)

        if data == "" and not isinstance(typedef, StrType | AnyType) and ctx.is_enabled(
            DeserializationFeature.ACCEPT_EMPTY_STRING_AS_NULL_OBJECT,
        ):
            data = None
        if data == [] and not isinstance(typedef, (*ARRAY_TYPES, AnyType)) and ctx.is_enabled(
            DeserializationFeature.ACCEPT_EMPTY_ARRAY_AS_NULL_OBJECT,
        ):
            data = None
        if data is None:
            return self._null(declared, ctx)

        match typedef:
            case AnyType():
                return data
            case NoneType():
                return None
            case ListType() | SetType() | FrozenSetType() | TupleType():
                return self._array(data, typedef, ctx, state, member)
            case DictType():
                return self._map(data, typedef, ctx, state, member)
            case UnionType():
                return self._union(data, typedef, ctx, state)
            case ClassType(cls=cls) if TypeCodecs.for_descriptor(typedef) is None:
                return self._object(data, cls, ctx, state)
        return self._leaf(data, typedef, ctx)

    def _leaf(self, data: Any, typedef: TypeDef, ctx: DeserializationContext) -> Any:
        """Scalars, enums, literals and codec types."""
        try:
            match typedef:
                case IntType() | FloatType() | StrType() | BoolType() | DecimalType():
                    return self._scalar(data, typedef, ctx)
                case LiteralType(values=values):
                    if data not in values:
                        msg = f"{data!r} is not one of {list(values)}"
                        raise DataShapeError(msg)
                    return data
                case EnumType(cls=enum_cls):
                    return enum_cls(data)
                case DateTimeType() if isinstance(data, int | float) and not isinstance(data, bool):
                    return from_timestamp(data)
            codec = TypeCodecs.for_descriptor(typedef)
            if codec is not None:
                return codec[1](data)
        except (ValueError, TypeError, InvalidOperation) as exc:
            msg = f"Cannot deserialize {data!r} as {typedef.tag}: {exc}"
            raise DataShapeError(msg) from exc
        return data

    def _null(self, declared: TypeDef, ctx: DeserializationContext) -> Any:
        optional = isinstance(declared, UnionType) and any(
            isinstance(option, NoneType) for option in declared.options
        )
        if (
            not optional
            and type(declared) in _SCALAR_TYPES
            and ctx.is_enabled(DeserializationFeature.FAIL_ON_NULL_FOR_PRIMITIVES)
        ):
            msg = f'Cannot map "null" into primitive type {declared.tag}'
            raise DataShapeError(msg)
        return ctx.null_substitute(declared)

    def _scalar(self, data: Any, typedef: TypeDef, ctx: DeserializationContext) -> Any:
        coerce = ctx.is_enabled(DeserializationFeature.ALLOW_COERCION_OF_SCALARS)
        match typedef:
            case IntType():
                if isinstance(data, float) and ctx.is_enabled(DeserializationFeature.ACCEPT_FLOAT_AS_INT):
                    return int(data)
                if isinstance(data, str) and coerce:
                    return int(data)
            case FloatType():
                if isinstance(data, int) and not isinstance(data, bool):
                    return float(data)
                if isinstance(data, str) and coerce:
                    return float(data)
            case BoolType():
                if isinstance(data, str) and coerce:
                    if data in _TRUE_STRINGS:
                        return True
                    if data in _FALSE_STRINGS:
                        return False
                    msg = f"{data!r} is not a boolean"
                    raise DataShapeError(msg)
            case DecimalType():
                return TypeCodecs.get(Decimal)[1](data)
        return data

    # Containers

    def _array(
        self,
        data: Any,
        typedef: TypeDef,
        ctx: DeserializationContext,
        state: _CallState,
        member: MemberInfo | None,
    ) -> Any:
        if not isinstance(data, list):
            msg = f"Expected an array for {typedef.tag}, got {type(data).__name__}"
            raise DataShapeError(msg)
        hooks = member.find(JsonDeserialize) if member else None

        items = []
        for index, item in enumerate(data):
            if hooks is not None and hooks.content_using is not None:
                items.append(hooks.content_using(item, ctx))
                continue
            if isinstance(typedef, TupleType):
                item_type = typedef.element_at(index)
            else:
                item_type = typedef.element
            items.append(self.value(item, item_type, ctx, state))

        match typedef:
            case ListType():
                result = [None if isinstance(v, Unresolved) else v for v in items]
                for index, item in enumerate(items):
                    if isinstance(item, Unresolved):
                        state.identities.defer(item, _setitem(result, index))
                return result
            case SetType():
                result_set = {v for v in items if not isinstance(v, Unresolved)}
                for item in items:
                    if isinstance(item, Unresolved):
                        state.identities.defer(item, result_set.add)
                return result_set
            case FrozenSetType():
                self._unpatchable(items, state, "frozenset")
                return frozenset(v for v in items if not isinstance(v, Unresolved))
        self._unpatchable(items, state, "tuple")
        return tuple(None if isinstance(v, Unresolved) else v for v in items)

    def _unpatchable(self, items: list[Any], state: _CallState, kind: str) -> None:
        """Forward references into immutable containers stay null."""
        for item in items:
            if isinstance(item, Unresolved):
                self.logger.debug("Forward reference %r in a %s stays null", item.id, kind)
                state.identities.defer(item, _ignore)

    def _map(
        self,
        data: Any,
        typedef: DictType,
        ctx: DeserializationContext,
        state: _CallState,
        member: MemberInfo | None,
    ) -> dict[Any, Any]:
        if not isinstance(data, dict):
            msg = f"Expected an object for dict, got {type(data).__name__}"
            raise DataShapeError(msg)
        hooks = member.find(JsonDeserialize) if member else None

        result: dict[Any, Any] = {}
        for raw_key, item in data.items():
            if hooks is not None and hooks.key_using is not None:
                key = hooks.key_using(raw_key, ctx)
            else:
                try:
                    key = self._key(raw_key, typedef.key)
                except ValueError as exc:
                    msg = f"Cannot deserialize map key {raw_key!r}: {exc}"
                    raise DataShapeError(msg) from exc
            if hooks is not None and hooks.content_using is not None:
                value = hooks.content_using(item, ctx)
            else:
                value = self.value(item, typedef.value, ctx, state)
            if isinstance(value, Unresolved):
                result[key] = None
                state.identities.defer(value, _setitem(result, key))
            else:
                result[key] = value
        return result

    def _key(self, key: str, typedef: TypeDef) -> Any:
        typedef = strip_optional(typedef)
        match typedef:
            case IntType():
                return int(key)
            case FloatType():
                return float(key)
            case BoolType():
                return key == "true"
            case EnumType(cls=enum_cls):
                for option in enum_cls:
                    if str(option.value) == key:
                        return option
                msg = f"{key!r} is not a {enum_cls.__name__} value"
                raise DataShapeError(msg)
        codec = TypeCodecs.for_descriptor(typedef)
        if codec is not None:
            return codec[1](key)
        return key

    def _union(
        self,
        data: Any,
        typedef: UnionType,
        ctx: DeserializationContext,
        state: _CallState,
    ) -> Any:
        options = [o for o in typedef.options if not isinstance(o, NoneType)]
        for option in options:
            if _accepts(option, data):
                return self.value(data, option, ctx, state)
        self.logger.debug("No option of %s matches %r, keeping it as is", typedef, data)
        return data

    # Objects

    def _object(
        self,
        data: Any,
        cls: type,
        ctx: DeserializationContext,
        state: _CallState,
    ) -> Any:
        ctx = ctx.for_class(cls)
        meta = self.store.metadata(cls)
        if meta.find(JsonIgnoreType) is not None:
            return None

        custom = meta.find(JsonDeserialize)
        if custom is not None and custom.using is not None:
            return custom.using(data, ctx)

        info = meta.find(JsonIdentityInfo)
        if info is not None:
            reference = _reference_id(data, info)
            if reference is not MISSING:
                return state.identities.resolve(identity_scope(cls, info, self.store), reference)

        type_id = None
        type_info = self.types.type_info(cls)
        if type_info is not None:
            cls, data, type_id = self._polymorphic(data, cls, type_info, ctx)
            if cls is not meta.cls:
                ctx = ctx.for_class(cls)
                meta = self.store.metadata(cls)

        info = meta.find(JsonIdentityInfo)
        object_id = MISSING
        if info is not None:
            data, object_id = self._take_id(data, info, meta)

        if type_id is not None:
            data = self._restore_type_id(data, type_id, meta)

        instance = self._build(data, meta, ctx, state)
        if info is not None and object_id is not MISSING:
            state.identities.bind(identity_scope(cls, info, self.store), object_id, instance)
        return instance

    def _polymorphic(
        self,
        data: Any,
        declared: type,
        info: JsonTypeInfo,
        ctx: DeserializationContext,
    ) -> tuple[type, Any, str | None]:
        """Read the type id and return (class, payload, type id)."""
        type_id: Any = None
        payload = data
        match info.include:
            case TypeInclude.PROPERTY:
                if isinstance(data, dict) and info.property in data:
                    type_id = data[info.property]
                    payload = {k: v for k, v in data.items() if k != info.property}
            case TypeInclude.WRAPPER_OBJECT:
                if isinstance(data, dict) and len(data) == 1:
                    type_id, payload = next(iter(data.items()))
            case TypeInclude.WRAPPER_ARRAY:
                if isinstance(data, list):
                    if len(data) != 2 or not isinstance(data[0], str):  # noqa: PLR2004
                        msg = (
                            f"Expected [type id, value] for {member_path(declared)} "
                            "with WRAPPER_ARRAY type info"
                        )
                        raise DataShapeError(msg)
                    type_id, payload = data

        if type_id is None:
            if ctx.is_enabled(DeserializationFeature.FAIL_ON_MISSING_TYPE_ID):
                msg = (
                    "Missing type id when trying to resolve subtype of "
                    f"{member_path(declared)}: missing property '{info.property}'"
                )
                raise DataShapeError(msg)
            self.logger.debug("No type id for %s, using the declared type", declared.__name__)
            return declared, payload, None

        resolved = self.types.class_for(declared, str(type_id), ctx)
        if resolved is None or not issubclass(resolved, declared):
            if ctx.is_enabled(DeserializationFeature.FAIL_ON_INVALID_SUBTYPE):
                msg = (
                    f"Could not resolve type id '{type_id}' as a subtype of "
                    f"{member_path(declared)}"
                )
                raise DataShapeError(msg)
            self.logger.debug(
                "Unknown type id %r for %s, using the declared type",
                type_id,
                declared.__name__,
            )
            return declared, payload, None
        return resolved, payload, str(type_id)

    def _restore_type_id(self, data: Any, type_id: str, meta: ClassMetadata) -> Any:
        """Hand the type id to a JsonTypeId field, if the class has one."""
        member = meta.member_with(JsonTypeId)
        if member is None or member.is_method or not isinstance(data, dict):
            return data
        name = meta.json_name(member)
        if name in data:
            return data
        return {**data, name: type_id}

    def _take_id(
        self,
        data: Any,
        info: JsonIdentityInfo,
        meta: ClassMetadata,
    ) -> tuple[Any, Any]:
        """Split the object id from a full object; returns (payload, id)."""
        if not isinstance(data, dict):
            return data, MISSING
        if info.include is IdentityInclude.WRAPPER_OBJECT:
            if set(data) != {"id", "item"}:
                msg = f'Expected {{"id": ..., "item": ...}} for {member_path(meta.cls)}'
                raise DataShapeError(msg)
            return data["item"], data["id"]
        if info.generator is ObjectIdGenerator.PROPERTY:
            member = id_member(info, meta)
            name = meta.json_name(member) if member is not None else info.property
            return data, data.get(name, MISSING)
        if info.property not in data:
            return data, MISSING
        payload = {k: v for k, v in data.items() if k != info.property}
        return payload, data[info.property]

    def _build(
        self,
        data: Any,
        meta: ClassMetadata,
        ctx: DeserializationContext,
        state: _CallState,
    ) -> Any:
        """Construct an instance and assign the remaining properties."""
        cls = meta.cls
        creator = self.creators.creator_for(cls, ctx.creator_name)

        if creator.mode is CreatorMode.DELEGATING:
            param = creator.params[0]
            arg = self.value(data, param.type, ctx, state)
            if isinstance(arg, Unresolved):
                self._unpatchable([arg], state, "delegating creator")
                arg = None
            instance = creator.delegate(arg)
            self._inject(instance, meta, ctx, set())
            return instance

        if not isinstance(data, dict):
            msg = f"Cannot deserialize {type(data).__name__} into {member_path(cls)}"
            raise DataShapeError(msg)

        names = self._names(meta, ctx)
        props = dict(data)
        present = set(props)
        self._check_required(meta, names, props, ctx)

        unwrapped = self._unwrapped(meta, props, ctx, state)
        args, patches = self._creator_args(creator, meta, names, props, unwrapped, ctx, state)
        instance = creator.invoke(args)

        for name, ref in patches:
            member = meta.member(name)
            if member is not None:
                state.identities.defer(ref, _assigner(member, instance))

        for name, value in unwrapped.items():
            if name not in args:
                setattr(instance, name, value)

        for key, raw in props.items():
            self._assign(instance, key, raw, meta, names, ctx, state)

        self._inject(instance, meta, ctx, present)
        if any(member.has(JsonManagedReference) for member in meta.members):
            state.managed.append((instance, meta))
        return instance

    def _names(self, meta: ClassMetadata, ctx: DeserializationContext) -> dict[str, MemberInfo]:
        """JSON names and aliases of every member that accepts input."""
        case_insensitive = ctx.is_enabled(DeserializationFeature.ACCEPT_CASE_INSENSITIVE_PROPERTIES)
        names: dict[str, MemberInfo] = {}
        for member in meta.members:
            if _output_only(member):
                continue
            candidates = [meta.json_name(member)]
            alias = member.find(JsonAlias)
            if alias is not None:
                candidates.extend(alias.values)
            for name in candidates:
                names.setdefault(name.lower() if case_insensitive else name, member)
        return names

    def _lookup(
        self,
        names: dict[str, MemberInfo],
        key: str,
        ctx: DeserializationContext,
    ) -> MemberInfo | None:
        if ctx.is_enabled(DeserializationFeature.ACCEPT_CASE_INSENSITIVE_PROPERTIES):
            key = key.lower()
        return names.get(key)

    def _check_required(
        self,
        meta: ClassMetadata,
        names: dict[str, MemberInfo],
        props: dict[str, Any],
        ctx: DeserializationContext,
    ) -> None:
        given = {id(m) for key in props if (m := self._lookup(names, key, ctx)) is not None}
        for member in meta.members:
            record = member.find(JsonProperty)
            if record is not None and record.required and id(member) not in given:
                msg = f"Required property {member_path(meta.cls, meta.json_name(member))} not found"
                raise DataShapeError(msg)

    def _unwrapped(
        self,
        meta: ClassMetadata,
        props: dict[str, Any],
        ctx: DeserializationContext,
        state: _CallState,
    ) -> dict[str, Any]:
        """Build unwrapped members from the parent's properties, consuming them."""
        values: dict[str, Any] = {}
        for member in meta.members:
            record = member.find(JsonUnwrapped)
            if record is None:
                continue
            nested = class_of(member.type)
            if nested is None:
                msg = f"@JsonUnwrapped() {member_path(meta.cls, member.name)} needs a class type"
                raise ConfigurationError(msg)
            accepted = self._flat_names(nested, ctx)
            sub: dict[str, Any] = {}
            for key in list(props):
                if not (key.startswith(record.prefix) and key.endswith(record.suffix)):
                    continue
                inner = key[len(record.prefix) : len(key) - len(record.suffix)]
                if inner in accepted:
                    sub[inner] = props.pop(key)
            if sub:
                values[member.name] = self.value(sub, member.type, ctx, state)
        return values

    def _flat_names(self, cls: type, ctx: DeserializationContext) -> set[str]:
        """Names a class accepts, including those of its own unwrapped members."""
        meta = self.store.metadata(cls)
        accepted = set(self._names(meta, ctx))
        for member in meta.members:
            record = member.find(JsonUnwrapped)
            nested = class_of(member.type)
            if record is not None and nested is not None and nested is not cls:
                accepted |= {
                    f"{record.prefix}{name}{record.suffix}" for name in self._flat_names(nested, ctx)
                }
        return accepted

    def _creator_args(
        self,
        creator: Creator,
        meta: ClassMetadata,
        names: dict[str, MemberInfo],
        props: dict[str, Any],
        unwrapped: dict[str, Any],
        ctx: DeserializationContext,
        state: _CallState,
    ) -> tuple[dict[str, Any], list[tuple[str, Unresolved]]]:
        """Arguments for a properties-mode creator, consuming matched properties."""
        args: dict[str, Any] = {}
        patches: list[tuple[str, Unresolved]] = []
        for param in creator.params:
            member = meta.member(param.name)
            if param.name in unwrapped:
                args[param.name] = unwrapped[param.name]
                continue

            key = self._param_key(param.json_name, member, names, props, ctx)
            if key is not None and member is not None and not self._accepts_input(member, meta, ctx):
                # Read-only or outside the active views: the property counts as absent
                props.pop(key)
                key = None
            if key is not None:
                raw = props.pop(key)
                value = self._member_value(raw, member, param.type, meta, ctx, state)
                if isinstance(value, Unresolved):
                    patches.append((param.name, value))
                    value = None
                elif value is None and ctx.is_enabled(
                    DeserializationFeature.FAIL_ON_NULL_CREATOR_PROPERTIES,
                ):
                    msg = f"Null value for creator property {member_path(meta.cls, param.json_name)}"
                    raise DataShapeError(msg)
                args[param.name] = value
            elif param.inject is not None and param.inject in ctx.injectable_values:
                args[param.name] = ctx.injectable_values[param.inject]
            elif param.has_default:
                continue
            elif member is not None and member.default_value() is not MISSING:
                args[param.name] = member.default_value()
            else:
                if ctx.is_enabled(DeserializationFeature.FAIL_ON_MISSING_CREATOR_PROPERTIES):
                    msg = f"Missing creator property {member_path(meta.cls, param.json_name)}"
                    raise DataShapeError(msg)
                if ctx.is_enabled(DeserializationFeature.FAIL_ON_NULL_CREATOR_PROPERTIES):
                    msg = f"Null value for creator property {member_path(meta.cls, param.json_name)}"
                    raise DataShapeError(msg)
                args[param.name] = ctx.null_substitute(param.type)
        return args, patches

    def _param_key(
        self,
        json_name: str,
        member: MemberInfo | None,
        names: dict[str, MemberInfo],
        props: dict[str, Any],
        ctx: DeserializationContext,
    ) -> str | None:
        """Key in ``props`` that feeds a creator parameter."""
        if json_name in props:
            return json_name
        insensitive = ctx.is_enabled(DeserializationFeature.ACCEPT_CASE_INSENSITIVE_PROPERTIES)
        for key in props:
            if member is not None and self._lookup(names, key, ctx) is member:
                return key
            if insensitive and key.lower() == json_name.lower():
                return key
        return None

    def _assign(
        self,
        instance: Any,
        key: str,
        raw: Any,
        meta: ClassMetadata,
        names: dict[str, MemberInfo],
        ctx: DeserializationContext,
        state: _CallState,
    ) -> None:
        """Assign one property left over after construction."""
        member = self._lookup(names, key, ctx)
        if member is None:
            self._unknown(instance, key, raw, meta, ctx, state)
            return
        if not self._accepts_input(member, meta, ctx):
            return
        value = self._member_value(raw, member, member.type, meta, ctx, state)
        assign = _assigner(member, instance)
        if isinstance(value, Unresolved):
            state.identities.defer(value, assign)
            return
        assign(value)

    def _accepts_input(
        self,
        member: MemberInfo,
        meta: ClassMetadata,
        ctx: DeserializationContext,
    ) -> bool:
        return ctx.view_allows(_views(member, meta)) and _writable(member, meta)

    def _unknown(
        self,
        instance: Any,
        key: str,
        raw: Any,
        meta: ClassMetadata,
        ctx: DeserializationContext,
        state: _CallState,
    ) -> None:
        """Route a property no member accepts: known-but-ignored, any-setter, or unknown."""
        if key in meta.ignored_names() or self._is_ignored_member(key, meta):
            return
        setter = meta.member_with(JsonAnySetter)
        if setter is not None:
            value = self.value(raw, AnyType(), ctx, state)
            if setter.is_method:
                getattr(instance, setter.name)(key, value)
            else:
                bag = getattr(instance, setter.name, None)
                if bag is None:
                    bag = {}
                    setattr(instance, setter.name, bag)
                bag[key] = value
            return
        ignore = meta.find(JsonIgnoreProperties)
        if ignore is not None and ignore.ignore_unknown:
            return
        if ctx.is_enabled(DeserializationFeature.FAIL_ON_UNKNOWN_PROPERTIES):
            msg = f"Unknown property {member_path(meta.cls, key)}"
            raise DataShapeError(msg)
        self.logger.debug("Dropping unknown property %s", member_path(meta.cls, key))

    def _is_ignored_member(self, key: str, meta: ClassMetadata) -> bool:
        """True if ``key`` names a member that exists but never accepts input."""
        for member in meta.members:
            if key in (member.name, meta.json_name(member)) and _output_only(member):
                return True
        return False

    def _member_value(
        self,
        raw: Any,
        member: MemberInfo | None,
        declared: TypeDef,
        meta: ClassMetadata,
        ctx: DeserializationContext,
        state: _CallState,
    ) -> Any:
        if member is None:
            return self.value(raw, declared, ctx, state)
        hooks = member.find(JsonDeserialize)
        if hooks is not None and hooks.using is not None:
            return hooks.using(raw, ctx)
        if member.has(JsonRawValue):
            return None if raw is None else json.dumps(raw)
        fmt = member.find(JsonFormat)
        if fmt is not None and raw is not None:
            raw = self._unformat(raw, fmt, member, meta, ctx)
            if not isinstance(raw, list | dict | str | int | float | bool):
                return raw
        return self.value(raw, declared, ctx, state, member)

    def _unformat(
        self,
        raw: Any,
        fmt: JsonFormat,
        member: MemberInfo,
        meta: ClassMetadata,
        ctx: DeserializationContext,
    ) -> Any:
        """Undo a JsonFormat shape before normal deserialization."""
        typedef = strip_optional(member.type)
        match fmt.shape:
            case Shape.STRING if isinstance(raw, str):
                if isinstance(typedef, DateType | TimeType | DateTimeType):
                    return self._parse_date(raw, fmt, typedef, member, meta, ctx)
                if isinstance(typedef, IntType) and fmt.radix is not None:
                    return int(raw, fmt.radix)
                if isinstance(typedef, IntType | FloatType | DecimalType | BoolType):
                    return json.loads(raw)
            case Shape.NUMBER_INT | Shape.NUMBER_FLOAT if isinstance(typedef, DateTimeType):
                return from_timestamp(raw)
            case Shape.ARRAY if isinstance(typedef, DictType) and isinstance(raw, list):
                return dict(raw)
            case Shape.OBJECT if isinstance(typedef, ARRAY_TYPES) and isinstance(raw, dict):
                return list(raw.values())
        return raw

    def _parse_date(
        self,
        raw: str,
        fmt: JsonFormat,
        typedef: TypeDef,
        member: MemberInfo,
        meta: ClassMetadata,
        ctx: DeserializationContext,
    ) -> Any:
        if ctx.date_parser is not None:
            return ctx.date_parser(raw, fmt.pattern)
        if fmt.pattern is None:
            msg = (
                f"{member_path(meta.cls, member.name)} uses a STRING date shape "
                "without a pattern or a context date parser"
            )
            raise ConfigurationError(msg)
        parsed = datetime.datetime.strptime(raw, fmt.pattern)  # noqa: DTZ007
        if isinstance(typedef, DateType):
            return parsed.date()
        if isinstance(typedef, TimeType):
            return parsed.time()
        return parsed

    def _inject(
        self,
        instance: Any,
        meta: ClassMetadata,
        ctx: DeserializationContext,
        present: set[str],
    ) -> None:
        """Fill JsonInject members from the injectable values."""
        for member in meta.members:
            record = member.find(JsonInject)
            if record is None:
                continue
            if record.use_input and meta.json_name(member) in present:
                continue
            key = record.value or member.name
            if key in ctx.injectable_values:
                setattr(instance, member.name, ctx.injectable_values[key])

    def link_back_references(self, instance: Any, meta: ClassMetadata) -> None:
        """Point the back member of each managed element at ``instance``."""
        for member in meta.members:
            record = member.find(JsonManagedReference)
            if record is None:
                continue
            value = member.read(instance)
            if value is None:
                continue
            if isinstance(value, dict):
                elements = list(value.values())
            elif isinstance(value, list | tuple | set | frozenset):
                elements = list(value)
            else:
                elements = [value]
            for element in elements:
                if element is None:
                    continue
                back = self._back_member(type(element), record.value)
                if back is not None:
                    setattr(element, back.name, instance)

    def _back_member(self, cls: type, name: str) -> MemberInfo | None:
        for member in self.store.metadata(cls).members:
            record = member.find(JsonBackReference)
            if record is not None and record.value == name:
                return member
        return None


def _declared_class(typedef: TypeDef) -> type | None:
    typedef = strip_optional(typedef)
    if isinstance(typedef, ClassType | EnumType):
        return typedef.cls
    return _SCALAR_TYPES.get(type(typedef))


def _reference_id(data: Any, info: JsonIdentityInfo) -> Any:
    """The id if ``data`` is a reference rather than a full object, else MISSING."""
    if not isinstance(data, dict | list):
        return data
    if (
        info.reference is ReferenceFormat.PROPERTY
        and isinstance(data, dict)
        and set(data) == {info.property}
    ):
        return data[info.property]
    return MISSING


def _views(member: MemberInfo, meta: ClassMetadata) -> tuple[Any, ...] | None:
    record = member.find(JsonView) or meta.find(JsonView)
    return record.views if record is not None else None


def _output_only(member: MemberInfo) -> bool:
    """Members that never receive a named property."""
    if member.has(JsonIgnore) or member.has(JsonBackReference):
        return True
    if member.is_method or member.has(JsonGetter):
        return not member.has(JsonSetter)
    return member.has(JsonAnySetter) or member.has(JsonAnyGetter) or member.has(JsonValue)


def _writable(member: MemberInfo, meta: ClassMetadata) -> bool:
    prop = member.find(JsonProperty)
    if prop is not None and prop.access is PropertyAccess.READ_ONLY:
        return False
    ignore = meta.find(JsonIgnoreProperties)
    if ignore is not None and (
        member.name in ignore.values or meta.json_name(member) in ignore.values
    ):
        return ignore.allow_setters
    return True


def _assigner(member: MemberInfo, instance: Any) -> Callable[[Any], None]:
    """Setter for one member of ``instance``: a setter method call or setattr."""
    if member.is_method:
        return getattr(instance, member.name)

    def assign(value: Any) -> None:
        setattr(instance, member.name, value)

    return assign


def _setitem(container: Any, key: Any) -> Callable[[Any], None]:
    def patch(value: Any) -> None:
        container[key] = value

    return patch


def _ignore(_value: Any) -> None:
    return None


def _accepts(option: TypeDef, data: Any) -> bool:
    """True if a union option fits the JSON shape of ``data``."""
    numeric = isinstance(data, int | float) and not isinstance(data, bool)
    match option:
        case AnyType():
            return True
        case BoolType():
            return isinstance(data, bool)
        case IntType():
            return isinstance(data, int) and not isinstance(data, bool)
        case FloatType():
            return numeric
        case DecimalType():
            return numeric or isinstance(data, str)
        case StrType():
            return isinstance(data, str)
        case LiteralType(values=values):
            return data in values
        case EnumType(cls=enum_cls):
            return any(m.value == data for m in enum_cls)
        case ListType() | SetType() | FrozenSetType() | TupleType():
            return isinstance(data, list)
        case DictType():
            return isinstance(data, dict)
        case DateTimeType():
            return numeric or isinstance(data, str)
        case ClassType():
            if TypeCodecs.for_descriptor(option) is not None:
                return True
            return isinstance(data, dict)
    return isinstance(data, str)
