"""Creator selection: the constructor or factory that builds an instance."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, get_type_hints

from jsonbind.annotations import DEFAULT_CREATOR, CreatorMode, JsonCreator, JsonValue
from jsonbind.errors import ConfigurationError, member_path
from jsonbind.metadata import ClassMetadata, MetadataStore
from jsonbind.schema import extract_type
from jsonbind.types import AnyType, TypeDef

logger = logging.getLogger(__name__)

_BINDABLE = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
    inspect.Parameter.KEYWORD_ONLY,
)


@dataclass(frozen=True)
class CreatorParam:
    """One creator parameter and where its argument comes from."""

    name: str
    json_name: str
    type: TypeDef
    default: Any = inspect.Parameter.empty
    inject: str | None = None
    positional_only: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty


@dataclass(frozen=True)
class Creator:
    """A resolved creator: factory, binding mode and parameters."""

    cls: type
    factory: Callable[..., Any]
    mode: CreatorMode
    params: tuple[CreatorParam, ...]

    def invoke(self, arguments: dict[str, Any]) -> Any:
        """Call the factory with ``arguments`` keyed by parameter name."""
        args = [arguments[p.name] for p in self.params if p.positional_only and p.name in arguments]
        kwargs = {
            p.name: arguments[p.name]
            for p in self.params
            if not p.positional_only and p.name in arguments
        }
        return self.factory(*args, **kwargs)

    def delegate(self, value: Any) -> Any:
        """Call the factory with the whole node value."""
        return self.factory(value)


class CreatorResolver:
    """Selects creators from JsonCreator records and signatures."""

    def __init__(self, store: MetadataStore) -> None:
        self.store = store
        self._cache: dict[tuple[type, str], Creator] = {}

    def creator_for(self, cls: type, name: str | None = None) -> Creator:
        """Creator of ``cls`` named ``name``, falling back to the default one.

        Without any JsonCreator the class itself is the creator: delegating
        when a JsonValue member exists, else binding properties.

        Raises:
            ConfigurationError: If a delegating creator does not take exactly
                one argument.

        """
        key = (cls, name or DEFAULT_CREATOR)
        if (creator := self._cache.get(key)) is None:
            creator = self._build(cls, name or DEFAULT_CREATOR)
            self._cache[key] = creator
        return creator

    def _build(self, cls: type, name: str) -> Creator:
        meta = self.store.metadata(cls)
        info = meta.creators.get(name)
        if info is None and name != DEFAULT_CREATOR:
            logger.debug("%s has no creator named %r, using the default", cls.__name__, name)
            info = meta.creators.get(DEFAULT_CREATOR)

        if info is None:
            mode = (
                CreatorMode.DELEGATING
                if meta.member_with(JsonValue) is not None
                else CreatorMode.PROPERTIES
            )
            record = JsonCreator(mode=mode)
            factory: Callable[..., Any] = cls
        else:
            record = info.record
            factory = getattr(cls, info.factory) if info.factory else cls

        params = _parameters(meta, factory, record)
        if record.mode is CreatorMode.DELEGATING and len(params) != 1:
            msg = (
                f"Delegating creator of {member_path(cls)} must take exactly one "
                f"argument, got {len(params)}"
            )
            raise ConfigurationError(msg)
        return Creator(cls=cls, factory=factory, mode=record.mode, params=params)


def _parameters(
    meta: ClassMetadata,
    factory: Callable[..., Any],
    record: JsonCreator,
) -> tuple[CreatorParam, ...]:
    """Bindable parameters of ``factory`` with their JSON names and types."""
    try:
        signature = inspect.signature(factory)
    except (TypeError, ValueError):
        logger.debug("No signature for %r, binding no parameters", factory)
        return ()

    target = factory.__init__ if isinstance(factory, type) else factory
    try:
        hints = get_type_hints(target)
    except (NameError, TypeError):
        hints = {}

    params = []
    for param in signature.parameters.values():
        if param.kind not in _BINDABLE:
            continue
        member = meta.member(param.name)
        if param.name in record.properties:
            json_name = record.properties[param.name]
        elif member is not None:
            json_name = meta.json_name(member)
        else:
            json_name = param.name

        if member is not None and not member.is_method:
            typedef = member.type
        elif param.name in hints:
            typedef = extract_type(hints[param.name])
        else:
            typedef = AnyType()

        params.append(
            CreatorParam(
                name=param.name,
                json_name=json_name,
                type=typedef,
                default=param.default,
                inject=record.inject.get(param.name),
                positional_only=param.kind is inspect.Parameter.POSITIONAL_ONLY,
            ),
        )
    return tuple(params)
