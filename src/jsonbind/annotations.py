"""Annotation records: the (kind, options) pairs stored in the metadata store.

Each record class is a frozen dataclass registered under its kind name. The
fields are the options. Records are attached to classes or members through
``jsonbind.metadata``; the engine only ever reads them.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Protocol, dataclass_transform

from jsonbind.naming import NamingStrategy


class PropertyAccess(Enum):
    """Direction in which a property takes part in (de)serialization."""

    AUTO = "auto"
    READ_ONLY = "read_only"
    WRITE_ONLY = "write_only"
    READ_WRITE = "read_write"


class Include(Enum):
    """Inclusion policy for member values and collection content."""

    ALWAYS = "always"
    NON_NULL = "non_null"
    NON_EMPTY = "non_empty"
    NON_DEFAULT = "non_default"
    CUSTOM = "custom"


class Shape(Enum):
    """Output shape requested by JsonFormat."""

    ANY = "any"
    ARRAY = "array"
    BOOLEAN = "boolean"
    NUMBER_FLOAT = "number_float"
    NUMBER_INT = "number_int"
    OBJECT = "object"
    SCALAR = "scalar"
    STRING = "string"


class TypeIdKind(Enum):
    """What the polymorphic type id is made of."""

    NAME = "name"
    CLASS = "class"
    CUSTOM = "custom"


class TypeInclude(Enum):
    """Where the polymorphic type id is written."""

    PROPERTY = "property"
    WRAPPER_OBJECT = "wrapper_object"
    WRAPPER_ARRAY = "wrapper_array"


class ObjectIdGenerator(Enum):
    """Object id generation strategies."""

    INT_SEQUENCE = "int_sequence"
    PROPERTY = "property"
    UUID1 = "uuid1"
    UUID3 = "uuid3"
    UUID4 = "uuid4"
    UUID5 = "uuid5"
    NONE = "none"


class IdentityInclude(Enum):
    """Where the object id of a fully written object goes."""

    PROPERTY = "property"
    WRAPPER_OBJECT = "wrapper_object"


class ReferenceFormat(Enum):
    """How a repeated object is written."""

    ID = "id"
    PROPERTY = "property"


class CreatorMode(Enum):
    """Creator argument binding."""

    PROPERTIES = "properties"
    DELEGATING = "delegating"


class FilterType(Enum):
    """Behaviour of a named property filter."""

    SERIALIZE_ALL = "serialize_all"
    SERIALIZE_ALL_EXCEPT = "serialize_all_except"
    FILTER_OUT_ALL_EXCEPT = "filter_out_all_except"


DEFAULT_CREATOR = "default"
DEFAULT_REFERENCE = "defaultReference"


@dataclass(frozen=True)
@dataclass_transform(frozen_default=True)
class Annotation:
    """Base for annotation records.

    ``unique`` kinds may be carried by at most one member of a class.
    """

    kind: ClassVar[str]
    unique: ClassVar[bool] = False
    registry: ClassVar[dict[str, type[Annotation]]] = {}

    def __init_subclass__(cls, kind: str | None = None, unique: bool = False) -> None:
        """Register annotation subclass under its kind name."""
        dataclass(frozen=True)(cls)
        cls.kind = kind if kind is not None else cls.__name__
        cls.unique = unique

        if (existing := Annotation.registry.get(cls.kind)) and existing is not cls:
            msg = (
                f"Kind '{cls.kind}' already registered to {existing}. "
                "Choose a different kind."
            )
            raise ValueError(msg)

        Annotation.registry[cls.kind] = cls


class TypeIdResolver(Protocol):
    """Custom mapping between instances/classes and type ids."""

    def id_from_value(self, obj: Any, context: Any) -> str | None: ...

    def type_from_id(self, type_id: str, context: Any) -> type | None: ...


@dataclass(frozen=True)
class NamedType:
    """A subtype declaration: class (or zero-arg callable returning it) plus name."""

    cls: type | Callable[[], type]
    name: str | None = None

    def resolve(self) -> type:
        """Return the class, calling the thunk for forward declarations."""
        if isinstance(self.cls, type):
            return self.cls
        return self.cls()


@dataclass(frozen=True)
class AppendAttr:
    """One attribute-bag entry written by JsonAppend."""

    value: str
    prop_name: str | None = None
    required: bool = False
    include: Include = Include.ALWAYS


@dataclass(frozen=True)
class PropertyFilter:
    """Caller-supplied filter referenced by name from JsonFilter."""

    type: FilterType = FilterType.SERIALIZE_ALL
    values: frozenset[str] = frozenset()


# Naming and inclusion


class JsonProperty(Annotation):
    """Explicit JSON name, required flag and access direction."""

    value: str | None = None
    required: bool = False
    access: PropertyAccess = PropertyAccess.AUTO


class JsonAlias(Annotation):
    """Alternative JSON names accepted during deserialization."""

    values: tuple[str, ...] = ()


class JsonNaming(Annotation):
    """Class-level naming strategy for member names."""

    strategy: NamingStrategy = NamingStrategy.SNAKE_CASE


class JsonPropertyOrder(Annotation):
    """Explicit member order, optionally followed by alphabetic order."""

    value: tuple[str, ...] = ()
    alphabetic: bool = False


class JsonInclude(Annotation):
    """Inclusion policy for a member (or every member of a class)."""

    value: Include = Include.ALWAYS
    content: Include = Include.ALWAYS
    value_filter: Callable[[Any], bool] | None = None
    content_filter: Callable[[Any], bool] | None = None


class JsonIgnore(Annotation):
    """Member never takes part in (de)serialization."""


class JsonIgnoreProperties(Annotation):
    """Class-level list of ignored JSON names and unknown-property policy."""

    values: tuple[str, ...] = ()
    ignore_unknown: bool = False
    allow_getters: bool = False
    allow_setters: bool = False


class JsonIgnoreType(Annotation):
    """Values of this class are skipped wherever they appear as members."""


class JsonView(Annotation):
    """Views a member (or class) belongs to."""

    views: tuple[Any, ...] = ()


class JsonFilter(Annotation):
    """Name of a caller-supplied PropertyFilter."""

    value: str


class JsonRootName(Annotation):
    """Name used for root wrapping."""

    value: str


class JsonAppend(Annotation):
    """Virtual properties taken from the attribute bag."""

    attrs: tuple[AppendAttr, ...] = ()
    prepend: bool = False


# Types and shapes


class JsonClassType(Annotation):
    """Explicit type for a member, as an annotation or TypeDef."""

    value: Any


class JsonFormat(Annotation):
    """Shape and formatting of a value."""

    shape: Shape = Shape.ANY
    pattern: str | None = None
    timezone: str | None = None
    radix: int | None = None
    to_fixed: int | None = None
    to_exponential: int | None = None
    to_precision: int | None = None


class JsonRawValue(Annotation):
    """Member holds JSON text written without quoting."""


class JsonValue(Annotation, unique=True):
    """Member or method whose value stands for the whole object."""


class JsonUnwrapped(Annotation):
    """Nested object whose properties are spliced into the parent."""

    prefix: str = ""
    suffix: str = ""


# Polymorphism


class JsonTypeInfo(Annotation):
    """Polymorphic type id configuration."""

    use: TypeIdKind = TypeIdKind.NAME
    include: TypeInclude = TypeInclude.PROPERTY
    property: str = "@type"


class JsonSubTypes(Annotation):
    """Known subtypes and their logical names."""

    types: tuple[NamedType, ...] = ()


class JsonTypeName(Annotation):
    """Logical type name of a class."""

    value: str


class JsonTypeId(Annotation, unique=True):
    """Member or method whose value is the type id."""


class JsonTypeIdResolver(Annotation):
    """Custom type id resolver."""

    resolver: TypeIdResolver


# Identity and references


class JsonIdentityInfo(Annotation):
    """Object identity configuration for a class."""

    generator: ObjectIdGenerator = ObjectIdGenerator.INT_SEQUENCE
    property: str = "@id"
    scope: str | None = None
    include: IdentityInclude = IdentityInclude.PROPERTY
    reference: ReferenceFormat = ReferenceFormat.ID
    uuid_namespace: Any = None
    uuid_name: str | None = None


class JsonIdentityReference(Annotation):
    """Write identity-mapped objects as references only."""

    always_as_id: bool = False


class JsonManagedReference(Annotation):
    """Forward side of a reference pair; serialized normally."""

    value: str = DEFAULT_REFERENCE


class JsonBackReference(Annotation):
    """Back side of a reference pair; never serialized, restored on read."""

    value: str = DEFAULT_REFERENCE


# Custom codecs, construction and injection


class JsonSerialize(Annotation):
    """Custom serializer hooks; each takes (value, context)."""

    using: Callable[[Any, Any], Any] | None = None
    content_using: Callable[[Any, Any], Any] | None = None
    key_using: Callable[[Any, Any], Any] | None = None
    nulls_using: Callable[[Any], Any] | None = None


class JsonDeserialize(Annotation):
    """Custom deserializer hooks; each takes (value, context)."""

    using: Callable[[Any, Any], Any] | None = None
    content_using: Callable[[Any, Any], Any] | None = None
    key_using: Callable[[Any, Any], Any] | None = None


class JsonCreator(Annotation):
    """Marks the class (its ``__init__``) or a factory method as a creator.

    ``properties`` maps parameter names to JSON names; ``inject`` maps
    parameter names to injectable-value keys.
    """

    mode: CreatorMode = CreatorMode.PROPERTIES
    name: str = DEFAULT_CREATOR
    properties: Mapping[str, str] = field(default_factory=dict)
    inject: Mapping[str, str] = field(default_factory=dict)


class JsonAnyGetter(Annotation, unique=True):
    """Member or method returning extra properties as a mapping."""


class JsonAnySetter(Annotation, unique=True):
    """Mapping member or (key, value) method receiving unknown properties."""


class JsonInject(Annotation):
    """Member filled from the injectable values after construction."""

    value: str | None = None
    use_input: bool = False


class JsonGetter(Annotation):
    """Method whose return value is written as a property."""

    value: str | None = None


class JsonSetter(Annotation):
    """Method called with the value of a property."""

    value: str | None = None
