"""jsonbind - Annotation-driven JSON object mapping for Python 3.12+."""

from jsonbind.annotations import (
    AppendAttr,
    CreatorMode,
    FilterType,
    IdentityInclude,
    Include,
    JsonAlias,
    JsonAnyGetter,
    JsonAnySetter,
    JsonAppend,
    JsonBackReference,
    JsonClassType,
    JsonCreator,
    JsonDeserialize,
    JsonFilter,
    JsonFormat,
    JsonGetter,
    JsonIdentityInfo,
    JsonIdentityReference,
    JsonIgnore,
    JsonIgnoreProperties,
    JsonIgnoreType,
    JsonInclude,
    JsonInject,
    JsonManagedReference,
    JsonNaming,
    JsonProperty,
    JsonPropertyOrder,
    JsonRawValue,
    JsonRootName,
    JsonSerialize,
    JsonSetter,
    JsonSubTypes,
    JsonTypeId,
    JsonTypeIdResolver,
    JsonTypeInfo,
    JsonTypeName,
    JsonUnwrapped,
    JsonValue,
    JsonView,
    NamedType,
    ObjectIdGenerator,
    PropertyAccess,
    PropertyFilter,
    ReferenceFormat,
    Shape,
    TypeIdKind,
    TypeInclude,
)
from jsonbind.codecs import TypeCodecs
from jsonbind.context import (
    CustomMapper,
    DeserializationContext,
    SerializationContext,
)
from jsonbind.deserializer import Deserializer
from jsonbind.errors import (
    ConfigurationError,
    DataShapeError,
    MappingError,
)
from jsonbind.features import (
    DeserializationFeature,
    MapperFeature,
    SerializationFeature,
)
from jsonbind.formats.json import (
    from_json,
    to_json,
)
from jsonbind.mapper import ObjectMapper
from jsonbind.metadata import (
    MetadataStore,
    annotate,
    default_store,
    json_class,
    json_field,
    json_method,
)
from jsonbind.naming import NamingStrategy
from jsonbind.schema import extract_type
from jsonbind.serializer import Serializer

__all__ = [
    # Annotation records
    "AppendAttr",
    # Errors
    "ConfigurationError",
    "CreatorMode",
    # Contexts
    "CustomMapper",
    "DataShapeError",
    "DeserializationContext",
    # Features
    "DeserializationFeature",
    # Transformers
    "Deserializer",
    "FilterType",
    "IdentityInclude",
    "Include",
    "JsonAlias",
    "JsonAnyGetter",
    "JsonAnySetter",
    "JsonAppend",
    "JsonBackReference",
    "JsonClassType",
    "JsonCreator",
    "JsonDeserialize",
    "JsonFilter",
    "JsonFormat",
    "JsonGetter",
    "JsonIdentityInfo",
    "JsonIdentityReference",
    "JsonIgnore",
    "JsonIgnoreProperties",
    "JsonIgnoreType",
    "JsonInclude",
    "JsonInject",
    "JsonManagedReference",
    "JsonNaming",
    "JsonProperty",
    "JsonPropertyOrder",
    "JsonRawValue",
    "JsonRootName",
    "JsonSerialize",
    "JsonSetter",
    "JsonSubTypes",
    "JsonTypeId",
    "JsonTypeIdResolver",
    "JsonTypeInfo",
    "JsonTypeName",
    "JsonUnwrapped",
    "JsonValue",
    "JsonView",
    "MapperFeature",
    "MappingError",
    # Metadata
    "MetadataStore",
    "NamedType",
    "NamingStrategy",
    "ObjectIdGenerator",
    # Facade
    "ObjectMapper",
    "PropertyAccess",
    "PropertyFilter",
    "ReferenceFormat",
    "SerializationContext",
    "SerializationFeature",
    "Serializer",
    "Shape",
    "TypeCodecs",
    "TypeIdKind",
    "TypeInclude",
    "annotate",
    "default_store",
    "extract_type",
    "from_json",
    "json_class",
    "json_field",
    "json_method",
    "to_json",
]
