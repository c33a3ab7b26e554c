"""Semantic type descriptors produced by the schema resolver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, Mapping

from .constraints import Constraints

COMPONENT_SCHEMA_PREFIX: Final[str] = "#/components/schemas/"

# Python annotation for each OpenAPI scalar type, refined by format
SCALAR_TYPES: Final[dict[str, str]] = {
    "string": "str",
    "integer": "int",
    "number": "float",
    "boolean": "bool",
}

STRING_FORMATS: Final[dict[str, str]] = {
    "date-time": "datetime",
    "date": "date",
    "uuid": "UUID",
}


class TypeKind(str, Enum):
    ANY = "any"
    SCALAR = "scalar"
    OBJECT = "object"
    ARRAY = "array"
    MAP = "map"
    ENUM = "enum"
    REFERENCE = "reference"
    UNION = "union"


class SpecLocation(str, Enum):
    """Where in the document a type definition originated."""

    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    COOKIE = "cookie"
    BODY = "body"
    RESPONSE = "response"
    SCHEMA = "schema"
    UNION = "union"


class UnionEncoding(str, Enum):
    """JSON encoding strategy of a oneOf/anyOf type, chosen by cardinality."""

    PASSTHROUGH = "passthrough"
    EITHER = "either"
    RAW_DISPATCH = "raw-dispatch"

    @classmethod
    def for_cardinality(cls, count: int) -> UnionEncoding:
        if count == 1:
            return cls.PASSTHROUGH
        if count == 2:
            return cls.EITHER
        return cls.RAW_DISPATCH


@dataclass(slots=True)
class SchemaProxy:
    """A schema node together with the reference it was reached through.

    ``base`` is the location of the external document the node lives in, or
    ``""`` for the root document.
    """

    schema: Mapping[str, Any]
    ref: str = ""
    base: str = ""

    @property
    def is_ref(self) -> bool:
        return bool(self.ref)

    @property
    def ref_name(self) -> str:
        return self.ref.rsplit("/", 1)[-1] if self.ref else ""

    def get(self, key: str, default: Any = None) -> Any:
        return self.schema.get(key, default)


@dataclass(frozen=True, slots=True)
class EnumMember:
    name: str
    value: Any


@dataclass(slots=True)
class EnumDescriptor:
    base: str
    members: list[EnumMember] = field(default_factory=list)


@dataclass(slots=True)
class UnionElement:
    """One branch of a oneOf/anyOf: a named type or an inline primitive."""

    type_name: str
    annotation: str
    method_suffix: str
    ref: str = ""
    # discriminator values mapped to this branch
    discriminator_values: list[str] = field(default_factory=list)

    @property
    def is_primitive(self) -> bool:
        return not self.ref and self.type_name == self.annotation and self.type_name in _PRIMITIVES


_PRIMITIVES: Final[frozenset[str]] = frozenset(
    {"str", "int", "float", "bool", "Any", "datetime", "date", "UUID"}
)


@dataclass(slots=True)
class UnionDescriptor:
    composition: str  # "oneOf" or "anyOf"
    encoding: UnionEncoding
    elements: list[UnionElement] = field(default_factory=list)
    discriminator: str | None = None
    mapping: dict[str, str] = field(default_factory=dict)

    @property
    def element_names(self) -> list[str]:
        return [element.type_name for element in self.elements]


@dataclass(slots=True)
class Field:
    """A property of an object type."""

    json_name: str
    py_name: str
    schema: TypeSchema
    constraints: Constraints = field(default_factory=Constraints)
    description: str = ""
    sensitive: bool = False
    # allOf member index this field came from, when merged
    source_index: int | None = None

    @property
    def is_optional(self) -> bool:
        return self.constraints.nullable or self.schema.nullable or self.schema.is_indirect

    @property
    def annotation(self) -> str:
        base = self.schema.annotation()
        if self.is_optional and not base.startswith("Optional["):
            return f"Optional[{base}]"
        return base

    @property
    def has_default(self) -> bool:
        return not self.constraints.required

    def structurally_equal(self, other: Field) -> bool:
        return (
            self.json_name == other.json_name
            and self.annotation == other.annotation
            and self.constraints == other.constraints
        )


@dataclass(slots=True)
class TypeSchema:
    """Semantic descriptor of a schema node."""

    kind: TypeKind
    py_type: str = "Any"
    fields: list[Field] = field(default_factory=list)
    items: TypeSchema | None = None
    additional_properties: TypeSchema | None = None
    enum: EnumDescriptor | None = None
    union: UnionDescriptor | None = None
    # name of the union type held by an object (oneOf/anyOf alongside properties)
    union_type: str | None = None
    bases: list[str] = field(default_factory=list)
    nullable: bool = False
    is_indirect: bool = False
    description: str = ""
    constraints: Constraints = field(default_factory=Constraints)
    ref: str = ""
    sensitive: bool = False
    additional_types: list[TypeDefinition] = field(default_factory=list)

    def annotation(self, quote: bool = False) -> str:
        """Python annotation text for an occurrence of this schema.

        With ``quote`` generated type names are emitted as string forward
        references, for use outside of annotations.
        """
        if self.kind is TypeKind.ARRAY:
            item = self.items.annotation(quote) if self.items is not None else "Any"
            if self.items is not None and self.items.nullable:
                item = f"Optional[{item}]"
            return f"list[{item}]"
        if self.kind is TypeKind.MAP:
            value = self.additional_properties.annotation(quote) if self.additional_properties else "Any"
            return f"dict[str, {value}]"
        if self.kind is TypeKind.OBJECT and not (self.fields or self.bases or self.union_type):
            return "dict[str, Any]"
        if quote and self.kind is TypeKind.REFERENCE:
            return f"\"{self.py_type}\""
        return self.py_type

    @property
    def is_object(self) -> bool:
        return self.kind is TypeKind.OBJECT

    @property
    def has_additional_properties(self) -> bool:
        return self.kind is TypeKind.OBJECT and self.additional_properties is not None

    def field_by_json_name(self, json_name: str) -> Field | None:
        for prop in self.fields:
            if prop.json_name == json_name:
                return prop
        return None

    def referenced_types(self) -> set[str]:
        """Names of generated types this schema refers to directly."""
        names: set[str] = set()
        if self.kind is TypeKind.REFERENCE:
            names.add(self.py_type)
        for prop in self.fields:
            names |= prop.schema.referenced_types()
        if self.items is not None:
            names |= self.items.referenced_types()
        if self.additional_properties is not None:
            names |= self.additional_properties.referenced_types()
        if self.union is not None:
            names |= {element.type_name for element in self.union.elements if not element.is_primitive}
        if self.union_type:
            names.add(self.union_type)
        names.update(self.bases)
        return names


@dataclass(frozen=True, slots=True)
class TypeDefinition:
    """A named type emitted into the generated module.

    ``name`` is the Python identifier; ``json_name`` the name it carries in
    the document.
    """

    name: str
    json_name: str = ""
    schema: TypeSchema = field(default_factory=lambda: TypeSchema(TypeKind.ANY))
    location: SpecLocation = SpecLocation.SCHEMA
    needs_marshaler: bool = False
    has_sensitive_data: bool = False

    @property
    def is_alias(self) -> bool:
        """Rendered as a plain assignment rather than a class."""
        if self.schema.kind in (TypeKind.ANY, TypeKind.SCALAR, TypeKind.REFERENCE, TypeKind.MAP):
            return True
        return self.schema.kind is TypeKind.OBJECT and not self.schema.fields and not self.schema.bases \
            and self.schema.union_type is None and self.schema.additional_properties is None

    @property
    def is_optional(self) -> bool:
        return not self.schema.constraints.required

    def get_error_response(
        self,
        error_types: Mapping[str, str],
        alias: str,
        type_schema_map: Mapping[str, TypeSchema],
    ) -> str:
        """Python statements extracting the mapped error message from ``alias``."""
        from .error_paths import error_response_code

        return error_response_code(self, error_types, alias, type_schema_map)


def requires_name(shape: TypeSchema) -> bool:
    """True for inline shapes that must become a named type of their own."""
    if shape.kind in (TypeKind.ENUM, TypeKind.UNION):
        return True
    if shape.kind is TypeKind.OBJECT:
        return bool(shape.fields or shape.bases or shape.union_type or shape.additional_properties is not None)
    return False


def needs_marshaler(shape: TypeSchema) -> bool:
    return shape.kind is TypeKind.UNION or (
        shape.kind is TypeKind.OBJECT and (shape.union_type is not None or shape.additional_properties is not None)
    )
