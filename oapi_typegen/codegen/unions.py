"""Union (oneOf/anyOf) and composition (allOf) synthesis."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final, Literal, Mapping, Sequence

from ..shared.errors import SchemaError, SchemaResolutionError
from ..shared.naming import to_snake_case
from .constraints import schema_types
from .schema import (
    Field,
    SchemaProxy,
    SpecLocation,
    TypeDefinition,
    TypeKind,
    TypeSchema,
    UnionDescriptor,
    UnionElement,
    UnionEncoding,
)

if TYPE_CHECKING:
    from .resolver import SchemaResolver

logger = logging.getLogger(__name__)

# Accessor suffixes for primitive union branches
PRIMITIVE_SUFFIXES: Final[dict[str, str]] = {
    "str": "string",
    "int": "integer",
    "float": "number",
    "bool": "boolean",
    "Any": "any",
    "datetime": "datetime",
    "date": "date",
    "UUID": "uuid",
}


# Keywords that give a schema a shape; a node with none of them only annotates
SHAPE_KEYWORDS: Final[frozenset[str]] = frozenset({
    "$ref", "type", "properties", "items", "additionalProperties",
    "allOf", "anyOf", "oneOf", "enum", "required", "const",
})


def is_metadata_only(schema: Mapping[str, Any]) -> bool:
    """True when ``schema`` carries annotations (description, nullable, x-*) only."""
    return not any(key in SHAPE_KEYWORDS for key in schema)


def _is_null_schema(schema: Mapping[str, Any]) -> bool:
    return schema_types(schema) == ["null"]


class UnionSynthesizer:
    """Builds union types and merged allOf objects on behalf of a resolver."""

    def __init__(self, resolver: SchemaResolver) -> None:
        self.resolver = resolver

    def synthesize(self, proxy: SchemaProxy, path: Sequence[str], mode: Literal["union", "merge"]) -> TypeSchema:
        """Resolve a composition node.

        In ``union`` mode the result is the union type itself (kind ``UNION``);
        in ``merge`` mode it is the flattened allOf object or passthrough.
        """
        if mode == "merge":
            return self.merge(proxy, list(path))
        definition = self.union_type(proxy, list(path))
        schema = definition.schema
        return TypeSchema(
            TypeKind.UNION,
            py_type=definition.name,
            union=schema.union,
            nullable=schema.nullable,
            additional_types=[*schema.additional_types, definition],
        )

    # oneOf / anyOf

    def union_type(self, proxy: SchemaProxy, path: list[str]) -> TypeDefinition:
        """Register the ``<Path>_OneOf`` / ``<Path>_AnyOf`` type for ``proxy``."""
        schema = proxy.schema
        composition = "oneOf" if "oneOf" in schema else "anyOf"
        members = schema.get(composition) or []
        if not isinstance(members, list):
            raise SchemaResolutionError(f"{composition} must be a list")

        union_path = [*path, composition[0].upper() + composition[1:]]
        tracker = self.resolver.tracker
        name = tracker.generate_unique_name(self.resolver.type_name(union_path))
        tracker.reserve(name)

        elements: list[UnionElement] = []
        extra: list[TypeDefinition] = []
        nullable = False
        suffixes: set[str] = set()
        for index, member in enumerate(members):
            if not isinstance(member, Mapping):
                raise SchemaResolutionError(f"{composition}[{index}] must be a schema")
            if _is_null_schema(member):
                nullable = True
                continue
            try:
                element, additional = self._element(proxy, member, [*union_path, str(index)])
            except SchemaError as err:
                raise err.with_path(f"{composition}[{index}]") from err
            suffix = element.method_suffix
            counter = 0
            while element.method_suffix in suffixes:
                element.method_suffix = f"{suffix}_{counter}"
                counter += 1
            suffixes.add(element.method_suffix)
            elements.append(element)
            extra.extend(additional)

        if not elements:
            raise SchemaResolutionError(f"{composition} must have at least one non-null member")

        discriminator, mapping = self._discriminator(proxy, elements)
        descriptor = UnionDescriptor(
            composition=composition,
            encoding=UnionEncoding.for_cardinality(len(elements)),
            elements=elements,
            discriminator=discriminator,
            mapping=mapping,
        )
        logger.debug("Union %s: %s encoding over %s", name, descriptor.encoding.value, descriptor.element_names)

        definition = TypeDefinition(
            name=name,
            json_name=path[-1] if path else name,
            schema=TypeSchema(
                TypeKind.UNION,
                py_type=name,
                union=descriptor,
                nullable=nullable,
                additional_types=extra,
            ),
            location=SpecLocation.UNION,
            needs_marshaler=True,
        )
        tracker.register(definition)
        return definition

    def _element(
        self,
        owner: SchemaProxy,
        member: Mapping[str, Any],
        path: list[str],
    ) -> tuple[UnionElement, list[TypeDefinition]]:
        resolver = self.resolver
        if "$ref" in member:
            canonical = resolver.refs.canonical(member["$ref"], owner.base)
            name = resolver.reference_name(member["$ref"], owner.base)
            return UnionElement(name, name, to_snake_case(name), ref=canonical), []

        shape = resolver.resolve_named(SchemaProxy(member, base=owner.base), path)
        annotation = shape.annotation()
        if shape.kind is TypeKind.REFERENCE:
            suffix = to_snake_case(shape.py_type)
        else:
            suffix = PRIMITIVE_SUFFIXES.get(annotation) or to_snake_case(annotation) or "value"
        return UnionElement(annotation, annotation, suffix), list(shape.additional_types)

    def _discriminator(
        self,
        proxy: SchemaProxy,
        elements: list[UnionElement],
    ) -> tuple[str | None, dict[str, str]]:
        raw = proxy.schema.get("discriminator")
        if not isinstance(raw, Mapping) or not raw.get("propertyName"):
            return None, {}

        by_ref = {element.ref: element for element in elements if element.ref}
        mapping: dict[str, str] = {}
        explicit = raw.get("mapping") or {}
        for value, target in explicit.items():
            canonical = self.resolver.refs.canonical(str(target), proxy.base) if "#" in str(target) \
                else self.resolver.refs.canonical(f"#/components/schemas/{target}", proxy.base)
            element = by_ref.get(canonical)
            if element is None:
                raise SchemaResolutionError(f"discriminator mapping '{value}' targets '{target}' outside the union")
            mapping[str(value)] = element.type_name
            element.discriminator_values.append(str(value))

        if not explicit:
            # implicit mapping: the schema name is the discriminator value
            for element in elements:
                if element.ref:
                    value = element.ref.rsplit("/", 1)[-1]
                    mapping[value] = element.type_name
                    element.discriminator_values.append(value)

        return str(raw["propertyName"]), mapping

    # allOf

    def merge(self, proxy: SchemaProxy, path: list[str]) -> TypeSchema:
        """Flatten an allOf node into one object, embedding bare references as bases."""
        resolver = self.resolver
        schema = proxy.schema
        members = schema.get("allOf") or []
        if not isinstance(members, list):
            raise SchemaResolutionError("allOf must be a list")

        nullable = resolver.is_nullable(schema)
        description = schema.get("description", "")
        sensitive = False
        meaningful: list[tuple[int, Mapping[str, Any]]] = []
        for index, member in enumerate(members):
            if not isinstance(member, Mapping):
                raise SchemaResolutionError(f"allOf[{index}] must be a schema")
            if is_metadata_only(member):
                # folded into the parent, no type of its own
                nullable = nullable or bool(member.get("nullable", False))
                description = description or member.get("description", "")
                sensitive = sensitive or bool(member.get("x-sensitive-data"))
                continue
            meaningful.append((index, member))

        own_shape = any(key in schema for key in ("properties", "additionalProperties", "oneOf", "anyOf"))
        if len(meaningful) == 1 and not own_shape:
            index, member = meaningful[0]
            if "$ref" in member or not (self._is_object(member) or self._is_composed(member)):
                try:
                    single = resolver.resolve(SchemaProxy(member, base=proxy.base), path)
                except SchemaError as err:
                    raise err.with_path(f"allOf[{index}]") from err
                single.nullable = single.nullable or nullable
                single.description = single.description or description
                return single

        required: set[str] = set(schema.get("required") or ())
        for _, member in meaningful:
            if "$ref" not in member:
                required.update(member.get("required") or ())

        fields: list[Field] = []
        bases: list[str] = []
        extra: list[TypeDefinition] = []
        additional: TypeSchema | None = None
        for index, member in meaningful:
            try:
                if "$ref" in member:
                    bases.append(self._base_from_reference(proxy, member))
                elif self._is_composed(member):
                    shape = resolver.resolve(SchemaProxy(member, base=proxy.base), [*path, f"AllOf{index}"])
                    if shape.kind is not TypeKind.OBJECT:
                        raise SchemaResolutionError("allOf cannot merge object and non-object members")
                    reference = resolver.promote(shape, [*path, f"AllOf{index}"])
                    bases.append(reference.py_type)
                    extra.extend(reference.additional_types)
                elif self._is_object(member):
                    member_fields = resolver.object_fields(SchemaProxy(member, base=proxy.base), path, required)
                    for prop in member_fields:
                        prop.source_index = index
                        extra.extend(prop.schema.additional_types)
                        self._add_field(fields, prop, index)
                    member_additional = resolver.additional_properties(SchemaProxy(member, base=proxy.base), path)
                    if member_additional is not None:
                        additional = member_additional
                        extra.extend(member_additional.additional_types)
                else:
                    raise SchemaResolutionError("allOf cannot merge object and non-object members")
            except SchemaError as err:
                raise err.with_path(f"allOf[{index}]") from err

        if "properties" in schema:
            for prop in resolver.object_fields(proxy, path, required):
                extra.extend(prop.schema.additional_types)
                self._add_field(fields, prop, len(members))

        union_type: str | None = None
        if "oneOf" in schema or "anyOf" in schema:
            definition = self.union_type(proxy, path)
            union_type = definition.name
            extra.extend([*definition.schema.additional_types, definition])

        return TypeSchema(
            TypeKind.OBJECT,
            fields=fields,
            bases=bases,
            additional_properties=additional,
            union_type=union_type,
            nullable=nullable,
            description=description,
            sensitive=sensitive or bool(schema.get("x-sensitive-data")) or any(prop.sensitive for prop in fields),
            additional_types=extra,
        )

    def _is_composed(self, member: Mapping[str, Any]) -> bool:
        return any(key in member for key in ("allOf", "oneOf", "anyOf"))

    def _is_object(self, member: Mapping[str, Any]) -> bool:
        types = [item for item in schema_types(member) if item != "null"]
        if types:
            return types == ["object"]
        return "properties" in member or "additionalProperties" in member or "required" in member

    def _base_from_reference(self, owner: SchemaProxy, member: Mapping[str, Any]) -> str:
        resolver = self.resolver
        name = resolver.reference_name(member["$ref"], owner.base)
        seen: set[str] = set()
        current = name
        while current not in seen:
            seen.add(current)
            definition = resolver.tracker.lookup_by_name(current)
            if definition is None:
                # still resolving (cycle), assume an object
                return name
            target = definition.schema
            if target.kind is TypeKind.REFERENCE:
                current = target.py_type
                continue
            if target.kind is TypeKind.OBJECT:
                return name
            raise SchemaResolutionError(
                f"allOf cannot merge object and non-object members ('{name}' is {target.kind.value})"
            )
        return name

    def _add_field(self, fields: list[Field], prop: Field, index: int) -> None:
        """Append ``prop`` to ``fields``, disambiguating colliding names.

        A property declared identically by several members is kept once.  A
        property declared differently keeps its JSON name and gets its Python
        name qualified by the member index.
        """
        for existing in fields:
            if existing.json_name != prop.json_name:
                continue
            if existing.structurally_equal(prop):
                return
            qualified = f"{prop.py_name}_{index}"
            logger.debug(
                "allOf member %d redeclares '%s' differently, keeping it as '%s'",
                index, prop.json_name, qualified,
            )
            prop.py_name = qualified
            break
        taken = {existing.py_name for existing in fields}
        base_name = prop.py_name
        counter = 0
        while prop.py_name in taken:
            prop.py_name = f"{base_name}_{counter}"
            counter += 1
        fields.append(prop)
