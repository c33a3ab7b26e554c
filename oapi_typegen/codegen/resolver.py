"""Schema resolution: turn OpenAPI schema nodes into semantic type descriptors.

The resolver walks the schema graph starting from ``components.schemas`` (or
from any operation-level schema), registering one ``TypeDefinition`` per
named concept in the run's ``TypeTracker``.  Component schemas are named up
front so that references can be emitted before their target is resolved;
re-entering a reference whose resolution is still in progress marks the
occurrence as indirect instead of recursing, which is what keeps cyclic
graphs finite.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Final, Mapping, Sequence

from ..shared.errors import SchemaError, SchemaResolutionError
from ..shared.naming import (
    NameNormalizer,
    enum_member_name,
    path_to_type_name,
    sanitize_field_name,
    schema_name_to_type_name,
)
from ..shared.schema_loader import RefResolver
from .constraints import ConstraintsContext, new_constraints, schema_types
from .schema import (
    COMPONENT_SCHEMA_PREFIX,
    SCALAR_TYPES,
    STRING_FORMATS,
    EnumDescriptor,
    EnumMember,
    Field,
    SchemaProxy,
    SpecLocation,
    TypeDefinition,
    TypeKind,
    TypeSchema,
    needs_marshaler,
    requires_name,
)
from .type_tracker import TypeTracker
from .unions import UnionSynthesizer

logger = logging.getLogger(__name__)

EXT_PY_TYPE: Final[str] = "x-py-type"
EXT_PY_NAME: Final[str] = "x-py-name"
EXT_SENSITIVE: Final[str] = "x-sensitive-data"
EXT_ENUM_NAMES: Final[str] = "x-enum-varnames"

_LITERAL_KINDS: Final[dict[type, str]] = {bool: "bool", int: "int", float: "float", str: "str"}


@dataclass(frozen=True, slots=True)
class ResolveOptions:
    """Naming and scoping knobs for a resolution run."""

    name_normalizer: NameNormalizer = NameNormalizer.UNSET
    initialisms: tuple[str, ...] = ()
    exclude_schemas: frozenset[str] = frozenset()


def escape_pointer_token(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def _literal_kind(value: Any) -> str:
    for literal_type, kind in _LITERAL_KINDS.items():
        if type(value) is literal_type:
            return kind
    raise SchemaResolutionError(f"unsupported enum value {value!r}")


class SchemaResolver:
    """Resolves schema nodes against one document and one type tracker."""

    def __init__(
        self,
        document: Mapping[str, Any],
        tracker: TypeTracker,
        options: ResolveOptions | None = None,
        refs: RefResolver | None = None,
    ) -> None:
        self.document = document
        self.tracker = tracker
        self.options = options or ResolveOptions()
        self.refs = refs or RefResolver(dict(document))
        self.unions = UnionSynthesizer(self)
        self._in_progress: set[str] = set()
        self._prepared = False

    # Naming

    def type_name(self, path: Sequence[str]) -> str:
        return path_to_type_name(path, self.options.name_normalizer, self.options.initialisms)

    def component_schemas(self) -> dict[str, Any]:
        components = self.document.get("components") or {}
        return components.get("schemas") or {}

    def prepare(self) -> None:
        """Reserve a name for every component schema before anything resolves."""
        if self._prepared:
            return
        self._prepared = True
        for name in self.component_schemas():
            if name in self.options.exclude_schemas:
                continue
            ref = COMPONENT_SCHEMA_PREFIX + escape_pointer_token(name)
            if self.tracker.lookup_by_ref(ref) is not None:
                continue
            type_name = self.tracker.generate_unique_name(
                schema_name_to_type_name(name, self.options.name_normalizer, self.options.initialisms)
            )
            self.tracker.reserve(type_name, ref)

    def resolve_component_schemas(self) -> list[TypeDefinition]:
        """Resolve every (non-excluded) component schema; return all definitions."""
        self.prepare()
        for name in self.component_schemas():
            if name in self.options.exclude_schemas:
                continue
            try:
                self.reference_name(COMPONENT_SCHEMA_PREFIX + escape_pointer_token(name))
            except SchemaError as err:
                raise err.with_path(name) from err
        return self.tracker.definitions()

    def _is_excluded(self, canonical: str) -> bool:
        if not canonical.startswith(COMPONENT_SCHEMA_PREFIX):
            return False
        name = canonical[len(COMPONENT_SCHEMA_PREFIX):].replace("~1", "/").replace("~0", "~")
        return name in self.options.exclude_schemas

    def reference_name(self, ref: str, base: str = "") -> str:
        """Return the type name for ``ref``, resolving its target on first use."""
        self.prepare()
        canonical = self.refs.canonical(ref, base)
        name = self.tracker.lookup_by_ref(canonical)
        if name is not None and (self.tracker.lookup_by_name(name) is not None or canonical in self._in_progress):
            return name
        return self._define_reference(ref, base, canonical, name)

    def _define_reference(self, ref: str, base: str, canonical: str, name: str | None) -> str:
        node, node_base = self.refs.resolve(ref, base)
        if not isinstance(node, Mapping):
            raise SchemaResolutionError(f"reference '{ref}' does not point at a schema")

        json_name = canonical.rsplit("/", 1)[-1].replace("~1", "/").replace("~0", "~")
        if name is None:
            name = self.tracker.generate_unique_name(
                schema_name_to_type_name(json_name, self.options.name_normalizer, self.options.initialisms)
            )
            self.tracker.reserve(name, canonical)

        logger.debug("Resolving %s as %s", canonical, name)
        self._in_progress.add(canonical)
        try:
            schema = self.resolve(SchemaProxy(node, base=node_base), [name])
        finally:
            self._in_progress.discard(canonical)

        if schema.kind is not TypeKind.REFERENCE:
            schema.ref = canonical
        definition = TypeDefinition(
            name=name,
            json_name=json_name,
            schema=schema,
            location=SpecLocation.SCHEMA,
            needs_marshaler=needs_marshaler(schema),
            has_sensitive_data=schema.sensitive,
        )
        self.tracker.register(definition, canonical)
        return name

    def promote(self, shape: TypeSchema, path: Sequence[str], location: SpecLocation = SpecLocation.SCHEMA) -> TypeSchema:
        """Register an inline shape as a named type and return a reference to it."""
        name = self.tracker.generate_unique_name(self.type_name(path))
        definition = TypeDefinition(
            name=name,
            json_name=path[-1] if path else name,
            schema=shape,
            location=SpecLocation.UNION if shape.kind is TypeKind.UNION else location,
            needs_marshaler=needs_marshaler(shape),
            has_sensitive_data=shape.sensitive,
        )
        self.tracker.register(definition)
        reference = TypeSchema(
            TypeKind.REFERENCE,
            py_type=name,
            nullable=shape.nullable,
            description=shape.description,
            sensitive=shape.sensitive,
        )
        reference.additional_types = [*shape.additional_types, definition]
        return reference

    # Resolution

    def resolve(self, proxy: SchemaProxy, path: Sequence[str]) -> TypeSchema:
        """Resolve ``proxy`` to a descriptor; inline shapes are named by ``path``.

        Raises:
            SchemaResolutionError: For unsupported schema shapes.
            ReferenceResolutionError: For references to missing targets.
        """
        schema = proxy.schema
        if not isinstance(schema, Mapping):
            raise SchemaResolutionError(f"expected a schema object, got {type(schema).__name__}")

        if "$ref" in schema:
            return self._resolve_reference(proxy)
        if EXT_PY_TYPE in schema:
            return TypeSchema(
                TypeKind.SCALAR,
                py_type=str(schema[EXT_PY_TYPE]),
                nullable=self.is_nullable(schema),
                description=schema.get("description", ""),
            )
        if "allOf" in schema:
            return self.unions.merge(proxy, list(path))
        if "enum" in schema or "const" in schema:
            return self._resolve_enum(proxy)

        types = [item for item in schema_types(schema) if item != "null"]
        if "oneOf" in schema or "anyOf" in schema:
            if types and types != ["object"]:
                raise SchemaResolutionError(f"type '{types[0]}' cannot be combined with oneOf/anyOf")
            return self._resolve_object(proxy, list(path))
        if len(types) > 1:
            logger.debug("Schema at %s declares several types %s, using Any", ".".join(path), types)
            return TypeSchema(TypeKind.ANY, nullable=self.is_nullable(schema))
        declared = types[0] if types else None

        if declared == "array" or (declared is None and "items" in schema):
            return self._resolve_array(proxy, list(path))
        if declared == "object" or (declared is None and ("properties" in schema or "additionalProperties" in schema)):
            return self._resolve_object(proxy, list(path))
        if declared in SCALAR_TYPES:
            return self._resolve_scalar(schema, declared)
        if declared is not None:
            raise SchemaResolutionError(f"unsupported type '{declared}'")
        return TypeSchema(
            TypeKind.ANY,
            nullable=self.is_nullable(schema),
            description=schema.get("description", ""),
        )

    def resolve_named(self, proxy: SchemaProxy, path: Sequence[str]) -> TypeSchema:
        """Resolve a schema in a value position, naming complex inline shapes."""
        shape = self.resolve(proxy, path)
        if requires_name(shape):
            return self.promote(shape, path)
        return shape

    def _resolve_reference(self, proxy: SchemaProxy) -> TypeSchema:
        ref = proxy.schema["$ref"]
        canonical = self.refs.canonical(ref, proxy.base)
        if self._is_excluded(canonical):
            logger.debug("Reference %s points at an excluded schema, using Any", canonical)
            return TypeSchema(TypeKind.ANY, ref=canonical)

        indirect = canonical in self._in_progress
        name = self.reference_name(ref, proxy.base)
        if indirect:
            logger.debug("Cycle edge at %s, emitting indirect reference to %s", canonical, name)
        return TypeSchema(
            TypeKind.REFERENCE,
            py_type=name,
            ref=canonical,
            is_indirect=indirect,
            nullable=bool(proxy.schema.get("nullable", False)),
            description=proxy.schema.get("description", ""),
        )

    def is_nullable(self, schema: Mapping[str, Any]) -> bool:
        return bool(schema.get("nullable", False)) or "null" in schema_types(schema)

    def _resolve_scalar(self, schema: Mapping[str, Any], declared: str) -> TypeSchema:
        py_type = SCALAR_TYPES[declared]
        if declared == "string":
            py_type = STRING_FORMATS.get(schema.get("format", ""), "str")
        return TypeSchema(
            TypeKind.SCALAR,
            py_type=py_type,
            nullable=self.is_nullable(schema),
            description=schema.get("description", ""),
            constraints=new_constraints(schema, ConstraintsContext(required=True)),
        )

    def _resolve_array(self, proxy: SchemaProxy, path: list[str]) -> TypeSchema:
        schema = proxy.schema
        items = schema.get("items")
        if isinstance(items, Mapping):
            try:
                item_schema = self.resolve_named(SchemaProxy(items, base=proxy.base), [*path, "Item"])
            except SchemaError as err:
                raise err.with_path("items") from err
        else:
            item_schema = TypeSchema(TypeKind.ANY)
        return TypeSchema(
            TypeKind.ARRAY,
            items=item_schema,
            nullable=self.is_nullable(schema),
            description=schema.get("description", ""),
            constraints=new_constraints(schema, ConstraintsContext(required=True)),
            additional_types=list(item_schema.additional_types),
        )

    def _resolve_enum(self, proxy: SchemaProxy) -> TypeSchema:
        schema = proxy.schema
        raw_values = list(schema["enum"]) if "enum" in schema else [schema["const"]]
        nullable = self.is_nullable(schema) or None in raw_values
        values = [value for value in raw_values if value is not None]
        if not values:
            return TypeSchema(TypeKind.ANY, nullable=True)

        kinds = {_literal_kind(value) for value in values}
        if kinds == {"int", "float"}:
            kinds = {"float"}
        if len(kinds) > 1:
            raise SchemaResolutionError(f"enum mixes value kinds {sorted(kinds)}")
        base = kinds.pop()

        declared = [item for item in schema_types(schema) if item != "null"]
        declared_py = SCALAR_TYPES.get(declared[0]) if declared else None
        if declared_py is not None and declared_py != base and {declared_py, base} != {"int", "float"}:
            logger.warning(
                "Enum declared as %s has %s values, generating a %s enum",
                declared[0], base, base,
            )

        names = schema.get(EXT_ENUM_NAMES)
        if isinstance(names, list) and len(names) == len(values):
            names = [str(name) if str(name).isidentifier() else enum_member_name(str(name)) for name in names]
        else:
            names = [enum_member_name(value) for value in values]
        members: list[EnumMember] = []
        seen: set[str] = set()
        for member_name, value in zip(names, values):
            unique = member_name
            index = 0
            while unique in seen:
                unique = f"{member_name}_{index}"
                index += 1
            seen.add(unique)
            members.append(EnumMember(unique, value))

        return TypeSchema(
            TypeKind.ENUM,
            py_type=base,
            enum=EnumDescriptor(base, members),
            nullable=nullable,
            description=schema.get("description", ""),
        )

    def _resolve_object(self, proxy: SchemaProxy, path: list[str]) -> TypeSchema:
        schema = proxy.schema
        required = set(schema.get("required") or ())
        fields = self.object_fields(proxy, path, required)

        additional = self.additional_properties(proxy, path)

        union_type: str | None = None
        union_types: list[TypeDefinition] = []
        if "oneOf" in schema or "anyOf" in schema:
            union_definition = self.unions.union_type(proxy, path)
            union_type = union_definition.name
            union_types = [*union_definition.schema.additional_types, union_definition]

        nullable = self.is_nullable(schema)
        description = schema.get("description", "")
        if not fields and union_type is None and additional is not None:
            return TypeSchema(
                TypeKind.MAP,
                additional_properties=additional,
                nullable=nullable,
                description=description,
                additional_types=list(additional.additional_types),
            )

        extra: list[TypeDefinition] = []
        for prop in fields:
            extra.extend(prop.schema.additional_types)
        if additional is not None:
            extra.extend(additional.additional_types)
        extra.extend(union_types)

        return TypeSchema(
            TypeKind.OBJECT,
            fields=fields,
            additional_properties=additional,
            union_type=union_type,
            nullable=nullable,
            description=description,
            sensitive=bool(schema.get(EXT_SENSITIVE)) or any(prop.sensitive for prop in fields),
            additional_types=extra,
        )

    def additional_properties(self, proxy: SchemaProxy, path: Sequence[str]) -> TypeSchema | None:
        """Resolve the ``additionalProperties`` value type, or None when closed."""
        raw = proxy.schema.get("additionalProperties")
        if raw is True or (isinstance(raw, Mapping) and not raw):
            return TypeSchema(TypeKind.ANY)
        if not isinstance(raw, Mapping):
            return None
        try:
            return self.resolve_named(SchemaProxy(raw, base=proxy.base), [*path, "AdditionalProperties"])
        except SchemaError as err:
            raise err.with_path("additionalProperties") from err

    def object_fields(self, proxy: SchemaProxy, path: Sequence[str], required: set[str]) -> list[Field]:
        """Resolve the declared properties of ``proxy`` in document order."""
        fields: list[Field] = []
        used: set[str] = set()
        for prop_name, prop_schema in (proxy.schema.get("properties") or {}).items():
            try:
                prop = self._resolve_field(proxy, str(prop_name), prop_schema, path, required)
            except SchemaError as err:
                raise err.with_path(str(prop_name)) from err
            py_name = prop.py_name
            index = 0
            while prop.py_name in used:
                prop.py_name = f"{py_name}_{index}"
                index += 1
            used.add(prop.py_name)
            fields.append(prop)
        return fields

    def _resolve_field(
        self,
        owner: SchemaProxy,
        prop_name: str,
        prop_schema: Any,
        path: Sequence[str],
        required: set[str],
    ) -> Field:
        if not isinstance(prop_schema, Mapping):
            raise SchemaResolutionError("property schema must be a mapping")

        field_schema = self.resolve_named(SchemaProxy(prop_schema, base=owner.base), [*path, prop_name])

        target: Mapping[str, Any] = prop_schema
        if "$ref" in prop_schema:
            resolved, _ = self.refs.resolve(prop_schema["$ref"], owner.base)
            if isinstance(resolved, Mapping):
                target = resolved

        constraints = new_constraints(
            target,
            ConstraintsContext(
                has_nil_type="null" in schema_types(target),
                required=prop_name in required,
            ),
        )
        if prop_schema.get("nullable") and not constraints.nullable:
            constraints = replace(constraints, nullable=True)

        py_name = prop_schema.get(EXT_PY_NAME) or sanitize_field_name(prop_name)
        return Field(
            json_name=prop_name,
            py_name=str(py_name),
            schema=field_schema,
            constraints=constraints,
            description=prop_schema.get("description", "") or target.get("description", ""),
            sensitive=bool(prop_schema.get(EXT_SENSITIVE)),
        )

