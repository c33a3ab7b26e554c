"""HTTP parameter definitions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final, Mapping, Sequence

from ..shared.errors import SchemaError, SchemaResolutionError
from ..shared.naming import PYTHON_KEYWORDS, sanitize_field_name, schema_name_to_type_name
from .schema import SchemaProxy, SpecLocation, TypeDefinition, TypeKind, TypeSchema

if TYPE_CHECKING:
    from .resolver import SchemaResolver

PARAMETER_LOCATIONS: Final[dict[str, SpecLocation]] = {
    "path": SpecLocation.PATH,
    "query": SpecLocation.QUERY,
    "header": SpecLocation.HEADER,
    "cookie": SpecLocation.COOKIE,
}


def is_media_type_json(media_type: str) -> bool:
    """True for ``application/json`` and ``application/*+json`` style media types."""
    base = media_type.split(";", 1)[0].strip().lower()
    return base == "application/json" or base.endswith("+json") or base.endswith("/json")


@dataclass(frozen=True, slots=True)
class ParameterDefinition:
    """One path, query, header or cookie parameter of an operation."""

    param_name: str
    location: str
    required: bool
    spec: Mapping[str, Any]
    schema: TypeSchema

    @property
    def py_name(self) -> str:
        return sanitize_field_name(str(self.spec.get("x-py-name") or self.param_name))

    @property
    def variable_name(self) -> str:
        name = self.py_name.rstrip("_")
        if name in PYTHON_KEYWORDS:
            return f"p_{name}"
        return self.py_name

    @property
    def type_name(self) -> str:
        return schema_name_to_type_name(str(self.spec.get("x-py-name") or self.param_name))

    @property
    def style(self) -> str:
        style = self.spec.get("style")
        if style:
            return str(style)
        if self.location in ("path", "header"):
            return "simple"
        if self.location in ("query", "cookie"):
            return "form"
        raise SchemaResolutionError(f"unknown parameter location '{self.location}'")

    @property
    def explode(self) -> bool:
        explode = self.spec.get("explode")
        if explode is not None:
            return bool(explode)
        if self.location in ("path", "header"):
            return False
        if self.location in ("query", "cookie"):
            return True
        raise SchemaResolutionError(f"unknown parameter location '{self.location}'")

    @property
    def is_json(self) -> bool:
        content = self.spec.get("content") or {}
        return len(content) == 1 and is_media_type_json(next(iter(content)))

    @property
    def is_passthrough(self) -> bool:
        content = self.spec.get("content") or {}
        if len(content) > 1:
            return True
        return len(content) == 1 and not self.is_json

    @property
    def is_styled(self) -> bool:
        return "schema" in self.spec

    @property
    def indirect_optional(self) -> bool:
        return not self.required

    @property
    def annotation(self) -> str:
        base = self.schema.annotation()
        if self.indirect_optional and not base.startswith("Optional["):
            return f"Optional[{base}]"
        return base


def find_by_name(params: Sequence[ParameterDefinition], name: str) -> ParameterDefinition | None:
    for param in params:
        if param.param_name == name:
            return param
    return None


def parameter_schema(spec: Mapping[str, Any]) -> Mapping[str, Any] | None:
    if isinstance(spec.get("schema"), Mapping):
        return spec["schema"]
    content = spec.get("content") or {}
    if len(content) == 1:
        media = next(iter(content.values())) or {}
        if isinstance(media.get("schema"), Mapping):
            return media["schema"]
    return None


def describe_parameters(
    params: Sequence[Any],
    path: Sequence[str],
    resolver: SchemaResolver,
    base: str = "",
) -> list[ParameterDefinition]:
    """Resolve ``params`` (inline or ``$ref``) into parameter definitions.

    Parameters referenced from ``components.parameters`` get a named type of
    their own; a name already used by a schema gets a numeric suffix.
    """
    resolver.prepare()
    definitions: list[ParameterDefinition] = []
    for index, param_or_ref in enumerate(params):
        if not isinstance(param_or_ref, Mapping):
            raise SchemaResolutionError(f"parameter {index} must be a mapping")
        ref = param_or_ref.get("$ref", "")
        spec: Any = param_or_ref
        param_base = base
        if ref:
            spec, param_base = resolver.refs.resolve(ref, base)
            if not isinstance(spec, Mapping):
                raise SchemaResolutionError(f"parameter reference '{ref}' is not a parameter")

        name = str(spec.get("name", ""))
        location = str(spec.get("in", ""))
        if not name or location not in PARAMETER_LOCATIONS:
            raise SchemaResolutionError(f"parameter {index} needs a name and a valid 'in'")

        raw_schema = parameter_schema(spec)
        try:
            if ref:
                schema = _component_parameter_type(resolver, ref, param_base, spec, raw_schema, location)
            elif raw_schema is not None:
                schema = resolver.resolve_named(SchemaProxy(raw_schema, base=param_base), [*path, name])
            else:
                schema = TypeSchema(TypeKind.ANY)
        except SchemaError as err:
            raise err.with_path(f"parameters.{name}") from err

        definitions.append(ParameterDefinition(
            param_name=name,
            location=location,
            required=bool(spec.get("required", False)) or location == "path",
            spec=spec,
            schema=schema,
        ))
    return definitions


def _component_parameter_type(
    resolver: SchemaResolver,
    ref: str,
    base: str,
    spec: Mapping[str, Any],
    raw_schema: Mapping[str, Any] | None,
    location: str,
) -> TypeSchema:
    tracker = resolver.tracker
    canonical = resolver.refs.canonical(ref, base)
    name = tracker.lookup_by_ref(canonical)
    if name is None:
        json_name = canonical.rsplit("/", 1)[-1]
        name = tracker.generate_unique_name(resolver.type_name([json_name]))
        tracker.reserve(name, canonical)
        if raw_schema is not None:
            shape = resolver.resolve(SchemaProxy(raw_schema, base=base), [name])
        else:
            shape = TypeSchema(TypeKind.ANY)
        tracker.register(
            TypeDefinition(
                name=name,
                json_name=str(spec.get("name", json_name)),
                schema=shape,
                location=PARAMETER_LOCATIONS[location],
            ),
            canonical,
        )
    return TypeSchema(TypeKind.REFERENCE, py_type=name, ref=canonical)
