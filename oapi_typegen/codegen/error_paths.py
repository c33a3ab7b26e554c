"""Compile configured error-message paths into Python statements."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Mapping

from .schema import Field, TypeKind, TypeSchema

if TYPE_CHECKING:
    from .schema import TypeDefinition

UNKNOWN_ERROR: Final[str] = 'return "unknown error"'


@dataclass(frozen=True, slots=True)
class ErrorPathSegment:
    property_name: str
    is_array_index: bool = False


def parse_error_path(path: str) -> list[ErrorPathSegment]:
    """Split ``data[].message[]`` into property segments.

    A trailing ``[]`` on a segment means "the first element of this array".
    """
    segments: list[ErrorPathSegment] = []
    for part in path.split("."):
        part = part.strip()
        if not part:
            continue
        if part.endswith("[]"):
            segments.append(ErrorPathSegment(part[:-2], True))
        else:
            segments.append(ErrorPathSegment(part))
    return segments


def _dereference(schema: TypeSchema, type_schema_map: Mapping[str, TypeSchema]) -> TypeSchema:
    seen: set[str] = set()
    while schema.kind is TypeKind.REFERENCE and schema.py_type not in seen:
        seen.add(schema.py_type)
        target = type_schema_map.get(schema.py_type)
        if target is None:
            break
        schema = target
    return schema


def _find_field(
    schema: TypeSchema,
    json_name: str,
    type_schema_map: Mapping[str, TypeSchema],
    seen: set[str] | None = None,
) -> Field | None:
    prop = schema.field_by_json_name(json_name)
    if prop is not None:
        return prop
    seen = seen if seen is not None else set()
    for base in schema.bases:
        if base in seen or base not in type_schema_map:
            continue
        seen.add(base)
        prop = _find_field(_dereference(type_schema_map[base], type_schema_map), json_name, type_schema_map, seen)
        if prop is not None:
            return prop
    return None


def error_response_code(
    definition: TypeDefinition,
    error_types: Mapping[str, str],
    alias: str,
    type_schema_map: Mapping[str, TypeSchema],
) -> str:
    """Statements returning the error message of ``alias`` (an instance of ``definition``).

    Each attribute access is bound to ``res<N>``.  Optional values are
    checked for ``None`` and arrays for emptiness before use; any path that
    cannot be followed through the type produces ``return "unknown error"``.
    """
    path = error_types.get(definition.name, "")
    if not path:
        return UNKNOWN_ERROR

    schema = _dereference(definition.schema, type_schema_map)
    call_path: list[tuple[Field, bool]] = []
    for segment in parse_error_path(path):
        prop = _find_field(schema, segment.property_name, type_schema_map)
        if prop is None:
            return UNKNOWN_ERROR
        call_path.append((prop, segment.is_array_index))
        schema = prop.schema
        if segment.is_array_index and schema.kind is TypeKind.ARRAY and schema.items is not None:
            schema = schema.items
        schema = _dereference(schema, type_schema_map)

    if not call_path:
        return UNKNOWN_ERROR

    code: list[str] = []
    previous = alias
    index = 0
    for prop, is_array_index in call_path:
        name = f"res{index}"
        index += 1
        code.append(f"{name} = {previous}.{prop.py_name}")
        previous = name
        is_array = prop.schema.kind is TypeKind.ARRAY
        if prop.is_optional and not is_array:
            code.append(f"if {name} is None: {UNKNOWN_ERROR}")
        if is_array_index:
            code.append(f"if not {previous}: {UNKNOWN_ERROR}")
            name = f"res{index}"
            index += 1
            code.append(f"{name} = {previous}[0]")
            previous = name

    code.append(f"return {previous}")
    return "\n".join(code)
