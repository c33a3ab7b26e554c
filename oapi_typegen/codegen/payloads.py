"""Request body definitions."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Mapping

from ..shared.errors import SchemaError, SchemaResolutionError
from ..shared.naming import media_type_to_camel_case
from .parameters import is_media_type_json
from .schema import SchemaProxy, SpecLocation, TypeDefinition, TypeKind, TypeSchema, needs_marshaler

if TYPE_CHECKING:
    from .resolver import SchemaResolver


@dataclass(frozen=True, slots=True)
class RequestBodyEncoding:
    content_type: str = ""
    style: str = ""
    explode: bool | None = None


@dataclass(frozen=True, slots=True)
class RequestBodyDefinition:
    """The request body variant selected for one operation."""

    name: str
    required: bool
    schema: TypeSchema
    name_tag: str
    content_type: str
    default: bool = False
    encoding: dict[str, RequestBodyEncoding] = field(default_factory=dict)

    @property
    def suffix(self) -> str:
        return "" if self.default else f"With{self.name_tag}Body"

    @property
    def is_json(self) -> bool:
        return is_media_type_json(self.content_type)

    @property
    def is_supported(self) -> bool:
        return bool(self.name_tag)

    @property
    def is_supported_by_client(self) -> bool:
        return self.is_json or self.name_tag in ("Formdata", "Text")

    @property
    def is_fixed_content_type(self) -> bool:
        return "*" not in self.content_type

    @property
    def is_optional(self) -> bool:
        return not self.required

    @property
    def custom_type(self) -> bool:
        return self.schema.kind is not TypeKind.REFERENCE


def select_content_type(content: Mapping[str, Any]) -> str:
    """``application/json`` when offered, otherwise the last media type in sorted order."""
    selected = ""
    for content_type in sorted(content):
        selected = content_type
        if content_type == "application/json":
            break
    return selected


def body_name_tag(content_type: str) -> str:
    """Name tag for a body media type; empty for unsupported ones."""
    if content_type == "application/json":
        return "JSON"
    if is_media_type_json(content_type):
        return media_type_to_camel_case(content_type)
    if content_type.startswith("multipart/"):
        return "Multipart"
    if content_type == "application/x-www-form-urlencoded":
        return "Formdata"
    if content_type == "text/plain":
        return "Text"
    return ""


def create_body_definition(
    operation_id: str,
    body_or_ref: Mapping[str, Any] | None,
    resolver: SchemaResolver,
) -> tuple[RequestBodyDefinition | None, TypeDefinition | None]:
    """Describe the request body of ``operation_id``.

    Returns ``(None, None)`` when there is no body or its media type is not
    supported.  Inline body schemas are registered as ``<OperationId>Body``;
    when that name is taken the content-type tag is tried, then numbers.
    """
    if not body_or_ref:
        return None, None

    body: Any = body_or_ref
    base = ""
    if "$ref" in body_or_ref:
        body, base = resolver.refs.resolve(body_or_ref["$ref"], "")
        if not isinstance(body, Mapping):
            raise SchemaResolutionError(f"request body reference '{body_or_ref['$ref']}' is not a request body")

    content = body.get("content") or {}
    content_type = select_content_type(content)
    tag = body_name_tag(content_type)
    if not tag:
        return None, None

    media = content.get(content_type) or {}
    raw_schema = media.get("schema")
    required = bool(body.get("required", False))

    tracker = resolver.tracker
    body_name = resolver.type_name([f"{operation_id}Body"])
    try:
        if isinstance(raw_schema, Mapping):
            schema = resolver.resolve(SchemaProxy(raw_schema, base=base), [body_name])
        else:
            schema = TypeSchema(TypeKind.ANY)
    except SchemaError as err:
        raise err.with_path("requestBody") from err

    definition: TypeDefinition | None = None
    if schema.kind is not TypeKind.REFERENCE:
        if tracker.exists(body_name):
            body_name = tracker.generate_unique_name_with_suffixes(body_name, [tag])
        definition = TypeDefinition(
            name=body_name,
            json_name=body_name,
            schema=schema,
            location=SpecLocation.BODY,
            needs_marshaler=needs_marshaler(schema),
            has_sensitive_data=schema.sensitive,
        )
        tracker.register(definition)
        schema = TypeSchema(TypeKind.REFERENCE, py_type=body_name)
    schema.constraints = replace(schema.constraints, required=required)

    encoding = {
        str(key): RequestBodyEncoding(
            content_type=str(value.get("contentType", "")),
            style=str(value.get("style", "")),
            explode=value.get("explode"),
        )
        for key, value in (media.get("encoding") or {}).items()
        if isinstance(value, Mapping)
    }

    return RequestBodyDefinition(
        name=body_name,
        required=required,
        schema=schema,
        name_tag=tag,
        content_type=content_type,
        default=content_type == "application/json",
        encoding=encoding,
    ), definition
