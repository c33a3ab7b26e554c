"""Response type definitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

from ..shared.errors import SchemaError, SchemaResolutionError
from .parameters import is_media_type_json
from .schema import SchemaProxy, SpecLocation, TypeDefinition, TypeSchema, needs_marshaler

if TYPE_CHECKING:
    from .resolver import SchemaResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResponseDefinition:
    """A JSON response body promoted to a named type."""

    status: str
    content_type: str
    type_name: str
    schema: TypeSchema
    is_error: bool
    description: str = ""


def _is_success(status: str) -> bool:
    return status.startswith("2")


def _is_error(status: str) -> bool:
    return status == "default" or status[:1] in ("4", "5")


def _json_media(response: Mapping[str, Any]) -> tuple[str, Mapping[str, Any]] | None:
    content = response.get("content") or {}
    for content_type in sorted(content):
        if is_media_type_json(content_type):
            media = content[content_type] or {}
            if isinstance(media.get("schema"), Mapping):
                return content_type, media
    return None


def describe_responses(
    operation_id: str,
    responses: Mapping[str, Any] | None,
    resolver: SchemaResolver,
    response_suffix: str = "Response",
) -> list[ResponseDefinition]:
    """Name the success and error JSON bodies of an operation.

    The first 2xx JSON body becomes ``<OperationId><response_suffix>``; the
    first ``default``/4xx/5xx JSON body becomes ``<OperationId>ErrorResponse``.
    """
    if not responses:
        return []

    by_status = {str(code): response for code, response in responses.items()}
    found: dict[bool, tuple[str, str, Mapping[str, Any], Mapping[str, Any], str]] = {}
    for status in sorted(by_status):
        response: Any = by_status[status]
        if not isinstance(response, Mapping):
            continue
        base = ""
        if "$ref" in response:
            response, base = resolver.refs.resolve(response["$ref"], "")
            if not isinstance(response, Mapping):
                raise SchemaResolutionError(f"response '{status}' does not point at a response")
        media = _json_media(response)
        if media is None:
            continue
        if _is_success(status) and True not in found:
            found[True] = (status, media[0], media[1], response, base)
        elif _is_error(status) and False not in found:
            found[False] = (status, media[0], media[1], response, base)

    definitions: list[ResponseDefinition] = []
    tracker = resolver.tracker
    for success in (True, False):
        if success not in found:
            continue
        status, content_type, media, response, base = found[success]
        hint = "Response" if success else "ErrorResponse"
        suffix = response_suffix if success else "ErrorResponse"
        try:
            schema = resolver.resolve(SchemaProxy(media["schema"], base=base), [operation_id, hint])
        except SchemaError as err:
            raise err.with_path(f"responses.{status}") from err

        type_name = tracker.generate_unique_name(resolver.type_name([operation_id]) + suffix)
        tracker.register(TypeDefinition(
            name=type_name,
            json_name=type_name,
            schema=schema,
            location=SpecLocation.RESPONSE,
            needs_marshaler=needs_marshaler(schema),
            has_sensitive_data=schema.sensitive,
        ))
        logger.debug("Response %s of %s -> %s", status, operation_id, type_name)
        definitions.append(ResponseDefinition(
            status=status,
            content_type=content_type,
            type_name=type_name,
            schema=schema,
            is_error=not success,
            description=str(response.get("description", "")),
        ))
    return definitions
