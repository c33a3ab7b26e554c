"""Merging of a second OpenAPI document into a first one."""

from __future__ import annotations

import copy
import logging
from typing import Any, Final, Mapping

from .operations import HTTP_METHODS
from .schema import COMPONENT_SCHEMA_PREFIX

logger = logging.getLogger(__name__)

# Rebinds a merged schema to a component of the resulting document
EXT_SRC_MERGE_REF: Final[str] = "x-src-merge-ref"

_COMPOSITIONS: Final[tuple[str, ...]] = ("allOf", "anyOf", "oneOf")
_OVERWRITTEN: Final[tuple[str, ...]] = ("minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum")


def merge_documents(src: Mapping[str, Any], other: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``other`` into a copy of ``src``.

    Missing paths and operations are added; operations present in both get
    their parameters appended and their request bodies and responses merged
    per content type.  Component schemas present in both are merged
    recursively with :func:`merge_schema`.
    """
    result = copy.deepcopy(dict(src))
    other = copy.deepcopy(dict(other))

    _merge_operations(result, other)

    other_components = other.get("components") or {}
    if other_components:
        components = result.setdefault("components", {})
        for section, entries in other_components.items():
            if section == "schemas" or not isinstance(entries, Mapping):
                continue
            target = components.setdefault(section, {})
            for name, value in entries.items():
                target.setdefault(name, value)

        schemas = components.setdefault("schemas", {})
        for name, schema in (other_components.get("schemas") or {}).items():
            current = schemas.get(name)
            if current is None:
                schemas[name] = schema
                continue
            merge_schema(current, schema)
            resolve_ref_extensions(current, result)
    return result


def _merge_operations(result: dict[str, Any], other: Mapping[str, Any]) -> None:
    other_paths = other.get("paths") or {}
    if not other_paths:
        return
    paths = result.setdefault("paths", {})
    for path, path_item in other_paths.items():
        current = paths.get(path)
        if current is None:
            paths[path] = path_item
            continue

        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if not isinstance(operation, dict):
                continue
            current_operation = current.get(method)
            if current_operation is None:
                current[method] = operation
                continue
            logger.debug("Merging %s %s", method.upper(), path)

            if operation.get("parameters"):
                current_operation["parameters"] = [
                    *(current_operation.get("parameters") or []),
                    *operation["parameters"],
                ]

            body = operation.get("requestBody")
            if isinstance(body, dict):
                _merge_request_body(current_operation, body, result)

            for code, response in (operation.get("responses") or {}).items():
                responses = current_operation.setdefault("responses", {})
                if code in responses:
                    merge_response(responses[code], response, result)
                else:
                    responses[code] = response


def _merge_request_body(operation: dict[str, Any], body: dict[str, Any], document: dict[str, Any]) -> None:
    current_body = operation.get("requestBody")
    if current_body is None:
        operation["requestBody"] = body
        return
    content = current_body.setdefault("content", {})
    for content_type, media in (body.get("content") or {}).items():
        current_media = content.get(content_type)
        if current_media is None:
            content[content_type] = media
            continue
        if isinstance(current_media.get("schema"), dict) and isinstance(media.get("schema"), dict):
            merge_schema(current_media["schema"], media["schema"])
            resolve_ref_extensions(current_media["schema"], document)


def merge_response(src: dict[str, Any], other: Mapping[str, Any], document: dict[str, Any]) -> None:
    """Merge headers and per-content-type schemas of ``other`` into ``src``."""
    if "$ref" in src or "$ref" in other:
        return
    for name, header in (other.get("headers") or {}).items():
        src.setdefault("headers", {})[name] = header

    content = src.setdefault("content", {})
    for content_type, media in (other.get("content") or {}).items():
        current = content.get(content_type)
        if current is None:
            content[content_type] = media
            continue
        if isinstance(current.get("schema"), dict) and isinstance(media.get("schema"), dict):
            merge_schema(current["schema"], media["schema"])
            resolve_ref_extensions(current["schema"], document)


def merge_schema(src: dict[str, Any], other: Mapping[str, Any]) -> None:
    """Merge schema ``other`` into ``src`` in place.

    A reference in ``src`` is left untouched; a reference in ``other``
    replaces ``src``.  Properties and items merge recursively, enum values
    and composition lists are appended, while ``not``, extensions,
    ``required`` and numeric bounds are overwritten.
    """
    if "$ref" in src:
        return
    if "$ref" in other:
        src.clear()
        src["$ref"] = other["$ref"]
        return

    other_properties = other.get("properties")
    if isinstance(other_properties, Mapping):
        properties = src.get("properties")
        if not isinstance(properties, dict):
            src["properties"] = dict(other_properties)
        else:
            for key, value in other_properties.items():
                if key in properties and isinstance(properties[key], dict) and isinstance(value, Mapping):
                    merge_schema(properties[key], value)
                else:
                    properties.setdefault(key, value)

    if "items" not in src:
        if "items" in other:
            src["items"] = other["items"]
    elif isinstance(src["items"], dict) and isinstance(other.get("items"), Mapping):
        merge_schema(src["items"], other["items"])

    if src.get("enum"):
        src["enum"] = [*src["enum"], *(other.get("enum") or [])]

    for keyword in _COMPOSITIONS:
        if other.get(keyword):
            src[keyword] = [*(src.get(keyword) or []), *other[keyword]]

    if other.get("not") is not None:
        src["not"] = other["not"]

    for key, value in other.items():
        if str(key).startswith("x-"):
            src[key] = value

    if other.get("required"):
        src["required"] = list(other["required"])

    for keyword in _OVERWRITTEN:
        if other.get(keyword) is not None:
            src[keyword] = other[keyword]


def resolve_ref_extensions(schema: dict[str, Any], document: Mapping[str, Any]) -> None:
    """Replace schemas carrying ``x-src-merge-ref`` with a reference to that component.

    Only ``#/components/schemas/<name>`` targets that exist in ``document``
    are honoured; nested properties and items are visited first.
    """
    if not isinstance(schema, dict):
        return
    for prop in (schema.get("properties") or {}).values():
        resolve_ref_extensions(prop, document)
    if isinstance(schema.get("items"), dict):
        resolve_ref_extensions(schema["items"], document)

    ref = schema.get(EXT_SRC_MERGE_REF)
    if not isinstance(ref, str) or not ref.startswith(COMPONENT_SCHEMA_PREFIX):
        return
    name = ref[len(COMPONENT_SCHEMA_PREFIX):]
    schemas = (document.get("components") or {}).get("schemas") or {}
    if name and name in schemas:
        logger.debug("Rebinding merged schema to %s", ref)
        schema.clear()
        schema["$ref"] = ref
