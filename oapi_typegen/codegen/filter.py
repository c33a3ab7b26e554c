"""Include/exclude filtering of operations, schema properties and extensions."""

from __future__ import annotations

import copy
import logging
from typing import Any, Mapping

from .configuration import FilterConfig, FilterParamsConfig
from .operations import HTTP_METHODS

logger = logging.getLogger(__name__)


def filter_document(document: Mapping[str, Any], config: FilterConfig) -> dict[str, Any]:
    """Return a filtered copy of ``document``; the input is never mutated.

    Operations are kept or dropped by path, tag and operation id; schema
    properties by per-schema include/exclude lists (required properties are
    always kept); schema extensions by name.  ``examples`` are stripped from
    components, from component schemas and from the media types and
    parameters of kept operations.  An empty configuration returns an
    unchanged copy.
    """
    result = copy.deepcopy(dict(document))
    if config.is_empty:
        return result
    _filter_operations(result, config)

    components = result.get("components")
    if isinstance(components, dict):
        components.pop("examples", None)
        _filter_schema_properties(components.get("schemas") or {}, config)
    return result


def _operation_removed(operation: Mapping[str, Any], config: FilterConfig) -> bool:
    include, exclude = config.include, config.exclude
    tags = [str(tag) for tag in operation.get("tags") or ()]
    operation_id = str(operation.get("operationId", ""))

    if any(tag in exclude.tags for tag in tags):
        return True
    if include.tags and not any(tag in include.tags for tag in tags):
        return True
    if exclude.operation_ids and operation_id in exclude.operation_ids:
        return True
    if include.operation_ids and operation_id not in include.operation_ids:
        return True
    return False


def _filter_operations(document: dict[str, Any], config: FilterConfig) -> None:
    paths = document.get("paths")
    if not isinstance(paths, dict):
        return

    for path in list(paths):
        if config.include.paths and path not in config.include.paths:
            logger.debug("Filtered out path %s (not included)", path)
            del paths[path]
            continue
        if config.exclude.paths and path in config.exclude.paths:
            logger.debug("Filtered out path %s (excluded)", path)
            del paths[path]
            continue

        path_item = paths[path]
        if not isinstance(path_item, dict):
            continue
        removed = False
        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if not isinstance(operation, dict):
                continue
            if _operation_removed(operation, config):
                logger.debug("Filtered out %s %s", method.upper(), path)
                del path_item[method]
                removed = True
            else:
                _strip_operation_examples(operation)

        if removed and not any(method in path_item for method in HTTP_METHODS):
            del paths[path]


def _strip_operation_examples(operation: dict[str, Any]) -> None:
    body = operation.get("requestBody")
    if isinstance(body, dict):
        for media in (body.get("content") or {}).values():
            if isinstance(media, dict):
                media.pop("examples", None)

    for response in (operation.get("responses") or {}).values():
        if not isinstance(response, dict):
            continue
        for media in (response.get("content") or {}).values():
            if isinstance(media, dict):
                media.pop("examples", None)

    for param in operation.get("parameters") or ():
        if isinstance(param, dict):
            param.pop("examples", None)


def should_include_extension(name: str, include: FilterParamsConfig, exclude: FilterParamsConfig) -> bool:
    if include.extensions:
        return name in include.extensions
    if exclude.extensions:
        return name not in exclude.extensions
    return True


def _filter_schema_properties(schemas: Mapping[str, Any], config: FilterConfig) -> None:
    include, exclude = config.include, config.exclude
    for schema_name, schema in schemas.items():
        if not isinstance(schema, dict) or not isinstance(schema.get("properties"), dict):
            continue

        schema.pop("examples", None)
        if include.extensions or exclude.extensions:
            for key in [key for key in schema if str(key).startswith("x-")]:
                if not should_include_extension(key, include, exclude):
                    del schema[key]

        required = set(schema.get("required") or ())
        properties = schema["properties"]
        included = include.schema_properties.get(schema_name)
        excluded = exclude.schema_properties.get(schema_name)
        for prop_name in list(properties):
            if prop_name in required:
                continue
            if included and prop_name not in included:
                del properties[prop_name]
            elif excluded and prop_name in excluded:
                del properties[prop_name]
