"""Removal of components that no operation reaches."""

from __future__ import annotations

import logging
from typing import Any, Final, Iterator, Mapping

logger = logging.getLogger(__name__)

PRUNED_SECTIONS: Final[tuple[str, ...]] = ("schemas", "parameters", "requestBodies", "responses")


def _local_refs(node: Any) -> Iterator[str]:
    if isinstance(node, Mapping):
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/components/"):
            yield ref
        for value in node.values():
            yield from _local_refs(value)
    elif isinstance(node, list):
        for item in node:
            yield from _local_refs(item)


def _component_key(ref: str) -> tuple[str, str] | None:
    parts = ref[len("#/components/"):].split("/")
    if len(parts) < 2:
        return None
    name = parts[1].replace("~1", "/").replace("~0", "~")
    return parts[0], name


def prune_document(document: dict[str, Any]) -> dict[str, Any]:
    """Drop component schemas, parameters, request bodies and responses
    that are not transitively referenced from ``paths``.

    Documents without paths are returned unchanged: their components are
    the whole point of generating.  The document is modified in place and
    returned.
    """
    paths = document.get("paths")
    components = document.get("components")
    if not paths or not isinstance(components, dict):
        return document

    reachable: set[tuple[str, str]] = set()
    pending = list(_local_refs(paths))
    while pending:
        key = _component_key(pending.pop())
        if key is None or key in reachable:
            continue
        reachable.add(key)
        section, name = key
        target = (components.get(section) or {}).get(name)
        if target is not None:
            pending.extend(_local_refs(target))

    for section in PRUNED_SECTIONS:
        entries = components.get(section)
        if not isinstance(entries, dict):
            continue
        for name in list(entries):
            if (section, name) not in reachable:
                logger.debug("Pruned unused components.%s.%s", section, name)
                del entries[name]
        if not entries:
            del components[section]
    return document
