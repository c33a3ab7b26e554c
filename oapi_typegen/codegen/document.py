"""Document preparation: parse, filter and prune before resolution."""

from __future__ import annotations

import logging
from typing import Any

from ..shared.errors import SchemaValidationError
from ..shared.schema_loader import parse_document
from .configuration import Configuration
from .filter import filter_document
from .prune import prune_document

logger = logging.getLogger(__name__)


def prepare_document(document: dict[str, Any], config: Configuration) -> dict[str, Any]:
    """Apply the configured filter and, unless ``skip-prune`` is set, pruning."""
    paths = document.get("paths")
    if paths is not None and not isinstance(paths, dict):
        raise SchemaValidationError("must be a mapping", field="paths")
    components = document.get("components")
    if components is not None and not isinstance(components, dict):
        raise SchemaValidationError("must be a mapping", field="components")

    result = filter_document(document, config.filter)
    if not config.skip_prune:
        result = prune_document(result)
    logger.debug(
        "Prepared document: %d path(s), %d component schema(s)",
        len(result.get("paths") or {}),
        len((result.get("components") or {}).get("schemas") or {}),
    )
    return result


def create_document(contents: str | bytes, config: Configuration, source: str | None = None) -> dict[str, Any]:
    """Parse document ``contents`` and prepare it for generation.

    Raises:
        SchemaError: If the contents are not a YAML/JSON mapping.
    """
    return prepare_document(parse_document(contents, source), config)
