"""One generation run: resolve a prepared document into type definitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import requests

from ..shared.schema_loader import RefResolver
from .configuration import DEFAULT_RESPONSE_SUFFIX, Configuration
from .operations import OperationDefinition, operation_definitions
from .resolver import ResolveOptions, SchemaResolver
from .schema import TypeDefinition, TypeSchema
from .type_tracker import TypeTracker

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GenerationResult:
    """Everything a renderer needs: named types and the operations owning some of them."""

    definitions: list[TypeDefinition] = field(default_factory=list)
    operations: list[OperationDefinition] = field(default_factory=list)

    @property
    def type_schema_map(self) -> dict[str, TypeSchema]:
        return {definition.name: definition.schema for definition in self.definitions}

    def definition(self, name: str) -> TypeDefinition | None:
        for definition in self.definitions:
            if definition.name == name:
                return definition
        return None


def resolve_options(config: Configuration) -> ResolveOptions:
    return ResolveOptions(
        name_normalizer=config.normalizer,
        initialisms=config.additional_initialisms,
        exclude_schemas=frozenset(config.exclude_schemas),
    )


def generate(
    document: Mapping[str, Any],
    config: Configuration,
    base_path: Path | None = None,
    session: requests.Session | None = None,
) -> GenerationResult:
    """Resolve component schemas and operation types of a prepared document.

    ``base_path`` anchors relative external references; ``session`` is used
    for remote ones.  A fresh ``TypeTracker`` is created for every call.

    Raises:
        SchemaError: If any schema cannot be resolved.
    """
    tracker = TypeTracker()
    refs = RefResolver(dict(document), base_path=base_path, session=session)
    resolver = SchemaResolver(document, tracker, resolve_options(config), refs)

    resolver.resolve_component_schemas()
    operations = operation_definitions(
        document,
        resolver,
        config.response_type_suffix or DEFAULT_RESPONSE_SUFFIX,
    )
    definitions = tracker.definitions()
    logger.debug("Generated %d type(s) for %d operation(s)", len(definitions), len(operations))
    return GenerationResult(definitions=definitions, operations=operations)
