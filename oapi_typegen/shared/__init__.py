"""Shared utilities for the type generator."""

from .schema_loader import (
    DocumentCache,
    RefResolver,
    load_document,
    parse_document,
    resolve_pointer,
)
from .naming import (
    DEFAULT_INITIALISMS,
    NameNormalizer,
    PYTHON_KEYWORDS,
    enum_member_name,
    media_type_to_camel_case,
    normalize_name,
    path_to_type_name,
    sanitize_field_name,
    schema_name_to_type_name,
    to_camel_case,
    to_snake_case,
)
from .errors import (
    ConfigurationError,
    NamingConflictError,
    ReferenceResolutionError,
    SchemaError,
    SchemaResolutionError,
    SchemaValidationError,
)

__all__ = [
    # Document loading
    "DocumentCache",
    "RefResolver",
    "load_document",
    "parse_document",
    "resolve_pointer",
    # Naming utilities
    "DEFAULT_INITIALISMS",
    "NameNormalizer",
    "PYTHON_KEYWORDS",
    "enum_member_name",
    "media_type_to_camel_case",
    "normalize_name",
    "path_to_type_name",
    "sanitize_field_name",
    "schema_name_to_type_name",
    "to_camel_case",
    "to_snake_case",
    # Errors
    "ConfigurationError",
    "NamingConflictError",
    "ReferenceResolutionError",
    "SchemaError",
    "SchemaResolutionError",
    "SchemaValidationError",
]
