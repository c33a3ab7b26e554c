"""Custom exceptions for the type generator."""

from __future__ import annotations

from typing import Sequence


class SchemaError(Exception):
    """Base exception for schema-related errors."""

    def __init__(self, message: str, schema_path: str | None = None) -> None:
        self.schema_path = schema_path
        self.message = message
        full_message = f"{message}" if not schema_path else f"[{schema_path}] {message}"
        super().__init__(full_message)

    def with_path(self, segment: str) -> SchemaError:
        """Return a copy of this error with ``segment`` prepended to its path."""
        path = segment if not self.schema_path else f"{segment}.{self.schema_path}"
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        SchemaError.__init__(clone, self.message, path)
        return clone


class SchemaValidationError(SchemaError):
    """Raised when a document fails basic shape validation."""

    def __init__(
        self,
        message: str,
        schema_path: str | None = None,
        field: str | None = None,
    ) -> None:
        self.field = field
        if field:
            message = f"Field '{field}': {message}"
        super().__init__(message, schema_path)


class SchemaResolutionError(SchemaError):
    """Raised for a malformed or unsupported schema shape."""


class ReferenceResolutionError(SchemaError):
    """Raised when a ``$ref`` points at something that does not exist."""

    def __init__(self, ref: str, schema_path: str | None = None, reason: str | None = None) -> None:
        self.ref = ref
        message = f"Unresolvable reference '{ref}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, schema_path)


class NamingConflictError(SchemaError):
    """Raised when a reference path is registered under two different names."""

    def __init__(self, ref: str, existing: str, requested: str) -> None:
        self.ref = ref
        self.existing = existing
        self.requested = requested
        super().__init__(
            f"Reference '{ref}' is already registered as '{existing}', cannot register as '{requested}'"
        )


class ConfigurationError(SchemaError):
    """Raised when a generator configuration is invalid."""

    def __init__(self, problems: Sequence[str], config_path: str | None = None) -> None:
        self.problems = list(problems)
        joined = "; ".join(self.problems)
        super().__init__(f"failed to validate configuration: {joined}", config_path)
