"""Errors raised by generated models."""

from __future__ import annotations

from typing import Iterable

import pydantic


class DecodeError(ValueError):
    """A JSON value does not match the type it is decoded into."""


class UnionDecodeError(DecodeError):
    """A union payload does not match the requested variant."""


class ValidationError(ValueError):
    """One failed constraint on one field."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.field:
            return f"{self.field} {self.message}"
        return self.message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValidationError):
            return NotImplemented
        return (self.field, self.message) == (other.field, other.message)

    def __hash__(self) -> int:
        return hash((self.field, self.message))

    def with_prefix(self, prefix: str) -> ValidationError:
        """Qualify the field with ``prefix`` unless it already is."""
        if not prefix:
            return self
        if not self.field:
            return ValidationError(prefix, self.message)
        if self.field == prefix or self.field.startswith((prefix + ".", prefix + "[")):
            return self
        separator = "" if self.field.startswith("[") else "."
        return ValidationError(f"{prefix}{separator}{self.field}", self.message)


class ValidationErrors(ValueError):
    """A list of validation errors, rendered one per line."""

    def __init__(self, errors: Iterable[ValidationError] = ()) -> None:
        self.errors: list[ValidationError] = list(errors)
        super().__init__(str(self))

    def __str__(self) -> str:
        return "\n".join(str(error) for error in self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self):
        return iter(self.errors)

    def __getitem__(self, index: int) -> ValidationError:
        return self.errors[index]

    def __bool__(self) -> bool:
        return bool(self.errors)

    def add(self, field: str, message: str) -> ValidationErrors:
        self.errors.append(ValidationError(field, message))
        return self

    def append(self, field: str, error: Exception | None) -> ValidationErrors:
        """Add ``error`` (a single error, a list of them, or any exception) under ``field``."""
        if error is not None:
            self.errors.extend(validation_errors_from(field, [error]))
        return self


def json_path(loc: Iterable[int | str]) -> str:
    """Render a pydantic error location as ``items[0].name``."""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


def validation_errors_from(prefix: str, errors: Iterable[Exception]) -> ValidationErrors:
    """Flatten ``errors`` into ``ValidationErrors``, qualifying fields with ``prefix``.

    Fields that already carry the prefix are not prefixed twice.  A pydantic
    error contributes one entry per failure, located by its JSON path; other
    exceptions become an error on ``prefix`` with their message.
    """
    result: list[ValidationError] = []
    for error in errors:
        if isinstance(error, ValidationErrors):
            result.extend(item.with_prefix(prefix) for item in error.errors)
        elif isinstance(error, ValidationError):
            result.append(error.with_prefix(prefix))
        elif isinstance(error, pydantic.ValidationError):
            for detail in error.errors(include_url=False):
                result.append(ValidationError(json_path(detail["loc"]), detail["msg"]).with_prefix(prefix))
        else:
            result.append(ValidationError(prefix, str(error)))
    return ValidationErrors(result)


class ClientAPIError(Exception):
    """An error returned by an API, with the HTTP status code when known."""

    def __init__(self, error: Exception | None = None, status_code: int = 0) -> None:
        self.error = error
        self.status_code = status_code
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.error is None:
            return "client api error"
        return str(self.error)
