"""Enum mixin for generated enum types."""

from __future__ import annotations

from enum import Enum
from typing import Any

from .errors import ValidationError


def json_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


class EnumModel(Enum):
    """Base of generated enums, eg ``class Status(str, EnumModel)``.

    Pydantic validates enum fields by value.  ``validate`` is the stricter
    check for callers holding loose input: a string enum rejects ``1`` as
    firmly as it rejects ``"invalid"``.
    """

    @classmethod
    def validate(cls, value: Any) -> EnumModel:
        """Return the member for ``value``.

        Raises:
            ValidationError: If ``value`` is not one of the declared values.
        """
        if isinstance(value, cls):
            return value
        kind = type(next(iter(cls)).value)
        if type(value) is not kind and not (kind is float and type(value) is int):
            raise ValidationError("", f"must be a {kind.__name__}, got {json_kind(value)}")
        try:
            return cls(value)
        except ValueError as err:
            raise ValidationError("", f"{value!r} is not a valid {cls.__name__}") from err
