"""Pydantic base classes for generated object models."""

from __future__ import annotations

import types
import typing
from typing import Any, Final

import pydantic
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializationInfo,
    SerializerFunctionWrapHandler,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    model_serializer,
    model_validator,
)

from .errors import DecodeError, validation_errors_from
from .jsonutil import STRICT_KEYS, coalesce_or_merge, to_json_value

# json_schema_extra key marking the fields that do not map onto one JSON key
FIELD_KIND: Final[str] = "x-oapi-kind"

KIND_UNION: Final[str] = "union"
KIND_ADDITIONAL: Final[str] = "additional"


def union_field() -> Any:
    """The holder of a oneOf/anyOf declared next to the object's own properties."""
    return Field(None, exclude=True, json_schema_extra={FIELD_KIND: KIND_UNION})


def additional_properties_field() -> Any:
    """Keys not claimed by a property or the union, or None when there are none."""
    return Field(None, exclude=True, json_schema_extra={FIELD_KIND: KIND_ADDITIONAL})


def strict_keys(info: ValidationInfo) -> bool:
    return bool(info.context and info.context.get(STRICT_KEYS))


class JSONValueMixin:
    """JSON entry points shared by every generated model class."""

    @classmethod
    def from_json_value(cls, data: Any, strict: bool = False) -> Any:
        """Decode and validate parsed JSON.

        Raises:
            ValidationErrors: One entry per failure, located by JSON path.
        """
        try:
            return cls.model_validate(data, context={STRICT_KEYS: strict})
        except pydantic.ValidationError as err:
            raise validation_errors_from(cls.__name__, [err]) from err

    @classmethod
    def from_json(cls, text: str | bytes, strict: bool = False) -> Any:
        try:
            return cls.model_validate_json(text, context={STRICT_KEYS: strict})
        except pydantic.ValidationError as err:
            raise validation_errors_from(cls.__name__, [err]) from err

    def to_json_value(self) -> Any:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


_special_cache: dict[type, dict[str, str]] = {}


class Model(JSONValueMixin, BaseModel):
    """Base class of generated object models.

    Fields map one-to-one onto JSON keys through their alias.  A
    ``union_field`` captures the keys of the object that belong to its
    oneOf/anyOf variants, and an ``additional_properties_field`` whatever is
    left over.  Optional fields holding None are left out of the encoding.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        protected_namespaces=(),
    )

    @classmethod
    def special_fields(cls) -> dict[str, str]:
        """Map ``union``/``additional`` to the name of the field holding it."""
        cached = _special_cache.get(cls)
        if cached is None:
            cached = {}
            for name, info in cls.model_fields.items():
                extra = info.json_schema_extra
                if isinstance(extra, dict) and FIELD_KIND in extra:
                    cached[str(extra[FIELD_KIND])] = name
            _special_cache[cls] = cached
        return cached

    @classmethod
    def json_keys(cls) -> frozenset[str]:
        """JSON keys of the declared properties."""
        special = set(cls.special_fields().values())
        return frozenset(
            info.alias or name for name, info in cls.model_fields.items() if name not in special
        )

    @classmethod
    def _union_class(cls, name: str) -> Any:
        annotation = cls.model_fields[name].annotation
        if typing.get_origin(annotation) in (typing.Union, types.UnionType):
            for arg in typing.get_args(annotation):
                if arg is not type(None):
                    return arg
        return annotation

    @model_validator(mode="wrap")
    @classmethod
    def _route_json_keys(cls, data: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        special = cls.special_fields()
        strict = strict_keys(info)
        if isinstance(data, cls):
            return handler(data)
        if not isinstance(data, dict):
            if KIND_UNION in special and not cls.json_keys():
                # a bare oneOf/anyOf: the whole value belongs to the union
                return handler({special[KIND_UNION]: data})
            return handler(data)

        own = set(cls.model_fields) - set(special.values())
        known = cls.json_keys() | own
        if not special:
            if strict:
                for key in data:
                    if key not in known:
                        raise DecodeError(f"{cls.__name__}: unknown field '{key}'")
            return handler(data)
        if any(name in data for name in special.values()):
            # keyword construction, already split
            return handler(data)

        values = {key: value for key, value in data.items() if key in known}
        remaining = {key: value for key, value in data.items() if key not in known}
        union_name = special.get(KIND_UNION)
        additional_name = special.get(KIND_ADDITIONAL)
        if union_name is not None and remaining:
            if additional_name is not None:
                union, consumed = cls._union_class(union_name).match(remaining, strict=strict)
                values[union_name] = union
                remaining = {key: value for key, value in remaining.items() if key not in consumed}
            else:
                values[union_name] = remaining
                remaining = {}
        if additional_name is not None and remaining:
            values[additional_name] = remaining
        return handler(values)

    @model_serializer(mode="wrap")
    def _encode_json_keys(self, handler: SerializerFunctionWrapHandler, info: SerializationInfo) -> Any:
        data = handler(self)
        if not isinstance(data, dict):
            return data
        for name, field in type(self).model_fields.items():
            key = field.alias if info.by_alias and field.alias else name
            if key in data and data[key] is None and not field.is_required():
                del data[key]

        special = self.special_fields()
        if not special:
            return data
        union_parts = []
        if KIND_UNION in special:
            union_parts.append(to_json_value(getattr(self, special[KIND_UNION])))
        additional = None
        if KIND_ADDITIONAL in special:
            additional = to_json_value(getattr(self, special[KIND_ADDITIONAL]) or None)
        parts = [data] if data or not union_parts else []
        merged = coalesce_or_merge(*parts, *union_parts, additional)
        return {} if merged is None else merged
