"""JSON value helpers used by generated unions and models."""

from __future__ import annotations

import copy
from functools import lru_cache
from typing import Any, Final

from pydantic import TypeAdapter
from pydantic_core import to_jsonable_python

from .errors import DecodeError

# Validation context key: reject object keys no property claims
STRICT_KEYS: Final[str] = "oapi_strict_keys"


def json_merge(data: Any, patch: Any, *, copy_nonexistent: bool = False) -> Any:
    """Return ``data`` with ``patch`` applied.

    Objects merge key by key; keys missing from ``data`` are only added with
    ``copy_nonexistent``.  A patch object whose keys are indexes updates the
    matching elements of an array.  Anything else replaces the value.
    """
    if isinstance(data, dict) and isinstance(patch, dict):
        result = dict(data)
        for key, value in patch.items():
            if key in result:
                result[key] = json_merge(result[key], value, copy_nonexistent=copy_nonexistent)
            elif copy_nonexistent:
                result[key] = copy.deepcopy(value)
        return result
    if isinstance(data, list) and isinstance(patch, dict):
        result = list(data)
        for key, value in patch.items():
            if str(key).isdigit() and int(key) < len(result):
                result[int(key)] = json_merge(result[int(key)], value, copy_nonexistent=copy_nonexistent)
        return result
    return copy.deepcopy(patch)


def coalesce_or_merge(*parts: Any) -> Any:
    """Combine encoded parts of one value.

    ``None`` parts are skipped; objects are merged (later keys win); a
    single non-object part is returned as is.
    """
    present = [part for part in parts if part is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    merged: dict[str, Any] = {}
    for part in present:
        if not isinstance(part, dict):
            raise DecodeError(f"cannot merge a {type(part).__name__} into an object")
        merged.update(part)
    return merged


def marshal_with_discriminator(data: Any, key: str, value: str) -> Any:
    """Set discriminator ``key`` to ``value`` on an encoded object."""
    if not isinstance(data, dict):
        raise DecodeError(f"discriminator '{key}' requires an object, got {type(data).__name__}")
    return {**data, key: value}


def to_json_value(value: Any) -> Any:
    """Encode models, enums and scalars to plain JSON data, using JSON names."""
    return to_jsonable_python(value, by_alias=True)


def as_map(value: Any) -> dict[str, Any] | None:
    """Encode a model (or mapping) to a plain JSON object."""
    if value is None:
        return None
    encoded = to_json_value(value)
    if not isinstance(encoded, dict):
        raise DecodeError(f"value must encode to an object, got {type(encoded).__name__}")
    return encoded


@lru_cache(maxsize=256)
def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


def unmarshal_as(tp: Any, raw: Any, *, strict: bool = False) -> Any:
    """Decode the JSON value ``raw`` into ``tp``.

    With ``strict`` objects reject keys that none of their properties claim.

    Raises:
        pydantic.ValidationError: If ``raw`` does not fit ``tp``.
    """
    return _adapter(tp).validate_python(raw, context={STRICT_KEYS: strict})
