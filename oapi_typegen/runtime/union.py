"""Containers for oneOf/anyOf values.

Two element unions decode eagerly (``Either``).  A branch that decodes
without leaving keys unclaimed wins over one that only decodes leniently,
so an object of all-optional properties never swallows its sibling's
payload.  Wider unions keep the raw JSON payload (``RawUnion``) and decode
it on demand through per-variant accessors, which reject payloads that do
not fit the variant exactly.
"""

from __future__ import annotations

import copy
import typing
from typing import Any, ClassVar

import pydantic
from pydantic import (
    RootModel,
    SerializationInfo,
    SerializerFunctionWrapHandler,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    model_serializer,
    model_validator,
)

from .errors import DecodeError, UnionDecodeError
from .jsonutil import as_map, json_merge, marshal_with_discriminator, to_json_value, unmarshal_as
from .model import JSONValueMixin


def variant_name(tp: Any) -> str:
    return getattr(tp, "__name__", None) or str(tp)


def holds(tp: Any, value: Any) -> bool:
    """True when ``value`` is a decoded instance of variant ``tp``."""
    if tp is Any:
        return value is not None
    origin = typing.get_origin(tp) or tp
    if not isinstance(origin, type):
        return False
    if origin is float and isinstance(value, int) and not isinstance(value, bool):
        return True
    return isinstance(value, origin)


class UnionModel(JSONValueMixin, RootModel[Any]):
    """Common behaviour of generated union types.

    ``variants`` lists the member types in declaration order; generated
    modules bind it (and ``mapping``) once every member class exists.
    """

    root: Any = None

    variants: ClassVar[tuple[Any, ...]] = ()
    discriminator: ClassVar[str | None] = None
    mapping: ClassVar[dict[str, Any]] = {}

    @classmethod
    def variant_index(cls, variant: Any) -> int:
        if isinstance(variant, int):
            if not 0 <= variant < len(cls.variants):
                raise IndexError(f"{cls.__name__} has no variant {variant}")
            return variant
        for index, candidate in enumerate(cls.variants):
            if candidate is variant or candidate == variant:
                return index
        raise UnionDecodeError(f"{variant_name(variant)} is not a variant of {cls.__name__}")

    @classmethod
    def discriminator_for(cls, index: int) -> str | None:
        """The discriminator value mapped to variant ``index``, if any."""
        variant = cls.variants[index]
        for value, target in cls.mapping.items():
            if target is variant:
                return value
        return None

    @classmethod
    def _with_discriminator(cls, index: int, encoded: Any) -> Any:
        if not cls.discriminator:
            return encoded
        value = cls.discriminator_for(index)
        if value is None:
            return encoded
        return marshal_with_discriminator(encoded, cls.discriminator, value)

    @classmethod
    def _matched(cls, index: int, value: Any, payload: dict[str, Any]) -> UnionModel:
        raise NotImplementedError

    @classmethod
    def match(cls, data: dict[str, Any], strict: bool = False) -> tuple[UnionModel, frozenset[str]]:
        """Pick the variant that claims the most keys of ``data``.

        Returns the union value and the keys it consumed; the caller keeps
        the rest (as additional properties).

        Raises:
            DecodeError: If no variant decodes.
        """
        best: tuple[int, Any, frozenset[str]] | None = None
        messages: list[str] = []
        for index, variant in enumerate(cls.variants):
            json_keys = getattr(variant, "json_keys", None)
            if json_keys is None:
                continue
            try:
                value = unmarshal_as(variant, data)
            except pydantic.ValidationError as err:
                messages.append(f"{variant_name(variant)}: {err.error_count()} errors")
                continue
            consumed = frozenset(data) & json_keys()
            if best is None or len(consumed) > len(best[2]):
                best = (index, value, consumed)
        if best is None:
            detail = "; ".join(messages) or "no object variants"
            raise DecodeError(f"{cls.__name__} matches none of its variants ({detail})")
        index, value, consumed = best
        return cls._matched(index, value, {key: data[key] for key in consumed}), consumed


class Either(UnionModel):
    """Holds a value of exactly one of two types, ``a`` or ``b``."""

    @property
    def value(self) -> Any:
        return self.root

    @property
    def index(self) -> int | None:
        for index, variant in enumerate(self.variants):
            if holds(variant, self.root):
                return index
        return None

    @property
    def a(self) -> Any:
        return self.root if self.index == 0 else None

    @property
    def b(self) -> Any:
        return self.root if self.index == 1 else None

    @property
    def is_a(self) -> bool:
        return self.index == 0

    @property
    def is_b(self) -> bool:
        return self.index == 1

    @classmethod
    def from_a(cls, value: Any) -> Either:
        return cls.from_variant(value, 0)

    @classmethod
    def from_b(cls, value: Any) -> Either:
        return cls.from_variant(value, 1)

    @classmethod
    def from_variant(cls, value: Any, variant: Any) -> Either:
        index = cls.variant_index(variant)
        if not holds(cls.variants[index], value):
            raise UnionDecodeError(f"{value!r} is not a {variant_name(cls.variants[index])}")
        return cls.model_construct(value)

    def as_variant(self, variant: Any) -> Any:
        index = self.variant_index(variant)
        if self.index != index:
            raise UnionDecodeError(f"{type(self).__name__} does not hold a {variant_name(self.variants[index])}")
        return self.root

    def as_a(self) -> Any:
        return self.as_variant(0)

    def as_b(self) -> Any:
        return self.as_variant(1)

    @classmethod
    def _matched(cls, index: int, value: Any, payload: dict[str, Any]) -> Either:
        return cls.model_construct(value)

    @model_validator(mode="wrap")
    @classmethod
    def _decode_branches(cls, data: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        if isinstance(data, cls):
            return data
        first, second = cls.variants
        # unknown keys rejected first, then the lenient pass
        for strict in (True, False):
            for variant in (first, second):
                try:
                    return handler(unmarshal_as(variant, data, strict=strict))
                except pydantic.ValidationError:
                    continue
        raise DecodeError(f"failed to unmarshal as either {variant_name(first)} or {variant_name(second)}")

    @model_serializer(mode="wrap")
    def _encode_branch(self, handler: SerializerFunctionWrapHandler, info: SerializationInfo) -> Any:
        index = self.index
        if index is None:
            return None
        return self._with_discriminator(index, to_json_value(self.root))

    def __repr__(self) -> str:
        index = self.index
        if index is None:
            return f"{type(self).__name__}()"
        return f"{type(self).__name__}({variant_name(self.variants[index])}={self.root!r})"


class RawUnion(UnionModel):
    """Keeps the JSON payload of a union and decodes variants on demand."""

    @model_validator(mode="before")
    @classmethod
    def _copy_payload(cls, data: Any) -> Any:
        return copy.deepcopy(data)

    @property
    def raw(self) -> Any:
        return self.root

    def as_variant(self, variant: Any) -> Any:
        """Decode the payload as ``variant`` (a type or its index).

        Raises:
            UnionDecodeError: If the payload does not fit the variant.
        """
        index = self.variant_index(variant)
        try:
            return unmarshal_as(self.variants[index], self.root, strict=True)
        except pydantic.ValidationError as err:
            raise UnionDecodeError(
                f"{type(self).__name__} is not a {variant_name(self.variants[index])}: {err}"
            ) from err

    @classmethod
    def _encode_variant(cls, index: int, value: Any) -> Any:
        if cls.discriminator:
            return cls._with_discriminator(index, as_map(value))
        return to_json_value(value)

    @classmethod
    def from_variant(cls, value: Any, variant: Any) -> RawUnion:
        """Build a union holding ``value`` as ``variant``, tagged when a discriminator is declared."""
        index = cls.variant_index(variant)
        return cls.model_construct(cls._encode_variant(index, value))

    def merge_variant(self, value: Any, variant: Any) -> RawUnion:
        """Merge ``value`` into the payload, keeping keys it does not set."""
        index = self.variant_index(variant)
        patch = self._encode_variant(index, value)
        self.root = json_merge(self.root, patch, copy_nonexistent=True) if self.root is not None else patch
        return self

    def discriminator_value(self) -> str:
        """The discriminator property of the payload.

        Raises:
            UnionDecodeError: If no discriminator is declared or the payload lacks it.
        """
        key = self.discriminator
        if not key:
            raise UnionDecodeError(f"{type(self).__name__} declares no discriminator")
        if not isinstance(self.root, dict) or key not in self.root:
            raise UnionDecodeError(f"{type(self).__name__} payload has no '{key}'")
        return str(self.root[key])

    def value_by_discriminator(self) -> Any:
        """Decode the payload as the variant its discriminator names."""
        value = self.discriminator_value()
        variant = self.mapping.get(value)
        if variant is None:
            raise UnionDecodeError(f"unknown discriminator value: {value}")
        return self.as_variant(variant)

    @classmethod
    def _matched(cls, index: int, value: Any, payload: dict[str, Any]) -> RawUnion:
        return cls.model_construct(copy.deepcopy(payload))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.root!r})"
