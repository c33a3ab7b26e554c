"""Constraint derivation for properties and named types.

A ``Constraints`` value is derived once per property occurrence from the
property schema plus what the parent knows about it (is the name listed in
``required``, is there a sibling ``null`` type).  Validation tags are the
constraint vocabulary the renderer turns into pydantic ``Field`` keywords.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

TAG_REQUIRED = "required"
TAG_OMITEMPTY = "omitempty"


class BoundForm(str, Enum):
    """How an exclusive bound was expressed in the schema."""

    INCLUSIVE = "inclusive"
    # exclusiveMinimum: true paired with minimum
    EXCLUSIVE_FLAG = "exclusive-flag"
    # exclusiveMinimum: <number>
    EXCLUSIVE_VALUE = "exclusive-value"


@dataclass(frozen=True, slots=True)
class Bound:
    """A numeric bound resolved to a single canonical (tag, value) pair."""

    form: BoundForm
    value: float

    @property
    def exclusive(self) -> bool:
        return self.form is not BoundForm.INCLUSIVE

    @classmethod
    def from_schema(cls, inclusive: Any, exclusive: Any) -> Bound | None:
        """Combine ``minimum``/``exclusiveMinimum`` (or the maximum pair) into one bound.

        ``exclusive`` may be a boolean flag qualifying ``inclusive`` or a number
        that replaces it.  A numeric exclusive bound stands on its own even when
        no inclusive bound is declared.
        """
        if isinstance(exclusive, bool):
            if inclusive is None:
                return None
            form = BoundForm.EXCLUSIVE_FLAG if exclusive else BoundForm.INCLUSIVE
            return cls(form, float(inclusive))
        if isinstance(exclusive, (int, float)):
            return cls(BoundForm.EXCLUSIVE_VALUE, float(exclusive))
        if inclusive is None or isinstance(inclusive, bool):
            return None
        return cls(BoundForm.INCLUSIVE, float(inclusive))

    def tag(self, lower: bool, integer: bool) -> str:
        if lower:
            name = "gt" if self.exclusive else "gte"
        else:
            name = "lt" if self.exclusive else "lte"
        if integer:
            return f"{name}={int(self.value)}"
        return f"{name}={self.value:g}"


@dataclass(frozen=True, slots=True)
class ConstraintsContext:
    """What the owning object knows about one property."""

    name: str = ""
    has_nil_type: bool = False
    required: bool = False


@dataclass(frozen=True, slots=True)
class Constraints:
    """Normalized constraints for a property or named type.

    Equality is structural.  ``min_items``, ``max_items`` and ``pattern`` are
    rendered as ``Field`` keywords by the renderer and never become tags.
    """

    required: bool = False
    nullable: bool = False
    read_only: bool = False
    write_only: bool = False
    min_length: int = 0
    max_length: int = 0
    min: float = 0.0
    max: float = 0.0
    min_items: int = 0
    max_items: int | None = None
    pattern: str | None = None
    validation_tags: tuple[str, ...] = ()

    @property
    def has_tags(self) -> bool:
        return bool(self.validation_tags)


def _tag_priority(tag: str) -> tuple[int, str]:
    if tag == TAG_REQUIRED:
        return (0, tag)
    if tag == TAG_OMITEMPTY:
        return (1, tag)
    return (2, tag)


def sort_tags(tags: list[str]) -> tuple[str, ...]:
    """Order tags as ``required``, ``omitempty``, then lexicographically."""
    if tags == [TAG_OMITEMPTY]:
        return ()
    return tuple(sorted(tags, key=_tag_priority))


def schema_types(schema: Mapping[str, Any]) -> list[str]:
    """Return the ``type`` keyword as a list, accepting the 3.0 string form."""
    declared = schema.get("type")
    if declared is None:
        return []
    if isinstance(declared, str):
        return [declared]
    return [str(item) for item in declared]


def new_constraints(schema: Mapping[str, Any] | None, ctx: ConstraintsContext = ConstraintsContext()) -> Constraints:
    """Derive ``Constraints`` for ``schema`` in the given context."""
    if schema is None:
        return Constraints()

    types = schema_types(schema)
    is_int = "integer" in types
    is_float = "number" in types

    required = ctx.required
    if not required and ctx.name:
        required = ctx.name in (schema.get("required") or ())

    if not required or ctx.has_nil_type:
        nullable = True
    else:
        nullable = bool(schema.get("nullable", False))

    tags: list[str] = []
    if required:
        tags.append(TAG_REQUIRED)
    elif nullable:
        tags.append(TAG_OMITEMPTY)

    min_value = 0.0
    lower = Bound.from_schema(schema.get("minimum"), schema.get("exclusiveMinimum"))
    if lower is not None:
        min_value = lower.value
        if is_int or is_float:
            tags.append(lower.tag(lower=True, integer=is_int))

    max_value = 0.0
    upper = Bound.from_schema(schema.get("maximum"), schema.get("exclusiveMaximum"))
    if upper is not None:
        max_value = upper.value
        if is_int or is_float:
            tags.append(upper.tag(lower=False, integer=is_int))

    min_length = 0
    if schema.get("minLength") is not None:
        min_length = int(schema["minLength"])
        tags.append(f"min={min_length}")

    max_length = 0
    if schema.get("maxLength") is not None:
        max_length = int(schema["maxLength"])
        tags.append(f"max={max_length}")

    max_items = schema.get("maxItems")

    return Constraints(
        required=required,
        nullable=nullable,
        read_only=bool(schema.get("readOnly", False)),
        write_only=bool(schema.get("writeOnly", False)),
        min_length=min_length,
        max_length=max_length,
        min=min_value,
        max=max_value,
        min_items=int(schema.get("minItems") or 0),
        max_items=int(max_items) if max_items is not None else None,
        pattern=schema.get("pattern"),
        validation_tags=sort_tags(tags),
    )
