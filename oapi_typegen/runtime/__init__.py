"""Support library imported by generated model modules."""

from .array import ArrayModel
from .enums import EnumModel
from .errors import (
    ClientAPIError,
    DecodeError,
    UnionDecodeError,
    ValidationError,
    ValidationErrors,
    json_path,
    validation_errors_from,
)
from .jsonutil import (
    STRICT_KEYS,
    as_map,
    coalesce_or_merge,
    json_merge,
    marshal_with_discriminator,
    to_json_value,
    unmarshal_as,
)
from .model import Model, additional_properties_field, union_field
from .union import Either, RawUnion, UnionModel

__all__ = [
    # Models
    "ArrayModel",
    "EnumModel",
    "Model",
    "additional_properties_field",
    "union_field",
    # Unions
    "Either",
    "RawUnion",
    "UnionModel",
    # JSON helpers
    "STRICT_KEYS",
    "as_map",
    "coalesce_or_merge",
    "json_merge",
    "marshal_with_discriminator",
    "to_json_value",
    "unmarshal_as",
    # Errors
    "ClientAPIError",
    "DecodeError",
    "UnionDecodeError",
    "ValidationError",
    "ValidationErrors",
    "json_path",
    "validation_errors_from",
]
