"""Naming utilities for code generation."""

from __future__ import annotations

import keyword
import re
from enum import Enum
from functools import lru_cache
from typing import Iterable

PYTHON_KEYWORDS: frozenset[str] = frozenset(keyword.kwlist) | frozenset(keyword.softkwlist)

# Attributes of the generated model base class and of pydantic's BaseModel
MODEL_ATTRIBUTES: frozenset[str] = frozenset({
    "construct", "copy", "dict", "error_message", "from_json", "from_json_value",
    "from_orm", "json", "json_keys", "model_computed_fields", "model_config",
    "model_construct", "model_copy", "model_dump", "model_dump_json", "model_extra",
    "model_fields", "model_fields_set", "model_json_schema", "model_post_init",
    "model_rebuild", "model_validate", "model_validate_json", "model_validate_strings",
    "parse_obj", "parse_raw", "schema", "schema_json", "special_fields", "to_json",
    "to_json_value", "validate",
})

# Characters that start a new word when converting to CamelCase
_SEPARATORS: frozenset[str] = frozenset("-#@!$&=.+:;_~ (){}[]/,'\"|?*%^<>\\")

DEFAULT_INITIALISMS: tuple[str, ...] = (
    "ACL", "API", "ASCII", "CPU", "CSS", "DNS", "EOF", "GUID", "HTML", "HTTP",
    "HTTPS", "ID", "IP", "JSON", "LHS", "QPS", "RAM", "RHS", "RPC", "SLA",
    "SMTP", "SQL", "SSH", "TCP", "TLS", "TTL", "UDP", "UI", "UID", "UUID",
    "URI", "URL", "UTF8", "VM", "XML", "XMPP", "XSRF", "XSS", "SIP", "RTP",
    "AMQP", "DB", "TS",
)


class NameNormalizer(str, Enum):
    """Strategies for turning schema names into type names."""

    UNSET = ""
    TO_CAMEL_CASE = "ToCamelCase"
    TO_CAMEL_CASE_WITH_DIGITS = "ToCamelCaseWithDigits"
    TO_CAMEL_CASE_WITH_INITIALISMS = "ToCamelCaseWithInitialisms"


@lru_cache(maxsize=1024)
def to_snake_case(value: str) -> str:
    """Convert a string to snake_case.

    Examples:
        >>> to_snake_case("HelloWorld")
        'hello_world'
        >>> to_snake_case("hello-world")
        'hello_world'
    """
    value = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", value)
    value = re.sub(r"[^A-Za-z0-9_]", "_", value)
    value = re.sub(r"_+", "_", value)
    return value.lower().strip("_")


@lru_cache(maxsize=1024)
def to_camel_case(value: str, *, with_digits: bool = False) -> str:
    """Upper-case the first letter and every letter following a separator.

    With ``with_digits`` a letter following a digit is upper-cased as well.
    Separators are dropped; every other character is kept as is.
    """
    out: list[str] = []
    capitalize_next = True
    for char in value:
        if char in _SEPARATORS:
            capitalize_next = True
            continue
        if capitalize_next:
            out.append(char.upper())
            capitalize_next = False
        else:
            out.append(char)
        if with_digits and char.isdigit():
            capitalize_next = True
    return "".join(out)


def to_camel_case_with_initialisms(value: str, initialisms: Iterable[str] = ()) -> str:
    """CamelCase ``value`` and upper-case any word that is a known initialism."""
    known = {item.upper() for item in DEFAULT_INITIALISMS} | {item.upper() for item in initialisms}
    words = re.findall(r"[A-Z][a-z0-9]*|[a-z0-9]+|[A-Z]+(?![a-z])", to_camel_case(value))
    return "".join(word.upper() if word.upper() in known else word for word in words)


def normalize_name(
    value: str,
    normalizer: NameNormalizer | str = NameNormalizer.UNSET,
    initialisms: Iterable[str] = (),
) -> str:
    """Apply the configured name normalizer to ``value``."""
    normalizer = NameNormalizer(normalizer)
    if normalizer is NameNormalizer.TO_CAMEL_CASE_WITH_DIGITS:
        return to_camel_case(value, with_digits=True)
    if normalizer is NameNormalizer.TO_CAMEL_CASE_WITH_INITIALISMS:
        return to_camel_case_with_initialisms(value, initialisms)
    return to_camel_case(value)


def schema_name_to_type_name(
    name: str,
    normalizer: NameNormalizer | str = NameNormalizer.UNSET,
    initialisms: Iterable[str] = (),
) -> str:
    """Convert a schema or property name into an identifier-safe type name."""
    if name == "$":
        return "DollarSign"
    converted = normalize_name(name, normalizer, initialisms)
    converted = re.sub(r"[^A-Za-z0-9_]", "", converted)
    if not converted:
        return "Type"
    if converted[0].isdigit():
        converted = "N" + converted
    return converted


def path_to_type_name(
    path: Iterable[str],
    normalizer: NameNormalizer | str = NameNormalizer.UNSET,
    initialisms: Iterable[str] = (),
) -> str:
    """Join a name-hint path into a type name, eg ``["User", "address"]`` -> ``User_Address``.

    Purely numeric segments after the first (union variant indexes) are kept
    as they are: ``["User", "OneOf", "0"]`` -> ``User_OneOf_0``.
    """
    parts: list[str] = []
    for part in path:
        if parts and part.isdigit():
            parts.append(part)
        else:
            parts.append(schema_name_to_type_name(part, normalizer, initialisms))
    return "_".join(parts)


@lru_cache(maxsize=1024)
def sanitize_field_name(value: str) -> str:
    """Sanitize a JSON property name for use as a Python attribute name."""
    sanitized = to_snake_case(value)
    if not sanitized:
        sanitized = "field"
    if sanitized[0].isdigit():
        sanitized = f"n_{sanitized}"
    if sanitized in PYTHON_KEYWORDS or sanitized in MODEL_ATTRIBUTES:
        sanitized = f"{sanitized}_"
    return sanitized


@lru_cache(maxsize=1024, typed=True)
def enum_member_name(value: object) -> str:
    """Derive an UPPER_SNAKE enum member name from a literal value."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    text = str(value)
    if isinstance(value, (int, float)) and text.startswith("-"):
        text = "minus_" + text[1:]
    name = to_snake_case(text).upper()
    if not name:
        return "EMPTY"
    if name[0].isdigit():
        name = f"N{name}"
    if name.lower() in PYTHON_KEYWORDS:
        name = f"{name}_"
    return name


@lru_cache(maxsize=256)
def media_type_to_camel_case(media_type: str) -> str:
    """Convert a media type into a name tag, eg ``application/vnd.api+json`` -> ``ApplicationVndApiJson``."""
    return to_camel_case(media_type.lower())
