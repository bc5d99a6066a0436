"""Normalize stored field values into their declared logical types.

Persistence layers hand back values in whatever shape the storage engine
uses: ``1`` for booleans, JSON text for structured columns, strings for
numerics. Normalizing both sides of a comparison to the declared cast keeps
change detection and entry output consistent across representations.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from .errors import CastError


class FieldCast(str, Enum):
    """Logical field types used for comparison and output."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    STRUCTURED = "structured"
    RAW = "raw"


_CAST_ALIASES: dict[str, FieldCast] = {
    "bool": FieldCast.BOOLEAN,
    "boolean": FieldCast.BOOLEAN,
    "int": FieldCast.INTEGER,
    "integer": FieldCast.INTEGER,
    "float": FieldCast.FLOAT,
    "double": FieldCast.FLOAT,
    "real": FieldCast.FLOAT,
    "decimal": FieldCast.FLOAT,
    "string": FieldCast.STRING,
    "str": FieldCast.STRING,
    "array": FieldCast.STRUCTURED,
    "json": FieldCast.STRUCTURED,
    "object": FieldCast.STRUCTURED,
    "collection": FieldCast.STRUCTURED,
    "dict": FieldCast.STRUCTURED,
    "list": FieldCast.STRUCTURED,
    "structured": FieldCast.STRUCTURED,
}

_FALSE_STRINGS = frozenset({"", "0", "false"})


def resolve_cast(cast: str | FieldCast) -> FieldCast:
    """Map a declared cast name onto a ``FieldCast``.

    Names are case-insensitive. Unknown names resolve to ``RAW`` so newer
    declarations pass values through instead of failing.
    """
    if isinstance(cast, FieldCast):
        return cast
    return _CAST_ALIASES.get(cast.strip().lower(), FieldCast.RAW)


def cast_value(value: Any, cast: str | FieldCast) -> Any:
    """Convert one raw value to its declared cast.

    Raises ``CastError`` when the value cannot be represented in the cast,
    including malformed JSON text for structured fields.
    """
    if value is None:
        return None

    resolved = resolve_cast(cast)
    try:
        if resolved is FieldCast.BOOLEAN:
            return _to_bool(value)
        if resolved is FieldCast.INTEGER:
            return _to_int(value)
        if resolved is FieldCast.FLOAT:
            return float(value)
        if resolved is FieldCast.STRING:
            return str(value)
        if resolved is FieldCast.STRUCTURED:
            return _to_structured(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise CastError(
            f"cannot cast {type(value).__name__} value to {resolved.value}",
            cast=resolved.value,
            cause=exc,
        ) from exc
    return value


def normalize_values(
    attributes: Mapping[str, Any], casts: Mapping[str, str | FieldCast]
) -> dict[str, Any]:
    """Return a copy of ``attributes`` with every declared cast applied."""
    normalized = dict(attributes)
    for key, value in attributes.items():
        if key in casts:
            normalized[key] = cast_value(value, casts[key])
    return normalized


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def _to_int(value: Any) -> int:
    if isinstance(value, str):
        return int(float(value.strip()))
    return int(value)


def _to_structured(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        # json.JSONDecodeError is a ValueError and surfaces as CastError.
        return json.loads(value)
    if isinstance(value, (Mapping, Sequence)):
        return value
    raise TypeError(f"{type(value).__name__} is not structured data")
