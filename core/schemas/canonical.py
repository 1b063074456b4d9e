"""
Module 01 - Schemas & Canonicalization
File: canonical.py

Purpose: Deterministic serialization for operation payloads, batch size
accounting and audit digests.

Claim leaves are NOT serialized here; they use the fixed binary encoding
in core.merkle.leaf.
"""

import json
import math
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .errors import CanonicalizationException

# Canonical JSON separators - no whitespace
CANONICAL_JSON_SEPARATORS: tuple[str, str] = (",", ":")


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_datetime_canonical(dt: datetime) -> str:
    """
    Format a datetime as ISO-8601 with Z suffix for UTC.

    Returns:
        e.g. "2026-01-27T21:35:00Z" (microseconds only when non-zero)
    """
    utc_dt = ensure_utc(dt)
    if utc_dt.microsecond == 0:
        return utc_dt.strftime("%Y-%m-%dT%H:%M:%SZ")
    return utc_dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def format_decimal_canonical(value: Decimal, path: str = "") -> str:
    """
    Format a Decimal as a plain (non-exponent) string without trailing zeros.

    Decimal("1.50") and Decimal("1.5") produce the same text.
    """
    if not value.is_finite():
        raise CanonicalizationException(
            message=f"Non-finite decimal value encountered: {value}",
            details={"path": path, "value": str(value)},
        )
    if value == 0:
        return "0"
    text = format(value.normalize(), "f")
    return text


def canonicalize_value(value: Any, path: str = "") -> Any:
    """
    Recursively canonicalize a value for deterministic JSON serialization.

    Raises:
        CanonicalizationException: If the value cannot be canonicalized
            (e.g., NaN/Infinity floats or decimals).
    """
    if value is None:
        return None

    if isinstance(value, bool):
        # Must check bool before int since bool is subclass of int
        return value

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        if not math.isfinite(value):
            raise CanonicalizationException(
                message=f"Non-finite float value encountered: {value}",
                details={"path": path, "value": str(value)},
            )
        return value

    if isinstance(value, Decimal):
        return format_decimal_canonical(value, path)

    if isinstance(value, str):
        return value

    if isinstance(value, datetime):
        return format_datetime_canonical(value)

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, BaseModel):
        dumped = value.model_dump(mode="python", by_alias=True, exclude_none=True)
        return canonicalize_value(dumped, path)

    if isinstance(value, dict):
        # Keys are sorted during JSON serialization
        return {
            str(k): canonicalize_value(v, f"{path}.{k}" if path else str(k))
            for k, v in value.items()
            if v is not None
        }

    if isinstance(value, (list, tuple)):
        return [
            canonicalize_value(item, f"{path}[{i}]")
            for i, item in enumerate(value)
        ]

    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()

    # PublicKey and similar value objects render through __str__
    try:
        return str(value)
    except Exception as e:
        raise CanonicalizationException(
            message=f"Cannot canonicalize value of type {type(value).__name__}",
            details={"path": path, "type": type(value).__name__, "error": str(e)},
        ) from e


def dumps_canonical(obj: Any) -> str:
    """
    Serialize an object to a canonical JSON string.

    Output has sorted keys, no whitespace, None fields dropped, datetimes
    as ISO-8601 with Z suffix, Decimals as plain strings, enums as values
    and bytes as lowercase hex.

    Example:
        >>> dumps_canonical({"b": Decimal("2.50"), "a": 1})
        '{"a":1,"b":"2.5"}'
    """
    try:
        canonicalized = canonicalize_value(obj)
        return json.dumps(
            canonicalized,
            sort_keys=True,
            separators=CANONICAL_JSON_SEPARATORS,
            ensure_ascii=False,
        )
    except CanonicalizationException:
        raise
    except Exception as e:
        raise CanonicalizationException(
            message=f"Failed to serialize to canonical JSON: {e}",
            details={"type": type(obj).__name__, "error": str(e)},
        ) from e


def encoded_size(obj: Any) -> int:
    """Size in bytes of the UTF-8 canonical JSON encoding of obj."""
    return len(dumps_canonical(obj).encode("utf-8"))


def loads_canonical(json_str: str) -> Any:
    """Parse a canonical JSON string. Datetimes and Decimals stay strings."""
    return json.loads(json_str)


def canonical_equals(obj1: Any, obj2: Any) -> bool:
    """True if the canonical representations of two objects are identical."""
    try:
        return dumps_canonical(obj1) == dumps_canonical(obj2)
    except CanonicalizationException:
        return False
