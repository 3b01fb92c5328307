# src/ledgertable/core/canonical.py
"""
Canonical JSON encoding for signing and storage.

Two-phase approach:
1. Normalize: Convert pydantic models and stdlib types to JSON-safe primitives
2. Serialize: Produce deterministic JSON per RFC 8785/JCS (rfc8785 package)

Signatures are computed over encoded bytes and re-verified after a round
trip through storage, so encoding MUST be deterministic. Key order,
whitespace and number formatting are fixed by RFC 8785.

IMPORTANT: NaN and Infinity are strictly REJECTED, not silently converted.
"""

from __future__ import annotations

import base64
import json
import math
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import rfc8785
from pydantic import BaseModel

from ledgertable.contracts.errors import CodecError


def _normalize_value(obj: Any) -> Any:
    """Convert a single value to JSON-safe primitive.

    NaN Policy: STRICT REJECTION
    - NaN and Infinity are invalid input states for float AND Decimal
    - Use None for intentional missing values

    Raises:
        ValueError: If value contains NaN or Infinity
    """
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(f"Cannot canonicalize non-finite float: {obj}. Use None for missing values, not NaN.")
        return obj

    if obj is None or isinstance(obj, str | int | bool):
        return obj

    if isinstance(obj, BaseModel):
        return _normalize_for_canonical(obj.model_dump(mode="json"))

    # Naive datetimes assumed UTC (explicit policy)
    if isinstance(obj, datetime):
        if obj.tzinfo is None:
            obj = obj.replace(tzinfo=UTC)
        return obj.astimezone(UTC).isoformat()

    if isinstance(obj, bytes):
        return {"__bytes__": base64.b64encode(obj).decode("ascii")}

    if isinstance(obj, Decimal):
        if not obj.is_finite():
            raise ValueError(f"Cannot canonicalize non-finite Decimal: {obj}. Use None for missing values, not NaN/Infinity.")
        return str(obj)

    return obj


def _normalize_for_canonical(data: Any) -> Any:
    """Recursively normalize a data structure for canonical JSON."""
    if isinstance(data, dict):
        return {k: _normalize_for_canonical(v) for k, v in data.items()}
    if isinstance(data, list | tuple):
        return [_normalize_for_canonical(v) for v in data]
    return _normalize_value(data)


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON text.

    Raises:
        ValueError: If data contains NaN, Infinity, or other non-finite values
        TypeError: If data contains types that cannot be serialized
    """
    normalized = _normalize_for_canonical(obj)
    result: bytes = rfc8785.dumps(normalized)
    return result.decode("utf-8")


class CanonicalJsonCodec:
    """Codec producing RFC 8785 canonical JSON bytes.

    decode() returns plain JSON values. Types normalised on encode
    (datetime, Decimal, bytes, pydantic models) come back in their JSON
    form; tables constructed with a record_model re-validate them.
    """

    def encode(self, obj: Any) -> bytes:
        try:
            return canonical_json(obj).encode("utf-8")
        except (ValueError, TypeError) as e:
            raise CodecError(f"Cannot encode {type(obj).__name__}: {e}") from e

    def decode(self, data: bytes) -> Any:
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CodecError(f"Cannot decode payload of {len(data)} bytes: {e}") from e
