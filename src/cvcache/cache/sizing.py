"""
Size estimation for cached values.

Values are measured by serializing them to JSON with orjson and taking the
byte length of the result. Dataclasses, datetimes, enums and UUIDs are handled
natively by orjson; pydantic models and sets are converted first.
"""

from __future__ import annotations

from typing import Any

import orjson

from cvcache.cache.base import SizeEstimator
from cvcache.exceptions import SizeEstimationError


def _to_serializable(obj: Any) -> Any:
    """orjson default hook for types it does not handle natively."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    if isinstance(obj, (bytes, bytearray)):
        return obj.decode("utf-8", errors="replace")
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


class JsonSizeEstimator(SizeEstimator):
    """Estimate size as the length of the value's JSON encoding."""

    def size_of(self, value: Any) -> int:
        try:
            encoded = orjson.dumps(
                value,
                default=_to_serializable,
                option=orjson.OPT_NON_STR_KEYS,
            )
        except TypeError as e:
            raise SizeEstimationError(
                "Value cannot be serialized for size estimation",
                {"value_type": type(value).__name__},
            ) from e
        return len(encoded)
