"""Compact JSON text for values stored in string slots."""

from __future__ import annotations

import json
from typing import Any, List


class JsonTextTypeError(TypeError):
    """Raised when a value cannot be written as a JSON string list."""


def _validate_labels(obj: Any, path: str = "$") -> None:
    if not isinstance(obj, (list, tuple)):
        raise JsonTextTypeError(f"Expected list at {path}: {type(obj).__name__}")
    for idx, item in enumerate(obj):
        if not isinstance(item, str):
            raise JsonTextTypeError(
                f"Unsupported item type at {path}[{idx}]: {type(item).__name__}"
            )


def dumps_labels(labels: Any) -> str:
    """Serialize a list of labels the way a browser JSON.stringify would.

    Rules:
    - Preserve list order.
    - UTF-8 with non-ASCII preserved.
    - No extra whitespace.
    """
    _validate_labels(labels)
    return json.dumps(list(labels), ensure_ascii=False, separators=(",", ":"))


def loads_array(text: str | None) -> List[Any] | None:
    """Parse a JSON array, or None when text is not one."""
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError):
        return None
    if not isinstance(parsed, list):
        return None
    return parsed


def loads_labels(text: str | None) -> List[str] | None:
    """Parse a JSON array of labels, or None when text is not a JSON array.

    Non-string items are dropped.
    """
    parsed = loads_array(text)
    if parsed is None:
        return None
    return [item for item in parsed if isinstance(item, str)]
