"""Field type codec: string encoding, decoding and validation per field kind."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List
from urllib.parse import urlparse

from .json_text import dumps_labels, loads_array, loads_labels


Issue = Dict[str, Any]

NONE_SENTINEL = "__none__"
TRUE_TEXT = "true"
FALSE_TEXT = "false"
EMPTY_SELECTION = "[]"


@dataclass
class FieldTypeError(Exception):
    code: str
    message: str
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (path={self.path})" if self.path else base


class FieldType(str, Enum):
    TEXT = "Text"
    NUMBER = "Number"
    DATE = "Date"
    BOOLEAN = "Boolean"
    SINGLE_SELECT = "SingleSelect"
    MULTI_SELECT = "MultiSelect"
    URL = "Url"

    @classmethod
    def parse(cls, value: Any, path: str | None = None) -> "FieldType":
        if isinstance(value, FieldType):
            return value
        for member in cls:
            if member.value == value:
                return member
        raise FieldTypeError("INVALID_FIELD_TYPE", f"Invalid field type: {value}", path)

    @property
    def label(self) -> str:
        return FIELD_TYPE_LABELS[self]

    @property
    def is_select(self) -> bool:
        return self in (FieldType.SINGLE_SELECT, FieldType.MULTI_SELECT)


FIELD_TYPE_LABELS = {
    FieldType.TEXT: "Text",
    FieldType.NUMBER: "Number",
    FieldType.DATE: "Date",
    FieldType.BOOLEAN: "Yes/No",
    FieldType.SINGLE_SELECT: "Single Select",
    FieldType.MULTI_SELECT: "Multi Select",
    FieldType.URL: "URL",
}


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


def is_empty(raw: Any) -> bool:
    """True for an unset slot: null, empty string or the select "none" sentinel."""
    return raw is None or raw == "" or raw == NONE_SENTINEL


def parse_options(options: str | None) -> List[str]:
    """Option labels from a JSON array or a comma-separated list.

    Both forms trim labels and drop blank ones; JSON numbers become text.
    """
    if not options:
        return []
    items = loads_array(options)
    if items is not None:
        parts = [item if isinstance(item, str) else json.dumps(item) for item in items if item is not None]
    else:
        parts = options.split(",")
    return [part.strip() for part in parts if part.strip()]


def decimal_text(value: Any) -> str:
    """Plain decimal text, no exponent or grouping."""
    if isinstance(value, bool):
        raise FieldTypeError("INVALID_NUMBER", "boolean is not a number")
    if isinstance(value, float):
        value = Decimal(repr(value))
    elif not isinstance(value, Decimal):
        value = Decimal(value)
    if not value.is_finite():
        raise FieldTypeError("INVALID_NUMBER", f"non-finite number: {value}")
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def parse_decimal(raw: str) -> Decimal | None:
    try:
        value = Decimal(raw.strip())
    except (InvalidOperation, ValueError):
        return None
    return value if value.is_finite() else None


def _parse_date(raw: str) -> date | None:
    text = raw.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _is_url(raw: str) -> bool:
    parsed = urlparse(raw.strip())
    return bool(parsed.scheme and parsed.netloc)


def default_value(field_type: FieldType) -> Any:
    field_type = FieldType.parse(field_type)
    if field_type == FieldType.BOOLEAN:
        return False
    if field_type == FieldType.MULTI_SELECT:
        return []
    return None


def decode(field_type: FieldType, options: str | None, raw: str | None) -> Any:
    """Decode a stored string to its typed value.

    Select values are not checked against ``options``; labels that were
    removed from the definition still decode.
    """
    field_type = FieldType.parse(field_type)
    if field_type == FieldType.BOOLEAN:
        return raw == TRUE_TEXT
    if field_type == FieldType.MULTI_SELECT:
        return loads_labels(raw) or []
    if field_type == FieldType.SINGLE_SELECT:
        return None if is_empty(raw) else raw
    if raw is None:
        return None
    if field_type == FieldType.NUMBER:
        return parse_decimal(raw) if raw.strip() else None
    if field_type == FieldType.DATE:
        return _parse_date(raw) if raw.strip() else None
    # Text and Url are verbatim
    return raw


def encode(field_type: FieldType, value: Any) -> str | None:
    """Encode a typed value into its stored string form."""
    field_type = FieldType.parse(field_type)
    if field_type == FieldType.BOOLEAN:
        if isinstance(value, str):
            value = value == TRUE_TEXT
        return TRUE_TEXT if value else FALSE_TEXT
    if field_type == FieldType.MULTI_SELECT:
        if not value:
            return ""
        if isinstance(value, str):
            value = loads_labels(value) or []
            if not value:
                return ""
        return dumps_labels(value)
    if value is None:
        return None
    if field_type == FieldType.NUMBER:
        if isinstance(value, str):
            if not value.strip():
                return ""
            parsed = parse_decimal(value)
            if parsed is None:
                raise FieldTypeError("INVALID_NUMBER", f"not a number: {value!r}")
            value = parsed
        return decimal_text(value)
    if field_type == FieldType.DATE:
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, str):
            if not value.strip():
                return ""
            parsed = _parse_date(value)
            if parsed is None:
                raise FieldTypeError("INVALID_DATE", f"not an ISO date: {value!r}")
            return parsed.isoformat()
        raise FieldTypeError("INVALID_DATE", f"unsupported date value: {type(value).__name__}")
    if field_type == FieldType.SINGLE_SELECT and value == NONE_SENTINEL:
        return None
    return str(value)


def toggle_option(encoded: str | None, label: str) -> str:
    selected = decode(FieldType.MULTI_SELECT, None, encoded)
    if label in selected:
        selected = [item for item in selected if item != label]
    else:
        selected = selected + [label]
    return encode(FieldType.MULTI_SELECT, selected) or ""


def orphaned_selections(field_type: FieldType, options: str | None, raw: str | None) -> List[str]:
    field_type = FieldType.parse(field_type)
    if not field_type.is_select:
        return []
    allowed = set(parse_options(options))
    if field_type == FieldType.SINGLE_SELECT:
        value = decode(field_type, options, raw)
        return [value] if value is not None and value not in allowed else []
    return [label for label in decode(field_type, options, raw) if label not in allowed]


def is_missing_required(field_type: FieldType, is_required: bool, raw: str | None) -> bool:
    if not is_required:
        return False
    field_type = FieldType.parse(field_type)
    if field_type == FieldType.BOOLEAN:
        return False
    if field_type == FieldType.MULTI_SELECT:
        return not decode(field_type, None, raw)
    return is_empty(raw)


def validate_value(
    field_type: FieldType,
    raw: str | None,
    is_required: bool = False,
    path: str | None = None,
    name: str | None = None,
) -> List[Issue]:
    field_type = FieldType.parse(field_type)
    label = name or path or "field"
    if is_missing_required(field_type, is_required, raw):
        return [_issue("REQUIRED_FIELD", f"{label} is required", path)]
    if is_empty(raw):
        return []
    if field_type == FieldType.NUMBER and parse_decimal(raw) is None:
        return [_issue("INVALID_NUMBER", f"{label} must be a number", path)]
    if field_type == FieldType.DATE and _parse_date(raw) is None:
        return [_issue("INVALID_DATE", f"{label} must be YYYY-MM-DD", path)]
    if field_type == FieldType.BOOLEAN and raw not in (TRUE_TEXT, FALSE_TEXT):
        return [_issue("INVALID_BOOLEAN", f"{label} must be 'true' or 'false'", path)]
    if field_type == FieldType.URL and not _is_url(raw):
        return [_issue("INVALID_URL", f"{label} must be an absolute URL", path)]
    return []
