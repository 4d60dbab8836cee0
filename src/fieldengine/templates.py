"""Template presets and the fill-if-empty merge onto instance form state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List

from .field_types import NONE_SENTINEL, decimal_text, is_empty, parse_decimal
from .value_bag import ValueBag


Issue = Dict[str, Any]

SCALAR_FIELDS = ("purchaseCost", "depreciationMonths", "locationId", "notes")

logger = logging.getLogger("fieldengine.templates")


@dataclass
class TemplateError(Exception):
    code: str
    message: str
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (path={self.path})" if self.path else base


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


def scalar_text(value: Any) -> str:
    """Form text for a scalar default (numbers without formatting)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return decimal_text(value)
    return str(value)


@dataclass
class Template:
    id: str = ""
    owner_type_id: str = ""
    name: str = ""
    scalar_defaults: Dict[str, Any] = field(default_factory=dict)
    field_values: ValueBag = field(default_factory=ValueBag)
    is_archived: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "Template":
        return cls(
            id=data.get("id") or "",
            owner_type_id=data.get("assetTypeId") or data.get("ownerTypeId") or "",
            name=data.get("name") or "",
            scalar_defaults={name: data.get(name) for name in SCALAR_FIELDS if data.get(name) is not None},
            field_values=ValueBag.load(data.get("customFieldValues")),
            is_archived=bool(data.get("isArchived")),
        )

    def validate(self) -> List[Issue]:
        """Issues for scalar defaults that cannot be sent as numbers."""
        errors: List[Issue] = []
        cost = self.scalar_defaults.get("purchaseCost")
        if not is_empty(cost) and parse_decimal(str(cost)) is None:
            errors.append(_issue("INVALID_NUMBER", "Purchase cost must be a number", "purchaseCost"))
        months = self.scalar_defaults.get("depreciationMonths")
        if not is_empty(months):
            parsed = parse_decimal(str(months))
            if parsed is None or parsed != parsed.to_integral_value() or parsed < 0:
                errors.append(
                    _issue("INVALID_NUMBER", "Depreciation months must be a whole number", "depreciationMonths")
                )
        return errors

    def to_request(self, include_owner: bool = True) -> dict:
        """Create/update payload; scalars are parsed from form text.

        Raises ``TemplateError`` when ``validate`` reports an issue.
        """
        errors = self.validate()
        if errors:
            first = errors[0]
            raise TemplateError(first["code"], first["message"], first["path"])
        defaults = self.scalar_defaults
        cost = defaults.get("purchaseCost")
        months = defaults.get("depreciationMonths")
        location = defaults.get("locationId")
        notes = defaults.get("notes")
        payload: Dict[str, Any] = {
            "name": self.name,
            "purchaseCost": float(parse_decimal(str(cost))) if not is_empty(cost) else None,
            "depreciationMonths": int(parse_decimal(str(months))) if not is_empty(months) else None,
            "locationId": location if location and location != NONE_SENTINEL else None,
            "notes": notes or None,
            "customFieldValues": self.field_values.to_submission(),
        }
        if include_owner:
            payload = {"assetTypeId": self.owner_type_id, **payload}
        return payload


@dataclass
class MergeResult:
    template_id: str
    filled_scalars: List[str] = field(default_factory=list)
    filled_fields: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.filled_scalars or self.filled_fields)


def fill_scalar(scalars: Dict[str, Any], name: str, value: Any) -> bool:
    """Write ``value`` into ``scalars[name]`` only when the slot is empty."""
    if is_empty(value) or not is_empty(scalars.get(name)):
        return False
    scalars[name] = scalar_text(value)
    return True


def merge_template(template: Template, scalars: Dict[str, Any], values: ValueBag) -> MergeResult:
    """Fill empty target slots from a template; filled slots are never touched.

    ``scalars`` and ``values`` are modified in place. The owning type is not
    checked here.
    """
    result = MergeResult(template_id=template.id)
    for name in SCALAR_FIELDS:
        if fill_scalar(scalars, name, template.scalar_defaults.get(name)):
            result.filled_scalars.append(name)
    for definition_id, value in template.field_values.items():
        if is_empty(value) or not values.is_empty_slot(definition_id):
            continue
        values.set(definition_id, value)
        result.filled_fields.append(definition_id)
    logger.info(
        "template_applied template_id=%s scalars=%s fields=%s",
        template.id,
        len(result.filled_scalars),
        len(result.filled_fields),
    )
    return result
