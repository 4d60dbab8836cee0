"""Form session for creating or editing one instance (asset, application, certificate)."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, List

from .definitions import FieldDefinition, sort_definitions
from .field_types import is_empty
from .templates import MergeResult, Template, fill_scalar, merge_template
from .value_bag import FieldValue, RenderedField, ValueBag


Issue = Dict[str, Any]

logger = logging.getLogger("fieldengine.session")


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


class InstanceFormSession:
    """Holds one dialog's in-progress state. Build a fresh one per dialog open."""

    def __init__(
        self,
        scalars: Dict[str, Any] | None = None,
        values: ValueBag | None = None,
        type_id: str | None = None,
        definitions: Iterable[FieldDefinition] | None = None,
        editing: bool = False,
    ) -> None:
        self.scalars: Dict[str, Any] = dict(scalars or {})
        self.values = values.copy() if values is not None else ValueBag()
        self.type_id = type_id or ""
        self.definitions: List[FieldDefinition] = sort_definitions(copy.deepcopy(list(definitions or [])))
        self.editing = editing
        self.template_id: str | None = None
        self.applied_templates: List[str] = []

    @classmethod
    def for_edit(
        cls,
        instance: dict,
        definitions: Iterable[FieldDefinition],
        scalar_names: Iterable[str] = (),
    ) -> "InstanceFormSession":
        """Session over an existing instance DTO; null values load as empty text."""
        dtos = [
            FieldValue(str(item.get("fieldDefinitionId") or ""), item.get("value") if item.get("value") is not None else "")
            for item in instance.get("customFieldValues") or []
        ]
        scalars = {}
        for name in scalar_names:
            value = instance.get(name)
            scalars[name] = "" if value is None else value
        type_id = instance.get("assetTypeId") or instance.get("typeId") or ""
        return cls(scalars=scalars, values=ValueBag.load(dtos), type_id=type_id, definitions=definitions, editing=True)

    def select_type(
        self,
        type_id: str,
        definitions: Iterable[FieldDefinition],
        default_depreciation_months: int | None = None,
    ) -> None:
        """Switch the owning type; the template selection goes back to none."""
        changed = type_id != self.type_id
        self.type_id = type_id
        self.definitions = sort_definitions(copy.deepcopy(list(definitions)))
        if changed:
            self.template_id = None
        if not self.editing and default_depreciation_months:
            fill_scalar(self.scalars, "depreciationMonths", default_depreciation_months)
        logger.debug("type_selected type_id=%s definitions=%s", type_id, len(self.definitions))

    def select_template(self, template: Template | None) -> MergeResult | None:
        """Apply a template on top of the current state; None just clears the selection."""
        if template is None:
            self.template_id = None
            return None
        self.template_id = template.id
        self.applied_templates.append(template.id)
        return merge_template(template, self.scalars, self.values)

    def set_scalar(self, name: str, value: Any) -> None:
        self.scalars[name] = value

    def set_value(self, definition_id: str, raw: str | None) -> None:
        self.values.set(definition_id, raw)

    def set_typed(self, definition_id: str, value: Any) -> str | None:
        return self.values.set_typed(self.definition(definition_id), value)

    def definition(self, definition_id: str) -> FieldDefinition:
        for definition in self.definitions:
            if definition.id == definition_id:
                return definition
        raise KeyError(f"Unknown field definition: {definition_id}")

    def render(self) -> List[RenderedField]:
        return self.values.render(self.definitions)

    def validate(self) -> List[Issue]:
        errors: List[Issue] = []
        if is_empty(self.type_id):
            errors.append(_issue("TYPE_REQUIRED", "Type is required", "typeId"))
        errors.extend(self.values.validate(self.definitions))
        return errors

    def submission(self) -> dict:
        """Request payload fragment for the custom field part of a create/update."""
        return {"customFieldValues": self.values.to_submission()}
