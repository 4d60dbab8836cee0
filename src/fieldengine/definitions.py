"""Ordered custom field definitions owned by one type, and their edit session."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Iterator, List

from .field_types import FieldType, parse_options


Issue = Dict[str, Any]

NAME_MAX_LENGTH = 200

logger = logging.getLogger("fieldengine.definitions")


@dataclass
class DefinitionEditError(Exception):
    code: str
    message: str
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (path={self.path})" if self.path else base


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


def required_flag(value: Any) -> bool:
    """Wire ``isRequired``: a real bool, or the text "true" in any case."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


@dataclass
class FieldDefinition:
    id: str = ""
    name: str = ""
    field_type: FieldType = FieldType.TEXT
    options: str | None = None
    is_required: bool = False
    sort_order: int = 0

    def __post_init__(self) -> None:
        self.field_type = FieldType.parse(self.field_type, "fieldType")
        if self.id is None:
            self.id = ""

    @property
    def is_new(self) -> bool:
        return not self.id

    @property
    def option_labels(self) -> List[str]:
        if not self.field_type.is_select:
            return []
        return parse_options(self.options)

    @classmethod
    def from_dict(cls, data: dict, position: int | None = None) -> "FieldDefinition":
        sort_order = data.get("sortOrder")
        if sort_order is None:
            sort_order = position or 0
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            field_type=FieldType.parse(data.get("fieldType") or FieldType.TEXT.value, "fieldType"),
            options=data.get("options"),
            is_required=required_flag(data.get("isRequired")),
            sort_order=int(sort_order),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "fieldType": self.field_type.value,
            "options": self.options,
            "isRequired": self.is_required,
            "sortOrder": self.sort_order,
        }


def sort_definitions(definitions: Iterable[FieldDefinition]) -> List[FieldDefinition]:
    # sorted() is stable, so ties keep list order
    return sorted(definitions, key=lambda d: d.sort_order)


class FieldDefinitionRegistry:
    """Edit session over one type's definition list.

    Nothing here is persisted; ``to_request`` produces the full replacement
    list the owning store saves.
    """

    def __init__(self, definitions: Iterable[FieldDefinition] | None = None) -> None:
        self._items: List[FieldDefinition] = [copy.deepcopy(d) for d in definitions or []]

    @classmethod
    def from_type(cls, definitions: Iterable[FieldDefinition | dict]) -> "FieldDefinitionRegistry":
        items = []
        for idx, item in enumerate(definitions):
            if isinstance(item, dict):
                item = FieldDefinition.from_dict(item, position=idx)
            items.append(item)
        return cls(sort_definitions(items))

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[FieldDefinition]:
        return iter(list(self._items))

    def __getitem__(self, index: int) -> FieldDefinition:
        return self._items[self._check_index(index)]

    @property
    def definitions(self) -> List[FieldDefinition]:
        return [copy.deepcopy(d) for d in self._items]

    def sort_orders(self) -> List[int]:
        return [d.sort_order for d in self._items]

    def _check_index(self, index: int) -> int:
        if not isinstance(index, int) or isinstance(index, bool) or index < 0 or index >= len(self._items):
            raise DefinitionEditError("INDEX_OUT_OF_RANGE", f"No definition at index {index}", f"customFields[{index}]")
        return index

    def append(
        self,
        name: str = "",
        field_type: FieldType | str = FieldType.TEXT,
        options: str | None = "",
        is_required: bool = False,
    ) -> FieldDefinition:
        definition = FieldDefinition(
            id="",
            name=name,
            field_type=FieldType.parse(field_type, "fieldType"),
            options=options,
            is_required=is_required,
            sort_order=len(self._items),
        )
        self._items.append(definition)
        return definition

    def update(self, index: int, **changes: Any) -> FieldDefinition:
        index = self._check_index(index)
        allowed = {"name", "field_type", "options", "is_required"}
        unknown = set(changes) - allowed
        if unknown:
            raise DefinitionEditError("UNKNOWN_ATTRIBUTE", f"Cannot edit {sorted(unknown)}", f"customFields[{index}]")
        if "field_type" in changes:
            changes["field_type"] = FieldType.parse(changes["field_type"], f"customFields[{index}].fieldType")
        self._items[index] = replace(self._items[index], **changes)
        return self._items[index]

    def _swap(self, index: int, other: int) -> None:
        items = self._items
        items[index], items[other] = items[other], items[index]
        items[index].sort_order = index
        items[other].sort_order = other

    def move_up(self, index: int) -> bool:
        index = self._check_index(index)
        if index == 0:
            return False
        self._swap(index, index - 1)
        return True

    def move_down(self, index: int) -> bool:
        index = self._check_index(index)
        if index == len(self._items) - 1:
            return False
        self._swap(index, index + 1)
        return True

    def move_to(self, from_index: int, to_index: int) -> None:
        from_index = self._check_index(from_index)
        to_index = self._check_index(to_index)
        item = self._items.pop(from_index)
        self._items.insert(to_index, item)
        self.renumber()

    def renumber(self) -> None:
        for position, definition in enumerate(self._items):
            definition.sort_order = position

    def remove(self, index: int) -> FieldDefinition:
        index = self._check_index(index)
        return self._items.pop(index)

    def validate(self) -> List[Issue]:
        errors: List[Issue] = []
        for idx, definition in enumerate(self._items):
            path = f"customFields[{idx}].name"
            name = (definition.name or "").strip()
            if not name:
                errors.append(_issue("NAME_REQUIRED", "Field name is required", path))
            elif len(name) > NAME_MAX_LENGTH:
                errors.append(_issue("NAME_TOO_LONG", f"Field name must be {NAME_MAX_LENGTH} characters or less", path))
        return errors

    def to_request(self) -> List[dict]:
        payload = []
        for position, definition in enumerate(self._items):
            options = None
            if definition.field_type.is_select and definition.options:
                options = definition.options.strip() or None
            item = {
                "name": definition.name.strip(),
                "fieldType": definition.field_type.value,
                "options": options,
                "isRequired": definition.is_required,
                "sortOrder": position,
            }
            if definition.id:
                item = {"id": definition.id, **item}
            payload.append(item)
        logger.debug("definitions_request count=%s new=%s", len(payload), sum(1 for d in self._items if d.is_new))
        return payload
