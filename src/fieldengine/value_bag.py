"""Per-instance custom field values keyed by definition id."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List

from .definitions import FieldDefinition, sort_definitions
from .field_types import EMPTY_SELECTION, decode, encode, is_empty, orphaned_selections, parse_options, validate_value


Issue = Dict[str, Any]


@dataclass
class FieldValue:
    field_definition_id: str
    value: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "FieldValue":
        return cls(field_definition_id=str(data.get("fieldDefinitionId") or ""), value=data.get("value"))

    def to_dict(self) -> dict:
        return {"fieldDefinitionId": self.field_definition_id, "value": self.value}


@dataclass
class RenderedField:
    definition: FieldDefinition
    raw: str | None
    value: Any
    options: List[str] = field(default_factory=list)
    orphaned: List[str] = field(default_factory=list)


class ValueBag:
    """Mapping of definition id to an encoded string (or None).

    Bag order carries no meaning; render order always comes from the
    definitions passed in.
    """

    def __init__(self, values: Dict[str, str | None] | None = None) -> None:
        self._values: Dict[str, str | None] = {}
        for definition_id, value in (values or {}).items():
            self.set(definition_id, value)

    @classmethod
    def load(cls, dtos: Iterable[FieldValue | dict] | None) -> "ValueBag":
        bag = cls()
        for dto in dtos or []:
            if isinstance(dto, dict):
                dto = FieldValue.from_dict(dto)
            if not dto.field_definition_id:
                continue
            bag.set(dto.field_definition_id, dto.value)
        return bag

    def copy(self) -> "ValueBag":
        return ValueBag(self._values)

    def __contains__(self, definition_id: object) -> bool:
        return definition_id in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValueBag):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:  # pragma: no cover - simple formatting
        return f"ValueBag({self._values!r})"

    def get(self, definition_id: str) -> str | None:
        return self._values.get(definition_id)

    def set(self, definition_id: str, value: str | None) -> None:
        # an empty selection is stored as "", never "[]"
        if value == EMPTY_SELECTION:
            value = ""
        self._values[definition_id] = value

    def set_typed(self, definition: FieldDefinition, value: Any) -> str | None:
        encoded = encode(definition.field_type, value)
        self._values[definition.id] = encoded
        return encoded

    def discard(self, definition_id: str) -> bool:
        if definition_id not in self._values:
            return False
        del self._values[definition_id]
        return True

    def items(self) -> List[tuple]:
        return list(self._values.items())

    def as_dict(self) -> Dict[str, str | None]:
        return dict(self._values)

    def is_empty_slot(self, definition_id: str) -> bool:
        return is_empty(self._values.get(definition_id))

    def to_submission(self) -> List[dict]:
        """Wire payload: only entries holding a real value."""
        return [
            {"fieldDefinitionId": definition_id, "value": value}
            for definition_id, value in self._values.items()
            if not is_empty(value)
        ]

    def typed_value(self, definition: FieldDefinition) -> Any:
        return decode(definition.field_type, definition.options, self._values.get(definition.id))

    def render(self, definitions: Iterable[FieldDefinition]) -> List[RenderedField]:
        rendered = []
        for definition in sort_definitions(definitions):
            raw = self._values.get(definition.id)
            rendered.append(
                RenderedField(
                    definition=definition,
                    raw=raw,
                    value=decode(definition.field_type, definition.options, raw),
                    options=parse_options(definition.options) if definition.field_type.is_select else [],
                    orphaned=orphaned_selections(definition.field_type, definition.options, raw),
                )
            )
        return rendered

    def validate(self, definitions: Iterable[FieldDefinition]) -> List[Issue]:
        errors: List[Issue] = []
        for definition in sort_definitions(definitions):
            errors.extend(
                validate_value(
                    definition.field_type,
                    self._values.get(definition.id),
                    is_required=definition.is_required,
                    path=definition.id,
                    name=definition.name,
                )
            )
        return errors
