"""In-memory owning stores for types, templates and instance custom field values."""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from fieldengine.definitions import NAME_MAX_LENGTH, required_flag
from fieldengine.field_types import FieldType, FieldTypeError, is_empty


Issue = Dict[str, Any]

ENTITY_TYPES = ("Asset", "Application", "Certificate")

logger = logging.getLogger("fieldengine.app.stores")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


def _definition_dto(definition: dict) -> dict:
    return {
        "id": definition["id"],
        "name": definition["name"],
        "fieldType": definition["fieldType"],
        "options": definition.get("options"),
        "isRequired": definition["isRequired"],
        "sortOrder": definition["sortOrder"],
    }


def _parse_custom_fields(custom_fields: Any) -> Tuple[List[dict], List[Issue]]:
    errors: List[Issue] = []
    parsed: List[dict] = []
    if not isinstance(custom_fields, list):
        return [], [_issue("INVALID_PAYLOAD", "customFields must be a list", "customFields")]
    for idx, item in enumerate(custom_fields):
        path = f"customFields[{idx}]"
        if not isinstance(item, dict):
            errors.append(_issue("INVALID_PAYLOAD", "custom field must be an object", path))
            continue
        try:
            field_type = FieldType.parse(item.get("fieldType"), f"{path}.fieldType")
        except FieldTypeError as exc:
            errors.append(_issue(exc.code, exc.message, exc.path))
            continue
        name = (item.get("name") or "").strip()
        if not name:
            errors.append(_issue("NAME_REQUIRED", "Field name is required", f"{path}.name"))
            continue
        if len(name) > NAME_MAX_LENGTH:
            errors.append(_issue("NAME_TOO_LONG", f"Field name must be {NAME_MAX_LENGTH} characters or less", f"{path}.name"))
            continue
        parsed.append(
            {
                "id": item.get("id") or None,
                "name": name,
                "fieldType": field_type.value,
                "options": item.get("options"),
                "isRequired": required_flag(item.get("isRequired")),
                # stored order is the position in the submitted list
                "sortOrder": idx,
            }
        )
    return parsed, errors


class MemoryTypeStore:
    """Type entities and the definitions they own.

    A save replaces the whole definition list: unknown entries are added,
    known ids updated, and definitions missing from the list archived.
    """

    def __init__(self) -> None:
        self._types: Dict[str, dict] = {}
        self._definitions: Dict[str, dict] = {}

    def _type_dto(self, record: dict) -> dict:
        dto = copy.deepcopy(record)
        dto["customFields"] = self.list_definitions(record["id"])
        return dto

    def _live_definitions(self, type_id: str) -> List[dict]:
        return [
            d
            for d in self._definitions.values()
            if d["typeId"] == type_id and not d["isArchived"]
        ]

    def _add_definition(self, record: dict, field: dict) -> dict:
        definition = {
            **field,
            "id": str(uuid.uuid4()),
            "typeId": record["id"],
            "entityType": record["entityType"],
            "isArchived": False,
            "createdAt": _now(),
        }
        self._definitions[definition["id"]] = definition
        return definition

    def create_type(
        self,
        entity_type: str,
        name: str,
        custom_fields: list | None = None,
        description: str | None = None,
        default_depreciation_months: int | None = None,
    ) -> dict:
        errors: List[Issue] = []
        warnings: List[Issue] = []
        if entity_type not in ENTITY_TYPES:
            errors.append(_issue("INVALID_ENTITY_TYPE", f"entity type must be one of {list(ENTITY_TYPES)}", "entityType"))
        if not (name or "").strip():
            errors.append(_issue("NAME_REQUIRED", "Name is required", "name"))
        fields, field_errors = _parse_custom_fields(custom_fields or [])
        errors.extend(field_errors)
        if errors:
            return {"ok": False, "errors": errors, "warnings": warnings, "type": None}

        now = _now()
        record = {
            "id": str(uuid.uuid4()),
            "entityType": entity_type,
            "name": name.strip(),
            "description": description,
            "defaultDepreciationMonths": default_depreciation_months,
            "isArchived": False,
            "createdAt": now,
            "updatedAt": now,
        }
        self._types[record["id"]] = record
        for field in fields:
            if field["id"]:
                warnings.append(_issue("CUSTOM_FIELD_ID_IGNORED", "id ignored on create", "customFields"))
            self._add_definition(record, field)
        logger.info("type_created type_id=%s entity_type=%s fields=%s", record["id"], entity_type, len(fields))
        return {"ok": True, "errors": errors, "warnings": warnings, "type": self._type_dto(record)}

    def update_type(
        self,
        type_id: str,
        name: str,
        custom_fields: list | None = None,
        description: str | None = None,
        default_depreciation_months: int | None = None,
    ) -> dict:
        errors: List[Issue] = []
        warnings: List[Issue] = []
        record = self._types.get(type_id)
        if record is None:
            errors.append(_issue("TYPE_NOT_FOUND", "type not found", "id"))
            return {"ok": False, "errors": errors, "warnings": warnings, "type": None}
        if not (name or "").strip():
            errors.append(_issue("NAME_REQUIRED", "Name is required", "name"))
        fields: List[dict] = []
        if custom_fields is not None:
            fields, field_errors = _parse_custom_fields(custom_fields)
            errors.extend(field_errors)
        if errors:
            return {"ok": False, "errors": errors, "warnings": warnings, "type": None}

        record["name"] = name.strip()
        record["description"] = description
        record["defaultDepreciationMonths"] = default_depreciation_months
        record["updatedAt"] = _now()

        if custom_fields is not None:
            existing = {d["id"]: d for d in self._live_definitions(type_id)}
            request_ids = {f["id"] for f in fields if f["id"]}
            archived = 0
            for def_id, definition in existing.items():
                if def_id not in request_ids:
                    definition["isArchived"] = True
                    archived += 1
            for idx, field in enumerate(fields):
                if not field["id"]:
                    self._add_definition(record, field)
                    continue
                definition = existing.get(field["id"])
                if definition is None:
                    warnings.append(_issue("CUSTOM_FIELD_UNKNOWN", "custom field id not found on this type", f"customFields[{idx}].id"))
                    continue
                for key in ("name", "fieldType", "options", "isRequired", "sortOrder"):
                    definition[key] = field[key]
            logger.info("type_updated type_id=%s fields=%s archived=%s", type_id, len(fields), archived)
        return {"ok": True, "errors": errors, "warnings": warnings, "type": self._type_dto(record)}

    def archive_type(self, type_id: str) -> bool:
        record = self._types.get(type_id)
        if record is None or record["isArchived"]:
            return False
        record["isArchived"] = True
        record["updatedAt"] = _now()
        return True

    def get_type(self, type_id: str) -> dict | None:
        record = self._types.get(type_id)
        return self._type_dto(record) if record else None

    def list_types(self, entity_type: str | None = None) -> list[dict]:
        items = []
        for record in self._types.values():
            if record["isArchived"]:
                continue
            if entity_type is not None and record["entityType"] != entity_type:
                continue
            items.append(self._type_dto(record))
        return sorted(items, key=lambda t: t["name"].lower())

    def list_definitions(self, type_id: str) -> list[dict]:
        live = sorted(self._live_definitions(type_id), key=lambda d: d["sortOrder"])
        return [_definition_dto(d) for d in live]

    def get_definition(self, definition_id: str) -> dict | None:
        definition = self._definitions.get(definition_id)
        return copy.deepcopy(definition) if definition else None

    def live_definition_ids(self, type_id: str) -> set[str]:
        return {d["id"] for d in self._live_definitions(type_id)}


class _ValueTable:
    """Custom field values keyed by owner id, then definition id."""

    def __init__(self, types: MemoryTypeStore) -> None:
        self._types = types
        self._rows: Dict[str, Dict[str, dict]] = {}

    def upsert(self, owner_id: str, values: list[dict]) -> List[dict]:
        rows = self._rows.setdefault(owner_id, {})
        changes = []
        for item in values:
            def_id = item["fieldDefinitionId"]
            value = item.get("value")
            existing = rows.get(def_id)
            definition = self._types.get_definition(def_id) or {}
            label = f"Custom: {definition.get('name') or 'Unknown'}"
            if existing is not None:
                if existing["value"] != value:
                    changes.append({"field": label, "old": existing["value"], "new": value})
                    existing["value"] = value
                    existing["updatedAt"] = _now()
                continue
            rows[def_id] = {"value": value, "updatedAt": _now()}
            if not is_empty(value):
                changes.append({"field": label, "old": None, "new": value})
        return changes

    def dtos(self, owner_id: str) -> list[dict]:
        out = []
        for def_id, row in self._rows.get(owner_id, {}).items():
            definition = self._types.get_definition(def_id)
            if definition is None or definition["isArchived"]:
                continue
            out.append(
                {
                    "fieldDefinitionId": def_id,
                    "fieldName": definition["name"],
                    "fieldType": definition["fieldType"],
                    "value": row["value"],
                }
            )
        return out


def _split_values(values: Any, live_ids: set[str]) -> Tuple[List[dict], List[str]]:
    known: List[dict] = []
    unknown: List[str] = []
    for item in values or []:
        if not isinstance(item, dict):
            continue
        def_id = str(item.get("fieldDefinitionId") or "")
        if def_id not in live_ids:
            unknown.append(def_id)
            continue
        known.append({"fieldDefinitionId": def_id, "value": item.get("value")})
    return known, unknown


class MemoryTemplateStore:
    def __init__(self, types: MemoryTypeStore) -> None:
        self._types = types
        self._templates: Dict[str, dict] = {}
        self._values = _ValueTable(types)

    def _dto(self, record: dict) -> dict:
        dto = copy.deepcopy(record)
        type_record = self._types.get_type(record["assetTypeId"]) or {}
        dto["assetTypeName"] = type_record.get("name") or ""
        dto["customFieldValues"] = self._values.dtos(record["id"])
        return dto

    @staticmethod
    def _scalars(payload: dict) -> dict:
        return {
            "purchaseCost": payload.get("purchaseCost"),
            "depreciationMonths": payload.get("depreciationMonths"),
            "locationId": payload.get("locationId"),
            "notes": payload.get("notes"),
        }

    def create_template(self, payload: dict) -> dict:
        errors: List[Issue] = []
        warnings: List[Issue] = []
        type_id = payload.get("assetTypeId") or ""
        type_record = self._types.get_type(type_id)
        if type_record is None or type_record["isArchived"]:
            errors.append(_issue("TYPE_NOT_FOUND", "asset type not found", "assetTypeId"))
        if not (payload.get("name") or "").strip():
            errors.append(_issue("NAME_REQUIRED", "Name is required", "name"))
        if errors:
            return {"ok": False, "errors": errors, "warnings": warnings, "template": None}

        now = _now()
        record = {
            "id": str(uuid.uuid4()),
            "assetTypeId": type_id,
            "name": payload["name"].strip(),
            **self._scalars(payload),
            "isArchived": False,
            "createdAt": now,
            "updatedAt": now,
        }
        self._templates[record["id"]] = record
        known, unknown = _split_values(payload.get("customFieldValues"), self._types.live_definition_ids(type_id))
        for def_id in unknown:
            warnings.append(_issue("CUSTOM_FIELD_SKIPPED", "custom field not defined on this type", def_id))
        self._values.upsert(record["id"], known)
        logger.info("template_created template_id=%s type_id=%s values=%s", record["id"], type_id, len(known))
        return {"ok": True, "errors": errors, "warnings": warnings, "template": self._dto(record)}

    def update_template(self, template_id: str, payload: dict) -> dict:
        errors: List[Issue] = []
        warnings: List[Issue] = []
        record = self._templates.get(template_id)
        if record is None:
            errors.append(_issue("TEMPLATE_NOT_FOUND", "template not found", "id"))
            return {"ok": False, "errors": errors, "warnings": warnings, "template": None}
        if not (payload.get("name") or "").strip():
            errors.append(_issue("NAME_REQUIRED", "Name is required", "name"))
            return {"ok": False, "errors": errors, "warnings": warnings, "template": None}

        record.update(self._scalars(payload))
        record["name"] = payload["name"].strip()
        record["updatedAt"] = _now()
        if payload.get("customFieldValues") is not None:
            live_ids = self._types.live_definition_ids(record["assetTypeId"])
            known, unknown = _split_values(payload.get("customFieldValues"), live_ids)
            for def_id in unknown:
                warnings.append(_issue("CUSTOM_FIELD_SKIPPED", "custom field not defined on this type", def_id))
            self._values.upsert(template_id, known)
        return {"ok": True, "errors": errors, "warnings": warnings, "template": self._dto(record)}

    def get_template(self, template_id: str) -> dict | None:
        record = self._templates.get(template_id)
        return self._dto(record) if record else None

    def list_templates(self, type_id: str | None = None) -> list[dict]:
        items = []
        for record in self._templates.values():
            if record["isArchived"]:
                continue
            if type_id is not None and record["assetTypeId"] != type_id:
                continue
            items.append(self._dto(record))
        return sorted(items, key=lambda t: t["name"].lower())

    def archive_template(self, template_id: str) -> bool:
        record = self._templates.get(template_id)
        if record is None or record["isArchived"]:
            return False
        record["isArchived"] = True
        record["updatedAt"] = _now()
        return True


class MemoryInstanceStore:
    """Assets, applications and certificates, reduced to their custom field values."""

    def __init__(self, types: MemoryTypeStore) -> None:
        self._types = types
        self._instances: Dict[str, dict] = {}
        self._values = _ValueTable(types)

    def _dto(self, record: dict) -> dict:
        dto = copy.deepcopy(record)
        dto["customFieldValues"] = self._values.dtos(record["id"])
        return dto

    def create(self, entity_type: str, type_id: str, data: dict | None = None) -> dict:
        errors: List[Issue] = []
        data = dict(data or {})
        type_record = self._types.get_type(type_id)
        if type_record is None or type_record["entityType"] != entity_type:
            errors.append(_issue("TYPE_NOT_FOUND", f"{entity_type} type not found", "typeId"))
            return {"ok": False, "errors": errors, "instance": None}
        known, unknown = _split_values(data.pop("customFieldValues", None), self._types.live_definition_ids(type_id))
        for def_id in unknown:
            errors.append(
                _issue("CUSTOM_FIELD_UNKNOWN", f"Custom field definition {def_id} not found for this type.", def_id)
            )
        if errors:
            return {"ok": False, "errors": errors, "instance": None}

        now = _now()
        record = {**copy.deepcopy(data), "id": str(uuid.uuid4()), "entityType": entity_type, "typeId": type_id, "createdAt": now, "updatedAt": now}
        self._instances[record["id"]] = record
        self._values.upsert(record["id"], known)
        logger.info("instance_created instance_id=%s entity_type=%s values=%s", record["id"], entity_type, len(known))
        return {"ok": True, "errors": errors, "instance": self._dto(record)}

    def update(self, instance_id: str, data: dict | None = None) -> dict:
        errors: List[Issue] = []
        data = dict(data or {})
        record = self._instances.get(instance_id)
        if record is None:
            errors.append(_issue("INSTANCE_NOT_FOUND", "instance not found", "id"))
            return {"ok": False, "errors": errors, "instance": None, "changes": []}
        values = data.pop("customFieldValues", None)
        data.pop("id", None)
        record.update(copy.deepcopy(data))
        record["updatedAt"] = _now()
        changes: List[dict] = []
        if values is not None:
            known, _ = _split_values(values, self._types.live_definition_ids(record["typeId"]))
            changes = self._values.upsert(instance_id, known)
        return {"ok": True, "errors": errors, "instance": self._dto(record), "changes": changes}

    def get(self, instance_id: str) -> dict | None:
        record = self._instances.get(instance_id)
        return self._dto(record) if record else None
