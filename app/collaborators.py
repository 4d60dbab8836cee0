"""REST client for the inventory API that owns types, templates and instances."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, List

import httpx

from fieldengine.definitions import FieldDefinition, sort_definitions
from fieldengine.templates import Template


TYPE_COLLECTIONS = {
    "Asset": "assettypes",
    "Application": "applicationtypes",
    "Certificate": "certificatetypes",
}

logger = logging.getLogger("fieldengine.app.collaborators")


def _api_url() -> str:
    return (os.getenv("FIELDENGINE_API_URL") or "http://localhost:5000/api/v1").strip().rstrip("/")


def _api_token() -> str:
    return (os.getenv("FIELDENGINE_API_TOKEN") or "").strip()


def _http_timeout() -> float:
    return float(os.getenv("FIELDENGINE_HTTP_TIMEOUT", "30"))


@dataclass
class CollaboratorError(RuntimeError):
    code: str
    message: str
    status_code: int | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (status={self.status_code})" if self.status_code else base


def _collection(entity_type: str) -> str:
    collection = TYPE_COLLECTIONS.get(entity_type)
    if collection is None:
        raise CollaboratorError("INVALID_ENTITY_TYPE", f"Unknown entity type: {entity_type}")
    return collection


class InventoryApiClient:
    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or _api_url()).rstrip("/")
        self._token = token if token is not None else _api_token()
        self._timeout = timeout if timeout is not None else _http_timeout()
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _request(self, method: str, path: str, params: dict | None = None, json: Any = None) -> Any:
        url = f"{self._base_url}{path}"
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            try:
                res = client.request(method, url, headers=self._headers(), params=params, json=json)
            except httpx.HTTPError as exc:
                logger.warning("collaborator_request_failed method=%s path=%s error=%s", method, path, exc)
                raise CollaboratorError("REQUEST_FAILED", str(exc)) from exc
        if res.status_code >= 400:
            logger.warning("collaborator_http_error method=%s path=%s status=%s", method, path, res.status_code)
            raise CollaboratorError("HTTP_ERROR", res.text or res.reason_phrase, res.status_code)
        if not res.content:
            return None
        return res.json()

    def fetch_definitions(self, entity_type: str, type_id: str) -> List[FieldDefinition]:
        data = self._request("GET", f"/{_collection(entity_type)}/{type_id}/customfields")
        items = [FieldDefinition.from_dict(item, position=idx) for idx, item in enumerate(data or [])]
        return sort_definitions(items)

    def fetch_templates(self, type_id: str | None = None) -> List[Template]:
        params = {"assetTypeId": type_id} if type_id else None
        data = self._request("GET", "/asset-templates", params=params)
        return [Template.from_dict(item) for item in data or []]

    def fetch_template(self, template_id: str) -> Template:
        return Template.from_dict(self._request("GET", f"/asset-templates/{template_id}") or {})

    def save_type(self, entity_type: str, type_id: str | None, payload: dict) -> dict:
        collection = _collection(entity_type)
        if type_id:
            return self._request("PUT", f"/{collection}/{type_id}", json=payload)
        return self._request("POST", f"/{collection}", json=payload)

    def save_template(self, template_id: str | None, payload: dict) -> dict:
        if template_id:
            return self._request("PUT", f"/asset-templates/{template_id}", json=payload)
        return self._request("POST", "/asset-templates", json=payload)
