"""Async HTTP client for the remote checklist store.

Every call is bounded by a timeout. Failures are classified into the engine
error taxonomy so callers can tell retryable from permanent errors:

- timeouts -> `RequestTimeoutError`
- connection and protocol failures, 5xx -> `TransientError`
- 404 -> `NotFoundError`, 409 -> `ConflictError`
- 400/422 -> `ChecklistValidationError` (carrying `missing_items`)
- any other 4xx -> `StoreRequestError`

The current request id, when set, is forwarded as `X-Request-Id`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from fleetcheck.http.request_id import REQUEST_ID_HEADER, get_request_id
from fleetcheck.logic.errors import (
    ChecklistError,
    ChecklistValidationError,
    ConflictError,
    NotFoundError,
    RequestTimeoutError,
    StoreRequestError,
    TransientError,
)
from fleetcheck.models.checklist import Checklist, SaveSummary, WireResponse
from fleetcheck.models.template import ChecklistTemplate

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_VESSEL_NAME = "Unknown Vessel"
DEFAULT_USER_ID = "system"


def _detail(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"detail": response.text[:200]}
    if isinstance(body, dict):
        # FastAPI wraps HTTPException details under "detail"
        inner = body.get("detail")
        if isinstance(inner, dict):
            return inner
        return body
    return {"detail": body}


def _message(body: Dict[str, Any], fallback: str) -> str:
    for key in ("detail", "message", "error", "title"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return fallback


class ChecklistStoreClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            transport=transport,
            headers=headers,
        )

    async def __aenter__(self) -> "ChecklistStoreClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, json: Any = None, resource: str = "") -> httpx.Response:
        headers = {}
        request_id = get_request_id()
        if request_id:
            headers[REQUEST_ID_HEADER] = request_id
        try:
            response = await self._client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("store_timeout method=%s path=%s timeout=%s", method, path, self.timeout)
            raise RequestTimeoutError(f"{method} {path} timed out after {self.timeout:g}s") from exc
        except httpx.TransportError as exc:
            logger.warning("store_unreachable method=%s path=%s error=%s", method, path, exc)
            raise TransientError(f"{method} {path} failed: {exc}") from exc

        status = response.status_code
        logger.info("store_call method=%s path=%s status=%s", method, path, status)
        if status < 400:
            return response
        body = _detail(response)
        message = _message(body, f"{method} {path} returned {status}")
        if status == 404:
            raise NotFoundError(message, resource=resource or path)
        if status == 409:
            raise ConflictError(message, checklist_id=body.get("checklist_id"))
        if status in (400, 422):
            missing = body.get("missing_items")
            raise ChecklistValidationError(
                message,
                missing_items=missing if isinstance(missing, list) else None,
                status_code=status,
            )
        if status >= 500:
            raise TransientError(message, status_code=status)
        raise StoreRequestError(message, status_code=status)

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise TransientError("store returned a non-JSON body") from exc

    @staticmethod
    def _checklist(data: Any) -> Checklist:
        try:
            return Checklist.model_validate(data)
        except PydanticValidationError as exc:
            raise TransientError("store returned a malformed checklist") from exc

    async def list_templates(self) -> List[ChecklistTemplate]:
        response = await self._request("GET", "/checklist-templates", resource="templates")
        data = self._json(response)
        if isinstance(data, dict):
            data = data.get("templates", [])
        return [ChecklistTemplate.model_validate(t) for t in data or []]

    async def get_template(self, template_id: str) -> ChecklistTemplate:
        response = await self._request("GET", f"/checklist-templates/{template_id}", resource=f"template {template_id}")
        data = self._json(response)
        if isinstance(data, dict) and isinstance(data.get("template"), dict):
            data = data["template"]
        return ChecklistTemplate.model_validate(data)

    async def list_checklists(self, voyage_id: str) -> List[Checklist]:
        response = await self._request("GET", f"/voyage/{voyage_id}/checklists", resource=f"voyage {voyage_id}")
        data = self._json(response)
        if isinstance(data, dict):
            data = data.get("checklists", [])
        return [self._checklist(c) for c in data or []]

    async def auto_create(
        self,
        voyage_id: str,
        *,
        vessel_name: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List[Checklist]:
        payload = {"vessel_name": vessel_name or DEFAULT_VESSEL_NAME, "user_id": user_id or DEFAULT_USER_ID}
        response = await self._request(
            "POST", f"/voyage/{voyage_id}/checklists/auto-create", json=payload, resource=f"voyage {voyage_id}"
        )
        data = self._json(response)
        return [self._checklist(c) for c in (data or {}).get("checklists", [])]

    async def create_from_template(
        self,
        voyage_id: str,
        template_id: str,
        *,
        vessel_name: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Checklist:
        payload = {
            "template_id": template_id,
            "vessel_name": vessel_name or DEFAULT_VESSEL_NAME,
            "user_id": user_id or DEFAULT_USER_ID,
        }
        response = await self._request(
            "POST", f"/voyage/{voyage_id}/checklists/create", json=payload, resource=f"template {template_id}"
        )
        data = self._json(response)
        return self._checklist((data or {}).get("checklist"))

    async def get_checklist(self, checklist_id: str) -> Checklist:
        response = await self._request("GET", f"/checklist/{checklist_id}", resource=f"checklist {checklist_id}")
        data = self._json(response)
        if isinstance(data, dict) and isinstance(data.get("checklist"), dict):
            data = data["checklist"]
        return self._checklist(data)

    async def update_responses(
        self,
        checklist_id: str,
        responses: List[WireResponse],
        *,
        user_id: Optional[str] = None,
    ) -> SaveSummary:
        payload = {"responses": [r.to_wire() for r in responses], "user_id": user_id or DEFAULT_USER_ID}
        response = await self._request(
            "PUT", f"/checklist/{checklist_id}/responses", json=payload, resource=f"checklist {checklist_id}"
        )
        data = self._json(response) or {}
        return SaveSummary.model_validate(data.get("summary") or {})

    async def submit(self, checklist_id: str, *, user_id: Optional[str] = None, force_overwrite: bool = False) -> Checklist:
        payload = {"user_id": user_id or DEFAULT_USER_ID, "force_overwrite": bool(force_overwrite)}
        try:
            response = await self._request(
                "POST", f"/checklist/{checklist_id}/submit", json=payload, resource=f"checklist {checklist_id}"
            )
        except ConflictError as exc:
            exc.checklist_id = exc.checklist_id or checklist_id
            raise
        data = self._json(response) or {}
        return self._checklist(data.get("checklist") or data)

    async def delete(self, checklist_id: str) -> None:
        await self._request("DELETE", f"/checklist/{checklist_id}", resource=f"checklist {checklist_id}")

    async def ping(self) -> bool:
        """Reachability check used by the health endpoint."""
        try:
            await self._request("GET", "/checklist-templates", resource="templates")
        except ChecklistError:
            return False
        return True


__all__ = [
    "ChecklistStoreClient",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_VESSEL_NAME",
    "DEFAULT_USER_ID",
]
