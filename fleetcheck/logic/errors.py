"""Error taxonomy for the checklist engine.

Every engine error derives from `ChecklistError` and carries a `kind`, a
stable `code` and a `retryable` flag so callers can decide on retry policy
without inspecting exception types. The HTTP layer maps these to
problem+json through `fleetcheck.http.error_mapping`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class ChecklistError(Exception):
    kind = "checklist_error"
    code = "CHECKLIST_ERROR"
    retryable = False

    def __init__(self, message: str = "", *, status_code: Optional[int] = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class TemplateError(ChecklistError):
    """Template could not be turned into answerable items.

    `reason` is one of `invalid_json`, `missing_sections`, `invalid_structure`
    or `no_items`.
    """

    kind = "template"
    code = "TEMPLATE_INVALID"

    INVALID_JSON = "invalid_json"
    MISSING_SECTIONS = "missing_sections"
    INVALID_STRUCTURE = "invalid_structure"
    NO_ITEMS = "no_items"

    def __init__(self, reason: str, message: str = "", *, template_id: Optional[str] = None) -> None:
        super().__init__(message or f"template rejected: {reason}")
        self.reason = reason
        self.template_id = template_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason
        if self.template_id is not None:
            data["template_id"] = self.template_id
        return data


class ChecklistValidationError(ChecklistError):
    kind = "validation"
    code = "CHECKLIST_VALIDATION_FAILED"

    def __init__(
        self,
        message: str = "",
        *,
        missing_items: Optional[List[Dict[str, Any]]] = None,
        item_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message or "checklist validation failed", status_code=status_code)
        self.missing_items = list(missing_items or [])
        self.item_id = item_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["missing_items"] = self.missing_items
        if self.item_id is not None:
            data["item_id"] = self.item_id
        return data


class ConflictError(ChecklistError):
    kind = "conflict"
    code = "CHECKLIST_CONFLICT"

    def __init__(self, message: str = "", *, checklist_id: Optional[str] = None) -> None:
        super().__init__(message or "conflicting write", status_code=409)
        self.checklist_id = checklist_id


class NotFoundError(ChecklistError):
    kind = "not_found"
    code = "CHECKLIST_NOT_FOUND"

    def __init__(self, message: str = "", *, resource: str = "") -> None:
        super().__init__(message or f"not found: {resource}", status_code=404)
        self.resource = resource


class TransientError(ChecklistError):
    """5xx, network failures and timeouts. Safe for the caller to retry."""

    kind = "transient"
    code = "STORE_UNAVAILABLE"
    retryable = True


class RequestTimeoutError(TransientError):
    kind = "timeout"
    code = "STORE_TIMEOUT"


class StoreRequestError(ChecklistError):
    """Any other 4xx answer from the store."""

    kind = "store_request"
    code = "STORE_REQUEST_REJECTED"


class LifecycleError(ChecklistError):
    kind = "lifecycle"
    code = "CHECKLIST_TRANSITION_INVALID"


class TableEditError(ChecklistError):
    kind = "table_edit"
    code = "TABLE_EDIT_INVALID"


class ConcurrentSaveError(ChecklistError):
    """A save for the same checklist was still in flight."""

    kind = "concurrent_save"
    code = "CHECKLIST_SAVE_IN_PROGRESS"
    retryable = True


__all__ = [
    "ChecklistError",
    "TemplateError",
    "ChecklistValidationError",
    "ConflictError",
    "NotFoundError",
    "TransientError",
    "RequestTimeoutError",
    "StoreRequestError",
    "LifecycleError",
    "TableEditError",
    "ConcurrentSaveError",
]
