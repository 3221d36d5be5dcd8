"""Pydantic models for checklists, responses and engine results."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fleetcheck.models.template import NormalizedTemplate


class ChecklistStatus(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    SUBMITTED = "submitted"


class FormMode(str, Enum):
    VIEW = "view"
    EDIT = "edit"


# Status spellings seen from older store deployments
_STATUS_ALIASES = {
    "pending": ChecklistStatus.DRAFT,
    "in progress": ChecklistStatus.IN_PROGRESS,
    "completed": ChecklistStatus.COMPLETE,
}


def _parse_table_data(value: Any) -> Any:
    if isinstance(value, str):
        if not value.strip():
            return None
        return json.loads(value)
    return value


class WireResponse(BaseModel):
    """Persisted answer for one item, in the store's wire format."""

    model_config = ConfigDict(extra="ignore")

    item_id: str
    yes_no_na_value: Optional[str] = None
    text_value: Optional[str] = None
    date_value: Optional[str] = None
    table_data: Optional[List[Dict[str, Any]]] = None
    remarks: Optional[str] = None

    @field_validator("table_data", mode="before")
    @classmethod
    def table_data_may_be_json(cls, v: Any) -> Any:
        return _parse_table_data(v)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class FormAnswer(BaseModel):
    """Client-side answer for one item as held by the form."""

    model_config = ConfigDict(extra="ignore")

    response: Any = None
    remarks: Optional[str] = None
    comments: Optional[str] = None
    table_data: Optional[List[Dict[str, Any]]] = None

    @field_validator("table_data", mode="before")
    @classmethod
    def table_data_may_be_json(cls, v: Any) -> Any:
        return _parse_table_data(v)


class Checklist(BaseModel):
    model_config = ConfigDict(extra="allow")

    checklist_id: str
    voyage_id: Optional[str] = None
    vessel_name: Optional[str] = None
    template_id: Optional[str] = None
    template_name: Optional[str] = None
    template_type: Optional[str] = None
    status: ChecklistStatus = ChecklistStatus.DRAFT
    progress_percentage: int = 0
    items_completed: int = 0
    mandatory_items_completed: int = 0
    total_items: int = 0
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    submitted_at: Optional[str] = None
    submitted_by: Optional[str] = None
    responses: List[WireResponse] = Field(default_factory=list)
    template_data: Any = None

    @field_validator("checklist_id", "voyage_id", "template_id", mode="before")
    @classmethod
    def ids_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("status", mode="before")
    @classmethod
    def status_aliases(cls, v: Any) -> Any:
        if isinstance(v, str):
            token = v.strip().lower()
            if token in _STATUS_ALIASES:
                return _STATUS_ALIASES[token]
            return token.replace(" ", "_")
        return ChecklistStatus.DRAFT if v is None else v

    @field_validator("progress_percentage", "items_completed", "mandatory_items_completed", "total_items", mode="before")
    @classmethod
    def counters_default_zero(cls, v: Any) -> Any:
        return 0 if v is None else v


class SaveSummary(BaseModel):
    created: int = 0
    updated: int = 0
    total_processed: int = 0


class SaveResult(BaseModel):
    saved: bool
    autosave: bool = False
    reason: Optional[str] = None
    summary: Optional[SaveSummary] = None
    responses_sent: int = 0
    checklist: Optional[Checklist] = None


class SubmitResult(BaseModel):
    checklist_id: str
    status: ChecklistStatus
    submitted_at: Optional[str] = None
    submitted_by: Optional[str] = None
    progress_percentage: int = 0
    already_submitted: bool = False
    synthesized: bool = False
    checklist: Optional[Checklist] = None


class MissingItem(BaseModel):
    item_id: str
    description: str = ""
    section: str = ""


class ProgressSummary(BaseModel):
    total: int
    completed: int
    mandatory: int
    mandatory_completed: int
    percentage: int
    mandatory_percentage: int
    can_submit: bool


class DisplayRow(BaseModel):
    """One table row ready for display, with its editing constraints."""

    row_id: str
    predefined: bool = False
    values: Dict[str, Any] = Field(default_factory=dict)
    needs_attention: bool = False


class ChecklistView(BaseModel):
    """Everything a form needs to render one checklist."""

    checklist: Checklist
    template: NormalizedTemplate
    answers: Dict[str, FormAnswer] = Field(default_factory=dict)
    progress: ProgressSummary
    mode: FormMode
    tables: Dict[str, List[DisplayRow]] = Field(default_factory=dict)


__all__ = [
    "ChecklistView",
    "ChecklistStatus",
    "FormMode",
    "WireResponse",
    "FormAnswer",
    "Checklist",
    "SaveSummary",
    "SaveResult",
    "SubmitResult",
    "MissingItem",
    "ProgressSummary",
    "DisplayRow",
]
