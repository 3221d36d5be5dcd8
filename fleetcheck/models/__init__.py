"""Pydantic models shared by the engine, the HTTP layer and the store."""

from __future__ import annotations

from fleetcheck.models.checklist import (
    Checklist,
    ChecklistStatus,
    ChecklistView,
    DisplayRow,
    FormAnswer,
    FormMode,
    MissingItem,
    ProgressSummary,
    SaveResult,
    SaveSummary,
    SubmitResult,
    WireResponse,
)
from fleetcheck.models.template import (
    ChecklistItem,
    ChecklistTemplate,
    NormalizedTemplate,
    ResponseType,
    TableColumn,
    TableStructure,
)

__all__ = [
    "Checklist",
    "ChecklistView",
    "ChecklistStatus",
    "DisplayRow",
    "FormAnswer",
    "FormMode",
    "MissingItem",
    "ProgressSummary",
    "SaveResult",
    "SaveSummary",
    "SubmitResult",
    "WireResponse",
    "ChecklistItem",
    "ChecklistTemplate",
    "NormalizedTemplate",
    "ResponseType",
    "TableColumn",
    "TableStructure",
]
