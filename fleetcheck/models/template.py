"""Pydantic models for checklist templates and their normalized items."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResponseType(str, Enum):
    TEXT = "text"
    DATE = "date"
    YES_NO_NA = "yes_no_na"
    TABLE = "table"


class TableColumn(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    column_id: Optional[str] = None
    label: Optional[str] = None
    type: str = "text"
    required: bool = False

    @property
    def key(self) -> str:
        return self.id or self.column_id or self.label or ""


class TableStructure(BaseModel):
    columns: List[TableColumn] = Field(default_factory=list)
    predefined_rows: Optional[List[Dict[str, Any]]] = None

    @property
    def has_predefined_rows(self) -> bool:
        return isinstance(self.predefined_rows, list)


class ChecklistItem(BaseModel):
    """One answerable unit after normalization."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    section_name: str
    sub_section_name: Optional[str] = None
    description: str = ""
    pic: str = ""
    guidance: str = ""
    response_type: ResponseType = ResponseType.TEXT
    is_mandatory: bool = True
    requires_evidence: bool = False
    order_index: int = 0
    table_structure: Optional[TableStructure] = None


class ChecklistTemplate(BaseModel):
    """Template as returned by the store, before normalization."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    template_id: Optional[str] = Field(default=None, alias="id")
    name: str = ""
    template_type: Optional[str] = None
    category: Optional[str] = None
    # Either a JSON string or an already-decoded document
    template_data: Any = None

    @field_validator("template_id", mode="before")
    @classmethod
    def id_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


class NormalizedTemplate(BaseModel):
    template_id: Optional[str] = None
    name: str = ""
    template_type: Optional[str] = None
    category: Optional[str] = None
    items: List[ChecklistItem]
    # Parallel arrays kept for consumers of the legacy form contract
    descriptions: List[str] = Field(default_factory=list)
    item_types: List[ResponseType] = Field(default_factory=list)
    is_mandatory: List[bool] = Field(default_factory=list)
    total_items: int = 0
    mandatory_items: int = 0

    def item(self, item_id: str) -> Optional[ChecklistItem]:
        for candidate in self.items:
            if candidate.item_id == item_id:
                return candidate
        return None

    def items_by_id(self) -> Dict[str, ChecklistItem]:
        return {i.item_id: i for i in self.items}


__all__ = [
    "ResponseType",
    "TableColumn",
    "TableStructure",
    "ChecklistItem",
    "ChecklistTemplate",
    "NormalizedTemplate",
]
