"""Request bodies accepted by the checklist API."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    vessel_name: Optional[str] = None
    user_id: Optional[str] = None


class CreateChecklistRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    template_id: str = Field(min_length=1)
    vessel_name: Optional[str] = None
    user_id: Optional[str] = None


class SaveResponsesRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # item_id -> answer ({"response", "remarks", "table_data"} or a bare value)
    answers: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None
    autosave: bool = False


class SubmitRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    answers: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None
    allow_overwrite: Optional[bool] = None


__all__ = ["SessionRequest", "CreateChecklistRequest", "SaveResponsesRequest", "SubmitRequest"]
