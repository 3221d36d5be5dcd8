"""Checklist endpoints.

Implements:
- GET /voyages/{voyage_id}/checklists
- POST /voyages/{voyage_id}/checklists (create from a template)
- POST /voyages/{voyage_id}/session
  - Auto-creates checklists on first visit and opens the preferred one
- GET /checklists/{checklist_id}
  - Items, decoded answers, progress, default mode and merged tables
- PUT /checklists/{checklist_id}/responses
  - Manual save or autosave (`autosave: true`)
- POST /checklists/{checklist_id}/submit
- DELETE /checklists/{checklist_id}
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response

from fleetcheck.logic.checklist_service import ChecklistService
from fleetcheck.models.checklist import ChecklistView
from fleetcheck.models.requests import (
    CreateChecklistRequest,
    SaveResponsesRequest,
    SessionRequest,
    SubmitRequest,
)
from fleetcheck.routes.deps import get_service

router = APIRouter()
logger = logging.getLogger(__name__)

# The raw template document is already delivered normalized under "template"
_VIEW_EXCLUDE = {"checklist": {"template_data"}}


def _view_body(view: ChecklistView) -> dict:
    return view.model_dump(mode="json", exclude=_VIEW_EXCLUDE)


@router.get("/voyages/{voyage_id}/checklists", summary="List checklists for a voyage")
async def list_voyage_checklists(voyage_id: str, service: ChecklistService = Depends(get_service)) -> dict:
    checklists = await service.list_checklists(voyage_id)
    return {
        "voyage_id": voyage_id,
        "checklists": [c.model_dump(mode="json", exclude={"template_data", "responses"}) for c in checklists],
    }


@router.post("/voyages/{voyage_id}/checklists", status_code=201, summary="Create a checklist from a template")
async def create_checklist(
    voyage_id: str,
    body: CreateChecklistRequest,
    service: ChecklistService = Depends(get_service),
) -> dict:
    checklist = await service.create_checklist(
        voyage_id, body.template_id, vessel_name=body.vessel_name, user_id=body.user_id
    )
    return {"checklist": checklist.model_dump(mode="json", exclude={"template_data"})}


@router.post("/voyages/{voyage_id}/session", summary="Open the voyage's working checklist")
async def open_session(
    voyage_id: str,
    body: SessionRequest | None = None,
    service: ChecklistService = Depends(get_service),
) -> dict:
    body = body or SessionRequest()
    view = await service.open_session(voyage_id, vessel_name=body.vessel_name, user_id=body.user_id)
    return _view_body(view)


@router.get("/checklists/{checklist_id}", summary="Checklist view")
async def get_checklist(checklist_id: str, service: ChecklistService = Depends(get_service)) -> dict:
    view = await service.get_checklist_view(checklist_id)
    return _view_body(view)


@router.put("/checklists/{checklist_id}/responses", summary="Save responses")
async def save_responses(
    checklist_id: str,
    body: SaveResponsesRequest,
    service: ChecklistService = Depends(get_service),
) -> dict:
    result = await service.save_responses(
        checklist_id, body.answers, user_id=body.user_id, autosave=body.autosave
    )
    return result.model_dump(mode="json", exclude={"checklist": {"template_data"}})


@router.post("/checklists/{checklist_id}/submit", summary="Submit a checklist")
async def submit_checklist(
    checklist_id: str,
    body: SubmitRequest,
    service: ChecklistService = Depends(get_service),
) -> dict:
    result = await service.submit(
        checklist_id, body.answers, user_id=body.user_id, allow_overwrite=body.allow_overwrite
    )
    return result.model_dump(mode="json", exclude={"checklist": {"template_data"}})


@router.delete("/checklists/{checklist_id}", status_code=204, summary="Delete a checklist")
async def delete_checklist(checklist_id: str, service: ChecklistService = Depends(get_service)) -> Response:
    await service.delete_checklist(checklist_id)
    return Response(status_code=204)


__all__ = ["router"]
