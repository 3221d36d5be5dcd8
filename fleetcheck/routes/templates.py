"""Template endpoints.

Implements:
- GET /templates
  - Template summaries without their raw documents
- GET /templates/{template_id}
  - The normalized template (flat items plus legacy parallel arrays)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from fleetcheck.logic.checklist_service import ChecklistService
from fleetcheck.routes.deps import get_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/templates", summary="List checklist templates")
async def list_templates(service: ChecklistService = Depends(get_service)) -> dict:
    templates = await service.list_templates()
    return {
        "templates": [
            {
                "template_id": t.template_id,
                "name": t.name,
                "template_type": t.template_type,
                "category": t.category,
            }
            for t in templates
        ]
    }


@router.get("/templates/{template_id}", summary="Get a normalized template")
async def get_template(template_id: str, service: ChecklistService = Depends(get_service)) -> dict:
    template = await service.get_template(template_id)
    return template.model_dump(mode="json")


__all__ = ["router"]
