"""Reporting endpoints.

Implements:
- GET /voyages/{voyage_id}/checklists/export
  - text/csv attachment of the voyage's checklists
- GET /fleet/summary?voyage_id=...
  - Aggregate completion statistics across the given voyages
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query, Response

from fleetcheck.logic.checklist_service import ChecklistService
from fleetcheck.logic.reporting import export_checklists_csv, fleet_summary
from fleetcheck.routes.deps import get_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/voyages/{voyage_id}/checklists/export", summary="Export voyage checklists as CSV")
async def export_voyage_checklists(voyage_id: str, service: ChecklistService = Depends(get_service)) -> Response:
    checklists = await service.list_checklists(voyage_id)
    payload = export_checklists_csv(checklists)
    filename = f"checklists_{voyage_id}_{date.today().isoformat()}.csv"
    logger.info("checklists_export voyage_id=%s rows=%s", voyage_id, len(checklists))
    return Response(
        content=payload,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/fleet/summary", summary="Fleet checklist summary")
async def get_fleet_summary(
    voyage_id: List[str] = Query(default=[]),
    service: ChecklistService = Depends(get_service),
) -> dict:
    by_voyage = await service.checklists_by_voyage(voyage_id)
    return fleet_summary(by_voyage).model_dump()


__all__ = ["router"]
