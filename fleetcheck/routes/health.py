"""Liveness endpoint reporting whether the checklist store answers."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from fleetcheck.logic.checklist_service import ChecklistService
from fleetcheck.routes.deps import get_service

router = APIRouter()


@router.get("/health", summary="Health check")
async def health(service: ChecklistService = Depends(get_service)) -> dict:
    store_ok = await service.client.ping()
    return {"status": "ok" if store_ok else "degraded", "store": store_ok}


__all__ = ["router"]
