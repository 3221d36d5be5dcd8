"""APIRouter registration for the checklist API."""

from __future__ import annotations

from fastapi import APIRouter

from fleetcheck.routes.checklists import router as checklists_router
from fleetcheck.routes.health import router as health_router
from fleetcheck.routes.reports import router as reports_router
from fleetcheck.routes.templates import router as templates_router

api_router = APIRouter()
api_router.include_router(templates_router, tags=["Templates"])
api_router.include_router(reports_router, tags=["Reports"])
api_router.include_router(checklists_router, tags=["Checklists"])
api_router.include_router(health_router, tags=["Health"])

__all__ = ["api_router"]
