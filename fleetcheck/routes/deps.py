"""Request-scoped access to the application's ChecklistService."""

from __future__ import annotations

from fastapi import Request

from fleetcheck.logic.checklist_service import ChecklistService


def get_service(request: Request) -> ChecklistService:
    return request.app.state.service


__all__ = ["get_service"]
