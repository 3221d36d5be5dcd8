"""Central error mapping for the checklist API.

Single source of truth for mapping engine error kinds to HTTP statuses and
problem titles. Handlers import from here instead of hardcoding numbers.
"""

from __future__ import annotations

from typing import Dict

ERROR_MAP: Dict[str, Dict[str, object]] = {
    "template": {"status": 422, "title": "Template Invalid"},
    "validation": {"status": 422, "title": "Checklist Incomplete"},
    "conflict": {"status": 409, "title": "Conflict"},
    "not_found": {"status": 404, "title": "Not Found"},
    "transient": {"status": 502, "title": "Checklist Store Unavailable"},
    "timeout": {"status": 504, "title": "Checklist Store Timeout"},
    "store_request": {"status": 502, "title": "Checklist Store Rejected Request"},
    "lifecycle": {"status": 409, "title": "Invalid Checklist Transition"},
    "concurrent_save": {"status": 409, "title": "Save In Progress"},
    "table_edit": {"status": 422, "title": "Invalid Table Edit"},
}

DEFAULT_MAPPING: Dict[str, object] = {"status": 500, "title": "Checklist Error"}


def status_for(kind: str) -> int:
    return int(ERROR_MAP.get(kind, DEFAULT_MAPPING)["status"])  # type: ignore[arg-type]


def title_for(kind: str) -> str:
    return str(ERROR_MAP.get(kind, DEFAULT_MAPPING)["title"])


__all__ = ["ERROR_MAP", "DEFAULT_MAPPING", "status_for", "title_for"]
