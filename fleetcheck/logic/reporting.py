"""CSV export and fleet summary statistics.

Export uses RFC4180 quoting through `csv.DictWriter`; rows keep the order
they are given in. Voyage metadata columns (ports, ETA, due date, overdue
and urgent flags) are read from extra fields the store may attach to a
checklist.
"""

from __future__ import annotations

import csv
import io
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel

from fleetcheck.logic.errors import NotFoundError
from fleetcheck.logic.progress import percentage
from fleetcheck.models.checklist import Checklist, ChecklistStatus

HEADER = [
    "Checklist ID",
    "Vessel Name",
    "Template Name",
    "Type",
    "Status",
    "Progress %",
    "Items Completed",
    "Total Items",
    "Departure Port",
    "Arrival Port",
    "ETA",
    "Due Date",
    "Created Date",
    "Submitted Date",
    "Is Overdue",
    "Is Urgent",
]

_DONE = (ChecklistStatus.COMPLETE, ChecklistStatus.SUBMITTED)


class FleetSummary(BaseModel):
    total_voyages: int = 0
    voyages_with_checklists: int = 0
    total_checklists: int = 0
    completed_checklists: int = 0
    overdue_checklists: int = 0
    urgent_checklists: int = 0
    completion_rate: int = 0


def _extra(checklist: Checklist, key: str) -> Any:
    return (checklist.model_extra or {}).get(key)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


def _day(value: Optional[Any]) -> str:
    if not value:
        return ""
    return str(value)[:10]


def checklist_row(checklist: Checklist) -> Dict[str, Any]:
    return {
        "Checklist ID": checklist.checklist_id,
        "Vessel Name": checklist.vessel_name or "",
        "Template Name": checklist.template_name or "",
        "Type": _extra(checklist, "type_code") or checklist.template_type or "",
        "Status": checklist.status.value,
        "Progress %": checklist.progress_percentage,
        "Items Completed": checklist.items_completed,
        "Total Items": checklist.total_items,
        "Departure Port": _extra(checklist, "departure_port") or "",
        "Arrival Port": _extra(checklist, "arrival_port") or "",
        "ETA": _day(_extra(checklist, "eta")),
        "Due Date": _day(_extra(checklist, "due_date")),
        "Created Date": _day(checklist.created_at),
        "Submitted Date": _day(checklist.submitted_at),
        "Is Overdue": "Yes" if _truthy(_extra(checklist, "is_overdue")) else "No",
        "Is Urgent": "Yes" if _truthy(_extra(checklist, "is_urgent")) else "No",
    }


def export_checklists_csv(checklists: Iterable[Checklist]) -> bytes:
    rows = [checklist_row(c) for c in checklists]
    if not rows:
        raise NotFoundError("no checklists to export", resource="checklists")
    buf = io.StringIO(newline="")
    writer = csv.DictWriter(buf, fieldnames=HEADER)
    writer.writeheader()
    for r in rows:
        writer.writerow(r)
    return buf.getvalue().encode("utf-8")


def fleet_summary(checklists_by_voyage: Mapping[str, List[Checklist]]) -> FleetSummary:
    summary = FleetSummary(total_voyages=len(checklists_by_voyage))
    for checklists in checklists_by_voyage.values():
        if not checklists:
            continue
        summary.voyages_with_checklists += 1
        summary.total_checklists += len(checklists)
        for c in checklists:
            if c.status in _DONE:
                summary.completed_checklists += 1
            if _truthy(_extra(c, "is_overdue")):
                summary.overdue_checklists += 1
            if _truthy(_extra(c, "is_urgent")):
                summary.urgent_checklists += 1
    summary.completion_rate = percentage(summary.completed_checklists, summary.total_checklists)
    return summary


__all__ = ["HEADER", "FleetSummary", "checklist_row", "export_checklists_csv", "fleet_summary"]
