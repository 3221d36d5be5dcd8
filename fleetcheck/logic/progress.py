"""Progress calculation and submission gating.

The completed set is always derived from the responses; nothing here keeps
state between calls.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Set, Union

from fleetcheck.logic.errors import ChecklistValidationError
from fleetcheck.logic.response_codec import is_meaningful
from fleetcheck.models.checklist import MissingItem, ProgressSummary, WireResponse
from fleetcheck.models.template import NormalizedTemplate

ResponseLike = Union[WireResponse, Mapping[str, Any]]

# Items listed per section in a validation message
REPORT_ITEMS_PER_SECTION = 5


def _latest(responses: Iterable[ResponseLike]) -> Dict[str, WireResponse]:
    latest: Dict[str, WireResponse] = {}
    for r in responses:
        response = r if isinstance(r, WireResponse) else WireResponse.model_validate(dict(r))
        latest[response.item_id] = response
    return latest


def completed_item_ids(responses: Iterable[ResponseLike]) -> Set[str]:
    return {item_id for item_id, r in _latest(responses).items() if is_meaningful(r)}


def percentage(completed: int, total: int) -> int:
    """Integer percentage rounded half-up, clamped to 0..100."""
    if total <= 0:
        return 0
    value = (completed * 200 + total) // (2 * total)
    return max(0, min(100, value))


def completion_percentage(responses: Iterable[ResponseLike], total_items: int) -> int:
    return percentage(len(completed_item_ids(responses)), total_items)


def summarize_progress(responses: Iterable[ResponseLike], template: NormalizedTemplate) -> ProgressSummary:
    done = completed_item_ids(responses)
    ids = [i.item_id for i in template.items]
    mandatory_ids = [i.item_id for i in template.items if i.is_mandatory]
    completed = sum(1 for i in ids if i in done)
    mandatory_completed = sum(1 for i in mandatory_ids if i in done)
    mandatory_pct = percentage(mandatory_completed, len(mandatory_ids)) if mandatory_ids else 100
    return ProgressSummary(
        total=len(ids),
        completed=completed,
        mandatory=len(mandatory_ids),
        mandatory_completed=mandatory_completed,
        percentage=percentage(completed, len(ids)),
        mandatory_percentage=mandatory_pct,
        can_submit=mandatory_completed == len(mandatory_ids),
    )


def find_missing_mandatory(responses: Iterable[ResponseLike], template: NormalizedTemplate) -> List[MissingItem]:
    done = completed_item_ids(responses)
    return [
        MissingItem(item_id=i.item_id, description=i.description, section=i.section_name)
        for i in template.items
        if i.is_mandatory and i.item_id not in done
    ]


def format_missing_report(missing: List[MissingItem]) -> str:
    """Human-readable report grouped by section."""
    grouped: "OrderedDict[str, List[MissingItem]]" = OrderedDict()
    for m in missing:
        grouped.setdefault(m.section or "General", []).append(m)
    lines = [f"{len(missing)} mandatory item(s) need a response:"]
    for section, entries in grouped.items():
        lines.append(f"{section}:")
        for m in entries[:REPORT_ITEMS_PER_SECTION]:
            lines.append(f"  - {m.description or m.item_id}")
        if len(entries) > REPORT_ITEMS_PER_SECTION:
            lines.append(f"  ... and {len(entries) - REPORT_ITEMS_PER_SECTION} more")
    return "\n".join(lines)


def validate_for_submission(responses: Iterable[ResponseLike], template: NormalizedTemplate) -> None:
    """Raise `ChecklistValidationError` when a mandatory item is unanswered."""
    missing = find_missing_mandatory(responses, template)
    if missing:
        raise ChecklistValidationError(
            format_missing_report(missing),
            missing_items=[m.model_dump() for m in missing],
        )


__all__ = [
    "completed_item_ids",
    "percentage",
    "completion_percentage",
    "summarize_progress",
    "find_missing_mandatory",
    "format_missing_report",
    "validate_for_submission",
]
