"""Checklist lifecycle state machine and view/edit mode.

draft -> in_progress -> complete, with submitted reachable from in_progress
or complete. Leaving submitted only happens through an explicit `reset()`.
Permission decisions (who may edit a submitted checklist) are made by the
caller and passed in as booleans.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Optional

from fleetcheck.logic.errors import LifecycleError
from fleetcheck.models.checklist import ChecklistStatus, FormMode

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[ChecklistStatus, FrozenSet[ChecklistStatus]] = {
    ChecklistStatus.DRAFT: frozenset({ChecklistStatus.IN_PROGRESS}),
    ChecklistStatus.IN_PROGRESS: frozenset({ChecklistStatus.COMPLETE, ChecklistStatus.SUBMITTED}),
    ChecklistStatus.COMPLETE: frozenset({ChecklistStatus.SUBMITTED, ChecklistStatus.IN_PROGRESS}),
    ChecklistStatus.SUBMITTED: frozenset(),
}

_VIEW_BY_DEFAULT = frozenset({ChecklistStatus.COMPLETE, ChecklistStatus.SUBMITTED})


def can_transition(current: ChecklistStatus, target: ChecklistStatus) -> bool:
    return current == target or target in ALLOWED_TRANSITIONS[current]


def default_mode(status: ChecklistStatus) -> FormMode:
    return FormMode.VIEW if status in _VIEW_BY_DEFAULT else FormMode.EDIT


def derive_status(current: ChecklistStatus, progress_percentage: int) -> ChecklistStatus:
    """Local status projection after a successful save.

    Submitted is sticky. A checklist with any answer leaves draft; one at
    100% becomes complete; one below 100% that was complete reopens.
    """
    if current is ChecklistStatus.SUBMITTED:
        return current
    if progress_percentage >= 100:
        return ChecklistStatus.COMPLETE
    if progress_percentage > 0 or current is ChecklistStatus.COMPLETE:
        return ChecklistStatus.IN_PROGRESS
    return current


class ChecklistLifecycle:
    def __init__(
        self,
        status: ChecklistStatus = ChecklistStatus.DRAFT,
        *,
        mode: Optional[FormMode] = None,
        submitted_at: Optional[str] = None,
        submitted_by: Optional[str] = None,
    ) -> None:
        self.status = ChecklistStatus(status)
        self.mode = mode or default_mode(self.status)
        self.submitted_at = submitted_at
        self.submitted_by = submitted_by

    def transition(self, target: ChecklistStatus) -> ChecklistStatus:
        target = ChecklistStatus(target)
        if target == self.status:
            return self.status
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise LifecycleError(f"cannot move checklist from {self.status.value} to {target.value}")
        logger.info("checklist_transition from=%s to=%s", self.status.value, target.value)
        self.status = target
        return self.status

    def advance(self, progress_percentage: int) -> ChecklistStatus:
        """Walk the allowed transitions towards the derived status."""
        target = derive_status(self.status, progress_percentage)
        if target is ChecklistStatus.COMPLETE and self.status is ChecklistStatus.DRAFT:
            self.transition(ChecklistStatus.IN_PROGRESS)
        return self.transition(target)

    def mark_submitted(self, at: str, by: str) -> None:
        """Move to submitted, recording when and by whom on the first call only."""
        self.transition(ChecklistStatus.SUBMITTED)
        if self.submitted_at is None:
            self.submitted_at = at
        if self.submitted_by is None:
            self.submitted_by = by
        self.mode = FormMode.VIEW

    def reset(self) -> None:
        if self.status is not ChecklistStatus.SUBMITTED:
            raise LifecycleError(f"reset applies to submitted checklists, not {self.status.value}")
        logger.info("checklist_reset submitted_by=%s", self.submitted_by)
        self.status = ChecklistStatus.IN_PROGRESS
        self.submitted_at = None
        self.submitted_by = None
        self.mode = FormMode.EDIT

    def toggle_mode(self, allow_submitted_edit: bool = False) -> FormMode:
        if self.mode is FormMode.EDIT:
            self.mode = FormMode.VIEW
            return self.mode
        if self.status is ChecklistStatus.SUBMITTED and not allow_submitted_edit:
            raise LifecycleError("editing a submitted checklist is not permitted")
        self.mode = FormMode.EDIT
        return self.mode

    @property
    def editable(self) -> bool:
        return self.mode is FormMode.EDIT


__all__ = [
    "ALLOWED_TRANSITIONS",
    "ChecklistLifecycle",
    "can_transition",
    "default_mode",
    "derive_status",
]
