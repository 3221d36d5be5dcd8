"""Conflict-tolerant submission.

Business policy: submitting a checklist that the store reports as already
submitted (HTTP 409) is treated as success, so submission feels idempotent
to the user. When overwrite tolerance is allowed the current state is fetched
exactly once and reported back with `already_submitted=True`. When that fetch
fails the result is synthesized as "submitted now by the current actor". The
original submit is never retried.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from fleetcheck.logic.errors import ChecklistError, ConflictError
from fleetcheck.models.checklist import Checklist, ChecklistStatus, SubmitResult

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _from_checklist(checklist: Checklist) -> SubmitResult:
    return SubmitResult(
        checklist_id=checklist.checklist_id,
        status=checklist.status,
        submitted_at=checklist.submitted_at,
        submitted_by=checklist.submitted_by,
        progress_percentage=checklist.progress_percentage,
        checklist=checklist,
    )


async def resolve_submit(
    submit: Callable[[], Awaitable[Checklist]],
    fetch_current: Callable[[], Awaitable[Checklist]],
    *,
    checklist_id: str,
    actor: str,
    allow_overwrite: bool,
    synthesize_on_fetch_failure: bool = True,
    now: Optional[Callable[[], str]] = None,
) -> SubmitResult:
    try:
        checklist = await submit()
    except ConflictError as conflict:
        if not allow_overwrite:
            raise
        logger.info("submit_conflict checklist_id=%s actor=%s", checklist_id, actor)
        try:
            current = await fetch_current()
        except ChecklistError as exc:
            if not synthesize_on_fetch_failure:
                raise conflict from exc
            logger.warning(
                "submit_conflict_fetch_failed checklist_id=%s kind=%s synthesized=true",
                checklist_id,
                exc.kind,
            )
            return SubmitResult(
                checklist_id=checklist_id,
                status=ChecklistStatus.SUBMITTED,
                submitted_at=(now or utc_now_iso)(),
                submitted_by=actor,
                progress_percentage=100,
                already_submitted=True,
                synthesized=True,
            )
        if current.status not in (ChecklistStatus.SUBMITTED, ChecklistStatus.COMPLETE):
            logger.warning(
                "submit_conflict_unexpected_status checklist_id=%s status=%s",
                checklist_id,
                current.status.value,
            )
        return SubmitResult(
            checklist_id=checklist_id,
            status=current.status,
            submitted_at=current.submitted_at,
            submitted_by=current.submitted_by,
            progress_percentage=100,
            already_submitted=True,
            checklist=current,
        )
    return _from_checklist(checklist)


__all__ = ["resolve_submit", "utc_now_iso"]
