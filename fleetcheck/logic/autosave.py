"""Periodic background save for an open checklist form."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from fleetcheck.logic.errors import ChecklistError
from fleetcheck.models.checklist import FormMode, SaveResult
from fleetcheck.models.template import NormalizedTemplate

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30.0
MIN_INTERVAL_SECONDS = 5.0

REASON_VIEW_MODE = "view_mode"
REASON_BUSY = "busy"
REASON_NO_ANSWERS = "no_answers"


class Autosaver:
    """Runs `ChecklistService.save_responses(autosave=True)` on an interval.

    `answers` and `mode` are callables so the saver always sees the form's
    current state. Cycles are skipped while the form is in view mode, while a
    save or submit for the checklist is in flight, or when there is nothing
    to save. A failed cycle is logged and the loop keeps going.
    """

    def __init__(
        self,
        service: Any,
        checklist_id: str,
        template: NormalizedTemplate,
        answers: Callable[[], Mapping[str, Any]],
        *,
        mode: Callable[[], FormMode] = lambda: FormMode.EDIT,
        user_id: Optional[str] = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        if interval < MIN_INTERVAL_SECONDS:
            raise ValueError(f"autosave interval must be at least {MIN_INTERVAL_SECONDS:g}s")
        self.service = service
        self.checklist_id = checklist_id
        self.template = template
        self.answers = answers
        self.mode = mode
        self.user_id = user_id
        self.interval = float(interval)
        self.last_result: Optional[SaveResult] = None
        self.last_error: Optional[ChecklistError] = None
        self.cycles: Dict[str, int] = {"saved": 0, "skipped": 0, "failed": 0}
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _skip_reason(self, answers: Mapping[str, Any]) -> Optional[str]:
        if self.mode() is FormMode.VIEW:
            return REASON_VIEW_MODE
        if self.service.is_busy(self.checklist_id):
            return REASON_BUSY
        if not answers:
            return REASON_NO_ANSWERS
        return None

    async def run_once(self) -> Optional[SaveResult]:
        answers = dict(self.answers())
        reason = self._skip_reason(answers)
        if reason is not None:
            self.cycles["skipped"] += 1
            logger.debug("autosave_skipped checklist_id=%s reason=%s", self.checklist_id, reason)
            return None
        try:
            result = await self.service.save_responses(
                self.checklist_id, answers, self.template, user_id=self.user_id, autosave=True
            )
        except ChecklistError as exc:
            self.cycles["failed"] += 1
            self.last_error = exc
            logger.warning(
                "autosave_failed checklist_id=%s kind=%s retryable=%s", self.checklist_id, exc.kind, exc.retryable
            )
            return None
        self.cycles["saved" if result.saved else "skipped"] += 1
        self.last_result = result
        return result

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()

    def start(self) -> None:
        if self.running:
            return
        logger.info("autosave_start checklist_id=%s interval=%s", self.checklist_id, self.interval)
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("autosave_stop checklist_id=%s cycles=%s", self.checklist_id, self.cycles)


__all__ = ["Autosaver", "DEFAULT_INTERVAL_SECONDS", "MIN_INTERVAL_SECONDS"]
