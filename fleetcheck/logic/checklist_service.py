"""Checklist orchestration.

`ChecklistService` is the one place that talks to the store. It wraps every
read with the `RequestCache`, invalidates the affected keys before any write
returns, sequences save-then-submit and publishes domain events for manual
writes. It holds no module-level state: build one per application (or per
test) with its client, cache, clock and publisher injected.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from fleetcheck.client.store_client import ChecklistStoreClient
from fleetcheck.logic import events
from fleetcheck.logic.autosave import DEFAULT_INTERVAL_SECONDS, Autosaver
from fleetcheck.logic.conflict import resolve_submit, utc_now_iso
from fleetcheck.logic.errors import ConcurrentSaveError, ConflictError, NotFoundError
from fleetcheck.logic.lifecycle import default_mode
from fleetcheck.logic.progress import (
    completed_item_ids,
    percentage,
    summarize_progress,
    validate_for_submission,
)
from fleetcheck.logic.request_cache import (
    DEFAULT_TTL_SECONDS,
    RequestCache,
    checklist_key,
    template_key,
    templates_key,
    voyage_checklists_key,
)
from fleetcheck.logic.response_codec import decode_responses, encode_responses, optimize_responses
from fleetcheck.logic.table_merger import DynamicTable
from fleetcheck.logic.template_normalizer import normalize_template
from fleetcheck.models.checklist import (
    Checklist,
    ChecklistView,
    FormMode,
    SaveResult,
    SubmitResult,
    WireResponse,
)
from fleetcheck.models.template import ChecklistTemplate, NormalizedTemplate, ResponseType

logger = logging.getLogger(__name__)

# Template names matching these are opened first when a voyage has several
PREFERRED_TEMPLATE_KEYWORDS = ("5-day", "5 day", "pre-arrival", "five day")

REASON_NO_RESPONSES = "no_responses"
REASON_SAVE_IN_PROGRESS = "save_in_progress"


def pick_preferred_checklist(checklists: List[Checklist]) -> Optional[Checklist]:
    """First checklist whose template name matches a preferred keyword, else the first."""
    for checklist in checklists:
        name = (checklist.template_name or "").lower()
        if any(keyword in name for keyword in PREFERRED_TEMPLATE_KEYWORDS):
            return checklist
    return checklists[0] if checklists else None


class ChecklistService:
    def __init__(
        self,
        client: ChecklistStoreClient,
        cache: Optional[RequestCache] = None,
        *,
        cache_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], str] = utc_now_iso,
        publisher: Optional[events.EventPublisher] = None,
        allow_overwrite: bool = True,
        autosave_interval: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self.client = client
        self.cache = cache if cache is not None else RequestCache(default_ttl=cache_ttl, clock=clock)
        self.now = now
        self.events = publisher if publisher is not None else events.EventPublisher()
        self.allow_overwrite = allow_overwrite
        self.autosave_interval = float(autosave_interval)
        self._busy: Set[str] = set()
        self._voyage_of: Dict[str, str] = {}

    async def aclose(self) -> None:
        await self.client.aclose()

    # ------------------
    # Cache bookkeeping
    # ------------------

    def _remember(self, checklists: Iterable[Checklist]) -> None:
        for c in checklists:
            if c.voyage_id:
                self._voyage_of[c.checklist_id] = c.voyage_id

    def invalidate_checklist(self, checklist_id: str, voyage_id: Optional[str] = None) -> int:
        """Drop every cached read touching one checklist."""
        keys = {checklist_key(checklist_id)}
        voyage = voyage_id or self._voyage_of.get(checklist_id)
        if voyage:
            keys.add(voyage_checklists_key(voyage))
        return self.cache.invalidate(lambda key: key in keys)

    def invalidate_voyage(self, voyage_id: str) -> int:
        return self.cache.invalidate(lambda key: key == voyage_checklists_key(voyage_id))

    def is_busy(self, checklist_id: str) -> bool:
        return checklist_id in self._busy

    def autosaver(
        self,
        checklist_id: str,
        template: NormalizedTemplate,
        answers: Callable[[], Mapping[str, Any]],
        *,
        mode: Callable[[], FormMode] = lambda: FormMode.EDIT,
        user_id: Optional[str] = None,
    ) -> Autosaver:
        """Background saver for one open form, at this service's configured interval."""
        return Autosaver(
            self, checklist_id, template, answers, mode=mode, user_id=user_id, interval=self.autosave_interval
        )

    # ------------------
    # Reads
    # ------------------

    async def list_templates(self) -> List[ChecklistTemplate]:
        return await self.cache.get_or_fetch(templates_key(), self.client.list_templates)

    async def get_template(self, template_id: str) -> NormalizedTemplate:
        async def _fetch() -> NormalizedTemplate:
            raw = await self.client.get_template(template_id)
            return normalize_template(raw)

        return await self.cache.get_or_fetch(template_key(template_id), _fetch)

    async def list_checklists(self, voyage_id: str) -> List[Checklist]:
        """Checklists for a voyage; a 404 from the store means none exist yet."""

        async def _fetch() -> List[Checklist]:
            try:
                checklists = await self.client.list_checklists(voyage_id)
            except NotFoundError:
                logger.info("voyage_checklists_none voyage_id=%s", voyage_id)
                return []
            self._remember(checklists)
            return checklists

        return await self.cache.get_or_fetch(voyage_checklists_key(voyage_id), _fetch)

    async def template_for(self, checklist: Checklist) -> Optional[NormalizedTemplate]:
        if checklist.template_data is not None:
            return normalize_template(
                {
                    "id": checklist.template_id,
                    "name": checklist.template_name or "",
                    "template_type": checklist.template_type,
                    "template_data": checklist.template_data,
                }
            )
        if checklist.template_id:
            return await self.get_template(checklist.template_id)
        return None

    def _with_progress(self, checklist: Checklist, template: Optional[NormalizedTemplate]) -> Checklist:
        if template is not None:
            summary = summarize_progress(checklist.responses, template)
            return checklist.model_copy(
                update={
                    "total_items": summary.total,
                    "items_completed": summary.completed,
                    "mandatory_items_completed": summary.mandatory_completed,
                    "progress_percentage": summary.percentage,
                }
            )
        completed = len(completed_item_ids(checklist.responses))
        return checklist.model_copy(
            update={
                "items_completed": completed,
                "progress_percentage": percentage(completed, checklist.total_items),
            }
        )

    async def get_checklist(self, checklist_id: str) -> Checklist:
        """Authoritative checklist with its derived progress recomputed."""

        async def _fetch() -> Checklist:
            checklist = await self.client.get_checklist(checklist_id)
            self._remember([checklist])
            return self._with_progress(checklist, await self.template_for(checklist))

        return await self.cache.get_or_fetch(checklist_key(checklist_id), _fetch)

    async def get_checklist_view(self, checklist_id: str) -> ChecklistView:
        checklist = await self.get_checklist(checklist_id)
        template = await self.template_for(checklist)
        if template is None:
            raise NotFoundError(f"checklist {checklist_id} has no template", resource=f"checklist {checklist_id}")
        return self.build_view(checklist, template)

    @staticmethod
    def build_view(checklist: Checklist, template: NormalizedTemplate) -> ChecklistView:
        answers = decode_responses(checklist.responses, template)
        tables = {}
        for item in template.items:
            if item.response_type is not ResponseType.TABLE:
                continue
            answer = answers.get(item.item_id)
            stored = answer.table_data if answer is not None else None
            tables[item.item_id] = DynamicTable.from_structure(item.table_structure).merge(stored)
        return ChecklistView(
            checklist=checklist,
            template=template,
            answers=answers,
            progress=summarize_progress(checklist.responses, template),
            mode=default_mode(checklist.status),
            tables=tables,
        )

    # ------------------
    # Voyage setup
    # ------------------

    async def ensure_checklists_for_voyage(
        self,
        voyage_id: str,
        *,
        vessel_name: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List[Checklist]:
        """Existing checklists for a voyage, auto-creating them on first visit."""
        existing = await self.list_checklists(voyage_id)
        if existing:
            return existing
        try:
            created = await self.client.auto_create(voyage_id, vessel_name=vessel_name, user_id=user_id)
        except ConflictError:
            # Someone else created them between our read and our write
            logger.info("auto_create_conflict voyage_id=%s", voyage_id)
            self.invalidate_voyage(voyage_id)
            return await self.list_checklists(voyage_id)
        self.invalidate_voyage(voyage_id)
        self._remember(created)
        logger.info("auto_create_done voyage_id=%s created=%s", voyage_id, len(created))
        for c in created:
            self.events.publish(events.CHECKLIST_CREATED, {"checklist_id": c.checklist_id, "voyage_id": voyage_id})
        return created

    async def create_checklist(
        self,
        voyage_id: str,
        template_id: str,
        *,
        vessel_name: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Checklist:
        checklist = await self.client.create_from_template(
            voyage_id, template_id, vessel_name=vessel_name, user_id=user_id
        )
        self._remember([checklist])
        self.invalidate_checklist(checklist.checklist_id, voyage_id)
        self.events.publish(
            events.CHECKLIST_CREATED,
            {"checklist_id": checklist.checklist_id, "voyage_id": voyage_id, "template_id": template_id},
        )
        return checklist

    async def open_session(
        self,
        voyage_id: str,
        *,
        vessel_name: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ChecklistView:
        """Pick the voyage's working checklist and load it with its template."""
        checklists = await self.ensure_checklists_for_voyage(voyage_id, vessel_name=vessel_name, user_id=user_id)
        chosen = pick_preferred_checklist(checklists)
        if chosen is None:
            raise NotFoundError(f"no checklists for voyage {voyage_id}", resource=f"voyage {voyage_id}")
        if chosen.template_id:
            checklist, template = await asyncio.gather(
                self.get_checklist(chosen.checklist_id),
                self.get_template(chosen.template_id),
            )
        else:
            checklist = await self.get_checklist(chosen.checklist_id)
            template = await self.template_for(checklist)
        if template is None:
            raise NotFoundError(f"checklist {chosen.checklist_id} has no template", resource=chosen.checklist_id)
        logger.info(
            "session_open voyage_id=%s checklist_id=%s status=%s",
            voyage_id,
            checklist.checklist_id,
            checklist.status.value,
        )
        return self.build_view(checklist, template)

    # ------------------
    # Writes
    # ------------------

    def _encode(self, answers: Mapping[str, Any], template: NormalizedTemplate) -> List[WireResponse]:
        return optimize_responses(encode_responses(answers, template))

    async def _resolve_template(self, checklist_id: str, template: Optional[NormalizedTemplate]) -> NormalizedTemplate:
        if template is not None:
            return template
        resolved = await self.template_for(await self.get_checklist(checklist_id))
        if resolved is None:
            raise NotFoundError(f"checklist {checklist_id} has no template", resource=f"checklist {checklist_id}")
        return resolved

    async def save_responses(
        self,
        checklist_id: str,
        answers: Mapping[str, Any],
        template: Optional[NormalizedTemplate] = None,
        *,
        user_id: Optional[str] = None,
        autosave: bool = False,
    ) -> SaveResult:
        """Persist the meaningful answers of a form.

        Manual saves refresh the authoritative checklist and publish
        `checklist.saved`; autosaves do neither. A save while another save or
        submit for the same checklist is in flight is skipped.
        """
        if checklist_id in self._busy:
            logger.info("checklist_save_skipped checklist_id=%s reason=%s", checklist_id, REASON_SAVE_IN_PROGRESS)
            return SaveResult(saved=False, autosave=autosave, reason=REASON_SAVE_IN_PROGRESS)
        self._busy.add(checklist_id)
        try:
            template = await self._resolve_template(checklist_id, template)
            responses = self._encode(answers, template)
            if not responses:
                logger.info("checklist_save_skipped checklist_id=%s reason=%s", checklist_id, REASON_NO_RESPONSES)
                return SaveResult(saved=False, autosave=autosave, reason=REASON_NO_RESPONSES)
            try:
                summary = await self.client.update_responses(checklist_id, responses, user_id=user_id)
            finally:
                self.invalidate_checklist(checklist_id)
        finally:
            self._busy.discard(checklist_id)

        logger.info(
            "checklist_save_done checklist_id=%s created=%s updated=%s autosave=%s",
            checklist_id,
            summary.created,
            summary.updated,
            autosave,
        )
        result = SaveResult(saved=True, autosave=autosave, summary=summary, responses_sent=len(responses))
        if autosave:
            return result
        result.checklist = await self.get_checklist(checklist_id)
        self.events.publish(
            events.CHECKLIST_SAVED,
            {
                "checklist_id": checklist_id,
                "progress_percentage": result.checklist.progress_percentage,
                "total_processed": summary.total_processed,
            },
        )
        return result

    async def submit(
        self,
        checklist_id: str,
        answers: Mapping[str, Any],
        template: Optional[NormalizedTemplate] = None,
        *,
        user_id: Optional[str] = None,
        allow_overwrite: Optional[bool] = None,
    ) -> SubmitResult:
        """Validate, save, then submit one checklist.

        The submit call is only made after the save has succeeded. A 409 from
        the store is resolved by `resolve_submit` per the conflict policy.
        """
        if checklist_id in self._busy:
            raise ConcurrentSaveError(f"a save for checklist {checklist_id} is still in progress")
        tolerate = self.allow_overwrite if allow_overwrite is None else allow_overwrite
        actor = user_id or "system"
        self._busy.add(checklist_id)
        try:
            template = await self._resolve_template(checklist_id, template)
            responses = self._encode(answers, template)
            validate_for_submission(responses, template)
            if responses:
                await self.client.update_responses(checklist_id, responses, user_id=user_id)
                self.invalidate_checklist(checklist_id)
                logger.info("submit_save_done checklist_id=%s responses=%s", checklist_id, len(responses))
            result = await resolve_submit(
                lambda: self.client.submit(checklist_id, user_id=user_id, force_overwrite=tolerate),
                lambda: self.client.get_checklist(checklist_id),
                checklist_id=checklist_id,
                actor=actor,
                allow_overwrite=tolerate,
                now=self.now,
            )
        finally:
            self._busy.discard(checklist_id)
            self.invalidate_checklist(checklist_id)

        logger.info(
            "checklist_submit_done checklist_id=%s status=%s already_submitted=%s synthesized=%s",
            checklist_id,
            result.status.value,
            result.already_submitted,
            result.synthesized,
        )
        self.events.publish(
            events.CHECKLIST_SUBMITTED,
            {
                "checklist_id": checklist_id,
                "submitted_by": result.submitted_by,
                "already_submitted": result.already_submitted,
            },
        )
        return result

    async def delete_checklist(self, checklist_id: str) -> None:
        try:
            await self.client.delete(checklist_id)
        finally:
            self.invalidate_checklist(checklist_id)
        self._voyage_of.pop(checklist_id, None)
        self.events.publish(events.CHECKLIST_DELETED, {"checklist_id": checklist_id})

    # ------------------
    # Reporting inputs
    # ------------------

    async def checklists_by_voyage(self, voyage_ids: Iterable[str]) -> Dict[str, List[Checklist]]:
        ids = list(dict.fromkeys(voyage_ids))
        results = await asyncio.gather(*(self.list_checklists(v) for v in ids))
        return dict(zip(ids, results))


__all__ = [
    "ChecklistService",
    "PREFERRED_TEMPLATE_KEYWORDS",
    "REASON_NO_RESPONSES",
    "REASON_SAVE_IN_PROGRESS",
    "pick_preferred_checklist",
]
