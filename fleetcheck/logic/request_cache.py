"""TTL cache with in-flight request de-duplication.

All reads of remote state go through `RequestCache.get_or_fetch`. Concurrent
callers for one key share a single fetch task, so at most one fetch per key
is outstanding. The task belongs to no single caller: a cancelled caller
leaves it running for the others, and it is cancelled only once nobody waits.
Entries expire lazily on read against the injected clock. Writers call
`invalidate` before returning, which also detaches any in-flight fetch for
the dropped keys so its result is never cached.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0


def templates_key() -> str:
    return "templates"


def template_key(template_id: str) -> str:
    return f"template:{template_id}"


def checklist_key(checklist_id: str) -> str:
    return f"checklist:{checklist_id}"


def voyage_checklists_key(voyage_id: str) -> str:
    return f"voyage:{voyage_id}:checklists"


@dataclass
class _Entry:
    value: Any
    expires_at: float


@dataclass
class _Pending:
    task: "Optional[asyncio.Task[Any]]" = None
    waiters: int = 0
    stale: bool = False


class RequestCache:
    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.default_ttl = float(default_ttl)
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._pending: Dict[str, _Pending] = {}

    def peek(self, key: str) -> Optional[Any]:
        """Return the cached value when present and fresh, without fetching."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def __contains__(self, key: str) -> bool:
        return self.peek(key) is not None

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        entry = self._entries.get(key)
        if entry is not None:
            if self._clock() < entry.expires_at:
                logger.debug("cache_hit key=%s", key)
                return entry.value
            del self._entries[key]

        record = self._pending.get(key)
        if record is not None:
            logger.debug("cache_join_inflight key=%s", key)
        else:
            logger.debug("cache_miss key=%s", key)
            record = _Pending()
            record.task = asyncio.get_running_loop().create_task(self._run_fetch(key, record, fetch, ttl))
            self._pending[key] = record

        record.waiters += 1
        try:
            return await asyncio.shield(record.task)
        finally:
            record.waiters -= 1
            # The fetch outlives a cancelled caller while anyone else still awaits it
            if record.waiters == 0 and not record.task.done():
                logger.debug("cache_fetch_abandoned key=%s", key)
                record.task.cancel()
                # A task cancelled before its first step never reaches its own cleanup
                if self._pending.get(key) is record:
                    del self._pending[key]

    async def _run_fetch(
        self,
        key: str,
        record: _Pending,
        fetch: Callable[[], Awaitable[Any]],
        ttl: Optional[float],
    ) -> Any:
        try:
            value = await fetch()
        finally:
            if self._pending.get(key) is record:
                del self._pending[key]
        if record.stale:
            logger.debug("cache_store_skipped_stale key=%s", key)
        else:
            lifetime = self.default_ttl if ttl is None else float(ttl)
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + lifetime)
        return value

    def invalidate(self, predicate: Callable[[str], bool]) -> int:
        """Drop every entry and in-flight fetch whose key matches."""
        dropped = [k for k in self._entries if predicate(k)]
        for k in dropped:
            del self._entries[k]
        detached = [k for k in self._pending if predicate(k)]
        for k in detached:
            self._pending.pop(k).stale = True
        if dropped or detached:
            logger.info("cache_invalidated entries=%s inflight=%s", len(dropped), len(detached))
        return len(dropped)

    def invalidate_containing(self, token: str) -> int:
        return self.invalidate(lambda key: token in key)

    def clear(self) -> None:
        self._entries.clear()
        for record in self._pending.values():
            record.stale = True
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "DEFAULT_TTL_SECONDS",
    "RequestCache",
    "templates_key",
    "template_key",
    "checklist_key",
    "voyage_checklists_key",
]
