"""Domain event constants and publisher.

Each `ChecklistService` owns an `EventPublisher`; subscribers registered on
it are the "notify parent" channel for checklist writes. Events are also
logged and buffered in memory for observation in tests.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

CHECKLIST_CREATED = "checklist.created"
CHECKLIST_SAVED = "checklist.saved"
CHECKLIST_SUBMITTED = "checklist.submitted"
CHECKLIST_DELETED = "checklist.deleted"

Subscriber = Callable[[str, Dict[str, Any]], None]


class EventPublisher:
    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []
        self._buffer: List[Dict[str, Any]] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that removes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        logger.info("event_publish type=%s payload=%s", event_type, payload)
        self._buffer.append({"type": event_type, "payload": payload})
        for callback in list(self._subscribers):
            try:
                callback(event_type, payload)
            except Exception:
                # A failing subscriber must not undo a completed write
                logger.error("event_subscriber_failed type=%s", event_type, exc_info=True)

    def get_buffered_events(self, clear: bool = True) -> List[Dict[str, Any]]:
        events = list(self._buffer)
        if clear:
            self._buffer.clear()
        return events


__all__ = [
    "CHECKLIST_CREATED",
    "CHECKLIST_SAVED",
    "CHECKLIST_SUBMITTED",
    "CHECKLIST_DELETED",
    "EventPublisher",
]
