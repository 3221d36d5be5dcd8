"""Client for the remote checklist store."""

from __future__ import annotations

from fleetcheck.client.store_client import ChecklistStoreClient

__all__ = ["ChecklistStoreClient"]
