"""Reference implementation of the remote checklist store."""

from __future__ import annotations

from fleetcheck.store.app import create_store_app, load_sample_templates

__all__ = ["create_store_app", "load_sample_templates"]
