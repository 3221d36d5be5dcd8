"""Behave environment hooks for checklist integration scenarios.

By default every scenario gets a fresh reference store (in-memory SQLite,
seeded with the sample templates) and a fresh checklist API, both served
in-process: the API talks to the store through `httpx.ASGITransport` and the
steps talk to the API through FastAPI's `TestClient`. No sockets are opened.

When `TEST_BASE_URL` is set the steps run against that live API instead,
which must already be wired to a seeded store.
"""

from __future__ import annotations

import os
from typing import Any

import httpx
from fastapi.testclient import TestClient

from fleetcheck.client.store_client import ChecklistStoreClient
from fleetcheck.logic.checklist_service import ChecklistService
from fleetcheck.main import API_PREFIX, create_app
from fleetcheck.store.app import create_store_app, load_sample_templates
from fleetcheck.store.db import make_engine

STORE_URL = "http://store.integration"


def before_all(context: Any) -> None:
    context.test_base_url = os.getenv("TEST_BASE_URL", "").strip().rstrip("/")
    context.api_prefix = os.getenv("TEST_API_PREFIX", API_PREFIX)
    context.sample_templates = load_sample_templates()


def _in_process_client(context: Any) -> TestClient:
    store = create_store_app(make_engine("sqlite+pysqlite:///:memory:"), templates=context.sample_templates)
    client = ChecklistStoreClient(STORE_URL, timeout=5.0, transport=httpx.ASGITransport(app=store))
    context.service = ChecklistService(client)
    return TestClient(create_app(service=context.service))


def before_scenario(context: Any, scenario: Any) -> None:
    context.vars = {}
    context.last_response = None
    if context.test_base_url:
        context.api = httpx.Client(base_url=context.test_base_url, timeout=10.0)
    else:
        context.api = _in_process_client(context)
        # Entering the client runs the app lifespan
        context.api.__enter__()


def after_scenario(context: Any, scenario: Any) -> None:
    api = getattr(context, "api", None)
    if api is None:
        return
    if isinstance(api, TestClient):
        api.__exit__(None, None, None)
    else:
        api.close()
    context.api = None
