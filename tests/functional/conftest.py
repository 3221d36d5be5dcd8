"""Shared fixtures: an in-process reference store, a store client and a service.

The store runs on a fresh in-memory SQLite database per test and is reached
through `httpx.ASGITransport`, so no sockets are opened. The service uses a
fake clock so TTL behaviour is deterministic.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import httpx
import pytest

from fleetcheck.client.store_client import ChecklistStoreClient
from fleetcheck.logic.checklist_service import ChecklistService
from fleetcheck.logic.request_cache import RequestCache
from fleetcheck.store.app import create_store_app, load_sample_templates
from fleetcheck.store.db import make_engine

FIXED_NOW = "2025-03-01T08:00:00Z"
STORE_URL = "http://store.test"


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport(httpx.AsyncBaseTransport):
    """Delegates to another transport and records every request."""

    def __init__(self, inner: httpx.AsyncBaseTransport) -> None:
        self.inner = inner
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return await self.inner.handle_async_request(request)

    @property
    def calls(self) -> List[Tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.requests]

    def count(self, method: str, path: str) -> int:
        return sum(1 for c in self.calls if c == (method, path))

    def reset(self) -> None:
        self.requests.clear()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_templates() -> List[Dict[str, Any]]:
    return load_sample_templates()


@pytest.fixture
def store_app(sample_templates):
    return create_store_app(make_engine("sqlite+pysqlite:///:memory:"), templates=sample_templates)


@pytest.fixture
def transport(store_app) -> RecordingTransport:
    return RecordingTransport(httpx.ASGITransport(app=store_app))


@pytest.fixture
def store_client(transport) -> ChecklistStoreClient:
    return ChecklistStoreClient(STORE_URL, timeout=5.0, transport=transport)


@pytest.fixture
def service(store_client, clock) -> ChecklistService:
    return ChecklistService(
        store_client,
        RequestCache(default_ttl=300.0, clock=clock),
        now=lambda: FIXED_NOW,
    )
