"""FastAPI application factory for the checklist API.

`create_app()` wires logging, configuration, the request-id middleware, the
problem+json handlers and the `/api/v1` router around one explicit
`ChecklistService` kept on `app.state`.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from fleetcheck.client.store_client import ChecklistStoreClient
from fleetcheck.config import AppConfig, load_config
from fleetcheck.http.problem import (
    handle_checklist_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from fleetcheck.http.request_id import RequestIdMiddleware
from fleetcheck.logging_setup import configure_logging
from fleetcheck.logic.checklist_service import ChecklistService
from fleetcheck.logic.errors import ChecklistError
from fleetcheck.routes import api_router

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def build_service(config: AppConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> ChecklistService:
    client = ChecklistStoreClient(
        config.store.base_url,
        timeout=config.store.timeout_seconds,
        transport=transport,
    )
    return ChecklistService(
        client,
        cache_ttl=config.cache.ttl_seconds,
        allow_overwrite=config.submit.allow_overwrite,
        autosave_interval=config.autosave.interval_seconds,
    )


def create_app(service: Optional[ChecklistService] = None, config: Optional[AppConfig] = None) -> FastAPI:
    configure_logging()
    if config is None and service is None:
        config = load_config()
    owns_service = service is None
    if service is None:
        service = build_service(config)  # type: ignore[arg-type]

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("app_start store=%s", service.client.base_url)
        yield
        if owns_service:
            await service.aclose()
        logger.info("app_stop")

    app = FastAPI(title="fleetcheck", lifespan=lifespan)
    app.state.service = service
    app.state.config = config

    app.add_exception_handler(ChecklistError, handle_checklist_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router, prefix=API_PREFIX)
    return app


def serve() -> None:
    """Console entry point: run the API under uvicorn."""
    host = os.getenv("FLEETCHECK_HOST", "127.0.0.1")
    port = int(os.getenv("FLEETCHECK_PORT", "8000"))
    uvicorn.run(create_app(), host=host, port=port, log_config=None)


__all__ = ["API_PREFIX", "build_service", "create_app", "serve"]
