"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type and handler callables that produce
application/problem+json responses for engine errors, HTTP errors, request
validation failures and anything unexpected.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from fleetcheck.http.error_mapping import status_for, title_for
from fleetcheck.logic.errors import ChecklistError

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem_body(exc: ChecklistError) -> Dict[str, Any]:
    status = status_for(exc.kind)
    body: Dict[str, Any] = {
        "type": "about:blank",
        "title": title_for(exc.kind),
        "status": status,
        "detail": exc.message,
        "code": exc.code,
        "retryable": exc.retryable,
    }
    extra = exc.to_dict()
    for key in ("missing_items", "reason", "item_id", "template_id"):
        if key in extra:
            body[key] = extra[key]
    return body


async def handle_checklist_error(request: Request, exc: ChecklistError) -> JSONResponse:  # noqa: D401
    body = problem_body(exc)
    log = logger.warning if body["status"] >= 500 else logger.info
    log("checklist_error path=%s kind=%s code=%s status=%s", request.url.path, exc.kind, exc.code, body["status"])
    return JSONResponse(body, status_code=body["status"], media_type=PROBLEM_MEDIA_TYPE)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status = int(getattr(exc, "status_code", 500) or 500)
    if isinstance(exc.detail, dict):
        detail = {"status": status, **exc.detail}
    else:
        detail = {"title": "Error", "status": status, "detail": str(exc.detail or "")}
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()}
    return JSONResponse(detail, status_code=status, media_type=PROBLEM_MEDIA_TYPE, headers=headers or None)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    problem = {
        "title": "Invalid Request",
        "status": 422,
        "detail": "Request validation failed",
        "errors": [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()
        ],
    }
    return JSONResponse(problem, status_code=422, media_type=PROBLEM_MEDIA_TYPE)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return JSONResponse(
        {"title": "Internal Server Error", "status": 500}, status_code=500, media_type=PROBLEM_MEDIA_TYPE
    )


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem_body",
    "handle_checklist_error",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
