"""Request ID middleware.

Honours an inbound X-Request-Id header or assigns a new one, echoes it on
the response and exposes it through a context variable so outbound store
calls made while serving the request carry the same id.
"""

from __future__ import annotations

import contextvars
import uuid
from typing import Optional

REQUEST_ID_HEADER = "X-Request-Id"

_current_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "fleetcheck_request_id", default=None
)


def get_request_id() -> Optional[str]:
    return _current_request_id.get()


def set_request_id(value: Optional[str]) -> contextvars.Token:
    return _current_request_id.set(value)


class RequestIdMiddleware:
    def __init__(self, app, header_name: str = REQUEST_ID_HEADER) -> None:  # type: ignore[no-untyped-def]
        self.app = app
        self.header_name = header_name

    async def __call__(self, scope, receive, send):  # type: ignore[no-untyped-def]
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        header_bytes = self.header_name.lower().encode("latin-1")
        inbound = None
        for k, v in scope.get("headers") or []:
            if k.lower() == header_bytes and v:
                inbound = v.decode("latin-1").strip()
                break
        request_id = inbound or str(uuid.uuid4())

        async def send_wrapper(message):  # type: ignore[no-untyped-def]
            if message.get("type") == "http.response.start":
                headers = [(k, v) for k, v in (message.get("headers") or []) if k.lower() != header_bytes]
                headers.append((self.header_name.encode("latin-1"), request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        token = set_request_id(request_id)
        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            _current_request_id.reset(token)


__all__ = ["REQUEST_ID_HEADER", "RequestIdMiddleware", "get_request_id", "set_request_id"]
