"""Middleware binding a request id into the log context."""
from __future__ import annotations

import uuid

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from partyhub.core.logger import log_context

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware:
    """ASGI middleware that tags every log record of a request with its id.

    An incoming ``X-Request-ID`` header is reused; otherwise a new id is
    generated. The id is echoed back on the response.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(REQUEST_ID_HEADER.lower().encode("latin-1"), b"").decode("latin-1")
        request_id = request_id or uuid.uuid4().hex

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message).append(REQUEST_ID_HEADER, request_id)
            await send(message)

        with log_context.scope(request_id=request_id):
            await self.app(scope, receive, send_with_request_id)


__all__ = ["REQUEST_ID_HEADER", "RequestContextMiddleware"]
