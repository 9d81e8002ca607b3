# Copyright (C) 2022-2026, François-Guillaume Fernandez.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

from fastapi import HTTPException, status
from fastapi.responses import PlainTextResponse
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

__all__ = ["BodySizeLimitMiddleware"]


class BodySizeLimitMiddleware:
    """Rejects request bodies larger than a given size

    Declared lengths are checked before the application runs, streamed bodies are counted as they are received.

    Args:
        app: the wrapped ASGI application
        max_size: maximum number of body bytes
        detail: the error message returned with the 400 status
    """

    def __init__(self, app: ASGIApp, max_size: int, detail: str = "Request body is too large") -> None:
        self.app = app
        self.max_size = max_size
        self.detail = detail

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None and (not content_length.isdigit() or int(content_length) > self.max_size):
            response = PlainTextResponse(self.detail, status_code=status.HTTP_400_BAD_REQUEST)
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                # Raised within the body consumer, handled like any other HTTP error
                if received > self.max_size:
                    raise HTTPException(status.HTTP_400_BAD_REQUEST, self.detail)
            return message

        await self.app(scope, limited_receive, send)
