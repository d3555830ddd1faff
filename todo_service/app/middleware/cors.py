"""Permissive CORS headers on every response.

Preflight requests are answered by explicit OPTIONS routes; this middleware
only decorates responses, it never short-circuits a request.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.datastructures import MutableHeaders

if TYPE_CHECKING:
    from collections.abc import Sequence

    from starlette.types import ASGIApp, Message, Receive, Scope, Send

DEFAULT_ALLOW_METHODS = ("GET", "POST", "DELETE", "OPTIONS")
DEFAULT_ALLOW_HEADERS = ("Content-Type",)


def get_cors_headers(
    allow_origins: Sequence[str] = ("*",),
    allow_methods: Sequence[str] = DEFAULT_ALLOW_METHODS,
    allow_headers: Sequence[str] = DEFAULT_ALLOW_HEADERS,
) -> dict[str, str]:
    """CORS headers for a response.

    Also used by error handlers whose responses are produced outside the
    middleware stack.
    """
    return {
        "Access-Control-Allow-Origin": ", ".join(allow_origins),
        "Access-Control-Allow-Methods": ", ".join(allow_methods),
        "Access-Control-Allow-Headers": ", ".join(allow_headers),
    }


class CORSHeadersMiddleware:
    """Pure ASGI middleware adding the CORS headers to every HTTP response.

    Example:
        app.add_middleware(CORSHeadersMiddleware, allow_origins=["*"])
    """

    def __init__(
        self,
        app: ASGIApp,
        allow_origins: Sequence[str] = ("*",),
        allow_methods: Sequence[str] = DEFAULT_ALLOW_METHODS,
        allow_headers: Sequence[str] = DEFAULT_ALLOW_HEADERS,
    ) -> None:
        self.app = app
        self.headers = get_cors_headers(allow_origins, allow_methods, allow_headers)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_cors_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for key, value in self.headers.items():
                    headers[key] = value
            await send(message)

        await self.app(scope, receive, send_with_cors_headers)
