"""Request/response body capture as span events.

Records the request body (for methods that carry one) and the response
body as events on the server span:

- ``http.request.body`` with ``body`` and ``size``
- ``http.response.body`` with ``body``, ``size`` and ``status_code``

Capture is additive only: the downstream app receives the identical request
bytes and the client receives the identical response.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from opentelemetry import trace

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# Bare retrieval/deletion: no request body to capture
NO_BODY_METHODS = frozenset({"GET", "HEAD", "DELETE"})


class ClientDisconnect(Exception):
    """The client went away before the request body was fully received."""


def _body_text(body: bytes, max_size: int | None) -> str:
    if max_size is not None and len(body) > max_size:
        body = body[:max_size]
    return body.decode("utf-8", errors="replace")


async def read_body(receive: Receive) -> bytes:
    """Read every ``http.request`` message until ``more_body`` is false.

    Raises:
        ClientDisconnect: An ``http.disconnect`` arrived first.
    """
    chunks: list[bytes] = []
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            raise ClientDisconnect
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            return b"".join(chunks)


def replay_receive(body: bytes, receive: Receive) -> Receive:
    """Receive callable that yields ``body`` once, then delegates to ``receive``.

    Delegating afterwards keeps disconnect detection working downstream.
    """
    delivered = False

    async def _receive() -> Message:
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return _receive


class BodyCaptureMiddleware:
    """Pure ASGI middleware recording request/response bodies on the active span.

    Must run inside the server span (i.e. inside the OpenTelemetry ASGI
    middleware). Non-HTTP scopes pass straight through.

    Example:
        app.add_middleware(BodyCaptureMiddleware, max_body_size=64 * 1024)
    """

    def __init__(self, app: ASGIApp, max_body_size: int | None = None) -> None:
        """Initialize body capture middleware.

        Args:
            app: The ASGI application.
            max_body_size: Truncate the recorded ``body`` attribute to this many
                bytes. Never affects what is delivered.
        """
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        span = trace.get_current_span()

        if scope["method"] not in NO_BODY_METHODS:
            try:
                body = await read_body(receive)
            except ClientDisconnect:
                logger.debug("Client disconnected while sending body", extra={"path": scope["path"]})
                body = b""
            else:
                span.add_event(
                    "http.request.body",
                    {"body": _body_text(body, self.max_body_size), "size": len(body)},
                )
            receive = replay_receive(body, receive)

        response_chunks: list[bytes] = []
        status_code = 200

        async def send_capturing_body(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            elif message["type"] == "http.response.body":
                chunk = message.get("body", b"")
                if chunk:
                    response_chunks.append(chunk)
            await send(message)

        await self.app(scope, receive, send_capturing_body)

        if response_chunks:
            response_body = b"".join(response_chunks)
            span.add_event(
                "http.response.body",
                {
                    "body": _body_text(response_body, self.max_body_size),
                    "size": len(response_body),
                    "status_code": status_code,
                },
            )
