"""Request correlation middleware.

Reads ``x-request-id`` (or generates one), exposes it to log records via
:func:`cpb_ai.observability.correlation_context` and echoes it back on
the response.
"""

from __future__ import annotations

from typing import Any

from cpb_ai.observability import correlation_context

_Scope = dict[str, Any]
_Receive = Any
_Send = Any


def _header_value(headers: list[tuple[bytes, bytes]], name: bytes) -> str | None:
    for key, val in headers:
        if key.lower() == name:
            return val.decode("latin-1")
    return None


class CorrelationIdMiddleware:
    """Pure ASGI middleware that manages ``x-request-id``."""

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: _Scope, receive: _Receive, send: _Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = _header_value(scope.get("headers", []), b"x-request-id")
        with correlation_context(incoming) as request_id:

            async def _send_with_id(message: dict[str, Any]) -> None:
                if message["type"] == "http.response.start":
                    headers = list(message.get("headers", []))
                    headers.append((b"x-request-id", request_id.encode("latin-1")))
                    message["headers"] = headers
                await send(message)

            await self.app(scope, receive, _send_with_id)
