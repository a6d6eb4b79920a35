"""
CORS middleware for the public AI endpoints.

Every HTTP response carries the CORS headers, including error envelopes,
and any OPTIONS request is acknowledged with an empty 200 before routing,
authentication or body validation run.

Starlette's CORSMiddleware is not used: it only short-circuits preflights
that carry Origin and Access-Control-Request-Method, and it adds no headers
to requests without an Origin header.
"""

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

ALLOW_HEADERS = "Content-Type, Authorization"
ALLOW_METHODS = "GET, POST, OPTIONS"


class CORSHeadersMiddleware:
    """Pure ASGI middleware attaching CORS headers to every exit path."""

    def __init__(self, app: ASGIApp, allow_origin: str = "*"):
        self.app = app
        self.allow_origin = allow_origin

    def _cors_headers(self) -> dict:
        return {
            "Access-Control-Allow-Origin": self.allow_origin,
            "Access-Control-Allow-Headers": ALLOW_HEADERS,
            "Access-Control-Allow-Methods": ALLOW_METHODS,
        }

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope.get("method") == "OPTIONS":
            headers = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in self._cors_headers().items()]
            headers.append((b"content-length", b"0"))
            await send({"type": "http.response.start", "status": 200, "headers": headers})
            await send({"type": "http.response.body", "body": b""})
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for key, value in self._cors_headers().items():
                    headers[key] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)
