"""
ASGI middleware for logging API requests and responses.

Uses pure ASGI middleware (not BaseHTTPMiddleware) so it composes with the
CORS short-circuit and the error handlers without buffering responses.

Logged per request: method, path, client, status code, duration, the
sanitized request/response bodies and the error kind of an error envelope.
"""

import json
import logging
import time
from typing import Optional
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.logging_config import filter_sensitive_data, truncate_large_data

logger = logging.getLogger(__name__)


def _sanitize_text_or_json(text: str) -> str:
    """Filter sensitive data if payload is JSON, fallback to plain text."""
    try:
        payload = json.loads(text)
        filtered_payload = filter_sensitive_data(payload)
        return truncate_large_data(json.dumps(filtered_payload, ensure_ascii=False), max_length=5000)
    except json.JSONDecodeError:
        return truncate_large_data(text, max_length=5000)


def extract_error_kind(response_text: str) -> Optional[str]:
    """Pull the ``error`` kind out of an error envelope, if the body is one."""
    try:
        payload = json.loads(response_text)
    except json.JSONDecodeError:
        return None
    if isinstance(payload, dict):
        value = payload.get("error") or payload.get("detail")
        if value:
            return str(value)
    return None


class RequestLoggingMiddleware:
    """Pure ASGI middleware to log all API requests and responses."""

    def __init__(self, app: ASGIApp, exclude_paths: Optional[list] = None):
        self.app = app
        self.exclude_paths = exclude_paths or ["/health", "/"]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        method = scope.get("method", "UNKNOWN")
        client = scope.get("client")
        client_host = client[0] if client else None
        start_time = time.time()

        body_chunks = []
        response_chunks = []
        status_code = 0

        async def logging_receive() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                body_chunks.append(message.get("body", b""))
            return message

        async def logging_send(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
            elif message["type"] == "http.response.body":
                response_chunks.append(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, logging_receive, logging_send)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {method} {path} - {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    "method": method,
                    "path": path,
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                }}
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        request_body_text = None
        response_body_text = None
        if body_chunks:
            full_body = b"".join(body_chunks).decode("utf-8", errors="ignore")
            if full_body:
                request_body_text = _sanitize_text_or_json(full_body)
        if response_chunks:
            full_response = b"".join(response_chunks).decode("utf-8", errors="ignore")
            if full_response:
                response_body_text = _sanitize_text_or_json(full_response)

        error_kind = extract_error_kind(response_body_text or "") if status_code >= 400 else None

        if status_code < 400:
            log_level = logging.INFO
        elif status_code < 500:
            log_level = logging.WARNING
        else:
            log_level = logging.ERROR

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Request body: {request_body_text or '-'} | response body: {response_body_text or '-'}")

        message = f"Request completed: {method} {path} - {status_code} ({duration_ms:.2f}ms)"
        if error_kind:
            message += f" | error={error_kind}"

        logger.log(
            log_level,
            message,
            extra={"extra_fields": {
                "method": method,
                "path": path,
                "client": client_host,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
                "request_body": request_body_text,
                "response_body": response_body_text,
                "error_kind": error_kind,
            }}
        )
