"""
Error taxonomy of the AI endpoints and the FastAPI handlers that render it.

Every failure leaves the API as ``{"error": kind, "code"?: kind,
"message"?: text}``; unexpected exceptions are logged and rendered as
``server_error`` without details.
"""

import functools
import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorKind:
    METHOD_NOT_ALLOWED = "method_not_allowed"
    CONFIG_ERROR = "config_error"
    AUTH_REQUIRED = "auth_required"
    INVALID_TOKEN = "invalid_token"
    INVALID_JSON = "invalid_json"
    INVALID_REQUEST = "invalid_request"
    IMAGE_TOO_LARGE = "image_too_large"
    QUOTA_EXCEEDED = "quota_exceeded"
    AI_ERROR = "ai_error"
    PARSE_ERROR = "parse_error"
    SERVER_ERROR = "server_error"
    NOT_FOUND = "not_found"


STATUS_BY_KIND = {
    ErrorKind.METHOD_NOT_ALLOWED: status.HTTP_405_METHOD_NOT_ALLOWED,
    ErrorKind.CONFIG_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.AUTH_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_JSON: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.IMAGE_TOO_LARGE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.QUOTA_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.AI_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.PARSE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


class APIError(Exception):
    """A structured error response raised from inside a handler."""

    def __init__(self, error: str, message: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message or error)
        self.error = error
        self.message = message
        self.code = code
        self.status_code = STATUS_BY_KIND.get(error, status.HTTP_500_INTERNAL_SERVER_ERROR)

    def envelope(self) -> dict:
        body = {"error": self.error}
        if self.code:
            body["code"] = self.code
        if self.message:
            body["message"] = self.message
        return body


def error_response(error: APIError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.envelope())


def server_error_boundary(handler):
    """
    Wrap an async endpoint so unexpected exceptions become ``server_error``.

    APIErrors pass through unchanged; anything else is logged with its
    traceback and replaced by a detail-free 500.
    """
    @functools.wraps(handler)
    async def wrapper(*args, **kwargs):
        try:
            return await handler(*args, **kwargs)
        except APIError:
            raise
        except Exception as e:
            logger.error(f"Unhandled error in {handler.__name__}: {e}", exc_info=True)
            raise APIError(ErrorKind.SERVER_ERROR, "Internal server error") from e

    return wrapper


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return error_response(exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return error_response(APIError(ErrorKind.METHOD_NOT_ALLOWED))
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response(APIError(ErrorKind.NOT_FOUND))
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return error_response(APIError(ErrorKind.SERVER_ERROR, "Internal server error"))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
