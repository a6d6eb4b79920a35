"""Middleware module."""

from .cors import CORSHeadersMiddleware
from .logging_middleware import RequestLoggingMiddleware

__all__ = ['CORSHeadersMiddleware', 'RequestLoggingMiddleware']
