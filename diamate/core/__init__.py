"""Core module - logging setup and the error taxonomy shared by all handlers."""

from .errors import APIError, ErrorKind, register_error_handlers, server_error_boundary

__all__ = ['APIError', 'ErrorKind', 'register_error_handlers', 'server_error_boundary']
