"""App-side API client and the recovery boundary."""

from .api_client import ChatResult, ClientAPIError, DiaMateClient, as_data_url, friendly_error_text
from .boundary import ErrorBoundary, FallbackNotice, fallback_notice

__all__ = [
    'ChatResult', 'ClientAPIError', 'DiaMateClient', 'as_data_url', 'friendly_error_text',
    'ErrorBoundary', 'FallbackNotice', 'fallback_notice',
]
