"""API module."""

from .chat import router as chat_router
from .vision import router as vision_router
from .entitlement import router as entitlement_router
from .health import router as health_router

__all__ = ['chat_router', 'vision_router', 'entitlement_router', 'health_router']
