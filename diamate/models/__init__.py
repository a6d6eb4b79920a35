"""Models module."""

from .health import (
    GlucoseReading, MealItem, MealLog, FavoriteMeal, AIMessage, AIMemory, UserProfile,
)
from .entitlement import (
    Identity, Quotas, Usage, Entitlement, FREE_QUOTAS, PRO_QUOTAS, default_entitlement,
)
from .api import (
    ChatMessage, ChatRequest, ChatResponse, VisionRequest, VisionResponse,
    HealthSyncRequest, HealthSyncResponse, ErrorEnvelope,
)

__all__ = [
    'GlucoseReading', 'MealItem', 'MealLog', 'FavoriteMeal', 'AIMessage', 'AIMemory', 'UserProfile',
    'Identity', 'Quotas', 'Usage', 'Entitlement', 'FREE_QUOTAS', 'PRO_QUOTAS', 'default_entitlement',
    'ChatMessage', 'ChatRequest', 'ChatResponse', 'VisionRequest', 'VisionResponse',
    'HealthSyncRequest', 'HealthSyncResponse', 'ErrorEnvelope',
]
