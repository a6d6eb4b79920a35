"""Quota module - usage ledger, entitlement resolution and the gated operation."""

from .ledger import FEATURE_CHAT, FEATURE_VISION, count_today, record_usage, record_usage_safely, client_ip
from .entitlement import PLANS, is_subscription_active, resolve_plan, resolve_entitlement
from .gate import CHAT, VISION, EntitlementGate, GatedFeature, GateResult, run_gated_operation

__all__ = [
    'FEATURE_CHAT', 'FEATURE_VISION', 'count_today', 'record_usage', 'record_usage_safely', 'client_ip',
    'PLANS', 'is_subscription_active', 'resolve_plan', 'resolve_entitlement',
    'CHAT', 'VISION', 'EntitlementGate', 'GatedFeature', 'GateResult', 'run_gated_operation',
]
