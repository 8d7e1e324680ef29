"""Subscription tiers and the usage quota gate."""

from .gate import QuotaGate, next_weekly_reset
from .models import (
    LimitDecision,
    LimitType,
    QuotaMessages,
    QuotaPolicy,
    SubscriptionTier,
    UsageCounters,
    UsageQuota,
)
from .provider import EntitlementProvider, StaticEntitlementProvider

__all__ = [
    "EntitlementProvider",
    "LimitDecision",
    "LimitType",
    "QuotaGate",
    "QuotaMessages",
    "QuotaPolicy",
    "StaticEntitlementProvider",
    "SubscriptionTier",
    "UsageCounters",
    "UsageQuota",
    "next_weekly_reset",
]
