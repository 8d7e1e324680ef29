from __future__ import annotations

from typing import Protocol

from .models import SubscriptionTier, UsageCounters


class EntitlementProvider(Protocol):
    """
    Read-only view of the caller's plan and usage.

    Implemented by the purchase/entitlement collaborator. The governance core
    never writes through this interface.
    """

    def current_tier(self) -> SubscriptionTier: ...

    def usage(self) -> UsageCounters: ...


class StaticEntitlementProvider:
    """Fixed tier and usage snapshot. Useful for wiring and tests."""

    def __init__(
        self,
        tier: SubscriptionTier = SubscriptionTier.free,
        usage: UsageCounters | None = None,
    ) -> None:
        self._tier = tier
        self._usage = usage or UsageCounters()

    def current_tier(self) -> SubscriptionTier:
        return self._tier

    def usage(self) -> UsageCounters:
        return self._usage

    def set_tier(self, tier: SubscriptionTier) -> None:
        self._tier = tier

    def set_usage(self, usage: UsageCounters) -> None:
        self._usage = usage
