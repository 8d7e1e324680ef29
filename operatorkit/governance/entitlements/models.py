from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from ..schemas.base import BaseSchema, FrozenSchema


class SubscriptionTier(str, Enum):
    """
    Subscription plan levels.

    The tier is owned by the entitlement collaborator (store purchases); the
    governance core only reads it.

    Attributes:
        free: Usage-limited plan.
        pro: Unlimited executions and memory.
        team: Pro plus team governance features.
    """
    free = "free"
    pro = "pro"
    team = "team"

    @property
    def has_unlimited_executions(self) -> bool:
        return self in (SubscriptionTier.pro, SubscriptionTier.team)

    @property
    def has_unlimited_memory(self) -> bool:
        return self in (SubscriptionTier.pro, SubscriptionTier.team)

    @property
    def has_team_features(self) -> bool:
        return self == SubscriptionTier.team

    @property
    def has_cloud_sync(self) -> bool:
        return self in (SubscriptionTier.pro, SubscriptionTier.team)


class LimitType(str, Enum):
    executions_weekly = "executions_weekly"
    memory_items = "memory_items"

    @property
    def unit_name(self) -> str:
        if self == LimitType.executions_weekly:
            return "executions"
        return "memory items"


class QuotaPolicy(BaseSchema):
    """
    Configuration for per-tier usage quotas.

    Only the free tier is metered; paid tiers have no limit at all (``None``),
    not a large number.
    """
    free_executions_per_week: int = Field(default=25, ge=0)
    free_memory_items: int = Field(default=10, ge=0)

    week_starts_on: int = Field(
        default=0,
        ge=0,
        le=6,
        description="Weekday (0=Monday) at 00:00 UTC on which the weekly execution window resets.",
    )

    approaching_executions_threshold: int = Field(default=5, ge=0)
    approaching_memory_threshold: int = Field(default=3, ge=0)

    fail_closed_unknown_kinds: bool = Field(
        default=False,
        description="If set, action kinds the gate does not know are denied instead of allowed.",
    )


class UsageQuota(FrozenSchema):
    """Numeric limits that apply to one tier. ``None`` means unlimited."""
    executions_per_week: Optional[int] = None
    memory_items: Optional[int] = None

    @classmethod
    def for_tier(cls, tier: SubscriptionTier, policy: QuotaPolicy) -> "UsageQuota":
        if tier == SubscriptionTier.free:
            return cls(executions_per_week=policy.free_executions_per_week, memory_items=policy.free_memory_items)
        return cls()

    def limit_for(self, limit_type: LimitType) -> Optional[int]:
        if limit_type == LimitType.executions_weekly:
            return self.executions_per_week
        return self.memory_items


class UsageCounters(FrozenSchema):
    """Read-only usage snapshot supplied by the entitlement collaborator."""
    executions_this_week: int = Field(default=0, ge=0)
    memory_items: int = Field(default=0, ge=0)

    def for_limit(self, limit_type: LimitType) -> int:
        if limit_type == LimitType.executions_weekly:
            return self.executions_this_week
        return self.memory_items


class LimitDecision(FrozenSchema):
    """
    Result of checking an action against the caller's quota.

    Attributes:
        limit_type: The quota that was consulted, or None for unrecognised action kinds.
        allowed: Whether the action may proceed.
        reason: Short reason; always present when ``allowed`` is False.
        reset_at: When a blocked weekly quota opens again.
        limit: The finite limit, or None when unlimited.
        current_usage: The usage figure the decision was made against.
        message: Optional user-facing text (upgrade prompt or approaching-limit hint).
    """
    limit_type: Optional[LimitType]
    allowed: bool
    reason: Optional[str] = None
    reset_at: Optional[datetime] = None
    limit: Optional[int] = None
    current_usage: int = 0
    message: Optional[str] = None

    @model_validator(mode="after")
    def _blocked_needs_reason(self) -> "LimitDecision":
        if not self.allowed and not (self.reason or "").strip():
            raise ValueError("a blocked LimitDecision must carry a reason")
        return self

    @property
    def remaining(self) -> Optional[int]:
        if self.limit is None:
            return None
        return max(0, self.limit - self.current_usage)

    @property
    def is_unlimited(self) -> bool:
        return self.allowed and self.limit is None and self.limit_type is not None


class QuotaMessages:
    """User-facing quota texts."""

    weekly_limit_reached = "Weekly limit reached"
    memory_limit_reached = "Memory item limit reached"
    unknown_action_kind = "Unknown action kind"

    @staticmethod
    def execution_upgrade(limit: int) -> str:
        return f"You've reached your limit of {limit} executions this week. Upgrade to Pro for unlimited executions."

    @staticmethod
    def memory_upgrade(limit: int) -> str:
        return f"You've reached your limit of {limit} memory items. Upgrade to Pro for unlimited memory."

    @staticmethod
    def approaching(remaining: int, limit_type: LimitType) -> str:
        if limit_type == LimitType.executions_weekly:
            return f"You have {remaining} {limit_type.unit_name} remaining this week."
        return f"You have {remaining} {limit_type.unit_name} remaining."
