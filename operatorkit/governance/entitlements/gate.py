"""Quota gate.

``QuotaGate`` answers one question: may this metered action proceed under the
current plan and usage? It is a pure function of its arguments.

Policy
------

- Paid tiers have no quota and are always allowed.
- The free tier is blocked exactly when ``usage >= limit``.
- Weekly execution quotas reset at the next ``week_starts_on`` weekday,
  00:00 UTC (Monday by default). Memory item quotas never reset.
- Action kinds the gate does not recognise are allowed (fail-open) unless
  ``QuotaPolicy.fail_closed_unknown_kinds`` is set.

The gate never raises and never records usage. Callers check it before doing
metered work and surface the returned ``LimitDecision``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from .models import (
    LimitDecision,
    LimitType,
    QuotaMessages,
    QuotaPolicy,
    SubscriptionTier,
    UsageQuota,
)

logger = logging.getLogger(__name__)


def next_weekly_reset(now: datetime, *, week_starts_on: int = 0) -> datetime:
    """
    Return the start of the next weekly window strictly after ``now``.

    Naive datetimes are treated as UTC.

    Args:
        now: The reference instant.
        week_starts_on: Weekday the window starts on (0=Monday .. 6=Sunday).

    Returns:
        A timezone-aware UTC datetime at 00:00 on the next boundary weekday.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    days_ahead = (week_starts_on - day_start.weekday()) % 7
    if days_ahead == 0:
        days_ahead = 7
    return day_start + timedelta(days=days_ahead)


def _coerce_kind(action_kind: Union[LimitType, str]) -> Optional[LimitType]:
    if isinstance(action_kind, LimitType):
        return action_kind
    try:
        return LimitType(str(action_kind))
    except ValueError:
        return None


class QuotaGate:
    """Tier-based quota decisions for metered actions."""

    def __init__(self, policy: QuotaPolicy | None = None) -> None:
        self._policy = policy or QuotaPolicy()

    @property
    def policy(self) -> QuotaPolicy:
        """Return the underlying quota policy."""
        return self._policy

    def quota_for(self, tier: SubscriptionTier) -> UsageQuota:
        """Return the limits that apply to ``tier``."""
        return UsageQuota.for_tier(tier, self._policy)

    def check(
        self,
        action_kind: Union[LimitType, str],
        tier: SubscriptionTier,
        usage: int,
        *,
        now: datetime | None = None,
    ) -> LimitDecision:
        """
        Decide whether an action of ``action_kind`` may proceed.

        Args:
            action_kind: The metered action (``LimitType`` or its string value).
            tier: The caller's current subscription tier.
            usage: The caller's current usage for that action kind.
            now: Reference instant for the weekly reset (defaults to current UTC time).

        Returns:
            A ``LimitDecision``. Blocked decisions always carry a reason.
        """
        limit_type = _coerce_kind(action_kind)
        usage = max(0, int(usage))

        if limit_type is None:
            if self._policy.fail_closed_unknown_kinds:
                logger.warning(f"Denying unknown action kind {action_kind!r} (fail-closed)")
                return LimitDecision(
                    limit_type=None,
                    allowed=False,
                    reason=QuotaMessages.unknown_action_kind,
                    current_usage=usage,
                )
            logger.debug(f"Allowing unknown action kind {action_kind!r} (fail-open)")
            return LimitDecision(limit_type=None, allowed=True, current_usage=usage)

        limit = self.quota_for(tier).limit_for(limit_type)
        if limit is None:
            return LimitDecision(limit_type=limit_type, allowed=True, current_usage=usage)

        if usage >= limit:
            if limit_type == LimitType.executions_weekly:
                reset_at = next_weekly_reset(now or datetime.now(timezone.utc), week_starts_on=self._policy.week_starts_on)
                return LimitDecision(
                    limit_type=limit_type,
                    allowed=False,
                    reason=QuotaMessages.weekly_limit_reached,
                    reset_at=reset_at,
                    limit=limit,
                    current_usage=usage,
                    message=QuotaMessages.execution_upgrade(limit),
                )
            return LimitDecision(
                limit_type=limit_type,
                allowed=False,
                reason=QuotaMessages.memory_limit_reached,
                limit=limit,
                current_usage=usage,
                message=QuotaMessages.memory_upgrade(limit),
            )

        remaining = limit - usage
        threshold = (
            self._policy.approaching_executions_threshold
            if limit_type == LimitType.executions_weekly
            else self._policy.approaching_memory_threshold
        )
        message = QuotaMessages.approaching(remaining, limit_type) if remaining <= threshold else None
        return LimitDecision(
            limit_type=limit_type,
            allowed=True,
            limit=limit,
            current_usage=usage,
            message=message,
        )
