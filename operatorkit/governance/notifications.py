"""Notification channel for presentation-layer observers.

The governance core returns plain values from its operations. Observers that
need to refresh when state changes (a dashboard listing sessions, a badge
showing remaining quota) subscribe to a ``NotificationChannel`` instead of
binding to mutable core state.

Handlers may be plain callables or coroutines. A handler that raises is
logged and skipped; it never affects the operation that published the
notification or the other handlers.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Union

from pydantic import Field

from .schemas.base import FrozenSchema
from .schemas.domain import Decision, SessionState

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    proposal_created = "proposal_created"
    session_routed = "session_routed"
    decision_recorded = "decision_recorded"
    quota_blocked = "quota_blocked"


class GovernanceNotification(FrozenSchema):
    kind: NotificationKind
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    proposal_id: Optional[str] = None
    session_id: Optional[str] = None
    state: Optional[SessionState] = None
    decision: Optional[Decision] = None
    detail: Dict[str, Any] = Field(default_factory=dict)


Handler = Union[Callable[[GovernanceNotification], None], Callable[[GovernanceNotification], Awaitable[None]]]


@dataclass(eq=False)
class _Subscription:
    handler: Handler
    kinds: Optional[FrozenSet[NotificationKind]]

    def wants(self, kind: NotificationKind) -> bool:
        return self.kinds is None or kind in self.kinds


class NotificationChannel:
    """In-process observer list with async publish."""

    def __init__(self) -> None:
        self._subs: List[_Subscription] = []

    def subscribe(self, handler: Handler, *, kinds: Optional[List[NotificationKind]] = None) -> Callable[[], None]:
        """
        Register ``handler`` for all notifications, or only for ``kinds``.

        Returns:
            A function that removes the subscription. Calling it twice is harmless.
        """
        sub = _Subscription(handler=handler, kinds=frozenset(kinds) if kinds else None)
        self._subs.append(sub)
        logger.debug(f"Notification handler subscribed (kinds={sorted(k.value for k in sub.kinds) if sub.kinds else 'all'})")

        def unsubscribe() -> None:
            if sub in self._subs:
                self._subs.remove(sub)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    async def publish(self, notification: GovernanceNotification) -> int:
        """
        Deliver ``notification`` to every interested handler.

        Returns:
            The number of handlers that completed without raising.
        """
        delivered = 0
        for sub in list(self._subs):
            if not sub.wants(notification.kind):
                continue
            try:
                result = sub.handler(notification)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.warning(f"Notification handler failed for '{notification.kind.value}': {e}")
        return delivered
