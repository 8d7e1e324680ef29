from __future__ import annotations

import logging
from typing import List

import pytest

from operatorkit.governance.notifications import (
    GovernanceNotification,
    NotificationChannel,
    NotificationKind,
)


@pytest.mark.asyncio
async def test_publish_reaches_sync_and_async_handlers() -> None:
    channel = NotificationChannel()
    sync_seen: List[NotificationKind] = []
    async_seen: List[NotificationKind] = []

    async def _async_handler(n: GovernanceNotification) -> None:
        async_seen.append(n.kind)

    channel.subscribe(lambda n: sync_seen.append(n.kind))
    channel.subscribe(_async_handler)

    delivered = await channel.publish(GovernanceNotification(kind=NotificationKind.proposal_created))

    assert delivered == 2
    assert sync_seen == async_seen == [NotificationKind.proposal_created]


@pytest.mark.asyncio
async def test_kind_filter() -> None:
    channel = NotificationChannel()
    seen: List[NotificationKind] = []
    channel.subscribe(lambda n: seen.append(n.kind), kinds=[NotificationKind.decision_recorded])

    assert await channel.publish(GovernanceNotification(kind=NotificationKind.session_routed)) == 0
    assert await channel.publish(GovernanceNotification(kind=NotificationKind.decision_recorded)) == 1
    assert seen == [NotificationKind.decision_recorded]


@pytest.mark.asyncio
async def test_failing_handler_is_logged_and_skipped(caplog: pytest.LogCaptureFixture) -> None:
    channel = NotificationChannel()
    seen: List[NotificationKind] = []

    def _broken(n: GovernanceNotification) -> None:
        raise RuntimeError("ui went away")

    channel.subscribe(_broken)
    channel.subscribe(lambda n: seen.append(n.kind))

    with caplog.at_level(logging.WARNING, logger="operatorkit.governance.notifications"):
        delivered = await channel.publish(GovernanceNotification(kind=NotificationKind.quota_blocked))

    assert delivered == 1
    assert seen == [NotificationKind.quota_blocked]
    assert "ui went away" in caplog.text


def test_unsubscribe_is_idempotent() -> None:
    channel = NotificationChannel()
    unsubscribe = channel.subscribe(lambda n: None)
    assert channel.subscriber_count == 1

    unsubscribe()
    unsubscribe()
    assert channel.subscriber_count == 0
