from __future__ import annotations

import json
from typing import List

import pytest

from operatorkit.governance.entitlements import (
    LimitType,
    StaticEntitlementProvider,
    SubscriptionTier,
    UsageCounters,
)
from operatorkit.governance.errors import (
    GovernanceError,
    InputError,
    QuotaExceededError,
    SessionNotFoundError,
    SessionStateError,
)
from operatorkit.governance.notifications import GovernanceNotification, NotificationKind
from operatorkit.governance.schemas.domain import Decision, RiskTier, SessionState
from operatorkit.governance.service import GovernanceService, ServiceResult


class TestServiceResult:
    def test_success_and_failure(self) -> None:
        ok = ServiceResult.success(3)
        bad: ServiceResult[int] = ServiceResult.failure(InputError("empty input"))

        assert ok.ok and ok.value == 3 and ok.message is None and ok.unwrap() == 3
        assert not bad.ok and bad.value is None and bad.message == "empty input"
        with pytest.raises(InputError):
            bad.unwrap()


class TestQuota:
    @pytest.mark.asyncio
    async def test_check_quota_uses_entitlement_provider(
        self, service: GovernanceService, entitlements: StaticEntitlementProvider
    ) -> None:
        entitlements.set_usage(UsageCounters(executions_this_week=25))
        result = await service.check_quota()

        assert result.ok
        assert result.value.allowed is False
        assert result.value.reason == "Weekly limit reached"
        assert result.value.reset_at is not None

    @pytest.mark.asyncio
    async def test_check_quota_explicit_values(self, service: GovernanceService, fixed_now) -> None:
        result = await service.check_quota(
            LimitType.memory_items, tier=SubscriptionTier.free, usage=3, now=fixed_now
        )
        assert result.value.allowed is True
        assert result.value.remaining == 7

    @pytest.mark.asyncio
    async def test_unknown_kind_fails_open(self, service: GovernanceService) -> None:
        result = await service.check_quota("team_seats")
        assert result.ok and result.value.allowed is True

    @pytest.mark.asyncio
    async def test_run_skill_blocked_by_quota(
        self, service: GovernanceService, entitlements: StaticEntitlementProvider, repos
    ) -> None:
        seen: List[GovernanceNotification] = []
        service.subscribe(seen.append, kinds=[NotificationKind.quota_blocked])
        entitlements.set_usage(UsageCounters(executions_this_week=25))

        result = await service.run_skill("inbox_triage", "price increase next month")

        assert not result.ok
        assert isinstance(result.error, QuotaExceededError)
        assert result.message == "Weekly limit reached"
        assert result.error.decision.limit == 25
        assert await repos.proposals.list() == []
        assert [n.kind for n in seen] == [NotificationKind.quota_blocked]

    @pytest.mark.asyncio
    async def test_paid_tier_is_never_blocked(
        self, service: GovernanceService, entitlements: StaticEntitlementProvider
    ) -> None:
        entitlements.set_tier(SubscriptionTier.pro)
        entitlements.set_usage(UsageCounters(executions_this_week=10_000))

        result = await service.run_skill("inbox_triage", "price increase next month")
        assert result.ok

    @pytest.mark.asyncio
    async def test_quota_can_be_skipped(
        self, service: GovernanceService, entitlements: StaticEntitlementProvider
    ) -> None:
        entitlements.set_usage(UsageCounters(executions_this_week=25))
        result = await service.run_skill("inbox_triage", "hello", enforce_quota=False)
        assert result.ok


class TestSkills:
    @pytest.mark.asyncio
    async def test_run_skill_returns_stored_proposal(self, service: GovernanceService) -> None:
        result = await service.run_skill("inbox_triage", "Please reply declining the meeting")

        assert result.ok
        proposal = result.value
        assert proposal.risk_tier == RiskTier.low
        assert proposal.required_approvals.requires_biometric is False
        assert (await service.get_proposal(proposal.id)).value == proposal

    @pytest.mark.asyncio
    async def test_run_skill_failures_are_results(self, service: GovernanceService) -> None:
        empty = await service.run_skill("inbox_triage", "   ")
        unknown = await service.run_skill("web_research", "hi")

        assert isinstance(empty.error, InputError) and empty.message == "empty input"
        assert isinstance(unknown.error, InputError)

    @pytest.mark.asyncio
    async def test_unexpected_errors_become_governance_errors(
        self, service: GovernanceService, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def _boom(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(service.deps.runner, "run", _boom)
        result = await service.run_skill("inbox_triage", "hello")

        assert type(result.error) is GovernanceError
        assert result.message == "run_skill failed: boom"


class TestApprovalFlow:
    @pytest.mark.asyncio
    async def test_full_flow_with_notifications(self, service: GovernanceService) -> None:
        seen: List[GovernanceNotification] = []

        async def _collect(n: GovernanceNotification) -> None:
            seen.append(n)

        unsubscribe = service.subscribe(_collect)

        proposal = (await service.run_skill("inbox_triage", "The vendor contract renewal is attached")).unwrap()
        session = (await service.route_for_approval(proposal.id)).unwrap()
        assert session.state == SessionState.under_review

        decided = (await service.record_decision(session.id, "approve", decided_by="operator")).unwrap()
        assert decided.state == SessionState.approved

        assert [n.kind for n in seen] == [
            NotificationKind.proposal_created,
            NotificationKind.session_routed,
            NotificationKind.decision_recorded,
        ]
        assert seen[-1].decision == Decision.approve
        assert seen[1].state == SessionState.under_review

        unsubscribe()
        await service.run_skill("inbox_triage", "hello")
        assert len(seen) == 3

    @pytest.mark.asyncio
    async def test_second_decision_fails_without_state_change(self, service: GovernanceService) -> None:
        proposal = (await service.run_skill("meeting_actions", "I'll send the notes by Friday")).unwrap()
        session = (await service.route_for_approval(proposal)).unwrap()

        assert (await service.record_decision(session.id, Decision.reject)).ok
        second = await service.record_decision(session.id, Decision.approve)

        assert isinstance(second.error, SessionStateError)
        assert "already decided" in (second.message or "")
        assert (await service.get_session(session.id)).value.state == SessionState.rejected

    @pytest.mark.asyncio
    async def test_bad_inputs(self, service: GovernanceService) -> None:
        assert isinstance((await service.route_for_approval("nope")).error, InputError)
        assert isinstance((await service.get_session("nope")).error, SessionNotFoundError)

        proposal = (await service.run_skill("inbox_triage", "hello")).unwrap()
        session = (await service.route_for_approval(proposal)).unwrap()
        bad = await service.record_decision(session.id, "maybe")
        assert isinstance(bad.error, InputError)
        assert bad.message == "unknown decision 'maybe'"

    @pytest.mark.asyncio
    async def test_list_sessions_by_state(self, service: GovernanceService) -> None:
        for text in ("hello", "price increase"):
            proposal = (await service.run_skill("inbox_triage", text)).unwrap()
            await service.route_for_approval(proposal)

        under_review = (await service.list_sessions(SessionState.under_review)).unwrap()
        assert len(under_review) == 2
        assert (await service.list_sessions(SessionState.approved)).unwrap() == []


class TestEvidenceExport:
    @pytest.mark.asyncio
    async def test_export_and_chain_hash(self, service: GovernanceService) -> None:
        proposal = (await service.run_skill("approval_router", '{"risk_tier": "critical"}')).unwrap()
        session = (await service.route_for_approval(proposal)).unwrap()
        await service.record_decision(session.id, Decision.escalate, notes="needs finance")

        exported = json.loads((await service.export_evidence(session.id, indent=2)).unwrap())
        assert [r["type"] for r in exported] == ["session.routed", "session.presented", "decision.recorded"]
        assert [r["sequence"] for r in exported] == sorted(r["sequence"] for r in exported)
        assert exported[-1]["state"] == "escalated"
        assert exported[-1]["risk_tier"] == "medium"

        digest = (await service.evidence_chain_hash(session.id)).unwrap()
        assert len(digest) == 64
        events = (await service.list_evidence(session.id)).unwrap()
        assert len(events) == 3
