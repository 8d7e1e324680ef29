from __future__ import annotations

import pytest

from operatorkit.governance.schemas.domain import AccessLevel, BlastRadius, PermissionDomain, RiskTier
from operatorkit.governance.skills import (
    ApprovalRouterSkill,
    InboxTriageSkill,
    MeetingActionSkill,
    Signal,
    SignalCategory,
    SkillInput,
    SkillInputType,
)
from operatorkit.governance.skills.base import dedupe_signals, extract_context, find_phrase
from operatorkit.governance.skills.builtin import deadline_hint, owner_hint


async def _pipeline(skill, text: str, input_type: SkillInputType = SkillInputType.pasted_text):
    observation = await skill.observe(SkillInput(input_type=input_type, text_content=text))
    analysis = await skill.analyze(observation)
    proposal = await skill.generate_proposal(analysis)
    return observation, analysis, proposal


class TestKeywordHelpers:
    def test_find_phrase_respects_word_boundaries(self) -> None:
        assert find_phrase("Our agenda for Monday", "NDA") is None
        assert find_phrase("Please sign the NDA today", "nda") is not None

    def test_find_phrase_accepts_plurals(self) -> None:
        assert find_phrase("two open issues remain", "issue") is not None
        assert find_phrase("new contracts attached", "contract") is not None

    def test_extract_context_radius(self) -> None:
        text = "a" * 100 + "KEY" + "b" * 100
        ctx = extract_context(text, 100, 103, radius=10)
        assert ctx == "a" * 10 + "KEY" + "b" * 10

    def test_dedupe_keeps_first_per_label(self) -> None:
        a = Signal(label="x", category=SignalCategory.risk, excerpt="first")
        b = Signal(label="x", category=SignalCategory.risk, excerpt="second")
        c = Signal(label="y", category=SignalCategory.owner)
        assert dedupe_signals([a, b, c]) == [a, c]


class TestInboxTriage:
    @pytest.mark.asyncio
    async def test_declining_a_meeting_is_low_risk(self) -> None:
        _, analysis, proposal = await _pipeline(
            InboxTriageSkill(), "Please reply declining the meeting", SkillInputType.email_thread
        )

        assert proposal.risk_tier in {RiskTier.low, RiskTier.medium}
        assert proposal.risk_tier == RiskTier.low
        assert proposal.required_approvals.requires_biometric is False
        assert proposal.required_approvals.signer_count == 1
        assert [i.title for i in analysis.items] == ["Informational message"]
        assert proposal.human_summary == "Inbox triage: 1 signals detected, 0 require action. Overall risk: low."
        assert [s.action for s in proposal.execution_steps] == ["No action required"]
        assert proposal.execution_steps[0].is_mutation is False
        assert [(s.domain, s.access) for s in proposal.permission_scopes] == [
            (PermissionDomain.mail, AccessLevel.read)
        ]
        assert proposal.evidence_citations == ()

    @pytest.mark.asyncio
    async def test_pricing_contract_vendor_email_is_high_risk(self) -> None:
        text = (
            "Hi team, the vendor announced a price increase effective next month. "
            "Please review the contract renewal before we reply."
        )
        observation, _, proposal = await _pipeline(InboxTriageSkill(), text, SkillInputType.email_thread)

        labels = [s.label for s in observation.signals]
        assert labels == ["Pricing change detected", "Contract reference", "Vendor interaction"]
        assert proposal.risk_tier == RiskTier.high
        assert proposal.risk_analysis.risk_score == 65
        assert proposal.risk_analysis.blast_radius == BlastRadius.single_recipient
        assert proposal.required_approvals.requires_biometric is True
        assert [s.action for s in proposal.execution_steps] == [
            "Draft counter-proposal",
            "Flag for legal review",
            "Route to finance",
        ]
        assert all(s.is_mutation and s.rollback_action == "Recall draft" for s in proposal.execution_steps)
        assert (PermissionDomain.mail, AccessLevel.compose) in [(s.domain, s.access) for s in proposal.permission_scopes]
        assert len(proposal.evidence_citations) == 3
        assert all(c.reference.startswith("inbox_signal_") for c in proposal.evidence_citations)
        assert proposal.human_summary.endswith(
            "Key risks: Pricing change detected, Contract reference, Vendor interaction. Overall risk: high."
        )

    @pytest.mark.asyncio
    async def test_escalation_keywords_collapse_to_one_medium_signal(self) -> None:
        observation, _, proposal = await _pipeline(InboxTriageSkill(), "This is urgent, please look ASAP")

        assert [s.category for s in observation.signals] == [SignalCategory.escalation]
        assert len(observation.raw_excerpts) == 2
        assert proposal.risk_tier == RiskTier.medium
        assert proposal.required_approvals.requires_biometric is False

    @pytest.mark.asyncio
    async def test_identical_input_gives_identical_classification(self) -> None:
        text = "Legal says the refund request needs compliance review by end of week."
        _, _, p1 = await _pipeline(InboxTriageSkill(), text)
        _, _, p2 = await _pipeline(InboxTriageSkill(), text)

        assert p1.id != p2.id
        assert p1.risk_analysis == p2.risk_analysis
        assert p1.required_approvals == p2.required_approvals
        assert p1.execution_steps == p2.execution_steps
        assert p1.evidence_citations == p2.evidence_citations


class TestMeetingActions:
    TRANSCRIPT = (
        "Alice: I'll send the deck by Friday. "
        "Bob: the budget is a concern for the launch. "
        "Decision: action item assigned to carol smith."
    )

    @pytest.mark.asyncio
    async def test_extracts_commitments_owners_deadlines_and_risks(self) -> None:
        observation, analysis, proposal = await _pipeline(
            MeetingActionSkill(), self.TRANSCRIPT, SkillInputType.meeting_transcript
        )

        categories = [s.category for s in observation.signals]
        assert categories == [
            SignalCategory.commitment,
            SignalCategory.owner,
            SignalCategory.deadline,
            SignalCategory.risk,
            SignalCategory.financial,
        ]
        assert analysis.risk_tier == RiskTier.high
        assert proposal.human_summary == "Meeting extract: 5 items, 5 actionable. Contains high risk items."
        assert len(proposal.execution_steps) == 5
        assert proposal.risk_analysis.blast_radius == BlastRadius.self_only

        owner_item = next(i for i in analysis.items if i.title == "Owner assignment")
        assert owner_item.owner is not None and owner_item.owner.startswith("Carol")

        deadline_step = next(s for s in proposal.execution_steps if s.action == "Schedule deadline reminder")
        assert deadline_step.is_mutation is True
        assert "[Due: By Friday]" in deadline_step.description

        scopes = [(s.domain, s.access, s.detail) for s in proposal.permission_scopes]
        assert (PermissionDomain.calendar, AccessLevel.write, "event_create") in scopes
        assert scopes[-1] == (PermissionDomain.calendar, AccessLevel.read, "context_check")

    @pytest.mark.asyncio
    async def test_no_actionable_items(self) -> None:
        _, analysis, proposal = await _pipeline(MeetingActionSkill(), "Thanks everyone, great session.")

        assert [i.title for i in analysis.items] == ["No actionable items detected"]
        assert proposal.execution_steps == ()
        assert proposal.risk_tier == RiskTier.low
        assert proposal.human_summary == "Meeting extract: 1 items, 0 actionable. No elevated risks."

    def test_owner_and_deadline_hints(self) -> None:
        assert owner_hint("task assigned to dana lee for review") == "Dana Lee"
        assert owner_hint("nobody owns this") is None
        assert owner_hint(None) is None
        assert deadline_hint("ship it by EOD please") == "By Eod"
        assert deadline_hint("sometime") is None


class TestApprovalRouter:
    @pytest.mark.asyncio
    async def test_critical_organizational_proposal_needs_quorum(self) -> None:
        text = '{"risk_tier": "critical", "summary": "Send contract to all staff", "blast_radius": "organizational"}'
        _, analysis, proposal = await _pipeline(ApprovalRouterSkill(), text, SkillInputType.proposal_pack)

        assert analysis.approver_roles == ("Device Operator", "Legal", "Organization Authority")
        assert analysis.signer_count == 3
        assert proposal.risk_tier == RiskTier.critical
        assert proposal.required_approvals.signer_count == 3
        assert proposal.required_approvals.requires_biometric is True
        assert proposal.required_approvals.cooldown_seconds == 30
        assert proposal.risk_analysis.blast_radius == BlastRadius.multi_recipient
        assert proposal.human_summary == (
            "Approval routing: 3 approver(s) required [Device Operator, Legal, Organization Authority]. "
            "Risk: critical. Signers: 3."
        )
        assert not any(s.is_mutation for s in proposal.execution_steps)
        assert proposal.permission_scopes == ()

    @pytest.mark.asyncio
    async def test_standard_routing(self) -> None:
        _, analysis, proposal = await _pipeline(ApprovalRouterSkill(), "Please approve the offsite plan")

        assert analysis.signer_count == 1
        assert proposal.risk_tier == RiskTier.medium
        assert proposal.required_approvals.signer_count == 1
        assert proposal.human_summary == (
            "Approval routing: 1 approver(s) required [Device Operator]. Risk: medium. Signers: 1."
        )

    @pytest.mark.asyncio
    async def test_irreversible_action_uses_critical_quorum(self) -> None:
        _, analysis, proposal = await _pipeline(ApprovalRouterSkill(), "This irreversible deletion of records")

        assert proposal.risk_tier == RiskTier.critical
        assert analysis.signer_count == 3
        assert proposal.execution_steps[0].action == "Require biometric + secondary approval"
