from __future__ import annotations

import hashlib
from typing import Dict, List, Optional, Tuple

from ..schemas.domain import (
    AccessLevel,
    BlastRadius,
    CitationSourceType,
    EvidenceCitation,
    ExecutionStep,
    PermissionDomain,
    PermissionScope,
    ProposalPack,
    ProposalSource,
    RiskTier,
)
from .base import (
    AnalysisItem,
    KeywordRule,
    KeywordSkill,
    Signal,
    SignalCategory,
    SkillAnalysis,
    SkillInputType,
    SkillObservation,
)
from .risk import (
    approval_requirement_for,
    blast_radius_for,
    build_risk_analysis,
    max_tier,
    risk_ge,
    signer_quorum,
)


def _reference(prefix: str, excerpt: str) -> str:
    return f"{prefix}_{hashlib.sha256(excerpt.encode('utf-8')).hexdigest()[:8]}"


def _citations(
    items: Tuple[AnalysisItem, ...], *, source_type: CitationSourceType, prefix: str
) -> Tuple[EvidenceCitation, ...]:
    return tuple(
        EvidenceCitation(
            source_type=source_type,
            reference=_reference(prefix, item.evidence_excerpt),
            redacted_summary=item.evidence_excerpt[:120],
        )
        for item in items
        if item.evidence_excerpt
    )


# ---------------------------------------------------------------------------
# Inbox triage
# ---------------------------------------------------------------------------


class InboxTriageSkill(KeywordSkill):
    """
    Prepare decisions from an inbound email thread.

    Flags pricing, contract, escalation, refund, vendor, timeline and legal
    content and proposes draft-only follow-ups. Anything without a signal is
    treated as informational and low risk.
    """

    skill_id = "inbox_triage"
    display_name = "Inbox Triage"
    input_type = SkillInputType.email_thread
    allowed_scopes = (PermissionDomain.mail, PermissionDomain.files)
    prompt_subject = "an email thread"

    rules = (
        KeywordRule(
            "Pricing change detected",
            SignalCategory.pricing,
            0.85,
            ("price increase", "pricing change", "rate increase", "cost increase",
             "new pricing", "revised pricing", "price adjustment", "fee increase"),
        ),
        KeywordRule(
            "Contract reference",
            SignalCategory.contract,
            0.80,
            ("contract", "agreement", "terms and conditions", "renewal",
             "termination clause", "amendment", "NDA", "MSA"),
        ),
        KeywordRule(
            "Escalation detected",
            SignalCategory.escalation,
            0.90,
            ("urgent", "escalate", "immediate attention", "critical",
             "ASAP", "deadline missed", "overdue", "blocking"),
        ),
        KeywordRule(
            "Refund/credit request",
            SignalCategory.refund,
            0.88,
            ("refund", "credit", "chargeback", "reimbursement", "money back"),
        ),
        KeywordRule(
            "Vendor interaction",
            SignalCategory.financial,
            0.75,
            ("vendor", "supplier", "procurement", "purchase order", "invoice"),
        ),
        KeywordRule(
            "Timeline risk",
            SignalCategory.timeline,
            0.82,
            ("deadline", "due date", "by end of", "before EOD", "time-sensitive", "expires", "expiring"),
        ),
        KeywordRule(
            "Legal implication",
            SignalCategory.legal,
            0.85,
            ("legal", "liability", "compliance", "regulation", "penalty", "attorney", "lawsuit", "indemnity"),
        ),
    )
    fallback = Signal(label="Informational message", category=SignalCategory.informational, confidence=0.60)

    _RISK: Dict[SignalCategory, RiskTier] = {
        SignalCategory.pricing: RiskTier.high,
        SignalCategory.financial: RiskTier.high,
        SignalCategory.contract: RiskTier.high,
        SignalCategory.legal: RiskTier.high,
        SignalCategory.risk: RiskTier.high,
        SignalCategory.escalation: RiskTier.medium,
        SignalCategory.refund: RiskTier.medium,
        SignalCategory.timeline: RiskTier.medium,
        SignalCategory.deadline: RiskTier.medium,
        SignalCategory.approval: RiskTier.medium,
    }

    _ACTION: Dict[SignalCategory, str] = {
        SignalCategory.pricing: "Draft counter-proposal",
        SignalCategory.contract: "Flag for legal review",
        SignalCategory.escalation: "Route to appropriate owner",
        SignalCategory.refund: "Draft refund response",
        SignalCategory.timeline: "Flag deadline risk",
        SignalCategory.financial: "Route to finance",
        SignalCategory.legal: "Route to legal",
        SignalCategory.commitment: "Record commitment",
        SignalCategory.owner: "Assign owner",
        SignalCategory.deadline: "Flag deadline",
        SignalCategory.risk: "Escalate risk",
        SignalCategory.follow_up: "Schedule follow-up",
        SignalCategory.approval: "Route for approval",
        SignalCategory.informational: "No action required",
    }

    async def analyze(self, observation: SkillObservation) -> SkillAnalysis:
        items: List[AnalysisItem] = []
        for signal in observation.signals:
            tier = self._RISK.get(signal.category, RiskTier.low)
            items.append(
                AnalysisItem(
                    title=signal.label,
                    detail=signal.excerpt or "Signal detected in message content",
                    risk_tier=tier,
                    action_required=tier != RiskTier.low,
                    suggested_action=self._ACTION.get(signal.category),
                    evidence_excerpt=signal.excerpt,
                )
            )
        overall = max_tier(i.risk_tier for i in items)

        action_count = sum(1 for i in items if i.action_required)
        key_risks = list(dict.fromkeys(i.title for i in items if risk_ge(i.risk_tier, RiskTier.medium)))
        summary = f"Inbox triage: {len(items)} signals detected, {action_count} require action."
        if key_risks:
            summary += f" Key risks: {', '.join(key_risks)}."
        summary += f" Overall risk: {overall.value}."

        return SkillAnalysis(skill_id=self.skill_id, risk_tier=overall, items=tuple(items), summary=summary)

    async def generate_proposal(self, analysis: SkillAnalysis) -> ProposalPack:
        steps = tuple(
            ExecutionStep(
                order=idx,
                action=item.suggested_action or "Review and respond",
                description=f"{item.title}: {item.detail[:100]}",
                is_mutation=item.action_required,
                rollback_action=None if item.risk_tier == RiskTier.low else "Recall draft",
            )
            for idx, item in enumerate(analysis.items, start=1)
        )

        scopes = [PermissionScope(domain=PermissionDomain.mail, access=AccessLevel.read, detail="read_inbox")]
        if any(i.action_required for i in analysis.items):
            scopes.append(PermissionScope(domain=PermissionDomain.mail, access=AccessLevel.compose, detail="draft_reply"))

        blast = BlastRadius.single_recipient if risk_ge(analysis.risk_tier, RiskTier.high) else BlastRadius.self_only
        return ProposalPack(
            skill_id=self.skill_id,
            source=ProposalSource.user,
            human_summary=analysis.summary,
            execution_steps=steps,
            risk_analysis=build_risk_analysis(
                analysis.risk_tier, blast_radius=blast, reasons=(i.title for i in analysis.items)
            ),
            required_approvals=approval_requirement_for(analysis.risk_tier, signer_count=analysis.signer_count),
            permission_scopes=tuple(scopes),
            evidence_citations=_citations(analysis.items, source_type=CitationSourceType.email, prefix="inbox_signal"),
        )


# ---------------------------------------------------------------------------
# Meeting actions
# ---------------------------------------------------------------------------


_OWNER_KEYWORDS = ("assigned to", "owner:", "responsible:")
_DEADLINE_HINTS = ("by friday", "by monday", "by eod", "by end of week", "by tomorrow", "next week", "by end of month")


def owner_hint(excerpt: Optional[str]) -> Optional[str]:
    """Best-effort owner name: up to two words following an ownership keyword."""
    if not excerpt:
        return None
    lower = excerpt.lower()
    for kw in _OWNER_KEYWORDS:
        idx = lower.find(kw)
        if idx < 0:
            continue
        words = excerpt[idx + len(kw):].split()[:2]
        if words:
            return " ".join(w.capitalize() for w in words)
    return None


def deadline_hint(excerpt: Optional[str]) -> Optional[str]:
    if not excerpt:
        return None
    lower = excerpt.lower()
    for kw in _DEADLINE_HINTS:
        if kw in lower:
            return kw.title()
    return None


class MeetingActionSkill(KeywordSkill):
    """Extract commitments, owners, deadlines, risks and follow-ups from a transcript."""

    skill_id = "meeting_actions"
    display_name = "Meeting Actions"
    input_type = SkillInputType.meeting_transcript
    allowed_scopes = (PermissionDomain.calendar, PermissionDomain.reminders)
    prompt_subject = "a meeting transcript"
    context_radius = 50

    rules = (
        KeywordRule(
            "Commitment detected",
            SignalCategory.commitment,
            0.82,
            ("i will", "i'll", "we will", "we'll", "i'm going to", "will take care of", "i can handle",
             "i'll own", "action item", "let me", "i'll follow up", "i'll send", "i'll schedule",
             "i'll draft", "i'll prepare", "i'll review"),
        ),
        KeywordRule(
            "Owner assignment",
            SignalCategory.owner,
            0.85,
            ("assigned to", "owner:", "responsible:", "lead:", "you'll handle", "can you take", "please own"),
        ),
        KeywordRule(
            "Deadline mentioned",
            SignalCategory.deadline,
            0.88,
            ("by friday", "by monday", "by end of week", "by EOD", "due date", "deadline", "before next",
             "by tomorrow", "within 24 hours", "by end of month", "next week", "by Q1", "by Q2", "by Q3", "by Q4"),
        ),
        KeywordRule(
            "Risk/blocker identified",
            SignalCategory.risk,
            0.78,
            ("risk", "blocker", "blocked", "concern", "issue", "problem", "delay", "dependency",
             "bottleneck", "single point of failure", "at risk"),
        ),
        KeywordRule(
            "Follow-up required",
            SignalCategory.follow_up,
            0.80,
            ("follow up", "followup", "follow-up", "circle back", "revisit", "check in", "touch base",
             "reconnect", "let's discuss", "schedule a call", "next meeting"),
        ),
        KeywordRule(
            "Unresolved item",
            SignalCategory.risk,
            0.75,
            ("TBD", "to be determined", "open question", "need to decide", "parking lot",
             "offline discussion", "unresolved"),
        ),
        KeywordRule(
            "Financial exposure",
            SignalCategory.financial,
            0.80,
            ("budget", "cost", "spend", "investment", "revenue impact", "ROI", "margin", "P&L"),
        ),
    )
    fallback = Signal(label="No actionable items detected", category=SignalCategory.informational, confidence=0.50)

    _RISK: Dict[SignalCategory, RiskTier] = {
        SignalCategory.financial: RiskTier.high,
        SignalCategory.legal: RiskTier.high,
        SignalCategory.risk: RiskTier.medium,
        SignalCategory.deadline: RiskTier.medium,
        SignalCategory.escalation: RiskTier.medium,
    }

    _ACTION: Dict[SignalCategory, str] = {
        SignalCategory.commitment: "Record commitment and assign owner",
        SignalCategory.owner: "Confirm owner assignment",
        SignalCategory.deadline: "Schedule deadline reminder",
        SignalCategory.risk: "Escalate risk for review",
        SignalCategory.follow_up: "Schedule follow-up meeting",
        SignalCategory.financial: "Route to finance for review",
        SignalCategory.legal: "Route to legal for review",
        SignalCategory.escalation: "Flag for immediate attention",
    }

    async def analyze(self, observation: SkillObservation) -> SkillAnalysis:
        items = tuple(
            AnalysisItem(
                title=signal.label,
                detail=signal.excerpt or "Detected in meeting transcript",
                risk_tier=self._RISK.get(signal.category, RiskTier.low),
                action_required=signal.category != SignalCategory.informational,
                suggested_action=self._ACTION.get(signal.category, "Review item"),
                owner=owner_hint(signal.excerpt),
                deadline=deadline_hint(signal.excerpt),
                evidence_excerpt=signal.excerpt,
            )
            for signal in observation.signals
        )
        overall = max_tier(i.risk_tier for i in items)
        action_count = sum(1 for i in items if i.action_required)
        summary = f"Meeting extract: {len(items)} items, {action_count} actionable. " + (
            f"Contains {overall.value} risk items." if risk_ge(overall, RiskTier.medium) else "No elevated risks."
        )
        return SkillAnalysis(skill_id=self.skill_id, risk_tier=overall, items=items, summary=summary)

    async def generate_proposal(self, analysis: SkillAnalysis) -> ProposalPack:
        actionable = [i for i in analysis.items if i.action_required]
        steps = []
        for idx, item in enumerate(actionable, start=1):
            action = item.suggested_action or "Review action item"
            description = item.title
            if item.owner:
                description += f" [Owner: {item.owner}]"
            if item.deadline:
                description += f" [Due: {item.deadline}]"
            steps.append(
                ExecutionStep(
                    order=idx,
                    action=action,
                    description=description,
                    is_mutation="Schedule" in action or "Create" in action,
                    rollback_action="Cancel created item",
                )
            )

        scopes = []
        if any("Schedule" in (i.suggested_action or "") for i in analysis.items):
            scopes.append(PermissionScope(domain=PermissionDomain.calendar, access=AccessLevel.write, detail="event_create"))
        scopes.append(PermissionScope(domain=PermissionDomain.calendar, access=AccessLevel.read, detail="context_check"))

        return ProposalPack(
            skill_id=self.skill_id,
            source=ProposalSource.user,
            human_summary=analysis.summary,
            execution_steps=tuple(steps),
            risk_analysis=build_risk_analysis(
                analysis.risk_tier, blast_radius=BlastRadius.self_only, reasons=(i.title for i in analysis.items)
            ),
            required_approvals=approval_requirement_for(analysis.risk_tier, signer_count=analysis.signer_count),
            permission_scopes=tuple(scopes),
            evidence_citations=_citations(
                analysis.items, source_type=CitationSourceType.document, prefix="meeting_transcript"
            ),
        )


# ---------------------------------------------------------------------------
# Approval router
# ---------------------------------------------------------------------------


class ApprovalRouterSkill(KeywordSkill):
    """
    Prepare an approval packet for an upstream proposal.

    Reads the upstream proposal (usually its JSON) and decides which
    approver roles and how many signers are required. Routing is not a
    mutation: every step of the resulting proposal is advisory.
    """

    skill_id = "approval_router"
    display_name = "Approval Router"
    input_type = SkillInputType.proposal_pack
    allowed_scopes = (PermissionDomain.mail, PermissionDomain.calendar, PermissionDomain.reminders, PermissionDomain.files)
    prompt_subject = "an upstream proposal"

    rules = (
        KeywordRule("Proposal contains risk assessment", SignalCategory.approval, 0.95, ('"critical"', "risk_score")),
        KeywordRule(
            "Financial approval needed",
            SignalCategory.financial,
            0.85,
            ("pricing", "cost", "budget", "revenue", "spend", "investment", "refund", "credit",
             "chargeback", "vendor", "invoice"),
        ),
        KeywordRule(
            "Legal review needed",
            SignalCategory.legal,
            0.85,
            ("contract", "legal", "liability", "compliance", "regulation", "NDA", "agreement", "terms"),
        ),
        KeywordRule(
            "High blast radius, multi-signer required",
            SignalCategory.escalation,
            0.90,
            ("multi_recipient", "organizational"),
        ),
        KeywordRule(
            "Irreversible action, elevated approval needed",
            SignalCategory.risk,
            0.92,
            ("irreversible",),
        ),
    )
    fallback = Signal(label="Standard approval routing", category=SignalCategory.approval, confidence=0.70)

    _RISK: Dict[SignalCategory, RiskTier] = {
        SignalCategory.financial: RiskTier.high,
        SignalCategory.legal: RiskTier.high,
        SignalCategory.escalation: RiskTier.critical,
        SignalCategory.risk: RiskTier.critical,
        SignalCategory.approval: RiskTier.medium,
    }

    @staticmethod
    def _route(signal: Signal) -> Tuple[AnalysisItem, int, Optional[str]]:
        """Return the analysis item, minimum signer count and extra approver role for a signal."""
        if signal.category == SignalCategory.financial:
            item = AnalysisItem(
                title="Finance approval required",
                detail="Proposal has financial implications. Finance sign-off needed before execution.",
                risk_tier=RiskTier.high,
                action_required=True,
                suggested_action="Route to finance approver",
            )
            return item, 2, "Finance"
        if signal.category == SignalCategory.legal:
            item = AnalysisItem(
                title="Legal review required",
                detail="Proposal has legal implications. Legal counsel review needed.",
                risk_tier=RiskTier.high,
                action_required=True,
                suggested_action="Route to legal approver",
            )
            return item, 2, "Legal"
        if signal.category == SignalCategory.escalation:
            item = AnalysisItem(
                title="Multi-signer quorum required",
                detail="High blast radius detected. Multiple signers needed for authorization.",
                risk_tier=RiskTier.critical,
                action_required=True,
                suggested_action="Escalate to quorum approval",
            )
            return item, 3, "Organization Authority"
        if signal.category == SignalCategory.risk:
            item = AnalysisItem(
                title="Irreversible action, elevated approval",
                detail="Action cannot be undone. Elevated approval chain required.",
                risk_tier=RiskTier.critical,
                action_required=True,
                suggested_action="Require biometric + secondary approval",
            )
            return item, 2, None
        item = AnalysisItem(
            title=signal.label,
            detail="Standard approval routing applies.",
            risk_tier=RiskTier.low,
            action_required=True,
            suggested_action="Route to device operator for approval",
        )
        return item, 1, None

    async def analyze(self, observation: SkillObservation) -> SkillAnalysis:
        items: List[AnalysisItem] = []
        signers = 1
        roles = ["Device Operator"]
        for signal in observation.signals:
            item, needed, role = self._route(signal)
            items.append(item)
            signers = max(signers, needed)
            if role and role not in roles:
                roles.append(role)

        overall = max_tier(self._RISK.get(s.category, RiskTier.low) for s in observation.signals)
        signers = max(signers, signer_quorum(overall))
        summary = (
            f"Approval routing: {len(roles)} approver(s) required [{', '.join(roles)}]. "
            f"Risk: {overall.value}. Signers: {signers}."
        )
        return SkillAnalysis(
            skill_id=self.skill_id,
            risk_tier=overall,
            items=tuple(items),
            summary=summary,
            signer_count=signers,
            approver_roles=tuple(roles),
        )

    async def generate_proposal(self, analysis: SkillAnalysis) -> ProposalPack:
        steps = tuple(
            ExecutionStep(
                order=idx,
                action=item.suggested_action or "Route for approval",
                description=f"{item.title}: {item.detail[:100]}",
                is_mutation=False,
            )
            for idx, item in enumerate(analysis.items, start=1)
        )
        return ProposalPack(
            skill_id=self.skill_id,
            source=ProposalSource.user,
            human_summary=analysis.summary,
            execution_steps=steps,
            risk_analysis=build_risk_analysis(
                analysis.risk_tier,
                blast_radius=blast_radius_for(analysis.risk_tier),
                reasons=(i.title for i in analysis.items),
            ),
            required_approvals=approval_requirement_for(analysis.risk_tier, signer_count=analysis.signer_count),
        )
