from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from pydantic import Field

from .base import BaseSchema, FrozenSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class RiskTier(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class ReversibilityClass(str, Enum):
    reversible = "reversible"
    partially_reversible = "partially_reversible"
    irreversible = "irreversible"


class BlastRadius(str, Enum):
    self_only = "self_only"
    single_recipient = "single_recipient"
    multi_recipient = "multi_recipient"
    organizational = "organizational"


class ProposalSource(str, Enum):
    user = "user"
    siri = "siri"
    operator_channel = "operator_channel"
    draft_autonomy = "draft_autonomy"


class PermissionDomain(str, Enum):
    calendar = "calendar"
    mail = "mail"
    reminders = "reminders"
    files = "files"
    network = "network"
    memory = "memory"


class AccessLevel(str, Enum):
    read = "read"
    write = "write"
    compose = "compose"
    delete = "delete"


class CitationSourceType(str, Enum):
    email = "email"
    calendar_event = "calendar_event"
    document = "document"
    reminder = "reminder"
    memory_item = "memory_item"
    user_input = "user_input"


class Decision(str, Enum):
    approve = "approve"
    approve_partial = "approve_partial"
    request_revision = "request_revision"
    escalate = "escalate"
    reject = "reject"

    @property
    def is_terminal(self) -> bool:
        return self in (Decision.approve, Decision.approve_partial, Decision.reject)

    @property
    def allows_execution(self) -> bool:
        return self in (Decision.approve, Decision.approve_partial)


class SessionState(str, Enum):
    pending = "pending"
    under_review = "under_review"
    approved = "approved"
    approved_partial = "approved_partial"
    rejected = "rejected"
    revision_requested = "revision_requested"
    escalated = "escalated"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.approved, SessionState.approved_partial, SessionState.rejected)

    @property
    def is_closed(self) -> bool:
        """True once the session no longer accepts decisions."""
        return self not in (SessionState.pending, SessionState.under_review)


DECISION_TARGET_STATE: Dict[Decision, SessionState] = {
    Decision.approve: SessionState.approved,
    Decision.approve_partial: SessionState.approved_partial,
    Decision.reject: SessionState.rejected,
    Decision.request_revision: SessionState.revision_requested,
    Decision.escalate: SessionState.escalated,
}


class EvidenceEventType(str, Enum):
    session_routed = "session.routed"
    session_presented = "session.presented"
    decision_recorded = "decision.recorded"


# ---------------------------------------------------------------------------
# Proposal pack
# ---------------------------------------------------------------------------


class PermissionScope(FrozenSchema):
    domain: PermissionDomain
    access: AccessLevel
    detail: str


class ExecutionStep(FrozenSchema):
    order: int = Field(ge=1)
    action: str
    description: str
    is_mutation: bool = False
    rollback_action: Optional[str] = None


class RiskAnalysis(FrozenSchema):
    risk_score: int = Field(ge=0, le=100)
    consequence_tier: RiskTier
    reversibility_class: ReversibilityClass
    blast_radius: BlastRadius = BlastRadius.self_only
    reasons: Tuple[str, ...] = ()


class ApprovalRequirement(FrozenSchema):
    signer_count: int = Field(default=1, ge=0)
    requires_biometric: bool = False
    requires_preview: bool = True
    cooldown_seconds: int = Field(default=0, ge=0)


class EvidenceCitation(FrozenSchema):
    source_type: CitationSourceType
    reference: str
    redacted_summary: str


class ProposalPack(FrozenSchema):
    """Advisory description of a candidate set of actions.

    A proposal is frozen once built: it describes actions and never executes
    them.
    """

    id: str = Field(default_factory=_new_id)
    created_at: datetime = Field(default_factory=_utc_now)
    skill_id: str
    source: ProposalSource = ProposalSource.user

    human_summary: str
    execution_steps: Tuple[ExecutionStep, ...] = ()
    risk_analysis: RiskAnalysis
    required_approvals: ApprovalRequirement = Field(default_factory=ApprovalRequirement)

    permission_scopes: Tuple[PermissionScope, ...] = ()
    evidence_citations: Tuple[EvidenceCitation, ...] = ()

    @property
    def risk_tier(self) -> RiskTier:
        return self.risk_analysis.consequence_tier


# ---------------------------------------------------------------------------
# Approval session
# ---------------------------------------------------------------------------


class ApprovalSession(BaseSchema):
    id: str = Field(default_factory=_new_id)
    created_at: datetime = Field(default_factory=_utc_now)
    proposal_id: str
    skill_id: str

    risk_tier: RiskTier
    risk_score: int
    reversibility_class: ReversibilityClass
    human_summary: str
    step_count: int = 0

    state: SessionState = SessionState.pending
    decision: Optional[Decision] = None
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
    partial_approval_steps: Optional[list[int]] = None
    revision_notes: Optional[str] = None

    supersedes_session_id: Optional[str] = None

    @classmethod
    def for_proposal(cls, proposal: ProposalPack, *, supersedes_session_id: str | None = None) -> "ApprovalSession":
        """Open a session holding a snapshot of the proposal's review context."""
        return cls(
            proposal_id=proposal.id,
            skill_id=proposal.skill_id,
            risk_tier=proposal.risk_analysis.consequence_tier,
            risk_score=proposal.risk_analysis.risk_score,
            reversibility_class=proposal.risk_analysis.reversibility_class,
            human_summary=proposal.human_summary,
            step_count=len(proposal.execution_steps),
            supersedes_session_id=supersedes_session_id,
        )

    @property
    def is_approved(self) -> bool:
        return self.decision is not None and self.decision.allows_execution


# ---------------------------------------------------------------------------
# Evidence
# ---------------------------------------------------------------------------


class EvidenceEvent(FrozenSchema):
    """One append-only audit record.

    ``sequence`` is assigned by the evidence store on append; records built by
    callers carry ``None`` until persisted.
    """

    id: str = Field(default_factory=_new_id)
    sequence: Optional[int] = None
    type: EvidenceEventType

    session_id: str
    proposal_id: str
    skill_id: str
    risk_tier: RiskTier
    decision: Optional[Decision] = None
    state: SessionState

    created_at: datetime = Field(default_factory=_utc_now)
    idempotency_key: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    def export_record(self) -> Dict[str, Any]:
        """Flat, JSON-ready view used by audit exports."""
        return {
            "sequence": self.sequence,
            "id": self.id,
            "type": self.type.value,
            "session_id": self.session_id,
            "proposal_id": self.proposal_id,
            "skill_id": self.skill_id,
            "risk_tier": self.risk_tier.value,
            "decision": self.decision.value if self.decision is not None else None,
            "state": self.state.value,
            "created_at": self.created_at.isoformat(),
        }
