"""Governance service facade.

``GovernanceService`` is the API the presentation layer calls. It composes
the quota gate, skill runner, approval session store and evidence ledger,
and converts every failure into a ``ServiceResult`` instead of raising:

- ``check_quota``: tier/usage decision for a metered action.
- ``run_skill``: quota check, then skill execution into a stored proposal.
- ``route_for_approval``: open and present an approval session.
- ``record_decision``: apply a reviewer decision, with evidence.
- ``export_evidence`` / ``evidence_chain_hash``: audit export.

Successful state changes are published on the ``NotificationChannel`` after
they are durable. The service holds no policy of its own; each rule lives in
the component that owns it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, TypeVar, Union

from .approval.session_store import ApprovalSessionStore
from .entitlements.gate import QuotaGate
from .entitlements.models import LimitDecision, LimitType, SubscriptionTier
from .entitlements.provider import EntitlementProvider
from .errors import GovernanceError, InputError, QuotaExceededError
from .evidence.ledger import EvidenceLedger
from .notifications import GovernanceNotification, Handler, NotificationChannel, NotificationKind
from .schemas.domain import ApprovalSession, Decision, EvidenceEvent, ProposalPack, SessionState
from .skills.base import SkillInputType
from .skills.runner import SkillRunner

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Success value or typed failure returned by every service operation."""

    value: Optional[T] = None
    error: Optional[GovernanceError] = None

    @classmethod
    def success(cls, value: T) -> "ServiceResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: GovernanceError) -> "ServiceResult[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


@dataclass(frozen=True)
class GovernanceServiceDeps:
    """Dependency bundle for ``GovernanceService``."""

    quota_gate: QuotaGate
    entitlements: EntitlementProvider
    runner: SkillRunner
    approvals: ApprovalSessionStore
    ledger: EvidenceLedger
    notifications: NotificationChannel


class GovernanceService:
    def __init__(self, *, deps: GovernanceServiceDeps) -> None:
        self._deps = deps

    @property
    def deps(self) -> GovernanceServiceDeps:
        return self._deps

    async def _guard(self, op: str, fn: Callable[[], Awaitable[T]]) -> ServiceResult[T]:
        try:
            return ServiceResult.success(await fn())
        except GovernanceError as e:
            logger.warning(f"{op} failed: {type(e).__name__}: {e}")
            return ServiceResult.failure(e)
        except Exception as e:
            logger.exception(f"{op} failed unexpectedly")
            return ServiceResult.failure(GovernanceError(f"{op} failed: {e}"))

    async def _notify(self, kind: NotificationKind, **fields: object) -> None:
        await self._deps.notifications.publish(GovernanceNotification(kind=kind, **fields))

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    def _decide_quota(
        self,
        action_kind: Union[LimitType, str],
        tier: Optional[SubscriptionTier],
        usage: Optional[int],
        now: Optional[datetime],
    ) -> LimitDecision:
        ent = self._deps.entitlements
        tier = tier if tier is not None else ent.current_tier()
        if usage is None:
            try:
                usage = ent.usage().for_limit(LimitType(getattr(action_kind, "value", action_kind)))
            except ValueError:
                usage = 0
        return self._deps.quota_gate.check(action_kind, tier, usage, now=now)

    async def check_quota(
        self,
        action_kind: Union[LimitType, str] = LimitType.executions_weekly,
        *,
        tier: Optional[SubscriptionTier] = None,
        usage: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ServiceResult[LimitDecision]:
        """
        Check whether ``action_kind`` may proceed.

        ``tier`` and ``usage`` default to the entitlement provider's current
        values. A blocked action is still a successful result: inspect
        ``result.value.allowed``.
        """

        async def _op() -> LimitDecision:
            return self._decide_quota(action_kind, tier, usage, now)

        return await self._guard("check_quota", _op)

    # ------------------------------------------------------------------
    # Skills
    # ------------------------------------------------------------------

    async def run_skill(
        self,
        skill_id: str,
        text: str,
        *,
        input_type: Optional[SkillInputType] = None,
        enforce_quota: bool = True,
    ) -> ServiceResult[ProposalPack]:
        """
        Run a skill after checking the weekly execution quota.

        Fails with ``QuotaExceededError`` (carrying the ``LimitDecision``) when
        the quota blocks the run, and with ``InputError`` or
        ``ClassificationFailure`` when the skill cannot produce a proposal.
        """

        async def _op() -> ProposalPack:
            if enforce_quota:
                decision = self._decide_quota(LimitType.executions_weekly, None, None, None)
                if not decision.allowed:
                    await self._notify(
                        NotificationKind.quota_blocked,
                        detail={"reason": decision.reason, "limit_type": LimitType.executions_weekly.value},
                    )
                    raise QuotaExceededError(decision)
            proposal = await self._deps.runner.run(skill_id, text, input_type=input_type)
            await self._notify(
                NotificationKind.proposal_created,
                proposal_id=proposal.id,
                detail={"skill_id": proposal.skill_id, "risk_tier": proposal.risk_tier.value},
            )
            return proposal

        return await self._guard("run_skill", _op)

    async def get_proposal(self, proposal_id: str) -> ServiceResult[Optional[ProposalPack]]:
        async def _op() -> Optional[ProposalPack]:
            return await self._deps.runner.get_proposal(proposal_id)

        return await self._guard("get_proposal", _op)

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    async def route_for_approval(
        self,
        proposal: Union[ProposalPack, str],
        *,
        supersedes: Optional[str] = None,
    ) -> ServiceResult[ApprovalSession]:
        """Route a proposal (or a stored proposal id) into review."""

        async def _op() -> ApprovalSession:
            pack = proposal
            if isinstance(pack, str):
                found = await self._deps.runner.get_proposal(pack)
                if found is None:
                    raise InputError(f"unknown proposal '{pack}'")
                pack = found
            session = await self._deps.approvals.route(pack, supersedes=supersedes)
            await self._notify(
                NotificationKind.session_routed,
                proposal_id=session.proposal_id,
                session_id=session.id,
                state=session.state,
            )
            return session

        return await self._guard("route_for_approval", _op)

    async def record_decision(
        self,
        session_id: str,
        decision: Union[Decision, str],
        *,
        decided_by: Optional[str] = None,
        approved_steps: Optional[Iterable[int]] = None,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> ServiceResult[ApprovalSession]:
        """Record a reviewer decision. A second decision on a decided session fails with ``SessionStateError``."""

        async def _op() -> ApprovalSession:
            try:
                d = Decision(getattr(decision, "value", decision))
            except ValueError:
                raise InputError(f"unknown decision '{decision}'") from None
            session = await self._deps.approvals.decide(
                session_id,
                d,
                decided_by=decided_by,
                approved_steps=approved_steps,
                notes=notes,
                idempotency_key=idempotency_key,
            )
            await self._notify(
                NotificationKind.decision_recorded,
                proposal_id=session.proposal_id,
                session_id=session.id,
                state=session.state,
                decision=session.decision,
            )
            return session

        return await self._guard("record_decision", _op)

    async def get_session(self, session_id: str) -> ServiceResult[ApprovalSession]:
        return await self._guard("get_session", lambda: self._deps.approvals.require(session_id))

    async def list_sessions(
        self, state: Optional[SessionState] = None, limit: int = 100
    ) -> ServiceResult[List[ApprovalSession]]:
        return await self._guard("list_sessions", lambda: self._deps.approvals.list(state=state, limit=limit))

    # ------------------------------------------------------------------
    # Evidence
    # ------------------------------------------------------------------

    async def list_evidence(self, session_id: Optional[str] = None) -> ServiceResult[List[EvidenceEvent]]:
        return await self._guard("list_evidence", lambda: self._deps.ledger.list(session_id))

    async def export_evidence(
        self, session_id: Optional[str] = None, *, indent: Optional[int] = None
    ) -> ServiceResult[str]:
        """Export evidence as a JSON array of flat records, sorted by sequence."""
        return await self._guard("export_evidence", lambda: self._deps.ledger.export_json(session_id, indent=indent))

    async def evidence_chain_hash(self, session_id: Optional[str] = None) -> ServiceResult[str]:
        return await self._guard("evidence_chain_hash", lambda: self._deps.ledger.chain_hash(session_id))

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, handler: Handler, *, kinds: Optional[List[NotificationKind]] = None) -> Callable[[], None]:
        """Subscribe to governance notifications; returns an unsubscribe function."""
        return self._deps.notifications.subscribe(handler, kinds=kinds)
