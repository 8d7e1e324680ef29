"""Approval session state machine.

State graph
-----------

::

    pending --present--> under_review --approve---------> approved          (terminal)
                                      --approve_partial-> approved_partial  (terminal)
                                      --reject----------> rejected          (terminal)
                                      --request_revision> revision_requested (closed)
                                      --escalate--------> escalated          (closed)

Closed sessions accept no further decisions. The next round after
``request_revision`` or ``escalate`` is a *new* proposal routed with
``supersedes=<old session id>``; proposals are never edited in place.

Durability
----------

Every transition appends an evidence record before the session row is
updated. If the append raises ``StorageError`` the session is left exactly as
it was and the error propagates: a decision without evidence is not a
decision.

Concurrency
-----------

``decide`` and ``present`` hold a per-session ``asyncio.Lock``, so within a
process the first caller wins and later callers observe the new state and
fail with ``SessionStateError``. The repository update is additionally a
compare-and-set on the expected state, which extends first-writer-wins to
writers sharing a SQL database from separate processes.

Every decision closes its session, so the session lock is dropped once the
decision is stored. Callers still waiting on it find the session closed.

There is no expiry. An undecided session stays ``under_review`` until a
human decides it.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from ..errors import InputError, SessionNotFoundError, SessionStateError, StorageError
from ..evidence.ledger import EvidenceLedger
from ..repos.interfaces import ProposalRepository, SessionRepository
from ..schemas.domain import (
    DECISION_TARGET_STATE,
    ApprovalSession,
    Decision,
    EvidenceEvent,
    EvidenceEventType,
    ProposalPack,
    SessionState,
)

logger = logging.getLogger(__name__)

_SUPERSEDABLE = (SessionState.revision_requested, SessionState.escalated)


class ApprovalSessionStore:
    """Owns approval sessions and drives them through the state machine."""

    def __init__(
        self,
        *,
        sessions: SessionRepository,
        proposals: ProposalRepository,
        ledger: EvidenceLedger,
    ) -> None:
        self._sessions = sessions
        self._proposals = proposals
        self._ledger = ledger
        self._route_lock = asyncio.Lock()
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    @staticmethod
    def _evidence(
        session: ApprovalSession,
        event_type: EvidenceEventType,
        *,
        idempotency_key: Optional[str] = None,
        **payload: object,
    ) -> EvidenceEvent:
        return EvidenceEvent(
            type=event_type,
            session_id=session.id,
            proposal_id=session.proposal_id,
            skill_id=session.skill_id,
            risk_tier=session.risk_tier,
            decision=session.decision,
            state=session.state,
            idempotency_key=idempotency_key,
            payload={k: v for k, v in payload.items() if v is not None},
        )

    async def get(self, session_id: str) -> Optional[ApprovalSession]:
        return await self._sessions.get(session_id)

    async def require(self, session_id: str) -> ApprovalSession:
        session = await self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def list(self, state: Optional[SessionState] = None, limit: int = 100) -> List[ApprovalSession]:
        return await self._sessions.list(state=state, limit=limit)

    async def _store_proposal(self, proposal: ProposalPack) -> ProposalPack:
        await self._proposals.create(proposal)
        stored = await self._proposals.get(proposal.id)
        if stored is None:
            raise StorageError(f"proposal '{proposal.id}' was not stored")
        if stored.model_dump(mode="json") != proposal.model_dump(mode="json"):
            logger.warning(f"Refusing to route proposal {proposal.id}: content differs from the stored proposal")
            raise InputError(f"proposal '{proposal.id}' does not match the stored proposal with that id")
        return stored

    async def route(self, proposal: ProposalPack, *, supersedes: Optional[str] = None) -> ApprovalSession:
        """
        Open a session for ``proposal`` and present it for review.

        The session snapshot and evidence are built from the stored proposal.
        If the proposal already has a session that is still ``pending`` (an
        earlier route failed before presenting it), that session is presented
        instead of opening a new one.

        Args:
            proposal: The proposal to review. A proposal can be routed once.
            supersedes: Id of a ``revision_requested`` or ``escalated`` session
                this proposal replaces.

        Returns:
            The session, in ``under_review``.

        Raises:
            SessionStateError: The proposal already has a session past
                ``pending``, or ``supersedes`` names a session that is not
                closed for revision.
            SessionNotFoundError: ``supersedes`` names an unknown session.
            InputError: A proposal with the same id but different content is
                already stored.
            StorageError: Evidence or session storage failed.
        """
        async with self._route_lock:
            existing = await self._sessions.get_by_proposal(proposal.id)
            if existing is not None:
                if existing.state != SessionState.pending:
                    raise SessionStateError(existing.id, f"proposal '{proposal.id}' is already routed")
                if supersedes is not None and supersedes != existing.supersedes_session_id:
                    raise SessionStateError(existing.id, f"proposal '{proposal.id}' is pending without that supersede")
                await self._store_proposal(proposal)
                session = existing
                logger.info(f"Resuming pending session {session.id} for proposal {proposal.id}")
            else:
                if supersedes is not None:
                    previous = await self.require(supersedes)
                    if previous.state not in _SUPERSEDABLE:
                        raise SessionStateError(
                            previous.id, f"cannot be superseded from state '{previous.state.value}'"
                        )

                stored = await self._store_proposal(proposal)
                session = ApprovalSession.for_proposal(stored, supersedes_session_id=supersedes)
                await self._ledger.append(
                    self._evidence(session, EvidenceEventType.session_routed, supersedes_session_id=supersedes)
                )
                await self._sessions.create(session)
                logger.info(
                    f"Routed proposal {stored.id} to session {session.id} (risk={session.risk_tier.value})"
                )

        return await self.present(session.id)

    async def present(self, session_id: str) -> ApprovalSession:
        """Advance a ``pending`` session to ``under_review``."""
        async with self._lock_for(session_id):
            session = await self.require(session_id)
            if session.state != SessionState.pending:
                raise SessionStateError(session_id, f"cannot present from state '{session.state.value}'")

            updated = session.model_copy(update={"state": SessionState.under_review})
            await self._ledger.append(self._evidence(updated, EvidenceEventType.session_presented))
            if not await self._sessions.transition(updated, expected=SessionState.pending):
                raise SessionStateError(session_id, "state changed while presenting")
            logger.debug(f"Session {session_id} is under review")
            return updated

    async def _validate_partial(self, session: ApprovalSession, steps: Optional[Iterable[int]]) -> List[int]:
        chosen = sorted(set(steps or ()))
        if not chosen:
            raise InputError("approve_partial requires at least one step")
        proposal = await self._proposals.get(session.proposal_id)
        known = {s.order for s in proposal.execution_steps} if proposal is not None else set(range(1, session.step_count + 1))
        unknown = [o for o in chosen if o not in known]
        if unknown:
            raise InputError(f"unknown step(s) for approve_partial: {unknown}")
        return chosen

    async def decide(
        self,
        session_id: str,
        decision: Decision,
        *,
        decided_by: Optional[str] = None,
        approved_steps: Optional[Iterable[int]] = None,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> ApprovalSession:
        """
        Record ``decision`` against a session that is under review.

        Args:
            session_id: The session to decide.
            decision: The reviewer's decision.
            decided_by: Optional reviewer identity, stored on the session and in evidence.
            approved_steps: Step orders approved by ``approve_partial``; ignored otherwise.
            notes: Optional reviewer notes (revision requests, escalation reasons).
            idempotency_key: Optional key for the evidence record.

        Returns:
            The updated session.

        Raises:
            SessionNotFoundError: Unknown session id.
            SessionStateError: The session is not under review (for example, already decided).
            InputError: ``approve_partial`` without a valid, non-empty step subset.
            StorageError: The evidence append or session update failed; the
                session state is unchanged.
        """
        async with self._lock_for(session_id):
            session = await self.require(session_id)
            if session.state != SessionState.under_review:
                if session.state.is_closed:
                    self._locks.pop(session_id, None)
                    raise SessionStateError(session_id, "already decided")
                raise SessionStateError(session_id, f"not under review (state '{session.state.value}')")

            partial = await self._validate_partial(session, approved_steps) if decision == Decision.approve_partial else None

            target = DECISION_TARGET_STATE[decision]
            updated = session.model_copy(
                update={
                    "state": target,
                    "decision": decision,
                    "decided_at": datetime.now(timezone.utc),
                    "decided_by": decided_by,
                    "partial_approval_steps": partial,
                    "revision_notes": notes,
                }
            )

            await self._ledger.append(
                self._evidence(
                    updated,
                    EvidenceEventType.decision_recorded,
                    idempotency_key=idempotency_key,
                    decided_by=decided_by,
                    approved_steps=partial,
                    notes=notes,
                )
            )
            if not await self._sessions.transition(updated, expected=SessionState.under_review):
                logger.warning(f"Session {session_id} was decided concurrently; discarding {decision.value}")
                raise SessionStateError(session_id, "already decided")

            self._locks.pop(session_id, None)
            logger.info(f"Session {session_id}: {decision.value} -> {target.value}")
            return updated
