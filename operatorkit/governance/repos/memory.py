"""In-memory repository implementations.

Used when ``storage_backend`` is ``memory`` and throughout the unit tests.
Each method completes without awaiting, so a single event loop never observes
a half-applied write.
"""

from __future__ import annotations

import itertools
from typing import Dict, List, Optional, Tuple

from ..schemas.domain import ApprovalSession, EvidenceEvent, ProposalPack, SessionState


class InMemoryProposalRepository:
    def __init__(self) -> None:
        self._rows: Dict[str, ProposalPack] = {}

    async def create(self, proposal: ProposalPack) -> None:
        self._rows.setdefault(proposal.id, proposal)

    async def get(self, proposal_id: str) -> Optional[ProposalPack]:
        return self._rows.get(proposal_id)

    async def list(self, skill_id: Optional[str] = None, limit: int = 100) -> list[ProposalPack]:
        rows = [p for p in self._rows.values() if skill_id is None or p.skill_id == skill_id]
        rows.sort(key=lambda p: p.created_at, reverse=True)
        return rows[:limit]


class InMemorySessionRepository:
    def __init__(self) -> None:
        self._rows: Dict[str, ApprovalSession] = {}

    async def create(self, session: ApprovalSession) -> None:
        self._rows[session.id] = session.model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[ApprovalSession]:
        row = self._rows.get(session_id)
        return row.model_copy(deep=True) if row is not None else None

    async def get_by_proposal(self, proposal_id: str) -> Optional[ApprovalSession]:
        for row in self._rows.values():
            if row.proposal_id == proposal_id:
                return row.model_copy(deep=True)
        return None

    async def transition(self, session: ApprovalSession, *, expected: SessionState) -> bool:
        current = self._rows.get(session.id)
        if current is None or current.state != expected:
            return False
        self._rows[session.id] = session.model_copy(deep=True)
        return True

    async def list(self, state: Optional[SessionState] = None, limit: int = 100) -> list[ApprovalSession]:
        rows = [r for r in self._rows.values() if state is None or r.state == state]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in rows[:limit]]


class InMemoryEvidenceRepository:
    def __init__(self) -> None:
        self._events: List[EvidenceEvent] = []
        self._by_key: Dict[Tuple[str, str], EvidenceEvent] = {}
        self._seq = itertools.count(1)

    async def append(self, event: EvidenceEvent) -> EvidenceEvent:
        key = (event.session_id, event.idempotency_key) if event.idempotency_key else None
        if key is not None and key in self._by_key:
            return self._by_key[key].model_copy(deep=True)
        stored = event.model_copy(update={"sequence": next(self._seq)}, deep=True)
        self._events.append(stored)
        if key is not None:
            self._by_key[key] = stored
        return stored.model_copy(deep=True)

    async def list(self, session_id: Optional[str] = None) -> list[EvidenceEvent]:
        return [e.model_copy(deep=True) for e in self._events if session_id is None or e.session_id == session_id]
