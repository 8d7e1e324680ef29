"""Repository interface contracts.

The governance components depend on these Protocols instead of concrete
persistence implementations.

Contract guidelines
-------------------

- All methods are async.
- Implementations never hand out references to their stored objects; callers
  receive copies, so mutating a returned session does not change the store.
- Proposals are write-once.
- Sessions change state only through ``transition``, a compare-and-set on the
  current state.
- The evidence repository is append-only and assigns sequence numbers.
- Backing store failures surface as ``StorageError``.
"""

from __future__ import annotations

from typing import Optional, Protocol

from ..schemas.domain import ApprovalSession, EvidenceEvent, ProposalPack, SessionState


class ProposalRepository(Protocol):
    """Write-once store for proposal packs."""

    async def create(self, proposal: ProposalPack) -> None:
        """
        Persist a new proposal.

        Args:
            proposal: The immutable proposal to store. Storing the same id twice is a no-op.
        """
        ...

    async def get(self, proposal_id: str) -> Optional[ProposalPack]:
        """
        Retrieve a proposal by its ID.

        Returns:
            The ProposalPack if found, else None.
        """
        ...

    async def list(self, skill_id: Optional[str] = None, limit: int = 100) -> list[ProposalPack]:
        """List proposals, newest first, optionally filtered by skill."""
        ...


class SessionRepository(Protocol):
    """Store approval sessions and their decisions."""

    async def create(self, session: ApprovalSession) -> None:
        """
        Create a new approval session.

        Args:
            session: The session to persist, normally in ``pending`` state.
        """
        ...

    async def get(self, session_id: str) -> Optional[ApprovalSession]:
        """Retrieve a session by its ID."""
        ...

    async def get_by_proposal(self, proposal_id: str) -> Optional[ApprovalSession]:
        """Retrieve the session routed for ``proposal_id``, if any."""
        ...

    async def transition(self, session: ApprovalSession, *, expected: SessionState) -> bool:
        """
        Replace a stored session only if its current state is ``expected``.

        Args:
            session: The updated session (same id).
            expected: The state the stored session must currently be in.

        Returns:
            True if the update was applied, False if the state had changed.
        """
        ...

    async def list(self, state: Optional[SessionState] = None, limit: int = 100) -> list[ApprovalSession]:
        """List sessions, newest first, optionally filtered by state."""
        ...


class EvidenceRepository(Protocol):
    """Append-only store for evidence events."""

    async def append(self, event: EvidenceEvent) -> EvidenceEvent:
        """
        Append an event and assign its sequence number.

        If ``event.idempotency_key`` was already appended for the same
        ``session_id``, the existing record is returned unchanged. Keys are
        scoped to a session; the same key on another session is a new record.

        Returns:
            The stored event carrying its sequence number.
        """
        ...

    async def list(self, session_id: Optional[str] = None) -> list[EvidenceEvent]:
        """List events ordered by sequence ascending, optionally for one session."""
        ...
