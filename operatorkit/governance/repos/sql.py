"""SQLAlchemy async repository implementations.

This module provides SQL-backed persistence for the repository interfaces
defined in ``operatorkit.governance.repos.interfaces``. It runs on SQLite
(``sqlite+aiosqlite``) and Postgres (``postgresql+asyncpg``).

Usage
-----

Typical wiring (tests or application setup):

- Create an async engine with ``create_engine``.
- Create tables with ``create_all``.
- Create a session factory with ``create_sessionmaker``.
- Build repository instances with ``build_sql_repos``.

Transaction model
-----------------

Each repository method opens an ``AsyncSession``, performs its operation, and
commits. An evidence record is therefore durable when ``append`` returns.
Any ``SQLAlchemyError`` is re-raised as ``StorageError``.
"""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..errors import StorageError
from ..schemas.domain import (
    ApprovalSession,
    Decision,
    EvidenceEvent,
    EvidenceEventType,
    ProposalPack,
    ReversibilityClass,
    RiskTier,
    SessionState,
)
from .interfaces import EvidenceRepository, ProposalRepository, SessionRepository
from .models import Base, EvidenceRow, ProposalRow, SessionRow

logger = logging.getLogger(__name__)

T = TypeVar("T")


def create_engine(db_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    The helper normalizes Postgres URLs to ensure the async driver is used.
    For example, it rewrites ``postgresql://`` and other variants to
    ``postgresql+asyncpg://``.
    """
    url = re.sub(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://", "postgresql+asyncpg://", db_url, count=1)
    if url.startswith("sqlite"):
        return create_async_engine(url)
    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an ``async_sessionmaker`` with safe defaults for this project."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables for the current ORM metadata."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back; values are always written in UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _storage_errors(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await fn(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"Storage failure in {fn.__qualname__}: {e}")
            raise StorageError(str(e)) from e

    return wrapper


@dataclass(frozen=True)
class SqlProposalRepository(ProposalRepository):
    """SQL implementation of ``ProposalRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    @_storage_errors
    async def create(self, proposal: ProposalPack) -> None:
        async with self.session_factory() as s:
            if await s.get(ProposalRow, proposal.id) is not None:
                return
            s.add(
                ProposalRow(
                    id=proposal.id,
                    skill_id=proposal.skill_id,
                    risk_tier=proposal.risk_tier.value,
                    created_at=proposal.created_at,
                    document=proposal.model_dump(mode="json"),
                )
            )
            await s.commit()

    @_storage_errors
    async def get(self, proposal_id: str) -> Optional[ProposalPack]:
        async with self.session_factory() as s:
            row = await s.get(ProposalRow, proposal_id)
            if row is None:
                return None
            return ProposalPack.model_validate(row.document)

    @_storage_errors
    async def list(self, skill_id: Optional[str] = None, limit: int = 100) -> list[ProposalPack]:
        async with self.session_factory() as s:
            stmt = select(ProposalRow)
            if skill_id:
                stmt = stmt.where(ProposalRow.skill_id == skill_id)
            stmt = stmt.order_by(ProposalRow.created_at.desc()).limit(limit)
            result = await s.execute(stmt)
            return [ProposalPack.model_validate(row.document) for row in result.scalars().all()]


def _session_values(session: ApprovalSession) -> dict[str, Any]:
    return {
        "state": session.state.value,
        "decision": session.decision.value if session.decision is not None else None,
        "decided_at": session.decided_at,
        "decided_by": session.decided_by,
        "partial_approval_steps": session.partial_approval_steps,
        "revision_notes": session.revision_notes,
    }


def _session_from_row(row: SessionRow) -> ApprovalSession:
    return ApprovalSession(
        id=row.id,
        created_at=_as_utc(row.created_at),
        proposal_id=row.proposal_id,
        skill_id=row.skill_id,
        risk_tier=RiskTier(row.risk_tier),
        risk_score=row.risk_score,
        reversibility_class=ReversibilityClass(row.reversibility_class),
        human_summary=row.human_summary,
        step_count=row.step_count,
        state=SessionState(row.state),
        decision=Decision(row.decision) if row.decision else None,
        decided_at=_as_utc(row.decided_at),
        decided_by=row.decided_by,
        partial_approval_steps=list(row.partial_approval_steps) if row.partial_approval_steps is not None else None,
        revision_notes=row.revision_notes,
        supersedes_session_id=row.supersedes_session_id,
    )


@dataclass(frozen=True)
class SqlSessionRepository(SessionRepository):
    """SQL implementation of ``SessionRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    @_storage_errors
    async def create(self, session: ApprovalSession) -> None:
        async with self.session_factory() as s:
            s.add(
                SessionRow(
                    id=session.id,
                    created_at=session.created_at,
                    proposal_id=session.proposal_id,
                    skill_id=session.skill_id,
                    risk_tier=session.risk_tier.value,
                    risk_score=session.risk_score,
                    reversibility_class=session.reversibility_class.value,
                    human_summary=session.human_summary,
                    step_count=session.step_count,
                    supersedes_session_id=session.supersedes_session_id,
                    **_session_values(session),
                )
            )
            await s.commit()

    @_storage_errors
    async def get(self, session_id: str) -> Optional[ApprovalSession]:
        async with self.session_factory() as s:
            row = await s.get(SessionRow, session_id)
            return _session_from_row(row) if row is not None else None

    @_storage_errors
    async def get_by_proposal(self, proposal_id: str) -> Optional[ApprovalSession]:
        async with self.session_factory() as s:
            result = await s.execute(select(SessionRow).where(SessionRow.proposal_id == proposal_id))
            row = result.scalar_one_or_none()
            return _session_from_row(row) if row is not None else None

    @_storage_errors
    async def transition(self, session: ApprovalSession, *, expected: SessionState) -> bool:
        """
        Compare-and-set the session's mutable columns.

        The ``WHERE state = :expected`` clause makes the update a no-op when
        another writer has already moved the session on.
        """
        async with self.session_factory() as s:
            stmt = (
                update(SessionRow)
                .where(SessionRow.id == session.id, SessionRow.state == expected.value)
                .values(**_session_values(session))
            )
            result = await s.execute(stmt)
            await s.commit()
            return result.rowcount == 1

    @_storage_errors
    async def list(self, state: Optional[SessionState] = None, limit: int = 100) -> list[ApprovalSession]:
        async with self.session_factory() as s:
            stmt = select(SessionRow)
            if state is not None:
                stmt = stmt.where(SessionRow.state == state.value)
            stmt = stmt.order_by(SessionRow.created_at.desc()).limit(limit)
            result = await s.execute(stmt)
            return [_session_from_row(row) for row in result.scalars().all()]


def _event_from_row(row: EvidenceRow) -> EvidenceEvent:
    return EvidenceEvent(
        id=row.id,
        sequence=row.sequence,
        type=EvidenceEventType(row.type),
        session_id=row.session_id,
        proposal_id=row.proposal_id,
        skill_id=row.skill_id,
        risk_tier=RiskTier(row.risk_tier),
        decision=Decision(row.decision) if row.decision else None,
        state=SessionState(row.state),
        created_at=_as_utc(row.created_at),
        idempotency_key=row.idempotency_key,
        payload=dict(row.payload or {}),
    )


@dataclass(frozen=True)
class SqlEvidenceRepository(EvidenceRepository):
    """SQL implementation of ``EvidenceRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def _by_key(self, s: AsyncSession, session_id: str, key: str) -> Optional[EvidenceRow]:
        result = await s.execute(
            select(EvidenceRow).where(EvidenceRow.session_id == session_id, EvidenceRow.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    @_storage_errors
    async def append(self, event: EvidenceEvent) -> EvidenceEvent:
        """
        Insert an evidence event; the database assigns ``sequence``.

        Idempotency keys are unique per session. A concurrent insert of the
        same ``(session_id, idempotency_key)`` loses on the unique constraint
        and returns the winner's record.
        """
        async with self.session_factory() as s:
            if event.idempotency_key:
                existing = await self._by_key(s, event.session_id, event.idempotency_key)
                if existing is not None:
                    return _event_from_row(existing)
            row = EvidenceRow(
                id=event.id,
                type=event.type.value,
                session_id=event.session_id,
                proposal_id=event.proposal_id,
                skill_id=event.skill_id,
                risk_tier=event.risk_tier.value,
                decision=event.decision.value if event.decision is not None else None,
                state=event.state.value,
                created_at=event.created_at,
                idempotency_key=event.idempotency_key,
                payload=dict(event.payload),
            )
            s.add(row)
            try:
                await s.commit()
            except IntegrityError:
                await s.rollback()
                if not event.idempotency_key:
                    raise
                existing = await self._by_key(s, event.session_id, event.idempotency_key)
                if existing is None:
                    raise
                return _event_from_row(existing)
            return event.model_copy(update={"sequence": row.sequence})

    @_storage_errors
    async def list(self, session_id: Optional[str] = None) -> list[EvidenceEvent]:
        async with self.session_factory() as s:
            stmt = select(EvidenceRow)
            if session_id is not None:
                stmt = stmt.where(EvidenceRow.session_id == session_id)
            stmt = stmt.order_by(EvidenceRow.sequence.asc())
            result = await s.execute(stmt)
            return [_event_from_row(row) for row in result.scalars().all()]


@dataclass(frozen=True)
class SqlRepoBundle:
    """Convenience bundle of all SQL repositories for dependency injection."""

    proposals: SqlProposalRepository
    sessions: SqlSessionRepository
    evidence: SqlEvidenceRepository


def build_sql_repos(*, session_factory: async_sessionmaker[AsyncSession]) -> SqlRepoBundle:
    """Build a ``SqlRepoBundle`` from a session factory."""
    return SqlRepoBundle(
        proposals=SqlProposalRepository(session_factory=session_factory),
        sessions=SqlSessionRepository(session_factory=session_factory),
        evidence=SqlEvidenceRepository(session_factory=session_factory),
    )
