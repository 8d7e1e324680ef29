"""SQLAlchemy ORM models for governance persistence.

These ORM models define the SQL schema used by the SQL repository
implementation in ``operatorkit.governance.repos.sql``.

Design
------

- Proposals are stored whole as JSON next to a few indexed columns; the
  JSON document is written once and never updated.
- Sessions keep every reviewable field in its own column so the
  compare-and-set in ``SqlSessionRepository.transition`` is a single
  ``UPDATE ... WHERE state = :expected``.
- Evidence events use an autoincrement integer primary key as their sequence
  number, so ordering is assigned atomically by the database.

Generic ``JSON`` is used instead of a Postgres-specific type so the same
schema runs on SQLite (tests, local use) and Postgres.

Table names are prefixed with ``ok_`` to avoid collisions in shared databases.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class ProposalRow(Base):
    """Row model for ``ok_proposals``."""

    __tablename__ = "ok_proposals"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    skill_id: Mapped[str] = mapped_column(String(64), index=True)
    risk_tier: Mapped[str] = mapped_column(String(16))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    document: Mapped[Dict[str, Any]] = mapped_column(JSON)


class SessionRow(Base):
    """Row model for ``ok_approval_sessions``.

    ``proposal_id`` is unique: a proposal is referenced by at most one
    session. Resubmissions create a new proposal and link back through
    ``supersedes_session_id``.
    """

    __tablename__ = "ok_approval_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    proposal_id: Mapped[str] = mapped_column(String(64), unique=True)
    skill_id: Mapped[str] = mapped_column(String(64))

    risk_tier: Mapped[str] = mapped_column(String(16))
    risk_score: Mapped[int] = mapped_column(Integer)
    reversibility_class: Mapped[str] = mapped_column(String(32))
    human_summary: Mapped[str] = mapped_column(Text)
    step_count: Mapped[int] = mapped_column(Integer, default=0)

    state: Mapped[str] = mapped_column(String(32), index=True)
    decision: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    decided_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    partial_approval_steps: Mapped[Optional[List[int]]] = mapped_column(JSON, nullable=True)
    revision_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    supersedes_session_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


class EvidenceRow(Base):
    """Row model for ``ok_evidence_events``.

    Append-only. ``sequence`` is assigned by the database on insert.
    """

    __tablename__ = "ok_evidence_events"
    __table_args__ = (
        UniqueConstraint("session_id", "idempotency_key", name="uq_ok_evidence_session_key"),
        {"sqlite_autoincrement": True},
    )

    sequence: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), unique=True)
    type: Mapped[str] = mapped_column(String(64))

    session_id: Mapped[str] = mapped_column(String(64), index=True)
    proposal_id: Mapped[str] = mapped_column(String(64))
    skill_id: Mapped[str] = mapped_column(String(64))
    risk_tier: Mapped[str] = mapped_column(String(16))
    decision: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    state: Mapped[str] = mapped_column(String(32))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
