"""Repository interfaces and implementations for governance persistence.

The repository layer is the persistence boundary for the governance core.

Responsibilities
----------------

- Provide a small set of async repository interfaces (Protocols) that the
  skill runner, approval session store and evidence ledger depend on.
- Persist durable, auditable records:

  - proposal packs (write-once),
  - approval sessions and their decisions,
  - evidence events (append-only, sequenced).

Design notes
------------

The components are written against interfaces so they can be used with:

- an in-memory store (``repos.memory``) for tests and single-process use,
- a SQL database (async SQLAlchemy implementation in ``repos.sql``).
"""

from .interfaces import EvidenceRepository, ProposalRepository, SessionRepository
from .memory import InMemoryEvidenceRepository, InMemoryProposalRepository, InMemorySessionRepository

__all__ = [
    "EvidenceRepository",
    "ProposalRepository",
    "SessionRepository",
    "InMemoryEvidenceRepository",
    "InMemoryProposalRepository",
    "InMemorySessionRepository",
]
