"""Governance core: quotas, skills, approval sessions and evidence.

Layout
------

- ``entitlements``: subscription tiers, usage counters and the ``QuotaGate``.
- ``skills``: the ``SkillRunner``, the ``SkillRegistry`` and built-in skills
  that turn free text into advisory ``ProposalPack`` values.
- ``approval``: the ``ApprovalSessionStore`` state machine.
- ``evidence``: the append-only ``EvidenceLedger``.
- ``repos``: repository protocols with in-memory and SQL implementations.
- ``service``: ``GovernanceService``, the result-returning facade.
- ``factory``: composition helpers that build the service.

Invariants
----------

- Proposals are immutable and never executed by this package.
- A session accepts exactly one decision, and only while under review.
- Every routing and decision event is durably recorded before it takes effect.
- Quota checks are pure and never raise.
"""
