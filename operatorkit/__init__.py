"""OperatorKit governance core.

This package contains the decision layer behind the OperatorKit app: it decides
whether a metered action may proceed under the current plan, turns free text
into advisory proposals, and routes those proposals through human review into
an auditable decision.

High-level architecture
-----------------------

The codebase is organized around one hard rule: **proposals describe, they
never execute**. Skills only observe text and emit an immutable
``ProposalPack``; nothing in this package performs a write against calendar,
mail, reminders or any other external system.

Core subpackages
----------------

- ``operatorkit.governance``:

  - Entitlement/quota gate (subscription tier, ``LimitDecision``).
  - Skills, the skill registry and the skill runner.
  - The approval session state machine.
  - The append-only evidence ledger.
  - Repository interfaces with in-memory and SQL implementations.

- ``operatorkit.core``:

  - Settings (``pydantic-settings``) and logging configuration.

Typical workflow
----------------

Most integrations should use ``operatorkit.governance.service.GovernanceService``
built once at startup by ``operatorkit.governance.factory.build_service``:

1. ``check_quota`` before doing metered work.
2. ``run_skill`` to produce a ``ProposalPack``.
3. ``route_for_approval`` to open an ``ApprovalSession``.
4. ``record_decision`` once a human has reviewed the proposal.
"""
