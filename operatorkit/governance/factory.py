"""Convenience factories for wiring the governance core.

This module is the composition root. Applications create one
``GovernanceService`` at startup with ``build_service`` and pass it to the
presentation layer; tests use ``build_governance_service`` with in-memory
repositories and explicit collaborators.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..core.config import Settings
from ..core.logging_config import setup_logging
from .approval.session_store import ApprovalSessionStore
from .entitlements.gate import QuotaGate
from .entitlements.models import QuotaPolicy
from .entitlements.provider import EntitlementProvider, StaticEntitlementProvider
from .evidence.ledger import EvidenceLedger
from .notifications import NotificationChannel
from .repos.interfaces import EvidenceRepository, ProposalRepository, SessionRepository
from .repos.memory import InMemoryEvidenceRepository, InMemoryProposalRepository, InMemorySessionRepository
from .service import GovernanceService, GovernanceServiceDeps
from .skills.builtin import ApprovalRouterSkill, InboxTriageSkill, MeetingActionSkill
from .skills.registry import SkillRegistry
from .skills.runner import SkillRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GovernanceRepos:
    """The three repositories the governance core persists through."""

    proposals: ProposalRepository
    sessions: SessionRepository
    evidence: EvidenceRepository


def build_default_registry(*, model: Any | None = None) -> SkillRegistry:
    """Build the default ``SkillRegistry``.

    The default registry includes the built-in skills: inbox triage, meeting
    action extraction and approval routing. ``model`` switches their signal
    extraction from keywords to a Pydantic AI model.
    """
    reg = SkillRegistry()
    reg.register(InboxTriageSkill(model=model))
    reg.register(MeetingActionSkill(model=model))
    reg.register(ApprovalRouterSkill(model=model))
    return reg


def build_memory_repos() -> GovernanceRepos:
    return GovernanceRepos(
        proposals=InMemoryProposalRepository(),
        sessions=InMemorySessionRepository(),
        evidence=InMemoryEvidenceRepository(),
    )


async def build_sql_governance_repos(database_url: str) -> GovernanceRepos:
    """Create the schema (if needed) and return SQL-backed repositories."""
    from .repos.sql import build_sql_repos, create_all, create_engine, create_sessionmaker

    engine = create_engine(database_url)
    await create_all(engine)
    bundle = build_sql_repos(session_factory=create_sessionmaker(engine))
    return GovernanceRepos(proposals=bundle.proposals, sessions=bundle.sessions, evidence=bundle.evidence)


def build_governance_service(
    *,
    repos: GovernanceRepos,
    entitlements: EntitlementProvider,
    quota_policy: QuotaPolicy | None = None,
    registry: SkillRegistry | None = None,
    notifications: NotificationChannel | None = None,
) -> GovernanceService:
    """Construct a ``GovernanceService`` from explicit collaborators."""
    ledger = EvidenceLedger(repos.evidence)
    deps = GovernanceServiceDeps(
        quota_gate=QuotaGate(quota_policy),
        entitlements=entitlements,
        runner=SkillRunner(registry=registry or build_default_registry(), proposals=repos.proposals),
        approvals=ApprovalSessionStore(sessions=repos.sessions, proposals=repos.proposals, ledger=ledger),
        ledger=ledger,
        notifications=notifications or NotificationChannel(),
    )
    return GovernanceService(deps=deps)


async def build_service(
    *,
    settings: Optional[Settings] = None,
    entitlements: EntitlementProvider | None = None,
    registry: SkillRegistry | None = None,
    model: Any | None = None,
    configure_logging: bool = False,
) -> GovernanceService:
    """
    Build the process-wide ``GovernanceService`` from settings.

    Args:
        settings: Application settings; defaults to the module-level ``settings``.
        entitlements: The entitlement collaborator; defaults to a free-tier
            ``StaticEntitlementProvider`` with zero usage.
        registry: Skill registry; defaults to ``build_default_registry(model=model)``.
        model: Optional Pydantic AI model for signal extraction.
        configure_logging: Call ``setup_logging`` with the settings' logging values first.
    """
    if settings is None:
        from ..core.config import settings as default_settings

        settings = default_settings

    if configure_logging:
        log_cfg = settings.logging
        setup_logging(log_level=log_cfg.level, log_format=log_cfg.format, enable_file=log_cfg.enable_file)

    if settings.storage_backend == "sql":
        repos = await build_sql_governance_repos(settings.database_url)
    else:
        repos = build_memory_repos()
    logger.info(f"Building governance service (storage={settings.storage_backend})")

    return build_governance_service(
        repos=repos,
        entitlements=entitlements or StaticEntitlementProvider(),
        quota_policy=settings.quota_policy,
        registry=registry or build_default_registry(model=model),
    )
