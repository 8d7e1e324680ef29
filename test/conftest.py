from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load test/.env early so OPERATORKIT_* overrides are visible to Settings()
load_dotenv(Path(__file__).resolve().parent / ".env", override=False)

from operatorkit.governance.entitlements import StaticEntitlementProvider, SubscriptionTier, UsageCounters
from operatorkit.governance.factory import GovernanceRepos, build_governance_service, build_memory_repos
from operatorkit.governance.service import GovernanceService


@pytest.fixture
def fixed_now() -> datetime:
    # A Wednesday; the next Monday boundary is 2024-05-20 00:00 UTC.
    return datetime(2024, 5, 15, 13, 30, tzinfo=timezone.utc)


@pytest.fixture
def repos() -> GovernanceRepos:
    return build_memory_repos()


@pytest.fixture
def entitlements() -> StaticEntitlementProvider:
    return StaticEntitlementProvider(SubscriptionTier.free, UsageCounters())


@pytest.fixture
def service(repos: GovernanceRepos, entitlements: StaticEntitlementProvider) -> GovernanceService:
    return build_governance_service(repos=repos, entitlements=entitlements)
