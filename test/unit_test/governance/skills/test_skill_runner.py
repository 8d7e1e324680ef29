from __future__ import annotations

import pytest
from pydantic import ValidationError

from operatorkit.governance.errors import ClassificationFailure, InputError
from operatorkit.governance.repos.memory import InMemoryProposalRepository
from operatorkit.governance.schemas.domain import RiskTier
from operatorkit.governance.skills import (
    InboxTriageSkill,
    SkillInputType,
    SkillRegistry,
    SkillRunner,
)
from operatorkit.governance.factory import build_default_registry


class _BrokenSkill(InboxTriageSkill):
    skill_id = "broken"

    async def analyze(self, observation):
        raise ValueError("cannot analyze")


@pytest.fixture
def proposals() -> InMemoryProposalRepository:
    return InMemoryProposalRepository()


@pytest.fixture
def runner(proposals: InMemoryProposalRepository) -> SkillRunner:
    registry = build_default_registry()
    registry.register(_BrokenSkill())
    return SkillRunner(registry=registry, proposals=proposals)


def test_default_registry_contents() -> None:
    reg = build_default_registry()
    assert reg.skill_ids() == ["approval_router", "inbox_triage", "meeting_actions"]
    assert reg.has("inbox_triage")
    with pytest.raises(KeyError):
        reg.get("web_research")


def test_register_overwrites_existing_id() -> None:
    reg = SkillRegistry()
    first, second = InboxTriageSkill(), InboxTriageSkill()
    reg.register(first)
    reg.register(second)
    assert reg.get("inbox_triage") is second


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
async def test_empty_input_is_rejected(runner: SkillRunner, proposals: InMemoryProposalRepository, text: str) -> None:
    with pytest.raises(InputError) as exc:
        await runner.run("inbox_triage", text)
    assert exc.value.reason == "empty input"
    assert await proposals.list() == []


@pytest.mark.asyncio
async def test_unknown_skill_is_an_input_error(runner: SkillRunner) -> None:
    with pytest.raises(InputError, match="unknown skill 'web_research'"):
        await runner.run("web_research", "anything")


@pytest.mark.asyncio
async def test_pipeline_errors_become_classification_failures(
    runner: SkillRunner, proposals: InMemoryProposalRepository
) -> None:
    with pytest.raises(ClassificationFailure, match="cannot analyze"):
        await runner.run("broken", "price increase")
    assert await proposals.list() == []


@pytest.mark.asyncio
async def test_run_stores_an_immutable_proposal(runner: SkillRunner) -> None:
    proposal = await runner.run("inbox_triage", "Please reply declining the meeting")

    assert proposal.skill_id == "inbox_triage"
    assert proposal.risk_tier == RiskTier.low
    assert proposal.required_approvals.requires_biometric is False

    first = await runner.get_proposal(proposal.id)
    second = await runner.get_proposal(proposal.id)
    assert first == second == proposal

    with pytest.raises(ValidationError):
        proposal.human_summary = "edited"


@pytest.mark.asyncio
async def test_input_type_override_is_accepted(runner: SkillRunner) -> None:
    proposal = await runner.run("meeting_actions", "I'll send notes by Friday", input_type=SkillInputType.pasted_text)
    assert proposal.skill_id == "meeting_actions"
    assert proposal.risk_tier == RiskTier.medium


@pytest.mark.asyncio
async def test_same_input_same_risk_tier(runner: SkillRunner) -> None:
    text = "The vendor wants an amendment to the contract before the invoice is paid."
    tiers = {(await runner.run("inbox_triage", text)).risk_tier for _ in range(3)}
    assert tiers == {RiskTier.high}


@pytest.mark.asyncio
async def test_unknown_proposal_is_none(runner: SkillRunner) -> None:
    assert await runner.get_proposal("missing") is None
