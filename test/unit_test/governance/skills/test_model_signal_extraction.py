from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List

import pytest

from operatorkit.governance.errors import ClassificationFailure
from operatorkit.governance.schemas.domain import RiskTier
from operatorkit.governance.skills import InboxTriageSkill, Signal, SignalCategory, SkillInput


@dataclass
class _FakeResult:
    output: List[Signal]


def _fake_agent_class(output: List[Signal], *, fail: Exception | None = None) -> type:
    class _FakeAgent:
        instances: List["_FakeAgent"] = []

        def __init__(self, model: Any, *, output_type: Any, system_prompt: str):
            self.model = model
            self.output_type = output_type
            self.system_prompt = system_prompt
            self.last_prompt: str | None = None
            _FakeAgent.instances.append(self)

        async def run(self, prompt: str) -> _FakeResult:
            self.last_prompt = prompt
            if fail is not None:
                raise fail
            return _FakeResult(output=list(output))

    return _FakeAgent


@pytest.mark.asyncio
async def test_model_signals_drive_classification(monkeypatch: pytest.MonkeyPatch) -> None:
    import operatorkit.governance.skills.base as base_mod

    fake = _fake_agent_class(
        [
            Signal(label="Pricing change detected", category=SignalCategory.pricing, confidence=0.9, excerpt="up 20%"),
            Signal(label="Pricing change detected", category=SignalCategory.pricing, confidence=0.4, excerpt="dup"),
            Signal(label="Owner", category=SignalCategory.owner, confidence=0.9),
        ]
    )
    monkeypatch.setattr(base_mod, "Agent", fake)

    skill = InboxTriageSkill(model=object())
    observation = await skill.observe(SkillInput(text_content="Prices go up 20% next quarter"))

    # owner is not an inbox category; duplicates collapse by label
    assert [s.label for s in observation.signals] == ["Pricing change detected"]
    assert observation.raw_excerpts == ("up 20%",)

    agent = fake.instances[0]
    assert "Prices go up 20% next quarter" in (agent.last_prompt or "")
    assert "pricing" in (agent.last_prompt or "")

    analysis = await skill.analyze(observation)
    assert analysis.risk_tier == RiskTier.high


@pytest.mark.asyncio
async def test_empty_model_output_uses_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    import operatorkit.governance.skills.base as base_mod

    monkeypatch.setattr(base_mod, "Agent", _fake_agent_class([]))

    observation = await InboxTriageSkill(model=object()).observe(SkillInput(text_content="hello"))
    assert [s.category for s in observation.signals] == [SignalCategory.informational]


@pytest.mark.asyncio
async def test_model_error_is_a_classification_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    import operatorkit.governance.skills.base as base_mod

    monkeypatch.setattr(base_mod, "Agent", _fake_agent_class([], fail=RuntimeError("model timeout")))

    with pytest.raises(ClassificationFailure) as exc:
        await InboxTriageSkill(model=object()).observe(SkillInput(text_content="hello"))
    assert exc.value.reason == "model timeout"


@pytest.mark.asyncio
async def test_extraction_with_testmodel_yields_allowed_signals() -> None:
    pytest.importorskip("pydantic_ai")
    from pydantic_ai.models.test import TestModel

    skill = InboxTriageSkill(model=TestModel())
    observation = await skill.observe(SkillInput(text_content="Contract renewal attached"))

    assert len(observation.signals) >= 1
    allowed = set(skill.categories) | {SignalCategory.informational}
    assert all(s.category in allowed for s in observation.signals)
