"""Skill protocol and pipeline data models.

A skill turns user-supplied text into an advisory ``ProposalPack`` through a
fixed three-stage pipeline:

- ``observe``: extract structured ``Signal`` values from the raw input,
- ``analyze``: map signals to risk-tiered ``AnalysisItem`` values,
- ``generate_proposal``: assemble the immutable proposal.

Only ``observe`` ever looks at raw text. Risk tiers, scores and approval
requirements are computed from the structured observation, so a
non-deterministic extractor cannot leak randomness into classification.

Skills have no writer dependencies of any kind. They describe actions, they
never perform them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Tuple

from pydantic import Field
from pydantic_ai import Agent

from ..errors import ClassificationFailure
from ..schemas.base import FrozenSchema
from ..schemas.domain import PermissionDomain, ProposalPack, RiskTier

logger = logging.getLogger(__name__)


class SkillInputType(str, Enum):
    email_thread = "email_thread"
    meeting_transcript = "meeting_transcript"
    proposal_pack = "proposal_pack"
    pasted_text = "pasted_text"


class SkillInput(FrozenSchema):
    input_type: SkillInputType = SkillInputType.pasted_text
    text_content: str

    @property
    def is_empty(self) -> bool:
        return not self.text_content.strip()


class SignalCategory(str, Enum):
    pricing = "pricing"
    contract = "contract"
    escalation = "escalation"
    refund = "refund"
    timeline = "timeline"
    financial = "financial"
    legal = "legal"
    commitment = "commitment"
    owner = "owner"
    deadline = "deadline"
    risk = "risk"
    follow_up = "follow_up"
    approval = "approval"
    informational = "informational"


class Signal(FrozenSchema):
    """One structured finding extracted from skill input."""

    label: str
    category: SignalCategory
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    excerpt: Optional[str] = None


class SkillObservation(FrozenSchema):
    skill_id: str
    signals: Tuple[Signal, ...] = ()
    raw_excerpts: Tuple[str, ...] = ()


class AnalysisItem(FrozenSchema):
    title: str
    detail: str
    risk_tier: RiskTier
    action_required: bool
    suggested_action: Optional[str] = None
    owner: Optional[str] = None
    deadline: Optional[str] = None
    evidence_excerpt: Optional[str] = None


class SkillAnalysis(FrozenSchema):
    skill_id: str
    risk_tier: RiskTier
    items: Tuple[AnalysisItem, ...] = ()
    summary: str
    signer_count: int = Field(default=1, ge=1)
    approver_roles: Tuple[str, ...] = ()


class Skill(Protocol):
    """Protocol for skill implementations."""

    skill_id: str
    display_name: str
    input_type: SkillInputType
    allowed_scopes: Tuple[PermissionDomain, ...]

    async def observe(self, skill_input: SkillInput) -> SkillObservation: ...

    async def analyze(self, observation: SkillObservation) -> SkillAnalysis: ...

    async def generate_proposal(self, analysis: SkillAnalysis) -> ProposalPack: ...


# ---------------------------------------------------------------------------
# Keyword extraction
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeywordRule:
    """A group of phrases that, when found, yield one signal."""

    label: str
    category: SignalCategory
    confidence: float
    keywords: Tuple[str, ...]


def find_phrase(text: str, phrase: str) -> Optional[re.Match[str]]:
    """Case-insensitive whole-phrase search that also accepts a plural suffix."""
    pattern = r"(?<!\w)" + re.escape(phrase) + r"(?:e?s)?(?!\w)"
    return re.search(pattern, text, flags=re.IGNORECASE)


def extract_context(text: str, start: int, end: int, *, radius: int = 40) -> str:
    """Return the match plus up to ``radius`` characters either side, trimmed."""
    lo = max(0, start - radius)
    hi = min(len(text), end + radius)
    return text[lo:hi].strip()


def dedupe_signals(signals: Iterable[Signal]) -> List[Signal]:
    """Keep the first signal per label, preserving order."""
    seen: set[str] = set()
    out: List[Signal] = []
    for s in signals:
        if s.label in seen:
            continue
        seen.add(s.label)
        out.append(s)
    return out


def scan_rules(text: str, rules: Sequence[KeywordRule], *, radius: int = 40) -> Tuple[List[Signal], List[str]]:
    """
    Apply keyword rules to ``text``.

    Every matching phrase produces a signal carrying its surrounding context
    as the excerpt. Signals are returned de-duplicated by label; the excerpt
    list keeps every hit.
    """
    signals: List[Signal] = []
    excerpts: List[str] = []
    for rule in rules:
        for kw in rule.keywords:
            m = find_phrase(text, kw)
            if m is None:
                continue
            ctx = extract_context(text, m.start(), m.end(), radius=radius)
            signals.append(Signal(label=rule.label, category=rule.category, confidence=rule.confidence, excerpt=ctx))
            excerpts.append(ctx)
    return dedupe_signals(signals), excerpts


class KeywordSkill:
    """Shared ``observe`` implementation for text-scanning skills.

    Two modes are supported, mirroring the structured planner:

    - ``model=None``: deterministic keyword extraction using ``rules``.
    - ``model!=None``: a Pydantic AI agent extracts ``Signal`` values. Only
      categories listed in ``categories`` are kept.

    In both modes an empty result is replaced by the skill's fallback signal.
    """

    skill_id: str = ""
    rules: Tuple[KeywordRule, ...] = ()
    fallback: Signal = Signal(label="Informational message", category=SignalCategory.informational, confidence=0.6)
    context_radius: int = 40
    prompt_subject: str = "the text"

    def __init__(self, *, model: Any | None = None) -> None:
        self._model = model

    @property
    def categories(self) -> Tuple[SignalCategory, ...]:
        return tuple(dict.fromkeys(r.category for r in self.rules))

    async def observe(self, skill_input: SkillInput) -> SkillObservation:
        text = skill_input.text_content
        if self._model is None:
            signals, excerpts = scan_rules(text, self.rules, radius=self.context_radius)
        else:
            signals = await self._extract_with_model(text)
            excerpts = [s.excerpt for s in signals if s.excerpt]
        if not signals:
            signals = [self.fallback]
        return SkillObservation(skill_id=self.skill_id, signals=tuple(signals), raw_excerpts=tuple(excerpts))

    async def _extract_with_model(self, text: str) -> List[Signal]:
        allowed = self.categories
        agent: Agent = Agent(
            self._model,
            output_type=List[Signal],
            system_prompt=(
                "You extract structured signals from user-supplied text for a review workflow. "
                "Never propose to perform any action. Return only JSON signals."
            ),
        )
        try:
            result = await agent.run(
                (
                    f"Extract signals from {self.prompt_subject}. "
                    f"Allowed categories: {', '.join(c.value for c in allowed)}.\n\n"
                    f"{text}\n"
                )
            )
        except Exception as e:
            logger.warning(f"Signal extraction failed for skill '{self.skill_id}': {e}")
            raise ClassificationFailure(str(e) or "classification failed") from e
        signals = [s for s in result.output if s.category in allowed]
        return dedupe_signals(signals)
