"""Skill runner.

``SkillRunner`` is the single entry point that turns free text into a
``ProposalPack``:

1. validate the input (non-empty after trimming),
2. resolve the skill from the ``SkillRegistry``,
3. run ``observe -> analyze -> generate_proposal``,
4. store the proposal in the ``ProposalRepository``.

The runner never executes proposed steps and holds no writer dependency.
Failures are raised as ``SkillFailure`` subclasses:

- ``InputError`` for empty input or an unknown skill id,
- ``ClassificationFailure`` when the pipeline cannot produce a proposal.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..errors import ClassificationFailure, InputError, SkillFailure
from ..repos.interfaces import ProposalRepository
from ..schemas.domain import ProposalPack
from .base import SkillInput, SkillInputType
from .registry import SkillRegistry

logger = logging.getLogger(__name__)


class SkillRunner:
    def __init__(self, *, registry: SkillRegistry, proposals: ProposalRepository) -> None:
        self._registry = registry
        self._proposals = proposals

    @property
    def registry(self) -> SkillRegistry:
        return self._registry

    async def run(self, skill_id: str, text: str, *, input_type: SkillInputType | None = None) -> ProposalPack:
        """
        Run a skill over ``text`` and return the stored proposal.

        Args:
            skill_id: Registered skill id.
            text: Raw user input.
            input_type: Overrides the skill's default input type tag.

        Returns:
            The newly created, immutable ``ProposalPack``.

        Raises:
            InputError: ``text`` is empty after trimming, or ``skill_id`` is unknown.
            ClassificationFailure: The skill pipeline failed.
            StorageError: The proposal could not be stored.
        """
        if not (text or "").strip():
            raise InputError("empty input")
        if not self._registry.has(skill_id):
            raise InputError(f"unknown skill '{skill_id}'")

        skill = self._registry.get(skill_id)
        skill_input = SkillInput(input_type=input_type or skill.input_type, text_content=text)

        try:
            observation = await skill.observe(skill_input)
            analysis = await skill.analyze(observation)
            proposal = await skill.generate_proposal(analysis)
        except SkillFailure:
            raise
        except Exception as e:
            logger.warning(f"Skill '{skill_id}' failed to classify input: {e}")
            raise ClassificationFailure(str(e) or "classification failed") from e

        await self._proposals.create(proposal)
        logger.info(
            f"Skill '{skill_id}' produced proposal {proposal.id} "
            f"(risk={proposal.risk_tier.value}, steps={len(proposal.execution_steps)})"
        )
        return proposal

    async def get_proposal(self, proposal_id: str) -> Optional[ProposalPack]:
        return await self._proposals.get(proposal_id)
