"""Skill registry.

The registry maps a skill id (``inbox_triage``, ``meeting_actions``, ...) to
a skill implementation. ``SkillRunner`` resolves skills through it.
"""

from __future__ import annotations

from typing import Dict, List

from .base import Skill


class SkillRegistry:
    """
    In-memory mapping of skill ids to implementations.

    Notes:
        - ``register`` overwrites any existing mapping for the skill id.
        - ``get`` will raise ``KeyError`` if the skill is missing.
    """

    def __init__(self) -> None:
        self._skills: Dict[str, Skill] = {}

    def register(self, skill: Skill) -> None:
        self._skills[skill.skill_id] = skill

    def get(self, skill_id: str) -> Skill:
        """
        Retrieve a registered skill by id.

        Raises:
            KeyError: If no skill is registered with the given id.
        """
        return self._skills[skill_id]

    def has(self, skill_id: str) -> bool:
        return skill_id in self._skills

    def skill_ids(self) -> List[str]:
        return sorted(self._skills)
