"""Skills: free text in, advisory proposal packs out."""

from .base import (
    AnalysisItem,
    KeywordRule,
    KeywordSkill,
    Signal,
    SignalCategory,
    Skill,
    SkillAnalysis,
    SkillInput,
    SkillInputType,
    SkillObservation,
)
from .builtin import ApprovalRouterSkill, InboxTriageSkill, MeetingActionSkill
from .registry import SkillRegistry
from .runner import SkillRunner

__all__ = [
    "AnalysisItem",
    "ApprovalRouterSkill",
    "InboxTriageSkill",
    "KeywordRule",
    "KeywordSkill",
    "MeetingActionSkill",
    "Signal",
    "SignalCategory",
    "Skill",
    "SkillAnalysis",
    "SkillInput",
    "SkillInputType",
    "SkillObservation",
    "SkillRegistry",
    "SkillRunner",
]
