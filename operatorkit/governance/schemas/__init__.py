"""Schemas and DTOs for the governance core."""

from .domain import (
    ApprovalRequirement,
    ApprovalSession,
    BlastRadius,
    Decision,
    EvidenceCitation,
    EvidenceEvent,
    EvidenceEventType,
    ExecutionStep,
    PermissionScope,
    ProposalPack,
    ReversibilityClass,
    RiskAnalysis,
    RiskTier,
    SessionState,
)

__all__ = [
    "ApprovalRequirement",
    "ApprovalSession",
    "BlastRadius",
    "Decision",
    "EvidenceCitation",
    "EvidenceEvent",
    "EvidenceEventType",
    "ExecutionStep",
    "PermissionScope",
    "ProposalPack",
    "ReversibilityClass",
    "RiskAnalysis",
    "RiskTier",
    "SessionState",
]
