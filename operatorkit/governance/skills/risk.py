"""Deterministic risk classification helpers.

Every function here is a pure mapping from structured values (risk tiers,
reversibility classes) to scores and approval requirements. Skills use them
after analysis so that identical observations always produce identical
classifications, regardless of how the observation was produced.
"""

from __future__ import annotations

from typing import Iterable

from ..schemas.domain import (
    ApprovalRequirement,
    BlastRadius,
    ReversibilityClass,
    RiskAnalysis,
    RiskTier,
)

_ORDER = {RiskTier.low: 0, RiskTier.medium: 1, RiskTier.high: 2, RiskTier.critical: 3}

_SCORE_ESTIMATE = {RiskTier.low: 10, RiskTier.medium: 35, RiskTier.high: 65, RiskTier.critical: 90}

_REVERSIBILITY_MODIFIER = {
    ReversibilityClass.reversible: 0,
    ReversibilityClass.partially_reversible: 15,
    ReversibilityClass.irreversible: 30,
}

_SIGNER_QUORUM = {RiskTier.low: 1, RiskTier.medium: 1, RiskTier.high: 2, RiskTier.critical: 3}

CRITICAL_COOLDOWN_SECONDS = 30


def risk_ge(a: RiskTier, b: RiskTier) -> bool:
    """Check if risk tier 'a' is greater than or equal to 'b'."""
    return _ORDER[a] >= _ORDER[b]


def max_tier(tiers: Iterable[RiskTier], *, default: RiskTier = RiskTier.low) -> RiskTier:
    """Return the highest tier in ``tiers`` (``default`` when empty)."""
    out = default
    for tier in tiers:
        if _ORDER[tier] > _ORDER[out]:
            out = tier
    return out


def score_estimate(tier: RiskTier) -> int:
    return _SCORE_ESTIMATE[tier]


def tier_for_score(score: int) -> RiskTier:
    """Map a 0-100 risk score onto a tier (0-20 low, 21-50 medium, 51-75 high, 76+ critical)."""
    if score <= 20:
        return RiskTier.low
    if score <= 50:
        return RiskTier.medium
    if score <= 75:
        return RiskTier.high
    return RiskTier.critical


def signer_quorum(tier: RiskTier) -> int:
    return _SIGNER_QUORUM[tier]


def blast_radius_for(tier: RiskTier) -> BlastRadius:
    if tier == RiskTier.critical:
        return BlastRadius.multi_recipient
    if tier == RiskTier.high:
        return BlastRadius.single_recipient
    return BlastRadius.self_only


def approval_requirement_for(tier: RiskTier, *, signer_count: int = 1) -> ApprovalRequirement:
    """
    Build the approval descriptor for a proposal of the given tier.

    Biometric confirmation is required from ``high`` upwards; ``critical``
    proposals additionally carry a cooldown before they can be approved.
    """
    return ApprovalRequirement(
        signer_count=signer_count,
        requires_biometric=risk_ge(tier, RiskTier.high),
        requires_preview=True,
        cooldown_seconds=CRITICAL_COOLDOWN_SECONDS if tier == RiskTier.critical else 0,
    )


def build_risk_analysis(
    tier: RiskTier,
    *,
    reversibility: ReversibilityClass = ReversibilityClass.reversible,
    blast_radius: BlastRadius | None = None,
    reasons: Iterable[str] = (),
) -> RiskAnalysis:
    """
    Combine a signal-derived tier with the action's reversibility.

    The score starts from the tier's estimate and is raised by the
    reversibility modifier; the resulting consequence tier is never lower
    than the input tier.
    """
    score = min(100, score_estimate(tier) + _REVERSIBILITY_MODIFIER[reversibility])
    consequence = max_tier((tier, tier_for_score(score)))
    return RiskAnalysis(
        risk_score=score,
        consequence_tier=consequence,
        reversibility_class=reversibility,
        blast_radius=blast_radius if blast_radius is not None else blast_radius_for(consequence),
        reasons=tuple(reasons),
    )
