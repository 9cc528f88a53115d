"""
Risk Stratifier

Weighted rule addition over age, infertility duration, AMH and the
primary diagnosis. The score maps onto four tiers.
"""
from __future__ import annotations

from fertility_insight.core.knowledge.pathologies import DIMINISHED_OVARIAN_RESERVE
from fertility_insight.core.validation import PatientProfile
from .base import RiskLevel, RiskStratification

# ── Tier cut-offs (score ≥ cut-off) ──────────────────────────────────────────
CRITICAL_SCORE = 70
HIGH_SCORE = 50
MODERATE_SCORE = 30


def tier_for_score(score: int) -> RiskLevel:
    if score >= CRITICAL_SCORE:
        return RiskLevel.CRITICAL
    if score >= HIGH_SCORE:
        return RiskLevel.HIGH
    if score >= MODERATE_SCORE:
        return RiskLevel.MODERATE
    return RiskLevel.LOW


class RiskStratifier:
    """Stateless, safe to share across threads."""

    def stratify(self, profile: PatientProfile, primary_pathology_id: str) -> RiskStratification:
        score = 0
        factors = []

        if profile.age >= 40:
            score += 30
            factors.append(f"Age {profile.age} (≥40)")
        elif profile.age >= 35:
            score += 15
            factors.append(f"Age {profile.age} (35-39)")

        duration = profile.infertility_duration_months
        if duration >= 24:
            score += 20
            factors.append(f"Infertility duration {duration:g} months (≥24)")
        elif duration >= 12:
            score += 10
            factors.append(f"Infertility duration {duration:g} months (≥12)")

        amh = profile.amh
        if amh is not None:
            if amh < 0.5:
                score += 25
                factors.append(f"AMH {amh:g} ng/ml (<0.5)")
            elif amh < 1.0:
                score += 15
                factors.append(f"AMH {amh:g} ng/ml (<1.0)")

        if DIMINISHED_OVARIAN_RESERVE in primary_pathology_id:
            score += 20
            factors.append("Primary diagnosis: diminished ovarian reserve")

        return RiskStratification(
            level=tier_for_score(score),
            score=score,
            contributing_factors=tuple(factors),
        )
