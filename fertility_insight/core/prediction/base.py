"""
Success-Rate Prediction - Base Types
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from fertility_insight.core.knowledge import EvidenceLevel


@dataclass(frozen=True)
class SuccessRateEstimate:
    """
    Conception probability for one technique.

    ``per_cycle_probability`` and ``confidence`` are percentages (0–100).
    ``factors`` holds the multiplicative sub-factors that produced the
    adjustment, keyed by factor name.
    """
    technique_id: str
    technique: str
    per_cycle_probability: float
    confidence: float
    evidence_level: EvidenceLevel
    guideline_refs: Tuple[str, ...] = ()
    factors: Dict[str, float] = field(default_factory=dict, compare=False, hash=False)
    adjustment: float = 1.0
    recommendation: str = ""
    cost_effectiveness: str = "medium"   # high | medium | low

    def cumulative_probability(self, n_cycles: int) -> float:
        """
        Probability of at least one success in ``n_cycles`` attempts.

        Treats cycles as independent: 1 − (1 − p)^n. This is a modelling
        simplification, not a clinical guarantee.
        """
        if n_cycles < 1:
            raise ValueError("n_cycles must be >= 1")
        p = self.per_cycle_probability / 100.0
        return 100.0 * (1.0 - (1.0 - p) ** n_cycles)

    def to_dict(self, cycles: int = 3) -> Dict[str, Any]:
        return {
            "technique_id": self.technique_id,
            "technique": self.technique,
            "per_cycle_probability": self.per_cycle_probability,
            "cumulative_probability": {
                str(n): round(self.cumulative_probability(n), 2) for n in range(1, cycles + 1)
            },
            "confidence": self.confidence,
            "evidence_level": self.evidence_level.value,
            "guideline_refs": list(self.guideline_refs),
            "factors": dict(self.factors),
            "adjustment": self.adjustment,
            "recommendation": self.recommendation,
            "cost_effectiveness": self.cost_effectiveness,
        }
