"""
Clinical Analysis Layer - Base Types

Data contracts produced by the scorer, the risk stratifier and the
treatment decision generator. All probabilities are percentages (0–100).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from fertility_insight.core.knowledge import EvidenceLevel

MAX_CANDIDATE_PROBABILITY = 95.0
SIGNIFICANCE_THRESHOLD = 5.0
DIFFERENTIAL_SIZE = 3


class RiskLevel(str, Enum):
    """
    Coarse risk tier.

    LOW       – routine work-up and time-limited expectant management
    MODERATE  – expedite work-up
    HIGH      – move directly to assisted reproduction
    CRITICAL  – urgent escalation, time is the dominant factor
    """
    LOW      = "low"
    MODERATE = "moderate"
    HIGH     = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class DiagnosticCandidate:
    """One scored pathology. ``evidence`` keeps rule match order."""
    pathology_id: str
    probability: float
    evidence: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pathology_id": self.pathology_id,
            "probability": self.probability,
            "evidence": list(self.evidence),
        }


@dataclass(frozen=True)
class PrimaryDiagnosis:
    pathology_id: str
    name: str
    confidence: float
    evidence_level: EvidenceLevel
    justification: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pathology_id": self.pathology_id,
            "name": self.name,
            "confidence": self.confidence,
            "evidence_level": self.evidence_level.value,
            "justification": list(self.justification),
        }


@dataclass(frozen=True)
class RiskStratification:
    level: RiskLevel
    score: int
    contributing_factors: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "score": self.score,
            "contributing_factors": list(self.contributing_factors),
        }


@dataclass(frozen=True)
class TreatmentOption:
    """One line of the treatment plan."""
    treatment_id: str
    treatment: str
    success_probability: float
    timeframe: str
    rationale: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "treatment_id": self.treatment_id,
            "treatment": self.treatment,
            "success_probability": self.success_probability,
            "timeframe": self.timeframe,
            "rationale": self.rationale,
        }


@dataclass(frozen=True)
class TreatmentDecisionTree:
    first_line: TreatmentOption
    second_line: TreatmentOption
    third_line: TreatmentOption
    category: str = "default"
    urgent_override: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "first_line": self.first_line.to_dict(),
            "second_line": self.second_line.to_dict(),
            "third_line": self.third_line.to_dict(),
            "category": self.category,
            "urgent_override": self.urgent_override,
        }


@dataclass
class ClinicalAnalysisResult:
    """
    Assembled output of one pipeline run.

    ``risk_stratification`` / ``treatment_decision_tree`` may be None only
    when the caller allowed partial results and that component failed.
    """
    primary_diagnosis: PrimaryDiagnosis
    differential_diagnoses: List[DiagnosticCandidate] = field(default_factory=list)
    risk_stratification: Optional[RiskStratification] = None
    treatment_decision_tree: Optional[TreatmentDecisionTree] = None
    success_rates: List[Any] = field(default_factory=list)   # List[SuccessRateEstimate]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_diagnosis": self.primary_diagnosis.to_dict(),
            "differential_diagnoses": [c.to_dict() for c in self.differential_diagnoses],
            "risk_stratification": (
                self.risk_stratification.to_dict() if self.risk_stratification else None
            ),
            "treatment_decision_tree": (
                self.treatment_decision_tree.to_dict() if self.treatment_decision_tree else None
            ),
            "success_rates": [s.to_dict() for s in self.success_rates],
        }
