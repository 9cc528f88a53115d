"""
Knowledge Base - Record Types

Read-only lookup records supplied to the pipeline at process start.
The pipeline never mutates them; a whole KnowledgeBase may be swapped
between runs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from fertility_insight.utils.exceptions import KnowledgeBaseError


class EvidenceLevel(str, Enum):
    """
    Strength of the literature behind a pathology or treatment fact.

    A – consistent randomised / meta-analytic evidence
    B – limited or cohort evidence
    C – expert consensus, case series
    D – extrapolated / low quality
    """
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class PathologyCategory(str, Enum):
    FEMALE = "female"
    MALE = "male"
    COUPLE = "couple"
    UNEXPLAINED = "unexplained"


class TreatmentLevel(str, Enum):
    """Escalating complexity tiers of reproductive treatment."""
    LEVEL1 = "level1"   # low complexity: lifestyle, ovulation induction
    LEVEL2 = "level2"   # intrauterine insemination
    LEVEL3 = "level3"   # IVF / ICSI / donation


@dataclass(frozen=True)
class PathologyRecord:
    """
    One pathology definition.

    ``prevalence_range`` is a fraction of the infertile population
    (e.g. ``(0.05, 0.10)``), never a percentage.
    """
    id: str
    name: str
    category: PathologyCategory
    prevalence_range: Tuple[float, float]
    evidence_level: EvidenceLevel
    definition: str = ""
    symptoms: Tuple[str, ...] = ()
    risk_factors: Tuple[str, ...] = ()
    references: Tuple[str, ...] = ()

    @property
    def prevalence_midpoint(self) -> float:
        low, high = self.prevalence_range
        return (low + high) / 2.0


@dataclass(frozen=True)
class TreatmentProtocolRecord:
    """One treatment protocol with its literature-backed headline numbers."""
    id: str
    name: str
    level: TreatmentLevel
    complexity: str
    success_rate_per_cycle: str
    cumulative_success: str
    time_to_success: str
    evidence_level: EvidenceLevel
    guidelines: Tuple[str, ...] = ()
    indications: Tuple[str, ...] = ()
    contraindications: Tuple[str, ...] = ()


@dataclass(frozen=True)
class KnowledgeBase:
    """
    The two read-only tables consumed by the pipeline.

    Iteration order of ``pathologies`` is significant: the diagnostic
    scorer breaks probability ties by table order.
    """
    pathologies: Tuple[PathologyRecord, ...]
    treatments: Tuple[TreatmentProtocolRecord, ...]
    version: str = "unversioned"
    _pathology_index: Dict[str, PathologyRecord] = field(init=False, repr=False, compare=False)
    _treatment_index: Dict[str, TreatmentProtocolRecord] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "pathologies", tuple(self.pathologies))
        object.__setattr__(self, "treatments", tuple(self.treatments))
        object.__setattr__(self, "_pathology_index", {p.id: p for p in self.pathologies})
        object.__setattr__(self, "_treatment_index", {t.id: t for t in self.treatments})
        if len(self._pathology_index) != len(self.pathologies):
            raise KnowledgeBaseError("Duplicate pathology id in table", table="pathologies")
        if len(self._treatment_index) != len(self.treatments):
            raise KnowledgeBaseError("Duplicate treatment id in table", table="treatments")

    def pathology(self, pathology_id: str) -> PathologyRecord:
        try:
            return self._pathology_index[pathology_id]
        except KeyError:
            raise KnowledgeBaseError(
                f"Unknown pathology id: {pathology_id}",
                table="pathologies",
                details={"id": pathology_id},
            ) from None

    def find_pathology(self, pathology_id: str) -> Optional[PathologyRecord]:
        return self._pathology_index.get(pathology_id)

    def treatment(self, treatment_id: str) -> TreatmentProtocolRecord:
        try:
            return self._treatment_index[treatment_id]
        except KeyError:
            raise KnowledgeBaseError(
                f"Unknown treatment id: {treatment_id}",
                table="treatments",
                details={"id": treatment_id},
            ) from None

    @classmethod
    def from_records(
        cls,
        pathologies: Iterable[PathologyRecord],
        treatments: Iterable[TreatmentProtocolRecord],
        version: str = "unversioned",
    ) -> "KnowledgeBase":
        return cls(pathologies=tuple(pathologies), treatments=tuple(treatments), version=version)
