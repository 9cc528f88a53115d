"""
Normalized Patient Profile

The immutable, range-clamped record every analysis component consumes.
Produced only by PatientInputValidator.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional

# WHO 2021 lower reference limits used to count abnormal semen parameters
SPERM_CONCENTRATION_LOW = 15.0   # million/ml
SPERM_MOTILITY_LOW = 40.0        # % total motility
SPERM_MORPHOLOGY_LOW = 4.0       # % normal forms


@dataclass(frozen=True)
class PartnerProfile:
    """Male partner semen analysis (all optional)."""
    concentration: Optional[float] = None
    motility: Optional[float] = None
    morphology: Optional[float] = None
    volume: Optional[float] = None
    age: Optional[int] = None

    @property
    def abnormal_parameter_count(self) -> int:
        """Number of abnormal parameters among concentration, motility, morphology (0–3)."""
        count = 0
        if self.concentration is not None and self.concentration < SPERM_CONCENTRATION_LOW:
            count += 1
        if self.motility is not None and self.motility < SPERM_MOTILITY_LOW:
            count += 1
        if self.morphology is not None and self.morphology < SPERM_MORPHOLOGY_LOW:
            count += 1
        return count

    def semen_metrics(self) -> Dict[str, Optional[float]]:
        return {
            "concentration": self.concentration,
            "motility": self.motility,
            "morphology": self.morphology,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class DerivedRiskFactors:
    """Coarse buckets derived during enrichment."""
    age_risk: str = "low"                   # low | moderate | high
    bmi_risk: str = "unknown"               # underweight | normal | overweight | obese | unknown
    ovarian_reserve_risk: str = "unknown"   # low | normal | high | unknown
    time_urgency: str = "low"               # low | moderate | high

    def to_dict(self) -> Dict[str, str]:
        return {
            "age_risk": self.age_risk,
            "bmi_risk": self.bmi_risk,
            "ovarian_reserve_risk": self.ovarian_reserve_risk,
            "time_urgency": self.time_urgency,
        }


@dataclass(frozen=True)
class PatientProfile:
    """
    Validated patient record for a single pipeline run.

    Attributes:
        age:                          Years, 18–50.
        infertility_duration_months:  Months trying to conceive, 1–240.
        bmi:                          kg/m², 15–50, optional.
        lab_values:                   Read-only hormone-name → value mapping.
        symptoms:                     Normalized snake_case symptom tags.
        medical_history:              Normalized snake_case history tags.
        partner:                      Optional semen analysis.
        endometriosis_stage:          rASRM stage 1–4 when known.
        derived:                      Buckets computed during enrichment.
    """
    age: int
    infertility_duration_months: float
    bmi: Optional[float] = None
    lab_values: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    symptoms: FrozenSet[str] = frozenset()
    medical_history: FrozenSet[str] = frozenset()
    partner: Optional[PartnerProfile] = None
    endometriosis_stage: Optional[int] = None
    derived: DerivedRiskFactors = field(default_factory=DerivedRiskFactors)

    def __post_init__(self):
        if not isinstance(self.lab_values, MappingProxyType):
            object.__setattr__(self, "lab_values", MappingProxyType(dict(self.lab_values)))
        object.__setattr__(self, "symptoms", frozenset(self.symptoms))
        object.__setattr__(self, "medical_history", frozenset(self.medical_history))

    def lab(self, name: str) -> Optional[float]:
        return self.lab_values.get(name)

    @property
    def amh(self) -> Optional[float]:
        return self.lab_values.get("amh")

    @property
    def fsh(self) -> Optional[float]:
        return self.lab_values.get("fsh")

    @property
    def lh(self) -> Optional[float]:
        return self.lab_values.get("lh")

    @property
    def prolactin(self) -> Optional[float]:
        return self.lab_values.get("prolactin")

    @property
    def tsh(self) -> Optional[float]:
        return self.lab_values.get("tsh")

    @property
    def has_endometriosis(self) -> bool:
        return self.endometriosis_stage is not None or "endometriosis" in self.medical_history

    def to_dict(self) -> Dict[str, Any]:
        return {
            "age": self.age,
            "infertility_duration_months": self.infertility_duration_months,
            "bmi": self.bmi,
            "lab_values": dict(sorted(self.lab_values.items())),
            "symptoms": sorted(self.symptoms),
            "medical_history": sorted(self.medical_history),
            "partner": self.partner.semen_metrics() if self.partner else None,
            "endometriosis_stage": self.endometriosis_stage,
            "derived": self.derived.to_dict(),
        }
