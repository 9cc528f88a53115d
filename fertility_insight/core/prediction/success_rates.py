"""
Success-Rate Predictor

Per-technique conception probabilities from age-bracketed base rates,
adjusted by independent multiplicative sub-factors:

    per_cycle = clamp(base × Π(sub-factors), floor[technique], 0.90)

Sub-factors (each a clamped table lookup):
  - age impact        1.00 at ≤30, stepping down to 0.70 above 40
  - ovarian reserve   0.65 – 1.15 by AMH band
  - BMI curve         0.65 – 1.00, U-shaped around 18.5 – 25
  - male factor       0.65 – 1.00 by count of abnormal semen parameters
  - endometriosis     0.62 – 0.95 by stage, only when diagnosed

Donor egg is reported only when an indication rule fires.

References:
  - SART National Summary Report 2022 (age-bracket live-birth rates)
  - ESHRE ART fact sheet 2023
  - WHO Laboratory Manual 2021 (semen reference limits)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from fertility_insight.core.clinical.base import RiskLevel
from fertility_insight.core.knowledge import KnowledgeBase
from fertility_insight.core.knowledge import pathologies as p
from fertility_insight.core.knowledge import treatments as t
from fertility_insight.core.validation import PatientProfile
from fertility_insight.utils import get_logger
from .base import SuccessRateEstimate

logger = get_logger(__name__)

# ── Age brackets: <30, 30-34, 35-39, 40-42, >42 ─────────────────────────────
AGE_BRACKET_BOUNDS = np.array([30, 35, 40, 43])
AGE_BRACKET_LABELS = ("<30", "30-34", "35-39", "40-42", ">42")

MAX_PER_CYCLE = 0.90
FALLBACK_CONFIDENCE = 50.0

# ── Donor-egg indication ─────────────────────────────────────────────────────
DONOR_AGE = 43
DONOR_AMH = 0.3
DONOR_FSH = 20.0


@dataclass(frozen=True)
class Technique:
    """Static definition of one assisted-reproduction technique."""
    id: str
    name: str
    base_rates: Tuple[float, ...]        # per age bracket, fraction
    base_confidence: Tuple[float, ...]   # per age bracket, percent
    floor: float
    factors: Tuple[str, ...]             # sub-factors that apply


# Definition order is the tie-break order of the output list
TECHNIQUES: Tuple[Technique, ...] = (
    Technique(
        id=t.IUI,
        name="Intrauterine insemination (IUI)",
        base_rates=(0.12, 0.10, 0.08, 0.05, 0.03),
        base_confidence=(85.0, 85.0, 80.0, 75.0, 70.0),
        floor=0.01,
        factors=("age", "ovarian_reserve", "bmi", "male_factor", "endometriosis"),
    ),
    Technique(
        id=t.IVF,
        name="In-vitro fertilization (IVF)",
        base_rates=(0.45, 0.38, 0.30, 0.20, 0.08),
        base_confidence=(90.0, 90.0, 88.0, 85.0, 80.0),
        floor=0.05,
        factors=("age", "ovarian_reserve", "bmi", "male_factor", "endometriosis"),
    ),
    Technique(
        id=t.FET,
        name="Frozen embryo transfer (FET)",
        base_rates=(0.42, 0.35, 0.28, 0.18, 0.06),
        base_confidence=(88.0, 88.0, 85.0, 80.0, 75.0),
        floor=0.03,
        factors=("age", "bmi", "endometriosis"),
    ),
    Technique(
        id=t.EGG_DONATION,
        name="Donor egg IVF",
        base_rates=(0.55, 0.55, 0.55, 0.55, 0.55),
        base_confidence=(90.0, 90.0, 90.0, 90.0, 90.0),
        floor=0.05,
        factors=("bmi", "endometriosis"),
    ),
)

# ── Sub-factor tables ────────────────────────────────────────────────────────
# Age impact: ≤30 | 31-34 | 35-37 | 38-40 | >40
_AGE_IMPACT_BOUNDS = np.array([31, 35, 38, 41])
_AGE_IMPACT = np.array([1.00, 0.95, 0.88, 0.80, 0.70])

# AMH (ng/ml): <0.3 | <0.5 | <1.0 | <2.5 | ≥2.5
_AMH_BOUNDS = np.array([0.3, 0.5, 1.0, 2.5])
_AMH_FACTOR = np.array([0.65, 0.75, 0.85, 1.00, 1.15])

# BMI: <17 | <18.5 | <25 | <30 | <35 | <40 | ≥40
_BMI_BOUNDS = np.array([17.0, 18.5, 25.0, 30.0, 35.0, 40.0])
_BMI_FACTOR = np.array([0.75, 0.85, 1.00, 0.90, 0.80, 0.72, 0.65])

# Abnormal semen parameters: 0 | 1 | 2 | 3
_MALE_FACTOR = np.array([1.00, 0.85, 0.75, 0.65])

# rASRM stage → factor; unknown stage uses the stage II value
_ENDOMETRIOSIS_FACTOR = {1: 0.95, 2: 0.88, 3: 0.75, 4: 0.62}
_ENDOMETRIOSIS_UNSTAGED = 0.88


def age_bracket(age: int) -> int:
    """Index into AGE_BRACKET_LABELS."""
    return int(np.digitize(age, AGE_BRACKET_BOUNDS))


def donor_egg_indicated(profile: PatientProfile, risk_level: Optional[RiskLevel] = None) -> bool:
    if profile.age >= DONOR_AGE:
        return True
    if profile.amh is not None and profile.amh < DONOR_AMH:
        return True
    if profile.fsh is not None and profile.fsh > DONOR_FSH:
        return True
    return risk_level == RiskLevel.CRITICAL


class SuccessRatePredictor:
    """
    Computes SuccessRateEstimates for every applicable technique.

    Stateless, safe to call from multiple threads / concurrent requests.
    """

    def __init__(self, techniques: Tuple[Technique, ...] = TECHNIQUES):
        self._techniques = techniques

    # ------------------------------------------------------------------
    # Sub-factors
    # ------------------------------------------------------------------

    @staticmethod
    def age_factor(profile: PatientProfile) -> float:
        return float(_AGE_IMPACT[np.digitize(profile.age, _AGE_IMPACT_BOUNDS)])

    @staticmethod
    def ovarian_reserve_factor(profile: PatientProfile) -> float:
        if profile.amh is None:
            return 1.0
        return float(_AMH_FACTOR[np.digitize(profile.amh, _AMH_BOUNDS)])

    @staticmethod
    def bmi_factor(profile: PatientProfile) -> float:
        if profile.bmi is None:
            return 1.0
        return float(_BMI_FACTOR[np.digitize(profile.bmi, _BMI_BOUNDS)])

    @staticmethod
    def male_factor(profile: PatientProfile) -> float:
        if profile.partner is None:
            return 1.0
        count = min(profile.partner.abnormal_parameter_count, len(_MALE_FACTOR) - 1)
        return float(_MALE_FACTOR[count])

    @staticmethod
    def endometriosis_factor(profile: PatientProfile, primary_pathology_id: Optional[str] = None) -> float:
        if not profile.has_endometriosis and primary_pathology_id != p.ENDOMETRIOSIS:
            return 1.0
        if profile.endometriosis_stage is None:
            return _ENDOMETRIOSIS_UNSTAGED
        return _ENDOMETRIOSIS_FACTOR.get(profile.endometriosis_stage, _ENDOMETRIOSIS_UNSTAGED)

    def sub_factors(
        self,
        profile: PatientProfile,
        primary_pathology_id: Optional[str] = None,
    ) -> Dict[str, float]:
        return {
            "age": self.age_factor(profile),
            "ovarian_reserve": self.ovarian_reserve_factor(profile),
            "bmi": self.bmi_factor(profile),
            "male_factor": self.male_factor(profile),
            "endometriosis": self.endometriosis_factor(profile, primary_pathology_id),
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def predict(
        self,
        profile: PatientProfile,
        knowledge: KnowledgeBase,
        risk_level: Optional[RiskLevel] = None,
        primary_pathology_id: Optional[str] = None,
    ) -> List[SuccessRateEstimate]:
        """
        Estimate per-technique success rates.

        Returns:
            Estimates sorted by per-cycle probability, highest first;
            equal probabilities keep technique definition order.

        Raises:
            KnowledgeBaseError: a technique has no protocol record.
        """
        bracket = age_bracket(profile.age)
        all_factors = self.sub_factors(profile, primary_pathology_id)
        include_donor = donor_egg_indicated(profile, risk_level)

        estimates: List[SuccessRateEstimate] = []
        for technique in self._applicable(include_donor):
            factors = {name: all_factors[name] for name in technique.factors}
            adjustment = float(np.prod(list(factors.values()))) if factors else 1.0
            base = technique.base_rates[bracket]
            rate = float(np.clip(base * adjustment, technique.floor, MAX_PER_CYCLE))
            confidence = technique.base_confidence[bracket] * min(1.0, adjustment)
            estimates.append(self._estimate(technique, rate, confidence, factors, adjustment,
                                            profile, knowledge))

        estimates.sort(key=lambda e: -e.per_cycle_probability)
        logger.debug(
            f"SuccessRatePredictor: {len(estimates)} technique(s), "
            f"bracket={AGE_BRACKET_LABELS[bracket]}, donor={include_donor}"
        )
        return estimates

    def fallback_estimates(
        self,
        profile: PatientProfile,
        knowledge: KnowledgeBase,
        risk_level: Optional[RiskLevel] = None,
    ) -> List[SuccessRateEstimate]:
        """Unadjusted base rates at 50% confidence; the safe default on failure."""
        bracket = age_bracket(profile.age)
        estimates = [
            self._estimate(technique, technique.base_rates[bracket], FALLBACK_CONFIDENCE, {}, 1.0,
                           profile, knowledge)
            for technique in self._applicable(donor_egg_indicated(profile, risk_level))
        ]
        estimates.sort(key=lambda e: -e.per_cycle_probability)
        return estimates

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _applicable(self, include_donor: bool) -> List[Technique]:
        return [
            technique for technique in self._techniques
            if include_donor or technique.id != t.EGG_DONATION
        ]

    def _estimate(
        self,
        technique: Technique,
        rate: float,
        confidence: float,
        factors: Dict[str, float],
        adjustment: float,
        profile: PatientProfile,
        knowledge: KnowledgeBase,
    ) -> SuccessRateEstimate:
        record = knowledge.treatment(technique.id)
        return SuccessRateEstimate(
            technique_id=technique.id,
            technique=technique.name,
            per_cycle_probability=round(rate * 100.0, 2),
            confidence=round(confidence, 1),
            evidence_level=record.evidence_level,
            guideline_refs=record.guidelines,
            factors={name: round(value, 4) for name, value in factors.items()},
            adjustment=round(adjustment, 4),
            recommendation=self._recommendation(technique.id, rate, profile.age),
            cost_effectiveness=self._cost_effectiveness(technique.id, rate),
        )

    @staticmethod
    def _recommendation(technique_id: str, rate: float, age: int) -> str:
        if technique_id == t.IUI:
            if rate < 0.05:
                return "IUI not recommended, consider proceeding directly to IVF"
            if age >= 38:
                return "Maximum of 3 IUI cycles before moving to IVF"
            if rate > 0.10:
                return "Valid option, attempt 3-6 cycles"
            return "Consider after lifestyle optimisation"
        if technique_id == t.IVF:
            if age >= 40:
                return "First-line option due to age"
            if rate > 0.30:
                return "Excellent prognosis, high probability of success"
            if rate > 0.20:
                return "Good prognosis, recommended option"
            return "Available option, discuss alternatives"
        if technique_id == t.FET:
            return "Option when good-quality frozen embryos are available"
        if technique_id == t.EGG_DONATION:
            return "Excellent option when oocyte quality is the limiting factor"
        return ""

    @staticmethod
    def _cost_effectiveness(technique_id: str, rate: float) -> str:
        if technique_id == t.IUI:
            return "high" if rate > 0.08 else "medium" if rate > 0.05 else "low"
        if technique_id == t.IVF:
            return "high" if rate > 0.25 else "medium" if rate > 0.15 else "low"
        if technique_id == t.FET:
            return "high" if rate > 0.20 else "medium"
        return "high"
