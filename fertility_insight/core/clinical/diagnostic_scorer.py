"""
Diagnostic Scorer

Scores every pathology in the knowledge table against a PatientProfile
and returns a ranked differential.

Scoring model (additive):
  - base  = prevalence midpoint (fraction) × 10
  - bonus = fixed weight for each matching rule (age, symptom, lab, pattern)
  - final = clamp(base + Σ bonus, 0, 95)

Candidates at or below the significance threshold are discarded. Ranking
is a stable descending sort, so equal scores keep table order. When nothing
survives, a single "unexplained" candidate is synthesized.

Design principles:
  - Each rule function is pure: (profile, patterns) → List[(points, evidence)]
  - Thresholds are module-level constants so they can be reviewed / tuned
    without hunting through logic.
  - No randomness and no wall-clock reads: identical input → identical output.
"""
from __future__ import annotations

from typing import Callable, Dict, FrozenSet, List, Tuple

from fertility_insight.core.knowledge import EvidenceLevel, KnowledgeBase
from fertility_insight.core.knowledge import pathologies as p
from fertility_insight.core.validation import PatientProfile
from fertility_insight.utils import get_logger
from .base import (
    DIFFERENTIAL_SIZE,
    MAX_CANDIDATE_PROBABILITY,
    SIGNIFICANCE_THRESHOLD,
    DiagnosticCandidate,
    PrimaryDiagnosis,
)

logger = get_logger(__name__)

# ── Thresholds ───────────────────────────────────────────────────────────────
ADVANCED_MATERNAL_AGE = 35
PROLONGED_INFERTILITY_MONTHS = 12
LONG_STANDING_INFERTILITY_MONTHS = 24
BMI_UNDERWEIGHT = 18.5
BMI_OVERWEIGHT = 25.0
BMI_OBESE = 30.0
AMH_LOW = 1.0          # ng/ml
AMH_PCOS_HIGH = 4.0    # ng/ml
FSH_ELEVATED = 10.0    # IU/L
LH_FSH_RATIO_PCOS = 2.0
PROLACTIN_HIGH = 25.0  # ng/ml
TSH_HIGH = 4.5         # mIU/L

FALLBACK_CONFIDENCE = 60.0

# ── Tag groups ───────────────────────────────────────────────────────────────
MENSTRUAL_TAGS = frozenset({"irregular_periods", "irregular_cycles", "oligomenorrhea", "amenorrhea"})
ANDROGEN_TAGS = frozenset({"hirsutism", "acne", "androgenic_alopecia"})
PELVIC_PAIN_TAGS = frozenset({"dysmenorrhea", "dyspareunia", "pelvic_pain", "chronic_pelvic_pain"})
TUBAL_HISTORY_TAGS = frozenset({
    "pelvic_inflammatory_disease", "pelvic_surgery", "ectopic_pregnancy", "tubal_obstruction",
})

Rule = Callable[[PatientProfile, FrozenSet[str]], List[Tuple[float, str]]]


# ── Pattern flags ────────────────────────────────────────────────────────────

def derive_patterns(profile: PatientProfile) -> FrozenSet[str]:
    """Derived boolean flags shared by the pathology rules."""
    flags = set()
    tags = profile.symptoms | profile.medical_history

    if profile.age >= ADVANCED_MATERNAL_AGE:
        flags.add("advanced_maternal_age")
    if profile.infertility_duration_months >= PROLONGED_INFERTILITY_MONTHS:
        flags.add("prolonged_infertility")

    if profile.bmi is not None:
        if profile.bmi < BMI_UNDERWEIGHT:
            flags.add("underweight")
        if profile.bmi > BMI_OVERWEIGHT:
            flags.add("overweight")
        if profile.bmi > BMI_OBESE:
            flags.add("obesity")

    if tags & MENSTRUAL_TAGS:
        flags.add("menstrual_dysfunction")
    if tags & ANDROGEN_TAGS:
        flags.add("hyperandrogenism")
    if "galactorrhea" in tags:
        flags.add("hyperprolactinemia")
    if tags & PELVIC_PAIN_TAGS:
        flags.add("pelvic_pain")

    if profile.amh is not None and profile.amh < AMH_LOW:
        flags.add("diminished_ovarian_reserve")
    if profile.fsh is not None and profile.fsh > FSH_ELEVATED:
        flags.add("elevated_fsh")
    if profile.tsh is not None and profile.tsh > TSH_HIGH:
        flags.add("hypothyroid_pattern")
    if profile.partner is not None and profile.partner.abnormal_parameter_count >= 1:
        flags.add("male_factor")

    return frozenset(flags)


# ── Pathology rules ──────────────────────────────────────────────────────────

def _diminished_reserve_rules(profile: PatientProfile, patterns: FrozenSet[str]):
    hits = []
    if profile.age >= ADVANCED_MATERNAL_AGE:
        hits.append((30, f"Age {profile.age} years (≥{ADVANCED_MATERNAL_AGE})"))
    if "advanced_maternal_age" in patterns:
        hits.append((20, "Advanced maternal age pattern"))
    if "elevated_fsh" in patterns:
        hits.append((20, f"Elevated basal FSH ({profile.fsh:g} IU/L)"))
    if profile.amh is not None and profile.amh < AMH_LOW:
        hits.append((35, f"Low AMH ({profile.amh:g} ng/ml)"))
    return hits


def _pcos_rules(profile: PatientProfile, patterns: FrozenSet[str]):
    hits = []
    if "menstrual_dysfunction" in patterns:
        hits.append((25, "Menstrual dysfunction"))
    if "hyperandrogenism" in patterns:
        hits.append((25, "Clinical hyperandrogenism"))
    if "overweight" in patterns:
        hits.append((25, f"BMI {profile.bmi:g} above 25"))
    if profile.lh is not None and profile.fsh:
        ratio = profile.lh / profile.fsh
        if ratio > LH_FSH_RATIO_PCOS:
            hits.append((30, f"LH/FSH ratio {ratio:.1f} (>2)"))
    if profile.amh is not None and profile.amh > AMH_PCOS_HIGH:
        hits.append((15, f"High AMH ({profile.amh:g} ng/ml)"))
    return hits


def _endometriosis_rules(profile: PatientProfile, patterns: FrozenSet[str]):
    hits = []
    if "pelvic_pain" in patterns:
        hits.append((30, "Pelvic pain symptoms"))
    if profile.has_endometriosis:
        stage = f" stage {profile.endometriosis_stage}" if profile.endometriosis_stage else ""
        hits.append((40, f"Known endometriosis{stage}"))
    if profile.infertility_duration_months >= LONG_STANDING_INFERTILITY_MONTHS:
        hits.append((10, f"Infertility for {profile.infertility_duration_months:g} months"))
    return hits


def _male_factor_rules(profile: PatientProfile, patterns: FrozenSet[str]):
    hits = []
    if "male_factor" in patterns:
        hits.append((30, "Abnormal semen analysis"))
        if profile.partner.abnormal_parameter_count >= 2:
            hits.append((15, f"{profile.partner.abnormal_parameter_count} abnormal semen parameters"))
    return hits


def _ovulation_rules(profile: PatientProfile, patterns: FrozenSet[str]):
    hits = []
    if "menstrual_dysfunction" in patterns:
        hits.append((20, "Irregular or absent cycles"))
    if "underweight" in patterns:
        hits.append((15, "Low BMI"))
    if "obesity" in patterns:
        hits.append((15, "Obesity"))
    return hits


def _tubal_rules(profile: PatientProfile, patterns: FrozenSet[str]):
    matched = sorted(profile.medical_history & TUBAL_HISTORY_TAGS)
    if matched:
        return [(35, "History of " + ", ".join(matched))]
    return []


def _hyperprolactinemia_rules(profile: PatientProfile, patterns: FrozenSet[str]):
    hits = []
    if "hyperprolactinemia" in patterns:
        hits.append((40, "Galactorrhea"))
    if profile.prolactin is not None and profile.prolactin > PROLACTIN_HIGH:
        hits.append((35, f"Prolactin {profile.prolactin:g} ng/ml (>{PROLACTIN_HIGH:g})"))
    return hits


def _hypothyroidism_rules(profile: PatientProfile, patterns: FrozenSet[str]):
    hits = []
    if "hypothyroid_pattern" in patterns:
        hits.append((35, f"TSH {profile.tsh:g} mIU/L (>{TSH_HIGH:g})"))
    if "hypothyroidism" in profile.medical_history:
        hits.append((30, "History of hypothyroidism"))
    return hits


# Pathology id → rule function. Ids absent here score base prevalence only.
_PATHOLOGY_RULES: Dict[str, Rule] = {
    p.PCOS: _pcos_rules,
    p.ENDOMETRIOSIS: _endometriosis_rules,
    p.MALE_FACTOR: _male_factor_rules,
    p.DIMINISHED_OVARIAN_RESERVE: _diminished_reserve_rules,
    p.OVULATION_DISORDERS: _ovulation_rules,
    p.TUBAL_FACTOR: _tubal_rules,
    p.HYPERPROLACTINEMIA: _hyperprolactinemia_rules,
    p.HYPOTHYROIDISM: _hypothyroidism_rules,
}


class DiagnosticScorer:
    """
    Ranks pathologies for a profile.

    Stateless, safe to call from multiple threads / concurrent requests.
    """

    def patterns(self, profile: PatientProfile) -> FrozenSet[str]:
        return derive_patterns(profile)

    def score(self, profile: PatientProfile, knowledge: KnowledgeBase) -> List[DiagnosticCandidate]:
        """
        Score every pathology in ``knowledge``.

        Returns:
            Non-empty list sorted by probability, highest first.
        """
        patterns = derive_patterns(profile)
        candidates: List[DiagnosticCandidate] = []

        for record in knowledge.pathologies:
            total = record.prevalence_midpoint * 10
            evidence: List[str] = []
            rule = _PATHOLOGY_RULES.get(record.id)
            if rule is not None:
                for points, text in rule(profile, patterns):
                    total += points
                    evidence.append(text)

            probability = round(min(MAX_CANDIDATE_PROBABILITY, max(0.0, total)), 2)
            if probability > SIGNIFICANCE_THRESHOLD:
                candidates.append(DiagnosticCandidate(record.id, probability, tuple(evidence)))

        if not candidates:
            logger.debug("DiagnosticScorer: no significant candidate, using unexplained fallback")
            return [self.fallback_candidate()]

        # sorted() is stable: ties keep table order
        return sorted(candidates, key=lambda c: -c.probability)

    @staticmethod
    def fallback_candidate() -> DiagnosticCandidate:
        return DiagnosticCandidate(
            pathology_id=p.UNEXPLAINED,
            probability=FALLBACK_CONFIDENCE,
            evidence=("No pathology exceeded the significance threshold",),
        )

    def primary_diagnosis(
        self,
        candidates: List[DiagnosticCandidate],
        knowledge: KnowledgeBase,
    ) -> PrimaryDiagnosis:
        top = candidates[0]
        record = knowledge.find_pathology(top.pathology_id)
        if top.pathology_id == p.UNEXPLAINED or record is None:
            name = record.name if record is not None else "Unexplained Infertility"
            evidence_level = EvidenceLevel.C if top.pathology_id == p.UNEXPLAINED else EvidenceLevel.D
        else:
            name = record.name
            evidence_level = record.evidence_level
        return PrimaryDiagnosis(
            pathology_id=top.pathology_id,
            name=name,
            confidence=top.probability,
            evidence_level=evidence_level,
            justification=top.evidence,
        )

    def diagnose(
        self,
        profile: PatientProfile,
        knowledge: KnowledgeBase,
    ) -> Tuple[PrimaryDiagnosis, List[DiagnosticCandidate]]:
        """Score and split into (primary, up to three differentials)."""
        candidates = self.score(profile, knowledge)
        primary = self.primary_diagnosis(candidates, knowledge)
        return primary, candidates[1:1 + DIFFERENTIAL_SIZE]

    @staticmethod
    def unexplained_diagnosis(knowledge: KnowledgeBase) -> PrimaryDiagnosis:
        """Synthetic primary diagnosis used when scoring itself fails."""
        record = knowledge.find_pathology(p.UNEXPLAINED)
        return PrimaryDiagnosis(
            pathology_id=p.UNEXPLAINED,
            name=record.name if record is not None else "Unexplained Infertility",
            confidence=FALLBACK_CONFIDENCE,
            evidence_level=EvidenceLevel.C,
            justification=("Diagnostic scoring unavailable, defaulting to unexplained",),
        )
