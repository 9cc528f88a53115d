"""
Treatment Decision Generator

Finite lookup from diagnosis category to a three-line plan, with one
override: age ≥ 40 or a critical risk tier escalates the first line to
immediate IVF at a reduced (floored) success probability.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from fertility_insight.core.knowledge import KnowledgeBase
from fertility_insight.core.knowledge import pathologies as p
from fertility_insight.core.knowledge import treatments as t
from fertility_insight.utils import get_logger
from .base import RiskLevel, TreatmentDecisionTree, TreatmentOption

logger = get_logger(__name__)

URGENT_AGE = 40
URGENCY_PENALTY = 10
URGENCY_FLOOR = 15
IMMEDIATE_IVF = "immediate_ivf"

DEFAULT_CATEGORY = "default"
PCOS_CATEGORY = "pcos"
DIMINISHED_RESERVE_CATEGORY = "diminished_reserve"


@dataclass(frozen=True)
class _PlanLine:
    treatment_id: str
    label: str
    success_probability: float
    rationale: str
    timeframe: Optional[str] = None   # None → protocol table time_to_success


_DEFAULT_PLAN = (
    _PlanLine(t.TIMED_INTERCOURSE, "Lifestyle optimisation + timed attempts", 15,
              "Conservative initial approach", "3-6 months"),
    _PlanLine(t.OVULATION_INDUCTION, "Ovulation induction + IUI", 25,
              "Controlled ovarian stimulation"),
    _PlanLine(t.IVF, "IVF", 35, "Assisted reproduction technique"),
)

# Category → {line index: replacement}
_CATEGORY_OVERRIDES: Dict[str, Dict[int, _PlanLine]] = {
    PCOS_CATEGORY: {
        0: _PlanLine(t.METFORMIN_LETROZOLE, "Metformin + lifestyle + clomiphene", 25,
                     "Insulin resistance control + ovulation induction", "3-6 months"),
        1: _PlanLine(t.OVULATION_INDUCTION, "Letrozole + IUI", 30,
                     "Aromatase inhibitor more effective in PCOS"),
    },
    DIMINISHED_RESERVE_CATEGORY: {
        0: _PlanLine(t.MILD_IVF, "IVF with mild stimulation protocol", 20,
                     "Time limited by low ovarian reserve", "1-2 cycles"),
        2: _PlanLine(t.EGG_DONATION, "Egg donation", 60,
                     "Best option with very low reserve"),
    },
}


def category_for(pathology_id: str) -> str:
    if pathology_id == p.PCOS:
        return PCOS_CATEGORY
    if pathology_id == p.DIMINISHED_OVARIAN_RESERVE:
        return DIMINISHED_RESERVE_CATEGORY
    return DEFAULT_CATEGORY


class TreatmentDecisionGenerator:
    """Stateless, safe to share across threads."""

    def generate(
        self,
        primary_pathology_id: str,
        age: int,
        risk_level: RiskLevel,
        knowledge: KnowledgeBase,
    ) -> TreatmentDecisionTree:
        """
        Build the three-line plan.

        Raises:
            KnowledgeBaseError: a plan line references a protocol id missing
                from the treatment table.
        """
        category = category_for(primary_pathology_id)
        overrides = _CATEGORY_OVERRIDES.get(category, {})
        lines = [overrides.get(i, line) for i, line in enumerate(_DEFAULT_PLAN)]
        options = [self._resolve(line, knowledge) for line in lines]

        urgent = age >= URGENT_AGE or risk_level == RiskLevel.CRITICAL
        if urgent:
            options[0] = self._escalate(options[0], knowledge)
            logger.debug(
                f"TreatmentDecisionGenerator: urgent override (age={age}, risk={risk_level.value})"
            )

        first, second, third = options
        return TreatmentDecisionTree(
            first_line=first,
            second_line=second,
            third_line=third,
            category=category,
            urgent_override=urgent,
        )

    @staticmethod
    def _resolve(line: _PlanLine, knowledge: KnowledgeBase) -> TreatmentOption:
        record = knowledge.treatment(line.treatment_id)
        return TreatmentOption(
            treatment_id=line.treatment_id,
            treatment=line.label,
            success_probability=float(line.success_probability),
            timeframe=line.timeframe or record.time_to_success,
            rationale=line.rationale,
        )

    @staticmethod
    def _escalate(option: TreatmentOption, knowledge: KnowledgeBase) -> TreatmentOption:
        ivf = knowledge.treatment(t.IVF)
        return TreatmentOption(
            treatment_id=IMMEDIATE_IVF,
            treatment="Immediate IVF",
            success_probability=float(max(URGENCY_FLOOR, option.success_probability - URGENCY_PENALTY)),
            timeframe=ivf.time_to_success,
            rationale="Urgency due to age / high risk",
        )
