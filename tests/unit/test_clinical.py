"""
Unit Tests for the Clinical Analysis Layer

Tests for the diagnostic scorer, risk stratifier and treatment decision
generator.
"""
import dataclasses

import pytest

from fertility_insight.core.clinical import (
    IMMEDIATE_IVF,
    DiagnosticScorer,
    RiskLevel,
    RiskStratifier,
    TreatmentDecisionGenerator,
    tier_for_score,
)
from fertility_insight.core.knowledge import (
    EvidenceLevel,
    KnowledgeBase,
    PATHOLOGY_TABLE,
    TREATMENT_TABLE,
)
from fertility_insight.utils.exceptions import KnowledgeBaseError


@pytest.fixture
def scorer() -> DiagnosticScorer:
    return DiagnosticScorer()


@pytest.fixture
def stratifier() -> RiskStratifier:
    return RiskStratifier()


@pytest.fixture
def generator() -> TreatmentDecisionGenerator:
    return TreatmentDecisionGenerator()


class TestDiagnosticScorer:
    """Tests for DiagnosticScorer."""

    def test_unexplained_fallback(self, scorer, knowledge, make_profile, scenario_b_input):
        """No significant candidate yields a single unexplained candidate."""
        profile = make_profile(**scenario_b_input)
        candidates = scorer.score(profile, knowledge)

        assert len(candidates) == 1
        assert candidates[0].pathology_id == "unexplained"
        assert candidates[0].probability == 60.0

        primary = scorer.primary_diagnosis(candidates, knowledge)
        assert primary.pathology_id == "unexplained"
        assert primary.evidence_level == EvidenceLevel.C

    def test_diminished_reserve_clamped(self, scorer, knowledge, make_profile, scenario_a_input):
        """Additive score above 95 is clamped."""
        profile = make_profile(**scenario_a_input)
        primary, differential = scorer.diagnose(profile, knowledge)

        assert primary.pathology_id == "diminished_ovarian_reserve"
        assert primary.confidence == 95.0
        assert primary.evidence_level == EvidenceLevel.A
        assert any("Low AMH" in e for e in primary.justification)
        assert len(differential) <= 3

    def test_pcos_ranked_first(self, scorer, knowledge, make_profile, pcos_input):
        profile = make_profile(**pcos_input)
        candidates = scorer.score(profile, knowledge)

        assert candidates[0].pathology_id == "pcos"
        assert any("LH/FSH" in e for e in candidates[0].evidence)
        assert "ovulation_disorders" in [c.pathology_id for c in candidates]

    def test_probabilities_bounded_and_sorted(self, scorer, knowledge, make_profile,
                                              scenario_a_input, scenario_b_input,
                                              scenario_c_input, pcos_input, complete_input):
        for raw in (scenario_a_input, scenario_b_input, scenario_c_input, pcos_input, complete_input):
            candidates = scorer.score(make_profile(**raw), knowledge)

            assert candidates
            probabilities = [c.probability for c in candidates]
            assert all(0 <= p <= 95 for p in probabilities)
            assert probabilities == sorted(probabilities, reverse=True)
            assert all(p > 5 for p in probabilities)

    def test_ties_keep_table_order(self, scorer, make_profile):
        """Equal scores are ordered by pathology table position."""
        by_id = {p.id: dataclasses.replace(p, prevalence_range=(0.1, 0.1)) for p in PATHOLOGY_TABLE}
        profile = make_profile(
            age=30,
            infertility_duration_months=12,
            symptoms=["galactorrhea"],
            medical_history=["endometriosis"],
        )

        forward = KnowledgeBase.from_records(
            [by_id["hyperprolactinemia"], by_id["endometriosis"]], TREATMENT_TABLE
        )
        backward = KnowledgeBase.from_records(
            [by_id["endometriosis"], by_id["hyperprolactinemia"]], TREATMENT_TABLE
        )

        first = scorer.score(profile, forward)
        second = scorer.score(profile, backward)

        assert first[0].probability == first[1].probability == 41.0
        assert [c.pathology_id for c in first] == ["hyperprolactinemia", "endometriosis"]
        assert [c.pathology_id for c in second] == ["endometriosis", "hyperprolactinemia"]

    def test_deterministic(self, scorer, knowledge, make_profile, complete_input):
        profile = make_profile(**complete_input)

        assert scorer.score(profile, knowledge) == scorer.score(profile, knowledge)

    def test_patterns(self, scorer, make_profile):
        profile = make_profile(
            age=36, infertility_duration_months=14, bmi=31, lab_values={"fsh": 12, "amh": 0.7},
        )
        patterns = scorer.patterns(profile)

        assert {"advanced_maternal_age", "prolonged_infertility", "overweight",
                "obesity", "elevated_fsh", "diminished_ovarian_reserve"} <= patterns
        assert "male_factor" not in patterns

    def test_male_factor_detected(self, scorer, knowledge, make_profile):
        profile = make_profile(
            age=30,
            infertility_duration_months=12,
            partner={"semen_analysis": {"concentration": 5, "motility": 20, "morphology": 2}},
        )
        candidates = scorer.score(profile, knowledge)

        assert candidates[0].pathology_id == "male_factor"
        # base 4.5 + 30 + 15
        assert candidates[0].probability == 49.5

    def test_unexplained_diagnosis_helper(self, scorer, knowledge):
        primary = scorer.unexplained_diagnosis(knowledge)

        assert primary.pathology_id == "unexplained"
        assert primary.name == "Unexplained Infertility"
        assert primary.confidence == 60.0


class TestRiskStratifier:
    """Tests for RiskStratifier."""

    def test_low_risk(self, stratifier, make_profile, scenario_b_input):
        risk = stratifier.stratify(make_profile(**scenario_b_input), "unexplained")

        assert risk.level == RiskLevel.LOW
        assert risk.score == 0
        assert risk.contributing_factors == ()

    def test_moderate_risk(self, stratifier, make_profile):
        profile = make_profile(age=36, infertility_duration_months=13, lab_values={"amh": 0.8})
        risk = stratifier.stratify(profile, "unexplained")

        assert risk.score == 40
        assert risk.level == RiskLevel.MODERATE
        assert len(risk.contributing_factors) == 3

    def test_critical_risk(self, stratifier, make_profile, scenario_c_input):
        risk = stratifier.stratify(make_profile(**scenario_c_input), "diminished_ovarian_reserve")

        assert risk.score == 95
        assert risk.level == RiskLevel.CRITICAL
        assert risk.contributing_factors[-1] == "Primary diagnosis: diminished ovarian reserve"

    @pytest.mark.parametrize("score, level", [
        (0, RiskLevel.LOW),
        (29, RiskLevel.LOW),
        (30, RiskLevel.MODERATE),
        (49, RiskLevel.MODERATE),
        (50, RiskLevel.HIGH),
        (69, RiskLevel.HIGH),
        (70, RiskLevel.CRITICAL),
        (120, RiskLevel.CRITICAL),
    ])
    def test_tier_boundaries(self, score, level):
        assert tier_for_score(score) == level


class TestTreatmentDecisionGenerator:
    """Tests for TreatmentDecisionGenerator."""

    def test_default_plan(self, generator, knowledge):
        tree = generator.generate("unexplained", 30, RiskLevel.LOW, knowledge)

        assert tree.category == "default"
        assert not tree.urgent_override
        assert tree.first_line.treatment_id == "timed_intercourse"
        assert tree.first_line.success_probability == 15
        assert tree.first_line.timeframe == "3-6 months"
        assert tree.second_line.success_probability == 25
        assert tree.third_line.treatment_id == "ivf"
        assert tree.third_line.success_probability == 35

    def test_pcos_plan(self, generator, knowledge):
        tree = generator.generate("pcos", 28, RiskLevel.MODERATE, knowledge)

        assert tree.category == "pcos"
        assert tree.first_line.treatment_id == "metformin_letrozole"
        assert tree.first_line.success_probability == 25
        assert tree.second_line.treatment == "Letrozole + IUI"
        assert tree.second_line.success_probability == 30
        assert tree.third_line.treatment_id == "ivf"

    def test_diminished_reserve_plan(self, generator, knowledge):
        tree = generator.generate("diminished_ovarian_reserve", 36, RiskLevel.HIGH, knowledge)

        assert tree.category == "diminished_reserve"
        assert tree.first_line.treatment_id == "mild_ivf"
        assert tree.first_line.success_probability == 20
        assert tree.third_line.treatment_id == "egg_donation"
        assert tree.third_line.success_probability == 60

    def test_age_override(self, generator, knowledge):
        tree = generator.generate("unexplained", 41, RiskLevel.LOW, knowledge)

        assert tree.urgent_override
        assert tree.first_line.treatment_id == IMMEDIATE_IVF
        assert tree.first_line.success_probability == 15
        assert tree.second_line.treatment_id == "ovulation_induction"

    def test_critical_override_below_age_threshold(self, generator, knowledge):
        tree = generator.generate("pcos", 32, RiskLevel.CRITICAL, knowledge)

        assert tree.first_line.treatment_id == IMMEDIATE_IVF
        assert tree.first_line.success_probability == 15

    def test_input_space(self, generator, knowledge):
        """Enumerate category × age bucket × risk tier."""
        for pathology_id in ("unexplained", "pcos", "diminished_ovarian_reserve", "tubal_factor"):
            for age in (25, 36, 39, 40, 45):
                for level in RiskLevel:
                    tree = generator.generate(pathology_id, age, level, knowledge)
                    urgent = age >= 40 or level == RiskLevel.CRITICAL

                    assert tree.urgent_override == urgent
                    assert (tree.first_line.treatment_id == IMMEDIATE_IVF) == urgent
                    assert tree.first_line.success_probability >= 15

    def test_missing_protocol_raises(self, generator):
        knowledge = KnowledgeBase.from_records(
            PATHOLOGY_TABLE, [t for t in TREATMENT_TABLE if t.id != "ivf"]
        )

        with pytest.raises(KnowledgeBaseError):
            generator.generate("unexplained", 30, RiskLevel.LOW, knowledge)
