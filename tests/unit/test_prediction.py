"""
Unit Tests for Success-Rate Prediction
"""
import pytest

from fertility_insight.core.clinical import RiskLevel
from fertility_insight.core.prediction import (
    SuccessRatePredictor,
    Technique,
    age_bracket,
    donor_egg_indicated,
)


@pytest.fixture
def predictor() -> SuccessRatePredictor:
    return SuccessRatePredictor()


def _by_id(estimates):
    return {e.technique_id: e for e in estimates}


class TestTechniqueSelection:
    """Which techniques are reported."""

    def test_donor_egg_for_advanced_age(self, predictor, knowledge, make_profile, scenario_a_input):
        estimates = predictor.predict(make_profile(**scenario_a_input), knowledge)

        assert "egg_donation" in _by_id(estimates)

    def test_no_donor_egg_without_indication(self, predictor, knowledge, make_profile):
        profile = make_profile(age=30, infertility_duration_months=12)
        estimates = predictor.predict(profile, knowledge, risk_level=RiskLevel.LOW)

        assert set(_by_id(estimates)) == {"iui", "ivf", "fet"}

    def test_critical_tier_adds_donor_egg(self, predictor, knowledge, make_profile):
        profile = make_profile(age=30, infertility_duration_months=12)
        estimates = predictor.predict(profile, knowledge, risk_level=RiskLevel.CRITICAL)

        assert "egg_donation" in _by_id(estimates)

    @pytest.mark.parametrize("fields, expected", [
        ({"age": 43}, True),
        ({"age": 42}, False),
        ({"age": 35, "lab_values": {"amh": 0.29}}, True),
        ({"age": 35, "lab_values": {"amh": 0.3}}, False),
        ({"age": 35, "lab_values": {"fsh": 21}}, True),
        ({"age": 35, "lab_values": {"fsh": 20}}, False),
    ])
    def test_donor_egg_indication(self, make_profile, fields, expected):
        profile = make_profile(infertility_duration_months=12, **fields)

        assert donor_egg_indicated(profile) is expected

    def test_sorted_descending(self, predictor, knowledge, make_profile,
                               scenario_a_input, scenario_c_input, complete_input):
        for raw in (scenario_a_input, scenario_c_input, complete_input):
            estimates = predictor.predict(make_profile(**raw), knowledge)
            rates = [e.per_cycle_probability for e in estimates]

            assert rates == sorted(rates, reverse=True)


class TestPerCycleProbability:
    """Base rates, sub-factors and bounds."""

    def test_young_unadjusted(self, predictor, knowledge, make_profile):
        estimates = predictor.predict(make_profile(age=28, infertility_duration_months=6), knowledge)
        by_id = _by_id(estimates)

        assert [e.technique_id for e in estimates] == ["ivf", "fet", "iui"]
        assert by_id["ivf"].per_cycle_probability == 45.0
        assert by_id["ivf"].confidence == 90.0
        assert by_id["ivf"].adjustment == 1.0
        assert by_id["iui"].per_cycle_probability == 12.0
        assert by_id["fet"].per_cycle_probability == 42.0

    def test_combined_adjustment(self, predictor, knowledge, make_profile):
        profile = make_profile(age=36, infertility_duration_months=12, bmi=27, lab_values={"amh": 0.8})
        ivf = _by_id(predictor.predict(profile, knowledge))["ivf"]

        # 0.30 × 0.88 (age) × 0.85 (AMH) × 0.90 (BMI)
        assert ivf.per_cycle_probability == pytest.approx(20.2, abs=0.01)
        assert ivf.confidence == pytest.approx(59.2, abs=0.05)
        assert ivf.factors["age"] == 0.88
        assert ivf.factors["ovarian_reserve"] == 0.85
        assert ivf.factors["bmi"] == 0.9

    def test_technique_floors(self, predictor, knowledge, make_profile):
        profile = make_profile(
            age=45,
            infertility_duration_months=36,
            bmi=45,
            lab_values={"amh": 0.2},
            partner={"semen_analysis": {"concentration": 2, "motility": 10, "morphology": 1}},
            endometriosis_stage=4,
        )
        by_id = _by_id(predictor.predict(profile, knowledge))

        assert by_id["iui"].per_cycle_probability == 1.0
        assert by_id["ivf"].per_cycle_probability == 5.0
        assert by_id["fet"].per_cycle_probability == 3.0
        assert by_id["iui"].cost_effectiveness == "low"

    def test_upper_cap(self, knowledge, make_profile):
        optimistic = Technique(
            id="ivf",
            name="Optimistic IVF",
            base_rates=(0.95,) * 5,
            base_confidence=(90.0,) * 5,
            floor=0.05,
            factors=(),
        )
        predictor = SuccessRatePredictor(techniques=(optimistic,))
        estimates = predictor.predict(make_profile(age=28, infertility_duration_months=6), knowledge)

        assert estimates[0].per_cycle_probability == 90.0

    def test_probabilities_bounded(self, predictor, knowledge, make_profile,
                                   scenario_a_input, scenario_b_input, scenario_c_input,
                                   pcos_input, complete_input):
        for raw in (scenario_a_input, scenario_b_input, scenario_c_input, pcos_input, complete_input):
            for estimate in predictor.predict(make_profile(**raw), knowledge):
                assert 1.0 <= estimate.per_cycle_probability <= 90.0
                assert 0.0 <= estimate.confidence <= 100.0


class TestSubFactors:
    """Individual sub-factor lookups."""

    @pytest.mark.parametrize("age, expected", [
        (28, 1.00), (30, 1.00), (31, 0.95), (35, 0.88), (38, 0.80), (41, 0.70),
    ])
    def test_age_factor(self, make_profile, age, expected):
        profile = make_profile(age=age, infertility_duration_months=12)

        assert SuccessRatePredictor.age_factor(profile) == expected

    @pytest.mark.parametrize("amh, expected", [
        (0.2, 0.65), (0.4, 0.75), (0.8, 0.85), (2.0, 1.00), (2.5, 1.15), (6.0, 1.15),
    ])
    def test_ovarian_reserve_factor(self, make_profile, amh, expected):
        profile = make_profile(age=30, infertility_duration_months=12, lab_values={"amh": amh})

        assert SuccessRatePredictor.ovarian_reserve_factor(profile) == expected

    @pytest.mark.parametrize("bmi, expected", [
        (16, 0.75), (18, 0.85), (22, 1.00), (27, 0.90), (32, 0.80), (37, 0.72), (42, 0.65),
    ])
    def test_bmi_factor(self, make_profile, bmi, expected):
        profile = make_profile(age=30, infertility_duration_months=12, bmi=bmi)

        assert SuccessRatePredictor.bmi_factor(profile) == expected

    def test_missing_inputs_are_neutral(self, make_profile):
        profile = make_profile(age=30, infertility_duration_months=12)

        assert SuccessRatePredictor.ovarian_reserve_factor(profile) == 1.0
        assert SuccessRatePredictor.bmi_factor(profile) == 1.0
        assert SuccessRatePredictor.male_factor(profile) == 1.0
        assert SuccessRatePredictor.endometriosis_factor(profile) == 1.0

    def test_male_factor_by_abnormal_count(self, make_profile):
        one = make_profile(age=30, infertility_duration_months=12,
                           partner={"semen_analysis": {"concentration": 10, "motility": 50}})
        three = make_profile(age=30, infertility_duration_months=12,
                             partner={"semen_analysis": {"concentration": 10, "motility": 20, "morphology": 2}})

        assert SuccessRatePredictor.male_factor(one) == 0.85
        assert SuccessRatePredictor.male_factor(three) == 0.65

    def test_endometriosis_factor(self, make_profile):
        unstaged = make_profile(age=30, infertility_duration_months=12, medical_history=["endometriosis"])
        staged = make_profile(age=30, infertility_duration_months=12, endometriosis_stage=3)
        plain = make_profile(age=30, infertility_duration_months=12)

        assert SuccessRatePredictor.endometriosis_factor(unstaged) == 0.88
        assert SuccessRatePredictor.endometriosis_factor(staged) == 0.75
        # primary diagnosis alone is enough
        assert SuccessRatePredictor.endometriosis_factor(plain, "endometriosis") == 0.88


class TestCumulativeProbability:
    """Independent-cycle cumulative probability."""

    def test_matches_formula(self, predictor, knowledge, make_profile):
        estimates = predictor.predict(make_profile(age=28, infertility_duration_months=6), knowledge)

        for estimate in estimates:
            p = estimate.per_cycle_probability / 100.0
            for n in (1, 2, 3):
                assert estimate.cumulative_probability(n) == 100.0 * (1.0 - (1.0 - p) ** n)

    def test_monotonic_in_cycles(self, predictor, knowledge, make_profile, scenario_c_input):
        for estimate in predictor.predict(make_profile(**scenario_c_input), knowledge):
            values = [estimate.cumulative_probability(n) for n in range(1, 7)]
            assert values == sorted(values)
            assert values[0] == pytest.approx(estimate.per_cycle_probability)

    def test_rejects_zero_cycles(self, predictor, knowledge, make_profile):
        estimate = predictor.predict(make_profile(age=28, infertility_duration_months=6), knowledge)[0]

        with pytest.raises(ValueError):
            estimate.cumulative_probability(0)

    def test_to_dict(self, predictor, knowledge, make_profile):
        ivf = _by_id(predictor.predict(make_profile(age=28, infertility_duration_months=6), knowledge))["ivf"]
        data = ivf.to_dict(cycles=3)

        assert set(data["cumulative_probability"]) == {"1", "2", "3"}
        assert data["cumulative_probability"]["1"] == 45.0
        assert data["evidence_level"] in {"A", "B", "C", "D"}


class TestRecommendations:
    """Recommendation text and fallbacks."""

    def test_iui_cycle_limit_at_38_plus(self, predictor, knowledge, make_profile):
        iui = _by_id(predictor.predict(make_profile(age=39, infertility_duration_months=12), knowledge))["iui"]

        assert iui.per_cycle_probability == pytest.approx(6.4)
        assert iui.recommendation == "Maximum of 3 IUI cycles before moving to IVF"
        assert iui.cost_effectiveness == "medium"

    def test_ivf_first_line_at_40(self, predictor, knowledge, make_profile):
        ivf = _by_id(predictor.predict(make_profile(age=40, infertility_duration_months=12), knowledge))["ivf"]

        assert ivf.recommendation == "First-line option due to age"

    def test_fallback_estimates(self, predictor, knowledge, make_profile, scenario_c_input):
        profile = make_profile(**scenario_c_input)
        estimates = predictor.fallback_estimates(profile, knowledge, risk_level=RiskLevel.CRITICAL)

        assert estimates
        assert all(e.confidence == 50.0 for e in estimates)
        assert all(e.adjustment == 1.0 and e.factors == {} for e in estimates)
        assert "egg_donation" in _by_id(estimates)


@pytest.mark.parametrize("age, bracket", [
    (18, 0), (29, 0), (30, 1), (34, 1), (35, 2), (39, 2), (40, 3), (42, 3), (43, 4), (50, 4),
])
def test_age_bracket(age, bracket):
    assert age_bracket(age) == bracket
