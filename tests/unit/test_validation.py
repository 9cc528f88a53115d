"""
Unit Tests for the Input Validation Layer

Tests for sanitization, fatal errors, clinical warnings, derived fields
and the immutability of validated profiles.
"""
import dataclasses

import pytest

from fertility_insight.core.validation import PatientInputValidator, PatientProfile
from fertility_insight.utils.exceptions import InvalidInputError


class TestRequiredFields:
    """Tests for fatal schema errors."""

    def test_minimal_record_is_valid(self, validator, scenario_b_input):
        """Age and duration alone are enough."""
        outcome = validator.validate(scenario_b_input)

        assert outcome.is_valid
        assert outcome.errors == []
        assert isinstance(outcome.profile, PatientProfile)
        assert outcome.profile.age == 28
        assert outcome.profile.infertility_duration_months == 6.0
        assert outcome.profile.bmi is None

    def test_missing_required_fields_listed(self, validator):
        """Every fatal error is reported, not just the first."""
        outcome = validator.validate({"bmi": 22})

        assert not outcome.is_valid
        assert outcome.profile is None
        assert len(outcome.errors) == 2
        assert any("age" in e for e in outcome.errors)
        assert any("infertility_duration_months" in e for e in outcome.errors)

    def test_validate_and_sanitize_raises(self, validator):
        """validate_and_sanitize raises INVALID_INPUT with the full list."""
        with pytest.raises(InvalidInputError) as exc_info:
            validator.validate_and_sanitize({"bmi": 22})

        assert exc_info.value.code == "INVALID_INPUT"
        assert len(exc_info.value.errors) == 2
        assert exc_info.value.to_dict()["error"] == "INVALID_INPUT"

    def test_non_mapping_input(self, validator):
        """Non-mapping input is rejected without raising."""
        for raw in (None, 42, "age=30", [1, 2]):
            outcome = validator.validate(raw)
            assert not outcome.is_valid
            assert outcome.errors

    def test_non_numeric_age(self, validator):
        outcome = validator.validate({"age": "thirty", "infertility_duration_months": 12})

        assert not outcome.is_valid
        assert any("age" in e for e in outcome.errors)

    def test_oversized_integers_rejected(self, validator):
        """Integers too large for a float are errors, not crashes."""
        outcome = validator.validate({
            "age": 10 ** 400,
            "infertility_duration_months": 12,
            "lab_values": {"amh": 10 ** 400},
        })

        assert not outcome.is_valid
        assert any("age" in e for e in outcome.errors)
        assert "Lab value 'amh' must be numeric" in outcome.errors

    @pytest.mark.parametrize("partner, expected", [
        ({"semen_analysis": [1, 2]}, "Field 'partner.semen_analysis' must be a mapping"),
        ({"spermAnalysis": "normal"}, "Field 'partner.spermAnalysis' must be a mapping"),
        ({"semen_analysis": {"motility": "low"}}, "Partner semen value 'motility' must be numeric"),
        ({"concentration": [10]}, "Partner semen value 'concentration' must be numeric"),
        ({"age": "forty"}, "Field 'partner.age' must be numeric"),
    ])
    def test_malformed_partner_rejected(self, validator, partner, expected):
        raw = {"age": 30, "infertility_duration_months": 12, "partner": partner}

        outcome = validator.validate(raw)
        assert not outcome.is_valid
        assert expected in outcome.errors

        with pytest.raises(InvalidInputError) as exc_info:
            validator.validate_and_sanitize(raw)
        assert expected in exc_info.value.errors

    def test_non_numeric_lab_value(self, validator):
        outcome = validator.validate({
            "age": 30, "infertility_duration_months": 12, "lab_values": {"amh": "low"},
        })

        assert not outcome.is_valid
        assert any("amh" in e for e in outcome.errors)

    def test_invalid_endometriosis_stage(self, validator):
        outcome = validator.validate({
            "age": 30, "infertility_duration_months": 12, "endometriosis_stage": 6,
        })

        assert not outcome.is_valid


class TestSanitization:
    """Tests for range clamping and normalization."""

    def test_age_below_range_clamped(self, validator):
        outcome = validator.validate({"age": 16, "infertility_duration_months": 12})

        assert outcome.is_valid
        assert outcome.profile.age == 18
        assert any("clamped" in w for w in outcome.warnings)

    def test_age_above_analysis_range_rejected(self, validator):
        """Age is clamped to 60 and then fails the 18-50 range."""
        outcome = validator.validate({"age": 55, "infertility_duration_months": 12})

        assert not outcome.is_valid
        assert any("Age" in e for e in outcome.errors)

    def test_age_rounded(self, validator):
        outcome = validator.validate({"age": 33.6, "infertility_duration_months": 12})

        assert outcome.profile.age == 34

    @pytest.mark.parametrize("bmi", [55, 75])
    def test_bmi_out_of_range_rejected(self, validator, bmi):
        outcome = validator.validate({"age": 30, "infertility_duration_months": 12, "bmi": bmi})

        assert not outcome.is_valid
        assert any("BMI" in e for e in outcome.errors)

    def test_bmi_below_range_clamped(self, validator):
        outcome = validator.validate({"age": 30, "infertility_duration_months": 12, "bmi": 13})

        assert outcome.is_valid
        assert outcome.profile.bmi == 15.0

    @pytest.mark.parametrize("raw, expected", [(0, 1.0), (300, 240.0), (18, 18.0)])
    def test_duration_clamped(self, validator, raw, expected):
        outcome = validator.validate({"age": 30, "infertility_duration_months": raw})

        assert outcome.is_valid
        assert outcome.profile.infertility_duration_months == expected

    def test_lab_values_clamped(self, validator):
        outcome = validator.validate({
            "age": 30,
            "infertility_duration_months": 12,
            "lab_values": {"amh": -1.0, "fsh": 150, "estradiol": 5000},
        })

        labs = outcome.profile.lab_values
        assert labs["amh"] == 0.0
        assert labs["fsh"] == 100.0
        assert labs["estradiol"] == 1000.0
        assert any("negative" in w for w in outcome.warnings)

    def test_tags_normalized_and_capped(self, validator):
        symptoms = [f"Symptom {i}" for i in range(12)] + ["  Pelvic-Pain "]
        outcome = validator.validate({
            "age": 30, "infertility_duration_months": 12, "symptoms": symptoms,
        })

        assert len(outcome.profile.symptoms) == 10
        assert "symptom_0" in outcome.profile.symptoms

    def test_tag_normalization(self, validator):
        outcome = validator.validate({
            "age": 30,
            "infertility_duration_months": 12,
            "symptoms": ["  Pelvic-Pain ", "HIRSUTISM"],
            "medical_history": ["Pelvic Surgery"],
        })

        assert outcome.profile.symptoms == frozenset({"pelvic_pain", "hirsutism"})
        assert "pelvic_surgery" in outcome.profile.medical_history

    def test_camel_case_aliases(self, validator):
        outcome = validator.validate({
            "age": 30,
            "infertilityDurationMonths": 12,
            "labValues": {"AMH": 2.1},
            "medicalHistory": ["hypothyroidism"],
            "endometriosisStage": 3,
        })

        assert outcome.is_valid
        assert outcome.profile.amh == 2.1
        assert "hypothyroidism" in outcome.profile.medical_history
        assert outcome.profile.endometriosis_stage == 3

    def test_free_text_ignored(self, validator, scenario_b_input):
        with_notes = dict(scenario_b_input, notes="Patient prefers morning appointments")

        assert validator.validate(with_notes).profile == validator.validate(scenario_b_input).profile

    def test_bmi_derived_from_height_and_weight(self, validator):
        outcome = validator.validate({
            "age": 30, "infertility_duration_months": 12, "height_cm": 165, "weight_kg": 68,
        })

        assert outcome.profile.bmi == pytest.approx(25.0)
        assert any("derived" in s for s in outcome.suggestions)

    def test_partner_nested_semen_analysis(self, validator):
        outcome = validator.validate({
            "age": 30,
            "infertility_duration_months": 12,
            "partner": {"age": 38, "spermAnalysis": {"concentration": 10, "motility": 30, "morphology": 5}},
        })

        partner = outcome.profile.partner
        assert partner.concentration == 10.0
        assert partner.age == 38
        assert partner.abnormal_parameter_count == 2
        assert "Low sperm concentration detected" in outcome.warnings
        assert "Reduced sperm motility" in outcome.warnings


class TestClinicalWarnings:
    """Tests for non-fatal warnings and scores."""

    def test_low_amh_warnings(self, validator):
        outcome = validator.validate({
            "age": 30, "infertility_duration_months": 12, "lab_values": {"amh": 0.3},
        })

        assert outcome.is_valid
        assert any("AMH very low" in w for w in outcome.warnings)
        assert any("Low ovarian reserve for age" in w for w in outcome.warnings)

    def test_high_fsh_warning(self, validator):
        outcome = validator.validate({
            "age": 30, "infertility_duration_months": 12, "lab_values": {"fsh": 45},
        })

        assert any("FSH very high" in w for w in outcome.warnings)

    def test_advanced_age_urgency(self, validator):
        outcome = validator.validate({"age": 43, "infertility_duration_months": 8})

        assert any("Advanced reproductive age" in w for w in outcome.warnings)
        assert any("urgent evaluation" in w for w in outcome.warnings)

    def test_bmi_mismatch_warning(self, validator):
        outcome = validator.validate({
            "age": 30, "infertility_duration_months": 12, "bmi": 30, "height_cm": 165, "weight_kg": 60,
        })

        assert "Reported BMI does not match height/weight" in outcome.warnings

    def test_minimal_record_scores(self, validator, scenario_b_input):
        outcome = validator.validate(scenario_b_input)

        assert outcome.completeness_score == 17
        # one readiness warning
        assert outcome.confidence == 95
        assert "Include male factor evaluation" in outcome.suggestions

    def test_complete_record_scores(self, validator, complete_input):
        outcome = validator.validate(complete_input)

        assert outcome.is_valid
        assert outcome.warnings == []
        assert outcome.completeness_score == 100
        assert outcome.confidence == 100

    def test_scores_count_labs_in_any_case(self, validator, complete_input):
        complete_input["lab_values"] = {
            name.upper(): value for name, value in complete_input["lab_values"].items()
        }
        outcome = validator.validate(complete_input)

        assert outcome.profile.amh == 2.1
        assert outcome.completeness_score == 100
        assert outcome.confidence == 100

    def test_derived_risk_factors(self, validator):
        outcome = validator.validate({
            "age": 38, "infertility_duration_months": 6, "bmi": 32, "lab_values": {"amh": 0.8},
        })

        derived = outcome.profile.derived
        assert derived.age_risk == "moderate"
        assert derived.bmi_risk == "obese"
        assert derived.ovarian_reserve_risk == "low"
        assert derived.time_urgency == "moderate"


class TestPatientProfile:
    """Tests for the immutable profile."""

    def test_profile_is_frozen(self, make_profile):
        profile = make_profile(age=30, infertility_duration_months=12, lab_values={"amh": 2.0})

        with pytest.raises(dataclasses.FrozenInstanceError):
            profile.age = 31
        with pytest.raises(TypeError):
            profile.lab_values["amh"] = 5.0

    def test_has_endometriosis(self, make_profile):
        assert make_profile(age=30, infertility_duration_months=12, endometriosis_stage=2).has_endometriosis
        assert make_profile(
            age=30, infertility_duration_months=12, medical_history=["endometriosis"]
        ).has_endometriosis
        assert not make_profile(age=30, infertility_duration_months=12).has_endometriosis

    def test_validator_is_reusable(self):
        validator = PatientInputValidator()
        first = validator.validate({"age": 30, "infertility_duration_months": 12})
        second = validator.validate({"age": 30, "infertility_duration_months": 12})

        assert first.profile == second.profile
