"""
Patient Input Validation and Sanitization

Turns an untyped patient record into a normalized PatientProfile.
Soft-range values are clamped and every hard error is collected.
Clinical warnings never block the analysis.

Pipeline (each step pure):
    1. Schema check    required fields present and numeric
    2. Sanitization    clamp ranges, normalize tags, derive BMI, risk buckets
    3. Range check     post-clamp analysis limits (fatal)
    4. Medical rules   per-field warnings (AMH, FSH, BMI, duration vs age)
    5. Final checks    fertility-specific, consistency, readiness
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from fertility_insight.utils import get_logger
from fertility_insight.utils.exceptions import InvalidInputError
from .patient_profile import (
    DerivedRiskFactors,
    PartnerProfile,
    PatientProfile,
    SPERM_CONCENTRATION_LOW,
    SPERM_MOTILITY_LOW,
)

logger = get_logger(__name__)

# ── Sanitizer clamps ─────────────────────────────────────────────────────────
AGE_CLAMP = (18, 60)
BMI_CLAMP = (15.0, 60.0)
DURATION_CLAMP = (1.0, 240.0)
PARTNER_AGE_CLAMP = (18, 80)

# ── Accepted analysis range (checked after clamping) ─────────────────────────
AGE_RANGE = (18, 50)
BMI_RANGE = (15.0, 50.0)

# Per-hormone upper caps; unlisted hormones use DEFAULT_LAB_CAP
LAB_CAPS: Dict[str, float] = {
    "amh": 50.0,
    "fsh": 100.0,
    "lh": 100.0,
    "estradiol": 1000.0,
    "progesterone": 100.0,
    "prolactin": 500.0,
    "tsh": 100.0,
    "t3": 50.0,
    "t4": 50.0,
    "testosterone": 20.0,
    "glucose": 600.0,
    "insulin": 300.0,
    "hba1c": 20.0,
}
DEFAULT_LAB_CAP = 10000.0

MAX_LIST_ITEMS = 10

# Fields counted for the completeness score
_COMPLETENESS_FIELDS = 12

# Input aliases: canonical name → accepted keys (first match wins)
_ALIASES: Dict[str, Tuple[str, ...]] = {
    "age": ("age",),
    "infertility_duration_months": (
        "infertility_duration_months", "infertilityDurationMonths",
        "infertility_duration", "infertilityDuration",
    ),
    "bmi": ("bmi",),
    "height_cm": ("height_cm", "heightCm", "height"),
    "weight_kg": ("weight_kg", "weightKg", "weight"),
    "lab_values": ("lab_values", "labValues", "labs"),
    "symptoms": ("symptoms",),
    "medical_history": ("medical_history", "medicalHistory"),
    "partner": ("partner", "partner_profile", "partnerProfile"),
    "endometriosis_stage": ("endometriosis_stage", "endometriosisStage"),
}

_LAB_ALIASES = {
    "vitamind": "vitamin_d",
    "vitamin d": "vitamin_d",
    "e2": "estradiol",
    "prl": "prolactin",
}

_SEMEN_KEYS = ("semen_analysis", "spermAnalysis")
_SEMEN_METRICS = ("concentration", "motility", "morphology", "volume")


@dataclass
class ValidationOutcome:
    """Result of validating one raw patient record."""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    completeness_score: int = 0
    confidence: int = 0
    profile: Optional[PatientProfile] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
            "completeness_score": self.completeness_score,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class MedicalRule:
    """A single per-field clinical plausibility rule producing warnings."""
    name: str
    check: Callable[[PatientProfile], Optional[str]]
    description: str = ""


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        try:
            numeric = float(value)
        except OverflowError:
            return False
        return not math.isnan(numeric) and not math.isinf(numeric)
    return False


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _normalize_tag(tag: str) -> str:
    return "_".join(tag.strip().lower().replace("-", " ").split())


def _lab_key(name: Any) -> str:
    key = _normalize_tag(str(name))
    return _LAB_ALIASES.get(key, key)


def _provided_labs(fields: Mapping[str, Any]) -> frozenset:
    """Normalized names of the lab values present in a record."""
    labs = fields.get("lab_values")
    if not isinstance(labs, Mapping):
        return frozenset()
    return frozenset(_lab_key(name) for name, value in labs.items() if value is not None)


def _semen_source(partner: Mapping[str, Any]) -> Mapping[str, Any]:
    """Nested semen analysis when given, otherwise the partner record itself."""
    for key in _SEMEN_KEYS:
        if partner.get(key):
            return partner[key]
    return partner


class PatientInputValidator:
    """
    Validates and sanitizes raw patient records.

    Holds only the rule table, so one instance can be shared across threads.
    """

    def __init__(self):
        self._medical_rules = self._initialize_medical_rules()
        logger.info(f"PatientInputValidator initialized ({len(self._medical_rules)} medical rules)")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, raw: Any) -> ValidationOutcome:
        """
        Validate a raw record without raising.

        Returns:
            ValidationOutcome; ``profile`` is set only when ``is_valid``.
        """
        outcome = ValidationOutcome()

        record = self._as_mapping(raw, outcome)
        if record is None:
            outcome.is_valid = False
            return outcome

        fields = self._resolve_aliases(record)
        self._check_schema(fields, outcome)
        if outcome.errors:
            outcome.is_valid = False
            outcome.completeness_score = self._completeness(fields)
            outcome.confidence = self._confidence(fields, outcome)
            logger.info(f"Validation failed: {len(outcome.errors)} error(s)")
            return outcome

        profile = self._sanitize(fields, outcome)
        self._check_ranges(profile, outcome)
        if not outcome.errors:
            self._apply_medical_rules(profile, outcome)
            self._check_fertility_specific(profile, outcome)
            self._check_consistency(fields, profile, outcome)
            self._check_readiness(profile, outcome)

        outcome.is_valid = not outcome.errors
        outcome.completeness_score = self._completeness(fields)
        outcome.confidence = self._confidence(fields, outcome)
        if outcome.is_valid:
            outcome.profile = profile

        logger.debug(
            f"Validation complete: errors={len(outcome.errors)}, "
            f"warnings={len(outcome.warnings)}, completeness={outcome.completeness_score}"
        )
        return outcome

    def validate_and_sanitize(self, raw: Any) -> Tuple[PatientProfile, ValidationOutcome]:
        """
        Validate a raw record, raising on any fatal error.

        Raises:
            InvalidInputError: listing every fatal error found.
        """
        outcome = self.validate(raw)
        if not outcome.is_valid or outcome.profile is None:
            raise InvalidInputError(outcome.errors, outcome.warnings)
        return outcome.profile, outcome

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    @staticmethod
    def _as_mapping(raw: Any, outcome: ValidationOutcome) -> Optional[Mapping[str, Any]]:
        if hasattr(raw, "model_dump"):
            raw = raw.model_dump(exclude_none=True)
        if not isinstance(raw, Mapping):
            outcome.errors.append("Patient input must be a mapping of fields")
            return None
        return raw

    @staticmethod
    def _resolve_aliases(record: Mapping[str, Any]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for canonical, keys in _ALIASES.items():
            for key in keys:
                if key in record and record[key] is not None:
                    fields[canonical] = record[key]
                    break
        return fields

    @staticmethod
    def _check_schema(fields: Dict[str, Any], outcome: ValidationOutcome) -> None:
        if not _is_number(fields.get("age")):
            outcome.errors.append("Field 'age' is required and must be numeric")
        if not _is_number(fields.get("infertility_duration_months")):
            outcome.errors.append("Field 'infertility_duration_months' is required and must be numeric")
        for name in ("bmi", "height_cm", "weight_kg"):
            if name in fields and not _is_number(fields[name]):
                outcome.errors.append(f"Field '{name}' must be numeric")
        if "endometriosis_stage" in fields:
            stage = fields["endometriosis_stage"]
            if not _is_number(stage) or int(stage) != stage or not 1 <= stage <= 4:
                outcome.errors.append("Field 'endometriosis_stage' must be an integer between 1 and 4")

        labs = fields.get("lab_values")
        if labs is not None:
            if not isinstance(labs, Mapping):
                outcome.errors.append("Field 'lab_values' must be a mapping of hormone name to value")
            else:
                for name, value in labs.items():
                    if value is not None and not _is_number(value):
                        outcome.errors.append(f"Lab value '{name}' must be numeric")

        partner = fields.get("partner")
        if partner is not None:
            if not isinstance(partner, Mapping):
                outcome.errors.append("Field 'partner' must be a mapping")
            else:
                PatientInputValidator._check_partner_schema(partner, outcome)

        for name in ("symptoms", "medical_history"):
            value = fields.get(name)
            if value is not None and (isinstance(value, (str, bytes, Mapping))
                                      or not hasattr(value, "__iter__")):
                outcome.errors.append(f"Field '{name}' must be a list of strings")

    @staticmethod
    def _check_partner_schema(partner: Mapping[str, Any], outcome: ValidationOutcome) -> None:
        nested_ok = True
        for key in _SEMEN_KEYS:
            value = partner.get(key)
            if value is not None and not isinstance(value, Mapping):
                outcome.errors.append(f"Field 'partner.{key}' must be a mapping")
                nested_ok = False
        if nested_ok:
            semen = _semen_source(partner)
            for name in _SEMEN_METRICS:
                value = semen.get(name)
                if value is not None and not _is_number(value):
                    outcome.errors.append(f"Partner semen value '{name}' must be numeric")
        age = partner.get("age")
        if age is not None and not _is_number(age):
            outcome.errors.append("Field 'partner.age' must be numeric")

    # ------------------------------------------------------------------
    # Sanitization + enrichment
    # ------------------------------------------------------------------

    def _sanitize(self, fields: Dict[str, Any], outcome: ValidationOutcome) -> PatientProfile:
        raw_age = float(fields["age"])
        age = int(round(_clamp(raw_age, *AGE_CLAMP)))
        if raw_age < AGE_CLAMP[0]:
            outcome.warnings.append(f"Age {raw_age:g} below minimum, clamped to {AGE_CLAMP[0]}")

        raw_duration = float(fields["infertility_duration_months"])
        duration = _clamp(raw_duration, *DURATION_CLAMP)
        if duration != raw_duration:
            outcome.warnings.append(
                f"Infertility duration {raw_duration:g} months clamped to {duration:g}"
            )

        bmi = None
        if "bmi" in fields:
            raw_bmi = float(fields["bmi"])
            bmi = round(_clamp(raw_bmi, *BMI_CLAMP), 1)
            if raw_bmi < BMI_CLAMP[0]:
                outcome.warnings.append(f"BMI {raw_bmi:g} below minimum, clamped to {BMI_CLAMP[0]:g}")
        elif "height_cm" in fields and "weight_kg" in fields and float(fields["height_cm"]) > 0:
            height_m = float(fields["height_cm"]) / 100.0
            derived_bmi = float(fields["weight_kg"]) / (height_m * height_m)
            bmi = round(_clamp(derived_bmi, *BMI_CLAMP), 1)
            outcome.suggestions.append(f"BMI derived from height and weight: {bmi:g}")

        labs = self._sanitize_labs(fields.get("lab_values") or {}, outcome)
        partner = self._sanitize_partner(fields.get("partner"))
        stage = fields.get("endometriosis_stage")

        profile = PatientProfile(
            age=age,
            infertility_duration_months=duration,
            bmi=bmi,
            lab_values=labs,
            symptoms=self._sanitize_tags(fields.get("symptoms")),
            medical_history=self._sanitize_tags(fields.get("medical_history")),
            partner=partner,
            endometriosis_stage=int(stage) if stage is not None else None,
        )
        return self._enrich(profile)

    @staticmethod
    def _sanitize_labs(labs: Mapping[str, Any], outcome: ValidationOutcome) -> Dict[str, float]:
        sanitized: Dict[str, float] = {}
        for name, value in labs.items():
            if value is None:
                continue
            key = _lab_key(name)
            numeric = float(value)
            if numeric < 0:
                outcome.warnings.append(f"Lab value '{key}' was negative and has been set to 0")
            cap = LAB_CAPS.get(key, DEFAULT_LAB_CAP)
            sanitized[key] = _clamp(numeric, 0.0, cap)
        return sanitized

    @staticmethod
    def _sanitize_tags(values: Any) -> frozenset:
        if not values:
            return frozenset()
        tags = []
        for item in values:
            if not isinstance(item, str):
                continue
            tag = _normalize_tag(item)
            if tag and tag not in tags:
                tags.append(tag)
        return frozenset(tags[:MAX_LIST_ITEMS])

    @staticmethod
    def _sanitize_partner(partner: Optional[Mapping[str, Any]]) -> Optional[PartnerProfile]:
        if not partner:
            return None
        semen = _semen_source(partner)

        def _num(source: Mapping[str, Any], key: str) -> Optional[float]:
            value = source.get(key)
            return float(value) if _is_number(value) else None

        concentration = _num(semen, "concentration")
        motility = _num(semen, "motility")
        morphology = _num(semen, "morphology")
        volume = _num(semen, "volume")
        age = _num(partner, "age")

        return PartnerProfile(
            concentration=max(0.0, concentration) if concentration is not None else None,
            motility=_clamp(motility, 0.0, 100.0) if motility is not None else None,
            morphology=_clamp(morphology, 0.0, 100.0) if morphology is not None else None,
            volume=max(0.0, volume) if volume is not None else None,
            age=int(round(_clamp(age, *PARTNER_AGE_CLAMP))) if age is not None else None,
        )

    @staticmethod
    def _enrich(profile: PatientProfile) -> PatientProfile:
        age_risk = "low"
        if profile.age >= 40:
            age_risk = "high"
        elif profile.age >= 35:
            age_risk = "moderate"

        bmi_risk = "unknown"
        if profile.bmi is not None:
            if profile.bmi < 18.5:
                bmi_risk = "underweight"
            elif profile.bmi >= 30:
                bmi_risk = "obese"
            elif profile.bmi >= 25:
                bmi_risk = "overweight"
            else:
                bmi_risk = "normal"

        reserve_risk = "unknown"
        if profile.amh is not None:
            if profile.amh < 1.0:
                reserve_risk = "low"
            elif profile.amh > 3.0:
                reserve_risk = "high"
            else:
                reserve_risk = "normal"

        urgency = "low"
        if profile.age >= 40 or profile.infertility_duration_months >= 24:
            urgency = "high"
        elif profile.age >= 35 or profile.infertility_duration_months >= 12:
            urgency = "moderate"

        derived = DerivedRiskFactors(
            age_risk=age_risk,
            bmi_risk=bmi_risk,
            ovarian_reserve_risk=reserve_risk,
            time_urgency=urgency,
        )
        return PatientProfile(
            age=profile.age,
            infertility_duration_months=profile.infertility_duration_months,
            bmi=profile.bmi,
            lab_values=profile.lab_values,
            symptoms=profile.symptoms,
            medical_history=profile.medical_history,
            partner=profile.partner,
            endometriosis_stage=profile.endometriosis_stage,
            derived=derived,
        )

    # ------------------------------------------------------------------
    # Post-clamp checks
    # ------------------------------------------------------------------

    @staticmethod
    def _check_ranges(profile: PatientProfile, outcome: ValidationOutcome) -> None:
        if not AGE_RANGE[0] <= profile.age <= AGE_RANGE[1]:
            outcome.errors.append(
                f"Age must be between {AGE_RANGE[0]} and {AGE_RANGE[1]} years (got {profile.age})"
            )
        if profile.bmi is not None and not BMI_RANGE[0] <= profile.bmi <= BMI_RANGE[1]:
            outcome.errors.append(
                f"BMI outside valid range ({BMI_RANGE[0]:g}-{BMI_RANGE[1]:g}): {profile.bmi:g}"
            )

    def _initialize_medical_rules(self) -> List[MedicalRule]:
        def age_rule(p: PatientProfile) -> Optional[str]:
            if p.age > 42:
                return "Advanced reproductive age, consider urgency"
            return None

        def bmi_rule(p: PatientProfile) -> Optional[str]:
            if p.bmi is None:
                return None
            if p.bmi < 16:
                return "Extremely low BMI may impair fertility"
            if p.bmi > 40:
                return "Very high BMI may complicate treatment"
            return None

        def amh_rule(p: PatientProfile) -> Optional[str]:
            if p.amh is None:
                return None
            if p.amh > 20:
                return "AMH extremely high, verify units"
            if p.amh < 0.5:
                return "AMH very low, suggests diminished ovarian reserve"
            return None

        def fsh_rule(p: PatientProfile) -> Optional[str]:
            if p.fsh is not None and p.fsh > 40:
                return "FSH very high, possible premature ovarian insufficiency"
            return None

        def duration_rule(p: PatientProfile) -> Optional[str]:
            if p.infertility_duration_months > 120 and p.age < 35:
                return "Prolonged infertility at a young age, investigate structural causes"
            if p.infertility_duration_months > 60 and p.age >= 35:
                return "Prolonged infertility at advanced age, consider urgent treatment"
            return None

        return [
            MedicalRule("age", age_rule, "Reproductive age range"),
            MedicalRule("bmi", bmi_rule, "BMI extremes for fertility treatment"),
            MedicalRule("labs.amh", amh_rule, "AMH plausibility"),
            MedicalRule("labs.fsh", fsh_rule, "Basal FSH plausibility"),
            MedicalRule("infertility_duration_months", duration_rule, "Duration versus age"),
        ]

    def _apply_medical_rules(self, profile: PatientProfile, outcome: ValidationOutcome) -> None:
        for rule in self._medical_rules:
            message = rule.check(profile)
            if message:
                outcome.warnings.append(message)

    @staticmethod
    def _check_fertility_specific(profile: PatientProfile, outcome: ValidationOutcome) -> None:
        if profile.age >= 40 and profile.infertility_duration_months >= 6:
            outcome.warnings.append("Age and duration suggest urgent evaluation")

        if profile.amh is not None and profile.amh < 1.0 and profile.age < 35:
            outcome.warnings.append("Low ovarian reserve for age, consider secondary causes")

        partner = profile.partner
        if partner is not None:
            if partner.concentration is not None and partner.concentration < SPERM_CONCENTRATION_LOW:
                outcome.warnings.append("Low sperm concentration detected")
            if partner.motility is not None and partner.motility < SPERM_MOTILITY_LOW:
                outcome.warnings.append("Reduced sperm motility")

        if profile.amh is None:
            outcome.suggestions.append("Consider requesting AMH to assess ovarian reserve")
        if partner is None:
            outcome.suggestions.append("Include male factor evaluation")

    @staticmethod
    def _check_consistency(fields: Dict[str, Any], profile: PatientProfile,
                           outcome: ValidationOutcome) -> None:
        if "bmi" in fields and "height_cm" in fields and "weight_kg" in fields:
            height_m = float(fields["height_cm"]) / 100.0
            if height_m > 0:
                calculated = float(fields["weight_kg"]) / (height_m * height_m)
                if profile.bmi is not None and abs(profile.bmi - calculated) > 2:
                    outcome.warnings.append("Reported BMI does not match height/weight")

        if profile.amh is not None and profile.fsh is not None:
            if profile.amh < 0.5 and profile.fsh < 10:
                outcome.warnings.append("Low AMH with normal FSH, verify results")

        if profile.age < 25 and profile.infertility_duration_months > 24:
            outcome.suggestions.append(
                "Prolonged infertility at a very young age, investigate structural causes"
            )

    @staticmethod
    def _check_readiness(profile: PatientProfile, outcome: ValidationOutcome) -> None:
        score = 50.0  # age and duration are guaranteed at this point
        for present in (profile.bmi is not None, profile.amh is not None,
                        profile.fsh is not None, profile.partner is not None):
            if present:
                score += 12.5
        if score < 70:
            outcome.warnings.append("Incomplete information may limit analysis precision")
        if score < 50:
            outcome.suggestions.append("Complete the basic work-up before analysis")

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    @staticmethod
    def _completeness(fields: Dict[str, Any]) -> int:
        labs = _provided_labs(fields)
        provided = [
            "age" in fields,
            "infertility_duration_months" in fields,
            "bmi" in fields or ("height_cm" in fields and "weight_kg" in fields),
            bool(fields.get("medical_history")),
            bool(fields.get("symptoms")),
            "amh" in labs,
            "fsh" in labs,
            "lh" in labs,
            "prolactin" in labs,
            "tsh" in labs,
            bool(fields.get("partner")),
            "endometriosis_stage" in fields,
        ]
        return int(round(100.0 * sum(provided) / _COMPLETENESS_FIELDS))

    @staticmethod
    def _confidence(fields: Dict[str, Any], outcome: ValidationOutcome) -> int:
        confidence = 100 - 20 * len(outcome.errors) - 5 * len(outcome.warnings)
        labs = _provided_labs(fields)
        if "amh" in labs:
            confidence += 5
        if "fsh" in labs:
            confidence += 5
        if fields.get("partner"):
            confidence += 5
        return int(max(0, min(100, confidence)))
