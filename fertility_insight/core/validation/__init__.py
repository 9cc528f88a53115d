"""
Input Validation Layer

Normalizes raw patient records into immutable PatientProfiles.

Usage:
    from fertility_insight.core.validation import PatientInputValidator

    validator = PatientInputValidator()
    outcome = validator.validate({"age": 34, "infertility_duration_months": 14})
    if outcome.is_valid:
        profile = outcome.profile
"""
from .patient_profile import DerivedRiskFactors, PartnerProfile, PatientProfile
from .patient_validator import MedicalRule, PatientInputValidator, ValidationOutcome

__all__ = [
    "DerivedRiskFactors",
    "PartnerProfile",
    "PatientProfile",
    "MedicalRule",
    "PatientInputValidator",
    "ValidationOutcome",
]
