"""
Clinical Analysis Layer

Diagnostic scoring, risk stratification and treatment planning over a
validated PatientProfile.

Usage:
    from fertility_insight.core.clinical import DiagnosticScorer, RiskStratifier

    primary, differential = DiagnosticScorer().diagnose(profile, kb)
    risk = RiskStratifier().stratify(profile, primary.pathology_id)
"""
from .base import (
    ClinicalAnalysisResult,
    DiagnosticCandidate,
    PrimaryDiagnosis,
    RiskLevel,
    RiskStratification,
    TreatmentDecisionTree,
    TreatmentOption,
)
from .diagnostic_scorer import DiagnosticScorer, derive_patterns
from .risk_stratifier import RiskStratifier, tier_for_score
from .treatment_tree import IMMEDIATE_IVF, TreatmentDecisionGenerator, category_for

__all__ = [
    "ClinicalAnalysisResult",
    "DiagnosticCandidate",
    "PrimaryDiagnosis",
    "RiskLevel",
    "RiskStratification",
    "TreatmentDecisionTree",
    "TreatmentOption",
    "DiagnosticScorer",
    "derive_patterns",
    "RiskStratifier",
    "tier_for_score",
    "IMMEDIATE_IVF",
    "TreatmentDecisionGenerator",
    "category_for",
]
