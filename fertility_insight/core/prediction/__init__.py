"""
Success-Rate Prediction Layer

Usage:
    from fertility_insight.core.prediction import SuccessRatePredictor

    estimates = SuccessRatePredictor().predict(profile, kb, risk_level=RiskLevel.HIGH)
    estimates[0].cumulative_probability(3)
"""
from .base import SuccessRateEstimate
from .success_rates import (
    AGE_BRACKET_LABELS,
    TECHNIQUES,
    SuccessRatePredictor,
    Technique,
    age_bracket,
    donor_egg_indicated,
)

__all__ = [
    "SuccessRateEstimate",
    "AGE_BRACKET_LABELS",
    "TECHNIQUES",
    "SuccessRatePredictor",
    "Technique",
    "age_bracket",
    "donor_egg_indicated",
]
