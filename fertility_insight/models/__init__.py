"""
API Models Package
"""
from .analysis import (
    AnalysisRequest,
    AnalysisResponse,
    CacheInvalidationResponse,
    CacheMetricsResponse,
    ClinicalAnalysisResponse,
    ErrorResponse,
    HealthResponse,
    PartnerInput,
    SemenAnalysisInput,
)

__all__ = [
    "AnalysisRequest",
    "AnalysisResponse",
    "CacheInvalidationResponse",
    "CacheMetricsResponse",
    "ClinicalAnalysisResponse",
    "ErrorResponse",
    "HealthResponse",
    "PartnerInput",
    "SemenAnalysisInput",
]
