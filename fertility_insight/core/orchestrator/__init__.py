"""
Orchestration Layer

Usage:
    from fertility_insight.core.orchestrator import build_orchestrator

    orchestrator = build_orchestrator()
    result = orchestrator.analyze({"age": 36, "infertility_duration_months": 18})
    if result.success:
        result.data.primary_diagnosis.pathology_id
"""
from .monitor import OperationSample, PerformanceMonitor
from .pipeline import (
    CACHE_STRATEGIES,
    CACHE_TAGS,
    AnalysisResult,
    ClinicalOrchestrator,
    build_orchestrator,
)

__all__ = [
    "OperationSample",
    "PerformanceMonitor",
    "CACHE_STRATEGIES",
    "CACHE_TAGS",
    "AnalysisResult",
    "ClinicalOrchestrator",
    "build_orchestrator",
]
