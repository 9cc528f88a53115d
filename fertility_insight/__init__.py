"""
Fertility Insight - deterministic clinical inference pipeline.

Usage:
    import fertility_insight

    result = fertility_insight.analyze({
        "age": 34,
        "infertility_duration_months": 18,
        "lab_values": {"amh": 1.8, "fsh": 7.2},
    })
    result.data.primary_diagnosis.pathology_id
"""
import threading
from typing import Any, Optional

from .core.orchestrator import AnalysisResult, ClinicalOrchestrator, build_orchestrator

__version__ = "1.0.0"

_default_orchestrator: Optional[ClinicalOrchestrator] = None
_default_lock = threading.Lock()


def get_orchestrator() -> ClinicalOrchestrator:
    """Lazily built orchestrator wired from the environment settings."""
    global _default_orchestrator
    with _default_lock:
        if _default_orchestrator is None:
            _default_orchestrator = build_orchestrator()
        return _default_orchestrator


def analyze(raw: Any, **kwargs) -> AnalysisResult:
    """Run the pipeline on the default orchestrator. Never raises."""
    return get_orchestrator().analyze(raw, **kwargs)


__all__ = [
    "AnalysisResult",
    "ClinicalOrchestrator",
    "analyze",
    "build_orchestrator",
    "get_orchestrator",
]
