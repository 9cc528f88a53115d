"""
Knowledge Base

Read-only pathology and treatment tables consumed by the pipeline.

Usage:
    from fertility_insight.core.knowledge import default_knowledge_base

    kb = default_knowledge_base()
    kb.pathology("pcos").evidence_level
"""
from .base import (
    EvidenceLevel,
    KnowledgeBase,
    PathologyCategory,
    PathologyRecord,
    TreatmentLevel,
    TreatmentProtocolRecord,
)
from .pathologies import PATHOLOGY_TABLE
from .treatments import TREATMENT_TABLE


def default_knowledge_base() -> KnowledgeBase:
    """Build a KnowledgeBase from the bundled tables."""
    return KnowledgeBase.from_records(PATHOLOGY_TABLE, TREATMENT_TABLE, version="bundled")


__all__ = [
    "EvidenceLevel",
    "KnowledgeBase",
    "PathologyCategory",
    "PathologyRecord",
    "TreatmentLevel",
    "TreatmentProtocolRecord",
    "PATHOLOGY_TABLE",
    "TREATMENT_TABLE",
    "default_knowledge_base",
]
