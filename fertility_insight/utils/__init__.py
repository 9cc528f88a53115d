"""
Utilities Package - Logging and Exception Handling
"""
from .logging import get_logger, setup_logging
from .exceptions import (
    FertilityEngineError,
    InvalidInputError,
    CalculationError,
    KnowledgeBaseError,
    CacheError,
    AnalysisTimeoutError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "FertilityEngineError",
    "InvalidInputError",
    "CalculationError",
    "KnowledgeBaseError",
    "CacheError",
    "AnalysisTimeoutError",
]
