"""
Custom Exception Hierarchy

Every error that crosses the library boundary carries a stable code,
a human-readable message and structured details.
"""
from typing import Optional, Dict, Any, List


class FertilityEngineError(Exception):
    """Base exception for all inference pipeline errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class InvalidInputError(FertilityEngineError):
    """Fatal validation failure; lists every error found."""

    def __init__(
        self,
        errors: List[str],
        warnings: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message="Invalid patient input: " + "; ".join(errors),
            code="INVALID_INPUT",
            details={"errors": list(errors), "warnings": list(warnings or []), **(details or {})}
        )
        self.errors = list(errors)
        self.warnings = list(warnings or [])


class CalculationError(FertilityEngineError):
    """A pipeline component raised while computing its analysis."""

    def __init__(
        self,
        message: str,
        component: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="CALCULATION_ERROR",
            details={"component": component, **(details or {})}
        )
        self.component = component


class KnowledgeBaseError(CalculationError):
    """A static knowledge table is missing an entry the pipeline needs."""

    def __init__(
        self,
        message: str,
        table: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            component="knowledge_base",
            details={"table": table, **(details or {})}
        )
        self.table = table


class CacheError(FertilityEngineError):
    """Non-fatal cache failure; callers fall back to a cache bypass."""

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="CACHE_ERROR",
            details={"operation": operation, **(details or {})}
        )
        self.operation = operation


class AnalysisTimeoutError(FertilityEngineError):
    """The caller-supplied deadline elapsed before the analyses joined."""

    def __init__(
        self,
        deadline_seconds: float,
        pending: Optional[List[str]] = None
    ):
        super().__init__(
            message=f"Analysis did not complete within {deadline_seconds:.3f}s",
            code="TIMEOUT",
            details={"deadline_seconds": deadline_seconds, "pending": list(pending or [])}
        )
        self.deadline_seconds = deadline_seconds
        self.pending = list(pending or [])
