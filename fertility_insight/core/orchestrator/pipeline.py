"""
Clinical Orchestrator

Single entry point of the inference pipeline:

    validate → fingerprint → cache lookup
             → fan-out (diagnosis, risk, treatment, success rates)
             → join under deadline → safe defaults / fatal aggregation
             → assemble → cache write

The four analyses run on a ThreadPoolExecutor. Tasks that need an upstream
result (risk needs the primary diagnosis, treatment and success rates need
the risk tier) recompute it locally; every component is deterministic, so
the recomputed value equals the one produced by its own task.

Failure policy:
  - diagnosis fails      → synthetic "unexplained" primary diagnosis
  - success rates fail   → unadjusted fallback list at 50% confidence
  - risk / treatment fail → fatal CALCULATION_ERROR, unless the caller
                            allows partial results
  - deadline exceeded    → TIMEOUT, nothing written to the cache
Degraded and partial results are never cached. No exception crosses
``analyze``; every failure comes back as a coded error.
"""
from __future__ import annotations

import asyncio
import copy
import functools
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from fertility_insight.config import Settings, settings as default_settings
from fertility_insight.core.cache import ResultCache, fingerprint
from fertility_insight.core.clinical import (
    ClinicalAnalysisResult,
    DiagnosticCandidate,
    DiagnosticScorer,
    PrimaryDiagnosis,
    RiskStratification,
    RiskStratifier,
    TreatmentDecisionGenerator,
    TreatmentDecisionTree,
)
from fertility_insight.core.knowledge import KnowledgeBase, default_knowledge_base
from fertility_insight.core.prediction import SuccessRateEstimate, SuccessRatePredictor
from fertility_insight.core.validation import PatientInputValidator, PatientProfile, ValidationOutcome
from fertility_insight.utils import get_logger
from fertility_insight.utils.exceptions import (
    AnalysisTimeoutError,
    CacheError,
    CalculationError,
    FertilityEngineError,
    InvalidInputError,
)
from .monitor import PerformanceMonitor

logger = get_logger(__name__)

CACHE_TAGS = ("clinical", "comprehensive")
CACHE_STRATEGIES = ("prefer", "bypass", "refresh")

# Component order used for fatal error aggregation
DIAGNOSIS = "diagnosis"
RISK = "risk_stratification"
TREATMENT = "treatment_decision_tree"
SUCCESS_RATES = "success_rates"
COMPONENTS = (DIAGNOSIS, RISK, TREATMENT, SUCCESS_RATES)


@dataclass
class AnalysisResult:
    """
    Outcome of one ``analyze`` call.

    Exactly one of ``data`` / ``error`` is set, except for partial results
    where ``data`` is set and ``metadata["errors"]`` lists component errors.
    """
    success: bool
    data: Optional[ClinicalAnalysisResult] = None
    error: Optional[FertilityEngineError] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self, cycles: int = 3) -> Dict[str, Any]:
        data = None
        if self.data is not None:
            data = self.data.to_dict()
            data["success_rates"] = [s.to_dict(cycles) for s in self.data.success_rates]
        return {
            "success": self.success,
            "data": data,
            "error": self.error.to_dict() if self.error else None,
            "metadata": dict(self.metadata),
        }


class ClinicalOrchestrator:
    """
    Runs the pipeline for one patient record at a time (many concurrently).

    Components are injected once and shared; all of them are stateless
    apart from the cache and the monitor, which are thread-safe.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        knowledge: Optional[KnowledgeBase] = None,
        validator: Optional[PatientInputValidator] = None,
        scorer: Optional[DiagnosticScorer] = None,
        stratifier: Optional[RiskStratifier] = None,
        treatment_generator: Optional[TreatmentDecisionGenerator] = None,
        predictor: Optional[SuccessRatePredictor] = None,
        cache: Optional[ResultCache] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ):
        self.config = config or default_settings
        self._knowledge = knowledge or default_knowledge_base()
        self.validator = validator or PatientInputValidator()
        self.scorer = scorer or DiagnosticScorer()
        self.stratifier = stratifier or RiskStratifier()
        self.treatment_generator = treatment_generator or TreatmentDecisionGenerator()
        self.predictor = predictor or SuccessRatePredictor()
        self.cache = cache
        self.monitor = monitor or PerformanceMonitor()
        self._knowledge_lock = threading.Lock()
        logger.info(
            f"ClinicalOrchestrator initialized (knowledge={self._knowledge.version}, "
            f"cache={'on' if cache is not None else 'off'}, workers={self.config.max_workers})"
        )

    @property
    def knowledge(self) -> KnowledgeBase:
        return self._knowledge

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze(
        self,
        raw: Any,
        *,
        allow_partial: bool = False,
        deadline_seconds: Optional[float] = None,
        cache_strategy: str = "prefer",
    ) -> AnalysisResult:
        """
        Run the full pipeline for a raw patient record.

        Args:
            raw:              Mapping (or pydantic model) with patient fields.
            allow_partial:    Return available results when risk stratification
                              or treatment planning fail.
            deadline_seconds: Overall budget; defaults to the configured timeout.
            cache_strategy:   "prefer" (read + write), "refresh" (write only)
                              or "bypass" (no cache access).

        Returns:
            AnalysisResult. Never raises.
        """
        start = time.perf_counter()
        metadata: Dict[str, Any] = {
            "cache_hit": False,
            "cache_strategy": cache_strategy,
            "degraded_components": [],
        }
        try:
            with self.monitor.measure("analyze"):
                data = self._run(raw, start, metadata, allow_partial, deadline_seconds, cache_strategy)
            result = AnalysisResult(success=True, data=data, metadata=metadata)
        except FertilityEngineError as exc:
            if isinstance(exc, InvalidInputError):
                logger.info(f"Analysis rejected: {exc.message}")
            else:
                logger.warning(f"Analysis failed [{exc.code}]: {exc.message}")
            result = AnalysisResult(success=False, error=exc, metadata=metadata)
        except Exception as exc:
            logger.error(f"Unexpected pipeline failure: {exc}", exc_info=True)
            error = CalculationError(f"Unexpected pipeline failure: {exc}", component="orchestrator")
            result = AnalysisResult(success=False, error=error, metadata=metadata)

        metadata["processing_time_ms"] = round((time.perf_counter() - start) * 1000.0, 3)
        self.monitor.record_request(result.success)
        return result

    async def analyze_async(self, raw: Any, **kwargs) -> AnalysisResult:
        """Await ``analyze`` on a worker thread."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(self.analyze, raw, **kwargs))

    def reload_knowledge(self, knowledge: KnowledgeBase) -> None:
        """
        Swap the knowledge tables for subsequent runs.

        Runs already in flight keep the tables they started with but do not
        write their results to the cache. Cached results are dropped.
        """
        with self._knowledge_lock:
            previous = self._knowledge.version
            self._knowledge = knowledge
            if self.cache is not None:
                self.cache.clear()
        logger.info(f"Knowledge base reloaded: {previous} → {knowledge.version}")

    def system_health(self) -> Dict[str, Any]:
        cache_status = self.cache.health_status() if self.cache is not None else "DISABLED"
        monitor_status = self.monitor.health()
        statuses = {cache_status, monitor_status}
        if "ERROR" in statuses:
            overall = "ERROR"
        elif "WARNING" in statuses:
            overall = "WARNING"
        else:
            overall = "OK"
        return {
            "status": overall,
            "cache": {
                "status": cache_status,
                "metrics": self.cache.metrics().to_dict() if self.cache is not None else None,
            },
            "performance": {
                "status": monitor_status,
                **self.monitor.stats(),
            },
            "knowledge_version": self._knowledge.version,
        }

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _run(
        self,
        raw: Any,
        start: float,
        metadata: Dict[str, Any],
        allow_partial: bool,
        deadline_seconds: Optional[float],
        cache_strategy: str,
    ) -> ClinicalAnalysisResult:
        if cache_strategy not in CACHE_STRATEGIES:
            raise InvalidInputError([
                f"Unknown cache strategy '{cache_strategy}' (expected one of {', '.join(CACHE_STRATEGIES)})"
            ])
        deadline = deadline_seconds if deadline_seconds is not None else self.config.analysis_timeout_seconds
        if deadline <= 0:
            raise InvalidInputError(["deadline_seconds must be positive"])

        with self.monitor.measure("validation"):
            profile, outcome = self.validator.validate_and_sanitize(raw)
        self._attach_validation(metadata, outcome)

        knowledge = self._knowledge
        key = fingerprint(profile)
        metadata["fingerprint"] = key
        metadata["knowledge_version"] = knowledge.version

        if cache_strategy == "prefer":
            cached = self._cache_get(key)
            if cached is not None:
                metadata["cache_hit"] = True
                logger.debug(f"Cache hit for {key[:12]}")
                return cached

        remaining = deadline - (time.perf_counter() - start)
        outputs, errors = self._fan_out(profile, knowledge, deadline, remaining)

        data, degraded, fatal = self._assemble(profile, knowledge, outputs, errors)
        metadata["degraded_components"] = degraded
        if errors:
            metadata["errors"] = [errors[c].to_dict() for c in COMPONENTS if c in errors]

        if fatal:
            if not allow_partial:
                raise fatal[0]
            metadata["partial"] = True
            metadata["errors"] = [e.to_dict() for e in fatal] + [
                errors[c].to_dict() for c in COMPONENTS if c in errors and errors[c] not in fatal
            ]
            return data

        if cache_strategy != "bypass" and not degraded:
            self._cache_set(key, data, knowledge)
        return data

    def _fan_out(
        self,
        profile: PatientProfile,
        knowledge: KnowledgeBase,
        deadline: float,
        remaining: float,
    ) -> Tuple[Dict[str, Any], Dict[str, CalculationError]]:
        tasks: Dict[str, Callable[[], Any]] = {
            DIAGNOSIS: functools.partial(self._diagnosis_task, profile, knowledge),
            RISK: functools.partial(self._risk_task, profile, knowledge),
            TREATMENT: functools.partial(self._treatment_task, profile, knowledge),
            SUCCESS_RATES: functools.partial(self._success_task, profile, knowledge),
        }
        if remaining <= 0:
            raise AnalysisTimeoutError(deadline, pending=list(tasks))

        outputs: Dict[str, Any] = {}
        errors: Dict[str, CalculationError] = {}

        # Not a ``with`` block: on timeout we must return without joining
        executor = ThreadPoolExecutor(
            max_workers=min(self.config.max_workers, len(tasks)),
            thread_name_prefix="fertility-analysis",
        )
        try:
            futures = {
                executor.submit(self._measured, name, task): name
                for name, task in tasks.items()
            }
            try:
                for future in as_completed(futures, timeout=remaining):
                    name = futures[future]
                    try:
                        outputs[name] = future.result()
                    except Exception as exc:
                        errors[name] = self._as_calculation_error(name, exc)
            except FuturesTimeoutError:
                pending = [n for f, n in futures.items() if not f.done()]
                for future in futures:
                    future.cancel()
                raise AnalysisTimeoutError(deadline, pending=pending) from None
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return outputs, errors

    def _measured(self, name: str, task: Callable[[], Any]) -> Any:
        with self.monitor.measure(name):
            return task()

    @staticmethod
    def _as_calculation_error(component: str, exc: Exception) -> CalculationError:
        logger.error(f"ClinicalOrchestrator [{component}]: component raised {exc}", exc_info=exc)
        if isinstance(exc, CalculationError):
            return exc
        return CalculationError(
            f"{component} failed: {exc}",
            component=component,
            details={"exception": type(exc).__name__},
        )

    def _assemble(
        self,
        profile: PatientProfile,
        knowledge: KnowledgeBase,
        outputs: Dict[str, Any],
        errors: Dict[str, CalculationError],
    ) -> Tuple[ClinicalAnalysisResult, List[str], List[CalculationError]]:
        """Apply safe defaults; returns (data, degraded components, fatal errors)."""
        degraded: List[str] = []

        if DIAGNOSIS in outputs:
            primary, differential = outputs[DIAGNOSIS]
        else:
            primary, differential = self.scorer.unexplained_diagnosis(knowledge), []
            degraded.append(DIAGNOSIS)

        risk: Optional[RiskStratification] = outputs.get(RISK)
        tree: Optional[TreatmentDecisionTree] = outputs.get(TREATMENT)
        fatal = [errors[c] for c in (RISK, TREATMENT) if c in errors]

        success_rates: Optional[List[SuccessRateEstimate]] = outputs.get(SUCCESS_RATES)
        if success_rates is None:
            try:
                success_rates = self.predictor.fallback_estimates(
                    profile, knowledge, risk.level if risk is not None else None
                )
                degraded.append(SUCCESS_RATES)
            except Exception as exc:
                logger.error(f"Fallback success rates unavailable: {exc}", exc_info=True)
                fatal.append(CalculationError(
                    f"{SUCCESS_RATES} failed and no fallback is available: {exc}",
                    component=SUCCESS_RATES,
                ))
                success_rates = []

        data = ClinicalAnalysisResult(
            primary_diagnosis=primary,
            differential_diagnoses=list(differential),
            risk_stratification=risk,
            treatment_decision_tree=tree,
            success_rates=list(success_rates),
        )
        return data, degraded, fatal

    # ------------------------------------------------------------------
    # Component tasks (run on worker threads)
    # ------------------------------------------------------------------

    def _diagnosis_task(
        self, profile: PatientProfile, knowledge: KnowledgeBase
    ) -> Tuple[PrimaryDiagnosis, List[DiagnosticCandidate]]:
        return self.scorer.diagnose(profile, knowledge)

    def _primary_for(self, profile: PatientProfile, knowledge: KnowledgeBase) -> PrimaryDiagnosis:
        """Primary diagnosis for dependent tasks; unexplained if scoring fails."""
        try:
            primary, _ = self.scorer.diagnose(profile, knowledge)
            return primary
        except Exception as exc:
            logger.warning(f"Primary diagnosis unavailable to dependent task, using unexplained: {exc}")
            return self.scorer.unexplained_diagnosis(knowledge)

    def _risk_task(self, profile: PatientProfile, knowledge: KnowledgeBase) -> RiskStratification:
        primary = self._primary_for(profile, knowledge)
        return self.stratifier.stratify(profile, primary.pathology_id)

    def _treatment_task(self, profile: PatientProfile, knowledge: KnowledgeBase) -> TreatmentDecisionTree:
        primary = self._primary_for(profile, knowledge)
        risk = self.stratifier.stratify(profile, primary.pathology_id)
        return self.treatment_generator.generate(primary.pathology_id, profile.age, risk.level, knowledge)

    def _success_task(self, profile: PatientProfile, knowledge: KnowledgeBase) -> List[SuccessRateEstimate]:
        primary = self._primary_for(profile, knowledge)
        risk = self.stratifier.stratify(profile, primary.pathology_id)
        return self.predictor.predict(profile, knowledge, risk.level, primary.pathology_id)

    # ------------------------------------------------------------------
    # Cache access (failures degrade to bypass)
    # ------------------------------------------------------------------

    def _cache_get(self, key: str) -> Optional[ClinicalAnalysisResult]:
        if self.cache is None:
            return None
        try:
            cached = self.cache.get(key)
        except CacheError as exc:
            logger.warning(f"Cache read failed, bypassing: {exc.message}")
            return None
        # Callers own what they receive; the stored copy stays untouched
        return copy.deepcopy(cached) if cached is not None else None

    def _cache_set(self, key: str, data: ClinicalAnalysisResult, knowledge: KnowledgeBase) -> None:
        if self.cache is None:
            return
        with self._knowledge_lock:
            if knowledge is not self._knowledge:
                logger.info(
                    f"Knowledge reloaded during run ({knowledge.version} → {self._knowledge.version}), "
                    f"result not cached"
                )
                return
            try:
                self.cache.set(
                    key, copy.deepcopy(data),
                    ttl=self.config.cache_default_ttl_seconds, tags=CACHE_TAGS,
                )
            except CacheError as exc:
                logger.warning(f"Cache write failed, result not cached: {exc.message}")

    @staticmethod
    def _attach_validation(metadata: Dict[str, Any], outcome: ValidationOutcome) -> None:
        metadata["warnings"] = list(outcome.warnings)
        metadata["suggestions"] = list(outcome.suggestions)
        metadata["completeness_score"] = outcome.completeness_score
        metadata["validation_confidence"] = outcome.confidence


def build_orchestrator(
    config: Optional[Settings] = None,
    knowledge: Optional[KnowledgeBase] = None,
) -> ClinicalOrchestrator:
    """Wire the default components from configuration."""
    config = config or default_settings
    cache = None
    if config.cache_enabled:
        cache = ResultCache(
            max_entries=config.cache_max_entries,
            max_bytes=config.cache_max_bytes,
            default_ttl_seconds=config.cache_default_ttl_seconds,
        )
    return ClinicalOrchestrator(config=config, knowledge=knowledge, cache=cache)
