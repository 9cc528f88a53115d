"""
Fertility Insight - FastAPI Application

Thin HTTP adapter over the in-process inference pipeline:
- Clinical analysis (diagnosis, risk, treatment plan, success rates)
- Result cache inspection and invalidation
- Health and performance monitoring

Run with:
    uvicorn fertility_insight.main:app --reload
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from starlette.concurrency import run_in_threadpool

from fertility_insight import __version__
from fertility_insight.config import settings
from fertility_insight.core.orchestrator import CACHE_STRATEGIES, build_orchestrator
from fertility_insight.models import (
    AnalysisRequest,
    AnalysisResponse,
    CacheInvalidationResponse,
    CacheMetricsResponse,
    ErrorResponse,
    HealthResponse,
)
from fertility_insight.utils import get_logger, setup_logging

logger = get_logger(__name__)

# Error code → HTTP status
_STATUS_BY_CODE = {
    "INVALID_INPUT": 422,
    "TIMEOUT": 504,
}

START_TIME = datetime.now()

# ---- Orchestrator (built once, shared by all requests) ----
_orchestrator = build_orchestrator(settings)


# ---- Application Lifespan ----

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, settings.log_file or None)
    app.state.orchestrator = _orchestrator
    logger.info("API ready to accept requests")
    yield
    logger.info("Fertility Insight API shut down.")


# ---- FastAPI Application ----

app = FastAPI(
    title=settings.api_title,
    description="Deterministic fertility clinical inference: differential diagnosis, "
                "risk tier, treatment decision tree and per-technique success rates",
    version=settings.api_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


def _health() -> HealthResponse:
    cache = _orchestrator.cache
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now().isoformat(),
        uptime_seconds=(datetime.now() - START_TIME).total_seconds(),
        cache=cache.health_status() if cache is not None else "DISABLED",
        knowledge_version=_orchestrator.knowledge.version,
    )


def _require_cache():
    if _orchestrator.cache is None:
        raise HTTPException(status_code=404, detail="Result cache is disabled")
    return _orchestrator.cache


# ---- API Endpoints ----

@app.get("/", response_model=HealthResponse, tags=["Health"])
async def root():
    """API root - health check."""
    return _health()


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return _health()


@app.post(
    "/api/v1/analyze",
    response_model=AnalysisResponse,
    tags=["Analysis"],
    responses={
        422: {"model": ErrorResponse, "description": "Invalid patient input"},
        500: {"model": ErrorResponse, "description": "Calculation failure"},
        504: {"model": ErrorResponse, "description": "Deadline exceeded"},
    },
)
async def analyze(
    request: AnalysisRequest,
    allow_partial: bool = Query(False, description="Return partial results on component failure"),
    cache_strategy: str = Query("prefer", description="prefer | refresh | bypass"),
    deadline_seconds: Optional[float] = Query(None, gt=0, description="Overall time budget"),
):
    """
    Run the full clinical analysis for one patient record.
    """
    if cache_strategy not in CACHE_STRATEGIES:
        raise HTTPException(
            status_code=422,
            detail=f"cache_strategy must be one of {', '.join(CACHE_STRATEGIES)}",
        )

    payload = request.model_dump(exclude_none=True)
    result = await run_in_threadpool(
        _orchestrator.analyze,
        payload,
        allow_partial=allow_partial,
        deadline_seconds=deadline_seconds,
        cache_strategy=cache_strategy,
    )

    if not result.success:
        status_code = _STATUS_BY_CODE.get(result.error.code, 500)
        logger.warning(f"Analysis request failed [{result.error.code}]: {result.error.message}")
        raise HTTPException(status_code=status_code, detail=result.error.to_dict())

    body = result.to_dict(cycles=settings.cumulative_cycles)
    return AnalysisResponse(success=True, data=body["data"], metadata=body["metadata"])


@app.get("/api/v1/cache/metrics", response_model=CacheMetricsResponse, tags=["Cache"])
async def cache_metrics():
    """Result cache statistics and health."""
    cache = _require_cache()
    return CacheMetricsResponse(status=cache.health_status(), **cache.metrics().to_dict())


@app.delete("/api/v1/cache", response_model=CacheInvalidationResponse, tags=["Cache"])
async def clear_cache():
    """Drop every cached result."""
    cache = _require_cache()
    return CacheInvalidationResponse(removed=cache.clear())


@app.delete("/api/v1/cache/tags/{tag}", response_model=CacheInvalidationResponse, tags=["Cache"])
async def invalidate_tag(tag: str):
    """Drop cached results carrying a tag."""
    cache = _require_cache()
    return CacheInvalidationResponse(removed=cache.delete_by_tag(tag), tag=tag)


@app.get("/api/v1/monitor", tags=["Monitoring"])
async def monitor():
    """Combined pipeline health: cache status and per-operation timings."""
    return _orchestrator.system_health()
