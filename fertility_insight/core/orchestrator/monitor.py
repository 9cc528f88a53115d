"""
Performance Monitor

Records duration and outcome of every pipeline operation and aggregates
them into global and per-operation statistics.
"""
from __future__ import annotations

import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterator, List, Optional

import numpy as np

from fertility_insight.utils import get_logger

logger = get_logger(__name__)

DEFAULT_HISTORY = 5000
SLOW_OPERATION_MS = 1000.0

# health() thresholds on error rate
ERROR_RATE_WARNING = 0.1
ERROR_RATE_ERROR = 0.5


@dataclass(frozen=True)
class OperationSample:
    operation: str
    duration_ms: float
    success: bool
    timestamp: float
    error_code: Optional[str] = None


class PerformanceMonitor:
    """
    Bounded in-memory history of operation timings.

    Thread-safe; shared by the orchestrator and its worker threads.
    """

    def __init__(self, history: int = DEFAULT_HISTORY, clock=time.time):
        self._samples: Deque[OperationSample] = deque(maxlen=history)
        self._lock = threading.Lock()
        self._clock = clock
        self._started_at = clock()
        self._total_requests = 0
        self._successful_requests = 0

    @contextmanager
    def measure(self, operation: str) -> Iterator[None]:
        """
        Time the enclosed block.

        A raised exception marks the sample failed and propagates unchanged.
        """
        start = time.perf_counter()
        try:
            yield
        except Exception as exc:
            self.record(operation, (time.perf_counter() - start) * 1000.0, False,
                        error_code=getattr(exc, "code", type(exc).__name__))
            raise
        self.record(operation, (time.perf_counter() - start) * 1000.0, True)

    def record(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error_code: Optional[str] = None,
    ) -> None:
        sample = OperationSample(operation, duration_ms, success, self._clock(), error_code)
        with self._lock:
            self._samples.append(sample)
        if duration_ms > SLOW_OPERATION_MS:
            logger.warning(f"Slow operation '{operation}': {duration_ms:.1f}ms")

    def record_request(self, success: bool) -> None:
        with self._lock:
            self._total_requests += 1
            if success:
                self._successful_requests += 1

    def reset(self) -> None:
        with self._lock:
            self._samples.clear()
            self._total_requests = 0
            self._successful_requests = 0
            self._started_at = self._clock()

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def operation_stats(self, window_seconds: Optional[float] = None) -> List[Dict[str, Any]]:
        """Per-operation aggregates, optionally limited to a recent window."""
        with self._lock:
            samples = list(self._samples)
        if window_seconds is not None:
            cutoff = self._clock() - window_seconds
            samples = [s for s in samples if s.timestamp > cutoff]

        grouped: Dict[str, List[OperationSample]] = {}
        for sample in samples:
            grouped.setdefault(sample.operation, []).append(sample)

        stats = []
        for operation, group in grouped.items():
            durations = np.array([s.duration_ms for s in group])
            failures = sum(1 for s in group if not s.success)
            stats.append({
                "operation": operation,
                "count": len(group),
                "average_ms": round(float(durations.mean()), 3),
                "min_ms": round(float(durations.min()), 3),
                "max_ms": round(float(durations.max()), 3),
                "p95_ms": round(float(np.percentile(durations, 95)), 3),
                "error_count": failures,
                "success_rate": round((len(group) - failures) / len(group), 4),
            })
        return sorted(stats, key=lambda s: s["operation"])

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._total_requests
            ok = self._successful_requests
            request_durations = [s.duration_ms for s in self._samples if s.operation == "analyze"]
        success_rate = ok / total if total else 1.0
        return {
            "total_requests": total,
            "successful_requests": ok,
            "success_rate": round(success_rate, 4),
            "error_rate": round(1.0 - success_rate, 4),
            "average_response_ms": (
                round(float(np.mean(request_durations)), 3) if request_durations else 0.0
            ),
            "uptime_seconds": round(self._clock() - self._started_at, 3),
            "by_operation": self.operation_stats(),
        }

    def health(self) -> str:
        """OK | WARNING | ERROR from the request error rate."""
        error_rate = self.stats()["error_rate"]
        if error_rate > ERROR_RATE_ERROR:
            return "ERROR"
        if error_rate > ERROR_RATE_WARNING:
            return "WARNING"
        return "OK"
