"""
Result Cache

Process-local memo of full pipeline results, keyed by a SHA-256 fingerprint
of the clinically relevant profile fields only. Entries expire on read once
their TTL has elapsed.

Eviction runs before a write that would break the byte or entry budget.
Each entry gets a score:

    age_days + hours_since_last_access + 1 / access_count

Higher score means older, colder and less frequently used. Entries are
removed highest score first until enough bytes are freed for the incoming
value and the entry count is under 80% of its budget.
"""
from __future__ import annotations

import hashlib
import json
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from fertility_insight.core.validation import PatientProfile
from fertility_insight.utils import get_logger
from fertility_insight.utils.exceptions import CacheError

logger = get_logger(__name__)

SECONDS_PER_DAY = 86400.0
SECONDS_PER_HOUR = 3600.0
EVICTION_TARGET_RATIO = 0.8

# health_status() thresholds
HIT_RATE_ERROR = 0.3
HIT_RATE_WARNING = 0.6
USAGE_WARNING = 0.9


def fingerprint(profile: PatientProfile) -> str:
    """
    Stable hash of the fields that influence clinical output.

    Free text and presentation metadata never reach a PatientProfile, and
    collections are sorted, so field order and casing do not change the key.
    """
    partner = profile.partner
    canonical = {
        "age": profile.age,
        "infertility_duration_months": profile.infertility_duration_months,
        "bmi": profile.bmi,
        "lab_values": dict(sorted(profile.lab_values.items())),
        "medical_history": sorted(profile.medical_history),
        "symptoms": sorted(profile.symptoms),
        "partner": partner.semen_metrics() if partner is not None else None,
        "endometriosis_stage": profile.endometriosis_stage,
    }
    payload = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def estimate_size(value: Any) -> int:
    """Serialized JSON length × 2 (UTF-16 upper bound)."""
    data = value.to_dict() if hasattr(value, "to_dict") else value
    return len(json.dumps(data, default=str)) * 2


@dataclass
class CacheEntry:
    key: str
    value: Any
    created_at: float
    ttl: float
    last_accessed_at: float
    size_bytes: int
    access_count: int = 0
    tags: FrozenSet[str] = field(default_factory=frozenset)

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl

    def eviction_score(self, now: float) -> float:
        age_days = (now - self.created_at) / SECONDS_PER_DAY
        idle_hours = (now - self.last_accessed_at) / SECONDS_PER_HOUR
        return age_days + idle_hours + 1.0 / max(self.access_count, 1)


@dataclass
class CacheMetrics:
    total_entries: int
    total_bytes: int
    hits: int
    misses: int
    hit_rate: float
    evictions: int
    expirations: int
    oldest_entry: Optional[float]
    newest_entry: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_entries": self.total_entries,
            "total_bytes": self.total_bytes,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hit_rate, 4),
            "evictions": self.evictions,
            "expirations": self.expirations,
            "oldest_entry": self.oldest_entry,
            "newest_entry": self.newest_entry,
        }


class ResultCache:
    """
    Thread-safe TTL cache with a byte and entry budget.

    All map mutation happens under one re-entrant lock, so a write fully
    replaces any previous value for the key.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        max_bytes: int = 50 * 1024 * 1024,
        default_ttl_seconds: float = 1800.0,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries <= 0 or max_bytes <= 0 or default_ttl_seconds <= 0:
            raise ValueError("Cache budgets and TTL must be positive")
        self.max_entries = max_entries
        self.max_bytes = max_bytes
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._total_bytes = 0
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        logger.info(
            f"ResultCache initialized (max_entries={max_entries}, "
            f"max_bytes={max_bytes}, ttl={default_ttl_seconds}s)"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    @property
    def total_bytes(self) -> int:
        return self._total_bytes

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key`` or None on miss / expiry."""
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(now):
                self._remove(key)
                self._expirations += 1
                self._misses += 1
                logger.debug(f"ResultCache: expired {key[:12]}")
                return None
            entry.access_count += 1
            entry.last_accessed_at = now
            self._hits += 1
            return entry.value

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        tags: Iterable[str] = (),
    ) -> CacheEntry:
        """
        Store ``value``, replacing any previous entry for ``key``.

        Raises:
            CacheError: the value cannot be serialized or exceeds the whole
                byte budget on its own.
        """
        try:
            size = estimate_size(value)
        except (TypeError, ValueError) as exc:
            raise CacheError(f"Value is not serializable: {exc}", operation="set") from exc
        if size > self.max_bytes:
            raise CacheError(
                f"Value of {size} bytes exceeds cache budget of {self.max_bytes} bytes",
                operation="set",
                details={"size_bytes": size},
            )

        with self._lock:
            if key in self._entries:
                self._remove(key)
            if self._needs_eviction(size):
                self._evict(size)

            now = self._clock()
            entry = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                ttl=float(ttl if ttl is not None else self.default_ttl_seconds),
                last_accessed_at=now,
                size_bytes=size,
                tags=frozenset(tags),
            )
            self._entries[key] = entry
            self._total_bytes += size
            return entry

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._entries:
                return False
            self._remove(key)
            return True

    def delete_by_tag(self, tag: str) -> int:
        """Remove every entry carrying ``tag``; returns the count removed."""
        with self._lock:
            keys = [k for k, e in self._entries.items() if tag in e.tags]
            for key in keys:
                self._remove(key)
        if keys:
            logger.info(f"ResultCache: invalidated {len(keys)} entr(ies) tagged '{tag}'")
        return len(keys)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._total_bytes = 0
        logger.info(f"ResultCache: cleared {count} entr(ies)")
        return count

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            keys = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in keys:
                self._remove(key)
            self._expirations += len(keys)
        return len(keys)

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Raw entry lookup without touching access statistics."""
        with self._lock:
            return self._entries.get(key)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def hit_rate(self) -> float:
        lookups = self._hits + self._misses
        return self._hits / lookups if lookups else 0.0

    def metrics(self) -> CacheMetrics:
        with self._lock:
            created = [e.created_at for e in self._entries.values()]
            return CacheMetrics(
                total_entries=len(self._entries),
                total_bytes=self._total_bytes,
                hits=self._hits,
                misses=self._misses,
                hit_rate=self.hit_rate(),
                evictions=self._evictions,
                expirations=self._expirations,
                oldest_entry=min(created) if created else None,
                newest_entry=max(created) if created else None,
            )

    def health_status(self) -> str:
        """OK | WARNING | ERROR. Hit-rate checks apply once lookups exist."""
        with self._lock:
            if self._hits + self._misses > 0:
                rate = self.hit_rate()
                if rate < HIT_RATE_ERROR:
                    return "ERROR"
                if rate < HIT_RATE_WARNING:
                    return "WARNING"
            if self._total_bytes > self.max_bytes * USAGE_WARNING:
                return "WARNING"
            if len(self._entries) > self.max_entries * USAGE_WARNING:
                return "WARNING"
            return "OK"

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key)
        self._total_bytes -= entry.size_bytes

    def _needs_eviction(self, incoming_bytes: int) -> bool:
        return (
            self._total_bytes + incoming_bytes > self.max_bytes
            or len(self._entries) >= self.max_entries
        )

    def _evict(self, incoming_bytes: int) -> None:
        now = self._clock()
        ranked: List[CacheEntry] = sorted(
            self._entries.values(),
            key=lambda e: e.eviction_score(now),
            reverse=True,
        )
        freed = 0
        removed = 0
        for entry in ranked:
            self._remove(entry.key)
            freed += entry.size_bytes
            removed += 1
            if (freed >= incoming_bytes
                    and self._total_bytes + incoming_bytes <= self.max_bytes
                    and len(self._entries) < self.max_entries * EVICTION_TARGET_RATIO):
                break
        self._evictions += removed
        logger.info(f"ResultCache eviction: {removed} entr(ies) removed, {freed // 1024}KB freed")
