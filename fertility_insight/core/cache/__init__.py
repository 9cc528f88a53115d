"""
Result Cache

Usage:
    from fertility_insight.core.cache import ResultCache, fingerprint

    cache = ResultCache(max_entries=1000)
    key = fingerprint(profile)
    cache.set(key, result, tags=("clinical",))
"""
from .result_cache import CacheEntry, CacheMetrics, ResultCache, estimate_size, fingerprint

__all__ = [
    "CacheEntry",
    "CacheMetrics",
    "ResultCache",
    "estimate_size",
    "fingerprint",
]
