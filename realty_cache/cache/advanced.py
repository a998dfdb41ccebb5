"""Fetcher memoization layered over :class:`MemoryCache`.

A wrapped fetcher first consults the memory cache and only runs the
underlying query on a miss, storing the result under the configured TTL
and tags so writes elsewhere can invalidate it.
"""

import hashlib
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from typing import Any, TypeVar
from urllib.parse import urlencode

from realty_cache.cache.analytics import CacheAnalytics, CacheHealthMonitor
from realty_cache.cache.memory import MemoryCache
from realty_cache.cache.resilience import CircuitBreaker, with_retries
from realty_cache.models.cache import AdvancedCacheOptions, CacheFactoryOptions

logger = logging.getLogger(__name__)

T = TypeVar("T")


CACHE_CONFIGS: dict[str, AdvancedCacheOptions] = {
    "PROPERTY_LISTINGS": AdvancedCacheOptions(
        revalidate_s=1800, tags=("properties", "listings"), memory_ttl_ms=300_000
    ),
    "PROPERTY_DETAIL": AdvancedCacheOptions(
        revalidate_s=3600, tags=("properties", "property-details"), memory_ttl_ms=600_000
    ),
    "PROPERTY_TYPES": AdvancedCacheOptions(
        revalidate_s=14400, tags=("property-types", "metadata"), memory_ttl_ms=1_800_000
    ),
    "OFFERING_TYPES": AdvancedCacheOptions(
        revalidate_s=14400, tags=("offering-types", "metadata"), memory_ttl_ms=1_800_000
    ),
    "COMMUNITIES": AdvancedCacheOptions(
        revalidate_s=7200, tags=("communities", "metadata"), memory_ttl_ms=1_200_000
    ),
    "PAGE_META": AdvancedCacheOptions(
        revalidate_s=7200, tags=("page-meta", "seo"), memory_ttl_ms=1_800_000
    ),
}


def create_advanced_cache(
    key: str,
    fetcher: Callable[[], Awaitable[T]],
    options: AdvancedCacheOptions,
    *,
    store: MemoryCache,
    analytics: CacheAnalytics | None = None,
    breaker: CircuitBreaker | None = None,
) -> Callable[[], Awaitable[T]]:
    """Return a coroutine function that serves *key* from *store*, fetching on a miss.

    With ``options.fallback`` on, transient fetch errors are retried
    (``options.fetch_attempts`` in total). Errors that survive are recorded on
    *analytics* and re-raised. Hits and misses are reported by *store* itself.
    A ``None`` result is returned but not cached.
    """
    fetch = with_retries(fetcher, options.fetch_attempts) if options.fallback else fetcher

    async def _cached() -> T:
        cached = store.get(key)
        if cached is not None:
            return cached

        try:
            value = await breaker.call(fetch) if breaker is not None else await fetch()
        except Exception:
            if analytics is not None:
                analytics.record_error()
            logger.exception("Cache fetch failed for %s", key)
            raise

        if value is not None:
            store.set(key, value, options.effective_ttl_ms, options.tags)
        return value

    return _cached


# ── Geographic keys ──────────────────────────────────────────────────────────


def geo_cache_key(base_key: str, params: Mapping[str, Any]) -> str:
    """Build a listing-search cache key from location and search parameters."""
    search = params.get("search_params")
    if search:
        encoded = urlencode(sorted(dict(search).items()), doseq=True)
        search_hash = hashlib.sha1(encoded.encode()).hexdigest()[:10]
    else:
        search_hash = "default"
    parts = [
        base_key,
        params.get("city") or "all",
        params.get("community") or "all",
        params.get("property_type") or "all",
        params.get("offering_type") or "all",
        str(params.get("page") or "1"),
        search_hash,
    ]
    return "-".join(str(p) for p in parts)


def create_geo_optimized_cache(
    base_key: str,
    fetcher: Callable[[Mapping[str, Any]], Awaitable[T]],
    options: AdvancedCacheOptions,
    *,
    store: MemoryCache,
    analytics: CacheAnalytics | None = None,
) -> Callable[[Mapping[str, Any]], Awaitable[T]]:
    """Like :func:`create_advanced_cache`, keyed per search via :func:`geo_cache_key`."""

    async def _lookup(params: Mapping[str, Any]) -> T:
        cached = create_advanced_cache(
            geo_cache_key(base_key, params),
            lambda: fetcher(params),
            options,
            store=store,
            analytics=analytics,
        )
        return await cached()

    return _lookup


# ── Factory ──────────────────────────────────────────────────────────────────


class CacheFactory:
    """Namespaced view over a shared :class:`MemoryCache`.

    Keys are stored as ``"{key_prefix}:{key}"`` and tagged with the namespace
    and prefix, so :meth:`clear` drops the whole namespace in one call.
    """

    def __init__(
        self,
        options: CacheFactoryOptions,
        *,
        store: MemoryCache,
        analytics: CacheAnalytics | None = None,
    ) -> None:
        self.options = options
        self.store = store
        self.analytics = analytics

    def full_key(self, key: str) -> str:
        return f"{self.options.key_prefix}:{key}"

    @property
    def tags(self) -> tuple[str, str]:
        return (self.options.namespace, self.options.key_prefix)

    def _cache_options(self) -> AdvancedCacheOptions:
        return AdvancedCacheOptions(
            revalidate_s=self.options.disk_ttl_ms // 1000,
            tags=self.tags,
            memory_ttl_ms=self.options.memory_ttl_ms,
        )

    async def get(self, key: str, fetcher: Callable[[], Awaitable[T]]) -> T:
        cached = create_advanced_cache(
            self.full_key(key),
            fetcher,
            self._cache_options(),
            store=self.store,
            analytics=self.analytics,
        )
        return await cached()

    def set(self, key: str, value: Any) -> None:
        self.store.set(self.full_key(key), value, self.options.memory_ttl_ms, self.tags)

    def clear(self) -> int:
        return self.store.invalidate_by_tags([self.options.namespace])


class MonitoredCache:
    """Wraps a :class:`CacheFactory` and reports its behaviour to a health monitor.

    Metrics are pushed every ``report_every`` requests and after every error.
    """

    def __init__(
        self,
        factory: CacheFactory,
        monitor: CacheHealthMonitor,
        report_every: int = 10,
    ) -> None:
        self.factory = factory
        self.monitor = monitor
        self.report_every = report_every
        self.request_count = 0
        self.hit_count = 0
        self.error_count = 0
        self.total_response_time_ms = 0.0
        self._key_hits: dict[str, int] = {}

    @property
    def namespace(self) -> str:
        return self.factory.options.namespace

    async def get(self, key: str, fetcher: Callable[[], Awaitable[T]]) -> T:
        started = time.perf_counter()
        self.request_count += 1
        was_cached = self.factory.store.has(self.factory.full_key(key))
        try:
            result = await self.factory.get(key, fetcher)
        except Exception:
            self.error_count += 1
            self.total_response_time_ms += (time.perf_counter() - started) * 1000
            self._report()
            raise

        self.total_response_time_ms += (time.perf_counter() - started) * 1000
        if was_cached:
            self.hit_count += 1
            self._key_hits[key] = self._key_hits.get(key, 0) + 1
        if self.request_count % self.report_every == 0:
            self._report()
        return result

    def clear(self) -> int:
        removed = self.factory.clear()
        self.monitor.update_metrics(self.namespace, last_cleared=datetime.now(UTC))
        return removed

    def _report(self) -> None:
        requests = self.request_count
        store = self.factory.store
        max_size = store.config.max_size
        popular = sorted(self._key_hits.items(), key=lambda kv: kv[1], reverse=True)[:5]
        self.monitor.update_metrics(
            self.namespace,
            hit_rate=self.hit_count / requests,
            miss_rate=(requests - self.hit_count) / requests,
            total_requests=requests,
            avg_response_time_ms=self.total_response_time_ms / requests,
            error_rate=self.error_count / requests,
            memory_usage=store.size() / max_size if max_size else 0.0,
            popular_keys=[{"key": k, "hits": h} for k, h in popular],
        )
