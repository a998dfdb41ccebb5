"""In-memory TTL cache with LRU eviction, tag invalidation and statistics.

Designed for a single asyncio event loop: every public method except
``warm_cache`` runs to completion without yielding, so no locking is needed.
The periodic expiry sweep is a ``loop.call_later`` callback on that same loop.

Values are stored by reference. A caller that mutates an object returned by
``get`` mutates the cached copy too.
"""

import asyncio
import json
import logging
import sys
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from realty_cache.cache.analytics import MetricsRecorder
from realty_cache.models.cache import CacheStats, MemoryCacheConfig, WarmupEntry

logger = logging.getLogger(__name__)

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    value: V
    expires_at: float
    created_at: float
    last_accessed_at: float
    tags: frozenset[str] = frozenset()
    hit_count: int = 0


@dataclass
class CacheCounters:
    """Lifetime counters. ``clear()`` leaves these alone; ``reset_stats()`` zeroes them."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    gets: int = 0
    total_response_time_ms: float = field(default=0.0)


class MemoryCache(Generic[V]):
    """Bounded TTL/LRU cache.

    Args:
        config: Capacity, default TTL, sweep interval and stats switch.
        metrics: Optional sink that receives hit/miss/eviction/expiration/error events.
        clock: Monotonic time source in seconds. Injected in tests.
    """

    def __init__(
        self,
        config: MemoryCacheConfig,
        *,
        metrics: MetricsRecorder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.metrics = metrics
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self._counters = CacheCounters()
        self._sweep_handle: asyncio.TimerHandle | None = None
        self._sweep_loop: asyncio.AbstractEventLoop | None = None
        self._destroyed = False
        self._ensure_sweeper()

    # ── Reads ─────────────────────────────────────────────────────────────

    def get(self, key: str) -> V | None:
        """Return the cached value, or None on a miss or an expired entry."""
        self._ensure_sweeper()
        started = time.perf_counter()
        try:
            entry = self._entries.get(key)
            if entry is None:
                self._record_miss()
                return None

            now = self._clock()
            if now >= entry.expires_at:
                del self._entries[key]
                self._record_expiration()
                self._record_miss()
                return None

            entry.last_accessed_at = now
            entry.hit_count += 1
            self._entries.move_to_end(key)
            self._record_hit()
            return entry.value
        finally:
            if self.config.enable_stats:
                self._counters.gets += 1
                self._counters.total_response_time_ms += (
                    time.perf_counter() - started
                ) * 1000

    def has(self, key: str) -> bool:
        """Return True if *key* is present and unexpired. Does not touch recency."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self._record_expiration()
            return False
        return True

    def keys(self) -> list[str]:
        """Snapshot of stored keys, LRU first. May include expired, unswept keys."""
        return list(self._entries)

    def size(self) -> int:
        """Number of stored entries, expired-but-unswept ones included."""
        return len(self._entries)

    # ── Writes ────────────────────────────────────────────────────────────

    def set(
        self,
        key: str,
        value: V,
        ttl_ms: int | None = None,
        tags: Iterable[str] | None = None,
    ) -> None:
        """Store *value* under *key*.

        A ``ttl_ms`` of zero or less stores an entry that is already expired.
        Replaces the value, expiry and tag set of an existing key without
        evicting anything.
        """
        self._ensure_sweeper()
        if self.config.max_size == 0:
            logger.debug("Cache disabled (max_size=0), dropping key %s", key)
            return

        ttl = self.config.default_ttl_ms if ttl_ms is None else ttl_ms
        now = self._clock()
        entry = CacheEntry(
            value=value,
            expires_at=now + ttl / 1000,
            created_at=now,
            last_accessed_at=now,
            tags=frozenset(tags or ()),
        )

        if key in self._entries:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            return

        while len(self._entries) >= self.config.max_size:
            self._evict_lru()
        self._entries[key] = entry

    def delete(self, key: str) -> bool:
        """Remove *key*. Returns True if it was present."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry. Statistics are kept."""
        self._entries.clear()

    def invalidate_by_tags(self, tags: Iterable[str]) -> int:
        """Remove every entry carrying any of *tags*. Returns the number removed."""
        wanted = set(tags)
        if not wanted:
            return 0
        doomed = [key for key, entry in self._entries.items() if entry.tags & wanted]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.debug("Invalidated %d entries for tags %s", len(doomed), sorted(wanted))
        return len(doomed)

    async def warm_cache(self, entries: Iterable[WarmupEntry]) -> None:
        """Populate the cache from async fetchers, concurrently.

        A failing fetcher leaves its key unset and does not affect the others.
        """
        self._ensure_sweeper()

        async def _warm_one(item: WarmupEntry) -> None:
            try:
                value = await item.fetcher()
            except Exception as exc:
                logger.warning("Failed to warm cache for key %s: %s", item.key, exc)
                if self.metrics is not None:
                    self.metrics.record_error()
                return
            self.set(item.key, value, item.ttl_ms, item.tags)

        await asyncio.gather(*(_warm_one(item) for item in entries))

    # ── Statistics ────────────────────────────────────────────────────────

    def get_stats(self) -> CacheStats:
        c = self._counters
        requests = c.hits + c.misses
        hit_rate = c.hits / requests if requests else 0.0
        miss_rate = c.misses / requests if requests else 0.0
        avg_response = c.total_response_time_ms / c.gets if c.gets else 0.0
        return CacheStats(
            total_entries=len(self._entries),
            hit_rate=round(hit_rate, 2),
            miss_rate=round(miss_rate, 2),
            memory_usage=self._estimate_memory_usage(),
            avg_response_time_ms=round(avg_response, 4),
            eviction_count=c.evictions,
            expired_count=c.expirations,
        )

    def reset_stats(self) -> None:
        self._counters = CacheCounters()

    def _estimate_memory_usage(self) -> int:
        """Rough byte estimate: UTF-8 size of each key plus its JSON-serialised value.

        This is an estimate only and is never used for eviction decisions.
        """
        total = 0
        for key, entry in self._entries.items():
            total += len(key.encode())
            try:
                total += len(json.dumps(entry.value, default=str).encode())
            except (TypeError, ValueError):
                total += sys.getsizeof(entry.value)
        return total

    def _record_hit(self) -> None:
        if not self.config.enable_stats:
            return
        self._counters.hits += 1
        if self.metrics is not None:
            self.metrics.record_hit()

    def _record_miss(self) -> None:
        if not self.config.enable_stats:
            return
        self._counters.misses += 1
        if self.metrics is not None:
            self.metrics.record_miss()

    def _record_expiration(self) -> None:
        self._counters.expirations += 1
        if self.metrics is not None:
            self.metrics.record_expiration()

    def _evict_lru(self) -> None:
        key, _ = self._entries.popitem(last=False)
        self._counters.evictions += 1
        if self.metrics is not None:
            self.metrics.record_eviction()
        logger.debug("Evicted least recently used key %s", key)

    # ── Background sweep ──────────────────────────────────────────────────

    def sweep_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
            self._record_expiration()
        return len(expired)

    @property
    def sweeping(self) -> bool:
        return self._sweep_handle is not None

    def _ensure_sweeper(self) -> None:
        """Schedule the periodic sweep on the running loop if it is not scheduled yet."""
        if self._destroyed or self.config.cleanup_interval_ms <= 0:
            return
        if self._sweep_handle is not None and not (
            self._sweep_loop is not None and self._sweep_loop.is_closed()
        ):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Constructed outside a loop; retried on the next operation.
            return
        self._sweep_loop = loop
        self._schedule_sweep()

    def _schedule_sweep(self) -> None:
        assert self._sweep_loop is not None
        self._sweep_handle = self._sweep_loop.call_later(
            self.config.cleanup_interval_ms / 1000, self._run_sweep
        )

    def _run_sweep(self) -> None:
        if self._destroyed:
            return
        removed = self.sweep_expired()
        if removed:
            logger.debug("Sweep removed %d expired entries", removed)
        self._schedule_sweep()

    def destroy(self) -> None:
        """Stop the periodic sweep. Safe to call more than once."""
        self._destroyed = True
        if self._sweep_handle is not None:
            self._sweep_handle.cancel()
            self._sweep_handle = None
        self._sweep_loop = None
