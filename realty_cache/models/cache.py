from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MemoryCacheConfig(BaseModel):
    """Construction parameters for :class:`MemoryCache`.

    Every field is required here; defaults belong to the caller (see
    ``Settings.memory_cache_config``).
    """

    model_config = ConfigDict(frozen=True)

    max_size: int = Field(ge=0)
    default_ttl_ms: int
    cleanup_interval_ms: int = Field(ge=0)
    enable_stats: bool


class CacheStats(BaseModel):
    total_entries: int
    hit_rate: float
    miss_rate: float
    memory_usage: int
    avg_response_time_ms: float
    eviction_count: int
    expired_count: int


class WarmupEntry(BaseModel):
    """One key to pre-populate, with the coroutine function that produces it."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    fetcher: Callable[[], Awaitable[Any]]
    ttl_ms: int | None = None
    tags: list[str] = []


class AdvancedCacheOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    revalidate_s: int
    tags: tuple[str, ...] = ()
    memory_ttl_ms: int | None = None
    fallback: bool = True
    fetch_attempts: int = Field(default=3, ge=1)

    @property
    def effective_ttl_ms(self) -> int:
        if self.memory_ttl_ms:
            return self.memory_ttl_ms
        return self.revalidate_s * 1000


class CacheFactoryOptions(BaseModel):
    key_prefix: str
    memory_ttl_ms: int
    disk_ttl_ms: int
    namespace: str
