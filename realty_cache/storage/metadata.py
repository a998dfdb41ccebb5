"""Cached access to the site's lookup tables.

Every read goes through the shared :class:`MemoryCache`; every write goes to
the database first and then invalidates the tags of the lookups it affects.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from realty_cache.cache.advanced import CACHE_CONFIGS, create_advanced_cache
from realty_cache.cache.analytics import CacheAnalytics
from realty_cache.cache.memory import MemoryCache
from realty_cache.cache.resilience import CircuitBreaker
from realty_cache.models.cache import AdvancedCacheOptions, WarmupEntry
from realty_cache.models.listing import Community, OfferingType, PageMeta, PropertyType
from realty_cache.storage.database import DatabaseManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

OFFERING_TYPES_KEY = "offering-types"
PROPERTY_TYPES_KEY = "property-types"
COMMUNITIES_KEY = "communities"
LUXE_COMMUNITIES_KEY = "communities:luxe"


def page_meta_key(path: str) -> str:
    return f"page-meta:{path}"


class MetadataService:
    def __init__(
        self,
        db: DatabaseManager,
        store: MemoryCache,
        analytics: CacheAnalytics | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self.db = db
        self.store = store
        self.analytics = analytics
        self.breaker = breaker

    def _cached(
        self, key: str, fetcher: Callable[[], Awaitable[T]], options: AdvancedCacheOptions
    ) -> Callable[[], Awaitable[T]]:
        return create_advanced_cache(
            key,
            fetcher,
            options,
            store=self.store,
            analytics=self.analytics,
            breaker=self.breaker,
        )

    async def offering_types(self) -> list[OfferingType]:
        return await self._cached(
            OFFERING_TYPES_KEY, self.db.get_offering_types, CACHE_CONFIGS["OFFERING_TYPES"]
        )()

    async def property_types(self) -> list[PropertyType]:
        return await self._cached(
            PROPERTY_TYPES_KEY, self.db.get_property_types, CACHE_CONFIGS["PROPERTY_TYPES"]
        )()

    async def communities(self, luxe_only: bool = False) -> list[Community]:
        key = LUXE_COMMUNITIES_KEY if luxe_only else COMMUNITIES_KEY
        return await self._cached(
            key,
            lambda: self.db.get_communities(luxe_only=luxe_only),
            CACHE_CONFIGS["COMMUNITIES"],
        )()

    async def page_meta(self, path: str) -> PageMeta | None:
        return await self._cached(
            page_meta_key(path),
            lambda: self.db.get_page_meta(path),
            CACHE_CONFIGS["PAGE_META"],
        )()

    # ── Writes ────────────────────────────────────────────────────────────

    async def save_page_meta(self, meta: PageMeta) -> None:
        await self.db.save_page_meta(meta)
        self.store.delete(page_meta_key(meta.path))

    async def save_community(self, community: Community) -> int:
        await self.db.save_community(community)
        return self.store.invalidate_by_tags(["communities"])

    async def save_offering_type(self, offering: OfferingType) -> int:
        await self.db.save_offering_type(offering)
        return self.store.invalidate_by_tags(["offering-types"])

    # ── Warming ───────────────────────────────────────────────────────────

    def warmup_entries(self) -> list[WarmupEntry]:
        """Lookups needed by nearly every page render."""

        def entry(key: str, fetcher: Callable[[], Awaitable[object]], preset: str) -> WarmupEntry:
            options = CACHE_CONFIGS[preset]
            return WarmupEntry(
                key=key,
                fetcher=fetcher,
                ttl_ms=options.effective_ttl_ms,
                tags=list(options.tags),
            )

        return [
            entry(OFFERING_TYPES_KEY, self.db.get_offering_types, "OFFERING_TYPES"),
            entry(PROPERTY_TYPES_KEY, self.db.get_property_types, "PROPERTY_TYPES"),
            entry(COMMUNITIES_KEY, self.db.get_communities, "COMMUNITIES"),
        ]

    async def warm(self) -> int:
        """Pre-populate the critical lookups. Returns how many keys ended up cached."""
        entries = self.warmup_entries()
        await self.store.warm_cache(entries)
        warmed = sum(1 for e in entries if self.store.has(e.key))
        logger.info("Cache warming completed: %d/%d keys", warmed, len(entries))
        return warmed
