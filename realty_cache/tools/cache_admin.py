import logging

from fastmcp import FastMCP

from realty_cache.cache.analytics import get_cache_health
from realty_cache.server import get_analytics, get_cache, get_metadata

logger = logging.getLogger(__name__)


def register_cache_tools(mcp: FastMCP) -> None:
    """Register cache inspection and invalidation tools on the MCP server."""

    @mcp.tool
    async def cache_stats() -> str:
        """Show memory cache statistics: entry count, hit/miss rates,
        evictions, expirations, estimated memory use and average lookup time.

        Returns:
            A short multi-line report.
        """
        stats = get_cache().get_stats()
        return "\n".join(
            [
                f"Entries: {stats.total_entries}",
                f"Hit rate: {stats.hit_rate:.0%}",
                f"Miss rate: {stats.miss_rate:.0%}",
                f"Evictions: {stats.eviction_count}",
                f"Expired: {stats.expired_count}",
                f"Memory (estimate): {stats.memory_usage} bytes",
                f"Avg lookup: {stats.avg_response_time_ms:.3f} ms",
            ]
        )

    @mcp.tool
    async def cache_health() -> str:
        """Classify cache health as healthy, degraded or unhealthy from the
        hit rate and error count.

        Returns:
            The status followed by the counters it was derived from.
        """
        report = get_cache_health(get_analytics())
        s = report.stats
        return (
            f"Cache is {report.status}: hit rate {s.hit_rate:.1f}% "
            f"({s.hits} hits, {s.misses} misses, {s.errors} errors)"
        )

    @mcp.tool
    async def invalidate_cache_tags(tags: list[str]) -> str:
        """Drop every cached entry carrying any of the given tags, e.g.
        ["communities"] after editing a community or ["seo"] after a
        metadata change.

        Args:
            tags: Tags to invalidate. An entry matching any of them is removed.

        Returns:
            How many entries were removed.
        """
        if not tags:
            return "No tags given; nothing invalidated."
        removed = get_cache().invalidate_by_tags(tags)
        logger.info("Invalidated %d cache entries for tags %s", removed, tags)
        return f"Invalidated {removed} entries tagged {', '.join(tags)}."

    @mcp.tool
    async def clear_cache() -> str:
        """Remove every entry from the memory cache. Statistics are kept.

        Returns:
            How many entries were removed.
        """
        cache = get_cache()
        removed = cache.size()
        cache.clear()
        return f"Cleared {removed} entries."

    @mcp.tool
    async def warm_metadata_cache() -> str:
        """Pre-load offering types, property types and communities into the
        memory cache.

        Returns:
            How many lookups were cached.
        """
        metadata = get_metadata()
        warmed = await metadata.warm()
        total = len(metadata.warmup_entries())
        return f"Warmed {warmed} of {total} metadata lookups."
