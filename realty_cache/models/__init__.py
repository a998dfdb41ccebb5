from realty_cache.models.cache import (
    AdvancedCacheOptions,
    CacheFactoryOptions,
    CacheStats,
    MemoryCacheConfig,
    WarmupEntry,
)
from realty_cache.models.health import (
    AnalyticsStats,
    CacheHealthReport,
    HealthStatus,
    MonitorStatus,
    NamespaceHealth,
    NamespaceMetrics,
    PopularKey,
)
from realty_cache.models.listing import Community, OfferingType, PageMeta, PropertyType

__all__ = [
    "AdvancedCacheOptions",
    "AnalyticsStats",
    "CacheFactoryOptions",
    "CacheHealthReport",
    "CacheStats",
    "Community",
    "HealthStatus",
    "MemoryCacheConfig",
    "MonitorStatus",
    "NamespaceHealth",
    "NamespaceMetrics",
    "OfferingType",
    "PageMeta",
    "PopularKey",
    "PropertyType",
    "WarmupEntry",
]
