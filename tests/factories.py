from uuid import uuid4

from realty_cache.models.cache import MemoryCacheConfig
from realty_cache.models.listing import Community, OfferingType, PageMeta, PropertyType


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


def make_cache_config(**overrides: object) -> MemoryCacheConfig:
    defaults: dict = {
        "max_size": 3,
        "default_ttl_ms": 1000,
        "cleanup_interval_ms": 0,
        "enable_stats": True,
    }
    defaults.update(overrides)
    return MemoryCacheConfig(**defaults)


def make_offering_type(**overrides: object) -> OfferingType:
    defaults: dict = {"id": f"ot_{uuid4().hex[:8]}", "name": "For Sale", "slug": "for-sale"}
    defaults.update(overrides)
    return OfferingType(**defaults)


def make_property_type(**overrides: object) -> PropertyType:
    defaults: dict = {"id": f"pt_{uuid4().hex[:8]}", "name": "Villa", "slug": "villa"}
    defaults.update(overrides)
    return PropertyType(**defaults)


def make_community(**overrides: object) -> Community:
    defaults: dict = {
        "id": f"c_{uuid4().hex[:8]}",
        "name": "Palm Jumeirah",
        "slug": "palm-jumeirah",
        "city": "Dubai",
        "is_luxe": True,
    }
    defaults.update(overrides)
    return Community(**defaults)


def make_page_meta(**overrides: object) -> PageMeta:
    defaults: dict = {
        "path": "/communities",
        "title": "Communities in Dubai",
        "meta_title": "Dubai Communities | Real Estate",
        "meta_description": "Explore Dubai's communities.",
        "keywords": ["dubai", "communities"],
    }
    defaults.update(overrides)
    return PageMeta(**defaults)
