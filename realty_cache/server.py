import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from realty_cache.cache.analytics import CacheAnalytics, get_cache_health
from realty_cache.cache.memory import MemoryCache
from realty_cache.cache.resilience import database_breaker
from realty_cache.storage.database import DatabaseManager
from realty_cache.storage.metadata import MetadataService

logger = logging.getLogger(__name__)

_db: DatabaseManager | None = None
_cache: MemoryCache | None = None
_analytics: CacheAnalytics | None = None
_metadata: MetadataService | None = None


def get_db() -> DatabaseManager:
    """Get the current DatabaseManager instance. Raises if not initialized."""
    if _db is None:
        raise RuntimeError("Database not initialized. Server lifespan has not started.")
    return _db


def get_cache() -> MemoryCache:
    if _cache is None:
        raise RuntimeError("Cache not initialized. Server lifespan has not started.")
    return _cache


def get_analytics() -> CacheAnalytics:
    if _analytics is None:
        raise RuntimeError("Cache analytics not initialized. Server lifespan has not started.")
    return _analytics


def get_metadata() -> MetadataService:
    if _metadata is None:
        raise RuntimeError("Metadata service not initialized. Server lifespan has not started.")
    return _metadata


def _reset_state() -> None:
    """Clear the module-level references. Used in tests."""
    global _db, _cache, _analytics, _metadata  # noqa: PLW0603
    if _cache is not None:
        _cache.destroy()
    _db = None
    _cache = None
    _analytics = None
    _metadata = None


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[dict]:
    """Own the database, the memory cache and its analytics for the server lifetime."""
    global _db, _cache, _analytics, _metadata  # noqa: PLW0603
    from realty_cache.config import get_settings

    settings = get_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    _db = DatabaseManager(settings.db_path)
    await _db.initialize()

    _analytics = CacheAnalytics()
    _cache = MemoryCache(settings.memory_cache_config, metrics=_analytics)
    _metadata = MetadataService(_db, _cache, _analytics, breaker=database_breaker)
    logger.info(
        "Memory cache ready (max_size=%d, default_ttl_ms=%d)",
        settings.cache_max_size,
        settings.cache_default_ttl_ms,
    )

    if settings.cache_warm_on_startup:
        await _metadata.warm()

    try:
        yield {"db": _db, "cache": _cache}
    finally:
        _cache.destroy()
        await _db.close()
        _db = None
        _cache = None
        _analytics = None
        _metadata = None
        logger.info("Cache destroyed and database closed")


mcp = FastMCP("realty-cache", lifespan=app_lifespan)


@mcp.custom_route("/health", methods=["GET"])
async def health_check(request: Request | None) -> JSONResponse:
    """Liveness probe reporting the cache health classification."""
    if _analytics is None:
        return JSONResponse({"status": "starting"}, status_code=503)
    report = get_cache_health(_analytics)
    return JSONResponse(report.model_dump(mode="json"))


def setup_logging(log_level: str, data_dir: Path) -> None:
    """Configure logging with file rotation and console output.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        data_dir: Base data directory; logs go to data_dir/logs/server.log.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Exact type check avoids matching subclasses (FileHandler, etc.)
    if not any(type(h) is logging.StreamHandler for h in root_logger.handlers):
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(formatter)
        root_logger.addHandler(console)

    log_dir = data_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    if not any(isinstance(h, RotatingFileHandler) for h in root_logger.handlers):
        file_handler = RotatingFileHandler(
            log_dir / "server.log",
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=3,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def initialize() -> FastMCP:
    """Set up directories, logging, and register tools. Returns the MCP server."""
    from realty_cache.config import get_settings

    settings = get_settings()

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    setup_logging(settings.log_level, settings.data_dir)

    from realty_cache.tools.cache_admin import register_cache_tools
    from realty_cache.tools.metadata import register_metadata_tools

    register_cache_tools(mcp)
    register_metadata_tools(mcp)

    logger.info("Realty cache server initialized")
    return mcp
