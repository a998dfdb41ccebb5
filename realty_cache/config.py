from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from realty_cache.models.cache import MemoryCacheConfig


class Settings(BaseSettings):
    """Application configuration loaded from environment variables and .env file.

    Cache defaults live here rather than on ``MemoryCacheConfig`` so that the
    cache itself never guesses at capacity or lifetimes.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Memory cache
    cache_max_size: int = 1000
    cache_default_ttl_ms: int = 5 * 60 * 1000
    cache_cleanup_interval_ms: int = 60 * 1000
    cache_enable_stats: bool = True
    cache_warm_on_startup: bool = True

    # Admin server transport
    mcp_transport: str = "stdio"
    mcp_host: str = "0.0.0.0"
    mcp_port: int = 8000

    # Paths & logging: default is <project_root>/data so it works
    # regardless of the process working directory.
    data_dir: Path = Path(__file__).resolve().parent.parent / "data"
    log_level: str = "INFO"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def db_path(self) -> Path:
        return self.data_dir / "realty.db"

    @property
    def memory_cache_config(self) -> MemoryCacheConfig:
        return MemoryCacheConfig(
            max_size=self.cache_max_size,
            default_ttl_ms=self.cache_default_ttl_ms,
            cleanup_interval_ms=self.cache_cleanup_interval_ms,
            enable_stats=self.cache_enable_stats,
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the cached Settings singleton. Created on first call."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached settings. Used in tests."""
    global _settings  # noqa: PLW0603
    _settings = None
