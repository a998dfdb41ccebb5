import pytest

from realty_cache.storage.database import DatabaseManager


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment cache settings out of tests."""
    for name in (
        "CACHE_MAX_SIZE",
        "CACHE_DEFAULT_TTL_MS",
        "CACHE_CLEANUP_INTERVAL_MS",
        "CACHE_ENABLE_STATS",
        "CACHE_WARM_ON_STARTUP",
        "LOG_LEVEL",
        "DATA_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
async def db():
    """In-memory SQLite database with schema applied."""
    manager = DatabaseManager(":memory:")
    await manager.initialize()
    yield manager
    await manager.close()
