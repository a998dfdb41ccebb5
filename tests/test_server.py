import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
from fastmcp import Client

from realty_cache.server import (
    _reset_state,
    app_lifespan,
    get_analytics,
    get_cache,
    get_db,
    get_metadata,
    health_check,
    initialize,
    mcp,
    setup_logging,
)


def _drop_root_handlers() -> None:
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()


class TestSetupLogging:
    """Test setup_logging configuration."""

    def setup_method(self):
        _drop_root_handlers()

    def teardown_method(self):
        _drop_root_handlers()

    def test_sets_root_logger_level(self, tmp_path):
        setup_logging("DEBUG", tmp_path)
        assert logging.getLogger().level == logging.DEBUG

    def test_creates_console_handler(self, tmp_path):
        setup_logging("INFO", tmp_path)
        stream_handlers = [
            h for h in logging.getLogger().handlers if type(h) is logging.StreamHandler
        ]
        assert len(stream_handlers) == 1

    def test_log_file_path(self, tmp_path):
        setup_logging("INFO", tmp_path)
        file_handler = next(
            h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)
        )
        assert Path(file_handler.baseFilename) == tmp_path / "logs" / "server.log"

    def test_no_duplicate_handlers_on_second_call(self, tmp_path):
        setup_logging("INFO", tmp_path)
        setup_logging("INFO", tmp_path)
        root = logging.getLogger()
        assert len([h for h in root.handlers if type(h) is logging.StreamHandler]) == 1
        assert len([h for h in root.handlers if isinstance(h, RotatingFileHandler)]) == 1

    def test_invalid_log_level_falls_back_to_info(self, tmp_path):
        setup_logging("INVALID_LEVEL", tmp_path)
        assert logging.getLogger().level == logging.INFO


class TestInitialize:
    def setup_method(self):
        from realty_cache.config import reset_settings

        reset_settings()
        _drop_root_handlers()

    def teardown_method(self):
        from realty_cache.config import reset_settings

        reset_settings()
        _drop_root_handlers()

    def test_returns_mcp_instance(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        assert initialize() is mcp

    def test_creates_data_and_log_dirs(self, tmp_path, monkeypatch):
        data_dir = tmp_path / "new_data"
        monkeypatch.setenv("DATA_DIR", str(data_dir))
        initialize()
        assert (data_dir / "logs").exists()

    async def test_registers_tools(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        server = initialize()
        async with Client(server) as client:
            names = {t.name for t in await client.list_tools()}
        assert {"cache_stats", "invalidate_cache_tags", "get_page_meta"} <= names


class TestAccessors:
    def setup_method(self):
        _reset_state()

    @pytest.mark.parametrize("accessor", [get_db, get_cache, get_analytics, get_metadata])
    def test_raise_before_lifespan(self, accessor):
        with pytest.raises(RuntimeError, match="not initialized"):
            accessor()


class TestAppLifespan:
    def setup_method(self):
        from realty_cache.config import reset_settings

        reset_settings()
        _reset_state()

    def teardown_method(self):
        from realty_cache.config import reset_settings

        reset_settings()
        _reset_state()

    async def test_lifespan_builds_and_tears_down(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        async with app_lifespan(mcp) as state:
            assert state["db"] is get_db()
            cache = get_cache()
            assert state["cache"] is cache
            assert cache.sweeping is True
            assert (tmp_path / "realty.db").exists()

        assert cache.sweeping is False
        with pytest.raises(RuntimeError):
            get_cache()

    async def test_lifespan_uses_settings(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        monkeypatch.setenv("CACHE_MAX_SIZE", "5")
        monkeypatch.setenv("CACHE_CLEANUP_INTERVAL_MS", "0")
        async with app_lifespan(mcp):
            cache = get_cache()
            assert cache.config.max_size == 5
            assert cache.sweeping is False

    async def test_lifespan_warms_on_startup(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        async with app_lifespan(mcp):
            assert get_cache().has("offering-types")

    async def test_lifespan_skips_warming_when_disabled(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        monkeypatch.setenv("CACHE_WARM_ON_STARTUP", "false")
        async with app_lifespan(mcp):
            assert get_cache().size() == 0

    async def test_cache_reports_to_analytics(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        async with app_lifespan(mcp):
            get_cache().get("missing")
            assert get_analytics().misses == 1


class TestHealthCheck:
    def setup_method(self):
        from realty_cache.config import reset_settings

        reset_settings()
        _reset_state()

    def teardown_method(self):
        from realty_cache.config import reset_settings

        reset_settings()
        _reset_state()

    async def test_starting_before_lifespan(self):
        response = await health_check(None)
        assert response.status_code == 503

    async def test_reports_cache_health(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        async with app_lifespan(mcp):
            await get_metadata().offering_types()
            response = await health_check(None)
        body = json.loads(response.body)
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["stats"]["hits"] == 1
