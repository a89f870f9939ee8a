"""Settings loading."""

import json
import logging

import pytest
import structlog
from pydantic import ValidationError

from modelfunc import configure_logging
from modelfunc.core.clock import get_now_time
from modelfunc.core.config import Settings
from modelfunc.core.database import engine_options
from modelfunc.core.logging import build_processors


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("MF_USE_CACHE", "MF_REDIS_ENABLED", "MF_CACHE_PREFIX", "MF_CACHE_TTL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.use_cache is False
        assert settings.cache_prefix == ""
        assert settings.cache_ttl == 3600
        assert settings.cache_backend == "memory"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MF_USE_CACHE", "true")
        monkeypatch.setenv("MF_CACHE_PREFIX", "shop:user:")
        monkeypatch.setenv("MF_CACHE_TTL", "120")
        monkeypatch.setenv("MF_REDIS_ENABLED", "true")
        monkeypatch.setenv("MF_REDIS_URL", "redis://cache:6379/1")

        settings = Settings(_env_file=None)

        assert settings.use_cache is True
        assert settings.cache_prefix == "shop:user:"
        assert settings.cache_ttl == 120
        assert settings.cache_backend == "redis"

    def test_redis_needs_url(self):
        settings = Settings(_env_file=None, redis_enabled=True, redis_url=None)

        assert settings.cache_backend == "memory"

    @pytest.mark.parametrize("field,value", [("cache_ttl", 0), ("log_format", "xml"), ("database_pool_size", 1)])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})

    def test_sqlite_directory_is_created(self, tmp_path):
        db_file = tmp_path / "nested" / "data.db"

        Settings(_env_file=None, database_url=f"sqlite+aiosqlite:///{db_file}")

        assert db_file.parent.is_dir()


class TestEngineOptions:
    def test_memory_sqlite_shares_one_connection(self):
        options = engine_options(Settings(_env_file=None, database_url="sqlite+aiosqlite:///:memory:"))

        assert options["poolclass"].__name__ == "StaticPool"
        assert "pool_size" not in options

    def test_server_database_uses_pool_settings(self):
        settings = Settings(
            _env_file=None,
            database_url="postgresql+asyncpg://app@db/app",
            database_pool_size=10,
            database_max_overflow=15,
        )

        options = engine_options(settings)

        assert options["pool_size"] == 10
        assert options["max_overflow"] == 15
        assert "connect_args" not in options


def test_now_time_is_utc_plus_eight():
    now = get_now_time()

    assert now.utcoffset().total_seconds() == 8 * 3600
    assert now.tzname() == "CST"


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    structlog.reset_defaults()


class TestConfigureLogging:
    def test_json_lines_go_to_log_file(self, tmp_path, restore_logging):
        log_file = tmp_path / "logs" / "modelfunc.log"
        settings = Settings(_env_file=None, log_format="json", log_file=str(log_file))

        configure_logging(settings)
        structlog.get_logger("modelfunc.test").info("record cached", cache_key="user:id:1")
        for handler in logging.getLogger().handlers:
            handler.flush()

        entry = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert entry["event"] == "record cached"
        assert entry["cache_key"] == "user:id:1"
        assert entry["level"] == "info"
        assert entry["logger"] == "modelfunc.test"
        assert "timestamp" in entry

    def test_console_renderer_and_level(self, restore_logging):
        configure_logging(Settings(_env_file=None, log_format="console", log_level="WARNING"))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert logging.getLogger().level == logging.WARNING
        assert [type(h) for h in logging.getLogger().handlers] == [logging.StreamHandler]

    def test_driver_loggers_are_quieted(self, restore_logging):
        configure_logging(Settings(_env_file=None, log_level="DEBUG"))

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("aiosqlite").level == logging.WARNING

    def test_json_renderer_is_last(self):
        processors = build_processors("json")

        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert structlog.stdlib.add_logger_name in processors
