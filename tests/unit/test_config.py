"""Tests for ormkit settings and logging setup."""

import pytest
import structlog
from pydantic import ValidationError

from ormkit.config import OrmKitSettings, get_settings
from ormkit.shared.utils.logging import (
    LoggerMixin,
    configure_logging,
    configure_logging_from_settings,
    get_logger,
)


class TestSettings:
    """Test OrmKitSettings."""

    def test_defaults(self):
        settings = OrmKitSettings()
        assert settings.lock_retry_max_attempts == 3
        assert settings.lock_retry_delay_seconds == 1.0
        assert settings.lock_retry_markers == ["try restarting transaction"]
        assert settings.default_items_per_page == 10

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ORMKIT_DEFAULT_ITEMS_PER_PAGE", "50")
        assert get_settings().default_items_per_page == 50

    def test_rejects_zero_attempts(self, monkeypatch):
        monkeypatch.setenv("ORMKIT_LOCK_RETRY_MAX_ATTEMPTS", "0")
        with pytest.raises(ValidationError):
            OrmKitSettings()

    def test_cached(self):
        assert get_settings() is get_settings()


class TestLogging:
    """Test logging helpers."""

    def test_configure_and_log(self, capsys):
        configure_logging(level="DEBUG", json_format=True, service_name="ormkit-test")
        try:
            get_logger("test").info("configured", answer=42)
            out = capsys.readouterr().out
        finally:
            structlog.reset_defaults()
            structlog.contextvars.clear_contextvars()
        assert '"event": "configured"' in out
        assert '"service": "ormkit-test"' in out

    def test_logger_mixin(self):
        class Worker(LoggerMixin):
            pass

        assert Worker().logger is not None

    def test_configure_from_settings(self, capsys, monkeypatch):
        monkeypatch.setenv("ORMKIT_SERVICE_NAME", "from-env")
        configure_logging_from_settings()
        try:
            get_logger("test").warning("from_settings")
            out = capsys.readouterr().out
        finally:
            structlog.reset_defaults()
            structlog.contextvars.clear_contextvars()
        assert '"service": "from-env"' in out
