"""
Foundation Tests
================

Configuration, validators, exceptions and logging helpers.
"""

import json
import logging

import pytest

from feedo.config.settings import FeedoSettings, TelegramSettings, get_settings
from feedo.utils.exceptions import (
    ConfigurationError,
    DatabaseError,
    DeliveryError,
    ErrorCode,
    FeedFetchError,
    ValidationError,
    get_user_friendly_message,
    handle_exception,
)
from feedo.utils.logging import PerformanceLogger, StructuredFormatter, get_logger_for_component
from feedo.utils.validators import ChatValidator, URLValidator


class TestSettings:
    """Test suite for FeedoSettings."""

    def test_defaults(self):
        settings = FeedoSettings()

        assert settings.ingestion.interval_seconds == 60
        assert settings.notification.interval_seconds == 60
        assert settings.notification.lookback_hours == 24
        assert settings.notification.stagger_seconds == 1.0
        assert settings.database.path == "data/feedo.db"
        assert settings.telegram.bot_token.endswith("_test")

    def test_nested_env_override(self, monkeypatch):
        monkeypatch.setenv("FEEDO_NOTIFICATION__STAGGER_SECONDS", "2.5")
        monkeypatch.setenv("FEEDO_INGESTION__MAX_CONCURRENT_FETCHES", "3")

        settings = FeedoSettings()

        assert settings.notification.stagger_seconds == 2.5
        assert settings.ingestion.max_concurrent_fetches == 3

    def test_invalid_bot_token(self):
        with pytest.raises(ValueError):
            TelegramSettings(bot_token="not-a-token")

    def test_send_timeout_must_exceed_stagger(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FEEDO_DATABASE__PATH", str(tmp_path / "db" / "feedo.db"))
        monkeypatch.setenv("FEEDO_LOGGING__FILE_PATH", str(tmp_path / "logs" / "feedo.log"))
        monkeypatch.setenv("FEEDO_NOTIFICATION__STAGGER_SECONDS", "10")
        monkeypatch.setenv("FEEDO_NOTIFICATION__SEND_TIMEOUT", "5")

        with pytest.raises(ConfigurationError):
            FeedoSettings().validate_configuration()

    def test_get_settings_creates_directories(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FEEDO_DATABASE__PATH", str(tmp_path / "db" / "feedo.db"))
        monkeypatch.setenv("FEEDO_LOGGING__FILE_PATH", str(tmp_path / "logs" / "feedo.log"))

        settings = get_settings(reload=True)

        assert (tmp_path / "db").is_dir()
        assert (tmp_path / "logs").is_dir()
        assert settings.get_effective_log_level() == "DEBUG"

    def test_invalid_environment_becomes_configuration_error(self, monkeypatch):
        monkeypatch.setenv("FEEDO_NOTIFICATION__LOOKBACK_HOURS", "-1")

        with pytest.raises(ConfigurationError):
            get_settings(reload=True)


class TestURLValidator:
    """Test suite for URLValidator."""

    @pytest.mark.parametrize("raw, expected", [
        ("https://example.com/feed.xml", "https://example.com/feed.xml"),
        ("  HTTP://Example.COM/Feed.xml  ", "http://example.com/Feed.xml"),
        ("https://example.com", "https://example.com/"),
        ("https://example.com/rss?page=1#latest", "https://example.com/rss?page=1"),
    ])
    def test_normalizes(self, raw, expected):
        assert URLValidator.validate_feed_url(raw) == expected

    @pytest.mark.parametrize("raw", [
        "",
        "example.com/feed",
        "ftp://example.com/feed",
        "javascript:alert(1)",
        "https://exa mple.com/feed",
        "https:///feed",
    ])
    def test_rejects(self, raw):
        with pytest.raises(ValidationError):
            URLValidator.validate_feed_url(raw)


class TestChatValidator:
    """Test suite for ChatValidator."""

    def test_parses_ids(self):
        assert ChatValidator.validate_chat_id("-1001234567890") == -1001234567890
        assert ChatValidator.validate_chat_id(42) == 42

    @pytest.mark.parametrize("raw", ["0", "abc", None])
    def test_rejects(self, raw):
        with pytest.raises(ValidationError):
            ChatValidator.validate_chat_id(raw)


class TestExceptions:
    """Test suite for the exception hierarchy."""

    def test_error_code_in_message(self):
        error = FeedFetchError("HTTP 404", feed_url="https://x.example", error_code=ErrorCode.FEED_NOT_FOUND)

        assert str(error) == "[F006] HTTP 404"
        assert error.context["feed_url"] == "https://x.example"
        assert error.recoverable is True

    def test_to_dict(self):
        error = DeliveryError("rejected", chat_id=5, item_id=9)
        data = error.to_dict()

        assert data["error_type"] == "DeliveryError"
        assert data["error_code"] == ErrorCode.DELIVERY_FAILED.value
        assert data["context"] == {"chat_id": 5, "item_id": 9}

    def test_user_friendly_message(self):
        assert get_user_friendly_message(DatabaseError("disk I/O error")) == "Database operation failed"
        assert "unexpected" in get_user_friendly_message(KeyError("x"))

    def test_handle_exception_wraps_unknown_errors(self):
        logger = logging.getLogger("feedo.test")

        wrapped = handle_exception(RuntimeError("boom"), logger, "test operation")

        assert wrapped.error_code == ErrorCode.SYSTEM_UNEXPECTED


class TestLogging:
    """Test suite for logging helpers."""

    def test_component_logger_name_and_context(self):
        adapter = get_logger_for_component("dispatcher", chat_id=5)

        assert adapter.logger.name == "feedo.dispatcher"
        assert adapter.extra == {"component": "dispatcher", "chat_id": 5}

    def test_structured_formatter_includes_extra(self):
        record = logging.LogRecord("feedo.x", logging.INFO, __file__, 1, "hello", None, None)
        record.feed_id = 3

        data = json.loads(StructuredFormatter().format(record))

        assert data["message"] == "hello"
        assert data["extra"]["feed_id"] == 3

    def test_performance_logger_records_duration(self, caplog):
        logger = logging.getLogger("feedo.perf_test")

        with caplog.at_level(logging.INFO, logger="feedo.perf_test"):
            with PerformanceLogger(logger, "unit work") as perf:
                pass

        assert perf.duration is not None
        assert "Completed unit work" in caplog.text
