"""
Unit Tests for Logging Module

Tests logger creation, processors and logging utilities.
"""

from unittest.mock import MagicMock

import pytest

from callcache.core.config.constants import Stage
from callcache.core.logging.logger import (
    add_log_level_name,
    get_logger,
    log_stage,
    redact_pii,
    setup_logging,
    short_key,
)


@pytest.mark.unit
class TestLoggerCreation:
    """Test logger creation and configuration."""

    def test_get_logger_returns_logger_instance(self):
        logger = get_logger(__name__)
        assert hasattr(logger, "info")

    @pytest.mark.parametrize("log_format", ["json", "console"])
    def test_setup_logging_accepts_both_formats(self, log_format):
        setup_logging(log_level="DEBUG", log_format=log_format)
        get_logger("test").debug("configured")


@pytest.mark.unit
class TestProcessors:
    """Test custom structlog processors."""

    def test_redacts_email(self):
        event = redact_pii(None, "info", {"event": "profile for jane.doe@example.com"})
        assert event["event"] == "profile for [EMAIL]"

    def test_redacts_bearer_token(self):
        event = redact_pii(None, "info", {"event": "header Bearer abc.def-123"})
        assert "abc.def" not in event["event"]
        assert "[REDACTED]" in event["event"]

    def test_redacts_phone(self):
        event = redact_pii(None, "info", {"event": "call 555-123-4567"})
        assert event["event"] == "call [PHONE]"

    def test_non_string_event_untouched(self):
        event = redact_pii(None, "info", {"event": 42})
        assert event["event"] == 42

    def test_level_uppercased(self):
        assert add_log_level_name(None, "info", {"level": "warning"})["level"] == "WARNING"


@pytest.mark.unit
class TestLogUtilities:
    """Test short_key and log_stage."""

    def test_short_key_keeps_short_keys(self):
        assert short_key("getMyUserProfile:u1") == "getMyUserProfile:u1"

    def test_short_key_truncates(self):
        key = "x" * 100
        assert short_key(key, length=10) == "x" * 10 + "..."

    def test_log_stage_passes_stage_value(self):
        logger = MagicMock()
        log_stage(logger, Stage.EVICTION, "evicted", level="debug", evicted=3)
        logger.debug.assert_called_once_with("evicted", stage="EV_EVICTION", evicted=3)

    def test_log_stage_default_level_is_info(self):
        logger = MagicMock()
        log_stage(logger, "CUSTOM", "hello")
        logger.info.assert_called_once_with("hello", stage="CUSTOM")
