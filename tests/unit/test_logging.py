"""Unit tests for the logging module."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest
import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

from gini_api.observability import LogFormat, LogLevel, configure_logging, get_logger


if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Reset structlog configuration and context around each test."""
    structlog.reset_defaults()
    clear_contextvars()
    yield
    clear_contextvars()
    structlog.reset_defaults()


# ---------------------------------------------------------------------------
# TestLogLevel
# ---------------------------------------------------------------------------


class TestLogLevel:
    """Tests for LogLevel enum."""

    def test_log_level_values(self) -> None:
        """Test LogLevel enum values."""
        assert LogLevel.DEBUG == "debug"
        assert LogLevel.INFO == "info"
        assert LogLevel.WARNING == "warning"
        assert LogLevel.ERROR == "error"
        assert LogLevel.CRITICAL == "critical"

    @pytest.mark.parametrize(
        ("level", "expected"),
        [
            (LogLevel.DEBUG, logging.DEBUG),
            (LogLevel.INFO, logging.INFO),
            (LogLevel.WARNING, logging.WARNING),
            (LogLevel.ERROR, logging.ERROR),
            (LogLevel.CRITICAL, logging.CRITICAL),
        ],
    )
    def test_to_stdlib_level(self, level: LogLevel, expected: int) -> None:
        """Test conversion to stdlib levels."""
        assert level.to_stdlib_level() == expected


class TestLogFormat:
    """Tests for LogFormat enum."""

    def test_log_format_values(self) -> None:
        """Test LogFormat enum values."""
        assert LogFormat.CONSOLE == "console"
        assert LogFormat.LOGFMT == "logfmt"
        assert LogFormat.JSON == "json"


# ---------------------------------------------------------------------------
# TestConfigureLogging
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_with_uppercase_string(self) -> None:
        """Test configuring with uppercase string level."""
        configure_logging(level="DEBUG")

    def test_configure_invalid_level_raises(self) -> None:
        """Test invalid log level raises ValueError."""
        with pytest.raises(ValueError, match="'invalid' is not a valid LogLevel"):
            configure_logging(level="invalid")

    def test_configure_invalid_format_raises(self) -> None:
        """Test invalid log format raises ValueError."""
        with pytest.raises(ValueError, match="'xml' is not a valid LogFormat"):
            configure_logging(log_format="xml")

    def test_configure_force_colors(self) -> None:
        """Test forcing colors on and off."""
        configure_logging(level=LogLevel.INFO, force_colors=True)
        configure_logging(level=LogLevel.INFO, force_colors=False)


# ---------------------------------------------------------------------------
# TestLogOutput
# ---------------------------------------------------------------------------


class TestLogOutput:
    """Tests for rendered log output."""

    def test_logfmt_output(self, capfd: pytest.CaptureFixture[str]) -> None:
        """Test logfmt output has level, timestamp and fields."""
        configure_logging(level=LogLevel.DEBUG, log_format="logfmt")
        get_logger(__name__).info("document_uploaded", document_id="abc-123")

        err = capfd.readouterr().err
        assert "event=document_uploaded" in err
        assert "level=info" in err
        assert "document_id=abc-123" in err
        assert "timestamp=" in err

    def test_force_colors_false_uses_logfmt(
        self, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """Test that disabling colors falls back to logfmt."""
        configure_logging(level=LogLevel.DEBUG, force_colors=False)
        get_logger(__name__).info("test_event", foo="bar")

        err = capfd.readouterr().err
        assert "foo=bar" in err

    def test_json_output(self, capfd: pytest.CaptureFixture[str]) -> None:
        """Test JSON output is one parseable object per line."""
        configure_logging(level=LogLevel.DEBUG, log_format=LogFormat.JSON)
        get_logger(__name__, component="oauth").info("token_refreshed", expires_in=60)

        line = capfd.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "token_refreshed"
        assert record["level"] == "info"
        assert record["component"] == "oauth"
        assert record["expires_in"] == 60
        assert record["timestamp"].endswith("Z")

    def test_context_variables_are_merged(
        self, capfd: pytest.CaptureFixture[str]
    ) -> None:
        """Test values bound via contextvars appear in output."""
        configure_logging(level=LogLevel.DEBUG, log_format="json")
        bind_contextvars(user_identifier="user-1")
        get_logger(__name__).info("api_response")

        record = json.loads(capfd.readouterr().err.strip().splitlines()[-1])
        assert record["user_identifier"] == "user-1"

    def test_level_filtering(self, capfd: pytest.CaptureFixture[str]) -> None:
        """Test that messages below the level are dropped."""
        configure_logging(level=LogLevel.WARNING, log_format="logfmt")
        logger = get_logger(__name__)

        logger.debug("debug_message")
        logger.info("info_message")
        logger.warning("warning_message")

        err = capfd.readouterr().err
        assert "debug_message" not in err
        assert "info_message" not in err
        assert "warning_message" in err
