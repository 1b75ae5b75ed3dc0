"""Tests for structured logging module."""

import pytest
import structlog
from starlette.requests import Request

from searchgate.api.middleware.logging import get_client_ip
from searchgate.core.logging import (
    REDACTED,
    bind_contextvars,
    clear_contextvars,
    clear_correlation_id,
    configure_logging,
    get_correlation_id,
    get_logger,
    redact_sensitive_fields,
    set_correlation_id,
    unbind_contextvars,
)


def make_request(headers: dict[str, str], client: tuple[str, int] | None = ("10.1.2.3", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return Request(scope)


class TestCorrelationId:
    """Tests for correlation ID management."""

    def setup_method(self) -> None:
        """Clear correlation ID before each test."""
        clear_correlation_id()

    def test_set_and_get_correlation_id(self) -> None:
        """Test setting and getting correlation ID."""
        assert get_correlation_id() is None

        correlation_id = set_correlation_id("test-correlation-123")
        assert correlation_id == "test-correlation-123"
        assert get_correlation_id() == "test-correlation-123"

    def test_auto_generate_correlation_id(self) -> None:
        """Test auto-generation of correlation ID."""
        correlation_id = set_correlation_id()
        assert correlation_id is not None
        assert len(correlation_id) == 36  # UUID format

    def test_clear_correlation_id(self) -> None:
        """Test clearing correlation ID."""
        set_correlation_id("test-id")
        assert get_correlation_id() == "test-id"

        clear_correlation_id()
        assert get_correlation_id() is None


class TestStructuredLogging:
    """Tests for structured logging configuration."""

    def setup_method(self) -> None:
        clear_contextvars()

    def test_configure_logging_json_mode(self) -> None:
        configure_logging(json_logs=True, log_level="INFO")

        logger = get_logger("test_json")
        assert logger is not None

    def test_configure_logging_console_mode(self) -> None:
        configure_logging(json_logs=False, log_level="DEBUG")

        logger = get_logger("test_console")
        assert logger is not None

    def test_log_level_filtering(self) -> None:
        """Debug and info are dropped at WARNING without raising."""
        configure_logging(json_logs=False, log_level="WARNING")

        logger = get_logger("level_test")
        logger.debug("debug_message")
        logger.info("info_message")
        logger.warning("warning_message")


class TestContextVars:
    """Tests for context variable binding."""

    def setup_method(self) -> None:
        clear_contextvars()

    def test_bind_contextvars(self) -> None:
        bind_contextvars(client_ip="10.0.0.1", request_id="abc")

        assert structlog.contextvars.get_contextvars() == {
            "client_ip": "10.0.0.1",
            "request_id": "abc",
        }

    def test_unbind_contextvars(self) -> None:
        bind_contextvars(client_ip="10.0.0.1", request_id="abc")
        unbind_contextvars("client_ip")

        assert structlog.contextvars.get_contextvars() == {"request_id": "abc"}

    def test_clear_contextvars(self) -> None:
        bind_contextvars(client_ip="10.0.0.1")
        clear_contextvars()

        assert structlog.contextvars.get_contextvars() == {}


class TestRedaction:
    """Tests for the credential redaction processor."""

    def test_sensitive_keys_are_masked(self) -> None:
        event = {
            "event": "token_issued",
            "token": "eyJhbGciOi.payload.signature",
            "Authorization": "Bearer abc",
            "api-key": "upstream-key",
            "subject": 42,
        }

        result = redact_sensitive_fields(None, "info", event)  # type: ignore[arg-type]

        assert result["token"] == REDACTED
        assert result["Authorization"] == REDACTED
        assert result["api-key"] == REDACTED
        assert result["subject"] == 42
        assert result["event"] == "token_issued"

    def test_none_values_are_left_alone(self) -> None:
        result = redact_sensitive_fields(None, "info", {"token": None})  # type: ignore[arg-type]

        assert result["token"] is None

    def test_redaction_in_rendered_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_logs=True, log_level="INFO")

        get_logger("redaction_test").info("login", access_token="super-secret")

        captured = capsys.readouterr().out
        assert "super-secret" not in captured
        assert REDACTED in captured


class TestClientIp:
    """Tests for client address resolution."""

    def test_uses_socket_peer_by_default(self) -> None:
        request = make_request({"X-Forwarded-For": "198.51.100.1", "X-Real-IP": "198.51.100.2"})

        assert get_client_ip(request) == "10.1.2.3"

    def test_forwarded_for_when_trusted(self) -> None:
        request = make_request({"X-Forwarded-For": "198.51.100.1, 10.0.0.1"})

        assert get_client_ip(request, trust_proxy_headers=True) == "198.51.100.1"

    def test_real_ip_when_trusted(self) -> None:
        request = make_request({"X-Real-IP": " 198.51.100.2 "})

        assert get_client_ip(request, trust_proxy_headers=True) == "198.51.100.2"

    def test_unknown_without_peer(self) -> None:
        assert get_client_ip(make_request({}, client=None)) == "unknown"
