#!/usr/bin/env python3
"""
Test script for logging utilities.

This validates that the centralized logging and error classification works
correctly.
"""

import pytest

from src.llm.exceptions import (
    ChatClientError,
    EmptyResponseError,
    StreamError,
    TransportFailure,
)
from src.logging_utils import (
    DEFAULT_FAILURE_MESSAGE,
    ChatErrorHandler,
    ContextualLogger,
    configure_logging,
    log_operation,
)


class TestChatErrorHandler:
    """Test the ChatErrorHandler class."""

    @pytest.mark.parametrize(
        "error, category",
        [
            (StreamError("rate limited"), "stream_error"),
            (TransportFailure("503", category="http_status"), "transport_http_status"),
            (TransportFailure("slow", category="timeout"), "transport_timeout"),
            (TransportFailure("refused"), "transport_connection"),
            (EmptyResponseError("Empty AI response"), "empty_response"),
            (ChatClientError("odd"), "client_error"),
            (TimeoutError("Connection timed out"), "transport_timeout"),
            (ConnectionError("Connection refused"), "transport_connection"),
            (OSError("Network unreachable"), "transport_connection"),
            (RuntimeError("Unknown error"), "unknown_error"),
        ],
    )
    def test_classify_error(self, error, category):
        assert ChatErrorHandler.classify_error(error) == category

    def test_stream_error_message_is_verbatim(self):
        assert ChatErrorHandler.user_message(StreamError("rate limited")) == "rate limited"

    def test_empty_stream_error_uses_fallback(self):
        assert ChatErrorHandler.user_message(StreamError("")) == DEFAULT_FAILURE_MESSAGE

    def test_transport_failure_uses_fallback(self):
        error = TransportFailure("AI endpoint failed with status 500", status_code=500)
        assert ChatErrorHandler.user_message(error) == DEFAULT_FAILURE_MESSAGE
        assert ChatErrorHandler.user_message(error, "Custom") == "Custom"

    def test_log_failure_returns_category(self):
        category = ChatErrorHandler.log_failure(
            StreamError("rate limited"), "test_operation", {"entry_index": 0}
        )
        assert category == "stream_error"


class TestDecorators:
    """Test logging decorators."""

    @pytest.mark.asyncio
    async def test_log_operation_success(self):
        """Test log_operation decorator with successful function."""

        @log_operation("test_operation")
        async def successful_function():
            return "success"

        result = await successful_function()
        assert result == "success"

    @pytest.mark.asyncio
    async def test_log_operation_with_error(self):
        """Test log_operation decorator with function that raises error."""

        @log_operation("test_operation", log_timing=True)
        async def failing_function():
            raise TransportFailure("Test error")

        with pytest.raises(TransportFailure, match="Test error"):
            await failing_function()

    @pytest.mark.asyncio
    async def test_log_operation_without_timing_keeps_metadata(self):
        @log_operation("test_operation", log_timing=False)
        async def named_function(value):
            return value * 2

        assert named_function.__name__ == "named_function"
        assert await named_function(21) == 42


class TestConfigureLogging:
    def test_rejects_unknown_level(self):
        with pytest.raises(ValueError, match="log level"):
            configure_logging("LOUD")

    def test_rejects_unknown_renderer(self):
        with pytest.raises(ValueError, match="renderer"):
            configure_logging("INFO", "xml")


class TestContextualLogger:
    """Test ContextualLogger class."""

    def test_contextual_logger_bind(self):
        logger = ContextualLogger({"endpoint": "http://ai.test"})

        bound_logger = logger.bind(request_id="123")
        assert bound_logger.base_context == {
            "endpoint": "http://ai.test",
            "request_id": "123",
        }

    def test_contextual_logger_methods(self):
        """Test ContextualLogger logging methods don't raise exceptions."""
        logger = ContextualLogger({"component": "test"})

        logger.info("Test info message", extra="data")
        logger.error("Test error message", extra="data")
        logger.debug("Test debug message", extra="data")
