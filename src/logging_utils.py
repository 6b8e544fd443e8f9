"""
Centralized logging and error handling utilities for the AI chat client.

This module provides helpers that standardize logging and failure reporting
across the codebase, so every call site that drives a chat stream turns
failures into the same terminal UI state.

Features:
- Structured logging with contextual information
- Error classification into UI-facing categories and messages
- Operation logging decorator with timing
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

import structlog

from src.llm.exceptions import (
    ChatClientError,
    EmptyResponseError,
    StreamError,
    TransportFailure,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

DEFAULT_FAILURE_MESSAGE = "Unable to get AI response right now. Please try again."

logger = structlog.get_logger(__name__)


def configure_logging(level: str = "INFO", renderer: str = "console") -> None:
    """
    Configure stdlib logging and the structlog renderer.

    Args:
        level: Log level name, e.g. "DEBUG" or "INFO"
        renderer: "console" for human-readable output, "json" for JSON lines
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level '{level}'")
    if renderer not in ("console", "json"):
        raise ValueError(f"Unknown log renderer '{renderer}'")

    logging.basicConfig(level=numeric_level, format="%(message)s")
    logging.getLogger().setLevel(numeric_level)

    final_processor = (
        structlog.processors.JSONRenderer()
        if renderer == "json"
        else structlog.dev.ConsoleRenderer(colors=True)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            final_processor,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class ChatErrorHandler:
    """Maps failures to categories and the text the UI should show."""

    @staticmethod
    def classify_error(error: Exception) -> str:
        """
        Classify an error into a category.

        Args:
            error: The exception to classify

        Returns:
            Error category name
        """
        if isinstance(error, StreamError):
            return "stream_error"
        if isinstance(error, TransportFailure):
            return f"transport_{error.category}"
        if isinstance(error, EmptyResponseError):
            return "empty_response"
        if isinstance(error, ChatClientError):
            return "client_error"
        if isinstance(error, TimeoutError):
            return "transport_timeout"
        if isinstance(error, ConnectionError | OSError):
            return "transport_connection"
        return "unknown_error"

    @staticmethod
    def user_message(
        error: Exception,
        fallback: str = DEFAULT_FAILURE_MESSAGE,
    ) -> str:
        """
        Get the user-facing text for a failure.

        Stream errors come from the service and are shown verbatim; every
        other failure gets the fixed fallback message.
        """
        if isinstance(error, StreamError):
            return str(error) or fallback
        return fallback

    @staticmethod
    def log_failure(
        error: Exception,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> str:
        """Log a failure with its category and return the category."""
        category = ChatErrorHandler.classify_error(error)
        log_method = logger.warning if category == "stream_error" else logger.error
        log_method(
            "Operation failed",
            operation=operation,
            error_type=type(error).__name__,
            error_category=category,
            error_message=str(error),
            **(context or {}),
        )
        return category


def log_operation(
    operation: str,
    *,
    log_timing: bool = True,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """Log start, completion and failure (with its category) of an async call."""
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            operation_logger = logger.bind(operation=operation, function=func.__name__)
            operation_logger.info("Operation started")
            start_time = time.perf_counter()

            def timing() -> dict[str, Any]:
                if not log_timing:
                    return {}
                return {"duration_ms": round((time.perf_counter() - start_time) * 1000, 2)}

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                operation_logger.error(
                    "Operation failed",
                    error_type=type(e).__name__,
                    error_category=ChatErrorHandler.classify_error(e),
                    error_message=str(e),
                    **timing(),
                )
                raise

            operation_logger.info("Operation completed successfully", **timing())
            return result

        return wrapper
    return decorator


class ContextualLogger:
    """Logger that carries request or component context on every line."""

    def __init__(self, base_context: dict[str, Any] | None = None):
        self.base_context = base_context or {}
        self._logger = logger.bind(**self.base_context)

    def bind(self, **context: Any) -> ContextualLogger:
        return ContextualLogger({**self.base_context, **context})

    def info(self, message: str, **context: Any) -> None:
        self._logger.info(message, **context)

    def error(self, message: str, **context: Any) -> None:
        self._logger.error(message, **context)

    def debug(self, message: str, **context: Any) -> None:
        self._logger.debug(message, **context)
