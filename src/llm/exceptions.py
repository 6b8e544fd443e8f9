"""
Error taxonomy for the AI chat client.

This module provides the exceptions raised while talking to the AI endpoint:
- Transport failures (bad status, timeout, dropped connection)
- Stream errors reported by the service inside the NDJSON body
- Empty answers from the non-streaming helper

Malformed stream lines are not exceptions; the assembler drops them.
"""

from __future__ import annotations


class ChatClientError(Exception):
    """Base chat client error with request context."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class TransportFailure(ChatClientError):
    """The HTTP exchange itself failed."""

    def __init__(
        self,
        message: str,
        category: str = "connection",
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.category = category


class StreamError(ChatClientError):
    """The service reported an error line in the response body."""
    pass


class EmptyResponseError(ChatClientError):
    """The stream finished without any answer text."""
    pass
