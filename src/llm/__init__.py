"""
AI chat endpoint integration.

This package provides the client side of the streaming chat endpoint:
- Request dataclasses
- Error taxonomy for transport and stream failures
- Incremental NDJSON answer assembly (``src.llm.streaming``)
- The httpx-based streaming client (``src.llm.client``)
"""

from __future__ import annotations

from .exceptions import (
    ChatClientError,
    EmptyResponseError,
    StreamError,
    TransportFailure,
)
from .models import ChatRequest, LLMMessage, MessageRole

__all__ = [
    "ChatClientError",
    "ChatRequest",
    "EmptyResponseError",
    "LLMMessage",
    "MessageRole",
    "StreamError",
    "TransportFailure",
]
