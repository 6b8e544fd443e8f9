"""
Streaming HTTP client for the AI chat endpoint.

Posts the conversation, reads the NDJSON body incrementally and hands the raw
bytes to a fresh StreamingAnswerAssembler per request.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING, Any

import httpx

from ..logging_utils import ContextualLogger, log_operation
from .exceptions import EmptyResponseError, StreamError, TransportFailure
from .models import ChatRequest
from .streaming.models import ParsedEvent, ParsedEventType
from .streaming.parser import StreamingAnswerAssembler, assemble_stream

if TYPE_CHECKING:                                        # pragma: no cover
    from ..config import Configuration

HTTP_OK = 200
DEFAULT_TIMEOUT = 45.0
DEFAULT_CHUNK_SIZE = 1024


async def read_before_deadline(
    chunks: AsyncIterator[bytes], deadline: float
) -> AsyncGenerator[bytes]:
    """Yield body chunks, raising TimeoutError once the loop time passes ``deadline``."""
    async with aclosing(chunks):
        while True:
            try:
                async with asyncio.timeout_at(deadline):
                    chunk = await anext(chunks)
            except StopAsyncIteration:
                return
            yield chunk


class AiChatClient:
    """HTTP client for the streaming chat endpoint."""

    def __init__(
        self,
        endpoint: str,
        api_key: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError("AI endpoint URL must not be empty")

        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self.chunk_size = chunk_size
        self._logger = ContextualLogger({"endpoint": endpoint})

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["X-API-Key"] = api_key

        self.client: httpx.AsyncClient = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=connect_timeout or timeout),
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: Configuration,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> AiChatClient:
        """Build a client from the endpoint and HTTP settings in ``config``."""
        http_config = config.get_http_client_config()
        return cls(
            config.ai_proxy_url,
            config.ai_api_key,
            timeout=http_config["request_timeout"],
            connect_timeout=http_config["connect_timeout"],
            chunk_size=http_config["read_chunk_size"],
            transport=transport,
        )

    async def stream_answer(
        self, messages: list[dict[str, str]] | ChatRequest
    ) -> AsyncGenerator[ParsedEvent]:
        """
        Stream answer events for a conversation.

        Yields TOKEN events carrying the running answer, then at most one
        terminal FINAL or ERROR event. The HTTP stream is closed as soon as a
        terminal event is seen.

        Raises:
            TransportFailure: Non-200 status, timeout or connection failure.
        """
        request = (
            messages if isinstance(messages, ChatRequest)
            else ChatRequest.from_dicts(messages)
        )
        payload: dict[str, Any] = request.to_payload()
        request_logger = self._logger.bind(request_id=str(uuid.uuid4()))
        assembler = StreamingAnswerAssembler()

        request_logger.info(
            "Chat request started", message_count=len(request.messages)
        )

        deadline = asyncio.get_running_loop().time() + self.timeout

        try:
            async with asyncio.timeout_at(deadline):
                response = await self.client.send(
                    self.client.build_request("POST", self.endpoint, json=payload),
                    stream=True,
                )

            try:
                if response.status_code != HTTP_OK:
                    raise TransportFailure(
                        f"AI endpoint failed with status {response.status_code}",
                        category="http_status",
                        endpoint=self.endpoint,
                        status_code=response.status_code,
                    )

                chunks = read_before_deadline(
                    response.aiter_bytes(chunk_size=self.chunk_size), deadline
                )
                async with aclosing(chunks):
                    async for event in assemble_stream(chunks, assembler):
                        yield event
            finally:
                await response.aclose()

        except (httpx.TimeoutException, TimeoutError) as e:
            request_logger.error(
                "Chat request timed out", timeout=self.timeout, error_message=str(e)
            )
            raise TransportFailure(
                f"AI endpoint timed out after {self.timeout}s",
                category="timeout",
                endpoint=self.endpoint,
            ) from e
        except httpx.HTTPError as e:
            request_logger.error("HTTP error during streaming", error_message=str(e))
            raise TransportFailure(
                f"HTTP error: {e!s}",
                category="connection",
                endpoint=self.endpoint,
            ) from e

        stats = assembler.get_stats()
        request_logger.info(
            "Chat request finished",
            finalized=assembler.is_finalized,
            terminated=assembler.is_terminated,
            lines=stats.lines_seen,
            malformed_lines=stats.malformed_lines,
        )

    @log_operation("ask_ai")
    async def ask(self, messages: list[dict[str, str]] | ChatRequest) -> str:
        """Get the complete answer for a conversation.

        Raises:
            StreamError: The service reported an error line.
            EmptyResponseError: The stream produced no answer text.
            TransportFailure: The HTTP exchange failed.
        """
        answer = ""
        async with aclosing(self.stream_answer(messages)) as events:
            async for event in events:
                if event.event_type == ParsedEventType.ERROR:
                    raise StreamError(event.message or "", endpoint=self.endpoint)
                answer = event.text or ""

        text = answer.strip()
        if not text:
            raise EmptyResponseError("Empty AI response", endpoint=self.endpoint)
        return text

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> AiChatClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
