"""
Chat Service for the AI chat client.

This module handles the conversation side of a chat session:
- Keeping the ordered list of prompt/answer entries the UI renders
- Building the message history sent with each prompt
- Driving one answer stream per prompt and publishing entry snapshots
- Turning every failure into a terminal entry state instead of an exception
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import aclosing
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.llm.exceptions import EmptyResponseError, StreamError
from src.llm.streaming.models import ParsedEventType
from src.logging_utils import DEFAULT_FAILURE_MESSAGE, ChatErrorHandler

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    """One message of the history sent upstream."""
    role: Literal["user", "assistant"]
    content: str


class ConversationEntry(BaseModel):
    """
    A prompt and the state of its answer, as the UI shows it.
    Snapshots are immutable; updates produce a new entry.
    """
    model_config = ConfigDict(frozen=True)

    prompt: str
    answer: str = ""
    is_loading: bool = True
    error: str | None = Field(default=None)


def build_chat_messages(
    entries: list[ConversationEntry],
    latest_index: int,
) -> list[dict[str, str]]:
    """
    Build the message history for the entry at ``latest_index``.

    Every non-blank prompt up to and including ``latest_index`` becomes a user
    message. Finished, non-blank answers become assistant messages; entries
    still loading or that ended in an error contribute nothing.
    """
    messages: list[ChatMessage] = []
    for item in entries[: latest_index + 1]:
        prompt = item.prompt.strip()
        if prompt:
            messages.append(ChatMessage(role="user", content=prompt))

        answer = item.answer.strip()
        if not item.is_loading and item.error is None and answer:
            messages.append(ChatMessage(role="assistant", content=answer))

    return [message.model_dump() for message in messages]


class ChatService:
    """
    Conversation orchestrator
    1. Takes your prompt
    2. Sends it upstream together with the earlier turns
    3. Publishes the growing answer as it streams in
    4. Leaves the entry in a final state, answered or failed
    """

    class ChatServiceConfig(BaseModel):
        model_config = ConfigDict(arbitrary_types_allowed=True)

        client: Any  # AiChatClient
        fallback_error_message: str = DEFAULT_FAILURE_MESSAGE

    def __init__(self, service_config: ChatService.ChatServiceConfig):
        self.client = service_config.client
        self.fallback_error_message = service_config.fallback_error_message
        self._entries: list[ConversationEntry] = []

    @property
    def entries(self) -> list[ConversationEntry]:
        """Snapshot of the conversation."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    async def submit_prompt(self, prompt: str) -> AsyncGenerator[ConversationEntry]:
        """
        Ask the AI about ``prompt`` and yield the entry after each change.

        The first snapshot is the loading entry; the last one is never
        loading. Failures end in an entry whose ``error`` holds the text to
        show. Only cancellation propagates.
        """
        trimmed = prompt.strip()
        if not trimmed:
            return

        index = len(self._entries)
        entry = ConversationEntry(prompt=trimmed)
        self._entries.append(entry)

        try:
            yield entry
            messages = build_chat_messages(self._entries, index)

            async with aclosing(self.client.stream_answer(messages)) as events:
                async for event in events:
                    if event.event_type == ParsedEventType.ERROR:
                        raise StreamError(event.message or "")
                    answer = event.text or ""
                    if event.is_terminal and not answer.strip():
                        raise EmptyResponseError("Empty AI response")
                    entry = self._update(
                        index, entry, answer=answer, is_loading=not event.is_terminal
                    )
                    yield entry

            if not entry.answer.strip():
                raise EmptyResponseError("Empty AI response")

            if entry.is_loading:
                entry = self._update(index, entry, is_loading=False)
                yield entry

        except (asyncio.CancelledError, GeneratorExit):
            self._update(index, entry, is_loading=False)
            raise
        except Exception as e:
            ChatErrorHandler.log_failure(
                e, "submit_prompt", {"entry_index": index}
            )
            if not isinstance(e, StreamError | EmptyResponseError):
                logger.debug("Answer stream failed", exc_info=True)
            message = ChatErrorHandler.user_message(e, self.fallback_error_message)
            entry = self._update(
                index, entry, answer=message, error=message, is_loading=False
            )
            yield entry

    def _update(
        self, index: int, entry: ConversationEntry, **changes: Any
    ) -> ConversationEntry:
        """Apply changes to the entry at ``index`` if it is still present."""
        updated = entry.model_copy(update=changes)
        if index < len(self._entries):
            self._entries[index] = updated
        return updated
