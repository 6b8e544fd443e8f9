#!/usr/bin/env python3
"""
Tests for the conversation controller.
"""

import asyncio
import json

import httpx
import pytest

from src.chat_service import ChatService, ConversationEntry, build_chat_messages
from src.llm.client import AiChatClient
from src.llm.exceptions import TransportFailure
from src.llm.streaming.models import ParsedEvent, ParsedEventType
from src.logging_utils import DEFAULT_FAILURE_MESSAGE


def token(text: str) -> ParsedEvent:
    return ParsedEvent(ParsedEventType.TOKEN, text=text)


def final(text: str) -> ParsedEvent:
    return ParsedEvent(ParsedEventType.FINAL, text=text)


def error(message: str) -> ParsedEvent:
    return ParsedEvent(ParsedEventType.ERROR, message=message)


class FakeClient:
    """Stands in for AiChatClient.stream_answer."""

    def __init__(self, events=None, failure: BaseException | None = None):
        self.events = events or []
        self.failure = failure
        self.requests: list[list[dict[str, str]]] = []

    async def stream_answer(self, messages):
        self.requests.append(messages)
        for event in self.events:
            yield event
        if self.failure is not None:
            raise self.failure


def make_service(client) -> ChatService:
    return ChatService(ChatService.ChatServiceConfig(client=client))


async def run(service: ChatService, prompt: str) -> list[ConversationEntry]:
    return [entry async for entry in service.submit_prompt(prompt)]


class TestBuildChatMessages:
    """Message history sent with each prompt."""

    def test_includes_finished_answers(self):
        entries = [
            ConversationEntry(prompt=" first ", answer=" one ", is_loading=False),
            ConversationEntry(prompt="second", answer="", is_loading=True),
        ]
        assert build_chat_messages(entries, 1) == [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "one"},
            {"role": "user", "content": "second"},
        ]

    def test_skips_blank_prompts_loading_and_failed_entries(self):
        entries = [
            ConversationEntry(prompt="   ", answer="orphan", is_loading=False),
            ConversationEntry(
                prompt="q", answer="oops", is_loading=False, error="oops"
            ),
            ConversationEntry(prompt="r", answer="partial", is_loading=True),
        ]
        assert build_chat_messages(entries, 2) == [
            {"role": "assistant", "content": "orphan"},
            {"role": "user", "content": "q"},
            {"role": "user", "content": "r"},
        ]

    def test_stops_at_latest_index(self):
        entries = [
            ConversationEntry(prompt="a", answer="b", is_loading=False),
            ConversationEntry(prompt="c", answer="d", is_loading=False),
        ]
        assert build_chat_messages(entries, 0) == [
            {"role": "user", "content": "a"},
            {"role": "assistant", "content": "b"},
        ]


class TestSubmitPrompt:
    """Streaming a prompt into conversation entries."""

    @pytest.mark.asyncio
    async def test_blank_prompt_does_nothing(self):
        client = FakeClient([final("unused")])
        service = make_service(client)

        assert await run(service, "   ") == []
        assert service.entries == []
        assert client.requests == []

    @pytest.mark.asyncio
    async def test_tokens_then_final(self):
        client = FakeClient([token("Hel"), token("Hello"), final("Hello there")])
        service = make_service(client)

        snapshots = await run(service, "  Hi  ")

        assert [(s.answer, s.is_loading) for s in snapshots] == [
            ("", True),
            ("Hel", True),
            ("Hello", True),
            ("Hello there", False),
        ]
        assert service.entries == [
            ConversationEntry(prompt="Hi", answer="Hello there", is_loading=False)
        ]
        assert client.requests == [[{"role": "user", "content": "Hi"}]]

    @pytest.mark.asyncio
    async def test_stream_without_final_keeps_tokens(self):
        service = make_service(FakeClient([token("par"), token("partial")]))

        snapshots = await run(service, "q")

        assert snapshots[-1].answer == "partial"
        assert not snapshots[-1].is_loading
        assert snapshots[-1].error is None

    @pytest.mark.asyncio
    async def test_stream_error_is_shown_verbatim(self):
        service = make_service(FakeClient([token("a"), error("rate limited")]))

        snapshots = await run(service, "q")

        last = snapshots[-1]
        assert last.error == "rate limited"
        assert last.answer == "rate limited"
        assert not last.is_loading

    @pytest.mark.asyncio
    async def test_transport_failure_uses_fallback(self):
        failure = TransportFailure("AI endpoint failed with status 500", status_code=500)
        service = make_service(FakeClient(failure=failure))

        snapshots = await run(service, "q")

        assert snapshots[-1].error == DEFAULT_FAILURE_MESSAGE
        assert snapshots[-1].answer == DEFAULT_FAILURE_MESSAGE
        assert not service.entries[0].is_loading

    @pytest.mark.asyncio
    async def test_unexpected_failure_uses_fallback(self):
        service = make_service(FakeClient(failure=RuntimeError("boom")))

        snapshots = await run(service, "q")

        assert snapshots[-1].error == DEFAULT_FAILURE_MESSAGE

    @pytest.mark.asyncio
    async def test_empty_answer_uses_fallback(self):
        service = make_service(FakeClient([final("   ")]))

        snapshots = await run(service, "q")

        assert snapshots[-1].error == DEFAULT_FAILURE_MESSAGE

    @pytest.mark.asyncio
    async def test_blank_final_publishes_no_empty_answer(self):
        service = make_service(FakeClient([token("draft"), final("   ")]))

        snapshots = await run(service, "q")

        assert [(s.answer, s.is_loading, s.error) for s in snapshots] == [
            ("", True, None),
            ("draft", True, None),
            (DEFAULT_FAILURE_MESSAGE, False, DEFAULT_FAILURE_MESSAGE),
        ]

    @pytest.mark.asyncio
    async def test_custom_fallback_message(self):
        service = ChatService(
            ChatService.ChatServiceConfig(
                client=FakeClient(failure=TransportFailure("down")),
                fallback_error_message="Try later.",
            )
        )

        snapshots = await run(service, "q")

        assert snapshots[-1].error == "Try later."

    @pytest.mark.asyncio
    async def test_history_excludes_failed_turns(self):
        client = FakeClient([final("first answer")])
        service = make_service(client)
        await run(service, "first")

        client.events = [error("rate limited")]
        await run(service, "second")

        client.events = [final("third answer")]
        await run(service, "third")

        assert client.requests[-1] == [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "first answer"},
            {"role": "user", "content": "second"},
            {"role": "user", "content": "third"},
        ]
        assert [e.answer for e in service.entries] == [
            "first answer",
            "rate limited",
            "third answer",
        ]

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        service = make_service(
            FakeClient([token("a")], failure=asyncio.CancelledError())
        )

        with pytest.raises(asyncio.CancelledError):
            await run(service, "q")

        assert not service.entries[0].is_loading
        assert service.entries[0].answer == "a"

    @pytest.mark.asyncio
    async def test_closing_early_stops_loading(self):
        service = make_service(FakeClient([token("a"), token("ab"), final("abc")]))

        updates = service.submit_prompt("q")
        await anext(updates)
        await anext(updates)
        await updates.aclose()

        assert service.entries[0].answer == "a"
        assert not service.entries[0].is_loading

    @pytest.mark.asyncio
    async def test_closing_before_request_stops_loading(self):
        client = FakeClient([final("unused")])
        service = make_service(client)

        updates = service.submit_prompt("q")
        await anext(updates)
        await updates.aclose()

        assert not service.entries[0].is_loading
        assert client.requests == []

    @pytest.mark.asyncio
    async def test_clear(self):
        service = make_service(FakeClient([final("x")]))
        await run(service, "q")

        service.clear()

        assert service.entries == []


class TestWithHttpClient:
    """End to end through AiChatClient and a mocked transport."""

    @pytest.mark.asyncio
    async def test_streamed_answer_reaches_entry(self):
        body = (
            json.dumps({"token": "Hi", "done": False}) + "\n"
            + "garbage\n"
            + json.dumps({"response": "Hi there", "done": True}) + "\n"
        ).encode("utf-8")
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=body))

        async with AiChatClient("http://ai.test/api/ai", transport=transport, chunk_size=5) as client:
            service = make_service(client)
            snapshots = await run(service, "hello")

        assert snapshots[-1].answer == "Hi there"
        assert not snapshots[-1].is_loading

    @pytest.mark.asyncio
    async def test_http_failure_reaches_entry(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(502))

        async with AiChatClient("http://ai.test/api/ai", transport=transport) as client:
            service = make_service(client)
            snapshots = await run(service, "hello")

        assert snapshots[-1].error == DEFAULT_FAILURE_MESSAGE
