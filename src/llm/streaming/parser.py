"""
Incremental NDJSON answer assembler.

Turns a raw byte/text stream of newline-delimited JSON records into ordered
UI-facing events, regardless of where the transport splits the body.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import AsyncGenerator, AsyncIterable
from typing import Any

from ...logging_utils import ContextualLogger
from .models import (
    AssemblerStats,
    AssemblyState,
    ParsedEvent,
    ParsedEventType,
    RawChunk,
)

LINE_TERMINATOR = "\n"


class StreamingAnswerAssembler:
    """Rebuilds line-delimited JSON events across arbitrary chunk boundaries.

    One instance serves one in-flight request. It is driven synchronously by
    whatever loop reads the transport and holds no locks.
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding
        self.state = AssemblyState()
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._logger = ContextualLogger({"component": "answer_assembler"})
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._chunks_fed = 0
        self._bytes_fed = 0
        self._lines_seen = 0
        self._token_events = 0
        self._malformed_lines = 0
        self._ignored_lines = 0

    @property
    def pending(self) -> str:
        """The unterminated tail line currently buffered."""
        return self._buffer

    @property
    def visible_text(self) -> str:
        return self.state.visible_text

    @property
    def is_finalized(self) -> bool:
        return self.state.is_finalized

    @property
    def is_terminated(self) -> bool:
        return self.state.is_terminated

    def feed(self, chunk: RawChunk) -> list[ParsedEvent]:
        """Append a chunk and return events for every line it completes."""
        self._chunks_fed += 1
        if isinstance(chunk, bytes | bytearray):
            self._bytes_fed += len(chunk)
            text = self._decoder.decode(bytes(chunk))
        else:
            self._bytes_fed += len(chunk.encode(self.encoding, errors="replace"))
            # bytes still held by the decoder come before this text
            text = self._decoder.decode(b"", final=True) + chunk

        if not text:
            return []

        self._buffer += text
        *complete_lines, self._buffer = self._buffer.split(LINE_TERMINATOR)

        events: list[ParsedEvent] = []
        for line in complete_lines:
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        return events

    def finish(self) -> list[ParsedEvent]:
        """Drain the leftover partial line at end of stream.

        A trailing line that does not decode is truncated data, not a fault,
        and is discarded.
        """
        self._buffer += self._decoder.decode(b"", final=True)
        leftover, self._buffer = self._buffer, ""
        if not leftover.strip():
            return []

        event = self._process_line(leftover)
        return [event] if event is not None else []

    def reset(self) -> None:
        """Drop all buffered data and state so the instance can be reused."""
        self.state = AssemblyState()
        self._buffer = ""
        self._decoder.reset()
        self._reset_counters()

    def get_stats(self) -> AssemblerStats:
        """Get assembly statistics for monitoring."""
        return AssemblerStats(
            chunks_fed=self._chunks_fed,
            bytes_fed=self._bytes_fed,
            lines_seen=self._lines_seen,
            token_events=self._token_events,
            malformed_lines=self._malformed_lines,
            ignored_lines=self._ignored_lines,
        )

    def _process_line(self, line: str) -> ParsedEvent | None:
        if not line.strip():
            return None

        self._lines_seen += 1
        event = self.decode_line(line)

        if event.event_type == ParsedEventType.MALFORMED:
            self._malformed_lines += 1
            self._logger.debug("Dropped malformed stream line", line_length=len(line))
            return None

        return self._apply(event)

    def _apply(self, event: ParsedEvent) -> ParsedEvent | None:
        """Fold a decoded event into the assembly state."""
        state = self.state

        if event.event_type == ParsedEventType.FINAL:
            if state.is_finalized:
                self._ignored_lines += 1
                return None
            state.final_text = event.text
            state.is_finalized = True
            state.is_terminated = True
            return event

        if event.event_type == ParsedEventType.TOKEN:
            if state.is_finalized:
                # final answer is latched
                self._ignored_lines += 1
                return None
            state.accumulated_text += event.text or ""
            self._token_events += 1
            return ParsedEvent(
                event_type=ParsedEventType.TOKEN,
                text=state.accumulated_text,
                raw_line=event.raw_line,
            )

        state.is_terminated = True
        state.error_message = event.message
        return event

    @staticmethod
    def decode_line(line: str) -> ParsedEvent:
        """Classify one complete line without touching assembly state.

        TOKEN events returned here carry only the delta text.
        """
        try:
            record: Any = json.loads(line)
        except (ValueError, RecursionError):
            return ParsedEvent(ParsedEventType.MALFORMED, raw_line=line)

        if not isinstance(record, dict):
            return ParsedEvent(ParsedEventType.MALFORMED, raw_line=line)

        response = record.get("response")
        if record.get("done") is True and isinstance(response, str):
            return ParsedEvent(ParsedEventType.FINAL, text=response, raw_line=line)

        token = record.get("token")
        if isinstance(token, str):
            return ParsedEvent(ParsedEventType.TOKEN, text=token, raw_line=line)

        error = record.get("error")
        if error is not None:
            return ParsedEvent(ParsedEventType.ERROR, message=str(error), raw_line=line)

        return ParsedEvent(ParsedEventType.MALFORMED, raw_line=line)


async def assemble_stream(
    chunks: AsyncIterable[RawChunk],
    assembler: StreamingAnswerAssembler | None = None,
) -> AsyncGenerator[ParsedEvent]:
    """
    Drive an assembler from an async chunk source.

    Events are yielded in source-line order. Iteration stops right after the
    first FINAL or ERROR event; no further chunks are pulled from the source.
    When the source runs dry the trailing partial line is drained.
    """
    if assembler is None:
        assembler = StreamingAnswerAssembler()

    async for chunk in chunks:
        for event in assembler.feed(chunk):
            yield event
            if event.is_terminal:
                return

    for event in assembler.finish():
        yield event
        if event.is_terminal:
            return
