"""
Streaming-specific dataclasses for NDJSON answer assembly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# One delivery unit of a streamed response body; boundaries are arbitrary.
RawChunk = str | bytes


class ParsedEventType(Enum):
    """Kinds of events decoded from one complete line."""
    TOKEN = "token"
    FINAL = "final"
    ERROR = "error"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ParsedEvent:
    """Event produced from a single NDJSON line.

    For TOKEN events ``text`` is the running concatenation of every token seen
    so far, so a consumer can replace its display instead of appending.
    """
    event_type: ParsedEventType
    text: str | None = None
    message: str | None = None
    raw_line: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.event_type in (ParsedEventType.FINAL, ParsedEventType.ERROR)


@dataclass
class AssemblyState:
    """Mutable answer state for one in-flight request."""
    accumulated_text: str = ""
    final_text: str | None = None
    is_finalized: bool = False
    is_terminated: bool = False
    error_message: str | None = None

    @property
    def visible_text(self) -> str:
        """Answer the UI should display; the final answer wins once latched."""
        if self.is_finalized and self.final_text is not None:
            return self.final_text
        return self.accumulated_text


@dataclass(frozen=True)
class AssemblerStats:
    """Counters for one assembler lifetime."""
    chunks_fed: int
    bytes_fed: int
    lines_seen: int
    token_events: int
    malformed_lines: int
    ignored_lines: int
