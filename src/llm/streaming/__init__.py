"""
Streaming functionality for the AI chat client.

This module contains:
- Line-delimited JSON reassembly across chunk boundaries
- Token accumulation with final-answer latching
- An async driver that stops at the first terminal event
"""

from __future__ import annotations

from .models import (
    AssemblerStats,
    AssemblyState,
    ParsedEvent,
    ParsedEventType,
    RawChunk,
)
from .parser import StreamingAnswerAssembler, assemble_stream

__all__ = [
    "AssemblerStats",
    "AssemblyState",
    "ParsedEvent",
    "ParsedEventType",
    "RawChunk",
    "StreamingAnswerAssembler",
    "assemble_stream",
]
