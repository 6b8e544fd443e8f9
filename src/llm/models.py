"""
Request-side dataclasses for the AI chat endpoint.

The endpoint takes an OpenAI-style message list:
    {"messages": [{"role": "user", "content": "..."}, ...]}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MessageRole(Enum):
    """Roles the chat endpoint understands."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class LLMMessage:
    """One turn of the conversation sent upstream."""
    role: MessageRole
    content: str

    def to_payload(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class ChatRequest:
    """Body of a chat request."""
    messages: list[LLMMessage] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Serialize into the JSON body the endpoint expects."""
        return {"messages": [message.to_payload() for message in self.messages]}

    @classmethod
    def from_dicts(cls, messages: list[dict[str, str]]) -> ChatRequest:
        """Build a request from plain ``{"role", "content"}`` mappings."""
        return cls(
            messages=[
                LLMMessage(role=MessageRole(item["role"]), content=item["content"])
                for item in messages
            ]
        )
