"""Conversation message type shared by the store, assembler and compositor."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping

USER = "user"
ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """A single stored conversation message."""

    role: str       # "user" | "assistant"
    content: str    # message text

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=ASSISTANT, content=content)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        # Older records may carry a null/missing content field.
        role = data.get("role")
        content = data.get("content")
        return cls(
            role="" if role is None else str(role),
            content="" if content is None else str(content),
        )

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def to_records(history: Iterable[Message]) -> List[Dict[str, str]]:
    """Serialise messages to the persisted ``[{role, content}, ...]`` shape."""
    return [m.to_dict() for m in history]


def from_records(records: Iterable[Mapping[str, Any]]) -> List[Message]:
    return [Message.from_dict(r) for r in records]
