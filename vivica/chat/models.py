"""Conversation and message data models."""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

TITLE_MAX_CHARS = 30
TITLE_ELLIPSIS = "…"


def utc_now() -> str:
    """Current time as an ISO 8601 UTC string."""
    return datetime.now(UTC).isoformat()


def make_id() -> str:
    """Generate a new opaque identifier."""
    return uuid.uuid4().hex


def make_title(content: str) -> str:
    """Derive a conversation title from the first user message."""
    text = content.strip()
    if len(text) > TITLE_MAX_CHARS:
        return text[:TITLE_MAX_CHARS] + TITLE_ELLIPSIS
    return text


class RequestStatus(StrEnum):
    """Request state of a conversation, tracked by the controller."""

    IDLE = "idle"
    SENDING = "sending"
    ERROR = "error"


@dataclass
class Message:
    """A single conversation turn."""

    role: str
    content: str
    id: str = field(default_factory=make_id)
    timestamp: str = field(default_factory=utc_now)
    error: bool = False

    def to_api(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(
            id=data["id"],
            role=data["role"],
            content=data["content"],
            timestamp=data["timestamp"],
            error=bool(data.get("error", False)),
        )


@dataclass
class Conversation:
    """A titled, ordered list of messages.

    Attributes:
        id: Unique identifier (UUID hex).
        title: First user message, truncated to 30 characters plus an ellipsis.
        messages: Chronological history; only the retry path removes entries.
        created_at: ISO 8601 timestamp.
        updated_at: ISO 8601 timestamp of the last mutation.
    """

    id: str = field(default_factory=make_id)
    title: str = ""
    messages: list[Message] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now)
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.updated_at:
            self.updated_at = self.created_at

    # -- Mutation --------------------------------------------------------------

    def append(self, message: Message) -> None:
        """Append a message, titling the conversation from its first user turn."""
        if not self.messages and message.role == "user":
            self.title = make_title(message.content)
        self.messages.append(message)
        self.updated_at = utc_now()

    def strip_trailing_errors(self) -> int:
        """Remove failed assistant turns from the tail. Returns the count removed."""
        removed = 0
        while self.messages and self.messages[-1].error:
            self.messages.pop()
            removed += 1
        if removed:
            self.updated_at = utc_now()
        return removed

    # -- Queries ---------------------------------------------------------------

    @property
    def last_user_message(self) -> Message | None:
        for message in reversed(self.messages):
            if message.role == "user":
                return message
        return None

    def to_api_messages(self) -> list[dict[str, str]]:
        """Non-system messages reduced to ``{role, content}``, in order."""
        return [m.to_api() for m in self.messages if m.role != "system"]

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``conversations`` column order."""
        return (
            self.id,
            self.title,
            json.dumps([asdict(m) for m in self.messages]),
            self.created_at,
            self.updated_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Conversation:
        """Deserialize from a SQLite row tuple."""
        return cls(
            id=row[0],
            title=row[1],
            messages=[Message.from_dict(m) for m in json.loads(row[2])],
            created_at=row[3],
            updated_at=row[4],
        )
