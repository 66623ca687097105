"""Conversation data models."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Author of a conversation turn."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationTurn:
    """Represents a single message within a session."""
    role: Role
    content: str
    timestamp: datetime = field(default_factory=utc_now)

    def to_message(self) -> dict:
        """Role-tagged message as expected by chat completion APIs."""
        return {"role": self.role.value, "content": self.content}
