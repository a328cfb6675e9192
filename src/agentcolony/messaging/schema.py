"""Data schemas for agent mailboxes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from agentcolony.errors import ValidationError
from agentcolony.tasks.schema import format_ts, parse_ts, utc_now


class MessageType(Enum):
    """Kind of notice carried by a message."""

    INFO = "info"
    TASK = "task"
    QUESTION = "question"
    ANSWER = "answer"
    COMPLETED = "completed"
    ERROR = "error"

    @classmethod
    def parse(cls, value: str) -> MessageType:
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(t.value for t in cls)
            raise ValidationError(f"invalid message type {value!r}: must be one of {choices}") from None


@dataclass(frozen=True)
class MessageContext:
    """Where the sender was working when it wrote the message."""

    project_dir: str | None = None
    git_branch: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"project_dir": self.project_dir, "git_branch": self.git_branch}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MessageContext:
        data = data or {}
        return cls(project_dir=data.get("project_dir"), git_branch=data.get("git_branch"))


@dataclass(frozen=True)
class Message:
    """An immutable message in a mailbox."""

    id: str
    sender: str  # Agent ID ("from" on disk)
    recipient: str  # Agent ID or "all" ("to" on disk)
    content: str
    message_type: MessageType = MessageType.INFO
    timestamp: datetime = field(default_factory=utc_now)
    context: MessageContext = field(default_factory=MessageContext)

    @property
    def is_broadcast(self) -> bool:
        return self.recipient == "all"

    def sort_key(self) -> tuple[datetime, str]:
        return (self.timestamp, self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from": self.sender,
            "to": self.recipient,
            "content": self.content,
            "message_type": self.message_type.value,
            "timestamp": format_ts(self.timestamp),
            "context": self.context.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        # Older writers stored the context fields at the top level
        context = data.get("context")
        if context is None:
            context = {"project_dir": data.get("project_dir"), "git_branch": data.get("git_branch")}
        return cls(
            id=data["id"],
            sender=data["from"],
            recipient=data["to"],
            content=data.get("content", ""),
            message_type=MessageType(data.get("message_type", "info")),
            timestamp=parse_ts(data.get("timestamp")) or utc_now(),
            context=MessageContext.from_dict(context),
        )
