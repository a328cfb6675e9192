"""Data schemas for the task queue."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from agentcolony.errors import ValidationError

AUTO_ASSIGN = "auto"  # assigned_to sentinel: any agent may claim
BROADCAST = "all"  # recipient sentinel: every agent
RESERVED_AGENT_IDS = frozenset({"broadcast"})

_AGENT_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_ts(value: datetime | None) -> str | None:
    return value.isoformat(timespec="microseconds") if value else None


def parse_ts(value: Any) -> datetime | None:
    """Parse a stored timestamp (YAML may already have made it a datetime)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def validate_agent_id(agent_id: str, what: str = "agent id") -> str:
    if (
        not isinstance(agent_id, str)
        or not _AGENT_ID_RE.match(agent_id)
        or agent_id in RESERVED_AGENT_IDS
    ):
        raise ValidationError(
            f"invalid {what} {agent_id!r}: use letters, digits, '-' or '_'"
        )
    return agent_id


class TaskStatus(Enum):
    """Lifecycle state of a task."""

    PENDING = "pending"  # Created, waiting for a claim
    CLAIMED = "claimed"  # Owned by an agent, not started
    IN_PROGRESS = "in_progress"  # Owner is working on it
    BLOCKED = "blocked"  # Owner is waiting on something external
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.CANCELLED)

    @classmethod
    def parse(cls, value: str) -> TaskStatus:
        normalized = value.strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise ValidationError(f"invalid task status {value!r}: must be one of {choices}") from None


ACTIVE_STATUSES = frozenset({TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED})


class TaskPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def parse(cls, value: str) -> TaskPriority:
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ValidationError(f"invalid priority {value!r}: must be one of {choices}") from None


_PRIORITY_RANK = {
    TaskPriority.LOW: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.CRITICAL: 3,
}


@dataclass
class Task:
    """A unit of work in the shared queue."""

    id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: str | None = None  # Agent ID, "auto", or None
    claimed_by: str | None = None
    dependencies: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    progress: int = 0  # 0-100
    blocked_reason: str | None = None  # Only while BLOCKED
    created_at: datetime = field(default_factory=utc_now)
    claimed_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime = field(default_factory=utc_now)

    def is_assigned_to(self, agent_id: str) -> bool:
        return self.claimed_by == agent_id or self.assigned_to == agent_id

    def copy(self) -> Task:
        return replace(self, dependencies=list(self.dependencies), tags=list(self.tags))

    def sort_key(self) -> tuple[int, datetime, str]:
        """Priority descending, then oldest first."""
        return (-self.priority.rank, self.created_at, self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "assigned_to": self.assigned_to,
            "claimed_by": self.claimed_by,
            "dependencies": list(self.dependencies),
            "tags": list(self.tags),
            "progress": self.progress,
            "blocked_reason": self.blocked_reason,
            "created_at": format_ts(self.created_at),
            "claimed_at": format_ts(self.claimed_at),
            "started_at": format_ts(self.started_at),
            "completed_at": format_ts(self.completed_at),
            "updated_at": format_ts(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        created_at = parse_ts(data.get("created_at")) or utc_now()
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            status=TaskStatus(data.get("status", "pending")),
            priority=TaskPriority(data.get("priority", "medium")),
            assigned_to=data.get("assigned_to"),
            claimed_by=data.get("claimed_by"),
            dependencies=list(data.get("dependencies") or []),
            tags=list(data.get("tags") or []),
            progress=int(data.get("progress", 0)),
            blocked_reason=data.get("blocked_reason"),
            created_at=created_at,
            claimed_at=parse_ts(data.get("claimed_at")),
            started_at=parse_ts(data.get("started_at")),
            completed_at=parse_ts(data.get("completed_at")),
            updated_at=parse_ts(data.get("updated_at")) or created_at,
        )


@dataclass
class TaskStatistics:
    """Counts of tasks per status."""

    total: int = 0
    pending: int = 0
    claimed: int = 0
    in_progress: int = 0
    blocked: int = 0
    completed: int = 0
    cancelled: int = 0

    @classmethod
    def from_tasks(cls, tasks: list[Task]) -> TaskStatistics:
        stats = cls(total=len(tasks))
        for task in tasks:
            name = task.status.value
            setattr(stats, name, getattr(stats, name) + 1)
        return stats

    @property
    def completion_percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return self.completed / self.total * 100.0

    @property
    def active_count(self) -> int:
        return self.claimed + self.in_progress

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "pending": self.pending,
            "claimed": self.claimed,
            "in_progress": self.in_progress,
            "blocked": self.blocked,
            "completed": self.completed,
            "cancelled": self.cancelled,
            "completion_percentage": round(self.completion_percentage, 1),
            "active": self.active_count,
        }
