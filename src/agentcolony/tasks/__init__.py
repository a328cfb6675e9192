"""Dependency-aware task queue with race-free claims."""

from agentcolony.tasks.arbiter import ClaimArbiter
from agentcolony.tasks.resolver import DependencyResolver
from agentcolony.tasks.schema import (
    AUTO_ASSIGN,
    Task,
    TaskPriority,
    TaskStatistics,
    TaskStatus,
)
from agentcolony.tasks.store import TaskStore

__all__ = [
    "AUTO_ASSIGN",
    "ClaimArbiter",
    "DependencyResolver",
    "Task",
    "TaskPriority",
    "TaskStatistics",
    "TaskStatus",
    "TaskStore",
]
