"""agentcolony: shared task queue and mailboxes for cooperating agent processes.

Usage:
    from agentcolony import CoordinationFacade

    colony = CoordinationFacade(".colony")
    colony.create_task("build", "Build the thing")
    colony.claim_task("build", "agent-1")
"""

from agentcolony.coordination import CoordinationFacade, Snapshot
from agentcolony.errors import (
    Conflict,
    CoordinationError,
    DuplicateId,
    InvalidDependency,
    InvalidTransition,
    NotFound,
    Unauthorized,
    ValidationError,
)
from agentcolony.messaging import Message, MessageContext, MessageType
from agentcolony.tasks import Task, TaskPriority, TaskStatistics, TaskStatus

__version__ = "0.1.0"

__all__ = [
    "Conflict",
    "CoordinationError",
    "CoordinationFacade",
    "DuplicateId",
    "InvalidDependency",
    "InvalidTransition",
    "Message",
    "MessageContext",
    "MessageType",
    "NotFound",
    "Snapshot",
    "Task",
    "TaskPriority",
    "TaskStatistics",
    "TaskStatus",
    "Unauthorized",
    "ValidationError",
]
