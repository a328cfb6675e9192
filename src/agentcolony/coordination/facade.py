"""Single entry point used by the CLI and by polling readers.

Holds no state of its own: every call goes straight to the task store or
the message bus, both sitting on the same record store.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from agentcolony.messaging import Message, MessageBus, MessageContext, MessageType
from agentcolony.store import RecordStore
from agentcolony.tasks import ClaimArbiter, Task, TaskPriority, TaskStatistics, TaskStatus, TaskStore
from agentcolony.tasks.schema import utc_now

if TYPE_CHECKING:
    from agentcolony.config.schema import Config


@dataclass
class Snapshot:
    """Everything a dashboard needs for one refresh."""

    tasks: list[Task] = field(default_factory=list)
    statistics: TaskStatistics = field(default_factory=TaskStatistics)
    messages: list[Message] = field(default_factory=list)
    taken_at: datetime = field(default_factory=utc_now)


class CoordinationFacade:
    """Task queue and mailboxes of one colony."""

    def __init__(
        self,
        root: str | Path,
        *,
        max_retries: int = 8,
        backoff: float = 0.01,
        backoff_max: float = 0.25,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Open the colony at ``root``.

        Args:
            root: Coordination root directory
            max_retries: Claim/transition retry budget before Conflict
            backoff: First retry delay in seconds
            backoff_max: Cap for a single retry delay
            sleep: Delay function for retries (tests pass a no-op)
            clock: Timestamp source
        """
        self.records = RecordStore(root)
        arbiter_kwargs = {} if sleep is None else {"sleep": sleep}
        arbiter = ClaimArbiter(
            self.records,
            max_retries=max_retries,
            backoff=backoff,
            backoff_max=backoff_max,
            **arbiter_kwargs,
        )
        self.tasks = TaskStore(self.records, arbiter, clock=clock)
        self.messages = MessageBus(self.records, clock=clock)

    @classmethod
    def from_config(cls, config: Config, project_dir: str | Path | None = None) -> CoordinationFacade:
        """Build a facade from loaded configuration.

        A relative ``store.root`` is resolved against ``project_dir``
        (default: the current directory).
        """
        root = Path(config.store.root).expanduser()
        if not root.is_absolute():
            root = Path(project_dir or Path.cwd()) / root
        return cls(
            root,
            max_retries=config.claims.max_retries,
            backoff=config.claims.backoff,
            backoff_max=config.claims.backoff_max,
        )

    @property
    def root(self) -> Path:
        return self.records.root

    # Tasks

    def create_task(
        self,
        task_id: str,
        title: str,
        description: str = "",
        *,
        assigned_to: str | None = None,
        priority: TaskPriority | str = TaskPriority.MEDIUM,
        dependencies: Iterable[str] | None = None,
        tags: Iterable[str] | None = None,
    ) -> Task:
        return self.tasks.create(
            task_id,
            title,
            description,
            assigned_to=assigned_to,
            priority=priority,
            dependencies=dependencies,
            tags=tags,
        )

    def claim_task(self, task_id: str, agent_id: str) -> Task:
        return self.tasks.claim(task_id, agent_id)

    def start_task(self, task_id: str) -> Task:
        return self.tasks.start(task_id)

    def update_progress(self, task_id: str, progress: int) -> Task:
        return self.tasks.progress(task_id, progress)

    def block_task(self, task_id: str, reason: str) -> Task:
        return self.tasks.block(task_id, reason)

    def unblock_task(self, task_id: str) -> Task:
        return self.tasks.unblock(task_id)

    def complete_task(self, task_id: str) -> Task:
        return self.tasks.complete(task_id)

    def cancel_task(self, task_id: str) -> Task:
        return self.tasks.cancel(task_id)

    def delete_task(self, task_id: str) -> Task:
        return self.tasks.delete(task_id)

    def get_task(self, task_id: str) -> Task:
        return self.tasks.get(task_id)

    def list_tasks(self, status: TaskStatus | str | None = None) -> list[Task]:
        return self.tasks.list(status)

    def agent_tasks(self, agent_id: str) -> list[Task]:
        return self.tasks.agent(agent_id)

    def claimable_tasks(self, agent_id: str) -> list[Task]:
        return self.tasks.claimable(agent_id)

    def task_statistics(self) -> TaskStatistics:
        return self.tasks.statistics()

    def task_assignments(self) -> dict[str, list[Task]]:
        return self.tasks.assignments()

    # Messages

    def send_message(
        self,
        sender: str,
        recipient: str,
        content: str,
        message_type: MessageType | str = MessageType.INFO,
        context: MessageContext | None = None,
    ) -> Message:
        return self.messages.send(sender, recipient, content, message_type, context)

    def broadcast(
        self,
        sender: str,
        content: str,
        message_type: MessageType | str = MessageType.INFO,
        context: MessageContext | None = None,
    ) -> Message:
        return self.messages.broadcast(sender, content, message_type, context)

    def read_messages(self, agent_id: str) -> list[Message]:
        return self.messages.read(agent_id)

    def sent_messages(self, agent_id: str) -> list[Message]:
        return self.messages.sent(agent_id)

    def all_messages(self) -> list[Message]:
        return self.messages.read_all()

    # Polling

    def snapshot(self) -> Snapshot:
        """Read tasks, statistics and all messages in one pass.

        An empty or missing root yields an empty snapshot. Store errors
        propagate; pollers treat them as "no update this cycle".
        """
        tasks = self.tasks.list()
        return Snapshot(
            tasks=tasks,
            statistics=TaskStatistics.from_tasks(tasks),
            messages=self.messages.read_all(),
        )
