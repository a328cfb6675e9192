"""Task state machine over the shared record store.

    create                      -> pending
    pending      --claim-->        claimed
    claimed      --start-->        in_progress
    in_progress  --progress-->     in_progress
    claimed|in_progress --block--> blocked
    blocked      --unblock-->      in_progress if started, else claimed
    claimed|in_progress --complete--> completed
    any non-terminal --cancel-->   cancelled
    any          --delete-->       (removed)

Any other event fails with InvalidTransition. Each transition is one CAS
write through the ClaimArbiter, so other processes only ever observe
complete, validated states.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime

from agentcolony.errors import (
    Conflict,
    DuplicateId,
    InvalidDependency,
    InvalidTransition,
    NotFound,
    RecordExists,
    StaleVersion,
    ValidationError,
)
from agentcolony.logging import get_logger
from agentcolony.store import RecordStore, validate_name
from agentcolony.tasks.arbiter import TASKS_TABLE, ClaimArbiter, task_from_record
from agentcolony.tasks.resolver import DependencyResolver
from agentcolony.tasks.schema import (
    AUTO_ASSIGN,
    Task,
    TaskPriority,
    TaskStatistics,
    TaskStatus,
    utc_now,
    validate_agent_id,
)

log = get_logger("tasks")


class TaskStore:
    """Create, transition and query tasks shared by every agent process."""

    def __init__(
        self,
        records: RecordStore,
        arbiter: ClaimArbiter | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the task store.

        Args:
            records: Shared record store
            arbiter: CAS arbiter (defaults to one with the default retry budget)
            clock: Timestamp source, injectable for tests
        """
        self._records = records
        self._arbiter = arbiter or ClaimArbiter(records)
        self._clock = clock

    @property
    def arbiter(self) -> ClaimArbiter:
        return self._arbiter

    # =========================================================================
    # Creation and deletion
    # =========================================================================

    def create(
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
        """Create a pending task.

        Args:
            task_id: Caller-chosen unique id
            title: Short title
            description: Longer description
            assigned_to: Agent id, "auto", or None for anyone
            priority: TaskPriority or its name
            dependencies: Ids of existing tasks that must complete first
            tags: Free-form labels

        Returns:
            The persisted task

        Raises:
            ValidationError: Bad id, empty title, bad priority or assignee
            InvalidDependency: Unknown dependency, self-dependency or cycle
            DuplicateId: A task with this id already exists
        """
        validate_name(task_id, "task id")
        if not title or not title.strip():
            raise ValidationError("task title must not be empty")
        if isinstance(priority, str):
            priority = TaskPriority.parse(priority)
        if assigned_to is not None and assigned_to != AUTO_ASSIGN:
            validate_agent_id(assigned_to, "assignee")

        deps = _dedupe(dependencies or [])
        for dep_id in deps:
            validate_name(dep_id, "dependency id")

        if self._records.read(TASKS_TABLE, task_id) is not None:
            raise DuplicateId(f"task '{task_id}' already exists")

        DependencyResolver(self._snapshot()).check_new_task(task_id, deps)

        now = self._clock()
        task = Task(
            id=task_id,
            title=title.strip(),
            description=description,
            priority=priority,
            assigned_to=assigned_to,
            dependencies=deps,
            tags=_dedupe(t.strip() for t in (tags or []) if t and t.strip()),
            created_at=now,
            updated_at=now,
        )
        try:
            record = self._records.write(TASKS_TABLE, task_id, task.to_dict(), expected_version=None)
        except RecordExists:
            raise DuplicateId(f"task '{task_id}' already exists") from None

        # A dependency deleted between the check and the write leaves a dangling edge.
        missing = [d for d in deps if self._records.read(TASKS_TABLE, d) is None]
        if missing:
            try:
                self._records.delete(TASKS_TABLE, task_id, expected_version=record.version)
            except StaleVersion:
                log.warning("task %s changed before its rollback; left in place", task_id)
            raise InvalidDependency(f"dependencies deleted during create: {', '.join(missing)}")

        log.debug("created task %s (deps=%s)", task_id, deps)
        return task

    def delete(self, task_id: str) -> Task:
        """Remove a task permanently, whatever its state.

        Returns:
            The task as it was just before deletion
        """
        validate_name(task_id, "task id")
        task, version = self._arbiter.read(task_id)
        try:
            removed = self._records.delete(TASKS_TABLE, task_id, expected_version=version)
        except StaleVersion:
            raise Conflict(f"task '{task_id}' changed while being deleted") from None
        if not removed:
            raise NotFound(f"task '{task_id}' not found")

        dependents = [t.id for t in self.list() if task_id in t.dependencies]
        if dependents:
            log.warning(
                "deleted task %s; dependents can no longer be claimed: %s",
                task_id,
                ", ".join(dependents),
            )
        else:
            log.debug("deleted task %s", task_id)
        return task

    # =========================================================================
    # Transitions
    # =========================================================================

    def claim(self, task_id: str, agent_id: str) -> Task:
        validate_name(task_id, "task id")
        validate_agent_id(agent_id)
        return self._arbiter.claim(task_id, agent_id, self._resolver_for, self._clock)

    def start(self, task_id: str) -> Task:
        def apply(task: Task) -> Task:
            self._require(task, TaskStatus.IN_PROGRESS, TaskStatus.CLAIMED)
            stamp = self._clock()
            task.status = TaskStatus.IN_PROGRESS
            task.started_at = stamp
            task.updated_at = stamp
            return task

        return self._transition(task_id, "start", apply)

    def progress(self, task_id: str, progress: int) -> Task:
        """Record progress (0-100) on an in-progress task."""
        if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
            raise ValidationError(f"progress must be an integer between 0 and 100, got {progress!r}")

        def apply(task: Task) -> Task:
            self._require(task, TaskStatus.IN_PROGRESS, TaskStatus.IN_PROGRESS)
            task.progress = progress
            task.updated_at = self._clock()
            return task

        return self._transition(task_id, "progress", apply)

    def block(self, task_id: str, reason: str) -> Task:
        if not reason or not reason.strip():
            raise ValidationError("block reason must not be empty")

        def apply(task: Task) -> Task:
            self._require(task, TaskStatus.BLOCKED, TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS)
            task.status = TaskStatus.BLOCKED
            task.blocked_reason = reason.strip()
            task.updated_at = self._clock()
            return task

        return self._transition(task_id, "block", apply)

    def unblock(self, task_id: str) -> Task:
        """Resume a blocked task in the state it was blocked from."""

        def apply(task: Task) -> Task:
            resumed = TaskStatus.IN_PROGRESS if task.started_at else TaskStatus.CLAIMED
            self._require(task, resumed, TaskStatus.BLOCKED)
            task.status = resumed
            task.blocked_reason = None
            task.updated_at = self._clock()
            return task

        return self._transition(task_id, "unblock", apply)

    def complete(self, task_id: str) -> Task:
        def apply(task: Task) -> Task:
            self._require(task, TaskStatus.COMPLETED, TaskStatus.CLAIMED, TaskStatus.IN_PROGRESS)
            stamp = self._clock()
            task.status = TaskStatus.COMPLETED
            task.progress = 100
            task.completed_at = stamp
            task.updated_at = stamp
            return task

        return self._transition(task_id, "complete", apply)

    def cancel(self, task_id: str) -> Task:
        def apply(task: Task) -> Task:
            if task.status.is_terminal:
                raise InvalidTransition(task.status.value, TaskStatus.CANCELLED.value, task.id)
            task.status = TaskStatus.CANCELLED
            task.blocked_reason = None
            task.updated_at = self._clock()
            return task

        return self._transition(task_id, "cancel", apply)

    # =========================================================================
    # Queries (no side effects)
    # =========================================================================

    def get(self, task_id: str) -> Task:
        validate_name(task_id, "task id")
        task, _ = self._arbiter.read(task_id)
        return task

    show = get

    def list(self, status: TaskStatus | str | None = None) -> list[Task]:
        """All tasks, optionally filtered by status, highest priority first."""
        if isinstance(status, str):
            status = TaskStatus.parse(status)
        tasks = [task_from_record(r) for r in self._records.scan(TASKS_TABLE)]
        if status is not None:
            tasks = [t for t in tasks if t.status is status]
        tasks.sort(key=Task.sort_key)
        return tasks

    def agent(self, agent_id: str) -> list[Task]:
        """Tasks claimed by or assigned to ``agent_id``, any status."""
        return [t for t in self.list() if t.is_assigned_to(agent_id)]

    def claimable(self, agent_id: str) -> list[Task]:
        """Pending tasks this agent could claim right now."""
        tasks = self.list()
        resolver = DependencyResolver.from_tasks(tasks)
        return [t for t in tasks if resolver.claimable(t, agent_id)]

    def statistics(self) -> TaskStatistics:
        return TaskStatistics.from_tasks(self.list())

    def assignments(self) -> dict[str, list[Task]]:
        """Tasks grouped by the agent that holds them or is assigned them."""
        grouped: dict[str, list[Task]] = {}
        for task in self.list():
            owner = task.claimed_by
            if owner is None and task.assigned_to not in (None, AUTO_ASSIGN):
                owner = task.assigned_to
            if owner is not None:
                grouped.setdefault(owner, []).append(task)
        return grouped

    # =========================================================================
    # Internals
    # =========================================================================

    def _transition(self, task_id: str, event: str, apply: Callable[[Task], Task]) -> Task:
        validate_name(task_id, "task id")
        task = self._arbiter.transition(task_id, apply)
        log.debug("task %s: %s -> %s", task_id, event, task.status.value)
        return task

    @staticmethod
    def _require(task: Task, requested: TaskStatus, *allowed: TaskStatus) -> None:
        if task.status not in allowed:
            raise InvalidTransition(task.status.value, requested.value, task.id)

    def _snapshot(self) -> dict[str, Task]:
        return {r.key: task_from_record(r) for r in self._records.scan(TASKS_TABLE)}

    def _resolver_for(self, task: Task) -> DependencyResolver:
        deps: dict[str, Task] = {}
        for dep_id in task.dependencies:
            record = self._records.read(TASKS_TABLE, dep_id)
            if record is not None:
                deps[dep_id] = task_from_record(record)
        return DependencyResolver(deps)


def _dedupe(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result
