"""Optimistic compare-and-swap arbitration for task records.

Every task mutation is a read -> validate -> write cycle against one
record. The write only lands if the record is still at the version that
was read; otherwise the cycle is retried from a fresh read, up to a fixed
budget, and then fails with ``Conflict``. Because validation is re-run on
every attempt, a loser of a claim race re-reads the winner's state and
fails its own precondition check instead of overwriting it.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime

from agentcolony.errors import (
    Conflict,
    CorruptRecord,
    InvalidDependency,
    InvalidTransition,
    NotFound,
    StaleVersion,
    Unauthorized,
)
from agentcolony.logging import VERBOSE, get_logger
from agentcolony.store import RecordStore, VersionedRecord
from agentcolony.tasks.resolver import DependencyResolver
from agentcolony.tasks.schema import Task, TaskStatus

log = get_logger("arbiter")

TASKS_TABLE = "tasks"

Transition = Callable[[Task], Task]


def task_from_record(record: VersionedRecord) -> Task:
    try:
        return Task.from_dict(record.data)
    except (KeyError, TypeError, ValueError) as e:
        raise CorruptRecord(f"task record '{record.key}' is invalid: {e}") from e


class ClaimArbiter:
    """Funnels task mutations through the record store's CAS write."""

    def __init__(
        self,
        records: RecordStore,
        *,
        max_retries: int = 8,
        backoff: float = 0.01,
        backoff_max: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the arbiter.

        Args:
            records: Shared record store
            max_retries: Re-reads allowed after a lost CAS before giving up
            backoff: First retry delay in seconds (doubles per attempt)
            backoff_max: Upper bound for a single retry delay
            sleep: Delay function, injectable for tests
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._records = records
        self.max_retries = max_retries
        self.backoff = backoff
        self.backoff_max = backoff_max
        self._sleep = sleep

    def read(self, task_id: str) -> tuple[Task, int]:
        """Versioned read of one task."""
        record = self._records.read(TASKS_TABLE, task_id)
        if record is None:
            raise NotFound(f"task '{task_id}' not found")
        return task_from_record(record), record.version

    def transition(self, task_id: str, apply: Transition) -> Task:
        """Apply ``apply`` to the current task and CAS the result back.

        ``apply`` receives a private copy of the task, validates its
        preconditions (raising a CoordinationError to abort) and returns the
        new state. It may be called more than once.

        Raises:
            NotFound: The task does not exist (or was deleted mid-retry)
            Conflict: The retry budget ran out
        """
        attempt = 0
        while True:
            current, version = self.read(task_id)
            updated = apply(current.copy())
            try:
                self._records.write(TASKS_TABLE, task_id, updated.to_dict(), expected_version=version)
                return updated
            except StaleVersion:
                if attempt >= self.max_retries:
                    log.log(VERBOSE, "giving up on %s after %d retries", task_id, attempt)
                    raise Conflict(
                        f"task '{task_id}' kept changing concurrently; gave up after {attempt} retries"
                    ) from None
                delay = min(self.backoff * (2**attempt), self.backoff_max)
                attempt += 1
                log.log(VERBOSE, "lost CAS on %s, retry %d in %.3fs", task_id, attempt, delay)
                if delay > 0:
                    self._sleep(delay)

    def claim(
        self,
        task_id: str,
        agent_id: str,
        resolver_for: Callable[[Task], DependencyResolver],
        now: Callable[[], datetime],
    ) -> Task:
        """Give ``task_id`` to exactly one of any number of concurrent claimers.

        Args:
            task_id: Task to claim
            agent_id: Claiming agent
            resolver_for: Builds a resolver seeing the task's dependencies
                as they are now (re-run on every attempt)
            now: Clock for claimed_at/updated_at

        Raises:
            Conflict: Someone else holds the task, or the retry budget ran out
            InvalidTransition: The task is completed or cancelled
            InvalidDependency: A dependency is missing or not completed
            Unauthorized: The task is assigned to a different agent
        """

        def apply(task: Task) -> Task:
            if task.status.is_terminal:
                raise InvalidTransition(task.status.value, TaskStatus.CLAIMED.value, task.id)
            if task.claimed_by is not None:
                raise Conflict(f"task '{task.id}' is already claimed by '{task.claimed_by}'")
            if task.status is not TaskStatus.PENDING:
                raise InvalidTransition(task.status.value, TaskStatus.CLAIMED.value, task.id)

            resolver = resolver_for(task)
            unmet = resolver.unmet_dependencies(task)
            if unmet:
                raise InvalidDependency(
                    f"task '{task.id}' has unmet dependencies: {', '.join(unmet)}"
                )
            if not resolver.assignment_admits(task, agent_id):
                raise Unauthorized(f"task '{task.id}' is assigned to '{task.assigned_to}'")

            stamp = now()
            task.status = TaskStatus.CLAIMED
            task.claimed_by = agent_id
            task.claimed_at = stamp
            task.updated_at = stamp
            return task

        task = self.transition(task_id, apply)
        log.debug("task %s claimed by %s", task_id, agent_id)
        return task
