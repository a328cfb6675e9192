"""Tests for the task state machine and queries."""

from __future__ import annotations

import logging

import pytest

from agentcolony.errors import (
    Conflict,
    CorruptRecord,
    DuplicateId,
    InvalidDependency,
    InvalidTransition,
    NotFound,
    Unauthorized,
    ValidationError,
)
from agentcolony.store import RecordStore
from agentcolony.tasks import TaskPriority, TaskStatus, TaskStore


class TestCreate:
    """Tests for task creation."""

    def test_create_pending(self, tasks: TaskStore) -> None:
        task = tasks.create("T1", "Build API", "REST endpoints", priority="high", tags=["api", "api"])
        assert task.status is TaskStatus.PENDING
        assert task.priority is TaskPriority.HIGH
        assert task.claimed_by is None
        assert task.progress == 0
        assert task.tags == ["api"]
        assert tasks.get("T1") == task

    def test_duplicate_id(self, tasks: TaskStore) -> None:
        tasks.create("T1", "first")
        with pytest.raises(DuplicateId):
            tasks.create("T1", "second")
        assert tasks.get("T1").title == "first"

    def test_empty_title(self, tasks: TaskStore) -> None:
        with pytest.raises(ValidationError):
            tasks.create("T1", "   ")

    def test_invalid_id(self, tasks: TaskStore) -> None:
        with pytest.raises(ValidationError):
            tasks.create("../T1", "escape")

    def test_invalid_priority(self, tasks: TaskStore) -> None:
        with pytest.raises(ValidationError):
            tasks.create("T1", "x", priority="urgent")

    def test_reserved_assignee(self, tasks: TaskStore) -> None:
        with pytest.raises(ValidationError):
            tasks.create("T1", "x", assigned_to="broadcast")

    def test_unknown_dependency_not_persisted(self, tasks: TaskStore) -> None:
        with pytest.raises(InvalidDependency):
            tasks.create("T2", "x", dependencies=["T1"])
        with pytest.raises(NotFound):
            tasks.get("T2")

    def test_self_dependency(self, tasks: TaskStore) -> None:
        with pytest.raises(InvalidDependency):
            tasks.create("T1", "x", dependencies=["T1"])

    def test_duplicate_dependencies_collapse(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        task = tasks.create("T2", "y", dependencies=["T1", "T1"])
        assert task.dependencies == ["T1"]

    def test_cycle_through_stale_dependents(self, tasks: TaskStore) -> None:
        tasks.create("A", "a")
        tasks.create("B", "b", dependencies=["A"])
        tasks.delete("A")

        # B still names A; re-creating A on top of B would close the loop.
        with pytest.raises(InvalidDependency, match="cycle"):
            tasks.create("A", "a again", dependencies=["B"])
        with pytest.raises(NotFound):
            tasks.get("A")

    def test_dependency_deleted_during_create(
        self, tasks: TaskStore, records: RecordStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        tasks.create("T1", "x")
        write = records.write

        def delete_then_write(table, key, data, expected_version=None):
            if key == "T2":
                records.delete(table, "T1")
            return write(table, key, data, expected_version=expected_version)

        monkeypatch.setattr(records, "write", delete_then_write)

        with pytest.raises(InvalidDependency, match="T1"):
            tasks.create("T2", "y", dependencies=["T1"])
        with pytest.raises(NotFound):
            tasks.get("T2")


class TestClaim:
    """Tests for claiming tasks."""

    def test_claim_pending(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        task = tasks.claim("T1", "agent-1")
        assert task.status is TaskStatus.CLAIMED
        assert task.claimed_by == "agent-1"
        assert task.claimed_at is not None
        assert tasks.get("T1").claimed_by == "agent-1"

    def test_second_claim_conflicts(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        tasks.claim("T1", "A")
        with pytest.raises(Conflict):
            tasks.claim("T1", "B")
        assert tasks.get("T1").claimed_by == "A"

    def test_reclaim_by_owner_conflicts(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        tasks.claim("T1", "A")
        with pytest.raises(Conflict):
            tasks.claim("T1", "A")

    def test_missing_task(self, tasks: TaskStore) -> None:
        with pytest.raises(NotFound):
            tasks.claim("nope", "A")

    def test_assigned_to_other_agent(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x", assigned_to="agent-2")
        with pytest.raises(Unauthorized):
            tasks.claim("T1", "agent-1")
        assert tasks.claim("T1", "agent-2").claimed_by == "agent-2"

    def test_auto_assignment_admits_anyone(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x", assigned_to="auto")
        assert tasks.claim("T1", "agent-7").claimed_by == "agent-7"

    def test_unmet_dependency_regardless_of_assignment(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        tasks.create("T2", "y", assigned_to="agent-1", dependencies=["T1"])
        tasks.create("T3", "z", assigned_to="agent-9", dependencies=["T1"])

        with pytest.raises(InvalidDependency, match="T1"):
            tasks.claim("T2", "agent-1")
        with pytest.raises(InvalidDependency):
            tasks.claim("T3", "agent-1")
        assert tasks.get("T2").status is TaskStatus.PENDING

    def test_deleted_dependency_blocks_claim(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        tasks.create("T2", "y", dependencies=["T1"])
        tasks.delete("T1")
        with pytest.raises(InvalidDependency):
            tasks.claim("T2", "agent-1")

    def test_cancelled_task(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        tasks.cancel("T1")
        with pytest.raises(InvalidTransition) as exc_info:
            tasks.claim("T1", "agent-1")
        assert exc_info.value.current == "cancelled"
        assert exc_info.value.requested == "claimed"

    def test_invalid_agent_id(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        with pytest.raises(ValidationError):
            tasks.claim("T1", "bad agent")


class TestLifecycle:
    """Tests for start, progress, block, unblock, complete and cancel."""

    @pytest.fixture
    def claimed(self, tasks: TaskStore) -> TaskStore:
        tasks.create("T1", "x")
        tasks.claim("T1", "A")
        return tasks

    def test_full_lifecycle(self, claimed: TaskStore) -> None:
        started = claimed.start("T1")
        assert started.status is TaskStatus.IN_PROGRESS
        assert started.started_at is not None

        assert claimed.progress("T1", 60).progress == 60

        done = claimed.complete("T1")
        assert done.status is TaskStatus.COMPLETED
        assert done.progress == 100
        assert done.completed_at is not None
        assert done.claimed_by == "A"

    def test_complete_pending_is_invalid(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        with pytest.raises(InvalidTransition) as exc_info:
            tasks.complete("T1")
        assert (exc_info.value.current, exc_info.value.requested) == ("pending", "completed")

    def test_complete_from_claimed(self, claimed: TaskStore) -> None:
        assert claimed.complete("T1").status is TaskStatus.COMPLETED

    def test_start_pending_is_invalid(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        with pytest.raises(InvalidTransition):
            tasks.start("T1")

    @pytest.mark.parametrize("value", [150, -1, 101])
    def test_progress_out_of_range(self, claimed: TaskStore, value: int) -> None:
        claimed.start("T1")
        claimed.progress("T1", 30)
        with pytest.raises(ValidationError):
            claimed.progress("T1", value)
        assert claimed.get("T1").progress == 30

    def test_progress_rejects_bool(self, claimed: TaskStore) -> None:
        claimed.start("T1")
        with pytest.raises(ValidationError):
            claimed.progress("T1", True)

    def test_progress_requires_in_progress(self, claimed: TaskStore) -> None:
        with pytest.raises(InvalidTransition):
            claimed.progress("T1", 10)

    def test_block_and_unblock_without_start(self, claimed: TaskStore) -> None:
        blocked = claimed.block("T1", "waiting on review")
        assert blocked.status is TaskStatus.BLOCKED
        assert blocked.blocked_reason == "waiting on review"

        resumed = claimed.unblock("T1")
        assert resumed.status is TaskStatus.CLAIMED
        assert resumed.blocked_reason is None

    def test_unblock_after_start(self, claimed: TaskStore) -> None:
        claimed.start("T1")
        claimed.block("T1", "flaky CI")
        assert claimed.unblock("T1").status is TaskStatus.IN_PROGRESS

    def test_block_requires_reason(self, claimed: TaskStore) -> None:
        with pytest.raises(ValidationError):
            claimed.block("T1", "  ")
        assert claimed.get("T1").status is TaskStatus.CLAIMED

    def test_block_pending_is_invalid(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        with pytest.raises(InvalidTransition):
            tasks.block("T1", "reason")

    def test_unblock_not_blocked(self, claimed: TaskStore) -> None:
        with pytest.raises(InvalidTransition):
            claimed.unblock("T1")

    def test_complete_blocked_is_invalid(self, claimed: TaskStore) -> None:
        claimed.block("T1", "waiting")
        with pytest.raises(InvalidTransition):
            claimed.complete("T1")

    def test_cancel_blocked(self, claimed: TaskStore) -> None:
        claimed.block("T1", "waiting")
        cancelled = claimed.cancel("T1")
        assert cancelled.status is TaskStatus.CANCELLED
        assert cancelled.blocked_reason is None

    def test_cancel_completed_is_invalid(self, claimed: TaskStore) -> None:
        claimed.complete("T1")
        with pytest.raises(InvalidTransition):
            claimed.cancel("T1")

    @pytest.mark.parametrize("finish", ["complete", "cancel"])
    def test_claim_finished_task_is_invalid(self, claimed: TaskStore, finish: str) -> None:
        getattr(claimed, finish)("T1")
        with pytest.raises(InvalidTransition) as exc_info:
            claimed.claim("T1", "B")
        assert exc_info.value.requested == "claimed"
        assert exc_info.value.current == claimed.get("T1").status.value
        assert claimed.get("T1").claimed_by == "A"

    def test_transition_missing_task(self, tasks: TaskStore) -> None:
        with pytest.raises(NotFound):
            tasks.start("nope")


class TestDelete:
    """Tests for task deletion."""

    def test_delete_returns_last_state(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        tasks.claim("T1", "A")
        deleted = tasks.delete("T1")
        assert deleted.claimed_by == "A"
        with pytest.raises(NotFound):
            tasks.get("T1")

    def test_delete_missing(self, tasks: TaskStore) -> None:
        with pytest.raises(NotFound):
            tasks.delete("T1")

    def test_delete_warns_about_dependents(
        self, tasks: TaskStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        tasks.create("T1", "x")
        tasks.create("T2", "y", dependencies=["T1"])
        with caplog.at_level(logging.WARNING, logger="agentcolony.tasks"):
            tasks.delete("T1")
        assert "dependents can no longer be claimed: T2" in caplog.text


class TestQueries:
    """Tests for list, agent, claimable, statistics and assignments."""

    def test_list_orders_by_priority_then_age(self, tasks: TaskStore) -> None:
        tasks.create("low", "x", priority="low")
        tasks.create("first-high", "x", priority="high")
        tasks.create("crit", "x", priority="critical")
        tasks.create("second-high", "x", priority="high")
        assert [t.id for t in tasks.list()] == ["crit", "first-high", "second-high", "low"]

    def test_list_by_status(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        tasks.create("T2", "y")
        tasks.claim("T2", "A")
        assert [t.id for t in tasks.list("claimed")] == ["T2"]
        assert [t.id for t in tasks.list(TaskStatus.PENDING)] == ["T1"]

    def test_list_empty_store(self, tasks: TaskStore) -> None:
        assert tasks.list() == []

    def test_agent_tasks(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x", assigned_to="A")
        tasks.create("T2", "y")
        tasks.create("T3", "z")
        tasks.claim("T2", "A")
        tasks.claim("T3", "B")
        assert sorted(t.id for t in tasks.agent("A")) == ["T1", "T2"]

    def test_claimable_follows_dependencies(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        tasks.create("T2", "y", dependencies=["T1"])
        assert [t.id for t in tasks.claimable("X")] == ["T1"]

        tasks.claim("T1", "X")
        tasks.complete("T1")
        assert [t.id for t in tasks.claimable("X")] == ["T2"]

    def test_claimable_respects_assignment(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x", assigned_to="A")
        tasks.create("T2", "y", assigned_to="auto")
        assert [t.id for t in tasks.claimable("B")] == ["T2"]

    def test_statistics(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        tasks.create("T2", "y")
        tasks.claim("T1", "A")
        tasks.complete("T1")
        stats = tasks.statistics()
        assert stats.total == 2
        assert stats.completed == 1
        assert stats.pending == 1
        assert stats.completion_percentage == 50.0

    def test_assignments(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x", assigned_to="A")
        tasks.create("T2", "y", assigned_to="auto")
        tasks.create("T3", "z")
        tasks.claim("T3", "B")
        grouped = tasks.assignments()
        assert {agent: [t.id for t in held] for agent, held in grouped.items()} == {
            "A": ["T1"],
            "B": ["T3"],
        }

    def test_queries_do_not_write(self, tasks: TaskStore, records: RecordStore) -> None:
        tasks.create("T1", "x")
        before = records.read("tasks", "T1").version
        tasks.list()
        tasks.claimable("A")
        tasks.statistics()
        assert records.read("tasks", "T1").version == before


class TestScenarios:
    """End-to-end flows over one store."""

    def test_claim_then_conflict(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x", dependencies=[])
        assert tasks.claim("T1", "A").claimed_by == "A"
        with pytest.raises(Conflict):
            tasks.claim("T1", "B")

    def test_dependency_unlocks_claimable(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        tasks.create("T2", "y", dependencies=["T1"])
        assert "T2" not in [t.id for t in tasks.claimable("X")]

        tasks.claim("T1", "A")
        tasks.complete("T1")
        assert "T2" in [t.id for t in tasks.claimable("X")]

    def test_mutual_dependencies_rejected(self, tasks: TaskStore) -> None:
        with pytest.raises(InvalidDependency):
            tasks.create("T3", "x", dependencies=["T4"])
        with pytest.raises(InvalidDependency):
            tasks.create("T4", "y", dependencies=["T3"])
        with pytest.raises(NotFound):
            tasks.get("T4")

    def test_block_unblock_returns_to_claimed(self, tasks: TaskStore) -> None:
        tasks.create("T1", "x")
        tasks.claim("T1", "A")
        blocked = tasks.block("T1", "waiting on review")
        assert blocked.status is TaskStatus.BLOCKED
        assert blocked.blocked_reason == "waiting on review"
        assert tasks.unblock("T1").status is TaskStatus.CLAIMED


class TestCorruptRecords:
    """Tests for records that parse as YAML but not as tasks."""

    def test_unknown_status(self, tasks: TaskStore, records: RecordStore) -> None:
        records.write("tasks", "T1", {"id": "T1", "title": "x", "status": "exploded"})
        with pytest.raises(CorruptRecord, match="T1"):
            tasks.list()
        with pytest.raises(CorruptRecord):
            tasks.claim("T1", "A")
