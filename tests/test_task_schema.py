"""Tests for task and message schemas."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from agentcolony.errors import ValidationError
from agentcolony.messaging import Message, MessageContext, MessageType
from agentcolony.tasks import Task, TaskPriority, TaskStatistics, TaskStatus
from agentcolony.tasks.schema import parse_ts, validate_agent_id


class TestTaskStatus:
    """Tests for TaskStatus."""

    def test_parse_accepts_dashes_and_case(self) -> None:
        assert TaskStatus.parse("In-Progress") is TaskStatus.IN_PROGRESS

    def test_parse_invalid(self) -> None:
        with pytest.raises(ValidationError, match="invalid task status"):
            TaskStatus.parse("done")

    def test_terminal_states(self) -> None:
        terminal = {s for s in TaskStatus if s.is_terminal}
        assert terminal == {TaskStatus.COMPLETED, TaskStatus.CANCELLED}


class TestTaskPriority:
    """Tests for TaskPriority."""

    def test_rank_order(self) -> None:
        ranks = [p.rank for p in (TaskPriority.LOW, TaskPriority.MEDIUM, TaskPriority.HIGH, TaskPriority.CRITICAL)]
        assert ranks == sorted(ranks)

    def test_parse_invalid(self) -> None:
        with pytest.raises(ValidationError):
            TaskPriority.parse("urgent")


class TestTask:
    """Tests for the Task dataclass."""

    def test_to_dict(self) -> None:
        created = datetime(2026, 1, 17, 10, 0, tzinfo=timezone.utc)
        task = Task(
            id="T1",
            title="Build API",
            priority=TaskPriority.HIGH,
            dependencies=["T0"],
            tags=["backend"],
            created_at=created,
            updated_at=created,
        )
        d = task.to_dict()
        assert d["id"] == "T1"
        assert d["status"] == "pending"
        assert d["priority"] == "high"
        assert d["claimed_by"] is None
        assert d["dependencies"] == ["T0"]
        assert d["created_at"] == "2026-01-17T10:00:00.000000+00:00"
        assert d["started_at"] is None

    def test_from_dict(self) -> None:
        task = Task.from_dict(
            {
                "id": "T1",
                "title": "Build API",
                "status": "blocked",
                "priority": "critical",
                "claimed_by": "agent-1",
                "blocked_reason": "waiting on review",
                "created_at": "2026-01-17T10:00:00+00:00",
                "started_at": "2026-01-17T10:05:00+00:00",
            }
        )
        assert task.status is TaskStatus.BLOCKED
        assert task.priority is TaskPriority.CRITICAL
        assert task.blocked_reason == "waiting on review"
        assert task.started_at == datetime(2026, 1, 17, 10, 5, tzinfo=timezone.utc)
        assert task.updated_at == task.created_at
        assert task.dependencies == []

    def test_copy_does_not_share_lists(self) -> None:
        task = Task(id="T1", title="x", dependencies=["a"])
        clone = task.copy()
        clone.dependencies.append("b")
        assert task.dependencies == ["a"]

    def test_sort_key_priority_then_age(self) -> None:
        early = datetime(2026, 1, 1, tzinfo=timezone.utc)
        late = datetime(2026, 1, 2, tzinfo=timezone.utc)
        tasks = [
            Task(id="old-low", title="x", priority=TaskPriority.LOW, created_at=early),
            Task(id="new-high", title="x", priority=TaskPriority.HIGH, created_at=late),
            Task(id="old-high", title="x", priority=TaskPriority.HIGH, created_at=early),
        ]
        assert [t.id for t in sorted(tasks, key=Task.sort_key)] == ["old-high", "new-high", "old-low"]

    def test_is_assigned_to(self) -> None:
        task = Task(id="T1", title="x", assigned_to="agent-2", claimed_by="agent-1")
        assert task.is_assigned_to("agent-1")
        assert task.is_assigned_to("agent-2")
        assert not task.is_assigned_to("agent-3")


class TestTaskStatistics:
    """Tests for TaskStatistics."""

    def test_counts_and_percentage(self) -> None:
        tasks = [
            Task(id="a", title="x", status=TaskStatus.COMPLETED),
            Task(id="b", title="x", status=TaskStatus.IN_PROGRESS),
            Task(id="c", title="x", status=TaskStatus.CLAIMED),
            Task(id="d", title="x"),
        ]
        stats = TaskStatistics.from_tasks(tasks)
        assert stats.total == 4
        assert stats.completed == 1
        assert stats.pending == 1
        assert stats.active_count == 2
        assert stats.completion_percentage == 25.0
        assert stats.to_dict()["completion_percentage"] == 25.0

    def test_empty(self) -> None:
        assert TaskStatistics.from_tasks([]).completion_percentage == 0.0


class TestTimestamps:
    """Tests for timestamp parsing."""

    def test_naive_datetime_becomes_utc(self) -> None:
        parsed = parse_ts(datetime(2026, 1, 17, 10, 0))
        assert parsed.tzinfo is timezone.utc

    def test_empty_values(self) -> None:
        assert parse_ts(None) is None
        assert parse_ts("") is None


class TestAgentIds:
    """Tests for agent id validation."""

    def test_valid(self) -> None:
        assert validate_agent_id("backend-1") == "backend-1"

    @pytest.mark.parametrize("agent_id", ["", "a b", "a/b", "broadcast"])
    def test_invalid(self, agent_id: str) -> None:
        with pytest.raises(ValidationError):
            validate_agent_id(agent_id)


class TestMessage:
    """Tests for the Message dataclass."""

    def test_to_dict_uses_wire_names(self) -> None:
        message = Message(
            id="a-1-000001",
            sender="agent-1",
            recipient="all",
            content="hello",
            message_type=MessageType.QUESTION,
            context=MessageContext(project_dir="/work", git_branch="main"),
        )
        d = message.to_dict()
        assert d["from"] == "agent-1"
        assert d["to"] == "all"
        assert d["message_type"] == "question"
        assert d["context"] == {"project_dir": "/work", "git_branch": "main"}
        assert message.is_broadcast

    def test_from_dict_reads_flat_context(self) -> None:
        message = Message.from_dict(
            {
                "id": "m1",
                "from": "agent-1",
                "to": "agent-2",
                "content": "hi",
                "message_type": "answer",
                "timestamp": "2026-01-17T10:00:00+00:00",
                "project_dir": "/work",
                "git_branch": "feature/x",
            }
        )
        assert message.message_type is MessageType.ANSWER
        assert message.context.git_branch == "feature/x"
        assert not message.is_broadcast

    def test_message_type_parse_invalid(self) -> None:
        with pytest.raises(ValidationError):
            MessageType.parse("chatter")
