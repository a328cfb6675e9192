"""Root pytest configuration for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from agentcolony.coordination import CoordinationFacade
from agentcolony.logging import reset_logging
from agentcolony.messaging import MessageBus
from agentcolony.store import RecordStore
from agentcolony.tasks import ClaimArbiter, TaskStore
from tests.utils import FakeClock, no_sleep


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep user config, COLONY_* variables and logging state out of tests."""
    for name in ("COLONY_ROOT", "COLONY_AGENT_ID", "COLONY_LOG", "COLONY_CLAIM_RETRIES"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def colony_root(tmp_path: Path) -> Path:
    return tmp_path / ".colony"


@pytest.fixture
def records(colony_root: Path) -> RecordStore:
    return RecordStore(colony_root)


@pytest.fixture
def tasks(records: RecordStore, clock: FakeClock) -> TaskStore:
    return TaskStore(records, ClaimArbiter(records, sleep=no_sleep), clock=clock)


@pytest.fixture
def bus(records: RecordStore, clock: FakeClock) -> MessageBus:
    return MessageBus(records, clock=clock)


@pytest.fixture
def colony(colony_root: Path, clock: FakeClock) -> CoordinationFacade:
    return CoordinationFacade(colony_root, sleep=no_sleep, clock=clock)
