"""Shared test utilities for agentcolony tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


class FakeClock:
    """Clock that advances one millisecond per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 17, 10, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(milliseconds=1)
        return self.now


def no_sleep(_delay: float) -> None:
    pass
