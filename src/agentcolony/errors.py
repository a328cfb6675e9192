"""Error taxonomy for the coordination store.

Every core operation fails with one of the ``CoordinationError`` subclasses
below. Each carries a stable ``kind`` string that the CLI prints and that
callers can switch on without importing the classes.

Store-level faults (``StoreError``) are raised by the record store itself.
``RecordExists`` and ``StaleVersion`` are translated by the task layer into
``DuplicateId`` and ``Conflict``; ``CorruptRecord`` propagates as is.
"""

from __future__ import annotations


class CoordinationError(Exception):
    """Base class for all coordination failures."""

    kind = "coordination_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DuplicateId(CoordinationError):
    kind = "duplicate_id"


class NotFound(CoordinationError):
    kind = "not_found"


class InvalidTransition(CoordinationError):
    """Event not allowed from the task's current state."""

    kind = "invalid_transition"

    def __init__(self, current: str, requested: str, task_id: str | None = None) -> None:
        self.current = current
        self.requested = requested
        self.task_id = task_id
        subject = f"task '{task_id}'" if task_id else "task"
        super().__init__(f"cannot move {subject} from {current} to {requested}")


class Conflict(CoordinationError):
    """Lost a concurrent claim or compare-and-swap race."""

    kind = "conflict"


class InvalidDependency(CoordinationError):
    kind = "invalid_dependency"

    def __init__(self, message: str, path: list[str] | None = None) -> None:
        super().__init__(message)
        self.path = path or []


class Unauthorized(CoordinationError):
    kind = "unauthorized"


class ValidationError(CoordinationError):
    kind = "validation_error"


class StoreError(CoordinationError):
    kind = "store_error"


class RecordExists(StoreError):
    kind = "record_exists"


class StaleVersion(StoreError):
    """Stored version differs from the one the writer read."""

    kind = "stale_version"


class CorruptRecord(StoreError):
    kind = "corrupt_record"
