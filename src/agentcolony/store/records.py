"""Versioned record store on a shared directory.

Layout under the coordination root:
  <root>/<table>/<key>.yaml           keyed, versioned records
  <root>/<table>/.locks/<key>.lock    per-record CAS lock files
  <root>/<log>/<name>.yaml            append-only log entries

Record files contain:
- version: int, 1 on create, +1 per successful write
- data: the record payload

Writers publish through a temp file and ``os.replace`` so a reader never
sees a partially written record. Table writes are compare-and-swap: the
stored version is checked and the new file published while holding the
record's file lock. Reads take no lock.
"""

from __future__ import annotations

import os
import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from filelock import FileLock, Timeout

from agentcolony.errors import CorruptRecord, RecordExists, StaleVersion, StoreError, ValidationError
from agentcolony.logging import TRACE, get_logger

log = get_logger("store")

RECORD_SUFFIX = ".yaml"
LOCK_DIR = ".locks"

_NAME_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


@dataclass(frozen=True)
class VersionedRecord:
    """A record as read from the store, with the version it was read at."""

    key: str
    version: int
    data: dict[str, Any]


def validate_name(name: str, what: str = "record key") -> str:
    """Reject names that are not safe as a single path segment."""
    if not isinstance(name, str) or not _NAME_RE.match(name) or name.endswith((".tmp", ".lock")):
        raise ValidationError(f"invalid {what}: {name!r}")
    return name


class RecordStore:
    """Durable keyed tables with optimistic CAS, plus append-only logs.

    Any number of processes may open a ``RecordStore`` on the same root.
    """

    def __init__(self, root: str | Path, lock_timeout: float = 10.0) -> None:
        """Initialize the store.

        Args:
            root: Coordination root directory (created lazily)
            lock_timeout: Seconds to wait for a record lock before failing
        """
        self._root = Path(root)
        self._lock_timeout = lock_timeout

    @property
    def root(self) -> Path:
        return self._root

    # =========================================================================
    # Keyed tables
    # =========================================================================

    def read(self, table: str, key: str) -> VersionedRecord | None:
        """Read a record and the version it is at, or None if absent."""
        return self._load(self._record_path(table, key), key)

    def write(
        self,
        table: str,
        key: str,
        data: dict[str, Any],
        expected_version: int | None = None,
    ) -> VersionedRecord:
        """Compare-and-swap write.

        Args:
            table: Table name
            key: Record key
            data: New payload (replaces the stored one entirely)
            expected_version: None to create (the key must not exist), or
                the version the caller read (the stored version must match)

        Returns:
            The record as written, with its new version

        Raises:
            RecordExists: Creating a key that already exists
            StaleVersion: Stored version differs from expected_version, or
                the record was deleted since it was read
        """
        path = self._record_path(table, key)
        path.parent.mkdir(parents=True, exist_ok=True)

        with self._lock(table, key):
            current = self._load(path, key)
            if expected_version is None:
                if current is not None:
                    raise RecordExists(f"{table}/{key} already exists")
                version = 1
            else:
                if current is None:
                    raise StaleVersion(f"{table}/{key} was removed (expected v{expected_version})")
                if current.version != expected_version:
                    raise StaleVersion(
                        f"{table}/{key} is at v{current.version}, expected v{expected_version}"
                    )
                version = expected_version + 1
            self._publish(path, {"version": version, "data": data})

        log.log(TRACE, "wrote %s/%s v%d", table, key, version)
        return VersionedRecord(key=key, version=version, data=data)

    def delete(self, table: str, key: str, expected_version: int | None = None) -> bool:
        """Remove a record.

        Args:
            table: Table name
            key: Record key
            expected_version: If given, only delete when the stored version matches

        Returns:
            True if a record was removed, False if it did not exist
        """
        path = self._record_path(table, key)
        if not path.parent.exists():
            return False

        with self._lock(table, key):
            current = self._load(path, key)
            if current is None:
                return False
            if expected_version is not None and current.version != expected_version:
                raise StaleVersion(
                    f"{table}/{key} is at v{current.version}, expected v{expected_version}"
                )
            path.unlink()

        log.log(TRACE, "deleted %s/%s", table, key)
        return True

    def scan(self, table: str) -> list[VersionedRecord]:
        """Read every record in a table, ordered by key."""
        table_dir = self._root / validate_name(table, "table name")
        if not table_dir.is_dir():
            return []

        records: list[VersionedRecord] = []
        for path in sorted(table_dir.glob(f"*{RECORD_SUFFIX}")):
            if path.name.startswith("."):
                continue
            record = self._load(path, path.name[: -len(RECORD_SUFFIX)])
            # Deleted between glob and read
            if record is not None:
                records.append(record)
        return records

    # =========================================================================
    # Append-only logs
    # =========================================================================

    def append(self, log_name: str, name: str, data: dict[str, Any]) -> Path:
        """Publish a new immutable entry in a log.

        Entries are never rewritten, so no lock is taken: the entry is
        written to a temp file and hard-linked into place, which fails if
        the name is already taken.

        Args:
            log_name: Log path relative to the root, "/"-separated
            name: Unique entry name
            data: Entry payload

        Returns:
            Path of the published entry

        Raises:
            RecordExists: An entry with this name already exists
        """
        log_dir = self._log_dir(log_name)
        log_dir.mkdir(parents=True, exist_ok=True)
        path = log_dir / f"{validate_name(name, 'entry name')}{RECORD_SUFFIX}"

        temp_path = self._write_temp(path, data)
        try:
            os.link(temp_path, path)
        except FileExistsError as e:
            raise RecordExists(f"{log_name}/{name} already exists") from e
        finally:
            temp_path.unlink(missing_ok=True)

        log.log(TRACE, "appended %s/%s", log_name, name)
        return path

    def read_log(self, log_name: str) -> list[dict[str, Any]]:
        """Read every entry of a log, ordered by entry name."""
        log_dir = self._log_dir(log_name)
        if not log_dir.is_dir():
            return []

        entries: list[dict[str, Any]] = []
        for path in sorted(log_dir.glob(f"*{RECORD_SUFFIX}")):
            if path.name.startswith(".") or not path.is_file():
                continue
            data = self._read_yaml(path)
            if data is None:
                continue
            if not isinstance(data, dict):
                raise CorruptRecord(f"log entry {path} is not a mapping")
            entries.append(data)
        return entries

    def logs(self, prefix: str) -> list[str]:
        """List the sub-logs directly under ``prefix``."""
        base = self._log_dir(prefix)
        if not base.is_dir():
            return []
        return sorted(p.name for p in base.iterdir() if p.is_dir() and not p.name.startswith("."))

    # =========================================================================
    # Internals
    # =========================================================================

    def _record_path(self, table: str, key: str) -> Path:
        return self._root / validate_name(table, "table name") / f"{validate_name(key)}{RECORD_SUFFIX}"

    def _log_dir(self, log_name: str) -> Path:
        parts = [validate_name(part, "log name") for part in log_name.split("/")]
        return self._root.joinpath(*parts)

    @contextmanager
    def _lock(self, table: str, key: str) -> Iterator[None]:
        lock_dir = self._root / table / LOCK_DIR
        lock_dir.mkdir(parents=True, exist_ok=True)
        lock = FileLock(lock_dir / f"{key}.lock", timeout=self._lock_timeout)
        try:
            lock.acquire()
        except Timeout as e:
            raise StoreError(f"timed out waiting for lock on {table}/{key}") from e
        try:
            yield
        finally:
            lock.release()

    def _load(self, path: Path, key: str) -> VersionedRecord | None:
        raw = self._read_yaml(path)
        if raw is None:
            return None
        if (
            not isinstance(raw, dict)
            or not isinstance(raw.get("version"), int)
            or not isinstance(raw.get("data"), dict)
        ):
            raise CorruptRecord(f"record {path} is malformed")
        return VersionedRecord(key=key, version=raw["version"], data=raw["data"])

    def _read_yaml(self, path: Path) -> Any:
        try:
            with open(path, encoding="utf-8") as f:
                return yaml.safe_load(f)
        except FileNotFoundError:
            return None
        except yaml.YAMLError as e:
            raise CorruptRecord(f"invalid YAML in {path}: {e}") from e
        except OSError as e:
            raise StoreError(f"cannot read {path}: {e}") from e

    def _write_temp(self, path: Path, payload: dict[str, Any]) -> Path:
        temp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex[:12]}.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(payload, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise StoreError(f"cannot write {path}: {e}") from e
        return temp_path

    def _publish(self, path: Path, payload: dict[str, Any]) -> None:
        temp_path = self._write_temp(path, payload)
        try:
            os.replace(temp_path, path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise StoreError(f"cannot publish {path}: {e}") from e
