"""Durable record store shared by every process of a colony.

Keyed tables with compare-and-swap writes, and append-only logs, laid out
as YAML files under one coordination root.
"""

from agentcolony.store.records import RecordStore, VersionedRecord, validate_name

__all__ = [
    "RecordStore",
    "VersionedRecord",
    "validate_name",
]
