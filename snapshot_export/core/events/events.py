"""
Export event models.

These events represent immutable facts observed during an export.
They are consumed by loggers, recorders, and monitoring pipelines.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ExportStateTransitionEvent:
    ts_ms: int
    export_id: str
    prev_state: str | None
    next_state: str
    reason: str | None = None


@dataclass(slots=True)
class CopyUnitCompletedEvent:
    ts_ms: int
    export_id: str
    unit_id: str
    status: str

    files_copied: int
    files_skipped: int
    bytes_copied: int

    error: str | None = None


@dataclass(slots=True)
class SnapshotPublishedEvent:
    ts_ms: int
    export_id: str
    snapshot_name: str
    target_dir: str
    ttl: int


ExportEvent = ExportStateTransitionEvent | CopyUnitCompletedEvent | SnapshotPublishedEvent
