"""
Planning model definitions.

This module contains immutable planning structures describing which
files an export copies and how they are grouped into copy units.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal

from snapshot_export.core.domain.layout import StoreFileKey

CopyUnitKind = Literal["snapshot", "data"]

SNAPSHOT_UNIT_ID = "snapshot"


@dataclass(frozen=True, slots=True)
class CopyTask:
    """
    One file to copy.

    ``expected_checksum`` is the source checksum value recorded at planning
    time, if any; the copier refuses a source that no longer matches it.
    """

    source_path: str
    target_path: str
    size: int
    expected_checksum: str | None = None


@dataclass(frozen=True, slots=True)
class CopyUnit:
    """
    A bounded group of copy tasks executed by one worker.
    """

    unit_id: str
    kind: CopyUnitKind
    tasks: tuple[CopyTask, ...]

    @property
    def file_count(self) -> int:
        return len(self.tasks)

    @property
    def estimated_bytes(self) -> int:
        return sum(task.size for task in self.tasks)

    def to_json_obj(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_json_obj(cls, data: dict[str, Any]) -> CopyUnit:
        return cls(
            unit_id=data["unit_id"],
            kind=data["kind"],
            tasks=tuple(CopyTask(**task) for task in data["tasks"]),
        )


@dataclass(frozen=True, slots=True)
class ExportPlan:
    """
    Execution plan for a snapshot export.

    ``store_files`` holds the distinct physical data files the plan copies,
    keyed by (table, region, family, file); a published target must
    reference exactly these. ``data_files`` is the set of their names, so
    same-named files in different regions collapse into one entry.
    """

    export_id: str
    snapshot_name: str
    target_name: str
    snapshot_unit: CopyUnit
    data_units: list[CopyUnit]
    data_files: frozenset[str]
    store_files: frozenset[StoreFileKey]

    @property
    def units(self) -> list[CopyUnit]:
        return [self.snapshot_unit, *self.data_units]

    @property
    def total_files(self) -> int:
        return sum(unit.file_count for unit in self.units)

    @property
    def total_bytes(self) -> int:
        return sum(unit.estimated_bytes for unit in self.units)
