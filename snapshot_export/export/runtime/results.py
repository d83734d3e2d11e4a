"""
Copy and export outcome models.

A CopyResult is produced by exactly one copy unit and may travel across a
process boundary (external runners write it as JSON). An ExportReport is
the final outcome of one export invocation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from snapshot_export.core.domain import export_state

if TYPE_CHECKING:
    from snapshot_export.core.domain.layout import StoreFileKey
    from snapshot_export.export.orchestrator.planner_models import ExportPlan

CopyStatus = Literal["success", "failed"]


@dataclass(slots=True)
class CopyResult:
    unit_id: str
    status: CopyStatus = "success"

    bytes_copied: int = 0
    files_copied: int = 0
    files_skipped: int = 0

    # Incomparable or mismatching checksums that did not fail the copy.
    checksum_mismatches: list[str] = field(default_factory=list)

    # (staging path, final path) pairs the assembler still has to commit.
    staged: list[tuple[str, str]] = field(default_factory=list)

    error_type: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    def mark_failed(self, exc: BaseException) -> None:
        self.status = "failed"
        self.error_type = type(exc).__name__
        self.error = str(exc)

    def to_json_obj(self) -> dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "status": self.status,
            "bytes_copied": self.bytes_copied,
            "files_copied": self.files_copied,
            "files_skipped": self.files_skipped,
            "checksum_mismatches": list(self.checksum_mismatches),
            "staged": [list(pair) for pair in self.staged],
            "error_type": self.error_type,
            "error": self.error,
        }

    @classmethod
    def from_json_obj(cls, data: dict[str, Any]) -> CopyResult:
        return cls(
            unit_id=data["unit_id"],
            status=data["status"],
            bytes_copied=data.get("bytes_copied", 0),
            files_copied=data.get("files_copied", 0),
            files_skipped=data.get("files_skipped", 0),
            checksum_mismatches=list(data.get("checksum_mismatches", [])),
            staged=[(staging, final) for staging, final in data.get("staged", [])],
            error_type=data.get("error_type"),
            error=data.get("error"),
        )


@dataclass(slots=True)
class ExportReport:
    export_id: str
    state: str
    plan: ExportPlan | None = None
    results: list[CopyResult] = field(default_factory=list)

    # Physical data files found by target verification, and their names.
    store_files: set[StoreFileKey] = field(default_factory=set)
    files: set[str] = field(default_factory=set)

    error_type: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == export_state.DONE

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    @property
    def failed_units(self) -> list[CopyResult]:
        return [result for result in self.results if not result.succeeded]

    @property
    def bytes_copied(self) -> int:
        return sum(result.bytes_copied for result in self.results)

    @property
    def files_copied(self) -> int:
        return sum(result.files_copied for result in self.results)
