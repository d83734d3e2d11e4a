from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from snapshot_export.export.orchestrator.planner_models import ExportPlan


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class UnitSummary:
    unit_id: str
    kind: str
    file_count: int
    estimated_bytes: int


@dataclass(frozen=True, slots=True)
class ExportPlanSummary:
    export_id: str
    snapshot_name: str
    target_name: str
    unit_count: int
    data_file_count: int
    total_bytes: int
    max_files_per_group: int
    units: List[UnitSummary]
    warnings: List[str]


# ---------------------------------------------------------------------------
# Summary builder
# ---------------------------------------------------------------------------

def summarize_plan(
    *,
    plan: ExportPlan,
    max_files_per_group: int,
) -> ExportPlanSummary:
    warnings: list[str] = []
    units: list[UnitSummary] = []

    if not plan.data_units:
        warnings.append("Snapshot references no data files")

    if len(plan.data_units) > 1000:
        warnings.append(
            f"High number of copy units ({len(plan.data_units)}); "
            "consider a larger max_files_per_group"
        )

    if plan.data_units:
        largest = max(unit.estimated_bytes for unit in plan.data_units)
        smallest = min(unit.estimated_bytes for unit in plan.data_units)
        if smallest > 0 and largest / smallest > 10:
            warnings.append(
                f"Copy units are skewed ({largest / smallest:.0f}x between "
                "largest and smallest)"
            )

    for unit in plan.units:
        units.append(
            UnitSummary(
                unit_id=unit.unit_id,
                kind=unit.kind,
                file_count=unit.file_count,
                estimated_bytes=unit.estimated_bytes,
            )
        )

    return ExportPlanSummary(
        export_id=plan.export_id,
        snapshot_name=plan.snapshot_name,
        target_name=plan.target_name,
        unit_count=len(plan.units),
        data_file_count=sum(unit.file_count for unit in plan.data_units),
        total_bytes=plan.total_bytes,
        max_files_per_group=max_files_per_group,
        units=units,
        warnings=warnings,
    )


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def print_plan_summary(summary: ExportPlanSummary) -> None:
    total_mb = summary.total_bytes / 1024**2

    print(f"Export: {summary.export_id}")
    print(f"Snapshot: {summary.snapshot_name} -> {summary.target_name}")
    print(f"Copy units: {summary.unit_count}")
    print(f"Data files: {summary.data_file_count}")
    print(f"Total size: {total_mb:.2f} MB")
    print(f"Max files per group: {summary.max_files_per_group}")
    print()

    if summary.warnings:
        print("Warnings:")
        for w in summary.warnings:
            print(f"  - {w}")
        print()

    print("Units:")
    for u in summary.units:
        used_mb = u.estimated_bytes / 1024**2
        print(
            f"  - {u.unit_id} ({u.kind}): "
            f"{u.file_count} files | "
            f"{used_mb:.2f} MB"
        )
