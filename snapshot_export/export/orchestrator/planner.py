from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from snapshot_export.core.domain import layout
from snapshot_export.core.domain.errors import SourceMissingError
from snapshot_export.core.domain.references import resolve_store_file
from snapshot_export.export.orchestrator.planner_models import (
    SNAPSHOT_UNIT_ID,
    CopyTask,
    CopyUnit,
    ExportPlan,
)
from snapshot_export.export.orchestrator.segmenter import group_tasks

if TYPE_CHECKING:
    from snapshot_export.core.domain.manifest import SnapshotManifest
    from snapshot_export.core.ports.storage import Storage
    from snapshot_export.export.runtime.context import ExportContext

LOGGER = logging.getLogger(__name__)


def plan_export(
    *,
    ctx: ExportContext,
    manifest: SnapshotManifest,
    max_files_per_group: int | None = None,
) -> ExportPlan:
    """
    Build a deterministic copy plan for a snapshot export.

    This function performs *planning only*.
    It reads file lengths (and checksums) from the source but never writes
    anywhere.

    Responsibilities:
    - list the snapshot's own directory tree (descriptor, region manifests,
      opaque extras) into the snapshot unit
    - resolve split/merge references to their physical files
    - deduplicate physical files so each is copied exactly once
    - record each data file's source checksum when checksums are verified,
      so a copy refuses a file that changed after planning
    - group data files into bounded copy units

    Parameters
    ----------
    ctx:
        Context of the export being planned.

    manifest:
        Parsed source manifest.

    max_files_per_group:
        Maximum number of files per data unit. Defaults to the configured
        value.

    Returns
    -------
    ExportPlan
        Ordered plan: region, then family, then file manifest order.
    """

    if max_files_per_group is None:
        max_files_per_group = ctx.config.max_files_per_group

    # ------------------------------------------------------------------
    # 1. Snapshot directory tree
    # ------------------------------------------------------------------

    snapshot_unit = CopyUnit(
        unit_id=SNAPSHOT_UNIT_ID,
        kind="snapshot",
        tasks=tuple(_snapshot_tree_tasks(ctx)),
    )

    # ------------------------------------------------------------------
    # 2. Resolve and deduplicate physical data files
    # ------------------------------------------------------------------

    table = manifest.descriptor.table
    seen: set[layout.StoreFileKey] = set()
    data_files: set[str] = set()
    tasks: list[CopyTask] = []

    for region in manifest.regions:
        for family, store_file in region.iter_store_files():
            resolved = resolve_store_file(store_file, region.encoded_name)
            file_table = resolved.table or table

            key = (file_table, resolved.region, family, resolved.file)
            if key in seen:
                continue
            seen.add(key)
            data_files.add(resolved.file)

            source_path = _locate_source(
                ctx.source,
                ctx.source_root,
                file_table,
                resolved.region,
                family,
                resolved.file,
            )

            tasks.append(
                CopyTask(
                    source_path=source_path,
                    target_path=layout.archive_store_file_path(
                        ctx.target_root,
                        file_table,
                        resolved.region,
                        family,
                        resolved.file,
                    ),
                    size=ctx.source.length(source_path),
                    expected_checksum=_planned_checksum(ctx, source_path),
                )
            )

    # ------------------------------------------------------------------
    # 3. Group into copy units
    # ------------------------------------------------------------------

    data_units = [
        CopyUnit(unit_id=f"data_{index:04d}", kind="data", tasks=tuple(group))
        for index, group in enumerate(group_tasks(tasks, max_files_per_group))
    ]

    plan = ExportPlan(
        export_id=ctx.export_id,
        snapshot_name=ctx.snapshot_name,
        target_name=ctx.target_name,
        snapshot_unit=snapshot_unit,
        data_units=data_units,
        data_files=frozenset(data_files),
        store_files=frozenset(seen),
    )

    LOGGER.info(
        "Export planned",
        extra={
            **ctx.describe(),
            "data_units": len(data_units),
            "data_files": len(tasks),
            "total_bytes": plan.total_bytes,
        },
    )

    return plan


def _planned_checksum(ctx: ExportContext, source_path: str) -> str | None:
    if not ctx.config.checksum_verify:
        return None
    checksum = ctx.source.checksum(source_path)
    return checksum.value if checksum is not None else None


def _snapshot_tree_tasks(ctx: ExportContext) -> list[CopyTask]:
    source_dir = ctx.source_snapshot_dir
    tasks: list[CopyTask] = []

    for path in ctx.source.list_files(source_dir):
        relative = layout.relative_to(path, source_dir)
        tasks.append(
            CopyTask(
                source_path=path,
                target_path=layout.join(ctx.working_snapshot_dir, relative),
                size=ctx.source.length(path),
            )
        )

    return tasks


def _locate_source(
    storage: Storage,
    root: str,
    table: str,
    region: str,
    family: str,
    file_name: str,
) -> str:
    """
    Find where a store file currently lives.

    A file still owned by its region sits in the live table directory;
    once compacted away or its region is gone it has been archived.
    """
    candidates = (
        layout.live_store_file_path(root, table, region, family, file_name),
        layout.archive_store_file_path(root, table, region, family, file_name),
    )

    for candidate in candidates:
        if storage.exists(candidate):
            return candidate

    raise SourceMissingError(
        f"Store file {table}/{region}/{family}/{file_name} not found in "
        f"{' or '.join(candidates)}"
    )
