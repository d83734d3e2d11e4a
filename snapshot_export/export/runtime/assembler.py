from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from snapshot_export.core.domain import layout
from snapshot_export.core.domain.errors import PlanningError, TargetAlreadyExistsError
from snapshot_export.core.domain.manifest import descriptor_for_target
from snapshot_export.core.events.events import SnapshotPublishedEvent
from snapshot_export.export.io.manifest_io import write_descriptor

if TYPE_CHECKING:
    from snapshot_export.core.domain.manifest import SnapshotDescriptor, SnapshotManifest
    from snapshot_export.export.runtime.context import ExportContext
    from snapshot_export.export.runtime.results import CopyResult

LOGGER = logging.getLogger(__name__)


class SnapshotAssembler:
    """
    Publishes an exported snapshot once every copy unit has finished.

    Responsibilities:
    - commit staged data files under their final names
    - write the target descriptor (renamed, TTL optionally reset)
    - move the staging snapshot directory to its final location

    This is the single writer of the target snapshot directory. It must
    only run after all copy units have completed successfully.
    """

    def assemble(
        self,
        *,
        ctx: ExportContext,
        manifest: SnapshotManifest,
        results: Sequence[CopyResult],
    ) -> SnapshotDescriptor:
        failed = [result.unit_id for result in results if not result.succeeded]
        if failed:
            raise PlanningError(
                f"Refusing to assemble {ctx.target_name}: failed units {failed}"
            )

        target = ctx.target

        # ------------------------------------------------------------------
        # 1. Commit staged files
        # ------------------------------------------------------------------

        committed = 0
        for result in results:
            for staging, final in result.staged:
                target.rename(staging, final)
                committed += 1

        # ------------------------------------------------------------------
        # 2. Target descriptor
        # ------------------------------------------------------------------

        descriptor = descriptor_for_target(
            manifest.descriptor,
            target_name=ctx.target_name,
            reset_ttl=ctx.config.reset_ttl,
            default_ttl=ctx.config.default_ttl,
        )
        write_descriptor(target, ctx.working_snapshot_dir, descriptor)

        # ------------------------------------------------------------------
        # 3. Publish
        # ------------------------------------------------------------------

        final_dir = ctx.target_snapshot_dir

        if not ctx.config.skip_tmp:
            if target.exists(final_dir):
                if not ctx.config.overwrite:
                    raise TargetAlreadyExistsError(
                        f"Target snapshot {ctx.target_name} already exists in {ctx.target_uri}"
                    )
                LOGGER.warning(
                    "Replacing existing target snapshot",
                    extra={**ctx.describe(), "target_dir": final_dir},
                )
                target.delete(final_dir, recursive=True)

            target.makedirs(layout.snapshots_root(ctx.target_root))
            target.rename(ctx.staging_snapshot_dir, final_dir)

        LOGGER.info(
            "Snapshot published",
            extra={
                **ctx.describe(),
                "target_dir": final_dir,
                "committed_files": committed,
                "ttl": descriptor.ttl,
            },
        )

        ctx.event_bus.emit(
            SnapshotPublishedEvent(
                ts_ms=ctx.clock(),
                export_id=ctx.export_id,
                snapshot_name=descriptor.name,
                target_dir=final_dir,
                ttl=descriptor.ttl,
            )
        )

        return descriptor
