"""
Snapshot export orchestration.

Drives one export through its lifecycle:

    planning -> copying -> assembling -> (verifying) -> done
                                   any state -> failed

Every transition is checked against ``core.domain.export_state`` and
emitted on the context's event bus. Nothing is retried: a failed export
is re-run from the start (already copied identical files are skipped).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from snapshot_export.core.domain import export_state
from snapshot_export.core.domain.errors import (
    ExpiredSnapshotError,
    PlanningError,
    SnapshotExportError,
    TargetAlreadyExistsError,
    VerificationError,
)
from snapshot_export.core.events.events import (
    CopyUnitCompletedEvent,
    ExportStateTransitionEvent,
)
from snapshot_export.export.io.manifest_io import read_snapshot
from snapshot_export.export.orchestrator.planner import plan_export
from snapshot_export.export.runtime.assembler import SnapshotAssembler
from snapshot_export.export.runtime.context import build_export_context
from snapshot_export.export.runtime.copier import FileCopier
from snapshot_export.export.runtime.results import ExportReport
from snapshot_export.export.runtime.task_runners import ThreadPoolTaskRunner
from snapshot_export.export.runtime.verifier import SnapshotVerifier

if TYPE_CHECKING:
    from snapshot_export.core.config.export_config import ExportConfig
    from snapshot_export.core.domain.manifest import SnapshotManifest
    from snapshot_export.core.events.event_bus import EventBus
    from snapshot_export.core.ports.task_runner import TaskRunner
    from snapshot_export.export.io.registry import StorageRegistry
    from snapshot_export.export.orchestrator.planner_models import ExportPlan
    from snapshot_export.export.runtime.context import ExportContext
    from snapshot_export.export.runtime.results import CopyResult

LOGGER = logging.getLogger(__name__)


class SnapshotExporter:
    """
    Runs one snapshot export.

    ``resume`` is used when copy units were executed by an external runner:
    preflight checks on the target are skipped because the units already
    wrote into it.
    """

    def __init__(
        self,
        ctx: ExportContext,
        runner: TaskRunner | None = None,
        *,
        resume: bool = False,
    ) -> None:
        self._ctx = ctx
        self._runner = runner or ThreadPoolTaskRunner(ctx.config.workers)
        self._resume = resume
        self._copier = FileCopier.from_context(ctx)
        self._assembler = SnapshotAssembler()
        self._state: str | None = None

    @property
    def state(self) -> str | None:
        return self._state

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def prepare(self) -> SnapshotManifest:
        """
        Read the source manifest and run the read-only preflight checks.

        Nothing is written or deleted; see ``clear_target``.
        """
        ctx = self._ctx
        source_dir = ctx.source_snapshot_dir

        if not ctx.source.exists(source_dir):
            raise PlanningError(
                f"Snapshot {ctx.snapshot_name} not found in {ctx.source_uri}"
            )

        manifest = read_snapshot(ctx.source, source_dir)
        descriptor = manifest.descriptor

        if descriptor.is_expired(ctx.clock()):
            raise ExpiredSnapshotError(
                f"Snapshot {ctx.snapshot_name} is expired "
                f"(ttl={descriptor.ttl}s, created={descriptor.creation_time})"
            )

        if not self._resume:
            self._check_target()

        if ctx.config.source_verify:
            SnapshotVerifier(ctx.source, ctx.source_root).verify(
                ctx.snapshot_name,
                include_live=True,
            )

        return manifest

    def plan(self) -> tuple[SnapshotManifest, ExportPlan]:
        manifest = self.prepare()
        return manifest, plan_export(ctx=self._ctx, manifest=manifest)

    def _check_target(self) -> None:
        ctx = self._ctx
        target = ctx.target

        if ctx.config.overwrite:
            return

        if target.exists(ctx.target_snapshot_dir):
            raise TargetAlreadyExistsError(
                f"Target snapshot {ctx.target_name} already exists in {ctx.target_uri}"
            )

        if not ctx.config.skip_tmp and target.exists(ctx.staging_snapshot_dir):
            raise TargetAlreadyExistsError(
                f"An export of {ctx.target_name} is already in progress "
                f"({ctx.staging_snapshot_dir})"
            )

    def clear_target(self) -> None:
        """
        Remove what an overwrite replaces: the published snapshot when
        staging is skipped, otherwise a stale staging directory.
        """
        ctx = self._ctx
        target = ctx.target
        config = ctx.config

        if not config.overwrite:
            return

        # Without staging the old snapshot is overwritten in place.
        if config.skip_tmp:
            if target.exists(ctx.target_snapshot_dir):
                LOGGER.warning(
                    "Removing published target snapshot",
                    extra={**ctx.describe(), "target_dir": ctx.target_snapshot_dir},
                )
                target.delete(ctx.target_snapshot_dir, recursive=True)
            return

        if target.exists(ctx.staging_snapshot_dir):
            LOGGER.warning(
                "Removing stale export staging directory",
                extra={**ctx.describe(), "staging_dir": ctx.staging_snapshot_dir},
            )
            target.delete(ctx.staging_snapshot_dir, recursive=True)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> ExportReport:
        ctx = self._ctx
        report = ExportReport(export_id=ctx.export_id, state=export_state.PLANNING)

        self._transition(export_state.PLANNING)
        LOGGER.info("Export started", extra=ctx.describe())

        try:
            manifest, plan = self.plan()
            report.plan = plan

            if not self._resume:
                self.clear_target()

            self._transition(export_state.COPYING)
            results = self._runner.submit(plan.units, self._copier.copy_unit)
            report.results = results
            self._emit_unit_results(results)

            failed = report.failed_units
            if failed:
                first = failed[0]
                report.error_type = first.error_type
                report.error = (
                    f"{len(failed)} of {len(results)} copy units failed; "
                    f"first: {first.unit_id}: {first.error}"
                )
                LOGGER.error(
                    "Export copy failed",
                    extra={
                        **ctx.describe(),
                        "failed_units": [result.unit_id for result in failed],
                    },
                )
                self._transition(export_state.FAILED, reason=report.error)
                report.state = self._state
                return report

            self._transition(export_state.ASSEMBLING)
            descriptor = self._assembler.assemble(
                ctx=ctx,
                manifest=manifest,
                results=results,
            )

            if ctx.config.target_verify:
                self._transition(export_state.VERIFYING)
                store_files = SnapshotVerifier(ctx.target, ctx.target_root).verify_store_files(
                    ctx.target_name,
                    expected_table=manifest.descriptor.table,
                    expected_ttl=descriptor.ttl,
                )
                if store_files != plan.store_files:
                    raise VerificationError(
                        f"Target references {len(store_files)} data files, "
                        f"expected {len(plan.store_files)}"
                    )
                report.store_files = store_files
                report.files = {key[3] for key in store_files}

            self._transition(export_state.DONE)

        except (SnapshotExportError, OSError) as exc:
            LOGGER.error(
                "Export failed",
                extra={
                    **ctx.describe(),
                    "state": self._state,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            report.error_type = type(exc).__name__
            report.error = str(exc)
            self._transition(export_state.FAILED, reason=str(exc))

        report.state = self._state

        LOGGER.info(
            "Export finished",
            extra={
                **ctx.describe(),
                "state": report.state,
                "bytes_copied": report.bytes_copied,
                "files_copied": report.files_copied,
            },
        )

        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, next_state: str, *, reason: str | None = None) -> None:
        prev_state = self._state

        if not export_state.is_valid_transition(prev_state, next_state):
            raise RuntimeError(f"Invalid export transition {prev_state} -> {next_state}")

        self._state = next_state
        self._ctx.event_bus.emit(
            ExportStateTransitionEvent(
                ts_ms=self._ctx.clock(),
                export_id=self._ctx.export_id,
                prev_state=prev_state,
                next_state=next_state,
                reason=reason,
            )
        )

    def _emit_unit_results(self, results: list[CopyResult]) -> None:
        for result in results:
            self._ctx.event_bus.emit(
                CopyUnitCompletedEvent(
                    ts_ms=self._ctx.clock(),
                    export_id=self._ctx.export_id,
                    unit_id=result.unit_id,
                    status=result.status,
                    files_copied=result.files_copied,
                    files_skipped=result.files_skipped,
                    bytes_copied=result.bytes_copied,
                    error=result.error,
                )
            )


def export_snapshot(
    config: ExportConfig,
    *,
    registry: StorageRegistry | None = None,
    runner: TaskRunner | None = None,
    event_bus: EventBus | None = None,
    clock: Callable[[], int] | None = None,
) -> ExportReport:
    """Build a context for ``config`` and run the export in-process."""
    try:
        ctx = build_export_context(
            config,
            registry=registry,
            event_bus=event_bus,
            clock=clock,
        )
    except PlanningError as exc:
        LOGGER.error("Export could not start", extra={"error": str(exc)})
        return ExportReport(
            export_id="",
            state=export_state.FAILED,
            error_type=type(exc).__name__,
            error=str(exc),
        )

    return SnapshotExporter(ctx, runner).run()
