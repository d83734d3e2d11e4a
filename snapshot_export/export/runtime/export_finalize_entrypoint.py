from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from snapshot_export.core.config.export_config import ExportConfig
from snapshot_export.core.domain import export_state
from snapshot_export.core.domain.errors import SnapshotExportError
from snapshot_export.core.events.event_bus import EventBus
from snapshot_export.core.events.sinks.sink_logging import LoggingEventSink
from snapshot_export.export.runtime.context import build_export_context
from snapshot_export.export.runtime.entrypoint import (
    EXPORT_CONTEXT_FILE,
    RESULTS_DIR,
    configure_logging,
    load_json,
    write_json,
)
from snapshot_export.export.runtime.exporter import SnapshotExporter
from snapshot_export.export.runtime.prometheus_metrics import publish_export_metrics
from snapshot_export.export.runtime.results import CopyResult, ExportReport
from snapshot_export.export.runtime.task_runners import PrecomputedTaskRunner

LOGGER = logging.getLogger(__name__)


class ExportFinalizer:
    """
    Finalizes a fanned-out export after all copy units have completed.

    Responsibilities:
    - collect the unit results written by ``snapshot-export-copy-unit``
    - assemble, publish and verify the target snapshot
    - write export_metadata.json and a _DONE marker into the export dir
    """

    def finalize(self, *, export_dir: Path) -> ExportReport:
        started_at = datetime.now(timezone.utc)

        obj = load_json(export_dir / EXPORT_CONTEXT_FILE)
        export_id: str = obj["export_id"]
        config = ExportConfig.from_json_obj(obj["config"])
        results = self._load_results(export_dir / RESULTS_DIR)

        event_bus = EventBus([LoggingEventSink(LOGGER)])
        try:
            try:
                ctx = build_export_context(config, event_bus=event_bus, export_id=export_id)
            except SnapshotExportError as exc:
                report = ExportReport(
                    export_id=export_id,
                    state=export_state.FAILED,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
            else:
                exporter = SnapshotExporter(
                    ctx,
                    PrecomputedTaskRunner(results),
                    resume=True,
                )
                report = exporter.run()
        finally:
            event_bus.close()

        finished_at = datetime.now(timezone.utc)
        duration_seconds = (finished_at - started_at).total_seconds()

        metadata = {
            "schema_version": "1.0",
            "identity": {
                "export_id": export_id,
                "snapshot": config.snapshot,
                "target": config.target_name,
                "copy_to": config.copy_to,
            },
            "lifecycle": {
                "status": report.state,
                "started_at": started_at.isoformat(),
                "finished_at": finished_at.isoformat(),
                "duration_seconds": duration_seconds,
                "error": report.error,
            },
            "units": {
                "expected": len(obj.get("units", [])),
                "reported": len(results),
                "failed": len(report.failed_units),
            },
            "bytes_copied": report.bytes_copied,
            "files_copied": report.files_copied,
        }

        write_json(export_dir / "export_metadata.json", metadata)

        if report.succeeded:
            (export_dir / "_DONE").write_text(finished_at.isoformat(), encoding="utf-8")

        # --- Prometheus metrics (side-effect only) ---
        publish_export_metrics(
            report,
            snapshot_name=config.snapshot,
            duration_seconds=duration_seconds,
        )

        return report

    @staticmethod
    def _load_results(results_dir: Path) -> dict[str, CopyResult]:
        results: dict[str, CopyResult] = {}

        if not results_dir.is_dir():
            return results

        for path in sorted(results_dir.glob("*.json")):
            result = CopyResult.from_json_obj(load_json(path))
            results[result.unit_id] = result

        return results


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser("snapshot-export-finalize")

    parser.add_argument(
        "--export-dir",
        type=Path,
        required=True,
        help="Directory previously passed to snapshot-export --emit-dir.",
    )

    args = parser.parse_args(argv)

    configure_logging()

    report = ExportFinalizer().finalize(export_dir=args.export_dir)

    if report.error:
        print(f"Export {report.state}: {report.error}", file=sys.stderr)

    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
