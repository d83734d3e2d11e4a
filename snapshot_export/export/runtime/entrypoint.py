from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from snapshot_export.core.config.export_config import ExportConfig
from snapshot_export.core.domain.errors import SnapshotExportError
from snapshot_export.core.events.event_bus import EventBus
from snapshot_export.core.events.sinks.file_recorder import FileRecorderSink
from snapshot_export.core.events.sinks.sink_logging import LoggingEventSink
from snapshot_export.export.orchestrator.summary import (
    print_plan_summary,
    summarize_plan,
)
from snapshot_export.export.runtime.context import build_export_context
from snapshot_export.export.runtime.exporter import SnapshotExporter
from snapshot_export.export.runtime.prometheus_metrics import publish_export_metrics
from snapshot_export.export.runtime.task_runners import ThreadPoolTaskRunner

if TYPE_CHECKING:
    from snapshot_export.export.orchestrator.planner_models import ExportPlan
    from snapshot_export.export.runtime.context import ExportContext

LOGGER = logging.getLogger(__name__)

EXPORT_CONTEXT_FILE = "export_context.json"
UNITS_DIR = "units"
RESULTS_DIR = "results"
INDEX_FILE = "index.json"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def load_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, obj: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2, sort_keys=True), encoding="utf-8")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snapshot-export",
        description="Export a table snapshot to another storage namespace.",
    )

    parser.add_argument("--snapshot", type=str, default=None, help="Snapshot to export.")
    parser.add_argument(
        "--target",
        type=str,
        default=None,
        help="Name of the exported snapshot (default: source name).",
    )
    parser.add_argument(
        "--copy-to",
        dest="copy_to",
        type=str,
        default=None,
        help="Target root URI, e.g. oci://backups/hbase or file:///mnt/backup.",
    )
    parser.add_argument(
        "--copy-from",
        dest="copy_from",
        type=str,
        default=None,
        help="Source root URI (default: $SNAPSHOT_EXPORT_ROOT_DIR).",
    )

    parser.add_argument("--overwrite", action="store_true", default=None)
    parser.add_argument(
        "--reset-ttl",
        dest="reset_ttl",
        action="store_true",
        default=None,
        help="Give the exported snapshot the default TTL instead of the source TTL.",
    )
    parser.add_argument("--no-checksum-verify", dest="checksum_verify", action="store_false", default=None)
    parser.add_argument("--no-source-verify", dest="source_verify", action="store_false", default=None)
    parser.add_argument("--no-target-verify", dest="target_verify", action="store_false", default=None)
    parser.add_argument(
        "--cross-scheme-checksum",
        dest="cross_scheme_checksum",
        choices=["strict", "advisory"],
        default=None,
        help="What to do when source and target checksums are incomparable.",
    )

    parser.add_argument("--buffer-size", dest="buffer_size", type=int, default=None)
    parser.add_argument("--max-files-per-group", dest="max_files_per_group", type=int, default=None)
    parser.add_argument("--workers", type=int, default=None)
    parser.add_argument(
        "--bandwidth-mb",
        dest="bandwidth_mb",
        type=int,
        default=None,
        help="Bandwidth limit per worker in MiB/s (0 = unlimited).",
    )
    parser.add_argument(
        "--skip-tmp",
        dest="skip_tmp",
        action="store_true",
        default=None,
        help="Write directly into the final snapshot directory.",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON file with export options; command-line flags take precedence.",
    )
    parser.add_argument(
        "--plan",
        action="store_true",
        help="Plan the export and print a summary. Read-only: nothing is copied or removed.",
    )
    parser.add_argument(
        "--emit-dir",
        dest="emit_dir",
        type=Path,
        default=None,
        help="Plan the export and emit one JSON context per copy unit for an external runner.",
    )
    parser.add_argument(
        "--events-file",
        dest="events_file",
        type=Path,
        default=None,
        help="Record export events as JSON lines.",
    )

    return parser


_CONFIG_KEYS = tuple(ExportConfig.model_fields)


def load_config(args: argparse.Namespace) -> ExportConfig:
    """Merge the optional JSON config file with command-line options."""
    raw: dict[str, Any] = {}

    if args.config is not None:
        raw.update(load_json(args.config))

    for key in _CONFIG_KEYS:
        value = getattr(args, key, None)
        if value is not None:
            raw[key] = value

    return ExportConfig.from_json_obj(raw)


def emit_export(*, ctx: ExportContext, plan: ExportPlan, out_dir: Path) -> list[Path]:
    """
    Emit one copy-unit context JSON per unit, plus the export context.

    These JSON files are what an external runner consumes: one pod runs
    ``snapshot-export-copy-unit`` per unit, then a single pod runs
    ``snapshot-export-finalize`` on ``out_dir``.
    """
    config = ctx.config.model_copy(update={"copy_from": ctx.source_uri})
    config_obj = config.model_dump(mode="json")

    write_json(
        out_dir / EXPORT_CONTEXT_FILE,
        {
            "export_id": ctx.export_id,
            "config": config_obj,
            "units": [unit.unit_id for unit in plan.units],
        },
    )

    index: list[Path] = []
    for unit in plan.units:
        out_path = out_dir / UNITS_DIR / f"{unit.unit_id}.json"
        write_json(
            out_path,
            {
                "export_id": ctx.export_id,
                "config": config_obj,
                "unit": unit.to_json_obj(),
            },
        )
        index.append(out_path)

    write_json(out_dir / INDEX_FILE, [str(path) for path in index])

    return index


def configure_logging() -> None:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging()

    # ------------------------------------------------------------------
    # Load config
    # ------------------------------------------------------------------

    try:
        config = load_config(args)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        print(f"Error: invalid export options: {exc}", file=sys.stderr)
        return 1

    event_bus = EventBus([LoggingEventSink(LOGGER)])
    if args.events_file is not None:
        event_bus.register(FileRecorderSink(args.events_file))

    try:
        try:
            ctx = build_export_context(config, event_bus=event_bus)
        except SnapshotExportError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

        exporter = SnapshotExporter(ctx, ThreadPoolTaskRunner(config.workers))

        # --------------------------------------------------------------
        # Plan only / fan-out preparation
        # --------------------------------------------------------------

        if args.plan or args.emit_dir is not None:
            try:
                _, plan = exporter.plan()
                if args.emit_dir is not None:
                    exporter.clear_target()
            except (SnapshotExportError, OSError) as exc:
                LOGGER.error("Export planning failed", extra={"error": str(exc)})
                print(f"Error: {exc}", file=sys.stderr)
                return 1

            print_plan_summary(
                summarize_plan(plan=plan, max_files_per_group=config.max_files_per_group)
            )

            if args.emit_dir is not None:
                emit_export(ctx=ctx, plan=plan, out_dir=args.emit_dir)
                print()
                print(f"Emitted copy unit contexts to: {args.emit_dir}")
                print("Each JSON represents exactly one copy unit (one Pod).")

            return 0

        # --------------------------------------------------------------
        # In-process export
        # --------------------------------------------------------------

        started = time.monotonic()
        report = exporter.run()

        publish_export_metrics(
            report,
            snapshot_name=config.snapshot,
            duration_seconds=time.monotonic() - started,
        )

        if report.error:
            print(f"Export {report.state}: {report.error}", file=sys.stderr)

        return report.exit_code

    finally:
        event_bus.close()


if __name__ == "__main__":
    sys.exit(main())
