from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from snapshot_export.core.config.export_config import ExportConfig
from snapshot_export.core.domain.errors import SnapshotExportError
from snapshot_export.export.orchestrator.planner_models import CopyUnit
from snapshot_export.export.runtime.context import build_export_context
from snapshot_export.export.runtime.copier import FileCopier
from snapshot_export.export.runtime.entrypoint import (
    RESULTS_DIR,
    configure_logging,
    load_json,
    write_json,
)
from snapshot_export.export.runtime.results import CopyResult

LOGGER = logging.getLogger(__name__)


def run_copy_unit(*, context_path: Path, results_dir: Path) -> CopyResult:
    """
    Execute one emitted copy unit and persist its result.

    The result JSON is written even when the unit fails, so the finalize
    step can tell a failed unit from one that never ran.
    """
    obj = load_json(context_path)

    config = ExportConfig.from_json_obj(obj["config"])
    unit = CopyUnit.from_json_obj(obj["unit"])

    try:
        ctx = build_export_context(config, export_id=obj["export_id"])
    except SnapshotExportError as exc:
        result = CopyResult(unit_id=unit.unit_id)
        result.mark_failed(exc)
    else:
        result = FileCopier.from_context(ctx).copy_unit(unit)

    write_json(results_dir / f"{unit.unit_id}.json", result.to_json_obj())

    LOGGER.info(
        "Copy unit result written",
        extra={
            "export_id": obj["export_id"],
            "unit_id": unit.unit_id,
            "status": result.status,
        },
    )

    return result


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser("snapshot-export-copy-unit")

    parser.add_argument("--context", type=Path, required=True, help="Emitted copy unit JSON.")
    parser.add_argument(
        "--results-dir",
        type=Path,
        default=None,
        help="Directory for the result JSON (default: <export dir>/results).",
    )

    args = parser.parse_args(argv)

    configure_logging()

    results_dir = args.results_dir
    if results_dir is None:
        # <export dir>/units/<unit>.json -> <export dir>/results
        results_dir = args.context.resolve().parent.parent / RESULTS_DIR

    result = run_copy_unit(context_path=args.context, results_dir=results_dir)

    return 0 if result.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
