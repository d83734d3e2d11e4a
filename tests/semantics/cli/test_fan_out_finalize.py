"""
Semantic test: fanned-out export.

Invariant:
Planning with --emit-dir, running every emitted unit independently and
then finalizing publishes the same snapshot an in-process export would.
Finalizing with a missing unit result fails and publishes nothing.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from snapshot_export.export.io.local_storage import LocalStorage
from snapshot_export.export.runtime import copy_unit_entrypoint, export_finalize_entrypoint
from snapshot_export.export.runtime.entrypoint import main as export_main
from snapshot_export.export.runtime.verifier import SnapshotVerifier


@pytest.fixture(autouse=True)
def _no_pushgateway(monkeypatch) -> None:
    monkeypatch.delenv("PROMETHEUS_PUSHGATEWAY_URL", raising=False)


def _emit(local_source, tmp_path) -> tuple[Path, Path, list[Path]]:
    for name in ("01", "02", "03"):
        local_source.data_file("aaa111", "cf", name)
    local_source.data_file("bbb222", "cf", "04")
    local_source.snapshot(
        "snap1",
        {"aaa111": {"cf": ["01", "02", "03"]}, "bbb222": {"cf": ["04"]}},
    )

    target = tmp_path / "target"
    export_dir = tmp_path / "export"

    code = export_main(
        [
            "--snapshot",
            "snap1",
            "--copy-from",
            f"file://{local_source.root}",
            "--copy-to",
            f"file://{target}",
            "--max-files-per-group",
            "2",
            "--emit-dir",
            str(export_dir),
        ]
    )
    assert code == 0

    index = [Path(p) for p in json.loads((export_dir / "index.json").read_text(encoding="utf-8"))]
    return target, export_dir, index


def test_emitted_units_then_finalize_publish_the_snapshot(local_source, tmp_path) -> None:
    target, export_dir, index = _emit(local_source, tmp_path)

    assert [p.name for p in index] == ["snapshot.json", "data_0000.json", "data_0001.json"]
    assert not (target / ".hbase-snapshot" / "snap1").exists()

    for unit_path in index:
        assert copy_unit_entrypoint.main(["--context", str(unit_path)]) == 0

    assert sorted(p.name for p in (export_dir / "results").iterdir()) == [
        "data_0000.json",
        "data_0001.json",
        "snapshot.json",
    ]

    assert export_finalize_entrypoint.main(["--export-dir", str(export_dir)]) == 0

    assert (export_dir / "_DONE").is_file()
    metadata = json.loads((export_dir / "export_metadata.json").read_text(encoding="utf-8"))
    assert metadata["lifecycle"]["status"] == "done"
    assert metadata["units"] == {"expected": 3, "reported": 3, "failed": 0}

    files = SnapshotVerifier(LocalStorage(), str(target)).verify("snap1")
    assert files == {"01", "02", "03", "04"}


def test_finalize_with_missing_unit_result_fails(local_source, tmp_path) -> None:
    target, export_dir, index = _emit(local_source, tmp_path)

    for unit_path in index:
        if unit_path.name != "data_0001.json":
            assert copy_unit_entrypoint.main(["--context", str(unit_path)]) == 0

    assert export_finalize_entrypoint.main(["--export-dir", str(export_dir)]) == 1

    assert not (export_dir / "_DONE").exists()
    metadata = json.loads((export_dir / "export_metadata.json").read_text(encoding="utf-8"))
    assert metadata["lifecycle"]["status"] == "failed"
    assert metadata["units"]["failed"] == 1
    assert not (target / ".hbase-snapshot" / "snap1").exists()


def test_failed_unit_writes_a_failed_result(local_source, tmp_path) -> None:
    _, export_dir, index = _emit(local_source, tmp_path)
    (Path(local_source.root) / "data" / "default" / "usertable" / "bbb222" / "cf" / "04").unlink()

    assert copy_unit_entrypoint.main(["--context", str(index[-1])]) == 1

    result = json.loads((export_dir / "results" / "data_0001.json").read_text(encoding="utf-8"))
    assert result["status"] == "failed"
    assert result["error_type"] == "SourceMissingError"
