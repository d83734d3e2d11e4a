"""
Semantic test: plan mode is read-only.

Invariant:
``--plan`` never deletes a published target snapshot or a staging
directory, even with ``--overwrite``; only a real export or a fan-out
emit clears what an overwrite replaces.
"""

from __future__ import annotations

import pytest

from snapshot_export.export.runtime.entrypoint import main


@pytest.fixture(autouse=True)
def _no_pushgateway(monkeypatch) -> None:
    monkeypatch.delenv("PROMETHEUS_PUSHGATEWAY_URL", raising=False)


def _snapshot(source) -> None:
    for name in ("01", "02"):
        source.data_file("aaa111", "cf", name)
    source.snapshot("snap1", {"aaa111": {"cf": ["01", "02"]}})


def _args(source, target, *extra: str) -> list[str]:
    return [
        "--snapshot",
        "snap1",
        "--copy-from",
        f"file://{source.root}",
        "--copy-to",
        f"file://{target}",
        *extra,
    ]


def _seed_staging(target):
    staging = target / ".hbase-snapshot" / ".tmp" / "snap1"
    staging.mkdir(parents=True)
    (staging / ".snapshotinfo").write_bytes(b"in progress")
    return staging


def test_plan_keeps_published_target_with_overwrite_and_skip_tmp(local_source, tmp_path) -> None:
    _snapshot(local_source)
    target = tmp_path / "target"
    assert main(_args(local_source, target)) == 0
    published = target / ".hbase-snapshot" / "snap1"

    assert main(_args(local_source, target, "--plan", "--overwrite", "--skip-tmp")) == 0

    assert (published / ".snapshotinfo").is_file()


def test_plan_keeps_staging_directory_with_overwrite(local_source, tmp_path) -> None:
    _snapshot(local_source)
    target = tmp_path / "target"
    staging = _seed_staging(target)

    assert main(_args(local_source, target, "--plan", "--overwrite")) == 0

    assert (staging / ".snapshotinfo").read_bytes() == b"in progress"


def test_plan_without_overwrite_reports_existing_target(local_source, tmp_path, capsys) -> None:
    _snapshot(local_source)
    target = tmp_path / "target"
    assert main(_args(local_source, target)) == 0

    assert main(_args(local_source, target, "--plan")) == 1

    assert "already exists" in capsys.readouterr().err
    assert (target / ".hbase-snapshot" / "snap1" / ".snapshotinfo").is_file()


def test_emit_with_overwrite_clears_stale_staging(local_source, tmp_path) -> None:
    _snapshot(local_source)
    target = tmp_path / "target"
    staging = _seed_staging(target)

    code = main(_args(local_source, target, "--overwrite", "--emit-dir", str(tmp_path / "emit")))

    assert code == 0
    assert not staging.exists()
    assert (tmp_path / "emit" / "index.json").is_file()
