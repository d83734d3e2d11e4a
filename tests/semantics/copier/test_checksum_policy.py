"""
Semantic test: checksum verification within and across storage schemes.

Invariant:
When both sides report the same checksum algorithm, any corruption is a
ChecksumMismatchError. When the algorithms differ the checksums are
incomparable: the strict policy fails the copy, the advisory policy logs
and records the pair and lets the copy proceed.
"""

from __future__ import annotations

import logging

import pytest

from snapshot_export.core.config.export_config import ExportConfig
from snapshot_export.core.domain.errors import ChecksumMismatchError
from snapshot_export.export.io.local_storage import LocalStorage
from snapshot_export.export.io.memory_storage import MemoryStorage
from snapshot_export.export.orchestrator.planner_models import CopyTask, CopyUnit
from snapshot_export.export.runtime.copier import FileCopier

SOURCE = "/hbase/data/default/t1/aaa111/cf/0a0a"
PAYLOAD = b"snapshot bytes " * 100


class CorruptingStorage(MemoryStorage):
    """Flips the first byte of every staged write."""

    def _store(self, path: str, data: bytes) -> None:
        if path.endswith("._COPYING_") and data:
            data = bytes([data[0] ^ 0xFF]) + data[1:]
        super()._store(path, data)


def _config(**overrides) -> ExportConfig:
    options = {"snapshot": "snap1", "copy_to": "memory://dst/backup"}
    options.update(overrides)
    return ExportConfig(**options)


@pytest.fixture
def source() -> MemoryStorage:
    storage = MemoryStorage()
    storage.write_bytes(SOURCE, PAYLOAD)
    return storage


def _task(source: MemoryStorage, target_path: str) -> CopyTask:
    return CopyTask(source_path=SOURCE, target_path=target_path, size=source.length(SOURCE))


def test_same_scheme_corruption_is_detected(source) -> None:
    copier = FileCopier(source, CorruptingStorage(), _config())

    with pytest.raises(ChecksumMismatchError, match="crc32"):
        copier.copy(_task(source, "/backup/f"))


def test_same_scheme_corruption_passes_without_verification(source) -> None:
    copier = FileCopier(source, CorruptingStorage(), _config(checksum_verify=False))

    outcome = copier.copy(_task(source, "/backup/f"))

    assert outcome.checksum_mismatch is None


def test_cross_scheme_strict_policy_fails(source, tmp_path) -> None:
    copier = FileCopier(source, LocalStorage(), _config())

    with pytest.raises(ChecksumMismatchError, match="Incomparable"):
        copier.copy(_task(source, str(tmp_path / "f")))


def test_cross_scheme_advisory_policy_proceeds(source, tmp_path, caplog) -> None:
    target_path = str(tmp_path / "f")
    copier = FileCopier(source, LocalStorage(), _config(cross_scheme_checksum="advisory"))

    with caplog.at_level(logging.WARNING):
        outcome = copier.copy(_task(source, target_path))

    assert outcome.checksum_mismatch is not None
    assert "crc32" in outcome.checksum_mismatch and "md5" in outcome.checksum_mismatch
    assert (tmp_path / "f._COPYING_").read_bytes() == PAYLOAD
    assert any("Incomparable checksums" in record.getMessage() for record in caplog.records)


def test_advisory_mismatches_are_recorded_in_unit_result(source, tmp_path) -> None:
    copier = FileCopier(source, LocalStorage(), _config(cross_scheme_checksum="advisory"))
    unit = CopyUnit(unit_id="data_0000", kind="data", tasks=(_task(source, str(tmp_path / "f")),))

    result = copier.copy_unit(unit)

    assert result.succeeded
    assert len(result.checksum_mismatches) == 1


def test_cross_scheme_without_verification_has_no_policy_effect(source, tmp_path) -> None:
    copier = FileCopier(source, LocalStorage(), _config(checksum_verify=False))

    outcome = copier.copy(_task(source, str(tmp_path / "f")))

    assert outcome.checksum_mismatch is None
