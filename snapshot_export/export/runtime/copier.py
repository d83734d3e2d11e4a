"""
File copier.

Copies single files between two storage namespaces:

    source ──stream──▶ <final>._COPYING_ ──verify──▶ <final>

A file is only ever visible under its final name once its length and
(optionally) its checksum have been checked. Committing the staged file is
done inline when staging is skipped, otherwise by the assembler after all
copy units have finished.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from snapshot_export.core.domain import layout
from snapshot_export.core.domain.errors import (
    ChecksumMismatchError,
    SnapshotExportError,
    SourceMissingError,
)
from snapshot_export.export.runtime.results import CopyResult

if TYPE_CHECKING:
    from snapshot_export.core.config.export_config import ExportConfig
    from snapshot_export.core.ports.storage import FileChecksum, Storage
    from snapshot_export.export.orchestrator.planner_models import CopyTask, CopyUnit
    from snapshot_export.export.runtime.context import ExportContext

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FileCopyOutcome:
    task: CopyTask
    skipped: bool
    bytes_copied: int = 0

    # Present when the copy still has to be committed by the assembler.
    staged: tuple[str, str] | None = None

    # Description of an incomparable checksum pair tolerated by policy.
    checksum_mismatch: str | None = None


class _Throttle:
    """Paces a byte stream to a fixed rate (bytes per second)."""

    def __init__(
        self,
        rate: int,
        *,
        sleep: Callable[[float], None],
        monotonic: Callable[[], float],
    ) -> None:
        self._rate = rate
        self._sleep = sleep
        self._monotonic = monotonic
        self._started = monotonic()
        self._sent = 0

    def consume(self, nbytes: int) -> None:
        if self._rate <= 0:
            return

        self._sent += nbytes
        expected = self._sent / self._rate
        elapsed = self._monotonic() - self._started

        if expected > elapsed:
            self._sleep(expected - elapsed)


class FileCopier:
    """
    Copies CopyTasks from a source to a target storage.

    Instances hold no per-file state and may be shared by workers.
    """

    def __init__(
        self,
        source: Storage,
        target: Storage,
        config: ExportConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._target = target
        self._config = config
        self._sleep = sleep
        self._monotonic = monotonic

    @classmethod
    def from_context(cls, ctx: ExportContext) -> FileCopier:
        return cls(ctx.source, ctx.target, ctx.config)

    # ------------------------------------------------------------------
    # Units
    # ------------------------------------------------------------------

    def copy_unit(self, unit: CopyUnit) -> CopyResult:
        """
        Copy every task of a unit, in order.

        Never raises for export failures: the first failing task marks the
        unit failed and the remaining tasks are not attempted.
        """
        result = CopyResult(unit_id=unit.unit_id)

        for task in unit.tasks:
            try:
                outcome = self.copy(task)
            except (SnapshotExportError, OSError) as exc:
                LOGGER.error(
                    "Copy unit failed",
                    extra={
                        "unit_id": unit.unit_id,
                        "source_path": task.source_path,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
                result.mark_failed(exc)
                break

            if outcome.skipped:
                result.files_skipped += 1
                continue

            result.files_copied += 1
            result.bytes_copied += outcome.bytes_copied

            if outcome.staged is not None:
                result.staged.append(outcome.staged)
            if outcome.checksum_mismatch is not None:
                result.checksum_mismatches.append(outcome.checksum_mismatch)

        LOGGER.info(
            "Copy unit finished",
            extra={
                "unit_id": unit.unit_id,
                "status": result.status,
                "files_copied": result.files_copied,
                "files_skipped": result.files_skipped,
                "bytes_copied": result.bytes_copied,
            },
        )

        return result

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def copy(self, task: CopyTask) -> FileCopyOutcome:
        source_length = self._source_length(task.source_path)

        if task.expected_checksum is not None:
            actual = self._source.checksum(task.source_path)
            if actual is not None and actual.value != task.expected_checksum:
                raise ChecksumMismatchError(
                    f"{task.source_path} changed since planning: "
                    f"expected {task.expected_checksum}, found {actual.value}"
                )

        if self._is_same_file(task, source_length):
            LOGGER.debug(
                "Target already up to date",
                extra={"target_path": task.target_path},
            )
            return FileCopyOutcome(task=task, skipped=True)

        staging = layout.staging_path(task.target_path)
        written = self._stream(task.source_path, staging)

        if written != source_length:
            raise ChecksumMismatchError(
                f"Copied length of {task.source_path} differs: "
                f"source={source_length} target={written}"
            )

        mismatch = None
        if self._config.checksum_verify:
            mismatch = self._verify_checksum(task.source_path, staging)

        if self._config.skip_tmp:
            self._target.rename(staging, task.target_path)
            staged = None
        else:
            staged = (staging, task.target_path)

        return FileCopyOutcome(
            task=task,
            skipped=False,
            bytes_copied=written,
            staged=staged,
            checksum_mismatch=mismatch,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _source_length(self, path: str) -> int:
        try:
            return self._source.length(path)
        except FileNotFoundError as exc:
            raise SourceMissingError(f"Source file vanished: {path}") from exc

    def _is_same_file(self, task: CopyTask, source_length: int) -> bool:
        target = self._target
        path = task.target_path

        if not target.exists(path) or target.is_dir(path):
            return False

        if target.length(path) != source_length:
            return False

        if not self._config.checksum_verify:
            return True

        source_checksum = self._source.checksum(task.source_path)
        target_checksum = target.checksum(path)

        # Without checksums, equal length is all there is to compare.
        if source_checksum is None or target_checksum is None:
            return True

        return source_checksum == target_checksum

    def _stream(self, source_path: str, staging: str) -> int:
        buffer_size = self._config.buffer_size
        throttle = _Throttle(
            self._config.bandwidth_bytes_per_second,
            sleep=self._sleep,
            monotonic=self._monotonic,
        )

        try:
            reader = self._source.open_read(source_path)
        except FileNotFoundError as exc:
            raise SourceMissingError(f"Source file vanished: {source_path}") from exc

        with reader, self._target.open_write(staging) as writer:
            while True:
                chunk = reader.read(buffer_size)
                if not chunk:
                    break
                writer.write(chunk)
                throttle.consume(len(chunk))

        return self._target.length(staging)

    def _verify_checksum(self, source_path: str, staging: str) -> str | None:
        source_checksum = self._source.checksum(source_path)
        target_checksum = self._target.checksum(staging)

        if source_checksum is None or target_checksum is None:
            LOGGER.debug(
                "Checksum unavailable, skipping verification",
                extra={"source_path": source_path},
            )
            return None

        if source_checksum.algorithm == target_checksum.algorithm:
            if source_checksum.value != target_checksum.value:
                raise ChecksumMismatchError(
                    f"Checksum mismatch for {source_path}: "
                    f"{_describe(source_checksum)} != {_describe(target_checksum)}"
                )
            return None

        message = (
            f"Incomparable checksums for {source_path}: "
            f"{_describe(source_checksum)} vs {_describe(target_checksum)}"
        )

        if self._config.cross_scheme_checksum == "strict":
            raise ChecksumMismatchError(
                f"{message} (use --no-checksum-verify or "
                "--cross-scheme-checksum advisory to copy anyway)"
            )

        LOGGER.warning(message, extra={"source_path": source_path})
        return message


def _describe(checksum: FileChecksum) -> str:
    return f"{checksum.algorithm}:{checksum.value}"
