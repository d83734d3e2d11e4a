"""
Read-only verification of published snapshots.

Verification never modifies storage. It re-reads a published manifest
and checks that every physical file it references is present, then
reports all problems found at once.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from snapshot_export.core.domain import layout
from snapshot_export.core.domain.errors import (
    CorruptManifestError,
    MalformedReferenceError,
    VerificationError,
)
from snapshot_export.core.domain.references import resolve_store_file
from snapshot_export.export.io.manifest_io import read_snapshot

if TYPE_CHECKING:
    from snapshot_export.core.ports.storage import Storage

LOGGER = logging.getLogger(__name__)


class SnapshotVerifier:
    def __init__(self, storage: Storage, root: str) -> None:
        self._storage = storage
        self._root = root

    def verify(
        self,
        snapshot_name: str,
        *,
        expected_table: str | None = None,
        expected_ttl: int | None = None,
        include_live: bool = False,
    ) -> set[str]:
        """
        Verify a snapshot and return the names of its physical data files.

        Store-file names are unique in practice; same-named files in
        different regions are reported once. Use ``verify_store_files`` to
        count physical files exactly.
        """
        store_files = self.verify_store_files(
            snapshot_name,
            expected_table=expected_table,
            expected_ttl=expected_ttl,
            include_live=include_live,
        )
        return {key[3] for key in store_files}

    def verify_store_files(
        self,
        snapshot_name: str,
        *,
        expected_table: str | None = None,
        expected_ttl: int | None = None,
        include_live: bool = False,
    ) -> set[layout.StoreFileKey]:
        """
        Verify a snapshot and return its physical data files as
        (table, region, family, file) keys.

        Data files are looked up under ``archive/``; with ``include_live``
        the live ``data/`` tree is accepted as well (source-side checks).

        Raises
        ------
        VerificationError
            On any unreadable manifest, identity mismatch, or missing,
            empty or orphaned data file.
        """
        storage = self._storage
        snapshot_dir = layout.snapshot_dir(self._root, snapshot_name)

        if not storage.exists(snapshot_dir):
            raise VerificationError(f"Snapshot directory not found: {snapshot_dir}")

        try:
            manifest = read_snapshot(storage, snapshot_dir)
        except CorruptManifestError as exc:
            raise VerificationError(f"Snapshot {snapshot_name} is corrupt: {exc}") from exc

        descriptor = manifest.descriptor
        problems: list[str] = []

        if descriptor.name != snapshot_name:
            problems.append(f"descriptor names {descriptor.name!r}, expected {snapshot_name!r}")

        if expected_table is not None and descriptor.table != expected_table:
            problems.append(f"table is {descriptor.table!r}, expected {expected_table!r}")

        if expected_ttl is not None and descriptor.ttl != expected_ttl:
            problems.append(f"ttl is {descriptor.ttl}, expected {expected_ttl}")

        files: set[layout.StoreFileKey] = set()

        for region in manifest.regions:
            for family, store_file in region.iter_store_files():
                try:
                    resolved = resolve_store_file(store_file, region.encoded_name)
                except MalformedReferenceError as exc:
                    problems.append(str(exc))
                    continue

                table = resolved.table or descriptor.table
                problem = self._check_file(
                    table,
                    resolved.region,
                    family,
                    resolved.file,
                    include_live=include_live,
                )
                if problem is not None:
                    problems.append(problem)
                    continue

                files.add((table, resolved.region, family, resolved.file))

        if problems:
            LOGGER.error(
                "Snapshot verification failed",
                extra={"snapshot": snapshot_name, "problems": problems},
            )
            raise VerificationError(
                f"Snapshot {snapshot_name} failed verification: " + "; ".join(problems)
            )

        LOGGER.info(
            "Snapshot verified",
            extra={"snapshot": snapshot_name, "data_files": len(files)},
        )

        return files

    def _check_file(
        self,
        table: str,
        region: str,
        family: str,
        file_name: str,
        *,
        include_live: bool,
    ) -> str | None:
        candidates = [
            layout.archive_store_file_path(self._root, table, region, family, file_name),
        ]
        if include_live:
            candidates.insert(
                0,
                layout.live_store_file_path(self._root, table, region, family, file_name),
            )

        for path in candidates:
            if self._storage.exists(path):
                if self._storage.length(path) <= 0:
                    return f"empty data file {path}"
                return None

        for path in candidates:
            if self._storage.exists(layout.staging_path(path)):
                return f"orphaned staging copy of {path}"

        return f"missing data file {candidates[-1]}"


def list_files(storage: Storage, root: str) -> set[str]:
    """Return every leaf file under root, relative to it."""
    return {layout.relative_to(path, root) for path in storage.list_files(root)}


def compare_trees(
    source: Storage,
    source_root: str,
    target: Storage,
    target_root: str,
) -> None:
    """Raise VerificationError unless both trees hold the same relative files."""
    source_files = list_files(source, source_root)
    target_files = list_files(target, target_root)

    only_source = sorted(source_files - target_files)
    only_target = sorted(target_files - source_files)

    if only_source or only_target:
        raise VerificationError(
            f"Trees differ: only in source {only_source}, only in target {only_target}"
        )
