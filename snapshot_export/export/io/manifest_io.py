"""
Snapshot manifest reader / writer.

Semantics:
- A snapshot directory holds one ``.snapshotinfo`` descriptor and one
  ``region-manifest.<encoded region>`` file per region, all JSON.
- Any other file in the directory is opaque and copied verbatim by the
  exporter; the reader ignores it.
- Regions are returned in key order (start key, then encoded name).
"""

from __future__ import annotations

import json
import posixpath
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from snapshot_export.core.domain import layout
from snapshot_export.core.domain.errors import CorruptManifestError
from snapshot_export.core.domain.manifest import (
    RegionManifest,
    SnapshotDescriptor,
    SnapshotManifest,
)

if TYPE_CHECKING:
    from snapshot_export.core.ports.storage import Storage


def read_snapshot(storage: Storage, snapshot_directory: str) -> SnapshotManifest:
    """Parse a snapshot directory into a SnapshotManifest."""
    descriptor = read_descriptor(storage, snapshot_directory)

    regions: list[RegionManifest] = []
    for path in _region_manifest_paths(storage, snapshot_directory):
        expected = posixpath.basename(path)[len(layout.REGION_MANIFEST_PREFIX):]
        region = _parse(RegionManifest, _load_json(storage, path), path)

        if region.encoded_name != expected:
            raise CorruptManifestError(
                f"{path} describes region {region.encoded_name}, expected {expected}"
            )

        regions.append(region)

    regions.sort(key=lambda region: (region.start_key, region.encoded_name))

    try:
        return SnapshotManifest(descriptor=descriptor, regions=regions)
    except ValidationError as exc:
        raise CorruptManifestError(
            f"Inconsistent snapshot manifest in {snapshot_directory}: {exc}"
        ) from exc


def read_descriptor(storage: Storage, snapshot_directory: str) -> SnapshotDescriptor:
    path = layout.snapshotinfo_path(snapshot_directory)

    if not storage.exists(path):
        raise CorruptManifestError(f"Snapshot descriptor is missing: {path}")

    return _parse(SnapshotDescriptor, _load_json(storage, path), path)


def write_snapshot(storage: Storage, snapshot_directory: str, manifest: SnapshotManifest) -> None:
    """
    Serialize a manifest into a snapshot directory.

    The descriptor is written last so that a readable descriptor implies
    complete region manifests.
    """
    for region in manifest.regions:
        _dump_json(
            storage,
            layout.region_manifest_path(snapshot_directory, region.encoded_name),
            region,
        )

    write_descriptor(storage, snapshot_directory, manifest.descriptor)


def write_descriptor(storage: Storage, snapshot_directory: str, descriptor: SnapshotDescriptor) -> None:
    _dump_json(storage, layout.snapshotinfo_path(snapshot_directory), descriptor)


# ----------------------------------------------------------------------


def _region_manifest_paths(storage: Storage, snapshot_directory: str) -> list[str]:
    paths: list[str] = []

    for path in storage.list_files(snapshot_directory):
        if posixpath.dirname(path).rstrip("/") != snapshot_directory.rstrip("/"):
            continue
        if posixpath.basename(path).startswith(layout.REGION_MANIFEST_PREFIX):
            paths.append(path)

    return paths


def _load_json(storage: Storage, path: str) -> Any:
    try:
        with storage.open_read(path) as fh:
            raw_bytes = fh.read()
    except FileNotFoundError as exc:
        raise CorruptManifestError(f"Manifest file vanished: {path}") from exc

    try:
        return json.loads(raw_bytes)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptManifestError(f"Unparseable manifest file {path}: {exc}") from exc


def _parse(model_type: type[BaseModel], data: Any, path: str) -> Any:
    try:
        return model_type.model_validate(data)
    except ValidationError as exc:
        raise CorruptManifestError(f"Invalid manifest file {path}: {exc}") from exc


def _dump_json(storage: Storage, path: str, model: BaseModel) -> None:
    payload = json.dumps(
        model.model_dump(mode="json", exclude_none=True),
        indent=2,
        sort_keys=True,
    )
    with storage.open_write(path) as fh:
        fh.write(payload.encode("utf-8"))
