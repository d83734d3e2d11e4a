"""Shared fixtures: in-memory source/target namespaces and a snapshot builder."""

from __future__ import annotations

from typing import Any, Callable, Union

import pytest

from snapshot_export.core.config.export_config import ExportConfig
from snapshot_export.core.domain import layout
from snapshot_export.core.domain.manifest import (
    DirectStoreFile,
    ReferenceStoreFile,
    RegionManifest,
    SnapshotDescriptor,
    SnapshotManifest,
)
from snapshot_export.core.events.event_bus import EventBus
from snapshot_export.export.io.manifest_io import write_snapshot
from snapshot_export.export.io.local_storage import LocalStorage
from snapshot_export.export.io.memory_storage import MemoryStorage
from snapshot_export.export.io.registry import StorageRegistry, default_registry
from snapshot_export.export.runtime.context import ExportContext, build_export_context
from snapshot_export.export.runtime.exporter import SnapshotExporter
from snapshot_export.export.runtime.results import ExportReport
from snapshot_export.export.runtime.task_runners import SequentialTaskRunner

TABLE = "default:usertable"
CREATED_MS = 1_700_000_000_000
NOW_MS = CREATED_MS + 60_000

SOURCE_URI = "memory://src/hbase"
TARGET_URI = "memory://dst/backup"
SOURCE_ROOT = "/hbase"
TARGET_ROOT = "/backup"

Entry = Union[str, DirectStoreFile, ReferenceStoreFile]


class SnapshotBuilder:
    """Writes snapshots and their data files into a storage namespace."""

    def __init__(self, storage: Any, root: str) -> None:
        self.storage = storage
        self.root = root

    def data_file(
        self,
        region: str,
        family: str,
        name: str,
        data: bytes | None = None,
        *,
        table: str = TABLE,
        archived: bool = False,
    ) -> str:
        locate = layout.archive_store_file_path if archived else layout.live_store_file_path
        path = locate(self.root, table, region, family, name)
        with self.storage.open_write(path) as fh:
            fh.write(data if data is not None else f"hfile:{region}/{family}/{name}".encode())
        return path

    def snapshot(
        self,
        name: str,
        regions: dict[str, dict[str, list[Entry]]],
        *,
        table: str = TABLE,
        ttl: int = 0,
        creation_time: int = CREATED_MS,
        extras: dict[str, bytes] | None = None,
    ) -> SnapshotManifest:
        region_manifests = []
        for index, (encoded_name, families) in enumerate(regions.items()):
            region_manifests.append(
                RegionManifest(
                    encoded_name=encoded_name,
                    start_key="" if index == 0 else f"{index:04x}",
                    end_key="" if index == len(regions) - 1 else f"{index + 1:04x}",
                    families={
                        family: [
                            DirectStoreFile(name=entry) if isinstance(entry, str) else entry
                            for entry in entries
                        ]
                        for family, entries in families.items()
                    },
                )
            )

        manifest = SnapshotManifest(
            descriptor=SnapshotDescriptor(
                name=name,
                table=table,
                creation_time=creation_time,
                ttl=ttl,
                region_count=len(region_manifests),
            ),
            regions=region_manifests,
        )

        snapshot_directory = layout.snapshot_dir(self.root, name)
        write_snapshot(self.storage, snapshot_directory, manifest)

        for relative, data in (extras or {}).items():
            with self.storage.open_write(layout.join(snapshot_directory, relative)) as fh:
                fh.write(data)

        return manifest


@pytest.fixture
def source_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def target_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def registry(source_storage: MemoryStorage, target_storage: MemoryStorage) -> StorageRegistry:
    reg = default_registry()
    reg.bind("memory", "src", source_storage)
    reg.bind("memory", "dst", target_storage)
    return reg


@pytest.fixture
def builder(source_storage: MemoryStorage) -> SnapshotBuilder:
    return SnapshotBuilder(source_storage, SOURCE_ROOT)


@pytest.fixture
def local_source(tmp_path) -> SnapshotBuilder:
    """Snapshot builder over a real directory, for command-line runs."""
    return SnapshotBuilder(LocalStorage(), str(tmp_path / "source"))


@pytest.fixture
def target_builder(target_storage: MemoryStorage) -> SnapshotBuilder:
    return SnapshotBuilder(target_storage, TARGET_ROOT)


@pytest.fixture
def make_config() -> Callable[..., ExportConfig]:
    def _make(**overrides: Any) -> ExportConfig:
        options: dict[str, Any] = {
            "snapshot": "snap1",
            "copy_from": SOURCE_URI,
            "copy_to": TARGET_URI,
            "workers": 2,
        }
        options.update(overrides)
        return ExportConfig.from_json_obj(options)

    return _make


@pytest.fixture
def make_context(registry: StorageRegistry) -> Callable[..., ExportContext]:
    def _make(config: ExportConfig, *, event_bus: EventBus | None = None, now: int = NOW_MS) -> ExportContext:
        return build_export_context(
            config,
            registry=registry,
            event_bus=event_bus or EventBus(),
            clock=lambda: now,
            export_id="export-test",
        )

    return _make


@pytest.fixture
def run_export(make_context: Callable[..., ExportContext]) -> Callable[..., ExportReport]:
    def _run(config: ExportConfig, **kwargs: Any) -> ExportReport:
        ctx = make_context(config, **kwargs)
        return SnapshotExporter(ctx, SequentialTaskRunner()).run()

    return _run
