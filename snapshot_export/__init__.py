"""Public API for the snapshot_export package.

Only symbols imported here are considered part of the stable,
supported external interface.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ----------------------------------------------------------------------
# Config API
# ----------------------------------------------------------------------
from snapshot_export.core.config.export_config import ExportConfig

# ----------------------------------------------------------------------
# Domain Types
# ----------------------------------------------------------------------
from snapshot_export.core.domain.errors import (
    ChecksumMismatchError,
    CorruptManifestError,
    ExpiredSnapshotError,
    MalformedReferenceError,
    PlanningError,
    SnapshotExportError,
    SourceMissingError,
    TargetAlreadyExistsError,
    VerificationError,
)
from snapshot_export.core.domain.manifest import (
    DirectStoreFile,
    ReferenceStoreFile,
    RegionManifest,
    SnapshotDescriptor,
    SnapshotManifest,
    StoreFileRef,
    is_expired,
)
from snapshot_export.core.domain.references import ResolvedStoreFile, resolve
from snapshot_export.core.ports.storage import FileChecksum, Storage

# ----------------------------------------------------------------------
# Storage back-ends
# ----------------------------------------------------------------------
from snapshot_export.export.io.local_storage import LocalStorage
from snapshot_export.export.io.manifest_io import read_snapshot, write_snapshot
from snapshot_export.export.io.memory_storage import MemoryStorage
from snapshot_export.export.io.registry import StorageRegistry, default_registry, open_storage

# ----------------------------------------------------------------------
# Export Engine API
# ----------------------------------------------------------------------
from snapshot_export.export.orchestrator.planner import plan_export
from snapshot_export.export.orchestrator.planner_models import CopyTask, CopyUnit, ExportPlan
from snapshot_export.export.runtime.context import ExportContext, build_export_context
from snapshot_export.export.runtime.exporter import SnapshotExporter, export_snapshot
from snapshot_export.export.runtime.results import CopyResult, ExportReport
from snapshot_export.export.runtime.task_runners import (
    SequentialTaskRunner,
    ThreadPoolTaskRunner,
)
from snapshot_export.export.runtime.verifier import SnapshotVerifier, list_files

# ----------------------------------------------------------------------
# Public API definition
# ----------------------------------------------------------------------

__all__ = [
    # Engine
    "SnapshotExporter",
    "export_snapshot",
    "ExportContext",
    "build_export_context",
    "ExportReport",
    "CopyResult",
    "plan_export",
    "ExportPlan",
    "CopyUnit",
    "CopyTask",
    "SequentialTaskRunner",
    "ThreadPoolTaskRunner",
    "SnapshotVerifier",
    "list_files",

    # Config
    "ExportConfig",

    # Manifest model
    "SnapshotDescriptor",
    "SnapshotManifest",
    "RegionManifest",
    "StoreFileRef",
    "DirectStoreFile",
    "ReferenceStoreFile",
    "ResolvedStoreFile",
    "resolve",
    "is_expired",
    "read_snapshot",
    "write_snapshot",

    # Storage
    "Storage",
    "FileChecksum",
    "LocalStorage",
    "MemoryStorage",
    "StorageRegistry",
    "default_registry",
    "open_storage",

    # Errors
    "SnapshotExportError",
    "CorruptManifestError",
    "MalformedReferenceError",
    "SourceMissingError",
    "ChecksumMismatchError",
    "TargetAlreadyExistsError",
    "ExpiredSnapshotError",
    "PlanningError",
    "VerificationError",

    # Version
    "__version__",
]

# ----------------------------------------------------------------------
# Package version
# ----------------------------------------------------------------------

try:
    __version__ = version("snapshot-export")
except PackageNotFoundError:
    __version__ = "0.0.0"
