"""
Export error taxonomy.

Every error below is fatal to the export invocation that raised it.
Nothing in the engine retries on any of them; the caller re-runs the
whole export instead.
"""

from __future__ import annotations


class SnapshotExportError(Exception):
    """Base class for all export failures."""


class CorruptManifestError(SnapshotExportError):
    """The snapshot descriptor or a region manifest cannot be trusted."""


class MalformedReferenceError(SnapshotExportError):
    """A reference or link store-file name cannot be decoded."""


class SourceMissingError(SnapshotExportError):
    """A file referenced by the snapshot does not exist in the source."""


class ChecksumMismatchError(SnapshotExportError):
    """Source and copied target content do not agree."""


class TargetAlreadyExistsError(SnapshotExportError):
    """The target snapshot (or an in-progress export of it) already exists."""


class ExpiredSnapshotError(SnapshotExportError):
    """The source snapshot outlived its TTL."""


class PlanningError(SnapshotExportError):
    """The export cannot be planned with the given configuration."""


class VerificationError(SnapshotExportError):
    """A published snapshot does not match what was expected."""
