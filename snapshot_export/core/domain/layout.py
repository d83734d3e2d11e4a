"""
On-storage layout of snapshots and store files.

All paths are POSIX strings interpreted by a Storage back-end. The layout
is identical on the source and the target side:

    <root>/.hbase-snapshot/<snapshot>/.snapshotinfo
    <root>/.hbase-snapshot/<snapshot>/region-manifest.<encoded region>
    <root>/.hbase-snapshot/.tmp/<snapshot>/...            (export staging)
    <root>/data/<namespace>/<table>/<region>/<family>/<file>      (live)
    <root>/archive/data/<namespace>/<table>/<region>/<family>/<file>
"""

from __future__ import annotations

import posixpath

SNAPSHOT_DIR_NAME = ".hbase-snapshot"
SNAPSHOT_TMP_DIR_NAME = ".tmp"
ARCHIVE_DIR_NAME = "archive"
DATA_DIR_NAME = "data"

SNAPSHOTINFO_FILE_NAME = ".snapshotinfo"
REGION_MANIFEST_PREFIX = "region-manifest."

# Suffix of a data file that was written but not yet committed.
STAGING_SUFFIX = "._COPYING_"

DEFAULT_NAMESPACE = "default"

# Identity of one physical store file: (table, region, family, file).
StoreFileKey = tuple[str, str, str, str]


def join(base: str, *parts: str) -> str:
    """Join path segments, tolerating an empty base (object-store roots)."""
    segments = [segment for segment in (base, *parts) if segment]
    if not segments:
        return ""
    return posixpath.join(*segments)


def relative_to(path: str, root: str) -> str:
    """Return ``path`` relative to ``root`` (both storage paths)."""
    if not root:
        return path.lstrip("/")

    prefix = root.rstrip("/") + "/"
    if not path.startswith(prefix):
        raise ValueError(f"{path} is not under {root}")
    return path[len(prefix):]


def split_table_name(table: str) -> tuple[str, str]:
    """Split ``namespace:qualifier`` into its parts (namespace defaults)."""
    if ":" in table:
        namespace, qualifier = table.split(":", 1)
        return namespace or DEFAULT_NAMESPACE, qualifier
    return DEFAULT_NAMESPACE, table


def snapshots_root(root: str) -> str:
    return join(root, SNAPSHOT_DIR_NAME)


def snapshot_dir(root: str, snapshot_name: str) -> str:
    return join(root, SNAPSHOT_DIR_NAME, snapshot_name)


def working_snapshot_dir(root: str, snapshot_name: str) -> str:
    """Staging directory an export writes into before publishing."""
    return join(root, SNAPSHOT_DIR_NAME, SNAPSHOT_TMP_DIR_NAME, snapshot_name)


def snapshotinfo_path(snapshot_directory: str) -> str:
    return join(snapshot_directory, SNAPSHOTINFO_FILE_NAME)


def region_manifest_path(snapshot_directory: str, encoded_region: str) -> str:
    return join(snapshot_directory, f"{REGION_MANIFEST_PREFIX}{encoded_region}")


def table_dir(base: str, table: str) -> str:
    namespace, qualifier = split_table_name(table)
    return join(base, DATA_DIR_NAME, namespace, qualifier)


def live_store_file_path(
    root: str,
    table: str,
    region: str,
    family: str,
    file_name: str,
) -> str:
    return join(table_dir(root, table), region, family, file_name)


def archive_store_file_path(
    root: str,
    table: str,
    region: str,
    family: str,
    file_name: str,
) -> str:
    return join(table_dir(join(root, ARCHIVE_DIR_NAME), table), region, family, file_name)


def staging_path(path: str) -> str:
    return f"{path}{STAGING_SUFFIX}"
