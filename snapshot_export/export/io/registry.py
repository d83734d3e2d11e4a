"""
Storage URI resolution.

Maps ``scheme://netloc/path`` URIs to a Storage instance and a root path
inside it. A registry is created per export invocation; back-end instances
are cached per ``(scheme, netloc)`` so that two URIs naming the same
namespace share one instance.

Supported out of the box:
- ``file:///abs/path`` and bare paths (local filesystem)
- ``memory://<name>/<path>`` (in-process)
- ``oci://<bucket>/<prefix>`` (OCI Object Storage)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urlparse

from snapshot_export.core.ports.storage import Storage
from snapshot_export.export.io.local_storage import LocalStorage
from snapshot_export.export.io.memory_storage import MemoryStorage
from snapshot_export.export.io.oci_storage import OCIStorage

StorageFactory = Callable[[str], Storage]


@dataclass(frozen=True, slots=True)
class StorageLocation:
    uri: str
    storage: Storage
    root: str

    @property
    def scheme(self) -> str:
        return self.storage.scheme


class StorageRegistry:
    """Resolves URIs to storage back-ends by scheme."""

    def __init__(self) -> None:
        self._factories: dict[str, StorageFactory] = {}
        self._instances: dict[tuple[str, str], Storage] = {}

    def register(self, scheme: str, factory: StorageFactory) -> None:
        """Register a factory building a back-end from a URI netloc."""
        self._factories[scheme] = factory

    def bind(self, scheme: str, netloc: str, storage: Storage) -> None:
        """Bind an existing back-end instance to ``scheme://netloc``."""
        self._instances[(scheme, netloc)] = storage

    def resolve(self, uri: str) -> StorageLocation:
        parsed = urlparse(uri)

        if not parsed.scheme:
            return StorageLocation(
                uri=uri,
                storage=self._instance("file", ""),
                root=os.path.abspath(uri),
            )

        scheme = parsed.scheme.lower()

        if scheme == "file":
            if parsed.netloc not in ("", "localhost"):
                raise ValueError(f"Remote file URIs are not supported: {uri}")
            return StorageLocation(
                uri=uri,
                storage=self._instance("file", ""),
                root=os.path.abspath(parsed.path or "/"),
            )

        if not parsed.netloc:
            raise ValueError(f"Storage URI requires a namespace name: {uri}")

        storage = self._instance(scheme, parsed.netloc)

        if scheme == "oci":
            root = parsed.path.strip("/")
        else:
            root = parsed.path.rstrip("/") or "/"

        return StorageLocation(uri=uri, storage=storage, root=root)

    def _instance(self, scheme: str, netloc: str) -> Storage:
        key = (scheme, netloc)

        if key not in self._instances:
            if scheme not in self._factories:
                raise ValueError(f"Unsupported storage scheme: {scheme}")
            self._instances[key] = self._factories[scheme](netloc)

        return self._instances[key]


def default_registry() -> StorageRegistry:
    registry = StorageRegistry()
    registry.register("file", lambda _netloc: LocalStorage())
    registry.register("memory", lambda _netloc: MemoryStorage())
    registry.register("oci", lambda bucket: OCIStorage.from_environment(bucket))
    return registry


def open_storage(uri: str) -> tuple[Storage, str]:
    """Resolve a single URI with a fresh default registry."""
    location = default_registry().resolve(uri)
    return location.storage, location.root
