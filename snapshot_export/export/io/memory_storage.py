"""
In-process storage back-end.

Serves ``memory://<name>/<path>`` URIs. It models a separate filesystem
implementation with its own native checksum (CRC32), which makes it the
back-end of choice for exercising cross-scheme behavior without a cluster.
"""

from __future__ import annotations

import io
import posixpath
import threading
import zlib
from typing import BinaryIO

from snapshot_export.core.ports.storage import FileChecksum


def _normalize(path: str) -> str:
    return posixpath.normpath("/" + path.lstrip("/"))


def _prefix(path: str) -> str:
    return "/" if path == "/" else path + "/"


class _MemoryWriter(io.BytesIO):
    """Buffers written bytes and stores them when closed."""

    def __init__(self, storage: MemoryStorage, path: str) -> None:
        super().__init__()
        self._storage = storage
        self._path = path

    def close(self) -> None:
        if not self.closed:
            self._storage._store(self._path, self.getvalue())
        super().close()


class MemoryStorage:
    """Thread-safe dictionary-backed storage with implicit directories."""

    scheme = "memory"

    def __init__(self) -> None:
        self._files: dict[str, bytes] = {}
        self._dirs: set[str] = {"/"}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------

    def exists(self, path: str) -> bool:
        path = _normalize(path)
        with self._lock:
            return path in self._files or self._is_dir(path)

    def is_dir(self, path: str) -> bool:
        with self._lock:
            return self._is_dir(_normalize(path))

    def length(self, path: str) -> int:
        return len(self.read_bytes(path))

    def list_files(self, path: str) -> list[str]:
        path = _normalize(path)
        with self._lock:
            if path in self._files:
                return [path]
            prefix = _prefix(path)
            return sorted(name for name in self._files if name.startswith(prefix))

    def open_read(self, path: str) -> BinaryIO:
        return io.BytesIO(self.read_bytes(path))

    def open_write(self, path: str) -> BinaryIO:
        path = _normalize(path)
        with self._lock:
            if self._is_dir(path):
                raise IsADirectoryError(path)
            self._add_dirs(posixpath.dirname(path))
        return _MemoryWriter(self, path)

    def rename(self, src: str, dst: str) -> None:
        src = _normalize(src)
        dst = _normalize(dst)

        with self._lock:
            if src in self._files:
                if self._is_dir(dst):
                    raise IsADirectoryError(dst)
                self._add_dirs(posixpath.dirname(dst))
                self._files[dst] = self._files.pop(src)
                return

            if not self._is_dir(src):
                raise FileNotFoundError(src)

            if dst in self._files or self._has_children(dst):
                raise FileExistsError(dst)

            src_prefix = _prefix(src)
            moved_files = {
                name: data
                for name, data in self._files.items()
                if name.startswith(src_prefix)
            }
            moved_dirs = {
                name
                for name in self._dirs
                if name == src or name.startswith(src_prefix)
            }

            for name in moved_files:
                del self._files[name]
            self._dirs -= moved_dirs

            self._add_dirs(dst)
            for name, data in moved_files.items():
                self._files[dst + name[len(src):]] = data
            for name in moved_dirs:
                self._dirs.add(dst + name[len(src):])

    def delete(self, path: str, *, recursive: bool = False) -> bool:
        path = _normalize(path)

        with self._lock:
            if path in self._files:
                del self._files[path]
                return True

            if not self._is_dir(path):
                return False

            if self._has_children(path) and not recursive:
                raise OSError(f"Directory not empty: {path}")

            prefix = _prefix(path)
            for name in [name for name in self._files if name.startswith(prefix)]:
                del self._files[name]
            self._dirs = {
                name
                for name in self._dirs
                if name != path and not name.startswith(prefix)
            }
            self._dirs.add("/")
            return True

    def makedirs(self, path: str) -> None:
        with self._lock:
            self._add_dirs(_normalize(path))

    def checksum(self, path: str) -> FileChecksum | None:
        data = self.read_bytes(path)
        return FileChecksum(algorithm="crc32", value=f"{zlib.crc32(data):08x}")

    # ------------------------------------------------------------------

    def read_bytes(self, path: str) -> bytes:
        path = _normalize(path)
        with self._lock:
            try:
                return self._files[path]
            except KeyError:
                raise FileNotFoundError(path) from None

    def write_bytes(self, path: str, data: bytes) -> None:
        with self.open_write(path) as fh:
            fh.write(data)

    def _store(self, path: str, data: bytes) -> None:
        with self._lock:
            self._files[path] = data

    def _is_dir(self, path: str) -> bool:
        return path in self._dirs or self._has_children(path)

    def _has_children(self, path: str) -> bool:
        prefix = _prefix(path)
        return any(name.startswith(prefix) for name in self._files) or any(
            name.startswith(prefix) for name in self._dirs
        )

    def _add_dirs(self, path: str) -> None:
        while path not in self._dirs:
            self._dirs.add(path)
            path = posixpath.dirname(path)
